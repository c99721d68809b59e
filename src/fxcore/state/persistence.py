"""
Persistence ports for environment documents.

The engine only needs get/set/list over opaque per-environment documents.
Two backends are provided:
- InMemoryPersistence: process-local dict, used by tests and embedders
- YamlPersistence: one YAML file per key under a directory
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import structlog
import yaml

from fxcore.config import get_settings

logger = structlog.get_logger()


@runtime_checkable
class Persistence(Protocol):
    """Key-value document store."""

    def get(self, key: str) -> dict[str, Any] | None: ...

    def set(self, key: str, document: dict[str, Any]) -> None: ...

    def list(self) -> list[str]: ...


class InMemoryPersistence:
    """Dict-backed persistence for local use and tests."""

    def __init__(self) -> None:
        self._documents: dict[str, dict[str, Any]] = {}

    def get(self, key: str) -> dict[str, Any] | None:
        document = self._documents.get(key)
        return copy.deepcopy(document) if document is not None else None

    def set(self, key: str, document: dict[str, Any]) -> None:
        self._documents[key] = copy.deepcopy(document)

    def list(self) -> list[str]:
        return sorted(self._documents)


class YamlPersistence:
    """Stores each document as ``<directory>/<key>.yaml``.

    The directory defaults to the ``state_dir`` setting.
    """

    def __init__(self, directory: Path | str | None = None) -> None:
        self.directory = Path(directory) if directory is not None else get_settings().state_dir

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.yaml"

    def get(self, key: str) -> dict[str, Any] | None:
        path = self._path(key)
        if not path.exists():
            return None
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        logger.debug("loaded_document", path=str(path))
        return data

    def set(self, key: str, document: dict[str, Any]) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        with open(path, "w") as f:
            yaml.safe_dump(document, f, default_flow_style=False, sort_keys=True)
        logger.debug("saved_document", path=str(path))

    def list(self) -> list[str]:
        if not self.directory.exists():
            return []
        return sorted(p.stem for p in self.directory.glob("*.yaml"))
