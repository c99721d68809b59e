"""
Local toolchain dependency sequencer.

Resolves the tools a solution needs before provisioning (node runtimes,
dotnet, function core tools, ngrok). The checkers that actually probe and
install a tool are external; this module orders them, applies the fast-fail
policy and reports a status per tool.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Iterable, Protocol, runtime_checkable

import structlog

from fxcore.core.errors import FxError, FxSystemError, normalize_error

logger = structlog.get_logger()


class DependencyType(StrEnum):
    """Local tools a plugin may require."""

    AZURE_NODE = "azure-node"
    FUNCTION_NODE = "function-node"
    SPFX_NODE = "spfx-node"
    DOTNET = "dotnet"
    FUNC_CORE_TOOLS = "func-core-tools"
    NGROK = "ngrok"


# Installation order
DEPENDENCY_ORDER: tuple[DependencyType, ...] = (
    DependencyType.AZURE_NODE,
    DependencyType.FUNCTION_NODE,
    DependencyType.SPFX_NODE,
    DependencyType.DOTNET,
    DependencyType.FUNC_CORE_TOOLS,
    DependencyType.NGROK,
)


@dataclass
class DependencyInfo:
    """Static description of a tool reported by its checker."""

    name: str
    is_linux_supported: bool = True
    supported_versions: list[str] = field(default_factory=list)
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class DependencyStatus:
    """Outcome of resolving one tool."""

    name: str
    type: DependencyType
    is_installed: bool
    command: str
    details: dict[str, Any] = field(default_factory=dict)
    error: FxError | None = None


@runtime_checkable
class DependencyChecker(Protocol):
    """Probes and installs one tool."""

    async def resolve(self) -> bool: ...

    async def get_info(self) -> DependencyInfo: ...

    async def command(self) -> str: ...


@runtime_checkable
class DependencySequencer(Protocol):
    """What the orchestrator needs before a provision phase."""

    async def ensure_dependencies(
        self, dependencies: Iterable[DependencyType], fast_fail: bool = True
    ) -> list[DependencyStatus]: ...


def sort_by_sequence(
    dependencies: Iterable[DependencyType],
    sequence: tuple[DependencyType, ...] = DEPENDENCY_ORDER,
) -> list[DependencyType]:
    """Deduplicate and order tools by the installation sequence."""
    unique = {DependencyType(dep) for dep in dependencies if dep is not None}
    return sorted(unique, key=lambda dep: sequence.index(dep) if dep in sequence else len(sequence))


class DependencyManager:
    """Ensures local tools are installed, one checker per dependency type."""

    def __init__(self, checkers: dict[DependencyType, DependencyChecker]) -> None:
        if checkers is None:
            raise ValueError("checkers is required")
        self._checkers = dict(checkers)

    async def ensure_dependencies(
        self, dependencies: Iterable[DependencyType], fast_fail: bool = True
    ) -> list[DependencyStatus]:
        """Resolve tools in installation order.

        With ``fast_fail`` the manager stops installing after the first tool
        that could not be installed, but still probes and reports the rest.
        """
        ordered = sort_by_sequence(dependencies)
        results: list[DependencyStatus] = []
        should_install = True
        for dep_type in ordered:
            status = await self._resolve(dep_type, should_install)
            results.append(status)
            if fast_fail and not status.is_installed:
                should_install = False
        logger.info(
            "dependencies_ensured",
            requested=[d.value for d in ordered],
            missing=[s.type.value for s in results if not s.is_installed],
        )
        return results

    async def _resolve(self, dep_type: DependencyType, should_install: bool) -> DependencyStatus:
        checker = self._checkers.get(dep_type)
        if checker is None:
            return DependencyStatus(
                name=dep_type.value,
                type=dep_type,
                is_installed=False,
                command="",
                error=FxSystemError(f"No checker registered for {dep_type.value}", source="deps"),
            )

        is_installed = False
        error: FxError | None = None
        if should_install:
            try:
                is_installed = bool(await checker.resolve())
            except Exception as e:
                error = normalize_error(e, source="deps")
                logger.warning("dependency_install_failed", dependency=dep_type.value, error=str(e))

        info = await checker.get_info()
        details = {
            "is_linux_supported": info.is_linux_supported,
            "supported_versions": list(info.supported_versions),
        }
        if "bin_folder" in info.details:
            details["bin_folder"] = info.details["bin_folder"]
        return DependencyStatus(
            name=info.name,
            type=dep_type,
            is_installed=is_installed,
            command=await checker.command(),
            details=details,
            error=error,
        )
