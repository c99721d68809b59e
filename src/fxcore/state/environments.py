"""Environment descriptors and persisted environment profiles.

An environment is a named deployment target (dev, staging, prod, ...) with
its own variables. Profiles are persisted in a single ``environments``
document so a front end can create, switch and remove targets between runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

import structlog

from fxcore.config import get_settings
from fxcore.core.errors import EnvironmentProfileError
from fxcore.state.persistence import InMemoryPersistence, Persistence

logger = structlog.get_logger()

PROFILES_KEY = "environments"


@dataclass(frozen=True)
class EnvironmentDescriptor:
    """A deployment target handed to plugins for one phase.

    ``token_provider`` is opaque to the engine: it is passed through to
    plugins and never inspected or cached.
    """

    name: str
    variables: Mapping[str, Any] = field(default_factory=dict)
    token_provider: Any = field(default=None, repr=False, compare=False)
    local: bool = False
    sideloading: bool = False

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("Environment name is required")
        object.__setattr__(self, "name", self.name.lower().strip())
        object.__setattr__(self, "variables", MappingProxyType(dict(self.variables)))

    def with_token_provider(self, token_provider: Any) -> EnvironmentDescriptor:
        return EnvironmentDescriptor(
            name=self.name,
            variables=dict(self.variables),
            token_provider=token_provider,
            local=self.local,
            sideloading=self.sideloading,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "variables": dict(self.variables),
            "local": self.local,
            "sideloading": self.sideloading,
        }


class EnvironmentProfiles:
    """Create, switch, remove and list persisted environments."""

    def __init__(self, persistence: Optional[Persistence] = None, default: Optional[str] = None):
        self._persistence = persistence or InMemoryPersistence()
        default = default or get_settings().default_environment
        document = self._persistence.get(PROFILES_KEY) or {}
        self._profiles: Dict[str, Dict[str, Any]] = dict(document.get("environments") or {})
        self._current: str = document.get("current") or default
        if self._current not in self._profiles:
            self._profiles[self._current] = EnvironmentDescriptor(self._current).to_dict()

    @property
    def current(self) -> str:
        return self._current

    def list(self) -> List[EnvironmentDescriptor]:
        """All environments, sorted by name."""
        return [self.get(name) for name in sorted(self._profiles)]

    def get(self, name: str, token_provider: Any = None) -> EnvironmentDescriptor:
        """Build the descriptor for ``name``.

        Raises:
            EnvironmentProfileError: If the environment does not exist
        """
        profile = self._profiles.get(name.lower().strip())
        if profile is None:
            raise EnvironmentProfileError(f"Environment not found: {name}", source="environments")
        return EnvironmentDescriptor(
            name=name,
            variables=profile.get("variables") or {},
            token_provider=token_provider,
            local=bool(profile.get("local", False)),
            sideloading=bool(profile.get("sideloading", False)),
        )

    def create(
        self,
        name: str,
        variables: Optional[Dict[str, Any]] = None,
        local: bool = False,
        sideloading: bool = False,
    ) -> EnvironmentDescriptor:
        env = EnvironmentDescriptor(
            name=name, variables=variables or {}, local=local, sideloading=sideloading
        )
        if env.name in self._profiles:
            raise EnvironmentProfileError(
                f"Environment already exists: {env.name}", source="environments"
            )
        self._profiles[env.name] = env.to_dict()
        self._save()
        logger.info("environment_created", environment=env.name)
        return env

    def remove(self, name: str) -> None:
        name = name.lower().strip()
        if name == self._current:
            raise EnvironmentProfileError(
                "The current environment can not be removed", source="environments"
            )
        if name not in self._profiles:
            raise EnvironmentProfileError(f"Environment not found: {name}", source="environments")
        del self._profiles[name]
        self._save()
        logger.info("environment_removed", environment=name)

    def switch(self, name: str) -> EnvironmentDescriptor:
        env = self.get(name)
        self._current = env.name
        self._save()
        logger.info("environment_switched", environment=env.name)
        return env

    def _save(self) -> None:
        self._persistence.set(
            PROFILES_KEY, {"current": self._current, "environments": self._profiles}
        )
