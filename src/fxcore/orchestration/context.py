"""Contexts handed to the orchestrator and to each plugin invocation."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import structlog

from fxcore.core.lifecycle import Phase
from fxcore.state.environments import EnvironmentDescriptor
from fxcore.state.store import EnvironmentStateStore, StagedWrite


class CancellationToken:
    """Cooperative cancellation signal shared by a phase and its plugins."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


@dataclass
class SolutionContext:
    """The solution a phase runs for.

    ``resources`` lists the plugins that make up the solution, in the order
    they were added; None means every registered plugin.
    """

    name: str
    store: EnvironmentStateStore = field(default_factory=EnvironmentStateStore)
    resources: Optional[List[str]] = None
    project_path: Optional[Path] = None


@dataclass(frozen=True)
class FunctionRouter:
    """Routes a custom task to the plugin named by ``namespace``."""

    namespace: str
    method: str
    params: Any = None


@dataclass
class PluginContext:
    """Scoped view given to one plugin invocation.

    ``phase`` is None for custom tasks, which run outside the lifecycle.

    ``settings`` is the plugin's own staged settings: changes are committed
    only if the invocation succeeds. ``common_config`` and ``common_state``
    are read-only snapshots of the other plugins, taken when the tier started.
    """

    plugin: str
    phase: Optional[Phase]
    solution: SolutionContext
    environment: EnvironmentDescriptor
    staged: StagedWrite
    common_config: Mapping[str, Mapping[str, Any]]
    common_state: Mapping[str, Mapping[str, Any]]
    answers: Dict[str, Any] = field(default_factory=dict)
    token_provider: Any = None
    cancel_token: Optional[CancellationToken] = None
    logger: Any = field(default_factory=structlog.get_logger)

    @property
    def settings(self) -> Dict[str, Any]:
        return self.staged.settings

    @property
    def state(self) -> Dict[str, Any]:
        """Staged state writes, merged with the returned state on commit."""
        return self.staged.state

    @property
    def cancelled(self) -> bool:
        return self.cancel_token is not None and self.cancel_token.cancelled

    def config_of(self, plugin: str) -> Mapping[str, Any]:
        """Read-only settings of another plugin (empty if it has none)."""
        return self.common_config.get(plugin, {})

    def state_of(self, plugin: str) -> Mapping[str, Any]:
        """Read-only committed state of another plugin (empty if it has none)."""
        return self.common_state.get(plugin, {})

    def answer(self, name: str, default: Any = None) -> Any:
        """Answer for one of this plugin's questions, or any qualified path."""
        if "." in name:
            return self.answers.get(name, default)
        return self.answers.get(f"{self.plugin}.{name}", default)
