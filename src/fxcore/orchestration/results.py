"""Result types for lifecycle phases."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from fxcore.core.errors import FxError
    from fxcore.core.lifecycle import Phase


class PluginStatus(StrEnum):
    """What happened to one plugin during a phase."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    BLOCKED = "blocked"  # a dependency failed, never invoked
    SKIPPED = "skipped"  # not attempted (fast fail or cancellation)
    UNSUPPORTED = "unsupported"  # lacks the phase capability
    ALREADY_COMPLETED = "already_completed"  # committed by an earlier attempt


@dataclass
class PluginResult:
    """Values produced by one plugin invocation."""

    resource_values: Dict[str, Any] = field(default_factory=dict)
    state_values: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PluginOutcome:
    """Per-plugin record inside a lifecycle result."""

    plugin: str
    status: PluginStatus
    error: Optional[FxError] = None
    blocked_by: Optional[str] = None
    duration_seconds: float = 0.0


@dataclass
class LifecycleResult:
    """Aggregated outcome of a phase.

    ``resource_values`` and ``state_values`` are namespaced per plugin:
    ``{"identity": {"client_id": "..."}}``.
    """

    phase: Phase
    environment: str
    resource_values: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    state_values: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    outcomes: Dict[str, PluginOutcome] = field(default_factory=dict)
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        """Whether no plugin failed, was blocked or was skipped."""
        bad = (PluginStatus.FAILED, PluginStatus.BLOCKED, PluginStatus.SKIPPED)
        return not any(outcome.status in bad for outcome in self.outcomes.values())

    def plugins_with_status(self, status: PluginStatus) -> List[str]:
        return [name for name, outcome in self.outcomes.items() if outcome.status == status]

    @property
    def succeeded(self) -> List[str]:
        return self.plugins_with_status(PluginStatus.SUCCEEDED)

    @property
    def failed(self) -> List[str]:
        return self.plugins_with_status(PluginStatus.FAILED)

    @property
    def blocked(self) -> List[str]:
        return self.plugins_with_status(PluginStatus.BLOCKED)

    @property
    def skipped(self) -> List[str]:
        return self.plugins_with_status(PluginStatus.SKIPPED)

    def flat_state(self) -> Dict[str, Any]:
        """State values under ``"<plugin>.<key>"`` keys."""
        return _flatten(self.state_values)

    def flat_resource_values(self) -> Dict[str, Any]:
        """Resource values under ``"<plugin>.<key>"`` keys."""
        return _flatten(self.resource_values)

    def summary(self) -> Dict[str, Any]:
        """Compact description used in log lines."""
        return {
            "phase": self.phase.name.lower(),
            "environment": self.environment,
            "outcomes": {name: outcome.status.value for name, outcome in self.outcomes.items()},
            "state_keys": sorted(self.flat_state()),
        }


def _flatten(values: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
    flat: Dict[str, Any] = {}
    for plugin in sorted(values):
        for key, value in values[plugin].items():
            flat[f"{plugin}.{key}"] = value
    return flat


class ResultCollector:
    """Aggregates plugin results during a phase."""

    def __init__(self, phase: Phase, environment: str) -> None:
        self._result = LifecycleResult(phase=phase, environment=environment)

    def record(self, plugin: str, result: Optional[PluginResult], duration: float = 0.0) -> None:
        """Record a committed plugin result under its namespace."""
        if result is not None:
            self.merge_values(plugin, result.resource_values, result.state_values)
        self._result.outcomes[plugin] = PluginOutcome(
            plugin=plugin, status=PluginStatus.SUCCEEDED, duration_seconds=duration
        )

    def merge_values(
        self,
        plugin: str,
        resource_values: Dict[str, Any],
        state_values: Dict[str, Any],
    ) -> None:
        """Merge values into the plugin namespace, overwriting per key."""
        if resource_values:
            self._result.resource_values.setdefault(plugin, {}).update(
                copy.deepcopy(resource_values)
            )
        if state_values:
            self._result.state_values.setdefault(plugin, {}).update(copy.deepcopy(state_values))

    def record_already_completed(
        self, plugin: str, resource_values: Dict[str, Any], state_values: Dict[str, Any]
    ) -> None:
        """Record a plugin whose output was committed by an earlier attempt."""
        self.merge_values(plugin, resource_values, state_values)
        self._result.outcomes[plugin] = PluginOutcome(
            plugin=plugin, status=PluginStatus.ALREADY_COMPLETED
        )

    def record_error(self, plugin: str, error: FxError, duration: float = 0.0) -> None:
        """Record a plugin failure. Nothing it produced is merged."""
        self._result.outcomes[plugin] = PluginOutcome(
            plugin=plugin, status=PluginStatus.FAILED, error=error, duration_seconds=duration
        )

    def record_blocked(self, plugin: str, blocked_by: str) -> None:
        self._result.outcomes[plugin] = PluginOutcome(
            plugin=plugin, status=PluginStatus.BLOCKED, blocked_by=blocked_by
        )

    def record_skipped(self, plugin: str) -> None:
        self._result.outcomes[plugin] = PluginOutcome(plugin=plugin, status=PluginStatus.SKIPPED)

    def record_unsupported(self, plugin: str) -> None:
        self._result.outcomes[plugin] = PluginOutcome(
            plugin=plugin, status=PluginStatus.UNSUPPORTED
        )

    def status_of(self, plugin: str) -> Optional[PluginStatus]:
        outcome = self._result.outcomes.get(plugin)
        return outcome.status if outcome else None

    def errors(self) -> Dict[str, FxError]:
        """Failures recorded so far, in recording order."""
        return {
            name: outcome.error
            for name, outcome in self._result.outcomes.items()
            if outcome.status == PluginStatus.FAILED and outcome.error is not None
        }

    def finalize(self, duration: float) -> LifecycleResult:
        """Return the result with duration set."""
        self._result.duration_seconds = duration
        return self._result
