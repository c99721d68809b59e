"""
Environment/state propagation store.

Holds, per environment, three sections keyed by plugin name:
- settings: configuration inputs owned by the plugin
- state: outputs produced by executing the plugin
- resource_values: per-environment instance values returned with state

Plugins never write to the store directly. The orchestrator hands each
invocation a ``StagedWrite`` and commits it only when the invocation
succeeded, so a failed plugin leaves no trace. Sibling reads go through
read-only snapshots.
"""

from __future__ import annotations

import copy
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Mapping

import structlog

from fxcore.core.lifecycle import Phase
from fxcore.state.persistence import InMemoryPersistence, Persistence

if TYPE_CHECKING:
    from fxcore.orchestration.results import PluginResult

logger = structlog.get_logger()

SETTINGS = "settings"
STATE = "state"
RESOURCE_VALUES = "resource_values"
SECTIONS = (SETTINGS, STATE, RESOURCE_VALUES)


def state_key(environment: str) -> str:
    """Persistence key of an environment's state document."""
    return f"{environment}.state"


def _freeze(values: dict[str, dict[str, Any]]) -> Mapping[str, Mapping[str, Any]]:
    return MappingProxyType(
        {plugin: MappingProxyType(copy.deepcopy(data)) for plugin, data in values.items()}
    )


class StagedWrite:
    """Buffered writes of one plugin invocation, applied all at once on commit."""

    def __init__(self, store: EnvironmentStateStore, plugin: str, environment: str) -> None:
        self._store = store
        self.plugin = plugin
        self.environment = environment
        self.settings: dict[str, Any] = store.get_settings(plugin, environment)
        self.state: dict[str, Any] = {}
        self.resource_values: dict[str, Any] = {}
        self._closed = False

    def commit(self, result: PluginResult | None = None) -> None:
        """Apply buffered writes plus the plugin's returned values."""
        if self._closed:
            raise RuntimeError(f"Staged write for '{self.plugin}' already closed")
        state = dict(self.state)
        resource_values = dict(self.resource_values)
        if result is not None:
            state.update(result.state_values)
            resource_values.update(result.resource_values)
        self._store._apply(self.plugin, self.environment, self.settings, state, resource_values)
        self._closed = True

    def discard(self) -> None:
        """Drop everything buffered."""
        self._closed = True
        self.settings = {}
        self.state.clear()
        self.resource_values.clear()


class EnvironmentStateStore:
    """Per-environment settings, state and phase completion markers."""

    def __init__(self, persistence: Persistence | None = None) -> None:
        self._persistence = persistence or InMemoryPersistence()
        self._data: dict[str, dict[str, dict[str, dict[str, Any]]]] = {}
        self._completed_phases: dict[str, set[Phase]] = {}
        self._completed_plugins: dict[str, dict[Phase, set[str]]] = {}

    def _section(self, environment: str, section: str) -> dict[str, dict[str, Any]]:
        env = self._data.setdefault(environment, {name: {} for name in SECTIONS})
        return env[section]

    # === Reads ===

    def get_settings(self, plugin: str, environment: str) -> dict[str, Any]:
        return copy.deepcopy(self._section(environment, SETTINGS).get(plugin, {}))

    def get_state(self, plugin: str, environment: str) -> dict[str, Any]:
        return copy.deepcopy(self._section(environment, STATE).get(plugin, {}))

    def get_resource_values(self, plugin: str, environment: str) -> dict[str, Any]:
        return copy.deepcopy(self._section(environment, RESOURCE_VALUES).get(plugin, {}))

    def snapshot_settings(
        self, environment: str, exclude: str | None = None
    ) -> Mapping[str, Mapping[str, Any]]:
        """Read-only copy of every plugin's settings except ``exclude``."""
        settings = self._section(environment, SETTINGS)
        return _freeze({p: v for p, v in settings.items() if p != exclude})

    def snapshot_state(
        self, environment: str, exclude: str | None = None
    ) -> Mapping[str, Mapping[str, Any]]:
        """Read-only copy of every plugin's committed state except ``exclude``."""
        state = self._section(environment, STATE)
        return _freeze({p: v for p, v in state.items() if p != exclude})

    def environments(self) -> list[str]:
        return sorted(self._data)

    # === Writes ===

    def put_settings(self, plugin: str, environment: str, values: dict[str, Any]) -> None:
        """Seed or overwrite settings keys, e.g. from a configuration step."""
        self._section(environment, SETTINGS).setdefault(plugin, {}).update(copy.deepcopy(values))

    def stage(self, plugin: str, environment: str) -> StagedWrite:
        """Open an all-or-nothing write buffer for one plugin invocation."""
        return StagedWrite(self, plugin, environment)

    def _apply(
        self,
        plugin: str,
        environment: str,
        settings: dict[str, Any],
        state: dict[str, Any],
        resource_values: dict[str, Any],
    ) -> None:
        self._section(environment, SETTINGS)[plugin] = copy.deepcopy(settings)
        if state:
            self._section(environment, STATE).setdefault(plugin, {}).update(copy.deepcopy(state))
        if resource_values:
            self._section(environment, RESOURCE_VALUES).setdefault(plugin, {}).update(
                copy.deepcopy(resource_values)
            )
        logger.debug(
            "state_committed",
            plugin=plugin,
            environment=environment,
            state_keys=sorted(state),
        )

    def reset(self, environment: str, plugin: str | None = None) -> None:
        """Explicitly remove committed state and resource values."""
        for section in (STATE, RESOURCE_VALUES):
            values = self._section(environment, section)
            if plugin is None:
                values.clear()
            else:
                values.pop(plugin, None)

    # === Phase markers ===

    def is_phase_complete(self, environment: str, phase: Phase) -> bool:
        return phase in self._completed_phases.get(environment, set())

    def mark_phase_complete(self, environment: str, phase: Phase) -> None:
        self._completed_phases.setdefault(environment, set()).add(phase)
        self._completed_plugins.get(environment, {}).pop(phase, None)

    def completed_phases(self, environment: str) -> list[Phase]:
        return sorted(self._completed_phases.get(environment, set()))

    def reset_phase(self, environment: str, phase: Phase) -> None:
        """Clear completion of ``phase`` and every later phase."""
        completed = self._completed_phases.get(environment, set())
        for done in list(completed):
            if done >= phase:
                completed.discard(done)
        plugins = self._completed_plugins.get(environment, {})
        for marked in list(plugins):
            if marked >= phase:
                del plugins[marked]

    def is_plugin_complete(self, environment: str, phase: Phase, plugin: str) -> bool:
        return plugin in self._completed_plugins.get(environment, {}).get(phase, set())

    def mark_plugin_complete(self, environment: str, phase: Phase, plugin: str) -> None:
        self._completed_plugins.setdefault(environment, {}).setdefault(phase, set()).add(plugin)

    # === Persistence ===

    def save(self, environment: str) -> None:
        """Write the environment's document through the persistence port."""
        document = {
            section: copy.deepcopy(self._section(environment, section)) for section in SECTIONS
        }
        document["completed_phases"] = [p.name for p in self.completed_phases(environment)]
        document["completed_plugins"] = {
            phase.name: sorted(names)
            for phase, names in self._completed_plugins.get(environment, {}).items()
        }
        self._persistence.set(state_key(environment), document)

    def load(self, environment: str) -> bool:
        """Replace in-memory data for ``environment`` with the persisted document.

        Returns False if nothing was persisted for it.
        """
        document = self._persistence.get(state_key(environment))
        if document is None:
            return False
        self._data[environment] = {
            section: copy.deepcopy(document.get(section) or {}) for section in SECTIONS
        }
        self._completed_phases[environment] = {
            Phase[name] for name in document.get("completed_phases") or []
        }
        self._completed_plugins[environment] = {
            Phase[name]: set(names)
            for name, names in (document.get("completed_plugins") or {}).items()
        }
        logger.debug("state_loaded", environment=environment)
        return True
