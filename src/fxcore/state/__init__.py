"""State package: per-environment settings, state and persistence."""

from fxcore.state.environments import EnvironmentDescriptor, EnvironmentProfiles
from fxcore.state.persistence import InMemoryPersistence, Persistence, YamlPersistence
from fxcore.state.store import EnvironmentStateStore, StagedWrite

__all__ = [
    "EnvironmentDescriptor",
    "EnvironmentProfiles",
    "EnvironmentStateStore",
    "InMemoryPersistence",
    "Persistence",
    "StagedWrite",
    "YamlPersistence",
]
