"""
Centralized lifecycle definitions for fxcore.

This module is the single source of truth for lifecycle phases and the plugin
capabilities they require.

Phases run in a fixed order per solution and environment:
- create: scaffold source code and templates
- provision: create cloud resources
- configure: wire provisioned resources together
- build: build artifacts
- deploy: push artifacts to provisioned resources
- publish: publish the application
"""

from __future__ import annotations

from enum import Flag, IntEnum, auto


class Capability(Flag):
    """Lifecycle capabilities a plugin may implement."""

    NONE = 0
    SCAFFOLD = auto()
    PROVISION = auto()
    CONFIGURE = auto()
    BUILD = auto()
    DEPLOY = auto()
    PUBLISH = auto()
    QUESTIONS = auto()
    CUSTOM_TASK = auto()


class Phase(IntEnum):
    """Solution lifecycle phases in their fixed execution order."""

    CREATE = 1
    PROVISION = 2
    CONFIGURE = 3
    BUILD = 4
    DEPLOY = 5
    PUBLISH = 6

    @property
    def capability(self) -> Capability:
        return PHASE_CAPABILITIES[self]

    @property
    def previous(self) -> Phase | None:
        if self is Phase.CREATE:
            return None
        return Phase(self.value - 1)

    @property
    def uses_credentials(self) -> bool:
        """Whether plugins receive the token provider in this phase."""
        return self in (Phase.PROVISION, Phase.DEPLOY, Phase.PUBLISH)


PHASE_CAPABILITIES: dict[Phase, Capability] = {
    Phase.CREATE: Capability.SCAFFOLD,
    Phase.PROVISION: Capability.PROVISION,
    Phase.CONFIGURE: Capability.CONFIGURE,
    Phase.BUILD: Capability.BUILD,
    Phase.DEPLOY: Capability.DEPLOY,
    Phase.PUBLISH: Capability.PUBLISH,
}

# Attribute of ResourcePlugin implementing each capability
HANDLER_NAMES: dict[Capability, str] = {
    Capability.SCAFFOLD: "scaffold",
    Capability.PROVISION: "provision",
    Capability.CONFIGURE: "configure",
    Capability.BUILD: "build",
    Capability.DEPLOY: "deploy",
    Capability.PUBLISH: "publish",
    Capability.QUESTIONS: "get_questions",
    Capability.CUSTOM_TASK: "execute_user_task",
}


def parse_phase(name: str) -> Phase:
    """Parse a phase name (case-insensitive).

    Raises:
        ValueError: If the name is not a phase
    """
    try:
        return Phase[name.strip().upper()]
    except KeyError:
        valid = ", ".join(p.name.lower() for p in Phase)
        raise ValueError(f"Invalid phase: {name}. Valid phases: {valid}") from None
