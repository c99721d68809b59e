"""Dry-run phase planning using the plugin registry."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from fxcore.core.errors import CyclicDependencyError
from fxcore.core.lifecycle import Capability, Phase
from fxcore.orchestration.registry import PluginRegistry
from fxcore.state.store import EnvironmentStateStore


@dataclass
class PhasePlan:
    """What ``run_phase`` would do, computed without invoking any plugin."""

    phase: Phase
    solution: str
    environment: str
    tiers: List[List[str]] = field(default_factory=list)
    unsupported: List[str] = field(default_factory=list)
    already_completed: List[str] = field(default_factory=list)
    with_questions: List[str] = field(default_factory=list)
    required_tools: List[str] = field(default_factory=list)
    order_error: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def runnable(self) -> bool:
        return self.order_error is None and not self.errors

    @property
    def plugins(self) -> List[str]:
        """Eligible plugins in execution order."""
        return [name for tier in self.tiers for name in tier]


def phase_order_violation(
    store: EnvironmentStateStore, environment: str, phase: Phase
) -> Optional[str]:
    """Reason ``phase`` may not run now, or None if it may."""
    if store.is_phase_complete(environment, phase):
        return (
            f"Phase '{phase.name.lower()}' is already complete for environment "
            f"'{environment}'; reset it before running it again"
        )
    previous = phase.previous
    if previous is not None and not store.is_phase_complete(environment, previous):
        return (
            f"Phase '{phase.name.lower()}' requires '{previous.name.lower()}' to be "
            f"complete for environment '{environment}'"
        )
    return None


def split_by_capability(
    registry: PluginRegistry, capability: Capability, names: Iterable[str]
) -> Tuple[List[str], List[str]]:
    """Partition ``names`` into plugins declaring ``capability`` and the rest."""
    names = list(names)
    eligible = registry.with_capability(capability, names)
    supported = set(eligible)
    return eligible, [name for name in registry.list() if name in names and name not in supported]


class PhasePlanner:
    """Builds a phase plan by consulting the registry and the state store."""

    def __init__(self, registry: PluginRegistry) -> None:
        self._registry = registry

    def build(
        self,
        phase: Phase,
        solution: str,
        store: EnvironmentStateStore,
        environment: str,
        names: Iterable[str],
    ) -> PhasePlan:
        """Build a plan for ``phase`` over the plugin subset ``names``."""
        plan = PhasePlan(phase=phase, solution=solution, environment=environment)
        plan.order_error = phase_order_violation(store, environment, phase)

        eligible, plan.unsupported = split_by_capability(self._registry, phase.capability, names)
        if not eligible:
            plan.warnings.append(
                f"No plugin implements '{phase.name.lower()}'. The phase will complete "
                "without invoking anything."
            )

        try:
            plan.tiers = self._registry.tiers(eligible)
        except CyclicDependencyError as e:
            plan.errors.append(e.message)
            return plan

        tools: List[str] = []
        for name in plan.plugins:
            plugin = self._registry.require(name)
            if store.is_plugin_complete(environment, phase, name):
                plan.already_completed.append(name)
            if plugin.capabilities & Capability.QUESTIONS:
                plan.with_questions.append(name)
            if phase is Phase.PROVISION:
                tools.extend(str(tool) for tool in plugin.required_tools if str(tool) not in tools)
        plan.required_tools = tools
        return plan
