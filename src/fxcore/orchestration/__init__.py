"""Orchestration package: plugin registry and phased lifecycle execution."""

from fxcore.orchestration.context import (
    CancellationToken,
    FunctionRouter,
    PluginContext,
    SolutionContext,
)
from fxcore.orchestration.engine import LifecycleOrchestrator
from fxcore.orchestration.guard import guard_invocation
from fxcore.orchestration.planner import PhasePlan, PhasePlanner
from fxcore.orchestration.registry import PluginDescriptor, PluginRegistry, ResourcePlugin
from fxcore.orchestration.results import (
    LifecycleResult,
    PluginOutcome,
    PluginResult,
    PluginStatus,
    ResultCollector,
)

__all__ = [
    "CancellationToken",
    "FunctionRouter",
    "LifecycleOrchestrator",
    "LifecycleResult",
    "PhasePlan",
    "PhasePlanner",
    "PluginContext",
    "PluginDescriptor",
    "PluginOutcome",
    "PluginRegistry",
    "PluginResult",
    "PluginStatus",
    "ResourcePlugin",
    "ResultCollector",
    "SolutionContext",
    "guard_invocation",
]
