"""Local toolchain dependencies required before provisioning."""

from fxcore.deps.manager import (
    DEPENDENCY_ORDER,
    DependencyChecker,
    DependencyInfo,
    DependencyManager,
    DependencySequencer,
    DependencyStatus,
    DependencyType,
    sort_by_sequence,
)

__all__ = [
    "DEPENDENCY_ORDER",
    "DependencyChecker",
    "DependencyInfo",
    "DependencyManager",
    "DependencySequencer",
    "DependencyStatus",
    "DependencyType",
    "sort_by_sequence",
]
