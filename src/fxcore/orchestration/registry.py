"""Plugin capability model and registry for orchestration."""

from __future__ import annotations

import heapq
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Iterable, List, Optional

from fxcore.core.errors import (
    CyclicDependencyError,
    DuplicatePluginError,
    InvalidPluginError,
    PluginNotFoundError,
)
from fxcore.core.lifecycle import HANDLER_NAMES, Capability
from fxcore.deps.manager import DependencyType

if TYPE_CHECKING:
    from fxcore.orchestration.context import PluginContext

PhaseHandler = Callable[["PluginContext", Dict[str, Any]], Awaitable[Any]]


@dataclass(frozen=True)
class PluginDescriptor:
    """Identity, capabilities and ordering constraints of a registered plugin."""

    name: str
    display_name: str
    capabilities: Capability
    depends_on: tuple[str, ...] = ()
    required_tools: tuple[DependencyType, ...] = ()

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities


def _parse_tools(plugin: str, tools: Iterable[Any]) -> tuple[DependencyType, ...]:
    parsed = []
    for tool in tools:
        try:
            parsed.append(DependencyType(tool))
        except ValueError:
            valid = ", ".join(t.value for t in DependencyType)
            raise InvalidPluginError(
                f"Plugin '{plugin}' requires unknown tool '{tool}'. Valid tools: {valid}",
                source=plugin,
                details={"tool": str(tool)},
            ) from None
    return tuple(parsed)


@dataclass
class ResourcePlugin:
    """A resource plugin as a table of optional capability callables.

    Each capability is either ``None`` (not implemented) or an async callable.
    Phase handlers are called as ``handler(ctx, inputs)`` and return a
    ``PluginResult`` or ``None``; failures are raised.
    """

    name: str
    display_name: str = ""
    depends_on: tuple[str, ...] = ()
    required_tools: tuple[DependencyType, ...] = ()
    scaffold: Optional[PhaseHandler] = None
    provision: Optional[PhaseHandler] = None
    configure: Optional[PhaseHandler] = None
    build: Optional[PhaseHandler] = None
    deploy: Optional[PhaseHandler] = None
    publish: Optional[PhaseHandler] = None
    get_questions: Optional[Callable[..., Awaitable[Any]]] = None
    execute_user_task: Optional[Callable[..., Awaitable[Any]]] = None
    descriptor: PluginDescriptor = field(init=False)

    def __post_init__(self) -> None:
        self.depends_on = tuple(self.depends_on)
        self.required_tools = _parse_tools(self.name, self.required_tools)
        capabilities = Capability.NONE
        for capability, attr in HANDLER_NAMES.items():
            if getattr(self, attr) is not None:
                capabilities |= capability
        self.descriptor = PluginDescriptor(
            name=self.name,
            display_name=self.display_name or self.name,
            capabilities=capabilities,
            depends_on=self.depends_on,
            required_tools=self.required_tools,
        )

    @property
    def capabilities(self) -> Capability:
        return self.descriptor.capabilities

    def handler(self, capability: Capability) -> Optional[Callable[..., Awaitable[Any]]]:
        """Return the callable implementing ``capability``, or None."""
        return getattr(self, HANDLER_NAMES[capability])


class PluginRegistry:
    """In-memory registry of resource plugins, ordered by declaration."""

    def __init__(self) -> None:
        self._plugins: Dict[str, ResourcePlugin] = {}

    def register(self, plugin: ResourcePlugin) -> None:
        """Register a plugin by its name."""
        if plugin.name in self._plugins:
            raise DuplicatePluginError(
                f"Plugin '{plugin.name}' is already registered", source="registry"
            )
        self._plugins[plugin.name] = plugin

    def get(self, name: str) -> Optional[ResourcePlugin]:
        """Get a plugin by name."""
        return self._plugins.get(name)

    def require(self, name: str) -> ResourcePlugin:
        """Get a plugin by name, raising if it is unknown."""
        plugin = self._plugins.get(name)
        if plugin is None:
            raise PluginNotFoundError(f"Plugin not found: {name}", source="registry")
        return plugin

    def list(self) -> List[str]:
        """List registered plugin names in declaration order."""
        return list(self._plugins.keys())

    def descriptors(self) -> List[PluginDescriptor]:
        return [plugin.descriptor for plugin in self._plugins.values()]

    def with_capability(
        self, capability: Capability, names: Optional[Iterable[str]] = None
    ) -> List[str]:
        """Names of plugins declaring ``capability``, in declaration order.

        When ``names`` is given only plugins in that subset are considered.
        """
        subset = self._subset(names)
        return [name for name in subset if self._plugins[name].descriptor.supports(capability)]

    def topological_order(self, names: Iterable[str]) -> List[str]:
        """Order a plugin subset so every plugin follows its in-subset dependencies.

        Dependencies outside the subset are ignored. Plugins with no relation
        keep declaration order.

        Raises:
            CyclicDependencyError: If the restricted graph has a cycle
        """
        subset = self._subset(names)
        position = {name: index for index, name in enumerate(self._plugins)}
        edges = self._edges(subset)

        indegree = {name: len(edges[name]) for name in subset}
        dependents: Dict[str, List[str]] = {name: [] for name in subset}
        for name in subset:
            for dep in edges[name]:
                dependents[dep].append(name)

        ready = [(position[name], name) for name in subset if indegree[name] == 0]
        heapq.heapify(ready)
        ordered: List[str] = []
        while ready:
            _, current = heapq.heappop(ready)
            ordered.append(current)
            for nxt in dependents[current]:
                indegree[nxt] -= 1
                if indegree[nxt] == 0:
                    heapq.heappush(ready, (position[nxt], nxt))

        if len(ordered) != len(subset):
            remaining = [name for name in subset if name not in ordered]
            raise CyclicDependencyError(self._find_cycle(remaining, edges))
        return ordered

    def tiers(self, names: Iterable[str]) -> List[List[str]]:
        """Partition a subset into tiers that may run concurrently.

        A plugin lands one tier after the deepest of its in-subset dependencies.
        """
        ordered = self.topological_order(names)
        edges = self._edges(ordered)
        level: Dict[str, int] = {}
        for name in ordered:
            level[name] = max((level[dep] + 1 for dep in edges[name]), default=0)

        tiers: List[List[str]] = [[] for _ in range(max(level.values(), default=-1) + 1)]
        for name in ordered:
            tiers[level[name]].append(name)
        return tiers

    def dependencies_within(self, name: str, names: Iterable[str]) -> List[str]:
        """Declared dependencies of ``name`` restricted to ``names``."""
        subset = set(names)
        return [dep for dep in self.require(name).depends_on if dep in subset]

    def _subset(self, names: Optional[Iterable[str]]) -> List[str]:
        if names is None:
            return self.list()
        wanted = set()
        for name in names:
            self.require(name)
            wanted.add(name)
        return [name for name in self._plugins if name in wanted]

    def _edges(self, subset: List[str]) -> Dict[str, List[str]]:
        members = set(subset)
        edges: Dict[str, List[str]] = {}
        for name in subset:
            deps = []
            for dep in self._plugins[name].depends_on:
                if dep in members and dep not in deps:
                    deps.append(dep)
            edges[name] = deps
        return edges

    @staticmethod
    def _find_cycle(remaining: List[str], edges: Dict[str, List[str]]) -> List[str]:
        """Return one dependency cycle among ``remaining`` as a closed path."""
        members = set(remaining)
        visited: set[str] = set()

        def dfs(node: str, path: List[str]) -> Optional[List[str]]:
            if node in path:
                return path[path.index(node) :] + [node]
            if node in visited:
                return None
            visited.add(node)
            for dep in edges[node]:
                if dep in members:
                    cycle = dfs(dep, path + [node])
                    if cycle:
                        return cycle
            return None

        for start in remaining:
            cycle = dfs(start, [])
            if cycle:
                return cycle
        return remaining
