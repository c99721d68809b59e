"""
Lifecycle orchestrator.

Runs one lifecycle phase for a solution and environment: filters plugins by
capability, orders them by dependency into tiers, collects answers for the
merged question tree, then runs each tier concurrently. Successful plugins
commit their staged writes; a failure blocks the failed plugin's dependents
while independent branches keep going.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import structlog

from fxcore.config import Settings, get_settings
from fxcore.core.errors import (
    DependencyNotInstalledError,
    FxError,
    FxSystemError,
    PhaseCancelledError,
    PhaseError,
    PhaseOrderError,
    TaskRouteError,
    normalize_error,
)
from fxcore.core.lifecycle import HANDLER_NAMES, Capability, Phase
from fxcore.deps.manager import DependencySequencer
from fxcore.orchestration.context import (
    CancellationToken,
    FunctionRouter,
    PluginContext,
    SolutionContext,
)
from fxcore.orchestration.guard import guard_invocation
from fxcore.orchestration.planner import (
    PhasePlan,
    PhasePlanner,
    phase_order_violation,
    split_by_capability,
)
from fxcore.orchestration.registry import PluginRegistry
from fxcore.orchestration.results import LifecycleResult, PluginResult, PluginStatus, ResultCollector
from fxcore.questions.merge import merge_question_trees
from fxcore.questions.models import AnswerMap, QuestionNode
from fxcore.questions.resolve import QuestionFrontEnd, resolve_answers
from fxcore.state.environments import EnvironmentDescriptor
from fxcore.state.store import StagedWrite

EnvironmentLike = Union[EnvironmentDescriptor, str]


def _as_descriptor(environment: EnvironmentLike) -> EnvironmentDescriptor:
    if isinstance(environment, EnvironmentDescriptor):
        return environment
    return EnvironmentDescriptor(name=environment)


def _check_result(plugin: str, value: Any) -> Optional[PluginResult]:
    if value is None or isinstance(value, PluginResult):
        return value
    raise FxSystemError(
        f"Plugin '{plugin}' returned {type(value).__name__}, expected PluginResult or None",
        source=plugin,
    )


class LifecycleOrchestrator:
    """Runs lifecycle phases over the plugins of a registry.

    Args:
        registry: Registered resource plugins
        logger: structlog logger; defaults to ``structlog.get_logger()``
        settings: Engine settings; defaults to ``get_settings()``
        dependency_sequencer: Resolves local tools before provisioning
        question_front_end: Renders the merged question tree and returns answers
    """

    def __init__(
        self,
        registry: PluginRegistry,
        logger: Any = None,
        settings: Optional[Settings] = None,
        dependency_sequencer: Optional[DependencySequencer] = None,
        question_front_end: Optional[QuestionFrontEnd] = None,
    ) -> None:
        self._registry = registry
        self._log = logger or structlog.get_logger()
        self._settings = settings or get_settings()
        self._dependencies = dependency_sequencer
        self._front_end = question_front_end
        self._planner = PhasePlanner(registry)

    @property
    def registry(self) -> PluginRegistry:
        return self._registry

    # === Phase execution ===

    async def run_phase(
        self,
        phase: Phase,
        solution: SolutionContext,
        environment: EnvironmentLike,
        plugins: Optional[Iterable[str]] = None,
        *,
        inputs: Optional[AnswerMap] = None,
        fast_fail: Optional[bool] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> LifecycleResult:
        """Run ``phase`` and return the aggregated result.

        Raises:
            PhaseOrderError: If the previous phase is incomplete or this one is done
            CyclicDependencyError: If the selected plugins depend on each other cyclically
            DuplicateQuestionIdError: If two plugins ask the same question
            QuestionValidationError: If an answer is missing or invalid
            PhaseError: If a plugin failed; carries the partial result
            PhaseCancelledError: If the phase was cancelled; carries the partial result
        """
        env = _as_descriptor(environment)
        log = self._log.bind(phase=phase.name.lower(), solution=solution.name, environment=env.name)
        return await guard_invocation(
            "run_phase",
            lambda: self._run_phase(
                phase,
                solution,
                env,
                plugins,
                dict(inputs or {}),
                self._settings.fast_fail if fast_fail is None else fast_fail,
                cancel_token or CancellationToken(),
                log,
            ),
            logger=log,
            source="orchestrator",
        )

    async def _run_phase(
        self,
        phase: Phase,
        solution: SolutionContext,
        env: EnvironmentDescriptor,
        plugins: Optional[Iterable[str]],
        inputs: AnswerMap,
        fast_fail: bool,
        token: CancellationToken,
        log: Any,
    ) -> LifecycleResult:
        start = time.monotonic()
        store = solution.store

        violation = phase_order_violation(store, env.name, phase)
        if violation:
            raise PhaseOrderError(violation, source="orchestrator", details={"phase": phase.name})

        eligible, unsupported = split_by_capability(
            self._registry, phase.capability, self._selected(solution, plugins)
        )
        collector = ResultCollector(phase, env.name)
        for name in unsupported:
            collector.record_unsupported(name)

        tiers = self._registry.tiers(eligible)
        try:
            answers = await self._collect_answers(phase, solution, env, eligible, inputs, log)
            missing_tools = await self._ensure_dependencies(phase, eligible, log)
        except asyncio.CancelledError:
            token.cancel()
            for name in eligible:
                collector.record_skipped(name)
            log.warning("phase_cancelled", committed=[])
            raise PhaseCancelledError(
                f"Phase '{phase.name.lower()}' was cancelled before any plugin ran",
                partial=collector.finalize(time.monotonic() - start),
            )

        log.info(
            "phase_started",
            plugins=eligible,
            tiers=[list(tier) for tier in tiers],
            unsupported=unsupported,
            fast_fail=fast_fail,
        )

        roots: Dict[str, str] = {}
        halted = False
        cancelled = False
        for tier in tiers:
            cancelled = cancelled or token.cancelled
            runnable: List[str] = []
            for name in tier:
                root = self._failed_root(name, eligible, collector, roots)
                if root is not None:
                    roots[name] = root
                    collector.record_blocked(name, root)
                    log.info("plugin_blocked", plugin=name, blocked_by=root)
                elif halted or cancelled:
                    collector.record_skipped(name)
                elif store.is_plugin_complete(env.name, phase, name):
                    collector.record_already_completed(
                        name,
                        store.get_resource_values(name, env.name),
                        store.get_state(name, env.name),
                    )
                elif name in missing_tools:
                    collector.record_error(name, missing_tools[name])
                    log.warning("plugin_failed", plugin=name, error=missing_tools[name].message)
                else:
                    runnable.append(name)

            if runnable and await self._run_tier(
                phase, solution, env, runnable, answers, token, collector, log
            ):
                cancelled = True
            if fast_fail and collector.errors():
                halted = True
        cancelled = cancelled or token.cancelled

        result = collector.finalize(time.monotonic() - start)
        if result.skipped:
            log.info("plugins_skipped", plugins=result.skipped, cancelled=cancelled)

        if cancelled:
            log.warning("phase_cancelled", committed=result.succeeded)
            raise PhaseCancelledError(
                f"Phase '{phase.name.lower()}' was cancelled", partial=result
            )

        errors = collector.errors()
        if errors:
            ordered = [name for tier in tiers for name in tier]
            failures = {name: errors[name] for name in ordered if name in errors}
            first = next(iter(failures))
            log.error(
                "phase_failed",
                failed=list(failures),
                blocked=result.blocked,
                skipped=result.skipped,
            )
            raise PhaseError(
                failures[first],
                first,
                result,
                failures=failures,
                blocked=result.blocked,
                skipped=result.skipped,
            )

        store.mark_phase_complete(env.name, phase)
        log.info("phase_completed", succeeded=result.succeeded, duration=result.duration_seconds)
        return result

    async def _run_tier(
        self,
        phase: Phase,
        solution: SolutionContext,
        env: EnvironmentDescriptor,
        names: List[str],
        answers: AnswerMap,
        token: CancellationToken,
        collector: ResultCollector,
        log: Any,
    ) -> bool:
        """Run one tier to completion. Returns True if the phase was cancelled meanwhile."""
        store = solution.store
        contexts = [self._context(name, phase, solution, env, answers, token, log) for name in names]
        log.debug("tier_started", plugins=names)

        started = time.monotonic()
        gathered = asyncio.gather(
            *(self._invoke(phase.capability, ctx) for ctx in contexts),
            return_exceptions=True,
        )
        cancelled = False
        try:
            outcomes = await asyncio.shield(gathered)
        except asyncio.CancelledError:
            # Running plugins are not aborted: let the tier drain
            cancelled = True
            token.cancel()
            log.warning("phase_cancel_requested", running=names)
            outcomes = await gathered
        duration = time.monotonic() - started
        cancelled = cancelled or token.cancelled

        for ctx, outcome in zip(contexts, outcomes):
            name = ctx.plugin
            # After a cancel, a failure is an interrupted plugin, not a failed one
            if isinstance(outcome, asyncio.CancelledError) or (
                cancelled and isinstance(outcome, BaseException)
            ):
                ctx.staged.discard()
                collector.record_skipped(name)
            elif isinstance(outcome, BaseException):
                ctx.staged.discard()
                error = normalize_error(outcome, source=name)
                collector.record_error(name, error, duration)
                log.warning("plugin_failed", plugin=name, error=error.message, kind=error.kind.value)
            else:
                committed = self._commit(ctx.staged, outcome)
                store.mark_plugin_complete(env.name, phase, name)
                collector.record(name, committed, duration)
                log.info("plugin_succeeded", plugin=name, state_keys=sorted(committed.state_values))
        return cancelled

    async def _invoke(self, capability: Capability, ctx: PluginContext) -> Optional[PluginResult]:
        handler = self._registry.require(ctx.plugin).handler(capability)

        async def call() -> Optional[PluginResult]:
            return _check_result(ctx.plugin, await handler(ctx, ctx.answers))

        return await guard_invocation(
            HANDLER_NAMES[capability],
            call,
            logger=ctx.logger,
            source=ctx.plugin,
        )

    @staticmethod
    def _commit(staged: StagedWrite, result: Optional[PluginResult]) -> PluginResult:
        committed = PluginResult(
            resource_values={**staged.resource_values, **(result.resource_values if result else {})},
            state_values={**staged.state, **(result.state_values if result else {})},
        )
        staged.commit(committed)
        return committed

    def _failed_root(
        self,
        name: str,
        eligible: List[str],
        collector: ResultCollector,
        roots: Mapping[str, str],
    ) -> Optional[str]:
        """The failed plugin that blocks ``name``, if any of its dependencies failed."""
        for dep in self._registry.dependencies_within(name, eligible):
            status = collector.status_of(dep)
            if status == PluginStatus.FAILED:
                return dep
            if status == PluginStatus.BLOCKED:
                return roots[dep]
        return None

    def _context(
        self,
        name: str,
        phase: Optional[Phase],
        solution: SolutionContext,
        env: EnvironmentDescriptor,
        answers: AnswerMap,
        token: Optional[CancellationToken],
        log: Any,
    ) -> PluginContext:
        store = solution.store
        with_credentials = phase is None or phase.uses_credentials
        return PluginContext(
            plugin=name,
            phase=phase,
            solution=solution,
            environment=env,
            staged=store.stage(name, env.name),
            common_config=store.snapshot_settings(env.name, exclude=name),
            common_state=store.snapshot_state(env.name, exclude=name),
            answers=dict(answers),
            token_provider=env.token_provider if with_credentials else None,
            cancel_token=token,
            logger=log.bind(plugin=name),
        )

    def _selected(self, solution: SolutionContext, plugins: Optional[Iterable[str]]) -> List[str]:
        if plugins is not None:
            return list(plugins)
        if solution.resources is not None:
            return list(solution.resources)
        return self._registry.list()

    # === Questions ===

    async def get_questions(
        self,
        phase: Phase,
        solution: SolutionContext,
        environment: EnvironmentLike,
        plugins: Optional[Iterable[str]] = None,
    ) -> Optional[QuestionNode]:
        """Merged question tree of the plugins eligible for ``phase``.

        Raises:
            DuplicateQuestionIdError: If two plugins ask the same question
        """
        env = _as_descriptor(environment)
        log = self._log.bind(phase=phase.name.lower(), solution=solution.name, environment=env.name)
        eligible, _ = split_by_capability(
            self._registry, phase.capability, self._selected(solution, plugins)
        )
        return await guard_invocation(
            "get_questions",
            lambda: self._merged_questions(phase, solution, env, eligible, {}, log),
            logger=log,
            source="orchestrator",
        )

    async def _merged_questions(
        self,
        phase: Phase,
        solution: SolutionContext,
        env: EnvironmentDescriptor,
        eligible: List[str],
        inputs: AnswerMap,
        log: Any,
    ) -> Optional[QuestionNode]:
        asking = self._registry.with_capability(Capability.QUESTIONS, eligible)
        subtrees: Dict[str, Optional[QuestionNode]] = {}
        for name in asking:
            ctx = self._context(name, phase, solution, env, inputs, None, log)
            handler = self._registry.require(name).get_questions
            try:
                subtrees[name] = await guard_invocation(
                    "get_questions",
                    lambda: handler(ctx, inputs),
                    logger=ctx.logger,
                    source=name,
                )
            finally:
                ctx.staged.discard()
        return merge_question_trees(subtrees)

    async def _collect_answers(
        self,
        phase: Phase,
        solution: SolutionContext,
        env: EnvironmentDescriptor,
        eligible: List[str],
        inputs: AnswerMap,
        log: Any,
    ) -> AnswerMap:
        tree = await self._merged_questions(phase, solution, env, eligible, inputs, log)
        if tree is None:
            return inputs
        if self._front_end is not None:
            answers = self._front_end(tree, dict(inputs))
            if inspect.isawaitable(answers):
                answers = await answers
            inputs = {**inputs, **(answers or {})}
        resolved = await resolve_answers(tree, inputs)
        log.debug("answers_resolved", paths=sorted(resolved))
        return {**inputs, **resolved}

    # === Dependencies ===

    async def _ensure_dependencies(
        self, phase: Phase, eligible: List[str], log: Any
    ) -> Dict[str, FxError]:
        """Errors for plugins whose required tools are not installed."""
        if phase is not Phase.PROVISION or self._dependencies is None:
            return {}
        required: List[str] = []
        for name in eligible:
            for tool in self._registry.require(name).required_tools:
                if str(tool) not in required:
                    required.append(str(tool))
        if not required:
            return {}

        sequencer = self._dependencies
        statuses = await guard_invocation(
            "ensure_dependencies",
            lambda: sequencer.ensure_dependencies(
                required, fast_fail=self._settings.dependency_fast_fail
            ),
            logger=log,
            source="deps",
        )
        missing = {str(status.type) for status in statuses if not status.is_installed}

        errors: Dict[str, FxError] = {}
        for name in eligible:
            lacking = [
                str(tool)
                for tool in self._registry.require(name).required_tools
                if str(tool) in missing
            ]
            if lacking:
                errors[name] = DependencyNotInstalledError(
                    f"Required tools are not installed: {', '.join(lacking)}",
                    source=name,
                    details={"tools": lacking},
                )
        return errors

    # === Other operations ===

    def plan_phase(
        self,
        phase: Phase,
        solution: SolutionContext,
        environment: EnvironmentLike,
        plugins: Optional[Iterable[str]] = None,
    ) -> PhasePlan:
        """Describe what ``run_phase`` would do without invoking any plugin."""
        env = _as_descriptor(environment)
        return self._planner.build(
            phase, solution.name, solution.store, env.name, self._selected(solution, plugins)
        )

    def reset_phase(
        self, solution: SolutionContext, environment: EnvironmentLike, phase: Phase
    ) -> None:
        """Allow ``phase`` and every later phase to run again."""
        env = _as_descriptor(environment)
        solution.store.reset_phase(env.name, phase)
        self._log.info(
            "phase_reset", phase=phase.name.lower(), solution=solution.name, environment=env.name
        )

    async def execute_user_task(
        self,
        solution: SolutionContext,
        environment: EnvironmentLike,
        router: FunctionRouter,
        inputs: Optional[AnswerMap] = None,
    ) -> Any:
        """Route a custom task to the plugin named by ``router.namespace``.

        A returned ``PluginResult`` is committed like a phase result; any other
        return value is handed back as is.

        Raises:
            TaskRouteError: If no plugin handles the namespace
        """
        env = _as_descriptor(environment)
        log = self._log.bind(
            solution=solution.name, environment=env.name, task=f"{router.namespace}/{router.method}"
        )
        return await guard_invocation(
            "execute_user_task",
            lambda: self._execute_user_task(solution, env, router, dict(inputs or {}), log),
            logger=log,
            source="orchestrator",
        )

    async def _execute_user_task(
        self,
        solution: SolutionContext,
        env: EnvironmentDescriptor,
        router: FunctionRouter,
        inputs: AnswerMap,
        log: Any,
    ) -> Any:
        plugin = self._registry.get(router.namespace)
        if plugin is None:
            raise TaskRouteError(
                f"No plugin handles namespace '{router.namespace}'", source="orchestrator"
            )
        handler = plugin.handler(Capability.CUSTOM_TASK)
        if handler is None:
            raise TaskRouteError(
                f"Plugin '{plugin.name}' does not support custom tasks", source="orchestrator"
            )

        ctx = self._context(plugin.name, None, solution, env, inputs, None, log)
        try:
            value = await guard_invocation(
                router.method,
                lambda: handler(ctx, router, inputs),
                logger=ctx.logger,
                source=plugin.name,
            )
        except BaseException:
            ctx.staged.discard()
            raise
        self._commit(ctx.staged, value if isinstance(value, PluginResult) else None)
        return value
