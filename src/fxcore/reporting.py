"""
Terminal reporting of phase outcomes.

Renders a ``LifecycleResult``, a failed or cancelled phase, or a phase plan
as rich tables, so a front end can show what succeeded next to what failed
and why.
"""

from __future__ import annotations

import os
from typing import Optional

from rich.console import Console
from rich.table import Table
from rich.theme import Theme

from fxcore.core.errors import FxError, PhaseCancelledError, PhaseError, format_error_message
from fxcore.orchestration.planner import PhasePlan
from fxcore.orchestration.results import LifecycleResult, PluginStatus

FXCORE_THEME = Theme(
    {
        "info": "#88C0D0",
        "success": "#A3BE8C",
        "warning": "#EBCB8B",
        "error": "#BF616A bold",
        "muted": "#D8DEE9",
    }
)

STATUS_STYLES = {
    PluginStatus.SUCCEEDED: "success",
    PluginStatus.ALREADY_COMPLETED: "success",
    PluginStatus.FAILED: "error",
    PluginStatus.BLOCKED: "warning",
    PluginStatus.SKIPPED: "muted",
    PluginStatus.UNSUPPORTED: "muted",
}

console = Console(
    theme=FXCORE_THEME,
    force_terminal=os.environ.get("FORCE_COLOR") is not None,
    no_color=os.environ.get("NO_COLOR") is not None,
)


def outcome_table(result: LifecycleResult) -> Table:
    """One row per plugin: status, detail and committed state keys."""
    table = Table(
        title=f"{result.phase.name.lower()} ({result.environment})",
        show_header=True,
        header_style="bold",
    )
    table.add_column("Plugin", style="cyan")
    table.add_column("Status")
    table.add_column("Detail")
    table.add_column("State", style="muted")
    table.add_column("Duration", justify="right")

    for name, outcome in result.outcomes.items():
        style = STATUS_STYLES.get(outcome.status, "white")
        if outcome.error is not None:
            detail = f"{outcome.error.name}: {outcome.error.message}"
        elif outcome.blocked_by:
            detail = f"blocked by {outcome.blocked_by}"
        else:
            detail = ""
        table.add_row(
            name,
            f"[{style}]{outcome.status.value}[/]",
            detail,
            ", ".join(sorted(result.state_values.get(name, {}))),
            f"{outcome.duration_seconds:.2f}s",
        )
    return table


def print_result(result: LifecycleResult, out: Optional[Console] = None) -> None:
    """Print a completed phase."""
    out = out or console
    out.print(outcome_table(result))
    if result.success:
        out.print(f"[success]✓[/success] {len(result.succeeded)} plugin(s) completed")


def print_error(error: FxError, out: Optional[Console] = None) -> None:
    """Print a phase-level error, with the partial result when it carries one."""
    out = out or console
    if isinstance(error, (PhaseError, PhaseCancelledError)):
        out.print(outcome_table(error.partial))
        committed = ", ".join(error.partial.succeeded) or "none"
        out.print(f"[muted]Committed before stopping: {committed}[/muted]")
    out.print(f"[error]✗ {error.kind.value} error:[/error] {format_error_message(error)}")


def print_plan(plan: PhasePlan, out: Optional[Console] = None) -> None:
    """Print a dry-run plan, one row per tier."""
    out = out or console
    table = Table(
        title=f"plan: {plan.phase.name.lower()} ({plan.environment})",
        show_header=True,
        header_style="bold",
    )
    table.add_column("Tier", justify="right")
    table.add_column("Plugins", style="cyan")
    for index, tier in enumerate(plan.tiers, 1):
        names = [
            f"{name} [muted](done)[/muted]" if name in plan.already_completed else name
            for name in tier
        ]
        table.add_row(str(index), ", ".join(names))
    out.print(table)

    if plan.unsupported:
        out.print(f"[muted]Not applicable: {', '.join(plan.unsupported)}[/muted]")
    if plan.required_tools:
        out.print(f"[info]Tools:[/info] {', '.join(plan.required_tools)}")
    if plan.order_error:
        out.print(f"[error]✗[/error] {plan.order_error}")
    for error in plan.errors:
        out.print(f"[error]✗[/error] {error}")
    for warning in plan.warnings:
        out.print(f"[warning]Warning:[/warning] {warning}")
