"""
Console report for Veil runs.

Prints a header panel, a timeline of engine calls and a summary table.
Handle outputs are shown by kind and index only; revealed values appear
exactly as the audit log recorded them.
"""

from pathlib import Path
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from veil.schema import Run, RunMode, RunStatus, StepRecord, StepStatus
from veil.store import AuditDB

ICON_SUCCESS = "[green]✓[/green]"
ICON_ERROR = "[red]✗[/red]"
ICON_DENIED = "[yellow]⊘[/yellow]"
ICON_PENDING = "[dim]○[/dim]"

STATUS_ICONS = {
    StepStatus.SUCCESS: ICON_SUCCESS,
    StepStatus.DENIED: ICON_DENIED,
    StepStatus.ERROR: ICON_ERROR,
    StepStatus.PENDING: ICON_PENDING,
}


def generate_console_report(
    run_id: str,
    db_path: str | Path = "veil.db",
    console: Console | None = None,
    verbose: bool = False,
) -> bool:
    """
    Print a console report for a run.

    Args:
        run_id: ID of the run to report on
        db_path: Path to the SQLite database
        console: Rich Console instance (creates one if not provided)
        verbose: Show step arguments and untruncated outputs

    Returns:
        False if the run does not exist
    """
    if console is None:
        console = Console()

    with AuditDB(db_path) as db:
        run = db.get_run(run_id)
        if run is None:
            console.print(f"[red]Run not found: {run_id}[/red]")
            return False
        steps = db.get_steps_for_run(run_id)

    _print_header(console, run)
    console.print()
    _print_timeline(console, steps, verbose)
    console.print()
    _print_summary(console, run, steps)
    return True


def _print_header(console: Console, run: Run) -> None:
    if run.status == RunStatus.COMPLETED:
        status_style, icon = "green", ICON_SUCCESS
    elif run.status == RunStatus.FAILED:
        status_style, icon = "red", ICON_ERROR
    elif run.status == RunStatus.RUNNING:
        status_style, icon = "yellow", "[yellow]►[/yellow]"
    else:
        status_style, icon = "dim", ICON_PENDING

    header = Text()
    header.append(" Run ", style="bold")
    header.append(run.run_id, style="bold cyan")
    header.append(" │ ", style="dim")
    header.append(run.status.value.upper(), style=f"bold {status_style}")
    header.append(" ")
    header.append_text(Text.from_markup(icon))
    if run.mode == RunMode.REPLAY:
        header.append(" │ ", style="dim")
        header.append("REPLAY", style="bold magenta")

    console.print(Panel(header, expand=False))
    console.print(f"  [dim]Created:[/dim]   {run.created_at.strftime('%Y-%m-%d %H:%M:%S')}")
    if run.completed_at:
        duration = (run.completed_at - run.created_at).total_seconds()
        console.print(
            f"  [dim]Completed:[/dim] {run.completed_at.strftime('%Y-%m-%d %H:%M:%S')} "
            f"({duration:.2f}s)"
        )


def _print_timeline(console: Console, steps: list[StepRecord], verbose: bool) -> None:
    console.print("[bold]Timeline[/bold]")
    console.print()

    table = Table(show_header=True, header_style="bold", show_lines=verbose, expand=True)
    table.add_column("#", style="dim", width=3, justify="right")
    table.add_column("Status", width=6, justify="center")
    table.add_column("Op", style="cyan", width=26)
    table.add_column("Duration", justify="right", width=10)
    table.add_column("Details", overflow="fold")

    for step in steps:
        duration = (step.ended_at - step.started_at).total_seconds() * 1000
        table.add_row(
            str(step.step_index + 1),
            STATUS_ICONS.get(step.status, ICON_PENDING),
            step.op,
            f"{duration:.1f}ms",
            _format_details(step, verbose),
        )

    console.print(table)


def format_output(output: Any) -> str:
    """Short text for a step output: handles as kind#index, values as-is."""
    if isinstance(output, dict) and "kind" in output and "index" in output:
        return f"{output['kind']}#{output['index']}"
    return str(output)


def _format_details(step: StepRecord, verbose: bool) -> str:
    parts = []

    if verbose and step.args:
        args_str = ", ".join(f"{k}={escape(_truncate(str(v), 30))}" for k, v in step.args.items())
        parts.append(f"[dim]args:[/dim] {args_str}")

    if step.status == StepStatus.SUCCESS:
        if step.output is not None:
            text = format_output(step.output)
            parts.append(escape(_truncate(text, 100 if verbose else 60)))
    elif step.status == StepStatus.DENIED:
        parts.append(f"[yellow]{escape(_truncate(step.error or 'denied', 80))}[/yellow]")
    elif step.error:
        code = f"E{step.error_code} " if step.error_code else ""
        parts.append(f"[red]{code}{escape(_truncate(step.error, 80))}[/red]")

    return "\n".join(parts)


def _truncate(s: str, max_len: int) -> str:
    if len(s) <= max_len:
        return s
    return s[: max_len - 3] + "..."


def _print_summary(console: Console, run: Run, steps: list[StepRecord]) -> None:
    console.print("[bold]Summary[/bold]")
    console.print()

    total_duration_ms = sum(
        (s.ended_at - s.started_at).total_seconds() * 1000 for s in steps
    )
    handles = sum(
        1 for s in steps
        if s.status == StepStatus.SUCCESS and isinstance(s.output, dict) and "digest" in s.output
    )
    reveals = sum(
        1 for s in steps
        if s.status == StepStatus.SUCCESS and s.op in ("reveal", "public_decrypt")
    )

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column("Metric", style="dim")
    stats_table.add_column("Value")

    stats_table.add_row("Total Steps", str(run.total_steps))
    stats_table.add_row(
        "Completed",
        f"[green]{run.completed_steps}[/green]" if run.completed_steps > 0 else "0",
    )
    stats_table.add_row(
        "Denied",
        f"[yellow]{run.denied_steps}[/yellow]" if run.denied_steps > 0 else "0",
    )
    stats_table.add_row(
        "Failed",
        f"[red]{run.failed_steps}[/red]" if run.failed_steps > 0 else "0",
    )
    stats_table.add_row("Handles Created", str(handles))
    stats_table.add_row("Reveals", str(reveals))
    stats_table.add_row("Duration", f"{total_duration_ms:.1f}ms")

    console.print(stats_table)
