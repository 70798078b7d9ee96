"""
CLI entry point for Veil.

Commands:
    run         Execute a scenario and record it in the audit database
    replay      Re-execute a recorded run and check it is reproduced
    report      Generate a report for a recorded run
    list-runs   List all recorded runs
    ops         Show the operation table and the kinds each operation accepts

Architecture Note:
    The CLI is thin: it parses arguments and delegates to ScenarioRunner,
    ReplayEngine and the report module, all of which are usable without it.
"""

import json
import traceback
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from veil import __version__
from veil.errors import VeilError
from veil.kinds import ValueKind
from veil.ops import default_table
from veil.replay import ReplayEngine, ReplayResult
from veil.report import generate_console_report, generate_json_report
from veil.report.console import format_output
from veil.runner import RunResult, ScenarioRunner
from veil.schema import EngineConfig, RunStatus, StepStatus, load_config, load_scenario
from veil.store import AuditDB

app = typer.Typer(
    name="veil",
    help="Run confidential handle computations on a deterministic simulation backend.",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()

DEFAULT_DB = Path("veil.db")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]veil[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    Veil - Confidential computation over opaque handles.

    Run scenarios against the simulation backend with a full audit trail
    and deterministic replay.
    """


@app.command()
def run(
    scenario_path: Annotated[
        Path,
        typer.Argument(
            help="Path to the scenario YAML file.",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ],
    config_path: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Path to the engine config YAML file. Defaults to the simulation config.",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ] = None,
    output: Annotated[
        Optional[Path],
        typer.Option(
            "--out",
            "-o",
            help="Path to output SQLite database. Defaults to veil.db in current directory.",
            resolve_path=True,
        ),
    ] = None,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Enable debug mode with full error tracebacks."),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output results in JSON format."),
    ] = False,
    no_fail_fast: Annotated[
        bool,
        typer.Option("--no-fail-fast", help="Continue after denied or failed steps."),
    ] = False,
) -> None:
    """
    Execute a scenario.

    Every step is recorded with its status, error code and output hash.
    Handle outputs are stored by kind and index, never by value.

    Example:
        $ veil run transfer.yaml --config simulation.yaml --out runs.db
    """
    db_path = output or DEFAULT_DB

    try:
        scenario = load_scenario(scenario_path)
        config = load_config(config_path) if config_path else EngineConfig()
    except Exception as e:
        _fail("load_error", f"Error loading input: {e}", json_output, debug)

    try:
        with ScenarioRunner(db_path=db_path) as runner:
            result = runner.run(scenario, config, fail_fast=not no_fail_fast)
    except VeilError as e:
        _fail("execution_error", str(e), json_output, debug)

    if json_output:
        _output_json_result(result)
    else:
        _display_run_result(result)

    raise typer.Exit(code=0 if result.success else 1)


def _display_run_result(result: RunResult) -> None:
    if result.status == RunStatus.COMPLETED:
        status_style, status_icon = "green", "[green]✓[/green]"
    else:
        status_style, status_icon = "red", "[red]✗[/red]"

    console.print(
        f"{status_icon} Run [bold]{result.run_id}[/bold]: "
        f"[{status_style}]{result.status.value}[/{status_style}]"
    )
    console.print()

    table = Table(show_header=True, header_style="bold")
    table.add_column("#", style="dim", width=3)
    table.add_column("Op", style="cyan")
    table.add_column("Status", width=10)
    table.add_column("Details")

    for step in result.steps:
        if step.status == StepStatus.SUCCESS:
            status = "[green]success[/green]"
            details = format_output(step.output) if step.output is not None else ""
        elif step.status == StepStatus.DENIED:
            status = "[yellow]denied[/yellow]"
            details = step.error or ""
        else:
            status = "[red]error[/red]"
            details = step.error or ""

        if len(details) > 60:
            details = details[:57] + "..."
        table.add_row(str(step.step_index + 1), step.op, status, details)

    console.print(table)
    console.print()
    console.print(
        f"[dim]Total: {result.total_steps} | Completed: {result.completed_steps} | "
        f"Denied: {result.denied_steps} | Failed: {result.failed_steps}[/dim]"
    )
    console.print(f"[dim]Duration: {result.duration_ms:.1f}ms[/dim]")


def _run_result_dict(result: RunResult) -> dict:
    return {
        "run_id": result.run_id,
        "status": result.status.value,
        "success": result.success,
        "total_steps": result.total_steps,
        "completed_steps": result.completed_steps,
        "denied_steps": result.denied_steps,
        "failed_steps": result.failed_steps,
        "duration_ms": result.duration_ms,
        "steps": [
            {
                "step_index": step.step_index,
                "op": step.op,
                "args": step.args,
                "status": step.status.value,
                "output": step.output,
                "error": step.error,
                "error_code": step.error_code,
                "output_hash": step.output_hash,
                "duration_ms": step.duration_ms,
            }
            for step in result.steps
        ],
    }


def _output_json_result(result: RunResult) -> None:
    print(json.dumps(_run_result_dict(result), indent=2, default=str))


def _fail(error_type: str, message: str, json_output: bool, debug: bool) -> None:
    """Report an error in the requested format and exit with code 1."""
    if json_output:
        output = {"error": True, "error_type": error_type, "message": message}
        if debug:
            output["traceback"] = traceback.format_exc()
        print(json.dumps(output, indent=2))
    else:
        console.print(f"[red]{escape(message)}[/red]")
        if debug:
            console.print(f"[dim]{traceback.format_exc()}[/dim]")
    raise typer.Exit(code=1)


@app.command()
def replay(
    run_id: Annotated[str, typer.Argument(help="The run ID to replay.")],
    db: Annotated[
        Optional[Path],
        typer.Option("--db", help="Path to the SQLite database containing the run.", resolve_path=True),
    ] = None,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Enable debug mode with full error tracebacks."),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output results in JSON format."),
    ] = False,
) -> None:
    """
    Re-execute a recorded run and compare every step's output hash.

    Example:
        $ veil replay abc123 --db runs.db
    """
    db_path = db or DEFAULT_DB
    if not db_path.exists():
        _fail("database_not_found", f"Database not found: {db_path}", json_output, debug)

    try:
        with ReplayEngine(db_path=db_path) as engine:
            result = engine.replay(run_id)
    except VeilError as e:
        _fail("replay_error", str(e), json_output, debug)

    if json_output:
        output = {
            "original_run_id": result.original_run_id,
            "replay_run_id": result.replay_run_id,
            "success": result.success,
            "mismatches": result.mismatches,
            "replay": _run_result_dict(result.replay),
        }
        print(json.dumps(output, indent=2, default=str))
    else:
        _display_replay_result(result)

    raise typer.Exit(code=0 if result.success else 1)


def _display_replay_result(result: ReplayResult) -> None:
    if result.success:
        console.print(
            f"[green]✓[/green] Replay [bold]{result.replay_run_id}[/bold] "
            f"reproduced run [bold]{result.original_run_id}[/bold]"
        )
    else:
        console.print(
            f"[red]✗[/red] Replay [bold]{result.replay_run_id}[/bold] "
            f"diverged from run [bold]{result.original_run_id}[/bold]"
        )
        for mismatch in result.mismatches:
            console.print(f"  [red]• {mismatch}[/red]")
    console.print(f"[dim]Steps replayed: {len(result.replay.steps)}[/dim]")


@app.command()
def report(
    run_id: Annotated[str, typer.Argument(help="The run ID to generate a report for.")],
    db: Annotated[
        Optional[Path],
        typer.Option("--db", help="Path to the SQLite database containing the run.", resolve_path=True),
    ] = None,
    format: Annotated[
        str,
        typer.Option("--format", "-f", help="Output format: console or json."),
    ] = "console",
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Show step arguments and full outputs."),
    ] = False,
) -> None:
    """
    Generate a report for a recorded run.

    Example:
        $ veil report abc123 --format json
    """
    db_path = db or DEFAULT_DB
    if not db_path.exists():
        console.print(f"[red]Database not found: {db_path}[/red]")
        raise typer.Exit(code=1)

    if format == "json":
        try:
            print(generate_json_report(run_id, db_path))
        except ValueError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(code=1)
    elif format == "console":
        if not generate_console_report(run_id, db_path, console=console, verbose=verbose):
            raise typer.Exit(code=1)
    else:
        console.print(f"[red]Unknown format: {format}[/red]")
        raise typer.Exit(code=1)


@app.command("list-runs")
def list_runs(
    db: Annotated[
        Optional[Path],
        typer.Option("--db", help="Path to the SQLite database.", resolve_path=True),
    ] = None,
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", help="Maximum number of runs to show."),
    ] = 20,
) -> None:
    """
    List recorded runs, newest first.

    Example:
        $ veil list-runs --db runs.db
    """
    db_path = db or DEFAULT_DB
    if not db_path.exists():
        console.print(f"[yellow]No database found at {db_path}[/yellow]")
        raise typer.Exit(code=0)

    with AuditDB(db_path) as audit:
        runs = audit.list_runs(limit=limit)

    if not runs:
        console.print("[dim]No runs found.[/dim]")
        raise typer.Exit(code=0)

    table = Table(show_header=True, header_style="bold")
    table.add_column("Run ID", style="cyan", no_wrap=True)
    table.add_column("Created")
    table.add_column("Status", width=10)
    table.add_column("Mode", width=8)
    table.add_column("Steps", justify="right")
    table.add_column("Completed", justify="right")
    table.add_column("Denied", justify="right")
    table.add_column("Failed", justify="right")

    for r in runs:
        if r.status == RunStatus.COMPLETED:
            status_display = "[green]completed[/green]"
        elif r.status == RunStatus.FAILED:
            status_display = "[red]failed[/red]"
        else:
            status_display = f"[yellow]{r.status.value}[/yellow]"

        table.add_row(
            r.run_id,
            r.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            status_display,
            r.mode.value,
            str(r.total_steps),
            str(r.completed_steps),
            str(r.denied_steps),
            str(r.failed_steps),
        )

    console.print(table)


@app.command()
def ops() -> None:
    """
    Show every operation and the value kinds it accepts.

    Example:
        $ veil ops
    """
    kinds = list(ValueKind)
    table = Table(show_header=True, header_style="bold")
    table.add_column("Operation", style="cyan", no_wrap=True)
    table.add_column("Family")
    table.add_column("Arity", justify="right")
    for kind in kinds:
        table.add_column(kind.value, justify="center")

    for operation in sorted(default_table, key=lambda o: (o.family.value, o.name)):
        marks = ["[green]✓[/green]" if operation.accepts(k) else "[dim]·[/dim]" for k in kinds]
        table.add_row(operation.name, operation.family.value, str(operation.arity), *marks)

    console.print(table)
    console.print(
        "[dim]Also available: encode, input, verify, cast, random, random_bounded, "
        "grant_self, grant_to, grant_transient, authorize, make_publicly_decryptable, "
        "check_self, check_principal, reveal, public_decrypt, end_transaction[/dim]"
    )


if __name__ == "__main__":
    app()
