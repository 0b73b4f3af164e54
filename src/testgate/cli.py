"""Command-line driver for local drills against a filesystem state directory."""

from __future__ import annotations

import logging
from collections.abc import Callable
from functools import wraps
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from testgate.application import OrchestrationEngine, load_config
from testgate.domain.exceptions import GateError
from testgate.domain.models import RERUN_ALL, ReconcileResult, RunHandle, TestStatus
from testgate.infrastructure import (
    FilesystemExecutionEngine,
    FilesystemScenarioCatalog,
    FilesystemVersionSetStore,
    LoggingStatusPublisher,
)

console = Console()

STATUS_STYLES = {
    TestStatus.PENDING: "dim",
    TestStatus.IN_PROGRESS: "cyan",
    TestStatus.PASSED: "green",
    TestStatus.FAILED: "red",
    TestStatus.INVALID: "magenta",
    TestStatus.DELETED: "yellow",
}


def _setup_logging(verbose: bool) -> None:
    """Route testgate logs to a rich console handler."""
    logger = logging.getLogger("testgate")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    handler = RichHandler(console=console, rich_tracebacks=True, show_path=False)
    handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def handle_errors[F: Callable[..., Any]](func: F) -> F:
    """Turn orchestration errors into a red message and exit code 1."""

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except GateError as e:
            console.print(f"[bold red]{type(e).__name__}:[/bold red] {e}")
            raise SystemExit(1) from e

    return wrapper  # type: ignore[return-value]


class Runtime:
    """Adapters and engine wired over one state directory."""

    def __init__(self, state_dir: Path, config_path: str | None):
        config = load_config(config_path)
        self.runs = FilesystemExecutionEngine(state_dir)
        self.engine = OrchestrationEngine(
            store=FilesystemVersionSetStore(state_dir),
            catalog=FilesystemScenarioCatalog(state_dir),
            execution_engine=self.runs,
            publisher=LoggingStatusPublisher(),
            config=config,
        )


def _print_result(result: ReconcileResult) -> None:
    for scenario in result.reset:
        console.print(f"[yellow]reset[/yellow] {scenario}")
    for scenario in result.initialized:
        console.print(f"[dim]tracking[/dim] {scenario}")
    for scenario, run_name in result.launched:
        console.print(f"[cyan]launched[/cyan] {scenario} -> {run_name}")
    for scenario in result.invalid:
        console.print(f"[magenta]invalid[/magenta] {scenario}")
    if result.testing_finished:
        console.print(
            f"[bold green]testing finished[/bold green] {result.version_set}"
        )


@click.group()
@click.option(
    "--state-dir",
    default=".testgate",
    envvar="TESTGATE_STATE_DIR",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory holding version_sets/, scenarios/ and runs/",
)
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="Path to engine config JSON",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(
    ctx: click.Context, state_dir: Path, config_path: str | None, verbose: bool
):
    """Orchestrate integration testing of version sets."""
    _setup_logging(verbose)
    try:
        ctx.obj = Runtime(state_dir, config_path)
    except GateError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        raise SystemExit(1) from e


@cli.command()
@click.argument("name")
@click.pass_obj
@handle_errors
def reconcile(runtime: Runtime, name: str):
    """Discover scenarios, launch missing runs and check completion."""
    _print_result(runtime.engine.reconcile_version_set(name))


@cli.command()
@click.argument("run_name")
@click.pass_obj
@handle_errors
def observe(runtime: Runtime, run_name: str):
    """Process a state-change event for one test run."""
    entry = runtime.engine.reconcile_test_run_event(RunHandle(run_name))
    if entry is None:
        console.print(f"[dim]nothing recorded for {run_name}[/dim]")
        return
    style = STATUS_STYLES[entry.status]
    console.print(f"{entry.scenario}: [{style}]{entry.status.value}[/{style}]")


@cli.command()
@click.argument("name")
@click.argument("scope", default=RERUN_ALL)
@click.pass_obj
@handle_errors
def rerun(runtime: Runtime, name: str, scope: str):
    """Rerun one scenario, or every scenario with SCOPE=all."""
    _print_result(runtime.engine.request_rerun(name, scope))


@cli.command()
@click.argument("name")
@click.pass_obj
@handle_errors
def status(runtime: Runtime, name: str):
    """Show the status map of a version set."""
    status_map = runtime.engine.get_status_map(name)

    table = Table(title=f"Status of {name}")
    table.add_column("Scenario", style="bold")
    table.add_column("Status")
    table.add_column("Run")
    table.add_column("Gen", justify="right")
    table.add_column("Detail")
    for scenario in status_map.names():
        entry = status_map.entries[scenario]
        style = STATUS_STYLES[entry.status]
        table.add_row(
            scenario,
            f"[{style}]{entry.status.value}[/{style}]",
            entry.test_run_name or "-",
            str(entry.generation),
            entry.detail,
        )
    console.print(table)


@cli.command("complete-run")
@click.argument("run_name")
@click.option("--failed", is_flag=True, help="Mark the pipeline itself as failed")
@click.option(
    "--result-file",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="File whose content becomes the TEST_OUTPUT result",
)
@click.pass_obj
@handle_errors
def complete_run(
    runtime: Runtime, run_name: str, failed: bool, result_file: Path | None
):
    """Record a run's completion, then process it as an event."""
    results = {"TEST_OUTPUT": result_file.read_text()} if result_file else {}
    runtime.runs.finish(run_name, succeeded=not failed, results=results)
    entry = runtime.engine.reconcile_test_run_event(RunHandle(run_name))
    if entry is not None:
        style = STATUS_STYLES[entry.status]
        console.print(f"{entry.scenario}: [{style}]{entry.status.value}[/{style}]")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
