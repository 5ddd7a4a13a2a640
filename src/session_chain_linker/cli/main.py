"""CLI entry point for session-chain-linker.

Invoked as::

    session-chain-linker [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m session_chain_linker.cli.main

Commands
--------
- version   — Show detailed version information
- detect    — Show continuation signals found in one transcript
- scan      — Detect and store continuations for every known transcript
- chain     — Show the continuation tree containing a session
- metadata  — Show the continuation status of one session
- stats     — Show statistics over all stored continuations
- heal      — Re-probe orphaned continuations
"""
from __future__ import annotations

import logging
import sys
import time
from pathlib import Path
from typing import NoReturn

import click
from pydantic import BaseModel
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn
from rich.table import Table
from rich.tree import Tree

from session_chain_linker import __version__
from session_chain_linker.config import LinkerConfig, load_config
from session_chain_linker.detection.detector import detect_continuation
from session_chain_linker.engine import ContinuationEngine
from session_chain_linker.healing.guard import OperationInProgressError
from session_chain_linker.models import ChainView
from session_chain_linker.session.validation import InvalidSessionIdError

console = Console()

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _configure_logging(level: str) -> None:
    """Route library logging through rich on stderr."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _engine(ctx: click.Context) -> ContinuationEngine:
    """Build the engine on first use and keep it on the context."""
    if "engine" not in ctx.obj:
        config: LinkerConfig = ctx.obj["config"]
        ctx.obj["engine"] = ContinuationEngine.from_config(config)
    return ctx.obj["engine"]


def _print_json(model: BaseModel) -> None:
    console.print_json(model.model_dump_json(indent=2))


def _fail(message: str) -> NoReturn:
    console.print(f"[red]{message}[/red]")
    sys.exit(1)


def _wait_for_interrupt() -> None:
    """Block until Ctrl-C."""
    try:
        while True:
            time.sleep(3600)
    except KeyboardInterrupt:
        pass


def _watch_healing(engine: ContinuationEngine) -> None:
    """Heal once now, then on the configured interval until interrupted."""
    scheduler = engine.healing_scheduler()
    console.print(
        f"Healing orphans every {scheduler.interval_seconds:g}s. Press Ctrl-C to stop."
    )
    report = scheduler.run_once()
    if report is not None:
        console.print(f"[green]Healed:[/green] {report.healed}")
        console.print(f"[yellow]Still orphaned:[/yellow] {report.remaining}")
    with scheduler:
        _wait_for_interrupt()
    console.print("Stopped.")


def _chain_tree(chain: ChainView) -> Tree:
    """Render a chain as a rich tree; children are listed in creation order."""
    root_label = f"[bold]{chain.root_id}[/bold]"
    if not chain.parent.exists:
        root_label += " [yellow](missing)[/yellow]"
    tree = Tree(root_label)
    nodes: dict[str, Tree] = {chain.root_id: tree}
    for node in chain.flat_descendants:
        label = f"{node.session.session_id} [dim]#{node.order}[/dim]"
        if node.is_active_continuation:
            label += " [green](active)[/green]"
        if not node.session.exists:
            label += " [yellow](missing)[/yellow]"
        parent = nodes.get(node.parent_id, tree)
        nodes[node.session.session_id] = parent.add(label)
    return tree


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="session-chain-linker")
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="YAML configuration file.",
)
@click.option("--projects-dir", default=None, help="Root of the <project>/<uuid>.jsonl tree.")
@click.option("--db-path", default=None, help="Path to the SQLite continuation database.")
@click.option("-v", "--verbose", is_flag=True, help="Log at DEBUG level.")
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: str | None,
    projects_dir: str | None,
    db_path: str | None,
    verbose: bool,
) -> None:
    """Detect and browse session continuation chains"""
    ctx.ensure_object(dict)
    try:
        config = load_config(config_path)
        if projects_dir:
            config = config.replace(projects_dir=Path(projects_dir))
        if db_path:
            config = config.replace(db_path=Path(db_path))
    except ValueError as exc:
        _fail(f"Invalid configuration: {exc}")
    _configure_logging("DEBUG" if verbose else config.log_level)
    ctx.obj["config"] = config


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    console.print(f"[bold]session-chain-linker[/bold] v{__version__}")


# ---------------------------------------------------------------------------
# detect
# ---------------------------------------------------------------------------


@cli.command(name="detect")
@click.argument("transcript", type=click.Path(exists=True, dir_okay=False))
@click.option("--json-output", is_flag=True, help="Output raw JSON instead of formatted view.")
def detect_command(transcript: str, json_output: bool) -> None:
    """Show continuation signals found in TRANSCRIPT."""
    result = detect_continuation(transcript)
    if json_output:
        _print_json(result)
        return

    table = Table(title=Path(transcript).name, show_lines=True)
    table.add_column("Field", style="bold cyan")
    table.add_column("Value")
    table.add_row("session_id", result.session_id or "[yellow]<not a session file>[/yellow]")
    table.add_row("is_child", str(result.is_child))
    table.add_row("parent_id", result.parent_id or "-")
    table.add_row(
        "child_started_at",
        result.child_started_at.isoformat() if result.child_started_at else "-",
    )
    table.add_row("is_parent", str(result.is_parent))
    if result.last_boundary is not None:
        table.add_row("next_session_id", result.last_boundary.next_session_id or "-")
    if result.error:
        table.add_row("error", f"[red]{result.error}[/red]")
    console.print(table)


# ---------------------------------------------------------------------------
# scan
# ---------------------------------------------------------------------------


@cli.command(name="scan")
@click.option("--json-output", is_flag=True, help="Output raw JSON instead of formatted view.")
@click.pass_context
def scan_command(ctx: click.Context, json_output: bool) -> None:
    """Detect and store continuations for every transcript under the projects dir."""
    engine = _engine(ctx)
    try:
        with engine.guard.hold("scan"):
            with Progress(
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                console=console,
                transient=True,
                disable=json_output,
            ) as progress:
                task = progress.add_task("Scanning transcripts", total=None)

                def _advance(done: int, total: int, _path: Path) -> None:
                    progress.update(task, completed=done, total=total)

                report = engine.resolve_all(progress=_advance)
    except OperationInProgressError as exc:
        _fail(str(exc))

    if json_output:
        _print_json(report)
        return

    table = Table(title="Continuation scan", show_lines=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Transcripts scanned", str(report.total_scanned))
    table.add_row("Continuations found", str(report.continuations_found))
    table.add_row("Orphaned", str(report.orphans))
    table.add_row("Cache entries", str(report.cached_count))
    table.add_row("Stale edges removed", str(report.stale_removed))
    table.add_row("Errors", str(report.error_count))
    console.print(table)
    for error in report.errors:
        console.print(f"[red]  {error}[/red]")


# ---------------------------------------------------------------------------
# chain
# ---------------------------------------------------------------------------


@cli.command(name="chain")
@click.argument("session_id")
@click.option("--json-output", is_flag=True, help="Output raw JSON instead of formatted view.")
@click.pass_context
def chain_command(ctx: click.Context, session_id: str, json_output: bool) -> None:
    """Show the continuation tree containing SESSION_ID."""
    try:
        chain = _engine(ctx).get_chain(session_id)
    except InvalidSessionIdError as exc:
        _fail(str(exc))

    if json_output:
        _print_json(chain)
        return

    console.print(_chain_tree(chain))
    branches = "yes" if chain.has_branches else "no"
    console.print(
        f"\n[dim]{chain.total_sessions} sessions, max depth {chain.max_depth}, "
        f"branches: {branches}[/dim]"
    )


# ---------------------------------------------------------------------------
# metadata
# ---------------------------------------------------------------------------


@cli.command(name="metadata")
@click.argument("session_id")
@click.option("--json-output", is_flag=True, help="Output raw JSON instead of formatted view.")
@click.pass_context
def metadata_command(ctx: click.Context, session_id: str, json_output: bool) -> None:
    """Show the continuation status of SESSION_ID."""
    try:
        metadata = _engine(ctx).get_metadata(session_id)
    except InvalidSessionIdError as exc:
        _fail(str(exc))

    if json_output:
        _print_json(metadata)
        return

    table = Table(title=f"Session {session_id[:8]}", show_lines=True)
    table.add_column("Field", style="bold cyan")
    table.add_column("Value")
    for name, value in metadata.model_dump().items():
        table.add_row(name, str(value))
    console.print(table)


# ---------------------------------------------------------------------------
# stats
# ---------------------------------------------------------------------------


@cli.command(name="stats")
@click.option("--json-output", is_flag=True, help="Output raw JSON instead of formatted view.")
@click.pass_context
def stats_command(ctx: click.Context, json_output: bool) -> None:
    """Show statistics over all stored continuations."""
    stats = _engine(ctx).get_stats()
    if json_output:
        _print_json(stats)
        return

    table = Table(title="Continuation statistics", show_lines=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Chains", str(stats.total_chains))
    table.add_row("Relationships", str(stats.total_relationships))
    table.add_row("Max depth", str(stats.max_depth))
    table.add_row("Orphaned", str(stats.orphaned_count))
    table.add_row("Average chain length", f"{stats.average_chain_length:.2f}")
    console.print(table)


# ---------------------------------------------------------------------------
# heal
# ---------------------------------------------------------------------------


@cli.command(name="heal")
@click.option("--json-output", is_flag=True, help="Output raw JSON instead of formatted view.")
@click.option(
    "--watch",
    is_flag=True,
    help="Keep healing every healing_interval_seconds until interrupted.",
)
@click.pass_context
def heal_command(ctx: click.Context, json_output: bool, watch: bool) -> None:
    """Re-probe orphaned continuations whose parent may have reappeared."""
    engine = _engine(ctx)
    if watch:
        _watch_healing(engine)
        return

    try:
        with engine.guard.hold("heal"):
            report = engine.heal_orphans()
    except OperationInProgressError as exc:
        _fail(str(exc))

    if json_output:
        _print_json(report)
        return

    console.print(f"[green]Healed:[/green] {report.healed}")
    console.print(f"[yellow]Still orphaned:[/yellow] {report.remaining}")
    for error in report.errors:
        console.print(f"[red]  {error}[/red]")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


if __name__ == "__main__":
    cli()
