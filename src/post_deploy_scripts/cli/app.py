"""
CLI: ``pds`` commands to run, revert, inspect and generate post deploy scripts.
"""

import json
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.table import Table

from post_deploy_scripts.backends import Backend, create_backend
from post_deploy_scripts.config.settings import Settings, get_settings
from post_deploy_scripts.errors import PostDeployScriptError
from post_deploy_scripts.generator import generate_script
from post_deploy_scripts.migrator import Migrator
from post_deploy_scripts.models import Direction, RunResult, strategy_from_options
from post_deploy_scripts.observability.logging import configure_logging
from post_deploy_scripts.sources import ensure_scripts_path, scripts_path

app = typer.Typer(
    name="pds",
    help="Run, revert and inspect post deploy scripts.",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)

# Scripts run one at a time, so a single connection is enough
DEFAULT_POOL_SIZE = 1


# ── Helpers ──────────────────────────────────────────────────────────────


def load_settings() -> Settings:
    """Load settings and configure logging from them."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.observability.log_format)
    return settings


def open_backend(settings: Settings, pool_size: int | None = None) -> Backend:
    """
    Create the backend selected in settings.

    The pool holds DEFAULT_POOL_SIZE connections unless a size is given
    or configured.
    """
    if pool_size is None and settings.database.pool_size is None:
        pool_size = DEFAULT_POOL_SIZE
    return create_backend(settings, pool_size=pool_size)


def fail(error: Exception) -> NoReturn:
    """Print an error and exit with status 1."""
    err_console.print(f"[bold red]Error[/bold red]: {error}")
    raise typer.Exit(code=1)


def _execute(
    direction: Direction,
    run_all: bool,
    step: int | None,
    to: int | None,
    quiet: bool,
    log_sql: bool,
    pool_size: int | None,
    prefix: str | None,
    path: Path | None,
) -> None:
    settings = load_settings()

    try:
        strategy = strategy_from_options(run_all=run_all, to=to, step=step)
        scripts_dir = ensure_scripts_path(path or scripts_path(settings))
    except PostDeployScriptError as e:
        fail(e)

    with open_backend(settings, pool_size) as backend:
        migrator = Migrator.from_settings(
            backend,
            settings,
            prefix=prefix or settings.scripts.prefix,
            log=False if quiet else "info",
            log_sql=log_sql and not quiet,
        )
        result = migrator.execute(scripts_dir, direction, strategy)

    render_result(result, quiet=quiet)


def render_result(result: RunResult, quiet: bool = False) -> None:
    """Render a RunResult to the terminal."""
    if not result.success:
        err_console.print(f"[bold red]Error[/bold red] ({result.error_kind}): {result.reason}")
        raise typer.Exit(code=1)

    if quiet:
        return

    if not result.versions:
        console.print(result.reason or "Nothing to do")
        return

    verb = "Applied" if result.direction is Direction.UP else "Reverted"
    for version in result.versions:
        console.print(f"{verb} {version}")


# ── Commands ─────────────────────────────────────────────────────────────


@app.command()
def run(
    run_all: bool = typer.Option(False, "--all", help="Run all pending scripts"),
    step: int | None = typer.Option(None, "--step", "-n", help="Run n pending scripts"),
    to: int | None = typer.Option(
        None, "--to", "-v", help="Run all scripts up to and including version"
    ),
    quiet: bool = typer.Option(
        False, "--quiet", help="Do not log script progress or statements"
    ),
    log_sql: bool = typer.Option(False, "--log-sql", help="Log the raw statements scripts run"),
    pool_size: int | None = typer.Option(
        None, "--pool-size", min=1, help="Connection pool size (defaults to 1)"
    ),
    prefix: str | None = typer.Option(None, "--prefix", help="Schema or database of the ledger"),
    path: Path | None = typer.Option(None, "--path", help="Scripts directory"),
) -> None:
    """Run pending post deploy scripts (all of them by default)."""
    if not (run_all or step is not None or to is not None):
        run_all = True
    _execute(Direction.UP, run_all, step, to, quiet, log_sql, pool_size, prefix, path)


@app.command()
def revert(
    run_all: bool = typer.Option(False, "--all", help="Revert all applied scripts"),
    step: int | None = typer.Option(None, "--step", "-n", help="Revert n applied scripts"),
    to: int | None = typer.Option(
        None, "--to", "-v", help="Revert all scripts down to and including version"
    ),
    quiet: bool = typer.Option(
        False, "--quiet", help="Do not log script progress or statements"
    ),
    log_sql: bool = typer.Option(False, "--log-sql", help="Log the raw statements scripts run"),
    pool_size: int | None = typer.Option(
        None, "--pool-size", min=1, help="Connection pool size (defaults to 1)"
    ),
    prefix: str | None = typer.Option(None, "--prefix", help="Schema or database of the ledger"),
    path: Path | None = typer.Option(None, "--path", help="Scripts directory"),
) -> None:
    """Revert applied post deploy scripts (the latest one by default)."""
    if not (run_all or step is not None or to is not None):
        step = 1
    _execute(Direction.DOWN, run_all, step, to, quiet, log_sql, pool_size, prefix, path)


@app.command()
def status(
    prefix: str | None = typer.Option(None, "--prefix", help="Schema or database of the ledger"),
    path: Path | None = typer.Option(None, "--path", help="Scripts directory"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Show which scripts are up and which are down."""
    settings = load_settings()

    try:
        scripts_dir = ensure_scripts_path(path or scripts_path(settings))
        with open_backend(settings) as backend:
            migrator = Migrator.from_settings(
                backend, settings, prefix=prefix or settings.scripts.prefix, log=False
            )
            entries = migrator.status(scripts_dir)
    except PostDeployScriptError as e:
        fail(e)

    if json_out:
        console.print_json(json.dumps([entry.to_dict() for entry in entries]))
        return

    table = Table(title="Post Deploy Scripts")
    table.add_column("Status")
    table.add_column("Version", justify="right")
    table.add_column("Name")
    for entry in entries:
        style = "green" if entry.state is Direction.UP else "yellow"
        table.add_row(f"[{style}]{entry.state.value}[/{style}]", str(entry.version), entry.name)
    console.print(table)


@app.command()
def gen(
    name: str = typer.Argument(..., help="Script name, e.g. sync_users"),
    change: str | None = typer.Option(None, "--change", help="Body of a change() method"),
    path: Path | None = typer.Option(None, "--path", help="Scripts directory"),
) -> None:
    """Generate a new post deploy script."""
    settings = get_settings()

    try:
        created = generate_script(name, path or scripts_path(settings), change=change)
    except PostDeployScriptError as e:
        fail(e)

    console.print(f"Created {created}")
