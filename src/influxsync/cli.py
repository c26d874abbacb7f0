"""
Command-line interface for influxsync.
"""

import asyncio
import sys
from functools import wraps
from typing import List, Optional

import click
from rich.console import Console
from rich.markup import escape

from . import __version__
from .config import InfluxSyncConfig
from .exceptions import InfluxSyncError
from .logging_config import setup_logging
from .schema.executor import ExecutionReport
from .schema.operations import Action, ChangeOperation
from .sync import synchronize


console = Console()

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_SKIPPED = 2

SKIP_PREFIX = "-- "

_ACTION_STYLES = {
    Action.CREATE: ("+", "green"),
    Action.UPDATE: ("~", "yellow"),
    Action.DELETE: ("-", "red"),
}


def handle_errors(func):
    """Decorator to handle errors gracefully in CLI commands."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except InfluxSyncError as e:
            console.print(f"[red]Error:[/red] {escape(str(e))}")
            sys.exit(EXIT_ERROR)
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted by user[/yellow]")
            sys.exit(EXIT_ERROR)
        except Exception as e:
            console.print(f"[red]Unexpected error:[/red] {escape(str(e))}")
            if "--debug" in sys.argv:
                import traceback
                traceback.print_exc()
            sys.exit(EXIT_ERROR)
    return wrapper


def format_statement(op: ChangeOperation) -> str:
    """Statement text as printed by ``--diff``; skipped ones are commented out."""
    statement = f"{op.statement.rstrip().rstrip(';')};"
    if not op.skip:
        return statement
    return "\n".join(f"{SKIP_PREFIX}{line}" for line in statement.splitlines())


def _print_diff(plan: List[ChangeOperation]) -> None:
    for op in plan:
        click.echo(format_statement(op))


def _print_dry_run(plan: List[ChangeOperation]) -> None:
    if not plan:
        console.print("[green]✓[/green] No changes needed")
        return

    console.print(f"[blue]Dry run: {len(plan)} planned operations[/blue]")
    for op in plan:
        symbol, color = _ACTION_STYLES[op.action]
        console.print(f"  [{color}]{symbol}[/{color}] Would {escape(op.description)}")


def _print_report(report: ExecutionReport) -> None:
    if not report.executed and not report.skipped:
        console.print("[green]✓[/green] No changes needed")
        return

    for op in report.executed:
        symbol, color = _ACTION_STYLES[op.action]
        console.print(f"  [{color}]{symbol}[/{color}] {escape(op.description)}")
    for op in report.skipped:
        console.print(f"  [yellow]skipped[/yellow] {escape(op.description)}")

    console.print(
        f"\n{len(report.executed)} applied, {len(report.skipped)} skipped "
        f"({report.execution_time_ms:.0f}ms)"
    )
    if report.withheld_deletions:
        console.print(
            f"[yellow]{report.withheld_deletions} destructive operations were not "
            f"applied. Run again with --force to apply them.[/yellow]"
        )


@click.command()
@click.version_option(__version__)
@click.option(
    "--config",
    "-c",
    "config_dir",
    type=click.Path(file_okay=False),
    help="Schema config directory (overrides settings)",
)
@click.option(
    "--url",
    "-u",
    help="InfluxDB URL, e.g. http://localhost:8086 (overrides settings)",
)
@click.option(
    "--settings",
    "-s",
    type=click.Path(exists=True, dir_okay=False),
    help="YAML settings file",
)
@click.option("--dryrun", is_flag=True, help="Show what would change, change nothing")
@click.option(
    "--diff", is_flag=True, help="Print the statements that would run, change nothing"
)
@click.option("--force", is_flag=True, help="Allow destructive (drop) operations")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Log level (overrides settings)",
)
@click.option("--debug", is_flag=True, help="Enable debug logging")
@handle_errors
def main(
    config_dir: Optional[str],
    url: Optional[str],
    settings: Optional[str],
    dryrun: bool,
    diff: bool,
    force: bool,
    log_level: Optional[str],
    debug: bool,
):
    """influxsync: Sync InfluxDB databases, retention policies and continuous queries with schema files."""
    config = InfluxSyncConfig.from_yaml(settings) if settings else InfluxSyncConfig()
    config = config.with_overrides(
        config_dir=config_dir,
        url=url,
        force=True if force else None,
        dry_run=True if dryrun else None,
    )
    setup_logging(config.logging, "DEBUG" if debug else log_level)

    result = asyncio.run(synchronize(config, diff_only=diff))

    if diff:
        _print_diff(result.plan)
        sys.exit(EXIT_OK)

    if config.dry_run:
        _print_dry_run(result.plan)
        sys.exit(EXIT_OK)

    _print_report(result.report)
    if result.withheld_deletions:
        sys.exit(EXIT_SKIPPED)
    sys.exit(EXIT_OK)
