"""CLI entry point for depsync."""

import asyncio
import sys
from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import Any

import click
import structlog

from depsync.config.settings import DepSyncSettings
from depsync.engine.orchestrator import PassOrchestrator
from depsync.engine.types import CleanupReport, ScanResult, SyncOutcome
from depsync.exceptions import ConfigurationError, DepSyncError
from depsync.utils.logging_config import configure_logging

log = structlog.get_logger(__name__)

DEFAULT_CONFIG = "depsync.yaml"


@click.group()
@click.option("--config", default=None, help=f"Path to configuration file (default: {DEFAULT_CONFIG} if present)")
@click.option("--log-level", default="INFO", help="Logging level")
@click.option("--json-logs/--console-logs", default=True, help="Render logs as JSON lines")
@click.pass_context
def cli(ctx: click.Context, config: str | None, log_level: str, json_logs: bool) -> None:
    """depsync: keep dependency update pull requests in sync."""
    configure_logging(log_level, json_output=json_logs)

    try:
        if config is not None:
            settings = DepSyncSettings.from_yaml(config)
        elif Path(DEFAULT_CONFIG).exists():
            settings = DepSyncSettings.from_yaml(DEFAULT_CONFIG)
        else:
            settings = DepSyncSettings()
    except ConfigurationError as e:
        click.echo(f"Error: {e.message}", err=True)
        log.debug("config_error", exc_info=True)
        sys.exit(1)

    ctx.obj = {"settings": settings}


def _execute(event: str, action: Callable[[], Coroutine[Any, Any, None]]) -> None:
    try:
        asyncio.run(action())
    except DepSyncError as e:
        click.echo(f"Error: {e.message}", err=True)
        log.debug(f"{event}_error", exc_info=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        sys.exit(130)


@cli.command()
@click.pass_context
def scan(ctx: click.Context) -> None:
    """List available updates and the groups they form."""
    settings: DepSyncSettings = ctx.obj["settings"]

    async def _scan() -> None:
        async with PassOrchestrator.from_settings(settings, require_remote=False) as orchestrator:
            _print_scan(await orchestrator.scan())

    _execute("scan", _scan)


@cli.command()
@click.option("--dry-run", is_flag=True, help="Decide what to do without changing anything")
@click.pass_context
def update(ctx: click.Context, dry_run: bool) -> None:
    """Create or refresh one pull request per update group."""
    settings: DepSyncSettings = ctx.obj["settings"]

    async def _update() -> None:
        async with PassOrchestrator.from_settings(settings) as orchestrator:
            _print_outcomes(await orchestrator.update(dry_run=dry_run))

    _execute("update", _update)


@cli.command()
@click.option("--dry-run", is_flag=True, help="Report orphaned branches without deleting them")
@click.pass_context
def cleanup(ctx: click.Context, dry_run: bool) -> None:
    """Delete branches whose pull requests are closed."""
    settings: DepSyncSettings = ctx.obj["settings"]

    async def _cleanup() -> None:
        async with PassOrchestrator.from_settings(settings) as orchestrator:
            _print_cleanup(await orchestrator.cleanup(dry_run=dry_run))

    _execute("cleanup", _cleanup)


@cli.command()
@click.option("--dry-run", is_flag=True, help="Decide what to do without changing anything")
@click.pass_context
def run(ctx: click.Context, dry_run: bool) -> None:
    """Full pass: update pull requests, then clean up branches."""
    settings: DepSyncSettings = ctx.obj["settings"]

    async def _run() -> None:
        async with PassOrchestrator.from_settings(settings) as orchestrator:
            outcomes, report = await orchestrator.run(dry_run=dry_run)
            _print_outcomes(outcomes)
            _print_cleanup(report)

    _execute("run", _run)


def _print_scan(result: ScanResult) -> None:
    click.echo(f"Scanned {result.total_manifests} manifest(s) in {result.duration:.1f}s")
    if not result.updates:
        click.echo("All dependencies are up to date")
        return
    for group in result.groups:
        click.echo(f"\n{group.name} ({group.update_type}, {len(group.updates)} update(s))")
        for update in group.updates:
            click.echo(
                f"  {update.name}: {update.current_version} -> {update.new_version} "
                f"[{update.update_type}] {update.source_file}"
            )


def _print_outcomes(outcomes: list[SyncOutcome]) -> None:
    for outcome in outcomes:
        pr = f" #{outcome.pr_number}" if outcome.pr_number else ""
        reason = f" ({outcome.reason})" if outcome.reason else ""
        click.echo(f"{outcome.action}: {outcome.group}{pr}{reason}")


def _print_cleanup(report: CleanupReport) -> None:
    verb = "Would delete" if report.dry_run else "Deleted"
    click.echo(
        f"Cleanup [{report.strategy}]: {len(report.scanned)} branch(es), "
        f"{len(report.protected)} protected, {len(report.orphaned)} orphaned"
    )
    for name in report.deleted:
        click.echo(f"  {verb} {name}")
    for name in report.retained:
        click.echo(f"  Kept {name} (too recent or age unknown)")
    for name, error in report.failed.items():
        click.echo(f"  Failed {name}: {error}", err=True)


if __name__ == "__main__":
    cli()
