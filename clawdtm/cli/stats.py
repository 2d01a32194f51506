"""clawdtm stats: aggregate backfill, leaderboards and rate-limit pruning."""

from __future__ import annotations

from datetime import timedelta

import typer

from clawdtm.cli._common import ConfigOption, print_json, run_with_services
from clawdtm.db import session_scope
from clawdtm.runtime import Services
from clawdtm.stats import LEADERBOARD_KINDS

stats_app = typer.Typer(help="Derived statistics.")


@stats_app.command("backfill")
def backfill_command(
    config: str = ConfigOption,
    batch_size: int = typer.Option(0, "--batch-size", help="Skills per batch (0 = config)."),
    max_batches: int = typer.Option(0, "--max-batches", help="Batches in this run (0 = config)."),
) -> None:
    """Recompute vote and review aggregates, resuming from the stored cursor."""

    async def _run(services: Services) -> dict:
        cfg = services.config.backfill
        report = await services.backfill.run(
            batch_size=batch_size or cfg.batch_size,
            max_batches=max_batches or cfg.max_batches,
        )
        return report.to_dict()

    print_json(run_with_services(config, _run))


@stats_app.command("backfill-status")
def backfill_status_command(config: str = ConfigOption) -> None:
    """Print the backfill checkpoint."""

    async def _state(services: Services) -> dict:
        return await services.backfill.state()

    print_json(run_with_services(config, _state))


@stats_app.command("leaderboard")
def leaderboard_command(
    config: str = ConfigOption,
    kind: list[str] = typer.Option(None, "--kind", "-k", help=f"Kinds to rebuild: {', '.join(LEADERBOARD_KINDS)}."),
    size: int = typer.Option(50, "--size", min=1, help="Entries per leaderboard."),
) -> None:
    """Rebuild leaderboard snapshots."""
    unknown = [name for name in kind or [] if name not in LEADERBOARD_KINDS]
    if unknown:
        typer.echo(f"Error: unknown leaderboard kind(s): {', '.join(unknown)}", err=True)
        raise typer.Exit(2)

    async def _run(services: Services) -> dict:
        return await services.leaderboards.rebuild(kind or None, size=size)

    print_json(run_with_services(config, _run))


@stats_app.command("prune-rate-limits")
def prune_command(
    config: str = ConfigOption,
    hours: int = typer.Option(0, "--hours", help="Drop windows older than this (0 = config retention)."),
) -> None:
    """Delete expired rate-limit windows."""

    async def _run(services: Services) -> dict:
        limits = services.config.rate_limit
        cutoff = services.now_fn() - timedelta(hours=hours or limits.prune_retention_hours)
        async with session_scope(services.session_factory) as session:
            removed = await services.rate_gate.prune(session, cutoff, window_seconds=limits.window_seconds)
        return {"removed": removed}

    print_json(run_with_services(config, _run))
