"""clawdtm sync: run the catalog mirror and manage its checkpoint."""

from __future__ import annotations

import typer

from clawdtm.catalog.sync import MODE_FULL, MODE_INCREMENTAL
from clawdtm.cli._common import ConfigOption, print_json, run_with_services
from clawdtm.runtime import Services

sync_app = typer.Typer(help="Catalog sync.")


@sync_app.command("run")
def run_command(
    config: str = ConfigOption,
    full: bool = typer.Option(False, "--full", help="Walk the whole catalog from the first page."),
    max_batches: int = typer.Option(0, "--max-batches", help="Override the configured batch count (0 = config)."),
) -> None:
    """Run one sync invocation and print its report."""

    async def _run(services: Services) -> dict:
        report = await services.sync.run(
            max_batches=max_batches or None,
            mode=MODE_FULL if full else MODE_INCREMENTAL,
        )
        return report.to_dict()

    result = run_with_services(config, _run)
    print_json(result)
    if result.get("error"):
        raise typer.Exit(1)


@sync_app.command("status")
def status_command(config: str = ConfigOption) -> None:
    """Print the sync checkpoint."""

    async def _status(services: Services) -> dict:
        return (await services.sync_state.load()).to_dict()

    print_json(run_with_services(config, _status))


@sync_app.command("reset")
def reset_command(config: str = ConfigOption) -> None:
    """Clear the cursor and mark the checkpoint idle."""

    async def _reset(services: Services) -> dict:
        return (await services.sync_state.reset()).to_dict()

    print_json(run_with_services(config, _reset))


@sync_app.command("enrich")
def enrich_command(
    config: str = ConfigOption,
    limit: int = typer.Option(50, "--limit", min=1, help="Skills to enrich in this run."),
) -> None:
    """Fill in authors for skills mirrored without one."""

    async def _enrich(services: Services) -> dict:
        return (await services.sync.enrich_authors(limit=limit)).to_dict()

    print_json(run_with_services(config, _enrich))
