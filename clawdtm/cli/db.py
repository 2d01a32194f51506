"""clawdtm db: create tables, run migrations, show status."""

from __future__ import annotations

import os
from typing import Any
from urllib.parse import urlsplit, urlunsplit

import typer
from rich.table import Table
from sqlalchemy import func, select

from clawdtm.cli._common import ConfigOption, console, load_cli_config, run_with_services
from clawdtm.db import Base, is_sqlite_url, session_scope
from clawdtm.runtime import Services

db_app = typer.Typer(help="Database schema and status.")


def _mask_url(url: str) -> str:
    """Hide password in URL."""
    if "://" not in url:
        return url
    split = urlsplit(url)
    if split.password is None:
        return url
    host = split.hostname or ""
    port_suffix = f":{split.port}" if split.port is not None else ""
    netloc = f"{split.username}:***@{host}{port_suffix}"
    return urlunsplit((split.scheme, netloc, split.path, split.query, split.fragment))


@db_app.command("init")
def init_command(config: str = ConfigOption) -> None:
    """Create any missing tables from the ORM metadata."""

    async def _create(services: Services) -> None:
        await services.create_schema()

    run_with_services(config, _create)
    console.print("[green]Schema is up to date.[/green]")


@db_app.command("migrate")
def migrate_command(
    config: str = ConfigOption,
    revision: str = typer.Option("head", "--revision", "-r", help="Target revision."),
    alembic_ini: str = typer.Option("alembic.ini", "--alembic-ini", help="Path to alembic.ini."),
) -> None:
    """Run Alembic migrations against the configured PostgreSQL database."""
    from alembic import command
    from alembic.config import Config

    cfg = load_cli_config(config)
    if is_sqlite_url(cfg.database.url):
        typer.echo("Error: migrations target PostgreSQL; use `clawdtm db init` for SQLite.", err=True)
        raise typer.Exit(2)
    if not os.path.exists(alembic_ini):
        typer.echo(f"Error: {alembic_ini} not found.", err=True)
        raise typer.Exit(2)
    os.environ["CLAWDTM_DATABASE_URL"] = cfg.database.url
    command.upgrade(Config(alembic_ini), revision)
    console.print(f"[green]Migrated to {revision}.[/green]")


@db_app.command("status")
def status_command(config: str = ConfigOption) -> None:
    """Show the connection and the row count of every table."""

    async def _collect(services: Services) -> dict[str, Any]:
        counts: dict[str, int] = {}
        async with session_scope(services.session_factory) as session:
            for table in Base.metadata.sorted_tables:
                counts[table.name] = int(await session.scalar(select(func.count()).select_from(table)) or 0)
        return {"connection": _mask_url(str(services.config.database.url)), "tables": counts}

    info = run_with_services(config, _collect)
    table = Table(title="clawdtm database")
    table.add_column("Table")
    table.add_column("Rows", justify="right")
    for name, count in info["tables"].items():
        table.add_row(name, str(count))
    console.print(f"Connection: {info['connection']}")
    console.print(table)
