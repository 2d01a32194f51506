"""Helpers shared by the clawdtm CLI commands."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import typer
from pydantic import ValidationError
from rich.console import Console

from clawdtm.config import ClawdtmConfig, ConfigLoadError, load_config
from clawdtm.errors import ClawdtmError
from clawdtm.logs import configure_logging
from clawdtm.runtime import Services, build_services, prepare

T = TypeVar("T")

console = Console()

ConfigOption = typer.Option("", "--config", "-c", help="Path to clawdtm.yaml (default: CLAWDTM_CONFIG or ./clawdtm.yaml).")


def load_cli_config(config_path: str = "") -> ClawdtmConfig:
    try:
        config = load_config(config_path or None)
    except (ConfigLoadError, ValidationError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(2) from exc
    configure_logging(config.logging.level)
    return config


def run_with_services(config_path: str, func: Callable[[Services], Awaitable[T]]) -> T:
    """Build services, make sure the schema exists for SQLite, run ``func`` and close.

    Domain errors are printed to stderr and exit with code 1.
    """
    config = load_cli_config(config_path)

    async def _run() -> T:
        services = build_services(config)
        try:
            await prepare(services)
            return await func(services)
        finally:
            await services.close()

    try:
        return asyncio.run(_run())
    except ClawdtmError as exc:
        typer.echo(f"Error: {exc.message}" + (f" ({exc.hint})" if exc.hint else ""), err=True)
        raise typer.Exit(1) from exc


def print_json(data: Any) -> None:
    console.print_json(json.dumps(data, ensure_ascii=False, default=str))
