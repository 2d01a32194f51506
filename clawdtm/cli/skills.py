"""clawdtm skills: search the mirror and moderate entries."""

from __future__ import annotations

import typer
from rich.table import Table

from clawdtm.cli._common import ConfigOption, console, print_json, run_with_services
from clawdtm.db import session_scope
from clawdtm.runtime import Services

skills_app = typer.Typer(help="Skill directory and moderation.")


@skills_app.command("search")
def search_command(
    query: str = typer.Argument(..., help="Search term."),
    config: str = ConfigOption,
    limit: int = typer.Option(20, "--limit", min=1, help="Maximum results."),
) -> None:
    """Search visible skills by relevance."""

    async def _search(services: Services) -> list[tuple[str, str, int, float]]:
        async with session_scope(services.session_factory) as session:
            results = await services.directory.search(session, query, limit=limit)
            return [(skill.slug, skill.name or skill.slug, skill.downloads, score) for skill, score in results]

    rows = run_with_services(config, _search)
    if not rows:
        console.print("No skills found.")
        return
    table = Table(title=f"Results for '{query}'")
    table.add_column("Slug")
    table.add_column("Name")
    table.add_column("Downloads", justify="right")
    table.add_column("Score", justify="right")
    for slug, name, downloads, score in rows:
        table.add_row(slug, name, str(downloads), f"{score:.1f}")
    console.print(table)


@skills_app.command("hide")
def hide_command(
    slug: str = typer.Argument(..., help="Skill slug."),
    reason: str = typer.Option("", "--reason", help="Why the skill is hidden."),
    config: str = ConfigOption,
) -> None:
    """Hide a skill from every public view."""

    async def _hide(services: Services) -> str | None:
        async with session_scope(services.session_factory) as session:
            skill = await services.moderation.hide(session, slug, reason or None)
            return skill.hidden_reason

    hidden_reason = run_with_services(config, _hide)
    console.print(f"Hidden [bold]{slug}[/bold]: {hidden_reason}")


@skills_app.command("unhide")
def unhide_command(slug: str = typer.Argument(..., help="Skill slug."), config: str = ConfigOption) -> None:
    """Make a hidden skill visible again."""

    async def _unhide(services: Services) -> None:
        async with session_scope(services.session_factory) as session:
            await services.moderation.unhide(session, slug)

    run_with_services(config, _unhide)
    console.print(f"Unhidden [bold]{slug}[/bold]")


@skills_app.command("hidden")
def hidden_command(config: str = ConfigOption) -> None:
    """List hidden skills."""

    async def _list(services: Services) -> list[dict]:
        async with session_scope(services.session_factory) as session:
            return await services.moderation.list_hidden(session)

    print_json(run_with_services(config, _list))
