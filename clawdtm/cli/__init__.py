"""CLI tools: clawdtm db, sync, stats, skills, serve, scheduler."""

import sys
from importlib import metadata

import typer
from dotenv import load_dotenv

from clawdtm.cli._common import ConfigOption, console, load_cli_config, print_json, run_with_services
from clawdtm.runtime import Services

app = typer.Typer(
    name="clawdtm",
    help="ClawdTM: skills directory mirror, community votes and reviews.",
    no_args_is_help=True,
)

_SUBAPPS_REGISTERED = False


def _register_subapps() -> None:
    global _SUBAPPS_REGISTERED
    if _SUBAPPS_REGISTERED:
        return
    from clawdtm.cli.db import db_app
    from clawdtm.cli.skills import skills_app
    from clawdtm.cli.stats import stats_app
    from clawdtm.cli.sync import sync_app

    app.add_typer(db_app, name="db")
    app.add_typer(sync_app, name="sync")
    app.add_typer(stats_app, name="stats")
    app.add_typer(skills_app, name="skills")
    _SUBAPPS_REGISTERED = True


# Registered at import so `CliRunner.invoke(app, ...)` sees every subcommand.
_register_subapps()


def _print_version_and_exit() -> None:
    """Print installed package version and exit."""
    try:
        version = metadata.version("clawdtm")
    except metadata.PackageNotFoundError:
        version = "unknown"
    print(f"clawdtm {version}")
    raise SystemExit(0)


@app.command("serve")
def serve_command(
    config: str = ConfigOption,
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address."),
    port: int = typer.Option(8000, "--port", help="Bind port."),
    with_scheduler: bool = typer.Option(False, "--with-scheduler", help="Run periodic jobs inside the API process."),
) -> None:
    """Serve the agent, admin and webhook HTTP API."""
    import uvicorn

    from clawdtm.api import create_app

    cfg = load_cli_config(config)
    if with_scheduler:
        cfg.api.run_scheduler = True
    uvicorn.run(create_app(cfg), host=host, port=port, log_config=None)


@app.command("scheduler")
def scheduler_command(config: str = ConfigOption) -> None:
    """Run every enabled periodic job until interrupted."""
    from clawdtm.jobs import build_scheduler

    async def _run(services: Services) -> None:
        scheduler = build_scheduler(services)
        console.print(f"Scheduling {len(scheduler.jobs)} job(s); Ctrl+C to stop.")
        await scheduler.run_forever()

    run_with_services(config, _run)


@app.command("run-job")
def run_job_command(
    name: str = typer.Argument(..., help="Job name."),
    config: str = ConfigOption,
) -> None:
    """Run one periodic job immediately and print its result."""
    from clawdtm.jobs import JOB_NAMES, run_job

    if name not in JOB_NAMES:
        typer.echo(f"Error: unknown job '{name}'. Available: {', '.join(JOB_NAMES)}", err=True)
        raise typer.Exit(2)

    async def _run(services: Services) -> object:
        return await run_job(services, name)

    print_json(run_with_services(config, _run))


@app.command("categorize")
def categorize_command(
    config: str = ConfigOption,
    limit: int = typer.Option(0, "--limit", help="Skills to categorize (0 = config batch limit)."),
    dry_run: bool = typer.Option(False, "--dry-run", help="List pending skills without writing."),
) -> None:
    """Assign categories and tags to uncategorized skills."""

    async def _run(services: Services) -> object:
        batch = limit or services.config.categorization.batch_limit
        if dry_run:
            return [skill.slug for skill in await services.categorizer.pending(batch)]
        return (await services.categorizer.run(limit=batch)).to_dict()

    print_json(run_with_services(config, _run))


@app.command("build-index")
def build_index_command(
    config: str = ConfigOption,
    output: str = typer.Option("", "--output", "-o", help="Output file (default: indexer.output_path)."),
) -> None:
    """Write the static JSON index of visible skills."""

    async def _run(services: Services) -> dict:
        path = output or services.config.indexer.output_path
        if not path:
            typer.echo("Error: no output path; pass --output or set indexer.output_path.", err=True)
            raise typer.Exit(2)
        index = await services.indexer.write(path)
        return {"path": path, "total_skills": index["total_skills"]}

    print_json(run_with_services(config, _run))


@app.command("register-agent")
def register_agent_command(
    name: str = typer.Argument(..., help="Agent name."),
    description: str = typer.Option("", "--description", help="Optional description."),
    owner: str = typer.Option("", "--owner", help="External user id; owned agents start verified."),
    config: str = ConfigOption,
) -> None:
    """Issue an API key for a new bot agent. The key is shown once."""
    from clawdtm.db import session_scope

    async def _run(services: Services) -> dict:
        async with session_scope(services.session_factory) as session:
            if owner:
                user = await services.users.ensure_user(session, owner)
                issued = await services.agents.create_for_owner(session, user, name, description or None)
            else:
                issued = await services.agents.register(session, name, description or None)
            return issued.to_payload()

    print_json(run_with_services(config, _run))


def main() -> None:
    """CLI entry point; loads ./.env before dispatching."""
    if "--version" in sys.argv or "-V" in sys.argv:
        _print_version_and_exit()
    load_dotenv()
    try:
        app()
    except KeyboardInterrupt:
        sys.exit(130)

