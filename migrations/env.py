"""Alembic environment for clawdtm (PostgreSQL only).

The URL comes from ``CLAWDTM_DATABASE_URL`` (``clawdtm db migrate`` sets it
from the loaded config) or ``sqlalchemy.url`` in alembic.ini, and is
rewritten to the psycopg2 driver Alembic runs on.
"""

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

import clawdtm.models  # noqa: F401  (registers every table on Base.metadata)
from clawdtm.db import Base

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

_SYNC_SCHEMES = {
    "postgresql": "postgresql+psycopg2",
    "postgres": "postgresql+psycopg2",
    "postgresql+asyncpg": "postgresql+psycopg2",
    "postgresql+psycopg2": "postgresql+psycopg2",
}


def migration_url() -> str:
    raw = (os.environ.get("CLAWDTM_DATABASE_URL") or config.get_main_option("sqlalchemy.url") or "").strip()
    scheme, sep, rest = raw.partition("://")
    if not sep or scheme not in _SYNC_SCHEMES:
        raise RuntimeError("Migrations need a PostgreSQL CLAWDTM_DATABASE_URL; use `clawdtm db init` for SQLite.")
    return f"{_SYNC_SCHEMES[scheme]}://{rest}"


def run_offline() -> None:
    context.configure(
        url=migration_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _migrate(connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)
    with context.begin_transaction():
        context.run_migrations()


def run_online() -> None:
    shared = config.attributes.get("connection")
    if shared is not None:
        _migrate(shared)
        return
    engine = create_engine(migration_url(), poolclass=pool.NullPool)
    with engine.connect() as connection:
        _migrate(connection)


if context.is_offline_mode():
    run_offline()
else:
    run_online()
