"""Async engine construction for PostgreSQL (asyncpg) and SQLite (aiosqlite)."""

from __future__ import annotations

from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from clawdtm.errors import DatabaseConfigError

# plain scheme -> async driver scheme
_ASYNC_SCHEMES = {
    "postgresql": "postgresql+asyncpg",
    "postgres": "postgresql+asyncpg",
    "postgresql+asyncpg": "postgresql+asyncpg",
    "sqlite": "sqlite+aiosqlite",
    "sqlite+aiosqlite": "sqlite+aiosqlite",
}


def async_database_url(url: str) -> str:
    """Rewrite ``url`` to the async driver clawdtm runs on."""
    scheme, sep, rest = url.strip().partition("://")
    if not sep or scheme not in _ASYNC_SCHEMES:
        raise DatabaseConfigError(
            "Unsupported database URL",
            hint="Use postgresql+asyncpg://... or sqlite+aiosqlite:///path/to/clawdtm.db",
        )
    return f"{_ASYNC_SCHEMES[scheme]}://{rest}"


def is_sqlite_url(url: str) -> bool:
    return url.strip().startswith("sqlite")


def _is_memory_sqlite(url: str) -> bool:
    _, _, rest = url.partition("://")
    return rest in {"", "/"} or rest.rstrip("/").endswith(":memory:")


def _install_sqlite_hooks(engine: AsyncEngine) -> None:
    # pysqlite opens transactions lazily, which breaks SAVEPOINTs; take over BEGIN.
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, _record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")


def create_engine(
    database_url: str,
    *,
    pool_size: int = 10,
    max_overflow: int = 5,
    pool_timeout: float = 30.0,
    pool_recycle: int = 1800,
    echo: bool = False,
) -> AsyncEngine:
    """Create the process-wide engine.

    SQLite files get a fresh connection per checkout; ``:memory:`` databases
    share one connection so every session sees the same tables. Pool options
    apply to PostgreSQL only.
    """
    if not database_url or not database_url.strip():
        raise DatabaseConfigError("Database URL not set", hint="Set database.url or CLAWDTM_DATABASE_URL")
    url = async_database_url(database_url)
    if is_sqlite_url(url):
        engine = create_async_engine(
            url,
            echo=echo,
            poolclass=StaticPool if _is_memory_sqlite(url) else NullPool,
            connect_args={"check_same_thread": False},
        )
        _install_sqlite_hooks(engine)
        return engine
    return create_async_engine(
        url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        pool_pre_ping=True,
        echo=echo,
    )
