"""clawdtm database layer: declarative base, engine, sessions and portable column types."""

from clawdtm.db.base import Base
from clawdtm.db.engine import async_database_url, create_engine, is_sqlite_url
from clawdtm.db.session import SessionFactory, create_session_factory, session_scope
from clawdtm.db.types import PortableJSON, UTCDateTime

__all__ = [
    "async_database_url",
    "Base",
    "create_engine",
    "create_session_factory",
    "is_sqlite_url",
    "PortableJSON",
    "session_scope",
    "SessionFactory",
    "UTCDateTime",
]
