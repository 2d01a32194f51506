"""Declarative base for clawdtm ORM models."""

from datetime import datetime

from sqlalchemy.orm import DeclarativeBase

from clawdtm.db.types import UTCDateTime


class Base(DeclarativeBase):
    """Base class for all clawdtm ORM models.

    Maps ``datetime`` annotations to UTC-aware timestamps so SQLite and
    PostgreSQL round-trip the same values. Exposes metadata for Alembic.
    """

    type_annotation_map = {
        datetime: UTCDateTime(),
    }
