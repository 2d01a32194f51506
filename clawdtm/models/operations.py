"""ORM models for rate-limit windows, categorization logs and leaderboards."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from clawdtm.clock import utcnow
from clawdtm.db import Base, PortableJSON


class CategorizationStatus(str, Enum):
    """Outcome of categorizing one skill."""

    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"


class RateLimitWindow(Base):
    """Request counter for one key in one fixed time window."""

    __tablename__ = "rate_limit_windows"
    __table_args__ = (
        UniqueConstraint("key", "window_start", name="uq_rate_limit_windows_key_window"),
        Index("idx_rate_limit_windows_window_start", "window_start"),
    )

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    key: Mapped[str] = mapped_column(String(255), nullable=False)
    window_start: Mapped[int] = mapped_column(BigInteger, nullable=False)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    limit: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)


class CategorizationLog(Base):
    """One categorization decision (or failure) for a skill."""

    __tablename__ = "categorization_logs"
    __table_args__ = (Index("idx_categorization_logs_status_created", "status", "created_at"),)

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    skill_id: Mapped[UUID] = mapped_column(ForeignKey("cached_skills.id"), nullable=False, index=True)
    skill_slug: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    assigned_category: Mapped[str | None] = mapped_column(String(64), nullable=True)
    assigned_tags: Mapped[list[Any] | None] = mapped_column(PortableJSON, nullable=True)
    reasoning: Mapped[str] = mapped_column(Text, nullable=False, default="")
    model: Mapped[str] = mapped_column(String(128), nullable=False)
    input_tokens: Mapped[int | None] = mapped_column(Integer, nullable=True)
    output_tokens: Mapped[int | None] = mapped_column(Integer, nullable=True)
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)


class SkillLeaderboard(Base):
    """Ranked snapshot of visible skills for one leaderboard kind."""

    __tablename__ = "skill_leaderboards"
    __table_args__ = (Index("idx_skill_leaderboards_kind_generated", "kind", "generated_at"),)

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    generated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    range_start_day: Mapped[int] = mapped_column(Integer, nullable=False)
    range_end_day: Mapped[int] = mapped_column(Integer, nullable=False)
    items: Mapped[list[Any]] = mapped_column(PortableJSON, nullable=False, default=list)
