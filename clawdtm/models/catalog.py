"""ORM models for the cached catalog and its job checkpoints."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import Boolean, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from clawdtm.clock import utcnow
from clawdtm.db import Base, PortableJSON


class SyncStatus(str, Enum):
    """Catalog sync checkpoint status."""

    IDLE = "idle"
    RUNNING = "running"
    ERROR = "error"


# Fields written by the catalog sync; everything else on CachedSkill is local.
CATALOG_OWNED_FIELDS: tuple[str, ...] = (
    "external_id",
    "slug",
    "name",
    "description",
    "author",
    "author_handle",
    "downloads",
    "stars",
    "installs",
    "tags",
    "version",
    "has_nix",
    "external_created_at",
    "external_updated_at",
)

LOCALLY_OWNED_FIELDS: tuple[str, ...] = (
    "hidden",
    "hidden_reason",
    "hidden_at",
    "upvotes",
    "downvotes",
    "human_upvotes",
    "human_downvotes",
    "bot_upvotes",
    "bot_downvotes",
    "verified_bot_upvotes",
    "verified_bot_downvotes",
    "review_count",
    "human_review_count",
    "bot_review_count",
    "verified_bot_review_count",
    "avg_rating",
    "avg_rating_human",
    "avg_rating_bot",
    "avg_rating_verified_bot",
)


class CachedSkill(Base):
    """Local mirror of one external catalog skill."""

    __tablename__ = "cached_skills"
    __table_args__ = (
        Index("idx_cached_skills_category_downloads", "category", "downloads"),
        Index("idx_cached_skills_hidden", "hidden"),
        Index("idx_cached_skills_last_synced", "last_synced_at"),
    )

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    external_id: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    author: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    author_handle: Mapped[str | None] = mapped_column(String(255), nullable=True)

    downloads: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    stars: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    installs: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    tags: Mapped[list[Any]] = mapped_column(PortableJSON, nullable=False, default=list)
    category: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    version: Mapped[str | None] = mapped_column(String(64), nullable=True)
    has_nix: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    external_created_at: Mapped[datetime | None] = mapped_column(nullable=True)
    external_updated_at: Mapped[datetime | None] = mapped_column(nullable=True)
    last_synced_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    hidden: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    hidden_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    hidden_at: Mapped[datetime | None] = mapped_column(nullable=True)

    upvotes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    downvotes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    human_upvotes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    human_downvotes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bot_upvotes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bot_downvotes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    verified_bot_upvotes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    verified_bot_downvotes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    review_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    human_review_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bot_review_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    verified_bot_review_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    avg_rating_human: Mapped[float | None] = mapped_column(Float, nullable=True)
    avg_rating_bot: Mapped[float | None] = mapped_column(Float, nullable=True)
    avg_rating_verified_bot: Mapped[float | None] = mapped_column(Float, nullable=True)

    @property
    def net_score(self) -> int:
        return self.upvotes - self.downvotes


class SyncState(Base):
    """Versioned checkpoint for the catalog sync job."""

    __tablename__ = "sync_states"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    key: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cursor: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=SyncStatus.IDLE.value)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_full_sync_at: Mapped[datetime | None] = mapped_column(nullable=True)
    last_incremental_sync_at: Mapped[datetime | None] = mapped_column(nullable=True)
    run_started_at: Mapped[datetime | None] = mapped_column(nullable=True)
    total_synced: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    category_counts: Mapped[dict[str, Any]] = mapped_column(PortableJSON, nullable=False, default=dict)
    tag_counts: Mapped[list[Any]] = mapped_column(PortableJSON, nullable=False, default=list)
    total_visible: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)


class StatBackfillState(Base):
    """Versioned checkpoint for the stat aggregator."""

    __tablename__ = "stat_backfill_states"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    key: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cursor: Mapped[str | None] = mapped_column(String(255), nullable=True)
    done_at: Mapped[datetime | None] = mapped_column(nullable=True)
    processed_in_pass: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
