"""Versioned sync checkpoint with compare-and-swap writes and the catalog summary."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from clawdtm.catalog.tags import meaningful_tags
from clawdtm.clock import NowFn, utcnow
from clawdtm.db import SessionFactory, session_scope
from clawdtm.errors import CheckpointConflictError
from clawdtm.models import CachedSkill, SyncState, SyncStatus

logger = logging.getLogger(__name__)

SYNC_STATE_KEY = "skills"
UNCATEGORIZED = "uncategorized"


@dataclass(frozen=True)
class SyncCheckpoint:
    """Immutable snapshot of a ``sync_states`` row."""

    key: str
    version: int
    cursor: str | None
    status: str
    last_error: str | None = None
    last_full_sync_at: datetime | None = None
    last_incremental_sync_at: datetime | None = None
    run_started_at: datetime | None = None
    total_synced: int = 0
    category_counts: dict[str, int] = field(default_factory=dict)
    tag_counts: list[dict[str, Any]] = field(default_factory=list)
    total_visible: int = 0
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: SyncState) -> SyncCheckpoint:
        return cls(
            key=row.key,
            version=row.version,
            cursor=row.cursor,
            status=row.status,
            last_error=row.last_error,
            last_full_sync_at=row.last_full_sync_at,
            last_incremental_sync_at=row.last_incremental_sync_at,
            run_started_at=row.run_started_at,
            total_synced=row.total_synced,
            category_counts=dict(row.category_counts or {}),
            tag_counts=list(row.tag_counts or []),
            total_visible=row.total_visible,
            updated_at=row.updated_at,
        )

    @property
    def is_running(self) -> bool:
        return self.status == SyncStatus.RUNNING.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "version": self.version,
            "cursor": self.cursor,
            "status": self.status,
            "last_error": self.last_error,
            "last_full_sync_at": self.last_full_sync_at,
            "last_incremental_sync_at": self.last_incremental_sync_at,
            "run_started_at": self.run_started_at,
            "total_synced": self.total_synced,
            "category_counts": self.category_counts,
            "tag_counts": self.tag_counts,
            "total_visible": self.total_visible,
            "updated_at": self.updated_at,
        }


@dataclass(frozen=True)
class CatalogSummary:
    """Counts over visible skills."""

    category_counts: dict[str, int]
    tag_counts: list[dict[str, Any]]
    total_visible: int


async def compute_summary(session: AsyncSession) -> CatalogSummary:
    """Count visible skills per category and per meaningful tag."""
    rows = await session.execute(select(CachedSkill.category, CachedSkill.tags).where(CachedSkill.hidden.is_(False)))
    categories: Counter[str] = Counter()
    tags: Counter[str] = Counter()
    total = 0
    for category, skill_tags in rows:
        total += 1
        categories[category or UNCATEGORIZED] += 1
        # one count per skill even if a tag repeats
        tags.update(set(meaningful_tags(skill_tags or [])))
    tag_counts = [{"tag": tag, "count": count} for tag, count in sorted(tags.items(), key=lambda item: (-item[1], item[0]))]
    return CatalogSummary(category_counts=dict(sorted(categories.items())), tag_counts=tag_counts, total_visible=total)


class SyncStateStore:
    """Checkpoint store for the catalog sync.

    Checkpoint writes are ``UPDATE ... WHERE version = :expected`` and bump the
    version; a write that matches no row raises ``CheckpointConflictError``.
    Summary refreshes do not bump the version because they never race the
    cursor.
    """

    def __init__(self, session_factory: SessionFactory, *, key: str = SYNC_STATE_KEY, now_fn: NowFn = utcnow) -> None:
        self._session_factory = session_factory
        self.key = key
        self._now = now_fn

    async def _ensure_row(self, session: AsyncSession) -> SyncState:
        row = await session.scalar(select(SyncState).where(SyncState.key == self.key))
        if row is not None:
            return row
        try:
            async with session.begin_nested():
                row = SyncState(key=self.key, version=0, status=SyncStatus.IDLE.value, updated_at=self._now())
                session.add(row)
                await session.flush()
        except IntegrityError:
            row = await session.scalar(select(SyncState).where(SyncState.key == self.key))
            if row is None:
                raise
        return row

    async def load(self) -> SyncCheckpoint:
        """Return the current checkpoint, creating an idle one if missing."""
        async with session_scope(self._session_factory) as session:
            row = await self._ensure_row(session)
            return SyncCheckpoint.from_row(row)

    async def _write(self, expected: SyncCheckpoint, **values: Any) -> SyncCheckpoint:
        values["version"] = expected.version + 1
        values["updated_at"] = self._now()
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                update(SyncState)
                .where(SyncState.key == self.key, SyncState.version == expected.version)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise CheckpointConflictError(self.key, expected.version)
        return replace(expected, **values)

    async def begin_run(self, expected: SyncCheckpoint, *, restart: bool = False) -> SyncCheckpoint:
        """Mark the run as started; ``restart`` drops the stored cursor first."""
        values: dict[str, Any] = {
            "status": SyncStatus.RUNNING.value,
            "run_started_at": self._now(),
            "last_error": None,
        }
        if restart or expected.cursor is None:
            values["cursor"] = None
            values["total_synced"] = 0
        return await self._write(expected, **values)

    async def advance(self, expected: SyncCheckpoint, cursor: str | None, synced: int) -> SyncCheckpoint:
        return await self._write(expected, cursor=cursor, total_synced=expected.total_synced + synced)

    async def release(self, expected: SyncCheckpoint) -> SyncCheckpoint:
        """End a run that used its budget; the cursor is kept for the next run."""
        return await self._write(expected, status=SyncStatus.IDLE.value, run_started_at=None)

    async def complete(self, expected: SyncCheckpoint, *, full: bool, synced: int = 0) -> SyncCheckpoint:
        """End a run that reached the end of the catalog."""
        now = self._now()
        values: dict[str, Any] = {
            "status": SyncStatus.IDLE.value,
            "cursor": None,
            "run_started_at": None,
            "last_error": None,
            "total_synced": expected.total_synced + synced,
        }
        values["last_full_sync_at" if full else "last_incremental_sync_at"] = now
        return await self._write(expected, **values)

    async def fail(self, expected: SyncCheckpoint, message: str) -> SyncCheckpoint:
        """Record an error; the cursor stays at the last applied page."""
        return await self._write(expected, status=SyncStatus.ERROR.value, last_error=message[:2000], run_started_at=None)

    async def reset(self) -> SyncCheckpoint:
        """Clear cursor and status so the next run starts a full pass."""
        current = await self.load()
        return await self._write(current, cursor=None, status=SyncStatus.IDLE.value, last_error=None, run_started_at=None)

    async def refresh_summary(self, session: AsyncSession | None = None) -> CatalogSummary:
        """Recompute the category/tag summary over visible skills and store it."""
        if session is None:
            async with session_scope(self._session_factory) as owned:
                return await self.refresh_summary(owned)
        summary = await compute_summary(session)
        await self._ensure_row(session)
        await session.execute(
            update(SyncState)
            .where(SyncState.key == self.key)
            .values(
                category_counts=summary.category_counts,
                tag_counts=summary.tag_counts,
                total_visible=summary.total_visible,
            )
            .execution_options(synchronize_session=False)
        )
        logger.debug("catalog summary refreshed total_visible=%d", summary.total_visible)
        return summary
