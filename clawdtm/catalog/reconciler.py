"""Merge catalog records into ``cached_skills`` without touching local fields."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import asdict, dataclass
from datetime import timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clawdtm.catalog.records import CatalogRecord
from clawdtm.clock import NowFn, utcnow
from clawdtm.errors import RecordValidationError
from clawdtm.models import CachedSkill

logger = logging.getLogger(__name__)

DEFAULT_AUTHOR = "unknown"

# Catalog fields a record may omit; a missing value keeps what is stored.
_KEEP_WHEN_MISSING = ("author", "author_handle")


@dataclass
class ReconcileResult:
    """Per-batch outcome counts."""

    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    touched: int = 0
    skipped: int = 0

    @property
    def processed(self) -> int:
        return self.inserted + self.updated + self.unchanged + self.touched

    def merge(self, other: ReconcileResult) -> None:
        self.inserted += other.inserted
        self.updated += other.updated
        self.unchanged += other.unchanged
        self.touched += other.touched
        self.skipped += other.skipped

    def to_dict(self) -> dict[str, int]:
        return {**asdict(self), "processed": self.processed}


class Reconciler:
    """Upsert catalog records by external id, falling back to slug.

    Only catalog-owned columns are written on update. ``category`` is written
    only when the record carries one, so categorizer output survives a re-sync.
    Each record runs in its own SAVEPOINT: a failing record rolls back alone.
    """

    def __init__(self, *, touch_interval: timedelta = timedelta(hours=1), now_fn: NowFn = utcnow) -> None:
        self.touch_interval = touch_interval
        self._now = now_fn

    async def apply(self, session: AsyncSession, records: Iterable[Any]) -> ReconcileResult:
        result = ReconcileResult()
        for index, item in enumerate(records):
            try:
                record = item if isinstance(item, CatalogRecord) else CatalogRecord.from_payload(item)
            except RecordValidationError as exc:
                result.skipped += 1
                logger.warning("skipping malformed catalog record index=%d slug=%s error=%s", index, exc.slug, exc.message)
                continue
            try:
                async with session.begin_nested():
                    outcome = await self._apply_one(session, record)
            except SQLAlchemyError as exc:
                result.skipped += 1
                logger.warning("failed to reconcile catalog record slug=%s error=%s", record.slug, exc)
                continue
            setattr(result, outcome, getattr(result, outcome) + 1)
        return result

    async def _find_existing(self, session: AsyncSession, record: CatalogRecord) -> CachedSkill | None:
        if record.external_id:
            found = await session.scalar(select(CachedSkill).where(CachedSkill.external_id == record.external_id))
            if found is not None:
                return found
        return await session.scalar(select(CachedSkill).where(CachedSkill.slug == record.slug))

    async def _apply_one(self, session: AsyncSession, record: CatalogRecord) -> str:
        now = self._now()
        fields = record.catalog_fields()
        existing = await self._find_existing(session, record)
        if existing is None:
            skill = CachedSkill(**fields, category=record.category, last_synced_at=now)
            if not skill.author:
                skill.author = DEFAULT_AUTHOR
            session.add(skill)
            await session.flush()
            return "inserted"

        for key in _KEEP_WHEN_MISSING:
            if fields[key] is None:
                fields.pop(key)
        if record.category is not None:
            fields["category"] = record.category
        changed = {key: value for key, value in fields.items() if getattr(existing, key) != value}
        if changed:
            for key, value in changed.items():
                setattr(existing, key, value)
            existing.last_synced_at = now
            await session.flush()
            return "updated"
        if existing.last_synced_at is None or now - existing.last_synced_at >= self.touch_interval:
            existing.last_synced_at = now
            await session.flush()
            return "touched"
        return "unchanged"
