"""Resumable stat backfill over every cached skill."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from clawdtm.clock import NowFn, utcnow
from clawdtm.db import SessionFactory, session_scope
from clawdtm.errors import CheckpointConflictError
from clawdtm.logs import log_json
from clawdtm.models import CachedSkill, StatBackfillState
from clawdtm.stats.aggregates import recompute_skill_stats

logger = logging.getLogger(__name__)

BACKFILL_STATE_KEY = "skill_stats"


@dataclass
class BackfillReport:
    """Outcome of one aggregator invocation."""

    processed: int = 0
    batches: int = 0
    completed: bool = False
    cursor: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"processed": self.processed, "batches": self.batches, "completed": self.completed, "cursor": self.cursor}


class StatAggregator:
    """Walk skills in slug order, recomputing aggregates a bounded batch at a time.

    The cursor is the last processed slug. Each batch and its cursor advance
    commit together, so an interrupted run resumes exactly where it stopped.
    After the last skill the cursor is cleared and ``done_at`` is stamped; the
    next invocation starts a new pass.
    """

    def __init__(self, session_factory: SessionFactory, *, key: str = BACKFILL_STATE_KEY, now_fn: NowFn = utcnow) -> None:
        self._session_factory = session_factory
        self.key = key
        self._now = now_fn

    async def _load(self, session: AsyncSession) -> StatBackfillState:
        row = await session.scalar(select(StatBackfillState).where(StatBackfillState.key == self.key))
        if row is not None:
            return row
        try:
            async with session.begin_nested():
                row = StatBackfillState(key=self.key, version=0, updated_at=self._now())
                session.add(row)
                await session.flush()
        except IntegrityError:
            row = await session.scalar(select(StatBackfillState).where(StatBackfillState.key == self.key))
            if row is None:
                raise
        return row

    async def state(self) -> dict[str, Any]:
        async with session_scope(self._session_factory) as session:
            row = await self._load(session)
            return {
                "key": row.key,
                "version": row.version,
                "cursor": row.cursor,
                "done_at": row.done_at,
                "processed_in_pass": row.processed_in_pass,
            }

    async def _checkpoint(self, session: AsyncSession, expected_version: int, **values: Any) -> int:
        values["version"] = expected_version + 1
        values["updated_at"] = self._now()
        result = await session.execute(
            update(StatBackfillState)
            .where(StatBackfillState.key == self.key, StatBackfillState.version == expected_version)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise CheckpointConflictError(self.key, expected_version)
        return expected_version + 1

    async def run(self, batch_size: int = 100, max_batches: int = 5) -> BackfillReport:
        batch_size = max(int(batch_size), 1)
        report = BackfillReport()
        for _ in range(max(int(max_batches), 1)):
            async with session_scope(self._session_factory) as session:
                row = await self._load(session)
                version, cursor, processed_in_pass = row.version, row.cursor, row.processed_in_pass
                if cursor is None:
                    # new pass
                    processed_in_pass = 0
                stmt = select(CachedSkill).order_by(CachedSkill.slug).limit(batch_size)
                if cursor is not None:
                    stmt = stmt.where(CachedSkill.slug > cursor)
                skills = list((await session.scalars(stmt)).all())
                for skill in skills:
                    await recompute_skill_stats(session, skill)
                processed_in_pass += len(skills)
                if len(skills) < batch_size:
                    await self._checkpoint(
                        session, version, cursor=None, done_at=self._now(), processed_in_pass=processed_in_pass
                    )
                    report.completed = True
                    report.cursor = None
                else:
                    report.cursor = skills[-1].slug
                    await self._checkpoint(session, version, cursor=report.cursor, processed_in_pass=processed_in_pass)
            report.batches += 1
            report.processed += len(skills)
            log_json(logger, logging.INFO, "backfill_batch", key=self.key, size=len(skills), cursor=report.cursor)
            if report.completed:
                break
        return report
