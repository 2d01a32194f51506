"""Catalog sync job: fetch pages, reconcile, checkpoint."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from sqlalchemy import or_, select

from clawdtm.catalog.client import CatalogClient
from clawdtm.catalog.reconciler import DEFAULT_AUTHOR, ReconcileResult, Reconciler
from clawdtm.catalog.state import SyncCheckpoint, SyncStateStore
from clawdtm.clock import NowFn, utcnow
from clawdtm.config.models import SyncConfig
from clawdtm.db import SessionFactory, session_scope
from clawdtm.errors import CatalogFetchError, CheckpointConflictError
from clawdtm.logs import log_json
from clawdtm.models import CachedSkill

logger = logging.getLogger(__name__)

MODE_INCREMENTAL = "incremental"
MODE_FULL = "full"
COMMUNITY_AUTHOR = "community"

SleepFn = Callable[[float], Awaitable[Any]]


@dataclass
class SyncReport:
    """Outcome of one sync invocation."""

    mode: str
    status: str = "completed"
    skipped: str | None = None
    batches: int = 0
    records: ReconcileResult = field(default_factory=ReconcileResult)
    cursor: str | None = None
    has_more: bool = False
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "status": self.status,
            "skipped": self.skipped,
            "batches": self.batches,
            "records": self.records.to_dict(),
            "cursor": self.cursor,
            "has_more": self.has_more,
            "error": self.error,
        }


@dataclass
class EnrichReport:
    """Outcome of one author enrichment pass."""

    checked: int = 0
    updated: int = 0
    failed: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"checked": self.checked, "updated": self.updated, "failed": self.failed}


class CatalogSync:
    """Run the catalog mirror in incremental or full mode.

    Incremental runs resume from the stored cursor and stop after a bounded
    number of pages. Full runs start from the beginning, pause between pages
    and tolerate a few consecutive page failures before giving up. Either way
    a failure leaves the cursor at the last applied page and never propagates
    to the caller.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        client: CatalogClient,
        *,
        config: SyncConfig | None = None,
        reconciler: Reconciler | None = None,
        store: SyncStateStore | None = None,
        now_fn: NowFn = utcnow,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._session_factory = session_factory
        self.client = client
        self.config = config or SyncConfig()
        self._now = now_fn
        self._sleep = sleep
        self.reconciler = reconciler or Reconciler(
            touch_interval=timedelta(minutes=self.config.touch_interval_minutes), now_fn=now_fn
        )
        self.store = store or SyncStateStore(session_factory, now_fn=now_fn)

    def _is_stale(self, state: SyncCheckpoint) -> bool:
        if state.run_started_at is None:
            return True
        return self._now() - state.run_started_at > timedelta(minutes=self.config.stale_run_minutes)

    async def run(self, max_batches: int | None = None, mode: str = MODE_INCREMENTAL) -> SyncReport:
        if mode not in (MODE_INCREMENTAL, MODE_FULL):
            raise ValueError(f"unknown sync mode: {mode}")
        report = SyncReport(mode=mode)
        state = await self.store.load()

        if state.is_running:
            if not self._is_stale(state):
                report.status = "skipped"
                report.skipped = "already_running"
                report.cursor = state.cursor
                return report
            logger.warning("recovering stale sync run started_at=%s", state.run_started_at)
            try:
                state = await self.store.release(state)
            except CheckpointConflictError:
                report.status = "skipped"
                report.skipped = "checkpoint_conflict"
                return report

        start_cursor = None if mode == MODE_FULL else state.cursor
        if mode == MODE_INCREMENTAL and start_cursor is None and state.last_full_sync_at is not None:
            if self._now() - state.last_full_sync_at < timedelta(minutes=self.config.recent_full_sync_minutes):
                report.status = "skipped"
                report.skipped = "recent_full_sync"
                return report

        try:
            state = await self.store.begin_run(state, restart=mode == MODE_FULL)
        except CheckpointConflictError:
            report.status = "skipped"
            report.skipped = "checkpoint_conflict"
            return report

        if max_batches is None:
            max_batches = self.config.full_max_batches if mode == MODE_FULL else self.config.max_batches
        try:
            return await self._run_pages(state, report, start_cursor, max(int(max_batches), 1))
        except CheckpointConflictError as exc:
            # another writer owns the checkpoint now; leave it alone
            report.status = "error"
            report.error = exc.message
            log_json(logger, logging.WARNING, "sync_conflict", mode=mode, error=exc.message)
            return report

    async def _run_pages(self, state: SyncCheckpoint, report: SyncReport, cursor: str | None, max_batches: int) -> SyncReport:
        full_pass = cursor is None
        consecutive_errors = 0
        for batch in range(max_batches):
            if report.mode == MODE_FULL and batch > 0 and self.config.full_inter_batch_delay_seconds:
                await self._sleep(self.config.full_inter_batch_delay_seconds)
            try:
                page = await self.client.fetch_page(cursor)
                async with session_scope(self._session_factory) as session:
                    applied = await self.reconciler.apply(session, page.records)
            except CatalogFetchError as exc:
                consecutive_errors += 1
                if report.mode == MODE_FULL and consecutive_errors < self.config.full_max_consecutive_errors:
                    logger.warning("catalog page failed, retrying cursor=%s errors=%d", cursor, consecutive_errors)
                    continue
                return await self._fail(state, report, exc.message, cursor)
            except Exception as exc:
                logger.exception("catalog sync failed cursor=%s", cursor)
                return await self._fail(state, report, f"{type(exc).__name__}: {exc}", cursor)

            consecutive_errors = 0
            report.batches += 1
            report.records.merge(applied)
            if page.has_more and page.next_cursor:
                cursor = page.next_cursor
                state = await self.store.advance(state, cursor, applied.processed)
                continue

            state = await self.store.complete(state, full=full_pass, synced=applied.processed)
            await self.store.refresh_summary()
            report.cursor = None
            report.has_more = False
            log_json(logger, logging.INFO, "sync_completed", mode=report.mode, full=full_pass, **report.records.to_dict())
            return report

        await self.store.release(state)
        report.status = "partial"
        report.cursor = cursor
        report.has_more = True
        log_json(logger, logging.INFO, "sync_paused", mode=report.mode, cursor=cursor, **report.records.to_dict())
        return report

    async def _fail(self, state: SyncCheckpoint, report: SyncReport, message: str, cursor: str | None) -> SyncReport:
        await self.store.fail(state, message)
        report.status = "error"
        report.error = message
        report.cursor = cursor
        log_json(logger, logging.ERROR, "sync_failed", mode=report.mode, cursor=cursor, error=message)
        return report

    async def enrich_authors(self, limit: int = 50) -> EnrichReport:
        """Fill in authors for skills the catalog listing left anonymous."""
        report = EnrichReport()
        async with session_scope(self._session_factory) as session:
            rows = await session.execute(
                select(CachedSkill.id, CachedSkill.slug)
                .where(or_(CachedSkill.author.is_(None), CachedSkill.author == "", CachedSkill.author == DEFAULT_AUTHOR))
                .order_by(CachedSkill.slug)
                .limit(max(int(limit), 0))
            )
            pending = list(rows)

        for index, (skill_id, slug) in enumerate(pending):
            if index > 0 and self.config.enrich_delay_seconds:
                await self._sleep(self.config.enrich_delay_seconds)
            report.checked += 1
            try:
                detail = await self.client.fetch_skill_detail(slug)
            except CatalogFetchError as exc:
                report.failed += 1
                logger.warning("author enrichment failed slug=%s error=%s", slug, exc.message)
                continue
            author, handle = _author_from_detail(detail)
            async with session_scope(self._session_factory) as session:
                skill = await session.get(CachedSkill, skill_id)
                if skill is None:
                    continue
                skill.author = author
                skill.author_handle = handle
            report.updated += 1
        log_json(logger, logging.INFO, "authors_enriched", **report.to_dict())
        return report


def _author_from_detail(detail: dict[str, Any] | None) -> tuple[str, str | None]:
    if not detail:
        return COMMUNITY_AUTHOR, None
    owner = detail.get("owner") if isinstance(detail.get("owner"), dict) else {}
    skill = detail.get("skill") if isinstance(detail.get("skill"), dict) else {}
    handle = owner.get("handle") or skill.get("ownerHandle") or None
    name = owner.get("displayName") or owner.get("name") or handle
    return (name or COMMUNITY_AUTHOR), handle
