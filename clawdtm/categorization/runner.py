"""Batch categorization of uncategorized skills."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy import or_, select

from clawdtm.catalog.state import UNCATEGORIZED, SyncStateStore
from clawdtm.categorization.classifier import KEYWORD_MODEL, SkillClassifier
from clawdtm.clock import NowFn, utcnow
from clawdtm.db import SessionFactory, session_scope
from clawdtm.logs import log_json
from clawdtm.models import CachedSkill, CategorizationLog, CategorizationStatus

logger = logging.getLogger(__name__)


@dataclass
class CategorizationReport:
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
        }


class CategorizationRunner:
    """Categorize visible skills with no category; one log row per attempt."""

    def __init__(
        self,
        session_factory: SessionFactory,
        classifier: SkillClassifier,
        store: SyncStateStore,
        *,
        now_fn: NowFn = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self.classifier = classifier
        self.store = store
        self._now = now_fn

    async def pending(self, limit: int) -> list[CachedSkill]:
        async with session_scope(self._session_factory) as session:
            stmt = (
                select(CachedSkill)
                .where(
                    CachedSkill.hidden.is_(False),
                    or_(CachedSkill.category.is_(None), CachedSkill.category == UNCATEGORIZED),
                )
                .order_by(CachedSkill.downloads.desc(), CachedSkill.slug)
                .limit(limit)
            )
            return list((await session.scalars(stmt)).all())

    async def run(self, limit: int = 20) -> CategorizationReport:
        report = CategorizationReport()
        for skill in await self.pending(limit):
            report.processed += 1
            started = time.monotonic()
            try:
                result = await self.classifier.classify(skill)
            except Exception as exc:
                report.failed += 1
                logger.warning("categorization failed slug=%s error=%s", skill.slug, exc)
                await self._log_error(skill, str(exc), int((time.monotonic() - started) * 1000))
                continue
            duration_ms = int((time.monotonic() - started) * 1000)
            async with session_scope(self._session_factory) as session:
                current = await session.get(CachedSkill, skill.id)
                if current is None or current.hidden or current.category not in (None, UNCATEGORIZED):
                    report.skipped += 1
                    status = CategorizationStatus.SKIPPED
                else:
                    current.category = result.category
                    if result.tags:
                        current.tags = result.tags
                    current.updated_at = self._now()
                    report.succeeded += 1
                    status = CategorizationStatus.SUCCESS
                session.add(
                    CategorizationLog(
                        skill_id=skill.id,
                        skill_slug=skill.slug,
                        assigned_category=result.category,
                        assigned_tags=result.tags,
                        reasoning=result.reasoning,
                        model=result.model,
                        input_tokens=result.input_tokens,
                        output_tokens=result.output_tokens,
                        duration_ms=duration_ms,
                        status=status.value,
                        created_at=self._now(),
                    )
                )
        if report.succeeded:
            await self.store.refresh_summary()
        log_json(logger, logging.INFO, "categorization_run", **report.to_dict())
        return report

    async def _log_error(self, skill: CachedSkill, message: str, duration_ms: int) -> None:
        async with session_scope(self._session_factory) as session:
            session.add(
                CategorizationLog(
                    skill_id=skill.id,
                    skill_slug=skill.slug,
                    reasoning="",
                    model=self._model_name(),
                    duration_ms=duration_ms,
                    status=CategorizationStatus.ERROR.value,
                    error_message=message[:2000],
                    created_at=self._now(),
                )
            )

    def _model_name(self) -> str:
        if self.classifier.llm is None:
            return KEYWORD_MODEL
        return self.classifier.llm.settings.model

    async def history(self, skill_id: UUID, limit: int = 20) -> list[CategorizationLog]:
        async with session_scope(self._session_factory) as session:
            stmt = (
                select(CategorizationLog)
                .where(CategorizationLog.skill_id == skill_id)
                .order_by(CategorizationLog.created_at.desc())
                .limit(limit)
            )
            return list((await session.scalars(stmt)).all())
