"""Moderator hide/unhide of skills."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clawdtm.catalog.state import SyncStateStore
from clawdtm.clock import NowFn, utcnow
from clawdtm.errors import NotFoundError
from clawdtm.models import CachedSkill

logger = logging.getLogger(__name__)

DEFAULT_HIDE_REASON = "Hidden by moderator"


class ModerationService:
    """Hidden skills drop out of every public view and out of the catalog summary."""

    def __init__(self, store: SyncStateStore, *, now_fn: NowFn = utcnow) -> None:
        self.store = store
        self._now = now_fn

    async def _get(self, session: AsyncSession, slug: str) -> CachedSkill:
        skill = await session.scalar(select(CachedSkill).where(CachedSkill.slug == slug))
        if skill is None:
            raise NotFoundError(f"Skill not found: {slug}")
        return skill

    async def hide(self, session: AsyncSession, slug: str, reason: str | None = None) -> CachedSkill:
        skill = await self._get(session, slug)
        skill.hidden = True
        skill.hidden_reason = (reason or "").strip() or DEFAULT_HIDE_REASON
        skill.hidden_at = self._now()
        await session.flush()
        await self.store.refresh_summary(session)
        logger.info("skill hidden slug=%s reason=%s", slug, skill.hidden_reason)
        return skill

    async def unhide(self, session: AsyncSession, slug: str) -> CachedSkill:
        skill = await self._get(session, slug)
        skill.hidden = False
        skill.hidden_reason = None
        skill.hidden_at = None
        await session.flush()
        await self.store.refresh_summary(session)
        logger.info("skill unhidden slug=%s", slug)
        return skill

    async def list_hidden(self, session: AsyncSession) -> list[dict[str, Any]]:
        skills = await session.scalars(
            select(CachedSkill).where(CachedSkill.hidden.is_(True)).order_by(CachedSkill.hidden_at.desc(), CachedSkill.slug)
        )
        return [
            {
                "slug": skill.slug,
                "name": skill.name or skill.slug,
                "hidden_reason": skill.hidden_reason,
                "hidden_at": skill.hidden_at,
            }
            for skill in skills.all()
        ]
