"""Ranked leaderboard snapshots over visible skills."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clawdtm.clock import NowFn, to_epoch_ms, utcnow
from clawdtm.db import SessionFactory, session_scope
from clawdtm.logs import log_json
from clawdtm.models import CachedSkill, SkillLeaderboard

logger = logging.getLogger(__name__)

_DAY_MS = 86_400_000


def _installs_score(skill: CachedSkill) -> tuple[int, int]:
    return skill.installs, skill.downloads


def _downloads_score(skill: CachedSkill) -> tuple[int, int]:
    return skill.downloads, skill.installs


def _community_score(skill: CachedSkill) -> tuple[int, int]:
    return skill.net_score + skill.review_count, skill.downloads


# kind -> (score, tie-break) for one skill
LEADERBOARD_KINDS: dict[str, Callable[[CachedSkill], tuple[int, int]]] = {
    "installs": _installs_score,
    "downloads": _downloads_score,
    "community": _community_score,
}


class LeaderboardBuilder:
    """Store one ranked snapshot per kind per rebuild."""

    def __init__(self, session_factory: SessionFactory, *, now_fn: NowFn = utcnow) -> None:
        self._session_factory = session_factory
        self._now = now_fn

    async def rebuild(self, kinds: Iterable[str] | None = None, size: int = 50) -> dict[str, int]:
        selected = list(kinds) if kinds is not None else list(LEADERBOARD_KINDS)
        unknown = [kind for kind in selected if kind not in LEADERBOARD_KINDS]
        if unknown:
            raise ValueError(f"unknown leaderboard kind(s): {', '.join(unknown)}")
        now = self._now()
        day = to_epoch_ms(now) // _DAY_MS
        written: dict[str, int] = {}
        async with session_scope(self._session_factory) as session:
            skills = list((await session.scalars(select(CachedSkill).where(CachedSkill.hidden.is_(False)))).all())
            for kind in selected:
                score_fn = LEADERBOARD_KINDS[kind]
                ranked = sorted(skills, key=lambda skill: (*(-part for part in score_fn(skill)), skill.slug))
                items = [
                    {
                        "rank": position,
                        "skill_id": str(skill.id),
                        "slug": skill.slug,
                        "name": skill.name,
                        "score": score_fn(skill)[0],
                        "installs": skill.installs,
                        "downloads": skill.downloads,
                    }
                    for position, skill in enumerate(ranked[: max(int(size), 1)], start=1)
                ]
                session.add(
                    SkillLeaderboard(kind=kind, generated_at=now, range_start_day=day, range_end_day=day, items=items)
                )
                written[kind] = len(items)
        log_json(logger, logging.INFO, "leaderboard_rebuilt", kinds=written)
        return written

    async def latest(self, kind: str, session: AsyncSession | None = None) -> dict[str, Any] | None:
        """Most recent snapshot for ``kind``, or None when none was built yet."""
        if session is None:
            async with session_scope(self._session_factory) as owned:
                return await self.latest(kind, owned)
        row = await session.scalar(
            select(SkillLeaderboard)
            .where(SkillLeaderboard.kind == kind)
            .order_by(SkillLeaderboard.generated_at.desc())
            .limit(1)
        )
        if row is None:
            return None
        return {"kind": row.kind, "generated_at": row.generated_at, "items": list(row.items)}
