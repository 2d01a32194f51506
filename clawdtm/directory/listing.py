"""Public skills directory: listing, filtering, search and detail views."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from clawdtm.clock import NowFn, utcnow
from clawdtm.errors import NotFoundError, ValidationFailedError
from clawdtm.models import CachedSkill
from clawdtm.stats import review_stats_payload, vote_breakdown_payload

FEATURED_SLUGS: tuple[str, ...] = (
    "web-search",
    "gog",
    "notion",
    "bird",
    "perplexity",
    "nano-banana-pro",
    "weather",
    "gifgrep",
    "goplaces",
    "github",
    "summarize",
)
VERIFIED_SLUGS: tuple[str, ...] = ("gog",)
LATEST_WINDOW = timedelta(hours=24)

SORT_OPTIONS = ("downloads", "stars", "installs", "recent", "votes", "rating")
SEARCH_SORT_OPTIONS = ("relevance", "downloads", "stars", "installs")
MAX_PAGE_SIZE = 200


def skill_summary(skill: CachedSkill) -> dict[str, Any]:
    return {
        "id": str(skill.id),
        "slug": skill.slug,
        "name": skill.name or skill.slug,
        "description": skill.description,
        "author": skill.author or skill.author_handle or "unknown",
        "author_handle": skill.author_handle,
        "downloads": skill.downloads,
        "stars": skill.stars,
        "installs": skill.installs,
        "tags": list(skill.tags or []),
        "category": skill.category,
        "version": skill.version,
        "has_nix": skill.has_nix,
        "upvotes": skill.upvotes,
        "downvotes": skill.downvotes,
        "net_score": skill.net_score,
        "review_count": skill.review_count,
        "avg_rating": skill.avg_rating,
        "updated_at": skill.external_updated_at or skill.last_synced_at,
    }


def skill_detail(skill: CachedSkill) -> dict[str, Any]:
    detail = skill_summary(skill)
    detail["skill_id"] = detail["id"]
    detail["votes"] = vote_breakdown_payload(skill)
    detail["reviews"] = review_stats_payload(skill)
    detail["created_at"] = skill.external_created_at
    detail["last_synced_at"] = skill.last_synced_at
    return detail


def score_skill(skill: CachedSkill, term: str, *, with_popularity: bool = True) -> float:
    """Relevance of ``skill`` for an already lowercased, trimmed search term."""
    slug = skill.slug.lower()
    name = (skill.name or skill.slug).lower()
    description = (skill.description or "").lower()
    author = (skill.author or "").lower()

    score = 0.0
    if slug == term:
        score += 100
    elif slug.startswith(term):
        score += 50
    elif term in slug:
        score += 30

    if name == term:
        score += 80
    elif name.startswith(term):
        score += 40
    elif term in name:
        score += 20

    if term in description:
        score += 10
    if term in author:
        score += 15

    if score > 0 and with_popularity:
        score += min(skill.stars * 2, 20)
        score += min(skill.downloads / 10, 10)
    return score


@dataclass
class SkillPage:
    skills: list[CachedSkill]
    total_count: int
    offset: int
    limit: int

    @property
    def has_more(self) -> bool:
        return self.offset + self.limit < self.total_count

    def to_payload(self) -> dict[str, Any]:
        return {
            "success": True,
            "skills": [skill_summary(skill) for skill in self.skills],
            "total_count": self.total_count,
            "has_more": self.has_more,
            "next_offset": self.offset + self.limit if self.has_more else None,
        }


class SkillDirectory:
    """Read-side queries over visible cached skills."""

    def __init__(self, *, now_fn: NowFn = utcnow) -> None:
        self._now = now_fn

    async def list_skills(
        self,
        session: AsyncSession,
        *,
        category: str | None = None,
        tags: list[str] | None = None,
        has_nix: bool | None = None,
        sort_by: str = "downloads",
        limit: int = 50,
        offset: int = 0,
    ) -> SkillPage:
        if sort_by not in SORT_OPTIONS:
            raise ValidationFailedError("Invalid sort", hint=f"sort must be one of {', '.join(SORT_OPTIONS)}")
        limit = max(1, min(int(limit), MAX_PAGE_SIZE))
        offset = max(0, int(offset))
        updated = func.coalesce(CachedSkill.external_updated_at, CachedSkill.last_synced_at)

        stmt = select(CachedSkill).where(CachedSkill.hidden.is_(False))
        category = (category or "").strip().lower() or None
        if category and category != "all":
            if category == "featured":
                stmt = stmt.where(CachedSkill.slug.in_(FEATURED_SLUGS))
            elif category == "verified":
                stmt = stmt.where(CachedSkill.slug.in_(VERIFIED_SLUGS))
            elif category == "latest":
                stmt = stmt.where(updated >= self._now() - LATEST_WINDOW)
                sort_by = "recent"
            else:
                stmt = stmt.where(CachedSkill.category == category)
        if has_nix is not None:
            stmt = stmt.where(CachedSkill.has_nix.is_(has_nix))

        if sort_by == "recent":
            stmt = stmt.order_by(updated.is_(None), updated.desc())
        elif sort_by == "votes":
            stmt = stmt.order_by((CachedSkill.upvotes - CachedSkill.downvotes).desc(), CachedSkill.downloads.desc())
        elif sort_by == "rating":
            stmt = stmt.order_by(
                CachedSkill.avg_rating.is_(None), CachedSkill.avg_rating.desc(), CachedSkill.review_count.desc()
            )
        else:
            stmt = stmt.order_by(getattr(CachedSkill, sort_by).desc())
        stmt = stmt.order_by(CachedSkill.slug.asc())

        wanted = {tag.strip().lower() for tag in tags or [] if tag and tag.strip()}
        if wanted:
            # tag membership is filtered in Python; JSON containment differs per backend
            candidates = (await session.scalars(stmt)).all()
            matching = [skill for skill in candidates if wanted.intersection(skill.tags or [])]
            return SkillPage(skills=matching[offset : offset + limit], total_count=len(matching), offset=offset, limit=limit)

        total = await session.scalar(select(func.count()).select_from(stmt.order_by(None).subquery())) or 0
        skills = (await session.scalars(stmt.offset(offset).limit(limit))).all()
        return SkillPage(skills=list(skills), total_count=int(total), offset=offset, limit=limit)

    async def search(
        self,
        session: AsyncSession,
        query: str,
        *,
        limit: int = 30,
        sort_by: str = "relevance",
    ) -> list[tuple[CachedSkill, float]]:
        """Score every visible skill against ``query``; zero scores are dropped."""
        if sort_by not in SEARCH_SORT_OPTIONS:
            raise ValidationFailedError("Invalid sort", hint=f"sort must be one of {', '.join(SEARCH_SORT_OPTIONS)}")
        term = (query or "").strip().lower()
        if not term:
            return []
        skills = (await session.scalars(select(CachedSkill).where(CachedSkill.hidden.is_(False)))).all()
        scored: list[tuple[CachedSkill, float]] = []
        for skill in skills:
            score = score_skill(skill, term, with_popularity=sort_by == "relevance")
            if score > 0:
                scored.append((skill, score))
        if sort_by == "relevance":
            scored.sort(key=lambda item: (-item[1], item[0].slug))
        else:
            scored.sort(key=lambda item: (-getattr(item[0], sort_by), item[0].slug))
        return scored[: max(1, min(int(limit), MAX_PAGE_SIZE))]

    async def get_by_slug(self, session: AsyncSession, slug: str, *, include_hidden: bool = False) -> CachedSkill:
        skill = await session.scalar(select(CachedSkill).where(CachedSkill.slug == slug))
        if skill is None or (skill.hidden and not include_hidden):
            raise NotFoundError("Skill not found", hint=f'No skill with slug "{slug}"')
        return skill

    async def resolve(self, session: AsyncSession, *, slug: str | None = None, skill_id: str | None = None) -> CachedSkill:
        """Find a visible skill by slug or id, as agent requests identify skills either way."""
        if slug:
            return await self.get_by_slug(session, slug)
        if skill_id:
            try:
                parsed = UUID(str(skill_id))
            except ValueError:
                raise NotFoundError("Skill not found", hint=f'No skill with id "{skill_id}"') from None
            skill = await session.get(CachedSkill, parsed)
            if skill is None or skill.hidden:
                raise NotFoundError("Skill not found", hint=f'No skill with id "{skill_id}"')
            return skill
        raise ValidationFailedError("Missing skill identifier", hint="Provide either slug or skill_id in request body")
