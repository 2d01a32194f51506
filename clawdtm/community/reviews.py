"""Star-rated reviews from humans and bot agents."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clawdtm.clock import NowFn, utcnow
from clawdtm.community.actors import Actor
from clawdtm.errors import ValidationFailedError
from clawdtm.models import BotAgent, CachedSkill, SkillReview
from clawdtm.stats import recompute_review_stats, review_stats_payload

UNVERIFIED_REVIEW_NOTE = "Your agent is unverified. Reviews are visible but may be filtered."
REVIEW_FILTERS = ("combined", "human", "bot")


@dataclass
class ReviewOutcome:
    """``action`` is one of created, updated, deleted, not_found."""

    action: str
    skill: CachedSkill
    review_id: UUID | None = None
    is_verified: bool | None = None
    is_bot: bool = False

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": True, "action": self.action}
        if self.review_id is not None:
            payload["review_id"] = str(self.review_id)
        if self.is_verified is not None:
            payload["is_verified"] = self.is_verified
            if self.is_bot and not self.is_verified and self.action == "created":
                payload["note"] = UNVERIFIED_REVIEW_NOTE
        return payload


def review_payload(review: SkillReview) -> dict[str, Any]:
    return {
        "id": str(review.id),
        "rating": review.rating,
        "review_text": review.review_text,
        "reviewer_type": review.reviewer_type,
        "reviewer_name": review.reviewer_name or "Anonymous",
        "is_verified": review.is_verified,
        "created_at": review.created_at,
        "updated_at": review.updated_at,
    }


class ReviewService:
    """One review per reviewer per skill; aggregates are recomputed after each change."""

    def __init__(
        self,
        *,
        min_rating: int = 1,
        max_rating: int = 5,
        max_text_length: int = 1000,
        default_list_limit: int = 50,
        now_fn: NowFn = utcnow,
    ) -> None:
        self.min_rating = min_rating
        self.max_rating = max_rating
        self.max_text_length = max_text_length
        self.default_list_limit = default_list_limit
        self._now = now_fn

    def validate(self, rating: Any, text: str | None) -> tuple[int, str]:
        """Reject before any write: integer rating in range, trimmed text within the length cap."""
        if (
            isinstance(rating, bool)
            or not isinstance(rating, (int, float))
            or (isinstance(rating, float) and not math.isfinite(rating))
            or int(rating) != rating
        ):
            raise ValidationFailedError(f"Rating must be an integer between {self.min_rating} and {self.max_rating}")
        rating = int(rating)
        if not self.min_rating <= rating <= self.max_rating:
            raise ValidationFailedError(f"Rating must be an integer between {self.min_rating} and {self.max_rating}")
        trimmed = (text or "").strip()
        if len(trimmed) > self.max_text_length:
            raise ValidationFailedError(f"Review must be at most {self.max_text_length} characters")
        return rating, trimmed

    async def _existing(self, session: AsyncSession, skill: CachedSkill, actor: Actor) -> SkillReview | None:
        stmt = select(SkillReview).where(SkillReview.skill_id == skill.id)
        if actor.is_bot:
            stmt = stmt.where(SkillReview.agent_id == actor.agent_id)
        else:
            stmt = stmt.where(SkillReview.user_id == actor.user_id)
        return await session.scalar(stmt)

    async def _touch_agent(self, session: AsyncSession, actor: Actor) -> None:
        if not actor.is_bot or actor.agent_id is None:
            return
        agent = await session.get(BotAgent, actor.agent_id)
        if agent is not None:
            now = self._now()
            agent.last_active_at = now
            agent.updated_at = now

    async def submit(self, session: AsyncSession, skill: CachedSkill, actor: Actor, rating: Any, text: str | None = "") -> ReviewOutcome:
        rating, trimmed = self.validate(rating, text)
        now = self._now()
        review = await self._existing(session, skill, actor)
        if review is not None:
            review.rating = rating
            review.review_text = trimmed
            review.reviewer_name = actor.display_name
            review.is_verified = actor.is_verified
            review.updated_at = now
            action = "updated"
        else:
            review = SkillReview(
                skill_id=skill.id,
                user_id=actor.user_id,
                agent_id=actor.agent_id,
                reviewer_type=actor.voter_type.value,
                is_verified=actor.is_verified,
                rating=rating,
                review_text=trimmed,
                reviewer_name=actor.display_name,
                created_at=now,
                updated_at=now,
            )
            session.add(review)
            action = "created"
        await session.flush()
        await self._touch_agent(session, actor)
        await recompute_review_stats(session, skill)
        await session.flush()
        return ReviewOutcome(action=action, skill=skill, review_id=review.id, is_verified=actor.is_verified, is_bot=actor.is_bot)

    async def delete(self, session: AsyncSession, skill: CachedSkill, actor: Actor) -> ReviewOutcome:
        review = await self._existing(session, skill, actor)
        if review is None:
            return ReviewOutcome(action="not_found", skill=skill)
        await session.delete(review)
        await session.flush()
        await recompute_review_stats(session, skill)
        await session.flush()
        return ReviewOutcome(action="deleted", skill=skill)

    async def list_for_skill(
        self,
        session: AsyncSession,
        skill: CachedSkill,
        *,
        filter: str = "combined",
        limit: int | None = None,
    ) -> dict[str, Any]:
        """Newest first, optionally only human or only bot reviews."""
        if filter not in REVIEW_FILTERS:
            raise ValidationFailedError("Invalid filter", hint="filter must be one of combined, human, bot")
        limit = self.default_list_limit if limit is None else max(1, min(int(limit), 500))
        stmt = select(SkillReview).where(SkillReview.skill_id == skill.id)
        if filter != "combined":
            stmt = stmt.where(SkillReview.reviewer_type == filter)
        stmt = stmt.order_by(SkillReview.created_at.desc(), SkillReview.id).limit(limit)
        reviews = (await session.scalars(stmt)).all()
        return {
            "skill_id": str(skill.id),
            "slug": skill.slug,
            "filter": filter,
            "reviews": [review_payload(review) for review in reviews],
            "stats": self.stats(skill),
        }

    def stats(self, skill: CachedSkill) -> dict[str, Any]:
        return review_stats_payload(skill)
