"""Recompute per-skill review and vote aggregates from the raw rows."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from clawdtm.models import CachedSkill, SkillReview, SkillVote, VoterType, VoteValue


@dataclass
class _RatingBucket:
    count: int = 0
    total: int = 0

    def add(self, count: int, total: int) -> None:
        self.count += count
        self.total += total

    @property
    def average(self) -> float | None:
        if self.count == 0:
            return None
        return self.total / self.count


async def recompute_review_stats(session: AsyncSession, skill: CachedSkill) -> None:
    """Review counts and averages split by reviewer type; averages are None without reviews."""
    rows = await session.execute(
        select(SkillReview.reviewer_type, SkillReview.is_verified, func.count(), func.coalesce(func.sum(SkillReview.rating), 0))
        .where(SkillReview.skill_id == skill.id)
        .group_by(SkillReview.reviewer_type, SkillReview.is_verified)
    )
    combined, human, bot, verified_bot = _RatingBucket(), _RatingBucket(), _RatingBucket(), _RatingBucket()
    for reviewer_type, is_verified, count, total in rows:
        count, total = int(count), int(total)
        combined.add(count, total)
        if reviewer_type == VoterType.HUMAN.value:
            human.add(count, total)
        elif reviewer_type == VoterType.BOT.value:
            bot.add(count, total)
            if is_verified:
                verified_bot.add(count, total)

    skill.review_count = combined.count
    skill.human_review_count = human.count
    skill.bot_review_count = bot.count
    skill.verified_bot_review_count = verified_bot.count
    skill.avg_rating = combined.average
    skill.avg_rating_human = human.average
    skill.avg_rating_bot = bot.average
    skill.avg_rating_verified_bot = verified_bot.average


async def recompute_vote_stats(session: AsyncSession, skill: CachedSkill) -> None:
    """Up/down totals split by voter type; counted from rows so they never go negative."""
    rows = await session.execute(
        select(SkillVote.voter_type, SkillVote.is_verified, SkillVote.vote, func.count())
        .where(SkillVote.skill_id == skill.id)
        .group_by(SkillVote.voter_type, SkillVote.is_verified, SkillVote.vote)
    )
    counts: dict[str, int] = {
        "upvotes": 0,
        "downvotes": 0,
        "human_upvotes": 0,
        "human_downvotes": 0,
        "bot_upvotes": 0,
        "bot_downvotes": 0,
        "verified_bot_upvotes": 0,
        "verified_bot_downvotes": 0,
    }
    for voter_type, is_verified, vote, count in rows:
        direction = "upvotes" if vote == VoteValue.UP.value else "downvotes"
        counts[direction] += int(count)
        if voter_type == VoterType.HUMAN.value:
            counts[f"human_{direction}"] += int(count)
        elif voter_type == VoterType.BOT.value:
            counts[f"bot_{direction}"] += int(count)
            if is_verified:
                counts[f"verified_bot_{direction}"] += int(count)
    for key, value in counts.items():
        setattr(skill, key, value)


async def recompute_skill_stats(session: AsyncSession, skill: CachedSkill) -> None:
    """Refresh every locally derived counter on ``skill`` and flush."""
    await recompute_review_stats(session, skill)
    await recompute_vote_stats(session, skill)
    await session.flush()


async def recompute_skill_stats_by_id(session: AsyncSession, skill_ids: set[UUID]) -> int:
    """Recompute a set of skills, e.g. after a user's rows were removed."""
    updated = 0
    for skill_id in sorted(skill_ids, key=str):
        skill = await session.get(CachedSkill, skill_id)
        if skill is None:
            continue
        await recompute_skill_stats(session, skill)
        updated += 1
    return updated


def review_stats_payload(skill: CachedSkill) -> dict[str, Any]:
    return {
        "review_count": skill.review_count,
        "human_review_count": skill.human_review_count,
        "bot_review_count": skill.bot_review_count,
        "verified_bot_review_count": skill.verified_bot_review_count,
        "avg_rating": skill.avg_rating,
        "avg_rating_human": skill.avg_rating_human,
        "avg_rating_bot": skill.avg_rating_bot,
        "avg_rating_verified_bot": skill.avg_rating_verified_bot,
    }


def vote_breakdown_payload(skill: CachedSkill) -> dict[str, Any]:
    return {
        "upvotes": skill.upvotes,
        "downvotes": skill.downvotes,
        "net_score": skill.net_score,
        "human": {"upvotes": skill.human_upvotes, "downvotes": skill.human_downvotes},
        "bot": {"upvotes": skill.bot_upvotes, "downvotes": skill.bot_downvotes},
        "verified_bot": {"upvotes": skill.verified_bot_upvotes, "downvotes": skill.verified_bot_downvotes},
    }
