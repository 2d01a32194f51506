"""Up/down votes from humans and bot agents."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clawdtm.clock import NowFn, utcnow
from clawdtm.community.actors import Actor
from clawdtm.errors import ValidationFailedError
from clawdtm.models import BotAgent, CachedSkill, SkillVote, VoteValue
from clawdtm.stats import recompute_vote_stats, vote_breakdown_payload


@dataclass
class VoteOutcome:
    """``action`` is one of created, changed, unchanged, removed, not_found."""

    action: str
    skill: CachedSkill
    vote: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": True, "action": self.action, "slug": self.skill.slug}
        if self.vote is not None:
            payload["vote"] = self.vote
        payload["votes"] = vote_breakdown_payload(self.skill)
        return payload


def parse_vote(value: str) -> VoteValue:
    try:
        return VoteValue(str(value).strip().lower())
    except ValueError:
        raise ValidationFailedError("Invalid vote", hint="vote must be 'up' or 'down'") from None


class VoteService:
    """One vote per voter per skill; counters are recomputed from rows after each change."""

    def __init__(self, *, now_fn: NowFn = utcnow) -> None:
        self._now = now_fn

    async def _existing(self, session: AsyncSession, skill: CachedSkill, actor: Actor) -> SkillVote | None:
        stmt = select(SkillVote).where(SkillVote.skill_id == skill.id)
        if actor.is_bot:
            stmt = stmt.where(SkillVote.agent_id == actor.agent_id)
        else:
            stmt = stmt.where(SkillVote.user_id == actor.user_id)
        return await session.scalar(stmt)

    async def _touch_agent(self, session: AsyncSession, actor: Actor, *, count_vote: bool) -> None:
        if not actor.is_bot or actor.agent_id is None:
            return
        agent = await session.get(BotAgent, actor.agent_id)
        if agent is None:
            return
        now = self._now()
        agent.last_active_at = now
        agent.updated_at = now
        if count_vote:
            agent.vote_count = (agent.vote_count or 0) + 1

    async def cast(self, session: AsyncSession, skill: CachedSkill, actor: Actor, vote: str | VoteValue) -> VoteOutcome:
        value = vote if isinstance(vote, VoteValue) else parse_vote(vote)
        now = self._now()
        existing = await self._existing(session, skill, actor)
        if existing is not None and existing.vote == value.value:
            await self._touch_agent(session, actor, count_vote=False)
            await session.flush()
            return VoteOutcome(action="unchanged", skill=skill, vote=value.value)

        if existing is not None:
            existing.vote = value.value
            existing.is_verified = actor.is_verified
            existing.updated_at = now
            action = "changed"
        else:
            session.add(
                SkillVote(
                    skill_id=skill.id,
                    user_id=actor.user_id,
                    agent_id=actor.agent_id,
                    voter_type=actor.voter_type.value,
                    is_verified=actor.is_verified,
                    vote=value.value,
                    created_at=now,
                    updated_at=now,
                )
            )
            action = "created"
        await session.flush()
        await self._touch_agent(session, actor, count_vote=action == "created")
        await recompute_vote_stats(session, skill)
        await session.flush()
        return VoteOutcome(action=action, skill=skill, vote=value.value)

    async def remove(self, session: AsyncSession, skill: CachedSkill, actor: Actor) -> VoteOutcome:
        existing = await self._existing(session, skill, actor)
        if existing is None:
            return VoteOutcome(action="not_found", skill=skill)
        await session.delete(existing)
        await session.flush()
        await self._touch_agent(session, actor, count_vote=False)
        await recompute_vote_stats(session, skill)
        await session.flush()
        return VoteOutcome(action="removed", skill=skill)

    async def vote_of(self, session: AsyncSession, skill: CachedSkill, actor: Actor) -> str | None:
        existing = await self._existing(session, skill, actor)
        return existing.vote if existing is not None else None
