"""Human accounts mirrored from the identity provider."""

from __future__ import annotations

import logging
import re
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from clawdtm.clock import NowFn, utcnow
from clawdtm.errors import ValidationFailedError
from clawdtm.models import AgentStatus, BotAgent, SkillReview, SkillVote, User
from clawdtm.stats import recompute_skill_stats_by_id

logger = logging.getLogger(__name__)

DISPLAY_NAME_PATTERN = re.compile(r"^[\w\s\-'.]+$")
MIN_DISPLAY_NAME_LENGTH = 2
MAX_DISPLAY_NAME_LENGTH = 50


def validate_display_name(display_name: str) -> str:
    trimmed = display_name.strip()
    if len(trimmed) < MIN_DISPLAY_NAME_LENGTH:
        raise ValidationFailedError(f"Display name must be at least {MIN_DISPLAY_NAME_LENGTH} characters")
    if len(trimmed) > MAX_DISPLAY_NAME_LENGTH:
        raise ValidationFailedError(f"Display name must be {MAX_DISPLAY_NAME_LENGTH} characters or less")
    if not DISPLAY_NAME_PATTERN.match(trimmed):
        raise ValidationFailedError("Display name contains invalid characters")
    return trimmed


class UserService:
    """Upsert, delete and rename users keyed by their identity-provider id."""

    def __init__(self, *, now_fn: NowFn = utcnow) -> None:
        self._now = now_fn

    async def get_by_external_id(self, session: AsyncSession, external_id: str) -> User | None:
        return await session.scalar(select(User).where(User.external_id == external_id))

    async def upsert_from_identity(
        self,
        session: AsyncSession,
        external_id: str,
        *,
        email: str | None = None,
        name: str | None = None,
        image_url: str | None = None,
    ) -> tuple[User, bool]:
        """Create or refresh a user; returns ``(user, created)``."""
        now = self._now()
        user = await self.get_by_external_id(session, external_id)
        if user is not None:
            user.email = email
            user.name = name
            user.image_url = image_url
            user.updated_at = now
            await session.flush()
            return user, False
        user = User(external_id=external_id, email=email, name=name, image_url=image_url, created_at=now, updated_at=now)
        session.add(user)
        await session.flush()
        await session.refresh(user)
        return user, True

    async def ensure_user(self, session: AsyncSession, external_id: str) -> User:
        """Return the user, creating a bare row when the webhook has not arrived yet."""
        user = await self.get_by_external_id(session, external_id)
        if user is not None:
            return user
        user, _ = await self.upsert_from_identity(session, external_id)
        return user

    async def delete_by_external_id(self, session: AsyncSession, external_id: str) -> bool:
        """Remove the user with their votes and reviews, then recompute affected skills.

        Agents the user owned become unowned and unverified; votes they already cast keep
        the verification recorded at the time.
        """
        user = await self.get_by_external_id(session, external_id)
        if user is None:
            return False
        affected: set[UUID] = set(
            (await session.scalars(select(SkillVote.skill_id).where(SkillVote.user_id == user.id))).all()
        )
        affected.update((await session.scalars(select(SkillReview.skill_id).where(SkillReview.user_id == user.id))).all())
        await session.execute(delete(SkillVote).where(SkillVote.user_id == user.id))
        await session.execute(delete(SkillReview).where(SkillReview.user_id == user.id))
        orphaned = await session.execute(
            update(BotAgent)
            .where(BotAgent.owner_user_id == user.id)
            .values(owner_user_id=None, status=AgentStatus.UNVERIFIED.value, updated_at=self._now())
        )
        await session.delete(user)
        await session.flush()
        recomputed = await recompute_skill_stats_by_id(session, affected)
        logger.info(
            "user deleted external_id=%s skills_recomputed=%d agents_unverified=%d",
            external_id,
            recomputed,
            orphaned.rowcount,
        )
        return True

    async def set_display_name(self, session: AsyncSession, external_id: str, display_name: str) -> User:
        trimmed = validate_display_name(display_name)
        user = await self.ensure_user(session, external_id)
        user.display_name = trimmed
        user.updated_at = self._now()
        await session.flush()
        return user
