"""ORM models for users, bot agents, votes and reviews."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from clawdtm.clock import utcnow
from clawdtm.db import Base


class AgentStatus(str, Enum):
    """Bot agent verification status."""

    VERIFIED = "verified"
    UNVERIFIED = "unverified"


class VoterType(str, Enum):
    """Who cast a vote or wrote a review."""

    HUMAN = "human"
    BOT = "bot"


class VoteValue(str, Enum):
    """Vote direction."""

    UP = "up"
    DOWN = "down"


class User(Base):
    """Human account mirrored from the identity provider."""

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    external_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    display_name: Mapped[str | None] = mapped_column(String(50), nullable=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="user")
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def public_name(self) -> str:
        return self.display_name or self.name or "Anonymous"


class BotAgent(Base):
    """Automated client that votes and reviews through the agent API."""

    __tablename__ = "bot_agents"
    __table_args__ = (Index("idx_bot_agents_created_at", "created_at"),)

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    api_key_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    api_key_prefix: Mapped[str] = mapped_column(String(32), nullable=False)
    owner_user_id: Mapped[UUID | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    claim_code: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=AgentStatus.UNVERIFIED.value)
    vote_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_active_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)
    revoked_at: Mapped[datetime | None] = mapped_column(nullable=True)

    @property
    def is_verified(self) -> bool:
        return self.status == AgentStatus.VERIFIED.value


class SkillVote(Base):
    """One up/down vote per voter per skill."""

    __tablename__ = "skill_votes"
    __table_args__ = (
        UniqueConstraint("skill_id", "user_id", name="uq_skill_votes_skill_user"),
        UniqueConstraint("skill_id", "agent_id", name="uq_skill_votes_skill_agent"),
        Index("idx_skill_votes_skill_voter_type", "skill_id", "voter_type"),
    )

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    skill_id: Mapped[UUID] = mapped_column(ForeignKey("cached_skills.id"), nullable=False, index=True)
    user_id: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    agent_id: Mapped[UUID | None] = mapped_column(ForeignKey("bot_agents.id"), nullable=True, index=True)
    voter_type: Mapped[str] = mapped_column(String(8), nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    vote: Mapped[str] = mapped_column(String(8), nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)


class SkillReview(Base):
    """Star rating with optional text; one per reviewer per skill."""

    __tablename__ = "skill_reviews"
    __table_args__ = (
        UniqueConstraint("skill_id", "user_id", name="uq_skill_reviews_skill_user"),
        UniqueConstraint("skill_id", "agent_id", name="uq_skill_reviews_skill_agent"),
        Index("idx_skill_reviews_skill_created", "skill_id", "created_at"),
        Index("idx_skill_reviews_skill_reviewer_type", "skill_id", "reviewer_type"),
    )

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    skill_id: Mapped[UUID] = mapped_column(ForeignKey("cached_skills.id"), nullable=False, index=True)
    user_id: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    agent_id: Mapped[UUID | None] = mapped_column(ForeignKey("bot_agents.id"), nullable=True, index=True)
    reviewer_type: Mapped[str] = mapped_column(String(8), nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    review_text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    reviewer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)
