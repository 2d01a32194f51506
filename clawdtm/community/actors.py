"""Who is acting on a skill: a human user or a bot agent."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from clawdtm.models import BotAgent, User, VoterType


@dataclass(frozen=True)
class Actor:
    """Voter or reviewer identity carried into the vote and review services."""

    voter_type: VoterType
    user_id: UUID | None = None
    agent_id: UUID | None = None
    is_verified: bool = True
    display_name: str = "Anonymous"

    @classmethod
    def human(cls, user: User) -> Actor:
        return cls(voter_type=VoterType.HUMAN, user_id=user.id, is_verified=True, display_name=user.public_name)

    @classmethod
    def bot(cls, agent: BotAgent) -> Actor:
        return cls(voter_type=VoterType.BOT, agent_id=agent.id, is_verified=agent.is_verified, display_name=agent.name)

    @property
    def is_bot(self) -> bool:
        return self.voter_type == VoterType.BOT
