"""Bot agent registration, API keys and ownership."""

from __future__ import annotations

import hashlib
import logging
import re
import secrets
import string
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clawdtm.clock import NowFn, utcnow
from clawdtm.errors import AgentAuthError, ForbiddenError, NotFoundError, ValidationFailedError
from clawdtm.models import AgentStatus, BotAgent, User
from clawdtm.ratelimit import REGISTRATION_KEY, RateGate

logger = logging.getLogger(__name__)

API_KEY_PREFIX = "clawdtm_sk_"
API_KEY_RANDOM_LENGTH = 40
_API_KEY_ALPHABET = string.ascii_letters + string.digits
_API_KEY_PATTERN = re.compile(rf"^{API_KEY_PREFIX}[A-Za-z0-9]{{{API_KEY_RANDOM_LENGTH}}}$")

MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 50

SAVE_KEY_NOTICE = "SAVE YOUR API KEY! You will not see it again."
NEW_KEY_NOTICE = "SAVE YOUR NEW API KEY! The old key no longer works."
AUTH_HEADER_HINT = "Include header: Authorization: Bearer YOUR_API_KEY"


def generate_api_key() -> str:
    return API_KEY_PREFIX + "".join(secrets.choice(_API_KEY_ALPHABET) for _ in range(API_KEY_RANDOM_LENGTH))


def hash_api_key(raw_key: str) -> str:
    return hashlib.sha256(raw_key.encode("utf-8")).hexdigest()


def api_key_display_prefix(raw_key: str) -> str:
    return raw_key[:16] + "..."


def generate_claim_code() -> str:
    return f"claw-{secrets.token_urlsafe(12)}"


def validate_agent_name(name: str | None) -> str:
    cleaned = (name or "").strip()
    if not MIN_NAME_LENGTH <= len(cleaned) <= MAX_NAME_LENGTH:
        raise ValidationFailedError("Invalid name", hint=f"Name must be {MIN_NAME_LENGTH}-{MAX_NAME_LENGTH} characters")
    return cleaned


@dataclass
class IssuedKey:
    """A freshly generated key; the raw value exists only here."""

    agent: BotAgent
    api_key: str
    notice: str = SAVE_KEY_NOTICE

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": True,
            "agent": {
                "id": str(self.agent.id),
                "name": self.agent.name,
                "api_key": self.api_key,
                "api_key_prefix": self.agent.api_key_prefix,
                "status": self.agent.status,
            },
            "important": self.notice,
        }
        if self.agent.claim_code:
            payload["agent"]["claim_code"] = self.agent.claim_code
        return payload


def agent_status_payload(agent: BotAgent) -> dict[str, Any]:
    return {
        "success": True,
        "agent": {
            "id": str(agent.id),
            "name": agent.name,
            "description": agent.description,
            "status": agent.status,
            "vote_count": agent.vote_count,
            "last_active": agent.last_active_at,
            "created_at": agent.created_at,
        },
    }


class AgentService:
    """Register, authenticate and manage bot agents.

    Only the sha256 digest of an API key is stored. Self-registered agents
    start unverified and receive a claim code; an agent becomes verified once a
    user claims it or when a user creates it directly.
    """

    def __init__(
        self,
        rate_gate: RateGate | None = None,
        *,
        registrations_per_window: int = 10,
        window_seconds: int = 60,
        now_fn: NowFn = utcnow,
    ) -> None:
        self.rate_gate = rate_gate or RateGate(limit=registrations_per_window, window_seconds=window_seconds, now_fn=now_fn)
        self.registrations_per_window = registrations_per_window
        self.window_seconds = window_seconds
        self._now = now_fn

    async def _insert(
        self,
        session: AsyncSession,
        *,
        name: str,
        description: str | None,
        owner: User | None,
        status: AgentStatus,
        claim_code: str | None,
    ) -> IssuedKey:
        raw_key = generate_api_key()
        now = self._now()
        agent = BotAgent(
            name=name,
            description=(description or "").strip() or None,
            api_key_hash=hash_api_key(raw_key),
            api_key_prefix=api_key_display_prefix(raw_key),
            owner_user_id=owner.id if owner is not None else None,
            claim_code=claim_code,
            status=status.value,
            vote_count=0,
            created_at=now,
            updated_at=now,
        )
        session.add(agent)
        await session.flush()
        await session.refresh(agent)
        return IssuedKey(agent=agent, api_key=raw_key)

    async def register(self, session: AsyncSession, name: str | None, description: str | None = None) -> IssuedKey:
        """Self-registration; globally rate limited."""
        await self.rate_gate.enforce(
            session,
            REGISTRATION_KEY,
            limit=self.registrations_per_window,
            window_seconds=self.window_seconds,
            hint="Too many registrations. Please try again in a minute.",
        )
        cleaned = validate_agent_name(name)
        issued = await self._insert(
            session,
            name=cleaned,
            description=description,
            owner=None,
            status=AgentStatus.UNVERIFIED,
            claim_code=generate_claim_code(),
        )
        logger.info("bot agent registered id=%s name=%s", issued.agent.id, cleaned)
        return issued

    async def create_for_owner(self, session: AsyncSession, owner: User, name: str | None, description: str | None = None) -> IssuedKey:
        cleaned = validate_agent_name(name)
        return await self._insert(
            session, name=cleaned, description=description, owner=owner, status=AgentStatus.VERIFIED, claim_code=None
        )

    async def claim(self, session: AsyncSession, claim_code: str, owner: User) -> BotAgent:
        agent = await session.scalar(select(BotAgent).where(BotAgent.claim_code == claim_code.strip()))
        if agent is None:
            raise NotFoundError("Invalid claim code", hint="Check the claim code returned at registration")
        if agent.revoked_at is not None:
            raise ForbiddenError("Agent has been revoked")
        agent.owner_user_id = owner.id
        agent.status = AgentStatus.VERIFIED.value
        agent.claim_code = None
        agent.updated_at = self._now()
        await session.flush()
        return agent

    async def authenticate(self, session: AsyncSession, raw_key: str | None) -> BotAgent:
        if not raw_key:
            raise AgentAuthError("Missing authorization", hint=AUTH_HEADER_HINT)
        if not _API_KEY_PATTERN.match(raw_key):
            raise AgentAuthError("Invalid API key format", hint=f"API keys start with {API_KEY_PREFIX}")
        agent = await session.scalar(select(BotAgent).where(BotAgent.api_key_hash == hash_api_key(raw_key)))
        if agent is None:
            raise AgentAuthError("Invalid API key")
        if agent.revoked_at is not None:
            raise AgentAuthError("API key has been revoked")
        return agent

    async def _owned(self, session: AsyncSession, agent_id: UUID, owner: User) -> BotAgent:
        agent = await session.get(BotAgent, agent_id)
        if agent is None:
            raise NotFoundError("Agent not found")
        if agent.owner_user_id != owner.id:
            raise ForbiddenError("Not authorized", hint="You do not own this agent")
        return agent

    async def regenerate_key(self, session: AsyncSession, agent_id: UUID, owner: User) -> IssuedKey:
        agent = await self._owned(session, agent_id, owner)
        raw_key = generate_api_key()
        agent.api_key_hash = hash_api_key(raw_key)
        agent.api_key_prefix = api_key_display_prefix(raw_key)
        agent.updated_at = self._now()
        await session.flush()
        return IssuedKey(agent=agent, api_key=raw_key, notice=NEW_KEY_NOTICE)

    async def revoke(self, session: AsyncSession, agent_id: UUID, owner: User) -> BotAgent:
        agent = await self._owned(session, agent_id, owner)
        now = self._now()
        agent.revoked_at = now
        agent.updated_at = now
        await session.flush()
        logger.info("bot agent revoked id=%s", agent.id)
        return agent

    async def list_for_owner(self, session: AsyncSession, owner: User) -> list[BotAgent]:
        result = await session.scalars(
            select(BotAgent)
            .where(BotAgent.owner_user_id == owner.id, BotAgent.revoked_at.is_(None))
            .order_by(BotAgent.created_at.asc())
        )
        return list(result.all())
