"""Request schemas for the clawdtm HTTP API.

Responses are plain envelopes (``{"success": true, ...}``) built by the
service layer, so only request bodies are modelled here. Fields the services
validate themselves (names, ratings) are accepted loosely so that their
error messages reach the client unchanged.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class RegisterAgentRequest(BaseModel):
    """Body for agent self-registration."""

    name: str | None = None
    description: str | None = None


class SkillRef(BaseModel):
    """Identifies one skill by slug or by id."""

    slug: str | None = None
    skill_id: str | None = None


class VoteRequest(SkillRef):
    vote: str = "up"


class ReviewRequest(SkillRef):
    rating: Any = None
    review_text: str | None = Field(default=None)


class HideRequest(BaseModel):
    reason: str | None = None


class OwnerAgentRequest(BaseModel):
    name: str | None = None
    description: str | None = None


class ClaimRequest(BaseModel):
    claim_code: str


class DisplayNameRequest(BaseModel):
    display_name: str
