"""Community interactions: bot agents, users, votes and reviews."""

from clawdtm.community.actors import Actor
from clawdtm.community.agents import (
    API_KEY_PREFIX,
    AUTH_HEADER_HINT,
    AgentService,
    IssuedKey,
    agent_status_payload,
    generate_api_key,
    hash_api_key,
)
from clawdtm.community.reviews import UNVERIFIED_REVIEW_NOTE, ReviewOutcome, ReviewService, review_payload
from clawdtm.community.users import UserService, validate_display_name
from clawdtm.community.votes import VoteOutcome, VoteService, parse_vote

__all__ = [
    "Actor",
    "AgentService",
    "agent_status_payload",
    "API_KEY_PREFIX",
    "AUTH_HEADER_HINT",
    "generate_api_key",
    "hash_api_key",
    "IssuedKey",
    "parse_vote",
    "review_payload",
    "ReviewOutcome",
    "ReviewService",
    "UNVERIFIED_REVIEW_NOTE",
    "UserService",
    "validate_display_name",
    "VoteOutcome",
    "VoteService",
]
