"""ORM models. Importing this package registers every table on ``Base.metadata``."""

from clawdtm.models.catalog import (
    CATALOG_OWNED_FIELDS,
    LOCALLY_OWNED_FIELDS,
    CachedSkill,
    StatBackfillState,
    SyncState,
    SyncStatus,
)
from clawdtm.models.community import AgentStatus, BotAgent, SkillReview, SkillVote, User, VoterType, VoteValue
from clawdtm.models.operations import CategorizationLog, CategorizationStatus, RateLimitWindow, SkillLeaderboard

__all__ = [
    "AgentStatus",
    "BotAgent",
    "CachedSkill",
    "CATALOG_OWNED_FIELDS",
    "CategorizationLog",
    "CategorizationStatus",
    "LOCALLY_OWNED_FIELDS",
    "RateLimitWindow",
    "SkillLeaderboard",
    "SkillReview",
    "SkillVote",
    "StatBackfillState",
    "SyncState",
    "SyncStatus",
    "User",
    "VoterType",
    "VoteValue",
]
