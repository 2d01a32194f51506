"""Skills directory read side and moderation."""

from clawdtm.directory.listing import (
    FEATURED_SLUGS,
    SORT_OPTIONS,
    VERIFIED_SLUGS,
    SkillDirectory,
    SkillPage,
    score_skill,
    skill_detail,
    skill_summary,
)
from clawdtm.directory.moderation import DEFAULT_HIDE_REASON, ModerationService

__all__ = [
    "DEFAULT_HIDE_REASON",
    "FEATURED_SLUGS",
    "ModerationService",
    "score_skill",
    "skill_detail",
    "skill_summary",
    "SkillDirectory",
    "SkillPage",
    "SORT_OPTIONS",
    "VERIFIED_SLUGS",
]
