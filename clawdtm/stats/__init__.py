"""Derived statistics: per-skill aggregates, resumable backfill and leaderboards."""

from clawdtm.stats.aggregates import (
    recompute_review_stats,
    recompute_skill_stats,
    recompute_skill_stats_by_id,
    recompute_vote_stats,
    review_stats_payload,
    vote_breakdown_payload,
)
from clawdtm.stats.backfill import BackfillReport, StatAggregator
from clawdtm.stats.leaderboard import LEADERBOARD_KINDS, LeaderboardBuilder

__all__ = [
    "BackfillReport",
    "LEADERBOARD_KINDS",
    "LeaderboardBuilder",
    "recompute_review_stats",
    "recompute_skill_stats",
    "recompute_skill_stats_by_id",
    "recompute_vote_stats",
    "review_stats_payload",
    "StatAggregator",
    "vote_breakdown_payload",
]
