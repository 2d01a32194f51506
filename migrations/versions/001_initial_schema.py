"""Initial clawdtm schema: cached catalog, community, checkpoints and job tables.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_COUNTERS = (
    "upvotes",
    "downvotes",
    "human_upvotes",
    "human_downvotes",
    "bot_upvotes",
    "bot_downvotes",
    "verified_bot_upvotes",
    "verified_bot_downvotes",
    "review_count",
    "human_review_count",
    "bot_review_count",
    "verified_bot_review_count",
)
_AVERAGES = ("avg_rating", "avg_rating_human", "avg_rating_bot", "avg_rating_verified_bot")


def _ts(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        "cached_skills",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("external_id", sa.String(255), nullable=True, unique=True),
        sa.Column("slug", sa.String(255), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("author", sa.String(255), nullable=True),
        sa.Column("author_handle", sa.String(255), nullable=True),
        sa.Column("downloads", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("stars", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("installs", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tags", JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("category", sa.String(64), nullable=True),
        sa.Column("version", sa.String(64), nullable=True),
        sa.Column("has_nix", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _ts("external_created_at", nullable=True),
        _ts("external_updated_at", nullable=True),
        _ts("last_synced_at", nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
        sa.Column("hidden", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("hidden_reason", sa.Text(), nullable=True),
        _ts("hidden_at", nullable=True),
        *[sa.Column(name, sa.Integer(), nullable=False, server_default="0") for name in _COUNTERS],
        *[sa.Column(name, sa.Float(), nullable=True) for name in _AVERAGES],
    )
    op.create_index("idx_cached_skills_category_downloads", "cached_skills", ["category", "downloads"])
    op.create_index("idx_cached_skills_hidden", "cached_skills", ["hidden"])
    op.create_index("idx_cached_skills_last_synced", "cached_skills", ["last_synced_at"])
    op.create_index(op.f("ix_cached_skills_author"), "cached_skills", ["author"])
    op.create_index(op.f("ix_cached_skills_category"), "cached_skills", ["category"])

    op.create_table(
        "sync_states",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("key", sa.String(64), nullable=False, unique=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cursor", sa.Text(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="idle"),
        sa.Column("last_error", sa.Text(), nullable=True),
        _ts("last_full_sync_at", nullable=True),
        _ts("last_incremental_sync_at", nullable=True),
        _ts("run_started_at", nullable=True),
        sa.Column("total_synced", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("category_counts", JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("tag_counts", JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("total_visible", sa.Integer(), nullable=False, server_default="0"),
        _ts("updated_at"),
    )

    op.create_table(
        "stat_backfill_states",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("key", sa.String(64), nullable=False, unique=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cursor", sa.String(255), nullable=True),
        _ts("done_at", nullable=True),
        sa.Column("processed_in_pass", sa.Integer(), nullable=False, server_default="0"),
        _ts("updated_at"),
    )

    op.create_table(
        "users",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("external_id", sa.String(255), nullable=False, unique=True),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("display_name", sa.String(50), nullable=True),
        sa.Column("role", sa.String(16), nullable=False, server_default="user"),
        _ts("created_at"),
        _ts("updated_at"),
    )

    op.create_table(
        "bot_agents",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("api_key_hash", sa.String(64), nullable=False, unique=True),
        sa.Column("api_key_prefix", sa.String(32), nullable=False),
        sa.Column("owner_user_id", UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("claim_code", sa.String(64), nullable=True, unique=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="unverified"),
        sa.Column("vote_count", sa.Integer(), nullable=False, server_default="0"),
        _ts("last_active_at", nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
        _ts("revoked_at", nullable=True),
    )
    op.create_index("idx_bot_agents_created_at", "bot_agents", ["created_at"])
    op.create_index(op.f("ix_bot_agents_owner_user_id"), "bot_agents", ["owner_user_id"])

    for table, kind_column, value_column, value_type in (
        ("skill_votes", "voter_type", "vote", sa.String(8)),
        ("skill_reviews", "reviewer_type", "rating", sa.Integer()),
    ):
        extra = []
        if table == "skill_reviews":
            extra = [
                sa.Column("review_text", sa.Text(), nullable=False, server_default=""),
                sa.Column("reviewer_name", sa.String(255), nullable=True),
            ]
        op.create_table(
            table,
            sa.Column("id", UUID(as_uuid=True), primary_key=True),
            sa.Column("skill_id", UUID(as_uuid=True), sa.ForeignKey("cached_skills.id"), nullable=False),
            sa.Column("user_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
            sa.Column("agent_id", UUID(as_uuid=True), sa.ForeignKey("bot_agents.id"), nullable=True),
            sa.Column(kind_column, sa.String(8), nullable=False),
            sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.text("true")),
            sa.Column(value_column, value_type, nullable=False),
            *extra,
            _ts("created_at"),
            _ts("updated_at"),
            sa.UniqueConstraint("skill_id", "user_id", name=f"uq_{table}_skill_user"),
            sa.UniqueConstraint("skill_id", "agent_id", name=f"uq_{table}_skill_agent"),
        )
        op.create_index(f"idx_{table}_skill_{kind_column}", table, ["skill_id", kind_column])
        for column in ("skill_id", "user_id", "agent_id"):
            op.create_index(op.f(f"ix_{table}_{column}"), table, [column])
    op.create_index("idx_skill_reviews_skill_created", "skill_reviews", ["skill_id", "created_at"])

    op.create_table(
        "rate_limit_windows",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("key", sa.String(255), nullable=False),
        sa.Column("window_start", sa.BigInteger(), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("limit", sa.Integer(), nullable=False),
        _ts("updated_at"),
        sa.UniqueConstraint("key", "window_start", name="uq_rate_limit_windows_key_window"),
    )
    op.create_index("idx_rate_limit_windows_window_start", "rate_limit_windows", ["window_start"])

    op.create_table(
        "categorization_logs",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("skill_id", UUID(as_uuid=True), sa.ForeignKey("cached_skills.id"), nullable=False),
        sa.Column("skill_slug", sa.String(255), nullable=False),
        sa.Column("assigned_category", sa.String(64), nullable=True),
        sa.Column("assigned_tags", JSONB, nullable=True),
        sa.Column("reasoning", sa.Text(), nullable=False, server_default=""),
        sa.Column("model", sa.String(128), nullable=False),
        sa.Column("input_tokens", sa.Integer(), nullable=True),
        sa.Column("output_tokens", sa.Integer(), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        _ts("created_at"),
    )
    op.create_index("idx_categorization_logs_status_created", "categorization_logs", ["status", "created_at"])
    op.create_index(op.f("ix_categorization_logs_skill_id"), "categorization_logs", ["skill_id"])
    op.create_index(op.f("ix_categorization_logs_skill_slug"), "categorization_logs", ["skill_slug"])

    op.create_table(
        "skill_leaderboards",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("kind", sa.String(32), nullable=False),
        _ts("generated_at"),
        sa.Column("range_start_day", sa.Integer(), nullable=False),
        sa.Column("range_end_day", sa.Integer(), nullable=False),
        sa.Column("items", JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
    )
    op.create_index("idx_skill_leaderboards_kind_generated", "skill_leaderboards", ["kind", "generated_at"])


def downgrade() -> None:
    for table in (
        "skill_leaderboards",
        "categorization_logs",
        "rate_limit_windows",
        "skill_reviews",
        "skill_votes",
        "bot_agents",
        "users",
        "stat_backfill_states",
        "sync_states",
        "cached_skills",
    ):
        op.drop_table(table)
