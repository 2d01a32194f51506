"""Configuration models for clawdtm."""

from __future__ import annotations

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseConfig(BaseModel):
    """Database connection configuration."""

    url: str = Field(default="sqlite+aiosqlite:///./clawdtm.db")
    echo: bool = Field(default=False)
    pool_size: int = Field(default=10, ge=1)
    max_overflow: int = Field(default=5, ge=0)
    create_schema: bool = Field(
        default=False,
        description="Create missing tables on startup (development and SQLite setups).",
    )


class CatalogConfig(BaseModel):
    """External catalog API client configuration."""

    base_url: str = Field(default="https://clawdhub.com/api/v1")
    page_size: int = Field(default=50, ge=1, le=500)
    max_attempts: int = Field(default=3, ge=1, le=10)
    retry_delay_seconds: float = Field(default=1.0, ge=0.0)
    timeout_seconds: float = Field(default=30.0, gt=0.0)
    user_agent: str = Field(default="ClawdTM-Sync/1.0")


class SyncConfig(BaseModel):
    """Catalog sync job behavior."""

    max_batches: int = Field(default=5, ge=1)
    full_max_batches: int = Field(default=100, ge=1)
    full_inter_batch_delay_seconds: float = Field(default=0.5, ge=0.0)
    full_max_consecutive_errors: int = Field(default=3, ge=1)
    stale_run_minutes: int = Field(default=30, ge=1)
    recent_full_sync_minutes: int = Field(default=10, ge=0)
    touch_interval_minutes: int = Field(default=60, ge=0)
    enrich_delay_seconds: float = Field(default=0.1, ge=0.0)


class BackfillConfig(BaseModel):
    """Stat aggregator batch sizing."""

    batch_size: int = Field(default=100, ge=1)
    max_batches: int = Field(default=5, ge=1)


class RateLimitConfig(BaseModel):
    """Fixed-window quota configuration."""

    window_seconds: int = Field(default=60, ge=1)
    agent_writes_per_window: int = Field(default=60, ge=1)
    registrations_per_window: int = Field(default=10, ge=1)
    prune_retention_hours: int = Field(default=24, ge=1)


class ReviewConfig(BaseModel):
    """Review validation bounds."""

    min_rating: int = Field(default=1, ge=0)
    max_rating: int = Field(default=5, ge=1)
    max_text_length: int = Field(default=1000, ge=1)
    list_limit: int = Field(default=50, ge=1, le=500)


class WebhookConfig(BaseModel):
    """Identity-provider webhook configuration."""

    secret: str = Field(default="", description="Svix signing secret (whsec_...).")
    tolerance_seconds: int = Field(default=300, ge=1)


class CategorizationConfig(BaseModel):
    """AI categorization behavior."""

    batch_limit: int = Field(default=20, ge=1)
    use_llm: bool = Field(default=False)
    max_tags: int = Field(default=10, ge=1)


class LLMSettings(BaseModel):
    """LLM defaults used by the categorizer."""

    model: str = Field(default="gpt-4o-mini")
    fallback_models: list[str] = Field(default_factory=list)
    temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    max_tokens: int = Field(default=300, ge=1)
    api_key_env: str = Field(default="OPENAI_API_KEY")


class JobScheduleConfig(BaseModel):
    """Interval for one periodic job."""

    enabled: bool = Field(default=True)
    interval_seconds: int = Field(ge=1)


class SchedulerConfig(BaseModel):
    """Periodic job intervals."""

    catalog_sync: JobScheduleConfig = Field(default_factory=lambda: JobScheduleConfig(interval_seconds=900))
    stat_backfill: JobScheduleConfig = Field(default_factory=lambda: JobScheduleConfig(interval_seconds=600))
    leaderboard: JobScheduleConfig = Field(default_factory=lambda: JobScheduleConfig(interval_seconds=3600))
    static_index: JobScheduleConfig = Field(default_factory=lambda: JobScheduleConfig(interval_seconds=3600))
    categorization: JobScheduleConfig = Field(default_factory=lambda: JobScheduleConfig(interval_seconds=3600))
    rate_limit_prune: JobScheduleConfig = Field(
        default_factory=lambda: JobScheduleConfig(enabled=False, interval_seconds=3600)
    )


class IndexerConfig(BaseModel):
    """Static index export configuration."""

    output_path: str = Field(default="", description="Empty disables the scheduled export.")


class ApiConfig(BaseModel):
    """HTTP API configuration."""

    public_url: str = Field(default="https://clawdtm.com")
    admin_token: str = Field(default="")
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    run_scheduler: bool = Field(default=False)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO")


class ClawdtmConfig(BaseSettings):
    """Root configuration model for clawdtm."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    backfill: BackfillConfig = Field(default_factory=BackfillConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    reviews: ReviewConfig = Field(default_factory=ReviewConfig)
    webhook: WebhookConfig = Field(default_factory=WebhookConfig)
    categorization: CategorizationConfig = Field(default_factory=CategorizationConfig)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    indexer: IndexerConfig = Field(default_factory=IndexerConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="CLAWDTM_",
        env_nested_delimiter="__",
        extra="ignore",
    )
