"""Configuration models and layered loading for clawdtm."""

from clawdtm.config.loader import ConfigLoadError, load_config, resolve_config_path
from clawdtm.config.models import (
    ApiConfig,
    BackfillConfig,
    CatalogConfig,
    CategorizationConfig,
    ClawdtmConfig,
    DatabaseConfig,
    LLMSettings,
    RateLimitConfig,
    ReviewConfig,
    SchedulerConfig,
    SyncConfig,
    WebhookConfig,
)

__all__ = [
    "ApiConfig",
    "BackfillConfig",
    "CatalogConfig",
    "CategorizationConfig",
    "ClawdtmConfig",
    "ConfigLoadError",
    "DatabaseConfig",
    "LLMSettings",
    "load_config",
    "RateLimitConfig",
    "ReviewConfig",
    "SchedulerConfig",
    "SyncConfig",
    "WebhookConfig",
    "resolve_config_path",
]
