"""Structured JSON log helpers shared by the API and background jobs."""

from __future__ import annotations

import json
import logging
import os


def resolve_log_level(configured: str | None = None) -> int:
    level_name = (configured or os.getenv("CLAWDTM_LOG_LEVEL", "INFO")).strip().upper()
    level = getattr(logging, level_name, logging.INFO)
    return int(level)


def configure_logging(level: str | None = None) -> None:
    """Install a basic stderr handler once; repeated calls only adjust the level."""
    resolved = resolve_log_level(level)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=resolved,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
    logging.getLogger("clawdtm").setLevel(resolved)


def log_json(logger: logging.Logger, level: int, event: str, **fields: object) -> None:
    if not logger.isEnabledFor(level):
        return
    payload = {"event": event, **fields}
    logger.log(level, "%s", json.dumps(payload, ensure_ascii=False, sort_keys=True, default=str))
