"""Unit tests for structured log helpers."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

import pytest

from clawdtm.logs import log_json, resolve_log_level


@pytest.mark.parametrize(
    ("configured", "expected"),
    [("debug", logging.DEBUG), (" WARNING ", logging.WARNING), ("nonsense", logging.INFO)],
)
def test_resolve_log_level(configured: str, expected: int) -> None:
    assert resolve_log_level(configured) == expected


def test_resolve_log_level_falls_back_to_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CLAWDTM_LOG_LEVEL", "error")
    assert resolve_log_level(None) == logging.ERROR


def test_log_json_emits_sorted_payload(caplog: pytest.LogCaptureFixture) -> None:
    logger = logging.getLogger("clawdtm.tests.logs")
    stamp = datetime(2026, 1, 15, tzinfo=timezone.utc)
    with caplog.at_level(logging.INFO, logger="clawdtm.tests.logs"):
        log_json(logger, logging.INFO, "sync_done", upserted=3, at=stamp)

    payload = json.loads(caplog.records[-1].getMessage())
    assert payload == {"event": "sync_done", "upserted": 3, "at": str(stamp)}


def test_log_json_skips_disabled_level(caplog: pytest.LogCaptureFixture) -> None:
    logger = logging.getLogger("clawdtm.tests.logs")
    with caplog.at_level(logging.WARNING, logger="clawdtm.tests.logs"):
        log_json(logger, logging.INFO, "ignored")
    assert caplog.records == []
