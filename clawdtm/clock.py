"""Time helpers. Components accept a ``now_fn`` so tests can pin the clock."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

NowFn = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_epoch_ms(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def from_epoch_ms(value: int | float) -> datetime:
    return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
