"""Fixed-window request quotas stored in ``rate_limit_windows``."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from clawdtm.clock import NowFn, to_epoch_ms, utcnow
from clawdtm.errors import RateLimitedError
from clawdtm.logs import log_json
from clawdtm.models import RateLimitWindow

logger = logging.getLogger(__name__)


def agent_write_key(agent_id: object) -> str:
    return f"agent:{agent_id}:write"


REGISTRATION_KEY = "register:global"


@dataclass(frozen=True)
class RateDecision:
    """Result of one quota check."""

    allowed: bool
    count: int
    limit: int
    remaining: int
    window_start: int
    retry_after: int


class RateGate:
    """Atomic test-and-increment over fixed windows.

    The window starts at ``now_ms - now_ms % window_ms``. The increment is a
    single conditional ``UPDATE ... WHERE count < limit``, so the counter can
    never pass the limit and a rejected request leaves it unchanged. The first
    request of a window inserts the row inside a SAVEPOINT; losing that insert
    race falls back to the conditional update once.

    ``hit`` runs in the caller's session, so a request that is rejected later
    in the same transaction does not consume quota.
    """

    def __init__(self, *, limit: int = 60, window_seconds: int = 60, now_fn: NowFn = utcnow) -> None:
        self.default_limit = limit
        self.default_window_seconds = window_seconds
        self._now = now_fn

    async def _increment(self, session: AsyncSession, key: str, window_start: int, limit: int, now: datetime) -> bool:
        result = await session.execute(
            update(RateLimitWindow)
            .where(
                RateLimitWindow.key == key,
                RateLimitWindow.window_start == window_start,
                RateLimitWindow.count < limit,
            )
            .values(count=RateLimitWindow.count + 1, limit=limit, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def _current_count(self, session: AsyncSession, key: str, window_start: int) -> int | None:
        return await session.scalar(
            select(RateLimitWindow.count).where(RateLimitWindow.key == key, RateLimitWindow.window_start == window_start)
        )

    async def hit(
        self,
        session: AsyncSession,
        key: str,
        *,
        limit: int | None = None,
        window_seconds: int | None = None,
    ) -> RateDecision:
        limit = self.default_limit if limit is None else int(limit)
        window_ms = int(window_seconds if window_seconds is not None else self.default_window_seconds) * 1000
        now = self._now()
        now_ms = to_epoch_ms(now)
        window_start = now_ms - (now_ms % window_ms)
        retry_after = max(1, math.ceil((window_start + window_ms - now_ms) / 1000))

        allowed = False
        if limit > 0:
            allowed = await self._increment(session, key, window_start, limit, now)
            if not allowed and await self._current_count(session, key, window_start) is None:
                try:
                    async with session.begin_nested():
                        session.add(RateLimitWindow(key=key, window_start=window_start, count=1, limit=limit, updated_at=now))
                        await session.flush()
                    allowed = True
                except IntegrityError:
                    allowed = await self._increment(session, key, window_start, limit, now)

        count = await self._current_count(session, key, window_start) or 0
        if not allowed:
            logger.info("rate limit exceeded key=%s count=%d limit=%d", key, count, limit)
        return RateDecision(
            allowed=allowed,
            count=count,
            limit=limit,
            remaining=max(limit - count, 0),
            window_start=window_start,
            retry_after=retry_after,
        )

    async def enforce(
        self,
        session: AsyncSession,
        key: str,
        *,
        limit: int | None = None,
        window_seconds: int | None = None,
        message: str = "Rate limit exceeded",
        hint: str | None = None,
    ) -> RateDecision:
        """Like ``hit`` but raises ``RateLimitedError`` when the quota is exhausted."""
        decision = await self.hit(session, key, limit=limit, window_seconds=window_seconds)
        if not decision.allowed:
            raise RateLimitedError(
                message,
                retry_after=decision.retry_after,
                hint=hint or f"Try again in {decision.retry_after} seconds",
            )
        return decision

    async def prune(self, session: AsyncSession, older_than: datetime, *, window_seconds: int | None = None) -> int:
        """Delete windows that ended before ``older_than``; returns the number removed."""
        window_ms = int(window_seconds if window_seconds is not None else self.default_window_seconds) * 1000
        cutoff = to_epoch_ms(older_than) - window_ms
        result = await session.execute(
            delete(RateLimitWindow)
            .where(RateLimitWindow.window_start <= cutoff)
            .execution_options(synchronize_session=False)
        )
        removed = int(result.rowcount or 0)
        log_json(logger, logging.INFO, "rate_window_pruned", removed=removed, cutoff=cutoff)
        return removed
