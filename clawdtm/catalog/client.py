"""HTTP client for the external skills catalog."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any
from urllib.parse import quote

import httpx

from clawdtm.catalog.records import CatalogPage, parse_page
from clawdtm.errors import CatalogFetchError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://clawdhub.com/api/v1"
DEFAULT_USER_AGENT = "ClawdTM-Sync/1.0"


def _is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


class CatalogClient:
    """Paginated reads against the catalog with bounded, fixed-delay retries.

    The client returns raw pages only; it never touches storage.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        page_size: int = 50,
        max_attempts: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.page_size = max(int(page_size), 1)
        self.max_attempts = max(int(max_attempts), 1)
        self.retry_delay = max(float(retry_delay), 0.0)
        self.timeout = timeout
        self.user_agent = user_agent
        self._transport = transport

    @property
    def _headers(self) -> dict[str, str]:
        return {"Accept": "application/json", "User-Agent": self.user_agent}

    async def _get_with_retry(self, url: str, params: dict[str, Any] | None = None) -> httpx.Response:
        last_status: int | None = None
        last_message = ""
        for attempt in range(1, self.max_attempts + 1):
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                    response = await client.get(url, params=params, headers=self._headers)
            except (httpx.TimeoutException, httpx.TransportError) as exc:
                last_status = None
                last_message = f"{type(exc).__name__}: {exc}"
            else:
                if not _is_retryable_status(response.status_code):
                    return response
                last_status = response.status_code
                last_message = f"HTTP {response.status_code}"
            logger.warning("catalog request failed url=%s attempt=%d/%d error=%s", url, attempt, self.max_attempts, last_message)
            if attempt < self.max_attempts and self.retry_delay:
                await asyncio.sleep(self.retry_delay)
        raise CatalogFetchError(
            f"catalog request failed after {self.max_attempts} attempts: {last_message}",
            attempts=self.max_attempts,
            status_code=last_status,
        )

    async def fetch_page(self, cursor: str | None = None) -> CatalogPage:
        """Fetch one page of raw records starting at ``cursor`` (``None`` is the beginning)."""
        params: dict[str, Any] = {"limit": self.page_size}
        if cursor:
            params["cursor"] = cursor
        response = await self._get_with_retry(f"{self.base_url}/skills", params)
        if response.status_code >= 400:
            raise CatalogFetchError(
                f"catalog rejected request: HTTP {response.status_code}",
                attempts=1,
                status_code=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise CatalogFetchError("catalog returned invalid JSON", attempts=1, status_code=response.status_code) from exc
        return parse_page(payload)

    async def iter_pages(self, cursor: str | None = None, max_batches: int = 5) -> AsyncIterator[CatalogPage]:
        """Yield pages in cursor order until the catalog is exhausted or the budget is used."""
        current = cursor
        for _ in range(max(int(max_batches), 0)):
            page = await self.fetch_page(current)
            yield page
            if not page.has_more:
                return
            current = page.next_cursor

    async def fetch_skill_detail(self, slug: str) -> dict[str, Any] | None:
        """Fetch the detail document for one skill; ``None`` when the catalog does not know it."""
        response = await self._get_with_retry(f"{self.base_url}/skills/{quote(slug, safe='')}")
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise CatalogFetchError(
                f"catalog rejected detail request: HTTP {response.status_code}",
                attempts=1,
                status_code=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise CatalogFetchError("catalog returned invalid JSON", attempts=1, status_code=response.status_code) from exc
        return payload if isinstance(payload, dict) else None
