"""Shared fixtures: pinned clock, fake catalog, SQLite-backed services."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy import select

from clawdtm.api import create_app
from clawdtm.config import ClawdtmConfig
from clawdtm.models import CachedSkill
from clawdtm.runtime import Services, build_services

ADMIN_TOKEN = "admin-secret-token"
WEBHOOK_SECRET = "whsec_MfKQ9r8GKYqrTwjUPD8ILPZIo2LaLaSw"


class FakeClock:
    """Callable ``now_fn`` that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def catalog_item(slug: str, **overrides: Any) -> dict[str, Any]:
    """One raw catalog record in the current API shape."""
    item: dict[str, Any] = {
        "id": f"ext-{slug}",
        "slug": slug,
        "displayName": slug.replace("-", " ").title(),
        "summary": f"The {slug} skill",
        "ownerHandle": "alice",
        "stats": {"downloads": 10, "stars": 1, "installsAllTime": 5},
        "tags": {"latest": "v1", "search": "v1"},
        "latestVersion": {"version": "1.0.0"},
        "createdAt": 1736900000000,
        "updatedAt": 1736900000000,
    }
    item.update(overrides)
    return item


class FakeCatalog:
    """In-process catalog API served through ``httpx.MockTransport``.

    Pages are addressed by cursors ``c1``, ``c2``...; the first page has no cursor.
    Cursors listed in ``failing`` answer HTTP 500 (use ``""`` for the first page).
    """

    def __init__(self) -> None:
        self.pages: list[dict[str, Any]] = []
        self.details: dict[str, dict[str, Any]] = {}
        self.failing: set[str] = set()
        self.requests: list[httpx.Request] = []

    def set_skills(self, items: list[dict[str, Any]], page_size: int = 2) -> None:
        chunks = [items[i : i + page_size] for i in range(0, len(items), page_size)] or [[]]
        self.pages = []
        for index, chunk in enumerate(chunks):
            more = index < len(chunks) - 1
            self.pages.append({"skills": chunk, "cursor": f"c{index + 1}" if more else None, "hasMore": more})

    def page_requests(self) -> list[str]:
        return [req.url.params.get("cursor", "") for req in self.requests if req.url.path.endswith("/skills")]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.endswith("/skills"):
            cursor = request.url.params.get("cursor", "")
            if cursor in self.failing:
                return httpx.Response(500, json={"error": "boom"})
            index = int(cursor[1:]) if cursor else 0
            if index >= len(self.pages):
                return httpx.Response(200, json={"skills": [], "hasMore": False})
            return httpx.Response(200, json=self.pages[index])
        slug = path.rsplit("/", 1)[-1]
        if slug in self.details:
            return httpx.Response(200, json=self.details[slug])
        return httpx.Response(404, json={"error": "not found"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 1, 15, 12, 0, 30, tzinfo=timezone.utc))


@pytest.fixture
def item() -> Callable[..., dict[str, Any]]:
    """Factory for raw catalog records."""
    return catalog_item


@pytest.fixture
def fake_catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def make_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Callable[..., ClawdtmConfig]:
    for name in ("CLAWDTM_CONFIG", "CLAWDTM_DATABASE_URL"):
        monkeypatch.delenv(name, raising=False)

    def _make(**sections: dict[str, Any]) -> ClawdtmConfig:
        data: dict[str, Any] = {
            "database": {"url": f"sqlite+aiosqlite:///{tmp_path / 'clawdtm.db'}"},
            "catalog": {"retry_delay_seconds": 0, "page_size": 2},
            "sync": {"full_inter_batch_delay_seconds": 0, "enrich_delay_seconds": 0},
            "api": {"admin_token": ADMIN_TOKEN},
            "webhook": {"secret": WEBHOOK_SECRET},
        }
        for key, values in sections.items():
            data[key] = {**data.get(key, {}), **values}
        return ClawdtmConfig.model_validate(data)

    return _make


@pytest.fixture
def config(make_config: Callable[..., ClawdtmConfig]) -> ClawdtmConfig:
    return make_config()


@pytest_asyncio.fixture
async def services(config: ClawdtmConfig, clock: FakeClock, fake_catalog: FakeCatalog) -> Services:
    built = build_services(config, catalog_transport=fake_catalog.transport(), now_fn=clock)
    await built.create_schema()
    try:
        yield built
    finally:
        await built.close()


@pytest_asyncio.fixture
async def session(services: Services):
    async with services.session_factory() as db_session:
        yield db_session


@pytest.fixture
def add_skill(session) -> Callable[..., Any]:
    """Insert a cached skill directly; returns the flushed row."""

    async def _add(slug: str, **fields: Any) -> CachedSkill:
        values: dict[str, Any] = {
            "external_id": f"ext-{slug}",
            "name": slug.replace("-", " ").title(),
            "description": f"The {slug} skill",
            "author": "alice",
            "tags": [],
        }
        values.update(fields)
        skill = CachedSkill(slug=slug, **values)
        session.add(skill)
        await session.flush()
        return skill

    return _add


@pytest.fixture
def fetch_skill(services: Services) -> Callable[..., Any]:
    """Read a skill through a fresh, short-lived session."""

    async def _fetch(slug: str) -> CachedSkill | None:
        async with services.session_factory() as fresh:
            return await fresh.scalar(select(CachedSkill).where(CachedSkill.slug == slug))

    return _fetch


@pytest.fixture
def make_client(
    make_config: Callable[..., ClawdtmConfig], clock: FakeClock, fake_catalog: FakeCatalog
) -> Callable[..., TestClient]:
    """Build an API client; the lifespan creates the SQLite schema."""
    clients: list[TestClient] = []

    def _make(**sections: dict[str, Any]) -> TestClient:
        built = build_services(make_config(**sections), catalog_transport=fake_catalog.transport(), now_fn=clock)
        client = TestClient(create_app(services=built))
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client: Callable[..., TestClient]) -> TestClient:
    return make_client()
