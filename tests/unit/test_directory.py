"""Unit tests for directory listing, search and moderation."""

from __future__ import annotations

from datetime import timedelta

import pytest
import pytest_asyncio

from clawdtm.directory import DEFAULT_HIDE_REASON, score_skill, skill_detail
from clawdtm.errors import NotFoundError, ValidationFailedError
from clawdtm.models import CachedSkill


@pytest_asyncio.fixture
async def seeded(session, add_skill, clock):
    await add_skill(
        "alpha",
        downloads=100,
        stars=5,
        installs=1,
        category="web",
        tags=["search", "web"],
        external_updated_at=clock.now - timedelta(hours=1),
    )
    await add_skill(
        "beta",
        downloads=50,
        stars=20,
        installs=30,
        category="devops",
        tags=["docker"],
        has_nix=True,
        external_updated_at=clock.now - timedelta(days=3),
        upvotes=5,
        downvotes=1,
        avg_rating=4.0,
        review_count=2,
    )
    await add_skill("github", downloads=10, stars=1, category="web", tags=["git"], upvotes=1)
    await add_skill("hidden-one", downloads=1000, hidden=True, hidden_reason="spam")
    return session


def _slugs(page) -> list[str]:
    return [skill.slug for skill in page.skills]


def test_score_skill_weights_fields_and_popularity() -> None:
    skill = CachedSkill(slug="web-search", name="Web Search", description="Search the web", author="alice", stars=3, downloads=50)
    assert score_skill(skill, "web", with_popularity=False) == 100
    assert score_skill(skill, "web") == 111
    assert score_skill(skill, "alice", with_popularity=False) == 15
    assert score_skill(skill, "zzz") == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("sort_by", "expected"),
    [
        ("downloads", ["alpha", "beta", "github"]),
        ("stars", ["beta", "alpha", "github"]),
        ("installs", ["beta", "alpha", "github"]),
        ("votes", ["beta", "github", "alpha"]),
        ("rating", ["beta", "alpha", "github"]),
        ("recent", ["alpha", "beta", "github"]),
    ],
)
async def test_sort_orders_exclude_hidden(services, seeded, sort_by, expected) -> None:
    page = await services.directory.list_skills(seeded, sort_by=sort_by)
    assert _slugs(page) == expected
    assert page.total_count == 3


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("kwargs", "expected"),
    [
        ({"category": "web"}, ["alpha", "github"]),
        ({"category": " WEB "}, ["alpha", "github"]),
        ({"category": "all"}, ["alpha", "beta", "github"]),
        ({"category": "featured"}, ["github"]),
        ({"category": "latest"}, ["alpha"]),
        ({"has_nix": True}, ["beta"]),
        ({"tags": ["Docker"]}, ["beta"]),
        ({"tags": ["git", "search"]}, ["alpha", "github"]),
        ({"category": "web", "tags": ["docker"]}, []),
    ],
)
async def test_filters(services, seeded, kwargs, expected) -> None:
    assert _slugs(await services.directory.list_skills(seeded, **kwargs)) == expected


@pytest.mark.asyncio
async def test_pagination(services, seeded) -> None:
    first = await services.directory.list_skills(seeded, limit=2)
    payload = first.to_payload()
    assert [skill["slug"] for skill in payload["skills"]] == ["alpha", "beta"]
    assert (payload["has_more"], payload["next_offset"], payload["total_count"]) == (True, 2, 3)

    second = (await services.directory.list_skills(seeded, limit=2, offset=2)).to_payload()
    assert [skill["slug"] for skill in second["skills"]] == ["github"]
    assert (second["has_more"], second["next_offset"]) == (False, None)

    tagged = await services.directory.list_skills(seeded, tags=["web", "git", "docker"], limit=1, offset=1)
    assert _slugs(tagged) == ["beta"]
    assert tagged.total_count == 3


@pytest.mark.asyncio
async def test_invalid_sort_is_rejected(services, seeded) -> None:
    with pytest.raises(ValidationFailedError):
        await services.directory.list_skills(seeded, sort_by="random")
    with pytest.raises(ValidationFailedError):
        await services.directory.search(seeded, "a", sort_by="votes")


@pytest.mark.asyncio
async def test_search_ranks_and_skips_hidden(services, seeded) -> None:
    results = await services.directory.search(seeded, "  GIT ")
    assert [skill.slug for skill, _ in results] == ["github"]
    assert await services.directory.search(seeded, "hidden") == []
    assert await services.directory.search(seeded, "   ") == []

    by_downloads = await services.directory.search(seeded, "skill", sort_by="downloads")
    assert [skill.slug for skill, _ in by_downloads] == ["alpha", "beta", "github"]
    assert len(await services.directory.search(seeded, "skill", limit=1)) == 1


@pytest.mark.asyncio
async def test_resolve_by_slug_or_id(services, seeded) -> None:
    alpha = await services.directory.resolve(seeded, slug="alpha")
    assert (await services.directory.resolve(seeded, skill_id=str(alpha.id))).slug == "alpha"

    with pytest.raises(NotFoundError):
        await services.directory.resolve(seeded, slug="hidden-one")
    with pytest.raises(NotFoundError):
        await services.directory.resolve(seeded, skill_id="not-a-uuid")
    with pytest.raises(ValidationFailedError, match="Missing skill identifier"):
        await services.directory.resolve(seeded)

    hidden = await services.directory.get_by_slug(seeded, "hidden-one", include_hidden=True)
    assert hidden.hidden_reason == "spam"


@pytest.mark.asyncio
async def test_skill_detail_payload(services, seeded) -> None:
    detail = skill_detail(await services.directory.get_by_slug(seeded, "beta"))
    assert detail["skill_id"] == detail["id"]
    assert detail["votes"]["net_score"] == 4
    assert detail["reviews"]["avg_rating"] == 4.0
    assert detail["author"] == "alice"


@pytest.mark.asyncio
async def test_hide_and_unhide(services, seeded, clock) -> None:
    skill = await services.moderation.hide(seeded, "alpha", "  ")
    assert skill.hidden is True
    assert skill.hidden_reason == DEFAULT_HIDE_REASON
    assert skill.hidden_at == clock.now
    assert _slugs(await services.directory.list_skills(seeded)) == ["beta", "github"]

    hidden = await services.moderation.list_hidden(seeded)
    assert [entry["slug"] for entry in hidden] == ["alpha", "hidden-one"]
    await seeded.commit()
    assert (await services.sync_state.load()).total_visible == 2

    await services.moderation.unhide(seeded, "alpha")
    await seeded.commit()
    assert (await services.sync_state.load()).total_visible == 3
    restored = await services.directory.get_by_slug(seeded, "alpha")
    assert (restored.hidden_reason, restored.hidden_at) == (None, None)

    with pytest.raises(NotFoundError):
        await services.moderation.hide(seeded, "missing")
