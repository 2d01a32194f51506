"""Unit tests for the catalog upsert reconciler."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from clawdtm.catalog import Reconciler
from clawdtm.models import CachedSkill


@pytest.fixture
def reconciler(clock) -> Reconciler:
    return Reconciler(touch_interval=timedelta(hours=1), now_fn=clock)


async def _get(session, slug: str) -> CachedSkill:
    return await session.scalar(select(CachedSkill).where(CachedSkill.slug == slug))


@pytest.mark.asyncio
async def test_inserts_new_records(session, reconciler, item, clock) -> None:
    result = await reconciler.apply(session, [item("a"), item("b")])
    assert (result.inserted, result.processed) == (2, 2)
    skill = await _get(session, "a")
    assert skill.name == "A"
    assert skill.tags == ["latest", "search"]
    assert skill.last_synced_at == clock.now
    assert skill.upvotes == 0
    assert skill.hidden is False


@pytest.mark.asyncio
async def test_missing_author_defaults_to_unknown_on_insert(session, reconciler, item) -> None:
    raw = item("anon")
    del raw["ownerHandle"]
    await reconciler.apply(session, [raw])
    assert (await _get(session, "anon")).author == "unknown"


@pytest.mark.asyncio
async def test_update_keeps_local_fields(session, reconciler, item) -> None:
    await reconciler.apply(session, [item("a")])
    skill = await _get(session, "a")
    skill.category = "web"
    skill.hidden = True
    skill.upvotes = 4
    skill.review_count = 2
    await session.flush()

    result = await reconciler.apply(session, [item("a", stats={"downloads": 99, "stars": 1, "installsAllTime": 5})])
    assert result.updated == 1
    skill = await _get(session, "a")
    assert skill.downloads == 99
    assert skill.category == "web"
    assert skill.hidden is True
    assert (skill.upvotes, skill.review_count) == (4, 2)


@pytest.mark.asyncio
async def test_record_category_overrides_when_present(session, reconciler, item) -> None:
    await reconciler.apply(session, [item("a")])
    skill = await _get(session, "a")
    skill.category = "web"
    await session.flush()
    await reconciler.apply(session, [item("a", category="DevOps")])
    assert (await _get(session, "a")).category == "devops"


@pytest.mark.asyncio
async def test_missing_author_keeps_stored_author(session, reconciler, item) -> None:
    await reconciler.apply(session, [item("a")])
    raw = item("a", summary="changed")
    del raw["ownerHandle"]
    await reconciler.apply(session, [raw])
    skill = await _get(session, "a")
    assert skill.author == "alice"
    assert skill.description == "changed"


@pytest.mark.asyncio
async def test_unchanged_then_touched_after_interval(session, reconciler, item, clock) -> None:
    await reconciler.apply(session, [item("a")])
    first_sync = clock.now

    clock.advance(minutes=10)
    result = await reconciler.apply(session, [item("a")])
    assert result.unchanged == 1
    assert (await _get(session, "a")).last_synced_at == first_sync

    clock.advance(hours=1)
    result = await reconciler.apply(session, [item("a")])
    assert result.touched == 1
    assert (await _get(session, "a")).last_synced_at == clock.now


@pytest.mark.asyncio
async def test_matches_by_external_id_when_slug_changes(session, reconciler, item) -> None:
    await reconciler.apply(session, [item("old-name")])
    renamed = item("new-name", id="ext-old-name")
    result = await reconciler.apply(session, [renamed])
    assert result.updated == 1
    assert await _get(session, "old-name") is None
    assert (await _get(session, "new-name")).external_id == "ext-old-name"


@pytest.mark.asyncio
async def test_falls_back_to_slug_match(session, reconciler, item) -> None:
    await reconciler.apply(session, [item("a")])
    result = await reconciler.apply(session, [item("a", id="new-external-id")])
    assert result.updated == 1
    assert await session.scalar(select(func.count()).select_from(CachedSkill)) == 1
    assert (await _get(session, "a")).external_id == "new-external-id"


@pytest.mark.asyncio
async def test_malformed_records_are_skipped_alone(session, reconciler, item) -> None:
    result = await reconciler.apply(session, [item("a"), {"slug": ""}, "junk", item("b")])
    assert result.inserted == 2
    assert result.skipped == 2
    assert result.to_dict()["processed"] == 2


@pytest.mark.asyncio
async def test_constraint_failure_rolls_back_one_record(session, reconciler, item) -> None:
    await reconciler.apply(session, [item("a"), item("b")])
    # b tries to take a's slug while keeping its own external id
    result = await reconciler.apply(session, [item("a", id="ext-b", summary="clash"), item("c")])
    assert result.skipped == 1
    assert result.inserted == 1
    assert (await _get(session, "b")).description == "The b skill"
    assert await _get(session, "c") is not None


@pytest.mark.asyncio
async def test_legacy_row_without_external_id_adopts_record_id(session, reconciler, item, add_skill) -> None:
    legacy = await add_skill("legacy", external_id=None, upvotes=3)
    legacy_id = legacy.id

    result = await reconciler.apply(session, [item("legacy", id="ext-fresh", summary="now synced")])
    assert (result.inserted, result.updated) == (0, 1)
    skill = await _get(session, "legacy")
    assert skill.id == legacy_id
    assert skill.external_id == "ext-fresh"
    assert skill.description == "now synced"
    assert skill.upvotes == 3
    assert await session.scalar(select(func.count()).select_from(CachedSkill)) == 1
