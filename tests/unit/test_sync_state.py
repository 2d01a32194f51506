"""Unit tests for the versioned sync checkpoint and catalog summary."""

from __future__ import annotations

import pytest

from clawdtm.errors import CheckpointConflictError
from clawdtm.models import SyncStatus


@pytest.mark.asyncio
async def test_load_creates_idle_checkpoint(services) -> None:
    state = await services.sync_state.load()
    assert state.status == SyncStatus.IDLE.value
    assert state.version == 0
    assert state.cursor is None
    assert (await services.sync_state.load()).version == 0


@pytest.mark.asyncio
async def test_writes_bump_version_and_reject_stale_snapshots(services, clock) -> None:
    store = services.sync_state
    initial = await store.load()
    running = await store.begin_run(initial)
    assert running.version == 1
    assert running.is_running
    assert running.run_started_at == clock.now

    with pytest.raises(CheckpointConflictError) as exc_info:
        await store.begin_run(initial)
    assert exc_info.value.expected_version == 0

    advanced = await store.advance(running, "c1", 2)
    assert (advanced.cursor, advanced.total_synced, advanced.version) == ("c1", 2, 2)
    stored = await store.load()
    assert (stored.cursor, stored.version) == ("c1", 2)


@pytest.mark.asyncio
async def test_begin_run_keeps_cursor_unless_restarting(services) -> None:
    store = services.sync_state
    state = await store.advance(await store.load(), "c3", 6)
    resumed = await store.begin_run(state)
    assert resumed.cursor == "c3"
    restarted = await store.begin_run(await store.release(resumed), restart=True)
    assert restarted.cursor is None
    assert restarted.total_synced == 0


@pytest.mark.asyncio
async def test_complete_and_fail(services, clock) -> None:
    store = services.sync_state
    state = await store.begin_run(await store.load())
    done = await store.complete(state, full=True, synced=4)
    assert done.status == SyncStatus.IDLE.value
    assert done.last_full_sync_at == clock.now
    assert done.last_incremental_sync_at is None
    assert done.total_synced == 4

    failed = await store.fail(await store.begin_run(done), "x" * 5000)
    assert failed.status == SyncStatus.ERROR.value
    assert len(failed.last_error) == 2000
    assert failed.run_started_at is None


@pytest.mark.asyncio
async def test_reset_clears_cursor_and_error(services) -> None:
    store = services.sync_state
    state = await store.advance(await store.load(), "c2", 2)
    await store.fail(await store.begin_run(state), "boom")
    reset = await store.reset()
    assert reset.cursor is None
    assert reset.status == SyncStatus.IDLE.value
    assert reset.last_error is None


@pytest.mark.asyncio
async def test_summary_counts_visible_skills_only(services, session, add_skill) -> None:
    await add_skill("a", category="web", tags=["python", "latest", "web"])
    await add_skill("b", category="web", tags=["python", "v1.0.0"])
    await add_skill("c", tags=["python"])
    await add_skill("d", category="web", tags=["python"], hidden=True)
    await session.commit()

    summary = await services.sync_state.refresh_summary()
    assert summary.total_visible == 3
    assert summary.category_counts == {"uncategorized": 1, "web": 2}
    assert summary.tag_counts == [{"tag": "python", "count": 3}, {"tag": "web", "count": 1}]

    stored = await services.sync_state.load()
    assert stored.total_visible == 3
    assert stored.category_counts == {"uncategorized": 1, "web": 2}
    # summary refreshes never race the cursor
    assert stored.version == 0
