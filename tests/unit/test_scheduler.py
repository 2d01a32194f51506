"""Interval scheduler and the job registry."""

from __future__ import annotations

import asyncio

import pytest

from clawdtm.db import session_scope
from clawdtm.jobs import JOB_NAMES, JobScheduler, build_scheduler, run_job
from clawdtm.runtime import build_services


async def _noop() -> str:
    return "ok"


def test_add_rejects_duplicates_and_bad_intervals() -> None:
    scheduler = JobScheduler()
    scheduler.add("sync", 10, _noop)
    with pytest.raises(ValueError):
        scheduler.add("sync", 10, _noop)
    with pytest.raises(ValueError):
        scheduler.add("other", 0, _noop)
    assert list(scheduler.jobs) == ["sync"]


@pytest.mark.asyncio
async def test_run_once_records_result() -> None:
    scheduler = JobScheduler()
    job = scheduler.add("sync", 10, _noop)

    assert await scheduler.run_once("sync") == "ok"
    assert (job.runs, job.failures, job.last_result) == (1, 0, "ok")
    assert job.status()["running"] is False


@pytest.mark.asyncio
async def test_failures_are_counted_not_raised() -> None:
    async def boom() -> None:
        raise RuntimeError("upstream down")

    scheduler = JobScheduler()
    job = scheduler.add("sync", 10, boom)

    assert await scheduler.run_once("sync") is None
    assert await scheduler.run_once("sync") is None
    assert (job.runs, job.failures, job.last_error) == (0, 2, "upstream down")


@pytest.mark.asyncio
async def test_tick_is_skipped_while_previous_run_is_in_flight() -> None:
    release = asyncio.Event()

    async def slow() -> str:
        await release.wait()
        return "done"

    scheduler = JobScheduler()
    job = scheduler.add("slow", 10, slow)

    first = scheduler.trigger("slow")
    await asyncio.sleep(0)
    assert scheduler.trigger("slow") is None
    assert job.skipped_ticks == 1

    release.set()
    assert await first == "done"
    assert job.runs == 1


@pytest.mark.asyncio
async def test_start_runs_jobs_on_their_interval_and_stop_cancels() -> None:
    calls: list[str] = []

    async def tick() -> None:
        calls.append("tick")

    scheduler = JobScheduler()
    scheduler.add("fast", 0.01, tick, run_on_start=True)
    await scheduler.start()
    await asyncio.sleep(0.1)
    await scheduler.stop()

    count = len(calls)
    assert count >= 2
    await asyncio.sleep(0.05)
    assert len(calls) == count


@pytest.mark.asyncio
async def test_stop_cancels_in_flight_runs() -> None:
    started = asyncio.Event()

    async def forever() -> None:
        started.set()
        await asyncio.Event().wait()

    scheduler = JobScheduler()
    job = scheduler.add("forever", 10, forever, run_on_start=True)
    await scheduler.start()
    await asyncio.wait_for(started.wait(), timeout=1)
    await scheduler.stop()

    assert job.is_running is False


# --- registry ---------------------------------------------------------------


def test_build_scheduler_registers_enabled_jobs(make_config) -> None:
    services = build_services(make_config())
    assert sorted(build_scheduler(services).jobs) == ["catalog_sync", "categorization", "leaderboard", "stat_backfill"]


def test_build_scheduler_honours_config(make_config, tmp_path) -> None:
    config = make_config(
        indexer={"output_path": str(tmp_path / "index.json")},
        scheduler={
            "leaderboard": {"enabled": False, "interval_seconds": 60},
            "rate_limit_prune": {"enabled": True, "interval_seconds": 120},
        },
    )
    jobs = build_scheduler(build_services(config)).jobs

    assert "leaderboard" not in jobs
    assert "static_index" in jobs
    assert jobs["rate_limit_prune"].interval_seconds == 120


@pytest.mark.asyncio
async def test_run_job_rejects_unknown_names(services) -> None:
    assert "bogus" not in JOB_NAMES
    with pytest.raises(KeyError):
        await run_job(services, "bogus")


@pytest.mark.asyncio
async def test_static_index_job_needs_an_output_path(services) -> None:
    assert await run_job(services, "static_index") == {"skipped": True}


@pytest.mark.asyncio
async def test_static_index_job_writes_file(make_config, fake_catalog, clock, tmp_path) -> None:
    target = tmp_path / "site" / "index.json"
    services = build_services(
        make_config(indexer={"output_path": str(target)}), catalog_transport=fake_catalog.transport(), now_fn=clock
    )
    await services.create_schema()
    try:
        assert await run_job(services, "static_index") == {"path": str(target), "total_skills": 0}
        assert target.exists()
    finally:
        await services.close()


@pytest.mark.asyncio
async def test_catalog_sync_job(services, fake_catalog, item) -> None:
    fake_catalog.set_skills([item("alpha"), item("beta"), item("gamma")])

    result = await run_job(services, "catalog_sync")

    assert result["status"] == "completed"
    assert result["batches"] == 2


@pytest.mark.asyncio
async def test_rate_limit_prune_job(services, clock) -> None:
    async with session_scope(services.session_factory) as session:
        await services.rate_gate.enforce(session, "agent:one")

    assert await run_job(services, "rate_limit_prune") == {"removed": 0}
    clock.advance(hours=26)
    assert await run_job(services, "rate_limit_prune") == {"removed": 1}
