"""Periodic job definitions wired from configuration."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from clawdtm.db import session_scope
from clawdtm.jobs.scheduler import JobScheduler
from clawdtm.runtime import Services

logger = logging.getLogger(__name__)

JOB_NAMES = ("catalog_sync", "stat_backfill", "leaderboard", "static_index", "categorization", "rate_limit_prune")


async def run_catalog_sync(services: Services) -> dict[str, Any]:
    report = await services.sync.run(max_batches=services.config.sync.max_batches)
    return report.to_dict()


async def run_stat_backfill(services: Services) -> dict[str, Any]:
    cfg = services.config.backfill
    report = await services.backfill.run(batch_size=cfg.batch_size, max_batches=cfg.max_batches)
    return report.to_dict()


async def run_leaderboard(services: Services) -> dict[str, int]:
    return await services.leaderboards.rebuild()


async def run_static_index(services: Services) -> dict[str, Any]:
    path = services.config.indexer.output_path
    if not path:
        return {"skipped": True}
    index = await services.indexer.write(path)
    return {"path": path, "total_skills": index["total_skills"]}


async def run_categorization(services: Services) -> dict[str, Any]:
    report = await services.categorizer.run(limit=services.config.categorization.batch_limit)
    return report.to_dict()


async def run_rate_limit_prune(services: Services) -> dict[str, int]:
    limits = services.config.rate_limit
    cutoff = services.now_fn() - timedelta(hours=limits.prune_retention_hours)
    async with session_scope(services.session_factory) as session:
        removed = await services.rate_gate.prune(session, cutoff, window_seconds=limits.window_seconds)
    return {"removed": removed}


_RUNNERS = {
    "catalog_sync": run_catalog_sync,
    "stat_backfill": run_stat_backfill,
    "leaderboard": run_leaderboard,
    "static_index": run_static_index,
    "categorization": run_categorization,
    "rate_limit_prune": run_rate_limit_prune,
}


async def run_job(services: Services, name: str) -> Any:
    """Run one job directly, outside the scheduler."""
    if name not in _RUNNERS:
        raise KeyError(f"unknown job: {name}")
    return await _RUNNERS[name](services)


def build_scheduler(services: Services) -> JobScheduler:
    """Register every enabled job; the static index needs an output path too."""
    scheduler = JobScheduler()
    schedule = services.config.scheduler
    for name in JOB_NAMES:
        job_config = getattr(schedule, name)
        if not job_config.enabled:
            logger.info("job disabled name=%s", name)
            continue
        if name == "static_index" and not services.config.indexer.output_path:
            logger.info("job disabled name=%s reason=no_output_path", name)
            continue
        runner = _RUNNERS[name]

        async def _call(runner=runner) -> Any:
            return await runner(services)

        scheduler.add(name, job_config.interval_seconds, _call)
    return scheduler
