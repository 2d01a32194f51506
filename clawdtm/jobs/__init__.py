"""Background job scheduling."""

from clawdtm.jobs.registry import JOB_NAMES, build_scheduler, run_job
from clawdtm.jobs.scheduler import JobScheduler, ScheduledJob

__all__ = ["build_scheduler", "JOB_NAMES", "JobScheduler", "run_job", "ScheduledJob"]
