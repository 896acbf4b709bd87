"""Timezone-aware scheduling of batch runs."""

from .jobs import CLEANUP_JOB, WEEKLY_JOB, daily_job_name, register_default_jobs
from .service import JobState, SchedulerError, SchedulerService, UnknownJobError

__all__ = [
    "CLEANUP_JOB",
    "JobState",
    "SchedulerError",
    "SchedulerService",
    "UnknownJobError",
    "WEEKLY_JOB",
    "daily_job_name",
    "register_default_jobs",
]
