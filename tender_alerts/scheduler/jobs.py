"""Default job set: one per daily bucket, a weekly digest and retention cleanup."""

from functools import partial
from typing import List

from tender_alerts.config.models import AppConfig
from tender_alerts.pipeline.runner import AlertProcessor

from .service import SchedulerService

WEEKLY_JOB = "weekly"
CLEANUP_JOB = "cleanup"


def daily_job_name(bucket: str) -> str:
    return f"daily-{bucket}"


def daily_expression(bucket: str) -> str:
    """Crontab firing once a day at an 'HH:MM' bucket."""
    hour, minute = bucket.split(":")
    return f"{int(minute)} {int(hour)} * * *"


def register_default_jobs(
    scheduler: SchedulerService,
    processor: AlertProcessor,
    app_config: AppConfig,
) -> List[str]:
    """Register every timer-driven job. Nothing starts until start()/start_all().

    Returns:
        Registered job names in registration order
    """
    names = []
    for bucket in app_config.scheduler.daily_times:
        name = daily_job_name(bucket)
        scheduler.register(name, daily_expression(bucket), partial(processor.run_daily, bucket))
        names.append(name)

    scheduler.register(WEEKLY_JOB, app_config.scheduler.weekly_schedule, processor.run_weekly)
    names.append(WEEKLY_JOB)

    scheduler.register(CLEANUP_JOB, app_config.scheduler.cleanup_schedule, processor.cleanup)
    names.append(CLEANUP_JOB)

    return names
