"""Scheduler service for timezone-aware batch runs."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from tender_alerts.logging import get_logger
from tender_alerts.logging.context import log_context
from tender_alerts.utils.timestamps import utc_now

logger = get_logger(__name__, component="scheduler")

JobAction = Callable[[], Awaitable[Any]]


class SchedulerError(Exception):
    """Raised when a job cannot be registered."""

    pass


class UnknownJobError(SchedulerError):
    """Raised when an operation names a job that is not registered."""

    def __init__(self, name: str):
        super().__init__(f"Unknown job: '{name}'")
        self.name = name


@dataclass
class JobState:
    """
    Registration and run state of one named job.

    Attributes:
        name: Job name (also the APScheduler job id)
        expression: Five-field crontab expression
        timezone: IANA zone the expression is evaluated in
        action: Coroutine function invoked on each fire
        active: Whether timer-driven triggers are enabled
        in_flight: Whether a run is currently executing
        last_run_at: UTC start time of the most recent run
        last_error: Message of the most recent failed run
    """

    name: str
    expression: str
    timezone: str
    action: JobAction
    trigger: CronTrigger
    active: bool = False
    in_flight: bool = False
    last_run_at: Optional[datetime] = None
    last_error: Optional[str] = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class SchedulerService:
    """
    Wraps APScheduler's AsyncIOScheduler to fire named jobs on cron schedules.

    The scheduler only knows {name, schedule, timezone} and an injected
    coroutine per job; it carries no business logic. Runs of the same job never
    overlap: a trigger arriving while the previous run is in flight is skipped
    with a warning, whether it came from the timer or from trigger().
    """

    def __init__(
        self,
        timezone: str = "Asia/Colombo",
        slow_run_threshold: float = 600.0,
        scheduler: Optional[AsyncIOScheduler] = None,
    ):
        """
        Initialize the scheduler service.

        Args:
            timezone: IANA zone every schedule is evaluated in
            slow_run_threshold: Seconds after which an in-flight run is logged as slow
            scheduler: Pre-built AsyncIOScheduler (tests)
        """
        self.timezone = timezone
        self.slow_run_threshold = slow_run_threshold
        self.scheduler = scheduler or AsyncIOScheduler(
            job_defaults={
                "max_instances": 1,  # Prevent overlapping runs
                "coalesce": True,  # If run is delayed, only execute once
                "misfire_grace_time": 300,
            },
            timezone=ZoneInfo(timezone),
        )
        self._jobs: Dict[str, JobState] = {}
        # AsyncIOScheduler.shutdown() defers the real stop to the next loop tick,
        # so scheduler.running lags behind; this flag tracks our own start/shutdown
        self._started = False

    def register(
        self,
        name: str,
        expression: str,
        action: JobAction,
        timezone: Optional[str] = None,
    ) -> JobState:
        """
        Register a named job without starting it.

        Raises:
            SchedulerError: If the name is taken or the expression is invalid
        """
        if name in self._jobs:
            raise SchedulerError(f"Job '{name}' is already registered")

        tz = timezone or self.timezone
        try:
            trigger = CronTrigger.from_crontab(expression, timezone=ZoneInfo(tz))
        except ValueError as e:
            raise SchedulerError(f"Invalid schedule for job '{name}': {e}") from e

        state = JobState(
            name=name, expression=expression, timezone=tz, action=action, trigger=trigger
        )
        self._jobs[name] = state
        logger.debug(
            f"Registered job {name} ({expression} {tz})",
            extra={"event": "scheduler.job.registered", "job_name": name},
        )
        return state

    @property
    def job_names(self) -> List[str]:
        return list(self._jobs)

    def start(self, name: str) -> bool:
        """
        Enable timer-driven triggers for a job.

        Returns:
            False if the job was already active
        """
        state = self._get(name)
        if state.active:
            return False

        self.scheduler.add_job(
            self._fire,
            trigger=state.trigger,
            args=[name],
            id=name,
            name=name,
            replace_existing=True,
        )
        if not self._started:
            self.scheduler.start()
            self._started = True

        state.active = True
        logger.info(
            f"Job {name} started",
            extra={
                "event": "scheduler.job.started",
                "job_name": name,
                "schedule": state.expression,
                "timezone": state.timezone,
                "next_run_at": _iso(self._next_run_at(state)),
            },
        )
        return True

    def stop(self, name: str) -> bool:
        """
        Disable future triggers. A run already in flight completes unmanaged.

        Returns:
            False if the job was not active
        """
        state = self._get(name)
        if not state.active:
            return False

        if self.scheduler.get_job(name) is not None:
            self.scheduler.remove_job(name)
        state.active = False
        logger.info(f"Job {name} stopped", extra={"event": "scheduler.job.stopped", "job_name": name})
        return True

    def start_all(self) -> List[str]:
        return [name for name in list(self._jobs) if self.start(name)]

    def stop_all(self) -> List[str]:
        return [name for name in list(self._jobs) if self.stop(name)]

    async def trigger(self, name: str) -> Any:
        """
        Run a job now through the same path as a timer fire.

        Returns:
            The action's return value, or None if a run was already in flight

        Raises:
            UnknownJobError: If no job has this name
            Exception: Whatever the action raised
        """
        self._get(name)
        logger.info(
            f"Manual trigger of job {name}",
            extra={"event": "scheduler.job.triggered", "job_name": name},
        )
        return await self._execute(name)

    def status(self) -> Dict[str, Dict[str, Any]]:
        """Schedule, timezone, active/in-flight flags and last/next run per job."""
        report = {}
        for name, state in self._jobs.items():
            report[name] = {
                "schedule": state.expression,
                "timezone": state.timezone,
                "active": state.active,
                "running": state.in_flight,
                "last_run_at": state.last_run_at,
                "next_run_at": self._next_run_at(state),
                "last_error": state.last_error,
            }
        return report

    def is_running(self) -> bool:
        return self._started

    def shutdown(self) -> None:
        """Stop every job and clear all registrations. Safe to call repeatedly."""
        if not self._jobs and not self._started:
            return

        logger.info("Shutting down scheduler", extra={"event": "scheduler.stopping"})
        self.stop_all()
        if self._started:
            self._started = False
            self.scheduler.shutdown(wait=False)
        self._jobs.clear()
        logger.info("Scheduler shutdown complete", extra={"event": "scheduler.stopped"})

    async def _fire(self, name: str) -> None:
        # Timer path has no caller to raise to; failures end in the job.failed log
        await self._execute(name, propagate=False)

    async def _execute(self, name: str, propagate: bool = True) -> Any:
        state = self._get(name)
        if state.lock.locked():
            logger.warning(
                f"Job {name} skipped: previous run still in progress",
                extra={"event": "scheduler.job.skipped", "job_name": name, "reason": "in_flight"},
            )
            return None

        async with state.lock:
            state.in_flight = True
            state.last_run_at = utc_now()
            with log_context(job_name=name):
                try:
                    result = await self._run_with_watchdog(state)
                except Exception as e:
                    state.last_error = str(e)
                    logger.error(
                        f"Job {name} failed: {e}",
                        exc_info=True,
                        extra={"event": "scheduler.job.failed", "job_name": name},
                    )
                    if propagate:
                        raise
                    return None
                else:
                    state.last_error = None
                    return result
                finally:
                    state.in_flight = False

    async def _run_with_watchdog(self, state: JobState) -> Any:
        task = asyncio.ensure_future(state.action())
        try:
            return await asyncio.wait_for(asyncio.shield(task), self.slow_run_threshold)
        except asyncio.TimeoutError:
            logger.warning(
                f"Job {state.name} still running after {self.slow_run_threshold:.0f}s",
                extra={
                    "event": "scheduler.job.slow",
                    "job_name": state.name,
                    "threshold_seconds": self.slow_run_threshold,
                },
            )
            return await task

    def _next_run_at(self, state: JobState) -> Optional[datetime]:
        if state.active:
            job = self.scheduler.get_job(state.name)
            next_run = getattr(job, "next_run_time", None) if job else None
            if next_run is not None:
                return next_run
        now = datetime.now(ZoneInfo(state.timezone))
        return state.trigger.get_next_fire_time(None, now)

    def _get(self, name: str) -> JobState:
        try:
            return self._jobs[name]
        except KeyError:
            raise UnknownJobError(name) from None


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
