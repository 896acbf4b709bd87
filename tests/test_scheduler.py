"""Unit tests for the scheduler service.

Tests the SchedulerService including:
- Job registration and schedule validation
- Timezone-aware next run times
- Start/stop/shutdown lifecycle (idempotent)
- Manual triggers and overlapping-run prevention
- Failure handling on the timer and manual paths
- Slow-run warnings
- Default job set registration
"""

import asyncio
import logging
from unittest.mock import AsyncMock

import pytest

from tender_alerts.config.models import AppConfig
from tender_alerts.scheduler.jobs import (
    CLEANUP_JOB,
    WEEKLY_JOB,
    daily_expression,
    daily_job_name,
    register_default_jobs,
)
from tender_alerts.scheduler.service import SchedulerError, SchedulerService, UnknownJobError


@pytest.fixture
def service():
    """Scheduler in Colombo time; shut down after each test."""
    scheduler = SchedulerService(timezone="Asia/Colombo", slow_run_threshold=60)
    yield scheduler
    scheduler.shutdown()


async def noop():
    return "ok"


class TestRegistration:
    def test_duplicate_name_rejected(self, service):
        service.register("weekly", "0 9 * * 1", noop)

        with pytest.raises(SchedulerError, match="already registered"):
            service.register("weekly", "0 10 * * 1", noop)

    def test_invalid_expression_rejected(self, service):
        with pytest.raises(SchedulerError, match="Invalid schedule"):
            service.register("broken", "61 25 * * *", noop)

    def test_next_run_evaluated_in_configured_timezone(self, service):
        service.register("daily-09:00", "0 9 * * *", noop)

        info = service.status()["daily-09:00"]

        assert info["timezone"] == "Asia/Colombo"
        assert info["active"] is False
        next_run = info["next_run_at"]
        assert (next_run.hour, next_run.minute) == (9, 0)
        assert next_run.utcoffset().total_seconds() == 5.5 * 3600

    def test_unknown_job_operations_raise(self, service):
        with pytest.raises(UnknownJobError):
            service.start("nope")
        with pytest.raises(UnknownJobError):
            service.stop("nope")


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_and_stop_are_idempotent(self, service):
        service.register("weekly", "0 9 * * 1", noop)

        assert service.start("weekly") is True
        assert service.start("weekly") is False
        assert service.is_running()
        assert service.status()["weekly"]["active"] is True
        assert service.scheduler.get_job("weekly") is not None

        assert service.stop("weekly") is True
        assert service.stop("weekly") is False
        assert service.scheduler.get_job("weekly") is None

        service.shutdown()
        assert not service.is_running()
        await asyncio.sleep(0)
        assert not service.scheduler.running

    @pytest.mark.asyncio
    async def test_start_all_and_shutdown(self, service):
        service.register("a", "0 8 * * *", noop)
        service.register("b", "0 18 * * *", noop)

        assert service.start_all() == ["a", "b"]
        assert service.start_all() == []

        service.shutdown()
        service.shutdown()
        await asyncio.sleep(0)

        assert service.job_names == []
        assert not service.is_running()
        assert not service.scheduler.running

    @pytest.mark.asyncio
    async def test_repeated_shutdown_in_one_tick_raises_nothing_on_the_loop(self, service):
        loop_errors = []
        loop = asyncio.get_running_loop()
        loop.set_exception_handler(lambda _loop, context: loop_errors.append(context))
        service.register("weekly", "0 9 * * 1", noop)
        service.start("weekly")

        try:
            service.shutdown()
            service.shutdown()
            await asyncio.sleep(0.01)
        finally:
            loop.set_exception_handler(None)

        assert loop_errors == []
        assert not service.scheduler.running


class TestTrigger:
    @pytest.mark.asyncio
    async def test_trigger_returns_action_result(self, service):
        service.register("weekly", "0 9 * * 1", noop)

        assert await service.trigger("weekly") == "ok"
        assert service.status()["weekly"]["last_run_at"] is not None

    @pytest.mark.asyncio
    async def test_trigger_unknown_job(self, service):
        with pytest.raises(UnknownJobError, match="nope"):
            await service.trigger("nope")

    @pytest.mark.asyncio
    async def test_overlapping_triggers_run_once(self, service, caplog):
        """A second trigger while the first is in flight is skipped."""
        caplog.set_level(logging.INFO)
        started = asyncio.Event()
        release = asyncio.Event()
        calls = []

        async def slow_action():
            calls.append(1)
            started.set()
            await release.wait()
            return "done"

        service.register("daily-09:00", "0 9 * * *", slow_action)

        first = asyncio.create_task(service.trigger("daily-09:00"))
        await started.wait()
        assert service.status()["daily-09:00"]["running"] is True

        second = await service.trigger("daily-09:00")
        release.set()

        assert second is None
        assert await first == "done"
        assert len(calls) == 1
        assert any(getattr(r, "event", None) == "scheduler.job.skipped" for r in caplog.records)
        assert service.status()["daily-09:00"]["running"] is False

    @pytest.mark.asyncio
    async def test_manual_trigger_propagates_failure(self, service):
        async def failing():
            raise RuntimeError("database unavailable")

        service.register("cleanup", "0 2 * * *", failing)

        with pytest.raises(RuntimeError):
            await service.trigger("cleanup")
        assert service.status()["cleanup"]["last_error"] == "database unavailable"

    @pytest.mark.asyncio
    async def test_timer_fire_logs_failure_without_raising(self, service, caplog):
        async def failing():
            raise RuntimeError("database unavailable")

        service.register("cleanup", "0 2 * * *", failing)

        await service._fire("cleanup")

        assert service.status()["cleanup"]["last_error"] == "database unavailable"
        failed = [r for r in caplog.records if getattr(r, "event", None) == "scheduler.job.failed"]
        assert failed and failed[0].levelname == "ERROR"

    @pytest.mark.asyncio
    async def test_successful_run_clears_last_error(self, service):
        outcomes = [RuntimeError("first"), None]

        async def sometimes():
            outcome = outcomes.pop(0)
            if outcome:
                raise outcome
            return "recovered"

        service.register("weekly", "0 9 * * 1", sometimes)
        await service._fire("weekly")
        assert service.status()["weekly"]["last_error"] == "first"

        assert await service.trigger("weekly") == "recovered"
        assert service.status()["weekly"]["last_error"] is None

    @pytest.mark.asyncio
    async def test_slow_run_is_logged_and_completes(self, caplog):
        caplog.set_level(logging.INFO)
        service = SchedulerService(timezone="UTC", slow_run_threshold=0.01)

        async def slow():
            await asyncio.sleep(0.05)
            return "finished"

        service.register("weekly", "0 9 * * 1", slow)
        try:
            assert await service.trigger("weekly") == "finished"
        finally:
            service.shutdown()

        assert any(getattr(r, "event", None) == "scheduler.job.slow" for r in caplog.records)


class TestDefaultJobs:
    def test_daily_job_naming(self):
        assert daily_job_name("09:00") == "daily-09:00"
        assert daily_expression("09:30") == "30 9 * * *"
        assert daily_expression("18:00") == "0 18 * * *"

    @pytest.mark.asyncio
    async def test_register_default_jobs(self, service):
        app_config = AppConfig.model_validate(
            {"scheduler": {"daily_times": ["08:00", "9:00", "09:00"]}}
        )
        processor = AsyncMock()

        names = register_default_jobs(service, processor, app_config)

        assert names == ["daily-08:00", "daily-09:00", WEEKLY_JOB, CLEANUP_JOB]
        assert service.status()[WEEKLY_JOB]["schedule"] == "0 9 * * 1"

        await service.trigger("daily-09:00")
        processor.run_daily.assert_awaited_once_with("09:00")

        await service.trigger(CLEANUP_JOB)
        processor.cleanup.assert_awaited_once()
