"""Processing orchestrator for immediate, daily and weekly alert runs."""

import asyncio
from collections import deque
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Deque, Dict, List, Optional

from tender_alerts.config.models import AppConfig
from tender_alerts.domain.models import AlertConfiguration, NotificationJob, TenderRecord
from tender_alerts.logging import get_logger
from tender_alerts.logging.context import log_context, new_run_id, run_context
from tender_alerts.matching.engine import MatchingEngine
from tender_alerts.matching.models import RecipientMatches
from tender_alerts.notifications.models import DeliveryError, NotificationTemplateError
from tender_alerts.notifications.templates import TemplateRenderer
from tender_alerts.notifications.transport import DeliveryTransport
from tender_alerts.persistence.interfaces import (
    ConfigurationRegistry,
    RecordSource,
    RetentionStore,
    StatsStore,
)
from tender_alerts.utils.timestamps import normalize_time_of_day, utc_now

from .models import RunError, RunMode, RunResult

logger = get_logger(__name__, component="orchestrator")


class AlertProcessor:
    """
    Wires registry, matching, rendering and delivery for one run at a time.

    Every run goes Fetching -> Matching -> Rendering -> Dispatching -> Reporting.
    The three run modes differ only in how configurations and candidate records
    are fetched. Failures inside the per-owner and per-recipient loops are
    recorded on the RunResult and never abort the run; stats are written only
    after a confirmed send.
    """

    def __init__(
        self,
        app_config: AppConfig,
        registry: ConfigurationRegistry,
        records: RecordSource,
        stats: StatsStore,
        renderer: TemplateRenderer,
        transport: DeliveryTransport,
        retention: Optional[RetentionStore] = None,
        engine: Optional[MatchingEngine] = None,
        clock: Callable[[], datetime] = utc_now,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            app_config: Application configuration (windows, dispatch delay)
            registry: Eligibility queries over configurations
            records: Candidate record source
            stats: Per-configuration stats writer
            renderer: Email renderer
            transport: Delivery transport
            retention: Store used by cleanup runs
            engine: Matching engine (default MatchingEngine())
            clock: Returns the current UTC time
            sleep: Awaitable sleep used for the dispatch delay
        """
        self.app_config = app_config
        self.registry = registry
        self.records = records
        self.stats = stats
        self.renderer = renderer
        self.transport = transport
        self.retention = retention
        self.engine = engine or MatchingEngine()
        self.clock = clock
        self._sleep = sleep or asyncio.sleep
        self._queue: Deque[TenderRecord] = deque()
        self._draining = False
        self._drain_task: Optional[asyncio.Task] = None

    async def process_new_record(self, record: TenderRecord) -> RunResult:
        """Immediate mode: match one newly observed record against immediate configurations."""
        result = self._start(RunMode.IMMEDIATE)
        with run_context(result.run_id, result.mode.value, record_id=record.id):
            configs = await self.registry.find_active_immediate()
            await self._process(result, configs, [record])
        return self._finish(result)

    async def run_daily(self, time_bucket: str) -> RunResult:
        """Daily mode: configurations in this bucket against the daily window."""
        bucket = normalize_time_of_day(time_bucket)
        result = self._start(RunMode.DAILY)
        with run_context(result.run_id, result.mode.value, time_bucket=bucket):
            window = timedelta(seconds=self.app_config.window_seconds("daily_window"))
            candidates = await self.records.find_published_since(result.started_at - window)
            if not candidates:
                logger.info(
                    f"No records published in the last {window}, skipping daily run",
                    extra={"event": "alerts.run.empty_window", "time_bucket": bucket},
                )
                return self._finish(result)

            configs = await self.registry.find_active_daily(bucket)
            await self._process(result, configs, candidates)
        return self._finish(result)

    async def run_weekly(self, as_of: Optional[datetime] = None) -> RunResult:
        """Weekly mode: configurations due for a digest against the weekly window."""
        result = self._start(RunMode.WEEKLY)
        as_of = as_of or result.started_at
        with run_context(result.run_id, result.mode.value):
            window = timedelta(seconds=self.app_config.window_seconds("weekly_window"))
            candidates = await self.records.find_published_since(as_of - window)
            if not candidates:
                logger.info(
                    f"No records published in the last {window}, skipping weekly run",
                    extra={"event": "alerts.run.empty_window"},
                )
                return self._finish(result)

            resend = timedelta(seconds=self.app_config.window_seconds("weekly_resend_interval"))
            configs = await self.registry.find_active_weekly(as_of, resend)
            await self._process(result, configs, candidates)
        return self._finish(result)

    async def cleanup(self) -> RunResult:
        """Delete inactive configurations older than the retention period."""
        result = self._start(RunMode.CLEANUP)
        with run_context(result.run_id, result.mode.value):
            if self.retention is None:
                logger.warning(
                    "Cleanup requested but no retention store is configured",
                    extra={"event": "alerts.cleanup.unavailable"},
                )
                return self._finish(result)

            retention = timedelta(seconds=self.app_config.window_seconds("retention_period"))
            cutoff = result.started_at - retention
            result.deleted_count = await self.retention.delete_inactive_before(cutoff)
        return self._finish(result)

    def enqueue_record(self, record: TenderRecord) -> int:
        """Queue a newly observed record for immediate processing; returns queue length.

        Inside a running event loop an idle queue starts draining on its own.
        Without one, the caller is expected to await drain_queue().
        """
        self._queue.append(record)
        logger.debug(
            f"Queued record {record.id}",
            extra={"event": "alerts.queue.added", "queue_length": len(self._queue)},
        )
        self._schedule_drain()
        return len(self._queue)

    async def wait_idle(self) -> None:
        """Wait for the background drain started by enqueue_record, if any."""
        task = self._drain_task
        if task is not None and not task.done():
            await asyncio.wait([task])

    async def drain_queue(self) -> List[RunResult]:
        """Process queued records one at a time, pausing between records.

        Only one drain loop runs at a time; a concurrent call returns an empty
        list and the active loop picks up whatever was queued.
        """
        if self._draining:
            return []

        self._draining = True
        results: List[RunResult] = []
        try:
            while self._queue:
                record = self._queue.popleft()
                results.append(await self.process_new_record(record))
                if self._queue:
                    await self._pause()
        finally:
            self._draining = False
        return results

    def queue_stats(self) -> Dict[str, object]:
        return {"queue_length": len(self._queue), "is_processing": self._draining}

    def _schedule_drain(self) -> None:
        if self._draining or (self._drain_task is not None and not self._drain_task.done()):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._drain_task = loop.create_task(self.drain_queue())
        self._drain_task.add_done_callback(self._drain_finished)

    def _drain_finished(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                f"Queue drain failed with {len(self._queue)} record(s) left: {error}",
                exc_info=error,
                extra={"event": "alerts.queue.failed", "queue_length": len(self._queue)},
            )

    def _start(self, mode: RunMode) -> RunResult:
        return RunResult(mode=mode, run_id=new_run_id(), started_at=self.clock())

    def _finish(self, result: RunResult) -> RunResult:
        result.finished_at = self.clock()
        event_extra = {
            "event": "alerts.run.completed",
            "run_mode": result.mode.value,
            "run_id": result.run_id,
            "processed_owners": result.processed_owners,
            "emails_sent": result.emails_sent,
            "error_count": len(result.errors),
            "duration_seconds": round(result.duration_seconds, 3),
        }
        if result.errors:
            logger.warning(
                f"{result.mode.value} run finished with {len(result.errors)} error(s)",
                extra=event_extra,
            )
        else:
            logger.info(f"{result.mode.value} run finished", extra=event_extra)
        return result

    def _eligible(self, configs: List[AlertConfiguration]) -> List[AlertConfiguration]:
        eligible = []
        for config in configs:
            if not config.owner.email_alerts_enabled:
                logger.debug(
                    f"Owner {config.owner_id} lacks the email alerts entitlement",
                    extra={
                        "event": "alerts.config.skipped",
                        "reason": "no_entitlement",
                        "config_id": config.id,
                    },
                )
                continue
            if not config.is_active or not config.email_settings.enabled:
                logger.debug(
                    f"Configuration {config.id} is inactive or has email disabled",
                    extra={
                        "event": "alerts.config.skipped",
                        "reason": "disabled",
                        "config_id": config.id,
                    },
                )
                continue
            eligible.append(config)
        return eligible

    async def _process(
        self,
        result: RunResult,
        configs: List[AlertConfiguration],
        candidates: List[TenderRecord],
    ) -> None:
        eligible = self._eligible(configs)
        result.config_count = len(eligible)
        result.candidate_count = len(candidates)

        logger.info(
            f"Evaluating {len(eligible)} configuration(s) against {len(candidates)} record(s)",
            extra={
                "event": "alerts.run.started",
                "configs": len(eligible),
                "candidates": len(candidates),
            },
        )
        if not eligible or not candidates:
            return

        batch = self.engine.match(eligible, candidates, now=result.started_at)
        for error in batch.errors:
            result.errors.append(
                RunError(
                    kind="match",
                    message=str(error),
                    config_ids=[error.config_id],
                    record_id=error.record_id,
                )
            )

        dispatched = 0
        for owner_matches in batch.owners:
            owner = owner_matches.owner
            with log_context(owner_id=owner.id):
                result.processed_owners += 1
                for group in owner_matches.recipients:
                    if dispatched:
                        await self._pause()
                    dispatched += 1
                    await self._dispatch(result, group)

    async def _dispatch(self, result: RunResult, group: RecipientMatches) -> None:
        config_ids = group.config_ids
        try:
            if result.mode == RunMode.IMMEDIATE:
                rendered = self.renderer.render_immediate(group.records, group.primary_config)
            else:
                rendered = self.renderer.render_summary(
                    group.sections, result.mode.value, group.owner
                )
        except NotificationTemplateError as e:
            self._record_failure(result, "render", e, group)
            return

        job = NotificationJob(
            recipient=group.recipient,
            subject=rendered.subject,
            html_body=rendered.html_body,
            text_body=rendered.text_body,
            record_ids=group.record_ids,
            config_ids=config_ids,
            owner_id=group.owner.id,
        )

        try:
            receipt = await self.transport.send(job)
        except DeliveryError as e:
            self._record_failure(result, "delivery", e, group)
            return
        except Exception as e:
            self._record_failure(result, "delivery", e, group, unexpected=True)
            return

        result.emails_sent += 1
        logger.info(
            f"Sent {result.mode.value} alert with {len(job.record_ids)} record(s) to {job.recipient}",
            extra={
                "event": "alerts.dispatch.sent",
                "delivery_id": receipt.delivery_id,
                "config_ids": config_ids,
                "records": len(job.record_ids),
            },
        )
        await self._report(result, group)

    async def _report(self, result: RunResult, group: RecipientMatches) -> None:
        sent_at = self.clock()
        for config_id, record_id in group.stat_pairs():
            try:
                await self.stats.increment_match_stats(config_id, record_id, sent_at)
            except Exception as e:
                self._record_stats_failure(result, group, config_id, record_id, e)

        for config_id in group.config_ids:
            try:
                await self.stats.increment_email_sent(config_id, sent_at)
            except Exception as e:
                self._record_stats_failure(result, group, config_id, None, e)

    def _record_failure(
        self,
        result: RunResult,
        kind: str,
        error: Exception,
        group: RecipientMatches,
        unexpected: bool = False,
    ) -> None:
        result.errors.append(
            RunError(
                kind=kind,
                message=str(error),
                owner_id=group.owner.id,
                config_ids=group.config_ids,
                recipient=group.recipient,
            )
        )
        logger.error(
            f"{kind.capitalize()} failed for {group.recipient}: {error}",
            exc_info=unexpected,
            extra={
                "event": f"alerts.{kind}.failed",
                "config_ids": group.config_ids,
                "error_type": type(error).__name__,
            },
        )

    def _record_stats_failure(
        self,
        result: RunResult,
        group: RecipientMatches,
        config_id: str,
        record_id: Optional[str],
        error: Exception,
    ) -> None:
        result.errors.append(
            RunError(
                kind="stats",
                message=str(error),
                owner_id=group.owner.id,
                config_ids=[config_id],
                record_id=record_id,
            )
        )
        logger.error(
            f"Failed to update stats for configuration {config_id}: {error}",
            extra={
                "event": "alerts.stats.failed",
                "config_id": config_id,
                "error_type": type(error).__name__,
            },
        )

    async def _pause(self) -> None:
        delay = self.app_config.dispatch_delay_seconds
        if delay > 0:
            await self._sleep(delay)
