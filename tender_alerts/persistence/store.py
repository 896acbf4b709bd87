"""Async store adapter over the SQLAlchemy repositories.

Each call opens one session in a worker thread, so database I/O is a
suspension point for the scheduler's event loop rather than a blocking call.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Callable, List, Optional, TypeVar

from sqlalchemy.orm import Session

from tender_alerts.domain.models import AlertConfiguration, Owner, TenderRecord
from tender_alerts.logging import get_logger
from tender_alerts.utils.timestamps import utc_now

from .database import Database
from .interfaces import ConfigurationRegistry, RecordSource, RetentionStore, StatsStore
from .repositories import AlertConfigurationRepository, OwnerRepository, TenderRepository

logger = get_logger(__name__, component="store")

T = TypeVar("T")


class SqlAlchemyAlertStore(ConfigurationRegistry, RecordSource, StatsStore, RetentionStore):
    """Every store collaborator of the orchestrator, backed by one Database."""

    def __init__(self, database: Database):
        self.database = database

    async def _run(self, operation: Callable[[Session], T]) -> T:
        def work() -> T:
            with self.database.session() as session:
                return operation(session)

        return await asyncio.to_thread(work)

    async def find_active_immediate(self) -> List[AlertConfiguration]:
        return await self._run(lambda s: AlertConfigurationRepository(s).find_active("immediate"))

    async def find_active_daily(self, time_bucket: str) -> List[AlertConfiguration]:
        return await self._run(
            lambda s: AlertConfigurationRepository(s).find_active("daily", daily_time=time_bucket)
        )

    async def find_active_weekly(
        self, as_of: datetime, resend_interval: timedelta = timedelta(days=7)
    ) -> List[AlertConfiguration]:
        cutoff = as_of - resend_interval
        return await self._run(lambda s: AlertConfigurationRepository(s).find_due_weekly(cutoff))

    async def find_published_since(self, since: datetime) -> List[TenderRecord]:
        return await self._run(lambda s: TenderRepository(s).find_published_since(since))

    async def increment_match_stats(
        self, config_id: str, record_id: str, at: Optional[datetime] = None
    ) -> None:
        at = at or utc_now()
        await self._run(
            lambda s: AlertConfigurationRepository(s).increment_match_stats(config_id, record_id, at)
        )

    async def increment_email_sent(self, config_id: str, at: Optional[datetime] = None) -> None:
        at = at or utc_now()
        await self._run(lambda s: AlertConfigurationRepository(s).increment_email_sent(config_id, at))

    async def delete_inactive_before(self, cutoff: datetime) -> int:
        deleted = await self._run(
            lambda s: AlertConfigurationRepository(s).delete_inactive_before(cutoff)
        )
        logger.info(
            f"Deleted {deleted} inactive configuration(s)",
            extra={"event": "store.cleanup.completed", "deleted": deleted},
        )
        return deleted

    async def get_configuration(self, config_id: str) -> Optional[AlertConfiguration]:
        return await self._run(lambda s: AlertConfigurationRepository(s).get(config_id))

    async def save_owner(self, owner: Owner) -> Owner:
        return await self._run(lambda s: OwnerRepository(s).upsert(owner))

    async def save_configuration(
        self, config: AlertConfiguration, at: Optional[datetime] = None
    ) -> AlertConfiguration:
        return await self._run(lambda s: AlertConfigurationRepository(s).upsert(config, at))

    async def save_record(self, record: TenderRecord) -> TenderRecord:
        return await self._run(lambda s: TenderRepository(s).upsert(record))

    def close(self) -> None:
        self.database.close()
