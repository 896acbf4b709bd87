"""Data access layer (repositories) for persistence operations.

Repositories encapsulate database operations on one session and return domain
models rather than ORM models. They never commit; the session scope does.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from tender_alerts.domain.models import AlertConfiguration, Owner, TenderRecord
from tender_alerts.utils.timestamps import ensure_utc, utc_now

from .exceptions import DataIntegrityError, PersistenceError, RecordNotFoundError
from .schema import (
    AlertConfigurationModel,
    OwnerModel,
    TenderModel,
    _format_datetime,
)

logger = logging.getLogger(__name__)


class OwnerRepository:
    """Repository for owner identities."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, owner_id: str) -> Optional[Owner]:
        try:
            model = self.session.get(OwnerModel, owner_id)
            return model.to_domain() if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving owner {owner_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve owner: {e}") from e

    def upsert(self, owner: Owner) -> Owner:
        try:
            existing = self.session.get(OwnerModel, owner.id)
            if existing:
                existing.apply(owner)
            else:
                existing = OwnerModel.from_domain(owner)
                self.session.add(existing)
            self.session.flush()
            return existing.to_domain()
        except IntegrityError as e:
            raise DataIntegrityError(f"Failed to upsert owner {owner.id}: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error upserting owner {owner.id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to upsert owner: {e}") from e


class AlertConfigurationRepository:
    """Repository for alert configurations and their stats."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, config_id: str) -> Optional[AlertConfiguration]:
        try:
            model = self.session.get(AlertConfigurationModel, config_id)
            return model.to_domain() if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving configuration {config_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve configuration: {e}") from e

    def upsert(self, config: AlertConfiguration, at: Optional[datetime] = None) -> AlertConfiguration:
        """Insert or replace a configuration, stamping updated_at with `at` (default now).

        Retention cleanup compares updated_at, so every save refreshes it;
        created_at is kept from the first save.

        Raises:
            DataIntegrityError: If the owner does not exist
        """
        try:
            if self.session.get(OwnerModel, config.owner_id) is None:
                raise DataIntegrityError(
                    f"Configuration {config.id} references unknown owner {config.owner_id}"
                )
            existing = self.session.get(AlertConfigurationModel, config.id)
            if existing:
                existing.apply(config)
            else:
                existing = AlertConfigurationModel.from_domain(config)
                self.session.add(existing)
            existing.touch(ensure_utc(at) or utc_now())
            self.session.flush()
            self.session.refresh(existing)
            return existing.to_domain()
        except IntegrityError as e:
            raise DataIntegrityError(f"Failed to upsert configuration {config.id}: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error upserting configuration {config.id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to upsert configuration: {e}") from e

    def find_active(
        self, frequency: str, daily_time: Optional[str] = None
    ) -> List[AlertConfiguration]:
        """Active, email-enabled configurations of one frequency.

        Args:
            frequency: immediate, daily or weekly
            daily_time: Restrict to this summary bucket ('HH:MM')
        """
        try:
            stmt = select(AlertConfigurationModel).where(
                AlertConfigurationModel.is_active.is_(True),
                AlertConfigurationModel.email_enabled.is_(True),
                AlertConfigurationModel.frequency == frequency,
            )
            if daily_time is not None:
                stmt = stmt.where(AlertConfigurationModel.daily_summary_time == daily_time)
            stmt = stmt.order_by(AlertConfigurationModel.owner_id, AlertConfigurationModel.id)
            models = self.session.execute(stmt).unique().scalars().all()
            return [model.to_domain() for model in models]
        except SQLAlchemyError as e:
            logger.error(f"Error querying {frequency} configurations: {e}", exc_info=True)
            raise PersistenceError(f"Failed to query configurations: {e}") from e

    def find_due_weekly(self, cutoff: datetime) -> List[AlertConfiguration]:
        """Active weekly configurations never sent or last sent at or before cutoff."""
        try:
            stmt = (
                select(AlertConfigurationModel)
                .where(
                    AlertConfigurationModel.is_active.is_(True),
                    AlertConfigurationModel.email_enabled.is_(True),
                    AlertConfigurationModel.frequency == "weekly",
                    or_(
                        AlertConfigurationModel.last_sent_at.is_(None),
                        AlertConfigurationModel.last_sent_at <= _format_datetime(cutoff),
                    ),
                )
                .order_by(AlertConfigurationModel.owner_id, AlertConfigurationModel.id)
            )
            models = self.session.execute(stmt).unique().scalars().all()
            return [model.to_domain() for model in models]
        except SQLAlchemyError as e:
            logger.error(f"Error querying due weekly configurations: {e}", exc_info=True)
            raise PersistenceError(f"Failed to query configurations: {e}") from e

    def increment_match_stats(self, config_id: str, record_id: str, at: datetime) -> None:
        """Atomically add one match and set the last-matched record.

        Raises:
            RecordNotFoundError: If the configuration no longer exists
        """
        self._update(
            config_id,
            total_matches=AlertConfigurationModel.total_matches + 1,
            last_matched_record_id=record_id,
            last_matched_at=_format_datetime(at),
        )

    def increment_email_sent(self, config_id: str, at: datetime) -> None:
        """Atomically add one sent email and set last_sent_at.

        Raises:
            RecordNotFoundError: If the configuration no longer exists
        """
        self._update(
            config_id,
            emails_sent=AlertConfigurationModel.emails_sent + 1,
            last_sent_at=_format_datetime(at),
        )

    def delete_inactive_before(self, cutoff: datetime) -> int:
        """Delete inactive configurations whose last update is before cutoff."""
        try:
            stmt = delete(AlertConfigurationModel).where(
                AlertConfigurationModel.is_active.is_(False),
                AlertConfigurationModel.updated_at < _format_datetime(cutoff),
            )
            result = self.session.execute(stmt)
            return result.rowcount or 0
        except SQLAlchemyError as e:
            logger.error(f"Error deleting inactive configurations: {e}", exc_info=True)
            raise PersistenceError(f"Failed to delete inactive configurations: {e}") from e

    def _update(self, config_id: str, **values) -> None:
        try:
            stmt = (
                update(AlertConfigurationModel)
                .where(AlertConfigurationModel.id == config_id)
                .values(**values)
            )
            result = self.session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(f"Error updating configuration {config_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to update configuration stats: {e}") from e

        if result.rowcount == 0:
            raise RecordNotFoundError(f"Configuration not found: {config_id}")


class TenderRepository:
    """Repository for tender records."""

    def __init__(self, session: Session):
        self.session = session

    def upsert(self, record: TenderRecord) -> TenderRecord:
        try:
            existing = self.session.get(TenderModel, record.id)
            if existing:
                existing.apply(record)
            else:
                existing = TenderModel.from_domain(record)
                self.session.add(existing)
            self.session.flush()
            return existing.to_domain()
        except SQLAlchemyError as e:
            logger.error(f"Error upserting tender {record.id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to upsert tender: {e}") from e

    def find_published_since(self, since: datetime) -> List[TenderRecord]:
        """Active published tenders published at or after `since`, newest first."""
        try:
            stmt = (
                select(TenderModel)
                .where(
                    TenderModel.is_active.is_(True),
                    TenderModel.status == "published",
                    TenderModel.published_at >= _format_datetime(since),
                )
                .order_by(TenderModel.published_at.desc())
            )
            models = self.session.execute(stmt).scalars().all()
            return [model.to_domain() for model in models]
        except SQLAlchemyError as e:
            logger.error(f"Error querying tenders published since {since}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to query tenders: {e}") from e
