"""Store collaborators consumed by the processing orchestrator.

The engine never talks to a database directly. It depends on these abstract
interfaces; SqlAlchemyAlertStore implements all of them and tests substitute
in-memory fakes.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import List, Optional

from tender_alerts.domain.models import AlertConfiguration, TenderRecord


class ConfigurationRegistry(ABC):
    """Eligibility queries over saved configurations.

    Every method returns active, email-enabled configurations joined with the
    owner's delivery address and entitlement flag.
    """

    @abstractmethod
    async def find_active_immediate(self) -> List[AlertConfiguration]:
        """Configurations with immediate frequency."""

    @abstractmethod
    async def find_active_daily(self, time_bucket: str) -> List[AlertConfiguration]:
        """Daily configurations whose summary time equals the bucket ('HH:MM')."""

    @abstractmethod
    async def find_active_weekly(
        self, as_of: datetime, resend_interval: timedelta = timedelta(days=7)
    ) -> List[AlertConfiguration]:
        """Weekly configurations never sent, or last sent at least resend_interval before as_of."""


class RecordSource(ABC):
    """Read-only access to candidate records."""

    @abstractmethod
    async def find_published_since(self, since: datetime) -> List[TenderRecord]:
        """Published records with a publish date at or after `since`, newest first."""


class StatsStore(ABC):
    """Per-configuration delivery statistics."""

    @abstractmethod
    async def increment_match_stats(
        self, config_id: str, record_id: str, at: Optional[datetime] = None
    ) -> None:
        """Add one match and remember the record as the latest."""

    @abstractmethod
    async def increment_email_sent(self, config_id: str, at: Optional[datetime] = None) -> None:
        """Add one sent email and set last_sent_at."""


class RetentionStore(ABC):
    """Housekeeping for stale configurations."""

    @abstractmethod
    async def delete_inactive_before(self, cutoff: datetime) -> int:
        """Delete inactive configurations not updated since cutoff; return the count."""
