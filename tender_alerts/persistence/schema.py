"""Database schema definition and ORM models.

This module defines SQLAlchemy ORM models for owners, alert configurations and
tenders, and the conversions between ORM rows and domain models. Filter
criteria are stored as JSON; timestamps are ISO 8601 UTC strings so range
comparisons work lexicographically on every backend.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, Boolean, Column, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, relationship

from tender_alerts.domain.models import (
    AdvancedFilters,
    AlertConfiguration,
    AlertStats,
    EmailSettings,
    EstimatedValue,
    KeywordClause,
    Location,
    LocationFilter,
    Organization,
    Owner,
    RecordDates,
    TenderRecord,
    ValueRange,
)

logger = logging.getLogger(__name__)

Base = declarative_base()


class OwnerModel(Base):
    """ORM model for owners table (minimal identity needed for delivery)."""

    __tablename__ = "owners"

    id = Column(String(64), primary_key=True, nullable=False)
    email = Column(String(255), nullable=False)
    name = Column(String(255), nullable=True)
    email_alerts_enabled = Column(Boolean, nullable=False, default=False)

    def to_domain(self) -> Owner:
        return Owner(
            id=self.id,
            email=self.email,
            name=self.name,
            email_alerts_enabled=bool(self.email_alerts_enabled),
        )

    def apply(self, owner: Owner) -> None:
        self.email = owner.email
        self.name = owner.name
        self.email_alerts_enabled = owner.email_alerts_enabled

    @classmethod
    def from_domain(cls, owner: Owner) -> "OwnerModel":
        model = cls(id=owner.id)
        model.apply(owner)
        return model


class AlertConfigurationModel(Base):
    """ORM model for alert_configurations table."""

    __tablename__ = "alert_configurations"

    id = Column(String(64), primary_key=True, nullable=False)
    owner_id = Column(String(64), ForeignKey("owners.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    # Filter criteria
    keywords = Column(JSON, nullable=False, default=list)
    categories = Column(JSON, nullable=False, default=list)
    locations = Column(JSON, nullable=False, default=dict)
    organization_types = Column(JSON, nullable=False, default=list)
    value_min = Column(Float, nullable=True)
    value_max = Column(Float, nullable=True)
    value_currency = Column(String(3), nullable=False, default="LKR")
    advanced_filters = Column(JSON, nullable=False, default=dict)

    # Email settings
    email_enabled = Column(Boolean, nullable=False, default=True)
    frequency = Column(String(20), nullable=False, default="immediate")
    custom_email = Column(String(255), nullable=True)
    last_sent_at = Column(String(50), nullable=True)
    daily_summary_time = Column(String(5), nullable=False, default="09:00")

    # Stats
    total_matches = Column(Integer, nullable=False, default=0)
    emails_sent = Column(Integer, nullable=False, default=0)
    last_matched_record_id = Column(String(64), nullable=True)
    last_matched_at = Column(String(50), nullable=True)

    created_at = Column(String(50), nullable=True)
    updated_at = Column(String(50), nullable=True)

    owner = relationship(OwnerModel, lazy="joined")

    __table_args__ = (
        Index("idx_alert_configs_owner_active", "owner_id", "is_active"),
        Index("idx_alert_configs_frequency", "is_active", "email_enabled", "frequency"),
        Index("idx_alert_configs_daily_time", "daily_summary_time"),
    )

    def to_domain(self) -> AlertConfiguration:
        return AlertConfiguration(
            id=self.id,
            owner=self.owner.to_domain(),
            name=self.name,
            description=self.description,
            is_active=bool(self.is_active),
            keywords=[KeywordClause(**clause) for clause in (self.keywords or [])],
            categories=list(self.categories or []),
            locations=LocationFilter(**(self.locations or {})),
            organization_types=list(self.organization_types or []),
            estimated_value=ValueRange(
                min=self.value_min, max=self.value_max, currency=self.value_currency or "LKR"
            ),
            email_settings=EmailSettings(
                enabled=bool(self.email_enabled),
                frequency=self.frequency,
                custom_email=self.custom_email,
                last_sent_at=_parse_datetime(self.last_sent_at),
                daily_summary_time=self.daily_summary_time,
            ),
            advanced_filters=AdvancedFilters(**(self.advanced_filters or {})),
            stats=AlertStats(
                total_matches=self.total_matches or 0,
                emails_sent=self.emails_sent or 0,
                last_matched_record_id=self.last_matched_record_id,
                last_matched_at=_parse_datetime(self.last_matched_at),
            ),
            created_at=_parse_datetime(self.created_at),
            updated_at=_parse_datetime(self.updated_at),
        )

    def apply(self, config: AlertConfiguration) -> None:
        """Copy every owner-editable field and the stats from a domain model."""
        self.owner_id = config.owner_id
        self.name = config.name
        self.description = config.description
        self.is_active = config.is_active
        self.keywords = [clause.model_dump() for clause in config.keywords]
        self.categories = list(config.categories)
        self.locations = config.locations.model_dump()
        self.organization_types = list(config.organization_types)
        self.value_min = config.estimated_value.min
        self.value_max = config.estimated_value.max
        self.value_currency = config.estimated_value.currency
        self.advanced_filters = config.advanced_filters.model_dump()
        settings = config.email_settings
        self.email_enabled = settings.enabled
        self.frequency = settings.frequency
        self.custom_email = settings.custom_email
        self.last_sent_at = _format_datetime(settings.last_sent_at)
        self.daily_summary_time = settings.daily_summary_time
        self.total_matches = config.stats.total_matches
        self.emails_sent = config.stats.emails_sent
        self.last_matched_record_id = config.stats.last_matched_record_id
        self.last_matched_at = _format_datetime(config.stats.last_matched_at)

    def touch(self, at: datetime) -> None:
        """Stamp a save: updated_at every time, created_at on the first one only."""
        stamp = _format_datetime(at)
        if self.created_at is None:
            self.created_at = stamp
        self.updated_at = stamp

    @classmethod
    def from_domain(cls, config: AlertConfiguration) -> "AlertConfigurationModel":
        model = cls(id=config.id)
        model.apply(config)
        model.created_at = _format_datetime(config.created_at)
        return model


class TenderModel(Base):
    """ORM model for tenders table (read-only input to the engine)."""

    __tablename__ = "tenders"

    id = Column(String(64), primary_key=True, nullable=False)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False, default="")
    full_text = Column(Text, nullable=False, default="")
    reference_no = Column(String(100), nullable=True)
    category = Column(String(100), nullable=True)
    organization_name = Column(String(255), nullable=False)
    organization_type = Column(String(50), nullable=True)
    province = Column(String(100), nullable=True)
    district = Column(String(100), nullable=True)
    city = Column(String(100), nullable=True)
    published_at = Column(String(50), nullable=True)
    closing_at = Column(String(50), nullable=True)
    value_amount = Column(Float, nullable=True)
    value_currency = Column(String(3), nullable=True)
    status = Column(String(20), nullable=True, default="published")
    priority = Column(String(20), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index("idx_tenders_published", "status", "is_active", "published_at"),
    )

    def to_domain(self) -> TenderRecord:
        estimated_value = None
        if self.value_amount is not None:
            estimated_value = EstimatedValue(
                amount=self.value_amount, currency=self.value_currency or "LKR"
            )
        return TenderRecord(
            id=self.id,
            title=self.title,
            description=self.description or "",
            full_text=self.full_text or "",
            reference_no=self.reference_no,
            category=self.category,
            organization=Organization(name=self.organization_name, type=self.organization_type),
            location=Location(province=self.province, district=self.district, city=self.city),
            dates=RecordDates(
                published=_parse_datetime(self.published_at),
                closing=_parse_datetime(self.closing_at),
            ),
            estimated_value=estimated_value,
            status=self.status,
            priority=self.priority,
        )

    def apply(self, record: TenderRecord) -> None:
        self.title = record.title
        self.description = record.description
        self.full_text = record.full_text
        self.reference_no = record.reference_no
        self.category = record.category
        self.organization_name = record.organization.name
        self.organization_type = record.organization.type
        self.province = record.location.province
        self.district = record.location.district
        self.city = record.location.city
        self.published_at = _format_datetime(record.dates.published)
        self.closing_at = _format_datetime(record.dates.closing)
        self.value_amount = record.amount
        self.value_currency = record.estimated_value.currency if record.estimated_value else None
        self.status = record.status
        self.priority = record.priority

    @classmethod
    def from_domain(cls, record: TenderRecord) -> "TenderModel":
        model = cls(id=record.id, is_active=True)
        model.apply(record)
        return model


def _format_datetime(dt: Optional[datetime]) -> Optional[str]:
    """Format a datetime as an ISO 8601 UTC string with a Z suffix."""
    if dt is None:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)

    return dt.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def _parse_datetime(dt_str: Optional[str]) -> Optional[datetime]:
    if dt_str is None or dt_str == "":
        return None

    dt_str = dt_str.rstrip("Z")
    try:
        dt = datetime.strptime(dt_str, "%Y-%m-%dT%H:%M:%S.%f")
    except ValueError:
        dt = datetime.strptime(dt_str, "%Y-%m-%dT%H:%M:%S")

    return dt.replace(tzinfo=timezone.utc)


def create_schema(engine: Engine) -> None:
    """Create all tables and indexes if they don't exist (idempotent)."""
    logger.info("Creating database schema if not exists")
    Base.metadata.create_all(engine, checkfirst=True)
