"""Core domain models for alert configurations, tender records and notifications.

- AlertConfiguration: an owner's saved filter criteria plus delivery settings
- TenderRecord: a candidate item evaluated against configurations
- NotificationJob: one rendered message for one recipient (never persisted)

Configurations are validated here, at the write boundary. The matching engine
trusts them and does not re-validate.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, Field, field_validator, model_validator

from tender_alerts.utils.timestamps import ensure_utc, normalize_time_of_day


class MatchType(str, Enum):
    """How a keyword clause is compared against record text."""

    CONTAINS = "contains"
    EXACT = "exact"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"


class Frequency(str, Enum):
    """Delivery cadence of a configuration."""

    IMMEDIATE = "immediate"
    DAILY = "daily"
    WEEKLY = "weekly"


class OrganizationType(str, Enum):
    GOVERNMENT = "government"
    PRIVATE = "private"
    SEMI_GOVERNMENT = "semi-government"
    NGO = "ngo"


class TenderStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    CLOSED = "closed"
    AWARDED = "awarded"
    CANCELLED = "cancelled"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


def _clean_terms(values: List[str]) -> List[str]:
    cleaned = []
    for value in values:
        term = value.strip().lower()
        if term and term not in cleaned:
            cleaned.append(term)
    return cleaned


def _strip_all(values: List[str]) -> List[str]:
    return [value.strip() for value in values if value and value.strip()]


class KeywordClause(BaseModel):
    """A single keyword and the mode used to match it."""

    term: str = Field(..., min_length=1)
    match_type: MatchType = MatchType.CONTAINS

    model_config = {"use_enum_values": True}

    @field_validator("term")
    @classmethod
    def normalize_term(cls, v: str) -> str:
        term = v.strip().lower()
        if not term:
            raise ValueError("Keyword term cannot be empty or whitespace-only")
        return term


class LocationFilter(BaseModel):
    provinces: List[str] = Field(default_factory=list)
    districts: List[str] = Field(default_factory=list)
    cities: List[str] = Field(default_factory=list)

    @field_validator("provinces", "districts", "cities")
    @classmethod
    def strip_names(cls, v: List[str]) -> List[str]:
        return _strip_all(v)


class ValueRange(BaseModel):
    """Bounds on a record's estimated value; each bound is optional."""

    min: Optional[float] = Field(None, ge=0)
    max: Optional[float] = Field(None, ge=0)
    currency: str = "LKR"

    @model_validator(mode="after")
    def check_bounds(self):
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(f"Minimum value ({self.min}) cannot exceed maximum ({self.max})")
        return self


class EmailSettings(BaseModel):
    enabled: bool = True
    frequency: Frequency = Frequency.IMMEDIATE
    custom_email: Optional[str] = Field(None, description="Recipient override")
    last_sent_at: Optional[datetime] = None
    daily_summary_time: str = Field("09:00", description="Daily bucket, 24h HH:MM")

    model_config = {"use_enum_values": True}

    @field_validator("custom_email")
    @classmethod
    def validate_custom_email(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        try:
            return validate_email(v.strip(), check_deliverability=False).normalized.lower()
        except EmailNotValidError as e:
            raise ValueError(f"Invalid recipient override '{v}': {e}") from e

    @field_validator("daily_summary_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        return normalize_time_of_day(v)

    @field_validator("last_sent_at")
    @classmethod
    def utc_last_sent(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)


class AdvancedFilters(BaseModel):
    exclude_keywords: List[str] = Field(default_factory=list)
    min_days_until_closing: Optional[int] = Field(None, ge=0)
    max_days_until_closing: Optional[int] = Field(None, ge=0)
    included_statuses: List[TenderStatus] = Field(default_factory=list)
    included_priorities: List[Priority] = Field(default_factory=list)

    model_config = {"use_enum_values": True}

    @field_validator("exclude_keywords")
    @classmethod
    def normalize_excludes(cls, v: List[str]) -> List[str]:
        return _clean_terms(v)

    @model_validator(mode="after")
    def check_days_range(self):
        low, high = self.min_days_until_closing, self.max_days_until_closing
        if low is not None and high is not None and low > high:
            raise ValueError(
                f"min_days_until_closing ({low}) cannot exceed max_days_until_closing ({high})"
            )
        return self


class AlertStats(BaseModel):
    total_matches: int = Field(0, ge=0)
    emails_sent: int = Field(0, ge=0)
    last_matched_record_id: Optional[str] = None
    last_matched_at: Optional[datetime] = None


class Owner(BaseModel):
    """Minimal owner identity joined onto configurations by the registry."""

    id: str
    email: str
    name: Optional[str] = None
    email_alerts_enabled: bool = Field(
        False, description="Subscription entitlement for email alerts"
    )

    @property
    def display_name(self) -> str:
        return self.name or "there"


class AlertConfiguration(BaseModel):
    """An owner-scoped saved filter plus delivery preferences."""

    id: str
    owner: Owner
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    is_active: bool = True
    keywords: List[KeywordClause] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)
    locations: LocationFilter = Field(default_factory=LocationFilter)
    organization_types: List[OrganizationType] = Field(default_factory=list)
    estimated_value: ValueRange = Field(default_factory=ValueRange)
    email_settings: EmailSettings = Field(default_factory=EmailSettings)
    advanced_filters: AdvancedFilters = Field(default_factory=AdvancedFilters)
    stats: AlertStats = Field(default_factory=AlertStats)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"use_enum_values": True}

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Alert name cannot be empty or whitespace-only")
        return stripped

    @field_validator("categories")
    @classmethod
    def strip_categories(cls, v: List[str]) -> List[str]:
        return _strip_all(v)

    @property
    def owner_id(self) -> str:
        return self.owner.id

    @property
    def frequency(self) -> str:
        return self.email_settings.frequency

    @property
    def effective_email(self) -> str:
        """Recipient override if set, else the owner's address."""
        return self.email_settings.custom_email or self.owner.email


class Organization(BaseModel):
    name: str
    type: Optional[str] = None


class Location(BaseModel):
    province: Optional[str] = None
    district: Optional[str] = None
    city: Optional[str] = None

    def display(self) -> str:
        parts = [part for part in (self.city, self.district, self.province) if part]
        return ", ".join(parts)


class RecordDates(BaseModel):
    published: Optional[datetime] = None
    closing: Optional[datetime] = None

    @field_validator("published", "closing")
    @classmethod
    def to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)


class EstimatedValue(BaseModel):
    amount: Optional[float] = None
    currency: str = "LKR"


class TenderRecord(BaseModel):
    """Read-only snapshot of a candidate tender."""

    id: str
    title: str
    description: str = ""
    full_text: str = Field("", description="Extended free text (markdown)")
    reference_no: Optional[str] = None
    category: Optional[str] = None
    organization: Organization
    location: Location = Field(default_factory=Location)
    dates: RecordDates = Field(default_factory=RecordDates)
    estimated_value: Optional[EstimatedValue] = None
    status: Optional[str] = TenderStatus.PUBLISHED.value
    priority: Optional[str] = None

    @property
    def amount(self) -> Optional[float]:
        return self.estimated_value.amount if self.estimated_value else None

    def search_text(self) -> str:
        """Lower-cased title + description + extended text buffer used by keyword checks."""
        return f"{self.title} {self.description or ''} {self.full_text or ''}".lower()


@dataclass
class NotificationJob:
    """One message for one recipient, produced per batch run and then discarded."""

    recipient: str
    subject: str
    html_body: str
    text_body: str
    record_ids: List[str] = field(default_factory=list)
    config_ids: List[str] = field(default_factory=list)
    owner_id: Optional[str] = None

    @property
    def key(self) -> Tuple[str, Optional[str]]:
        return (self.recipient, self.owner_id)
