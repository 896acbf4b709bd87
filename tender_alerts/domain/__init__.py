"""Domain models for configurations, tender records and notification jobs."""

from .models import (
    AdvancedFilters,
    AlertConfiguration,
    AlertStats,
    EmailSettings,
    EstimatedValue,
    Frequency,
    KeywordClause,
    Location,
    LocationFilter,
    MatchType,
    NotificationJob,
    Organization,
    OrganizationType,
    Owner,
    Priority,
    RecordDates,
    TenderRecord,
    TenderStatus,
    ValueRange,
)

__all__ = [
    "AdvancedFilters",
    "AlertConfiguration",
    "AlertStats",
    "EmailSettings",
    "EstimatedValue",
    "Frequency",
    "KeywordClause",
    "Location",
    "LocationFilter",
    "MatchType",
    "NotificationJob",
    "Organization",
    "OrganizationType",
    "Owner",
    "Priority",
    "RecordDates",
    "TenderRecord",
    "TenderStatus",
    "ValueRange",
]
