"""Configuration schema models using Pydantic."""

from enum import Enum
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from apscheduler.triggers.cron import CronTrigger
from pydantic import BaseModel, Field, field_validator

from tender_alerts.utils.timestamps import normalize_time_of_day

from .duration import DurationParseError, parse_duration, validate_duration_range

DEFAULT_DAILY_TIMES = ["08:00", "09:00", "10:00", "12:00", "18:00"]


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    KEY_VALUE = "key-value"


def _check_duration(value: str, min_seconds: int, max_seconds: int, label: str) -> str:
    try:
        validate_duration_range(parse_duration(value), min_seconds, max_seconds, label)
    except DurationParseError as e:
        raise ValueError(str(e)) from e
    return value


class SchedulerConfig(BaseModel):
    """When batch runs fire. All expressions are evaluated in `timezone`."""

    timezone: str = Field("Asia/Colombo", description="IANA timezone for every schedule")
    daily_times: List[str] = Field(
        default_factory=lambda: list(DEFAULT_DAILY_TIMES),
        min_length=1,
        description="Supported daily summary buckets (HH:MM)",
    )
    weekly_schedule: str = Field("0 9 * * 1", description="Crontab for the weekly digest")
    cleanup_schedule: str = Field("0 2 * * *", description="Crontab for retention cleanup")
    slow_run_threshold: str = Field(
        "10m", description="Runs still in flight after this long are logged as warnings"
    )

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: '{v}'") from e
        return v

    @field_validator("daily_times")
    @classmethod
    def normalize_daily_times(cls, v: List[str]) -> List[str]:
        # Order-preserving dedupe after zero-padding ("9:00" == "09:00")
        normalized = []
        for item in v:
            bucket = normalize_time_of_day(item)
            if bucket not in normalized:
                normalized.append(bucket)
        return normalized

    @field_validator("weekly_schedule", "cleanup_schedule")
    @classmethod
    def validate_crontab(cls, v: str) -> str:
        try:
            CronTrigger.from_crontab(v, timezone="UTC")
        except ValueError as e:
            raise ValueError(f"Invalid crontab expression '{v}': {e}") from e
        return v

    @field_validator("slow_run_threshold")
    @classmethod
    def validate_threshold(cls, v: str) -> str:
        return _check_duration(v, 10, 86400, "slow_run_threshold")


class ProcessingConfig(BaseModel):
    """Candidate windows, cadence and housekeeping for batch runs."""

    daily_window: str = Field("24h", description="Records published within this window feed daily runs")
    weekly_window: str = Field("7d", description="Records published within this window feed weekly runs")
    weekly_resend_interval: str = Field(
        "7d", description="A weekly configuration is due when last sent at least this long ago"
    )
    retention_period: str = Field(
        "90d", description="Inactive configurations untouched this long are deleted"
    )
    dispatch_delay_ms: int = Field(
        100, ge=0, le=10000, description="Pause between consecutive dispatches"
    )

    @field_validator("daily_window", "weekly_window", "weekly_resend_interval")
    @classmethod
    def validate_window(cls, v: str) -> str:
        return _check_duration(v, 3600, 31 * 86400, "window")

    @field_validator("retention_period")
    @classmethod
    def validate_retention(cls, v: str) -> str:
        return _check_duration(v, 86400, 3650 * 86400, "retention_period")


class EmailConfig(BaseModel):
    """Outgoing email settings."""

    use_tls: bool = Field(True, description="Use STARTTLS on non-465 ports")
    max_retries: int = Field(
        2, ge=0, le=10, description="Retry attempts for a failed send"
    )
    retry_backoff_multiplier: float = Field(
        2.0, ge=1.0, le=5.0, description="Exponential backoff multiplier for retries"
    )
    retry_initial_delay: float = Field(
        2.0, ge=0.0, le=60.0, description="Initial retry delay in seconds"
    )
    sender_name: str = Field("Lanka Tender Portal", min_length=1)
    timeout_seconds: int = Field(30, ge=5, le=300, description="SMTP socket timeout")


class LinksConfig(BaseModel):
    """Base URL for deep links in emails."""

    base_url: str = Field("https://lankatender.com", description="Frontend base URL")

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        stripped = v.strip().rstrip("/")
        if not stripped.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return stripped


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(LogFormat.KEY_VALUE, description="json or key-value")

    model_config = {"use_enum_values": True}


class AppConfig(BaseModel):
    """Root configuration object for the alert engine."""

    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    processing: ProcessingConfig = Field(default_factory=ProcessingConfig)
    email: EmailConfig = Field(default_factory=EmailConfig)
    links: LinksConfig = Field(default_factory=LinksConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def dispatch_delay_seconds(self) -> float:
        return self.processing.dispatch_delay_ms / 1000.0

    @property
    def slow_run_threshold_seconds(self) -> int:
        return parse_duration(self.scheduler.slow_run_threshold)

    def window_seconds(self, name: str) -> int:
        """Parsed seconds for one of the ProcessingConfig duration fields."""
        return parse_duration(getattr(self.processing, name))

    def with_base_url(self, base_url: Optional[str]) -> "AppConfig":
        """Copy with links.base_url replaced (environment override)."""
        if not base_url:
            return self
        links = LinksConfig(base_url=base_url)
        return self.model_copy(update={"links": links})
