"""Configuration management for the alert engine."""

from .duration import DurationParseError, parse_duration, parse_timedelta
from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .loader import load_config, parse_app_config
from .models import (
    AppConfig,
    EmailConfig,
    LinksConfig,
    LogFormat,
    LoggingConfig,
    LogLevel,
    ProcessingConfig,
    SchedulerConfig,
)

__all__ = [
    "load_config",
    "parse_app_config",
    "load_environment_config",
    "parse_duration",
    "parse_timedelta",
    "AppConfig",
    "SchedulerConfig",
    "ProcessingConfig",
    "EmailConfig",
    "LinksConfig",
    "LoggingConfig",
    "EnvironmentConfig",
    "LogLevel",
    "LogFormat",
    "ConfigurationError",
    "DurationParseError",
]
