"""Configuration loader for the alert engine."""

from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from pydantic import ValidationError

from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .models import AppConfig
from .validators import check_for_warnings, emit_warnings

DEFAULT_CONFIG_LOCATIONS = (
    Path("config.yaml"),
    Path("config") / "config.yaml",
)


def load_config(
    config_path: Optional[Path] = None,
    environ: Optional[Dict[str, str]] = None,
) -> Tuple[AppConfig, EnvironmentConfig]:
    """Load and validate configuration from YAML and environment variables.

    Lookup order for the file:
    1. config_path if given (must exist)
    2. ./config.yaml
    3. ./config/config.yaml
    4. built-in defaults

    FRONTEND_URL from the environment overrides links.base_url.

    Raises:
        ConfigurationError: If the file or environment is invalid
    """
    config_file = _find_config_file(config_path)
    config_dict = _read_yaml(config_file) if config_file else {}

    warnings_found = check_for_warnings(config_dict)
    if warnings_found:
        emit_warnings(warnings_found)

    app_config = parse_app_config(config_dict, str(config_file) if config_file else None)

    try:
        env_config = load_environment_config(environ)
    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load environment configuration: {e}",
            suggestions=["Copy .env.example to .env and fill in your credentials"],
        ) from e

    return app_config.with_base_url(env_config.frontend_url), env_config


def parse_app_config(config_dict: Dict[str, Any], source: Optional[str] = None) -> AppConfig:
    """Validate a raw mapping into AppConfig.

    Raises:
        ConfigurationError: With one entry per invalid field
    """
    try:
        return AppConfig.model_validate(config_dict)
    except ValidationError as e:
        raise ConfigurationError.from_validation_error(
            e,
            suggestions=[
                "Review config.example.yaml for correct format",
                "Durations look like '24h', '7d' or 'PT15M'",
                "Times look like '09:00' (24-hour clock)",
            ],
            source=source,
        ) from e


def _read_yaml(config_file: Path) -> Dict[str, Any]:
    try:
        with open(config_file, "r", encoding="utf-8") as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Failed to parse YAML configuration: {e}",
            suggestions=[
                "Check YAML syntax in your config file",
                "Ensure proper indentation (use spaces, not tabs)",
            ],
        )
    except OSError as e:
        raise ConfigurationError(
            f"Failed to read configuration file: {e}",
            suggestions=[f"Ensure {config_file} is readable"],
        )

    if config_dict is None:
        return {}
    if not isinstance(config_dict, dict):
        raise ConfigurationError(
            f"Configuration root must be a mapping, got {type(config_dict).__name__}"
        )
    return config_dict


def _find_config_file(config_path: Optional[Path] = None) -> Optional[Path]:
    if config_path:
        if not config_path.exists():
            raise ConfigurationError(
                f"Specified configuration file not found: {config_path}",
                suggestions=[f"Ensure {config_path} exists", "Check the path and try again"],
            )
        return config_path

    for candidate in DEFAULT_CONFIG_LOCATIONS:
        if candidate.exists():
            return candidate

    return None
