"""Environment variable loading and validation.

Credentials live in the environment (optionally a .env file), never in the
YAML config. Their absence is not an error here: the transport layer decides
at startup which backend it can build from what is present.
"""

import os
from typing import Dict, List, Optional

from email_validator import EmailNotValidError, validate_email

from .exceptions import ConfigurationError

GMAIL_CREDENTIAL_VARS = (
    "GMAIL_CLIENT_ID",
    "GMAIL_CLIENT_SECRET",
    "GMAIL_REFRESH_TOKEN",
    "GMAIL_USER_EMAIL",
)

DEFAULT_SMTP_HOST = "smtp.gmail.com"
DEFAULT_SMTP_PORT = 587
DEFAULT_DATABASE_URL = "sqlite:///./data/tender_alerts.db"


class EnvironmentConfig:
    """Environment variable configuration holder."""

    def __init__(
        self,
        gmail_client_id: Optional[str] = None,
        gmail_client_secret: Optional[str] = None,
        gmail_refresh_token: Optional[str] = None,
        gmail_user_email: Optional[str] = None,
        smtp_host: str = DEFAULT_SMTP_HOST,
        smtp_port: int = DEFAULT_SMTP_PORT,
        smtp_user: Optional[str] = None,
        smtp_pass: Optional[str] = None,
        from_email: Optional[str] = None,
        frontend_url: Optional[str] = None,
        database_url: Optional[str] = None,
        log_level: Optional[str] = None,
    ):
        self.gmail_client_id = gmail_client_id
        self.gmail_client_secret = gmail_client_secret
        self.gmail_refresh_token = gmail_refresh_token
        self.gmail_user_email = gmail_user_email
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_pass = smtp_pass
        self.from_email = from_email
        self.frontend_url = frontend_url
        self.database_url = database_url or DEFAULT_DATABASE_URL
        self.log_level = log_level

    def missing_gmail_credentials(self) -> List[str]:
        """Names of the full-transport variables that are not set."""
        values = {
            "GMAIL_CLIENT_ID": self.gmail_client_id,
            "GMAIL_CLIENT_SECRET": self.gmail_client_secret,
            "GMAIL_REFRESH_TOKEN": self.gmail_refresh_token,
            "GMAIL_USER_EMAIL": self.gmail_user_email,
        }
        return [name for name in GMAIL_CREDENTIAL_VARS if not values[name]]

    @property
    def sender_email(self) -> str:
        """Address used in the From header."""
        return (
            self.gmail_user_email
            or self.from_email
            or self.smtp_user
            or "noreply@lankatender.com"
        )


def load_environment_config(environ: Optional[Dict[str, str]] = None) -> EnvironmentConfig:
    """Load and validate environment variables.

    Full transport (all four required together):
    - GMAIL_CLIENT_ID, GMAIL_CLIENT_SECRET, GMAIL_REFRESH_TOKEN, GMAIL_USER_EMAIL

    Fallback transport:
    - SMTP_HOST (default smtp.gmail.com), SMTP_PORT (default 587)
    - SMTP_USER / SMTP_PASS, defaulting to GMAIL_USER_EMAIL / GMAIL_APP_PASSWORD

    Other:
    - FROM_EMAIL, FRONTEND_URL, DATABASE_URL, LOG_LEVEL

    Args:
        environ: Mapping to read instead of os.environ (tests)

    Raises:
        ConfigurationError: If a value that is present is malformed
    """
    env = os.environ if environ is None else environ
    errors = []

    def get(name: str) -> Optional[str]:
        value = env.get(name)
        if value is None:
            return None
        value = value.strip()
        return value or None

    smtp_port = DEFAULT_SMTP_PORT
    smtp_port_str = get("SMTP_PORT")
    if smtp_port_str:
        try:
            smtp_port = int(smtp_port_str)
            if not 1 <= smtp_port <= 65535:
                errors.append(f"Invalid SMTP_PORT: {smtp_port}. Must be between 1 and 65535.")
        except ValueError:
            errors.append(f"Invalid SMTP_PORT: '{smtp_port_str}'. Must be a valid integer.")

    for name in ("GMAIL_USER_EMAIL", "FROM_EMAIL"):
        address = get(name)
        if address:
            try:
                validate_email(address, check_deliverability=False)
            except EmailNotValidError as e:
                errors.append(f"Invalid email address in {name}: '{address}' - {e}")

    log_level = get("LOG_LEVEL")
    if log_level:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if log_level.upper() not in valid_levels:
            errors.append(
                f"Invalid LOG_LEVEL: '{log_level}'. Must be one of: {', '.join(valid_levels)}"
            )
        log_level = log_level.upper()

    frontend_url = get("FRONTEND_URL")
    if frontend_url and not frontend_url.startswith(("http://", "https://")):
        errors.append(f"Invalid FRONTEND_URL: '{frontend_url}'. Must start with http:// or https://")

    if errors:
        raise ConfigurationError(
            "Environment variable validation failed",
            errors=errors,
            suggestions=[
                "Copy .env.example to .env and fill in your credentials",
                "Check that email addresses are valid",
                "Verify SMTP_PORT is a number between 1 and 65535",
            ],
            source="environment",
        )

    return EnvironmentConfig(
        gmail_client_id=get("GMAIL_CLIENT_ID"),
        gmail_client_secret=get("GMAIL_CLIENT_SECRET"),
        gmail_refresh_token=get("GMAIL_REFRESH_TOKEN"),
        gmail_user_email=get("GMAIL_USER_EMAIL"),
        smtp_host=get("SMTP_HOST") or DEFAULT_SMTP_HOST,
        smtp_port=smtp_port,
        smtp_user=get("SMTP_USER") or get("GMAIL_USER_EMAIL"),
        smtp_pass=get("SMTP_PASS") or get("GMAIL_APP_PASSWORD"),
        from_email=get("FROM_EMAIL"),
        frontend_url=frontend_url,
        database_url=get("DATABASE_URL"),
        log_level=log_level,
    )
