"""SMTP client wrapper for email delivery.

This module provides a thin wrapper around Python's smtplib with support
for TLS/SSL, password or XOAUTH2 authentication, and proper connection
lifecycle management.
"""

import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr
from typing import Callable, Optional

from email_validator import EmailNotValidError, validate_email

from .models import DeliveryError

logger = logging.getLogger(__name__)


@dataclass
class SMTPCredentials:
    """Login material for one connection.

    Exactly one of password or access_token is used; an access token selects
    the XOAUTH2 mechanism.
    """

    username: str
    password: Optional[str] = None
    access_token: Optional[str] = None

    @property
    def mechanism(self) -> str:
        return "XOAUTH2" if self.access_token else "LOGIN"

    def xoauth2_string(self) -> str:
        return f"user={self.username}\x01auth=Bearer {self.access_token}\x01\x01"


class SMTPClient:
    """Wrapper around smtplib for sending email messages.

    Handles connection lifecycle, TLS/SSL negotiation and authentication.
    Designed to be easily mockable for testing.
    """

    def __init__(
        self,
        host: str,
        port: int,
        use_tls: bool = True,
        timeout: int = 30,
        smtp_factory: Optional[Callable] = None,
        smtp_ssl_factory: Optional[Callable] = None,
    ):
        """Initialize SMTP client with optional factory injection.

        Args:
            host: SMTP server hostname
            port: SMTP server port (465 selects implicit TLS)
            use_tls: Upgrade plain connections with STARTTLS
            timeout: Socket timeout in seconds
            smtp_factory: Factory function for creating SMTP instances (for mocking)
            smtp_ssl_factory: Factory function for creating SMTP_SSL instances (for mocking)
        """
        self.host = host
        self.port = port
        self.use_tls = use_tls
        self.timeout = timeout
        self.smtp_factory = smtp_factory or smtplib.SMTP
        self.smtp_ssl_factory = smtp_ssl_factory or smtplib.SMTP_SSL

    def send(self, message: EmailMessage, credentials: Optional[SMTPCredentials]) -> None:
        """Send an email message via SMTP.

        Args:
            message: Fully constructed EmailMessage to send
            credentials: Login material, or None for an unauthenticated relay

        Raises:
            DeliveryError: If message delivery fails
        """
        self._session(credentials, message)

    def check_connection(self, credentials: Optional[SMTPCredentials]) -> None:
        """Connect, negotiate TLS, authenticate and disconnect.

        Raises:
            DeliveryError: If any step fails
        """
        self._session(credentials, None)

    def _session(
        self, credentials: Optional[SMTPCredentials], message: Optional[EmailMessage]
    ) -> None:
        smtp = None
        try:
            smtp = self._connect()
            self._authenticate(smtp, credentials)
            if message is not None:
                smtp.send_message(message)
                logger.debug(f"Message sent successfully to {message['To']}")

        except smtplib.SMTPResponseException as e:
            detail = f"{e.smtp_code} {_decode(e.smtp_error)}"
            raise DeliveryError(
                f"SMTP error during message delivery: {detail}",
                recipient=_recipient(message),
                detail=detail,
            ) from e
        except smtplib.SMTPException as e:
            raise DeliveryError(
                f"SMTP error during message delivery: {e}",
                recipient=_recipient(message),
                detail=str(e),
            ) from e
        except OSError as e:
            raise DeliveryError(
                f"Network error during SMTP connection: {e}",
                recipient=_recipient(message),
                detail=str(e),
            ) from e
        finally:
            if smtp is not None:
                try:
                    smtp.quit()
                except (smtplib.SMTPException, OSError) as e:
                    logger.warning(f"Error closing SMTP connection: {e}")

    def _connect(self):
        if self.port == 465:
            logger.debug(f"Connecting to {self.host}:{self.port} with implicit TLS")
            context = ssl.create_default_context()
            return self.smtp_ssl_factory(
                self.host, self.port, context=context, timeout=self.timeout
            )

        logger.debug(f"Connecting to {self.host}:{self.port}")
        smtp = self.smtp_factory(self.host, self.port, timeout=self.timeout)
        if self.use_tls:
            logger.debug("Upgrading connection with STARTTLS")
            context = ssl.create_default_context()
            smtp.starttls(context=context)
        return smtp

    @staticmethod
    def _authenticate(smtp, credentials: Optional[SMTPCredentials]) -> None:
        if credentials is None:
            logger.debug("No authentication credentials provided, proceeding without auth")
            return

        if credentials.access_token:
            logger.debug(f"Authenticating as {credentials.username} with XOAUTH2")
            smtp.ehlo()
            auth_string = credentials.xoauth2_string()
            smtp.auth("XOAUTH2", lambda challenge=None: auth_string)
        elif credentials.password:
            logger.debug(f"Authenticating as {credentials.username}")
            smtp.login(credentials.username, credentials.password)
        else:
            logger.debug("No secret for SMTP user, proceeding without auth")


def _decode(value) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _recipient(message: Optional[EmailMessage]) -> Optional[str]:
    return message["To"] if message is not None else None


def validate_recipient(address: str) -> str:
    """Validate and normalize one delivery address.

    Raises:
        DeliveryError: If the address is malformed
    """
    try:
        return validate_email(address.strip(), check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise DeliveryError(
            f"Invalid recipient address '{address}': {e}",
            recipient=address,
            detail=str(e),
        ) from e


def build_sender_address(sender_name: str, sender_email: str) -> str:
    """Build the 'From' header value, e.g. 'Lanka Tender Portal <alerts@example.com>'."""
    return formataddr((sender_name, sender_email))
