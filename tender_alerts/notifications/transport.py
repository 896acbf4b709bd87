"""Delivery transports for rendered notification jobs.

Two backends share one send path:
- GmailOAuthTransport: Gmail SMTP authenticated with XOAUTH2, access tokens
  minted from a refresh token with google-auth
- SMTPTransport: any SMTP host with username/password login

create_transport() picks the first one that can be initialized. Missing Gmail
credentials are a capability downgrade (warning), not an error. Only when the
basic transport cannot be built either does startup fail.
"""

import asyncio
from abc import ABC, abstractmethod
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Awaitable, Callable, Optional

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials

from tender_alerts import __version__
from tender_alerts.config.environment import EnvironmentConfig
from tender_alerts.config.models import EmailConfig
from tender_alerts.domain.models import NotificationJob
from tender_alerts.logging import get_logger

from .models import DeliveryError, DeliveryReceipt, TransportInitializationError, VerificationResult
from .smtp_client import SMTPClient, SMTPCredentials, build_sender_address, validate_recipient

logger = get_logger(__name__, component="delivery")

GMAIL_SMTP_HOST = "smtp.gmail.com"
GMAIL_SMTP_PORT = 587
GMAIL_TOKEN_URI = "https://oauth2.googleapis.com/token"
GMAIL_SCOPES = ["https://mail.google.com/"]
MAX_RETRY_DELAY = 60.0


class DeliveryTransport(ABC):
    """Base transport: message assembly, retry with backoff, verification.

    Subclasses supply the SMTP login material through _credentials().
    Blocking SMTP I/O runs in a worker thread so each send is a suspension
    point for the event loop.
    """

    name = "base"

    def __init__(
        self,
        client: SMTPClient,
        sender_email: str,
        email_config: EmailConfig,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.client = client
        self.sender_email = sender_email
        self.email_config = email_config
        self.sender = build_sender_address(email_config.sender_name, sender_email)
        self._sleep = sleep or asyncio.sleep

    @abstractmethod
    def _credentials(self) -> Optional[SMTPCredentials]:
        """SMTP login material for the next connection, or None for no login."""

    def build_message(self, job: NotificationJob, recipient: str) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = job.subject
        message["From"] = self.sender
        message["To"] = recipient
        domain = self.sender_email.rsplit("@", 1)[-1] if "@" in self.sender_email else None
        message["Message-ID"] = make_msgid(domain=domain)
        message["X-Mailer"] = f"tender-alerts/{__version__}"
        message.set_content(job.text_body)
        message.add_alternative(job.html_body, subtype="html")
        return message

    def _send_once(self, message: EmailMessage) -> None:
        self.client.send(message, self._credentials())

    def _check_once(self) -> None:
        self.client.check_connection(self._credentials())

    async def send(self, job: NotificationJob) -> DeliveryReceipt:
        """Deliver one job, retrying transient failures with exponential backoff.

        Returns:
            DeliveryReceipt whose delivery_id is the Message-ID header

        Raises:
            DeliveryError: Invalid recipient, or every attempt failed
        """
        recipient = validate_recipient(job.recipient)
        message = self.build_message(job, recipient)

        max_attempts = self.email_config.max_retries + 1
        last_error: Optional[DeliveryError] = None

        for attempt in range(1, max_attempts + 1):
            if attempt > 1:
                delay = self.email_config.retry_initial_delay * (
                    self.email_config.retry_backoff_multiplier ** (attempt - 2)
                )
                delay = min(delay, MAX_RETRY_DELAY)
                logger.warning(
                    f"Retrying delivery to {recipient} (attempt {attempt}/{max_attempts}) "
                    f"after {delay:.1f}s delay",
                    extra={"event": "delivery.send.retry", "attempt": attempt},
                )
                await self._sleep(delay)

            try:
                await asyncio.to_thread(self._send_once, message)
            except DeliveryError as e:
                last_error = e
                logger.warning(
                    f"Delivery to {recipient} failed (attempt {attempt}/{max_attempts}): {e}",
                    extra={
                        "event": "delivery.send.failure",
                        "attempt": attempt,
                        "retry_remaining": attempt < max_attempts,
                        "transport": self.name,
                    },
                )
                continue

            logger.info(
                f"Delivered '{job.subject}' to {recipient} (attempts: {attempt})",
                extra={
                    "event": "delivery.send.success",
                    "attempt": attempt,
                    "transport": self.name,
                    "records": len(job.record_ids),
                },
            )
            return DeliveryReceipt(
                success=True,
                delivery_id=message["Message-ID"],
                attempts=attempt,
                transport=self.name,
            )

        detail = last_error.detail if last_error else None
        raise DeliveryError(
            f"Delivery to {recipient} failed after {max_attempts} attempt(s): {last_error}",
            recipient=recipient,
            attempts=max_attempts,
            detail=detail,
        )

    async def verify(self) -> VerificationResult:
        """Open, authenticate and close one connection."""
        try:
            await asyncio.to_thread(self._check_once)
        except DeliveryError as e:
            logger.error(
                f"Transport verification failed: {e}",
                extra={"event": "delivery.verify.failure", "transport": self.name},
            )
            return VerificationResult(success=False, error=str(e))

        logger.info(
            "Transport verified",
            extra={"event": "delivery.verify.success", "transport": self.name},
        )
        return VerificationResult(success=True, message=f"{self.name} transport is ready")


class SMTPTransport(DeliveryTransport):
    """Basic host/user/password transport."""

    name = "smtp"

    def __init__(
        self,
        client: SMTPClient,
        username: str,
        password: str,
        sender_email: str,
        email_config: EmailConfig,
        sleep=None,
    ):
        super().__init__(client, sender_email, email_config, sleep=sleep)
        self.username = username
        self.password = password

    def _credentials(self) -> SMTPCredentials:
        return SMTPCredentials(username=self.username, password=self.password)


class GmailOAuthTransport(DeliveryTransport):
    """Gmail SMTP with XOAUTH2; the access token is refreshed when it expires."""

    name = "gmail-oauth2"

    def __init__(
        self,
        client: SMTPClient,
        oauth_credentials: Credentials,
        user_email: str,
        email_config: EmailConfig,
        request_factory: Optional[Callable] = None,
        sleep=None,
    ):
        super().__init__(client, user_email, email_config, sleep=sleep)
        self.oauth_credentials = oauth_credentials
        self.user_email = user_email
        self.request_factory = request_factory or Request

    def refresh_token(self) -> None:
        """Mint a fresh access token.

        Raises:
            GoogleAuthError: If the token endpoint rejects the refresh token
        """
        self.oauth_credentials.refresh(self.request_factory())
        logger.debug("Refreshed Gmail access token", extra={"event": "delivery.token.refreshed"})

    def _credentials(self) -> SMTPCredentials:
        if not self.oauth_credentials.valid:
            try:
                self.refresh_token()
            except GoogleAuthError as e:
                raise DeliveryError(
                    f"Failed to refresh Gmail access token: {e}",
                    detail=str(e),
                ) from e
        return SMTPCredentials(
            username=self.user_email, access_token=self.oauth_credentials.token
        )


def create_transport(
    env: EnvironmentConfig,
    email_config: EmailConfig,
    smtp_factory: Optional[Callable] = None,
    smtp_ssl_factory: Optional[Callable] = None,
    request_factory: Optional[Callable] = None,
    sleep=None,
) -> DeliveryTransport:
    """Build the best transport the environment allows.

    Raises:
        TransportInitializationError: Neither backend can be initialized
    """
    missing = env.missing_gmail_credentials()
    if not missing:
        oauth = Credentials(
            token=None,
            refresh_token=env.gmail_refresh_token,
            token_uri=GMAIL_TOKEN_URI,
            client_id=env.gmail_client_id,
            client_secret=env.gmail_client_secret,
            scopes=GMAIL_SCOPES,
        )
        client = SMTPClient(
            GMAIL_SMTP_HOST,
            GMAIL_SMTP_PORT,
            use_tls=True,
            timeout=email_config.timeout_seconds,
            smtp_factory=smtp_factory,
            smtp_ssl_factory=smtp_ssl_factory,
        )
        transport = GmailOAuthTransport(
            client,
            oauth,
            env.gmail_user_email,
            email_config,
            request_factory=request_factory,
            sleep=sleep,
        )
        try:
            transport.refresh_token()
        except GoogleAuthError as e:
            logger.warning(
                f"Gmail OAuth2 token could not be minted, falling back to basic SMTP: {e}",
                extra={"event": "delivery.transport.downgrade", "reason": "token_refresh_failed"},
            )
        else:
            logger.info(
                f"Using Gmail OAuth2 transport as {env.gmail_user_email}",
                extra={"event": "delivery.transport.selected", "transport": transport.name},
            )
            return transport
    else:
        logger.warning(
            f"Gmail OAuth2 credentials incomplete ({', '.join(missing)}), using basic SMTP",
            extra={"event": "delivery.transport.downgrade", "missing": missing},
        )

    absent = [
        name
        for name, value in (
            ("SMTP_HOST", env.smtp_host),
            ("SMTP_USER", env.smtp_user),
            ("SMTP_PASS", env.smtp_pass),
        )
        if not value
    ]
    if absent:
        raise TransportInitializationError(
            f"No usable email transport: missing {', '.join(absent)} "
            f"and Gmail OAuth2 is unavailable"
        )

    client = SMTPClient(
        env.smtp_host,
        env.smtp_port,
        use_tls=email_config.use_tls,
        timeout=email_config.timeout_seconds,
        smtp_factory=smtp_factory,
        smtp_ssl_factory=smtp_ssl_factory,
    )
    transport = SMTPTransport(
        client,
        env.smtp_user,
        env.smtp_pass,
        env.sender_email,
        email_config,
        sleep=sleep,
    )
    logger.info(
        f"Using SMTP transport {env.smtp_host}:{env.smtp_port}",
        extra={"event": "delivery.transport.selected", "transport": transport.name},
    )
    return transport
