"""Data models and exceptions for rendering and delivery.

This module defines result types and custom exceptions used throughout
the notification pipeline.
"""

from dataclasses import dataclass
from typing import Optional


class NotificationError(Exception):
    """Base exception for notification-related errors."""

    pass


class NotificationTemplateError(NotificationError):
    """Raised when template rendering fails due to configuration or missing variables."""

    pass


class DeliveryError(NotificationError):
    """Raised when a message could not be delivered to its recipient.

    Attributes:
        recipient: Address the send was for
        attempts: Number of send attempts made before giving up
        detail: Provider diagnostic (SMTP code/response or network error)
    """

    def __init__(
        self,
        message: str,
        recipient: Optional[str] = None,
        attempts: int = 0,
        detail: Optional[str] = None,
    ):
        super().__init__(message)
        self.recipient = recipient
        self.attempts = attempts
        self.detail = detail


class TransportInitializationError(NotificationError):
    """Raised at startup when no usable delivery transport can be constructed."""

    pass


@dataclass
class RenderedMessage:
    """Subject and both bodies of one notification."""

    subject: str
    html_body: str
    text_body: str


@dataclass
class DeliveryReceipt:
    """Outcome of a confirmed send.

    Attributes:
        success: Always True for a returned receipt (failures raise)
        delivery_id: Message-ID header of the sent message
        attempts: Number of attempts it took
        transport: Name of the backend that delivered it
    """

    success: bool
    delivery_id: str
    attempts: int = 1
    transport: str = ""


@dataclass
class VerificationResult:
    """Result of a transport connection check."""

    success: bool
    message: str = ""
    error: Optional[str] = None
