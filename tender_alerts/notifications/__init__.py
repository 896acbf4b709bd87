"""Notification rendering and delivery."""

from .models import (
    DeliveryError,
    DeliveryReceipt,
    NotificationError,
    NotificationTemplateError,
    RenderedMessage,
    TransportInitializationError,
    VerificationResult,
)
from .smtp_client import SMTPClient, SMTPCredentials, build_sender_address, validate_recipient
from .templates import TemplateRenderer
from .transport import DeliveryTransport, GmailOAuthTransport, SMTPTransport, create_transport

__all__ = [
    "DeliveryError",
    "DeliveryReceipt",
    "DeliveryTransport",
    "GmailOAuthTransport",
    "NotificationError",
    "NotificationTemplateError",
    "RenderedMessage",
    "SMTPClient",
    "SMTPCredentials",
    "SMTPTransport",
    "TemplateRenderer",
    "TransportInitializationError",
    "VerificationResult",
    "build_sender_address",
    "create_transport",
    "validate_recipient",
]
