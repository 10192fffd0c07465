"""Data models and exceptions for the notification delivery engine.

This module defines the failure policy, attachment and result types, and the
custom exceptions used throughout the delivery pipeline.
"""

from dataclasses import dataclass
from enum import Enum

# Template name recorded for ad-hoc content not produced by the renderer
CUSTOM_EMAIL_TEMPLATE = "custom-email"

CALENDAR_MEDIA_TYPE = "text/calendar; method=PUBLISH"


class NotificationError(Exception):
    """Base exception for notification-related errors."""

    pass


class RenderError(NotificationError):
    """Raised when template rendering fails (missing template or variable)."""

    pass


class TransportError(NotificationError):
    """Raised when the transport fails to deliver a message."""

    pass


class UnsupportedEventError(NotificationError):
    """Raised when an email event has no recipient/subject mapping."""

    pass


class InvalidContextError(NotificationError):
    """Raised when an event is resolved without the business context it needs."""

    pass


class FailurePolicy(str, Enum):
    """What a delivery call does after persisting a FAILED record.

    PROPAGATE re-raises the TransportError to the caller; SUPPRESS returns the
    FAILED record and lets the business operation continue.
    """

    PROPAGATE = "propagate"
    SUPPRESS = "suppress"


@dataclass(frozen=True)
class Attachment:
    """A named attachment with its media type, e.g. ``text/calendar; method=PUBLISH``."""

    filename: str
    content: bytes
    media_type: str = "application/octet-stream"


@dataclass
class ResendSummary:
    """Outcome of resending every FAILED record in one pass.

    Attributes:
        total: Number of FAILED records picked up
        success_count: Resends that ended SENT
        failure_count: Resends that ended FAILED again
    """

    total: int = 0
    success_count: int = 0
    failure_count: int = 0
