"""Notification delivery engine for recruiting events.

This module provides the complete delivery pipeline:
- NotificationService: record-before-send delivery of templated, custom and
  attachment-bearing emails, resends and delivery statistics
- EmailEvent / resolve / resolve_recipient: static event to recipient/subject mapping
- TemplateRenderer: Jinja2-based email template rendering
- SMTPClient / SMTPTransport: SMTP delivery with TLS/SSL support
- CalendarInviteGenerator: RFC 5545 interview invites
- Payload utilities: template variable builders and campaign personalization
"""

from .calendar import (
    CALENDAR_FILENAME,
    CALENDAR_TEMPLATE,
    CalendarInviteGenerator,
    InviteMessage,
    build_invite_email_body,
    build_invite_messages,
    escape_text,
    fold_line,
)
from .events import (
    EVENT_CONFIG,
    EmailEvent,
    EventConfig,
    RecipientType,
    ResolvedRecipient,
    admin_recipient,
    resolve,
    resolve_recipient,
)
from .models import (
    CALENDAR_MEDIA_TYPE,
    CUSTOM_EMAIL_TEMPLATE,
    Attachment,
    FailurePolicy,
    InvalidContextError,
    NotificationError,
    RenderError,
    ResendSummary,
    TransportError,
    UnsupportedEventError,
)
from .payloads import (
    build_application_variables,
    build_interview_variables,
    personalize_content,
)
from .service import NotificationService
from .smtp_client import EmailTransport, SMTPClient, SMTPTransport, build_sender_address
from .templates import TemplateRenderer

__all__ = [
    # Main service
    "NotificationService",
    "FailurePolicy",
    "ResendSummary",
    "Attachment",
    "CUSTOM_EMAIL_TEMPLATE",
    "CALENDAR_MEDIA_TYPE",
    # Events
    "EmailEvent",
    "RecipientType",
    "EventConfig",
    "ResolvedRecipient",
    "EVENT_CONFIG",
    "resolve",
    "resolve_recipient",
    "admin_recipient",
    # Exceptions
    "NotificationError",
    "RenderError",
    "TransportError",
    "UnsupportedEventError",
    "InvalidContextError",
    # Components
    "TemplateRenderer",
    "EmailTransport",
    "SMTPClient",
    "SMTPTransport",
    "CalendarInviteGenerator",
    "InviteMessage",
    "CALENDAR_TEMPLATE",
    "CALENDAR_FILENAME",
    # Utilities
    "build_application_variables",
    "build_interview_variables",
    "build_invite_email_body",
    "build_invite_messages",
    "build_sender_address",
    "escape_text",
    "fold_line",
    "personalize_content",
]
