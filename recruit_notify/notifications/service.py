"""Notification delivery engine.

This module provides the NotificationService class that turns a message into a
durably tracked delivery attempt: a NotificationRecord is committed in PENDING
state before the transport is called, then moved to SENT or FAILED. What
happens after a FAILED attempt is decided per call by a FailurePolicy.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from pydantic import ValidationError

from recruit_notify.config.environment import DEFAULT_FRONTEND_URL
from recruit_notify.domain.models import (
    Application,
    Interview,
    NotificationRecord,
    NotificationStatus,
    User,
)
from recruit_notify.logging import get_logger
from recruit_notify.logging.context import log_context
from recruit_notify.persistence.database import SessionScope, get_session
from recruit_notify.persistence.exceptions import PersistenceError
from recruit_notify.persistence.repositories import NotificationRecordRepository
from recruit_notify.utils.timestamps import utc_now

from .events import EmailEvent, resolve, resolve_recipient
from .models import (
    CALENDAR_MEDIA_TYPE,
    CUSTOM_EMAIL_TEMPLATE,
    Attachment,
    FailurePolicy,
    InvalidContextError,
    ResendSummary,
    TransportError,
)
from .payloads import (
    DEFAULT_LOCATION_INFO,
    build_application_variables,
    build_interview_variables,
    offer_paragraphs,
)
from .smtp_client import EmailTransport
from .templates import TemplateRenderer

logger = get_logger(__name__, component="notification")

VERIFICATION_TEMPLATE = "verification-email"
PASSWORD_RESET_TEMPLATE = "password-reset-email"
NEW_USER_TEMPLATE = "new-user-email"
CUSTOM_JOB_OFFER_TEMPLATE = "custom-job-offer"


class NotificationService:
    """Delivery engine for templated, custom and attachment-bearing emails.

    Every send follows the same protocol:
    1. Render the body (templated sends only; a RenderError creates no record)
    2. Commit a PENDING NotificationRecord in its own session
    3. Call the transport
    4. Commit SENT, or FAILED with the transport error message
    5. Under FailurePolicy.PROPAGATE re-raise the TransportError, otherwise
       return the FAILED record

    The outbox sessions are independent of any caller transaction, so the
    record survives even if the caller later rolls back.
    """

    def __init__(
        self,
        transport: EmailTransport,
        template_renderer: Optional[TemplateRenderer] = None,
        session_scope: SessionScope = get_session,
        frontend_url: str = DEFAULT_FRONTEND_URL,
        default_location: str = DEFAULT_LOCATION_INFO,
        clock: Callable[[], datetime] = utc_now,
        logger_instance: Optional[logging.Logger] = None,
    ):
        """Initialize notification service.

        Args:
            transport: Transport used to deliver messages
            template_renderer: Template renderer instance (creates default if None)
            session_scope: Factory for transactional sessions
            frontend_url: Base URL used for portal and auth links
            default_location: Location text when an interview has no usable location
            clock: Source of "now" for retry bookkeeping
            logger_instance: Logger instance (uses module logger if None)
        """
        self.transport = transport
        self.template_renderer = template_renderer or TemplateRenderer()
        self.session_scope = session_scope
        self.frontend_url = frontend_url.rstrip("/")
        self.default_location = default_location
        self.clock = clock
        self.logger = logger_instance or logger

    # Core operations

    def send_templated(
        self,
        to: str,
        subject: str,
        template_name: str,
        variables: Mapping[str, Any],
        related_user_id: Optional[int] = None,
        policy: FailurePolicy = FailurePolicy.PROPAGATE,
        campaign_id: Optional[str] = None,
    ) -> NotificationRecord:
        """Render a template and deliver it.

        Raises:
            RenderError: If rendering fails (no record is created)
            InvalidContextError: If the address or content cannot form a record
            TransportError: If delivery fails and policy is PROPAGATE
        """
        body = self.template_renderer.render(template_name, variables)
        record = self._new_record(
            recipient_address=to,
            subject=subject,
            body=body,
            template_name=template_name,
            is_html=True,
            related_user_id=related_user_id,
            campaign_id=campaign_id,
        )
        return self._deliver(record, (), policy)

    def send_custom(
        self,
        to: str,
        subject: str,
        body: str,
        is_html: bool = True,
        related_user_id: Optional[int] = None,
        policy: FailurePolicy = FailurePolicy.PROPAGATE,
        template_name: str = CUSTOM_EMAIL_TEMPLATE,
        campaign_id: Optional[str] = None,
    ) -> NotificationRecord:
        """Deliver ad-hoc content without rendering.

        Raises:
            InvalidContextError: If the address or content cannot form a record
            TransportError: If delivery fails and policy is PROPAGATE
        """
        record = self._new_record(
            recipient_address=to,
            subject=subject,
            body=body,
            template_name=template_name,
            is_html=is_html,
            related_user_id=related_user_id,
            campaign_id=campaign_id,
        )
        return self._deliver(record, (), policy)

    def send_with_attachment(
        self,
        to: str,
        subject: str,
        body: str,
        attachment_content: bytes,
        attachment_name: str,
        media_type: str = CALENDAR_MEDIA_TYPE,
        is_html: bool = False,
        related_user_id: Optional[int] = None,
        policy: FailurePolicy = FailurePolicy.PROPAGATE,
        template_name: str = CUSTOM_EMAIL_TEMPLATE,
    ) -> NotificationRecord:
        """Deliver a message with one attachment.

        The attachment is stored on the record so a resend carries the same bytes.

        Raises:
            InvalidContextError: If the address or content cannot form a record
            TransportError: If delivery fails and policy is PROPAGATE
        """
        record = self._new_record(
            recipient_address=to,
            subject=subject,
            body=body,
            template_name=template_name,
            is_html=is_html,
            related_user_id=related_user_id,
            attachment_name=attachment_name,
            attachment_media_type=media_type,
            attachment_content=attachment_content,
        )
        attachment = Attachment(filename=attachment_name, content=attachment_content, media_type=media_type)
        return self._deliver(record, (attachment,), policy)

    def resend(
        self, record_id: int, policy: FailurePolicy = FailurePolicy.PROPAGATE
    ) -> NotificationRecord:
        """Re-attempt delivery of an existing record with its stored content.

        Increments retry_count, moves last_retry_at forward and resets the status
        to PENDING before the transport call. The body is never re-rendered.

        Raises:
            RecordNotFoundError: If the record doesn't exist
            TransportError: If delivery fails and policy is PROPAGATE
        """
        with self.session_scope() as session:
            record = NotificationRecordRepository(session).mark_retry(record_id, self.clock())

        self.logger.info(
            f"Resending notification {record_id} (retry {record.retry_count})",
            extra={"event": "notification.resend", "notification_id": record_id, "retry_count": record.retry_count},
        )

        attachments = ()
        if record.has_attachment:
            attachments = (
                Attachment(
                    filename=record.attachment_name,
                    content=record.attachment_content,
                    media_type=record.attachment_media_type or "application/octet-stream",
                ),
            )
        return self._attempt(record, attachments, policy)

    def resend_all_failed(self) -> ResendSummary:
        """Resend every FAILED record once, collecting outcomes instead of raising."""
        with self.session_scope() as session:
            failed = NotificationRecordRepository(session).find_by_status(NotificationStatus.FAILED)

        summary = ResendSummary(total=len(failed))
        for record in failed:
            try:
                result = self.resend(record.id, policy=FailurePolicy.SUPPRESS)
            except PersistenceError as e:
                self.logger.error(
                    f"Could not resend notification {record.id}: {e}",
                    extra={"event": "notification.resend.error", "notification_id": record.id},
                )
                summary.failure_count += 1
                continue

            if result.status == NotificationStatus.SENT:
                summary.success_count += 1
            else:
                summary.failure_count += 1

        self.logger.info(
            f"Resend of failed notifications complete: {summary.success_count} sent, "
            f"{summary.failure_count} failed (total: {summary.total})",
            extra={
                "event": "notification.resend_all.completed",
                "total": summary.total,
                "success_count": summary.success_count,
                "failure_count": summary.failure_count,
            },
        )
        return summary

    def delivery_stats(self) -> Dict[NotificationStatus, int]:
        """Count outbox records per status."""
        with self.session_scope() as session:
            return NotificationRecordRepository(session).counts_by_status()

    # Event-driven helpers

    def send_application_email(
        self,
        application: Application,
        event: EmailEvent,
        policy: FailurePolicy = FailurePolicy.SUPPRESS,
    ) -> NotificationRecord:
        """Notify about an application event using the event's recipient and subject.

        Raises:
            UnsupportedEventError: If the event has no mapping
            InvalidContextError: If the event needs context the application lacks
            RenderError: If rendering fails
            TransportError: If delivery fails and policy is PROPAGATE
        """
        event_config = resolve(event)
        recipient = resolve_recipient(event, application)
        variables = build_application_variables(application, event)
        return self.send_templated(
            recipient.address,
            event_config.subject_for(application.job.title),
            event.template_name,
            variables,
            related_user_id=recipient.related_user_id,
            policy=policy,
        )

    def send_interview_email(
        self,
        interview: Interview,
        event: EmailEvent,
        policy: FailurePolicy = FailurePolicy.SUPPRESS,
    ) -> NotificationRecord:
        """Notify about an interview event using the event's recipient and subject.

        Raises:
            UnsupportedEventError: If the event has no mapping
            InvalidContextError: If the interview lacks a needed person or address
            RenderError: If rendering fails
            TransportError: If delivery fails and policy is PROPAGATE
        """
        application = interview.application
        event_config = resolve(event)
        recipient = resolve_recipient(event, application, interview)
        variables = build_interview_variables(
            interview, event, self.frontend_url, self.default_location
        )
        return self.send_templated(
            recipient.address,
            event_config.subject_for(application.job.title),
            event.template_name,
            variables,
            related_user_id=recipient.related_user_id,
            policy=policy,
        )

    def send_custom_job_offer(
        self,
        application: Application,
        subject: str,
        content: str,
        policy: FailurePolicy = FailurePolicy.SUPPRESS,
    ) -> NotificationRecord:
        """Send a job offer written by the recruiter instead of the stock template.

        ``{{candidateName}}`` in the content is replaced with the candidate's
        name, then the plain text is laid out as HTML paragraphs.

        Raises:
            InvalidContextError: If the application has no candidate address or job
            TransportError: If delivery fails and policy is PROPAGATE
        """
        recipient = resolve_recipient(EmailEvent.JOB_OFFER, application)
        variables = build_application_variables(application, EmailEvent.JOB_OFFER)
        personalized = content.replace("{{candidateName}}", variables["candidateName"])
        variables["paragraphs"] = offer_paragraphs(personalized)
        return self.send_templated(
            recipient.address,
            subject,
            CUSTOM_JOB_OFFER_TEMPLATE,
            variables,
            related_user_id=recipient.related_user_id,
            policy=policy,
        )

    # Critical account emails: failures always propagate

    def send_verification_email(self, to: str, token: str) -> NotificationRecord:
        return self.send_templated(
            to,
            "Verify your email address",
            VERIFICATION_TEMPLATE,
            {"verificationLink": f"{self.frontend_url}/verify-email?token={token}"},
            policy=FailurePolicy.PROPAGATE,
        )

    def send_password_reset_email(
        self, to: str, token: str, user_id: Optional[int] = None
    ) -> NotificationRecord:
        return self.send_templated(
            to,
            "Reset Your Password",
            PASSWORD_RESET_TEMPLATE,
            {"resetLink": f"{self.frontend_url}/reset-password?token={token}"},
            related_user_id=user_id,
            policy=FailurePolicy.PROPAGATE,
        )

    def send_new_user_email(self, user: User, token: str) -> NotificationRecord:
        return self.send_templated(
            user.email,
            "Verify your email address",
            NEW_USER_TEMPLATE,
            {
                "verificationLink": f"{self.frontend_url}/verify-email?token={token}",
                "userName": user.first_name,
            },
            related_user_id=user.id,
            policy=FailurePolicy.PROPAGATE,
        )

    # Delivery protocol

    def _new_record(self, **fields: Any) -> NotificationRecord:
        try:
            return NotificationRecord(**fields)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(loc) for loc in error['loc'])}: {error['msg']}" for error in e.errors()
            )
            raise InvalidContextError(
                f"Cannot build notification to {fields.get('recipient_address')!r}: {problems}"
            ) from e

    def _deliver(
        self,
        record: NotificationRecord,
        attachments: Sequence[Attachment],
        policy: FailurePolicy,
    ) -> NotificationRecord:
        with self.session_scope() as session:
            pending = NotificationRecordRepository(session).create(record)
        return self._attempt(pending, attachments, policy)

    def _attempt(
        self,
        record: NotificationRecord,
        attachments: Sequence[Attachment],
        policy: FailurePolicy,
    ) -> NotificationRecord:
        with log_context(notification_id=record.id, template_name=record.template_name):
            try:
                self.transport.send(
                    record.recipient_address,
                    record.subject,
                    record.body,
                    record.is_html,
                    attachments,
                )
            except Exception as e:
                error = e if isinstance(e, TransportError) else TransportError(str(e) or type(e).__name__)
                failed = self._update_status(record.id, NotificationStatus.FAILED, str(error))
                self.logger.error(
                    f"Notification to {record.recipient_address} failed: {error}",
                    extra={
                        "event": "notification.send.failure",
                        "error_type": type(e).__name__,
                        "policy": policy.value,
                        "retry_count": record.retry_count,
                    },
                )
                if policy == FailurePolicy.PROPAGATE:
                    if error is e:
                        raise
                    raise error from e
                return failed

            sent = self._update_status(record.id, NotificationStatus.SENT)
            self.logger.info(
                f"Notification sent to {record.recipient_address}: {record.subject}",
                extra={"event": "notification.send.success", "retry_count": record.retry_count},
            )
            return sent

    def _update_status(
        self,
        record_id: int,
        status: NotificationStatus,
        error_message: Optional[str] = None,
    ) -> NotificationRecord:
        with self.session_scope() as session:
            return NotificationRecordRepository(session).update_status(record_id, status, error_message)
