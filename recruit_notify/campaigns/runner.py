"""Bulk campaign coordinator.

Resolves a recipient set, optionally sends a test message first, then sends a
personalized copy to each target one at a time. A failing target is recorded and
the run continues; the campaign as a whole never raises for a single recipient.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional

from recruit_notify.config.models import CampaignConfig
from recruit_notify.domain.models import Application, NotificationStatus
from recruit_notify.logging import get_logger
from recruit_notify.logging.context import log_context
from recruit_notify.notifications.models import FailurePolicy, NotificationError
from recruit_notify.notifications.payloads import personalize_content
from recruit_notify.notifications.service import NotificationService
from recruit_notify.persistence.database import SessionScope, get_session
from recruit_notify.persistence.exceptions import PersistenceError
from recruit_notify.persistence.repositories import ApplicationRepository
from recruit_notify.utils.timestamps import timestamp_to_unix, utc_now

from .models import (
    BulkCampaignResult,
    CampaignFailure,
    CampaignPreview,
    CampaignRecipient,
    RecipientSelector,
)

logger = get_logger(__name__, component="campaign")

BULK_EMAIL_TEMPLATE = "bulk-email"
BULK_EMAIL_TEST_TEMPLATE = "bulk-email-test"


def build_campaign_id(
    selector: RecipientSelector, sender_id: Optional[int], started_at: datetime
) -> str:
    """Build the tag shared by every record of a run.

    Format: ``bulk-<epoch>[-job<id>][-<status>][-<senderId>]``.
    """
    parts = [f"bulk-{timestamp_to_unix(started_at)}"]
    if selector.job_id is not None:
        parts.append(f"job{selector.job_id}")
    if selector.status is not None:
        parts.append(selector.status.value.lower())
    if sender_id is not None:
        parts.append(str(sender_id))
    return "-".join(parts)


class BulkCampaignRunner:
    """Runs bulk email campaigns against applications.

    Every send goes through the NotificationService with FailurePolicy.SUPPRESS,
    so each target produces its own NotificationRecord and its own outcome.
    Targets are processed sequentially.
    """

    def __init__(
        self,
        notification_service: NotificationService,
        session_scope: SessionScope = get_session,
        config: Optional[CampaignConfig] = None,
        clock: Callable[[], datetime] = utc_now,
        logger_instance: Optional[logging.Logger] = None,
    ):
        self.notifications = notification_service
        self.session_scope = session_scope
        self.config = config or CampaignConfig()
        self.clock = clock
        self.logger = logger_instance or logger

    def run(
        self,
        selector: RecipientSelector,
        subject: str,
        content: str,
        is_html: bool = True,
        send_test_first: bool = False,
        test_recipient: Optional[str] = None,
        sender_id: Optional[int] = None,
    ) -> BulkCampaignResult:
        """Send a campaign to every selected application.

        Args:
            selector: Which applications to target
            subject: Subject line (not personalized)
            content: Body with optional ``{{token}}`` placeholders
            is_html: Whether the body is HTML
            send_test_first: Send one unpersonalized copy to ``test_recipient`` first
            test_recipient: Address for the test send
            sender_id: Id of the user running the campaign

        Returns:
            BulkCampaignResult where success_count + failure_count == total_attempted

        Raises:
            ValueError: If a test send is requested without a test recipient
        """
        if send_test_first and not (test_recipient and test_recipient.strip()):
            raise ValueError("test_recipient is required when send_test_first is set")

        started_at = self.clock()
        campaign_id = build_campaign_id(selector, sender_id, started_at)

        with log_context(campaign_id=campaign_id):
            applications = self._select(selector)
            result = BulkCampaignResult(
                campaign_id=campaign_id,
                started_at=started_at,
                total_attempted=len(applications) + (1 if send_test_first else 0),
            )

            self.logger.info(
                f"Starting campaign {campaign_id} for {len(applications)} applications",
                extra={
                    "event": "campaign.started",
                    "target_count": len(applications),
                    "send_test_first": send_test_first,
                },
            )

            if send_test_first:
                self._send_test(result, test_recipient.strip(), subject, content, is_html, sender_id)

            for application in applications:
                self._send_to_application(result, application, subject, content, is_html)

            result.finalize(self.clock())

            self.logger.info(
                f"Campaign {campaign_id} complete: {result.success_count} sent, "
                f"{result.failure_count} failed (total: {result.total_attempted})",
                extra={
                    "event": "campaign.completed",
                    "status": result.status.value,
                    "total_attempted": result.total_attempted,
                    "success_count": result.success_count,
                    "failure_count": result.failure_count,
                },
            )

        return result

    def preview(self, selector: RecipientSelector) -> CampaignPreview:
        """Resolve the selector and list recipients without sending anything."""
        applications = self._select(selector)
        recipients = [
            CampaignRecipient(
                application_id=application.id,
                name=application.candidate.full_name if application.candidate else "Unknown",
                email=application.candidate.email if application.candidate else None,
                job_title=application.job.title if application.job else None,
                application_status=application.status.value,
            )
            for application in applications
        ]
        return CampaignPreview(total_recipients=len(recipients), recipients=recipients)

    def _select(self, selector: RecipientSelector) -> List[Application]:
        with self.session_scope() as session:
            repo = ApplicationRepository(session)
            if selector.uses_explicit_ids:
                return repo.get_by_ids(selector.application_ids)
            return repo.find_for_campaign(job_id=selector.job_id, status=selector.status)

    def _send_test(
        self,
        result: BulkCampaignResult,
        test_recipient: str,
        subject: str,
        content: str,
        is_html: bool,
        sender_id: Optional[int],
    ) -> None:
        try:
            record = self.notifications.send_custom(
                test_recipient,
                f"{self.config.test_subject_prefix}{subject}",
                content,
                is_html=is_html,
                related_user_id=sender_id,
                policy=FailurePolicy.SUPPRESS,
                template_name=BULK_EMAIL_TEST_TEMPLATE,
                campaign_id=result.campaign_id,
            )
        except (NotificationError, PersistenceError) as e:
            result.record_failure(
                CampaignFailure(test_recipient, "Test Recipient", None, f"Test email failed: {e}")
            )
            return

        if record.status == NotificationStatus.SENT:
            result.record_success(record.id)
        else:
            result.record_failure(
                CampaignFailure(
                    test_recipient,
                    "Test Recipient",
                    None,
                    f"Test email failed: {record.error_message}",
                ),
                notification_id=record.id,
            )

    def _send_to_application(
        self,
        result: BulkCampaignResult,
        application: Application,
        subject: str,
        content: str,
        is_html: bool,
    ) -> None:
        candidate = application.candidate
        if candidate is None:
            result.record_failure(
                CampaignFailure(
                    "Unknown",
                    "Unknown",
                    application.id,
                    f"Candidate information is missing for application ID: {application.id}",
                )
            )
            return

        if application.job is None:
            result.record_failure(
                CampaignFailure(
                    candidate.email or "No email",
                    candidate.full_name,
                    application.id,
                    f"Job information is missing for application ID: {application.id}",
                )
            )
            return

        email = (candidate.email or "").strip()
        if not email:
            result.record_failure(
                CampaignFailure(
                    "No email",
                    candidate.full_name,
                    application.id,
                    "Candidate email is missing or empty",
                )
            )
            return

        try:
            record = self.notifications.send_custom(
                email,
                subject,
                personalize_content(content, application),
                is_html=is_html,
                related_user_id=candidate.id,
                policy=FailurePolicy.SUPPRESS,
                template_name=BULK_EMAIL_TEMPLATE,
                campaign_id=result.campaign_id,
            )
        except (NotificationError, PersistenceError) as e:
            self.logger.error(
                f"Campaign send to application {application.id} failed: {e}",
                extra={"event": "campaign.target.error", "application_id": application.id},
            )
            result.record_failure(
                CampaignFailure(email, candidate.full_name, application.id, str(e))
            )
            return

        if record.status == NotificationStatus.SENT:
            result.record_success(record.id)
        else:
            result.record_failure(
                CampaignFailure(email, candidate.full_name, application.id, record.error_message or ""),
                notification_id=record.id,
            )
