"""Unit tests for notification service.

Tests the NotificationService for:
- The PENDING -> SENT/FAILED delivery protocol
- PROPAGATE and SUPPRESS failure policies
- Render failures creating no record
- Attachments stored for resend
- Resend and bulk resend of FAILED records
- Delivery statistics
- Account and event-driven helpers
"""

from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from recruit_notify.domain.models import NotificationStatus
from recruit_notify.notifications.events import EmailEvent
from recruit_notify.notifications.models import (
    CALENDAR_MEDIA_TYPE,
    FailurePolicy,
    InvalidContextError,
    RenderError,
    TransportError,
)
from recruit_notify.notifications.service import NotificationService
from recruit_notify.persistence import (
    NotificationRecordRepository,
    RecordNotFoundError,
    close_database,
    get_session,
    init_database,
)
from tests.helpers import FakeTransport, make_application, make_interview, make_user

FIXED_NOW = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def database():
    init_database("sqlite:///:memory:")
    yield
    close_database()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def service(transport):
    return NotificationService(
        transport,
        frontend_url="https://portal.acme.io/",
        clock=lambda: FIXED_NOW,
    )


def all_records():
    with get_session() as session:
        repo = NotificationRecordRepository(session)
        return sorted(
            repo.find_by_status(NotificationStatus.PENDING)
            + repo.find_by_status(NotificationStatus.SENT)
            + repo.find_by_status(NotificationStatus.FAILED),
            key=lambda record: record.id,
        )


def get_record(record_id):
    with get_session() as session:
        return NotificationRecordRepository(session).get_by_id(record_id)


class TestSendTemplated:
    def test_success_persists_sent_record(self, service, transport):
        record = service.send_templated(
            "jane.doe@example.com",
            "Verify your email address",
            "verification-email",
            {"verificationLink": "https://portal.acme.io/verify-email?token=abc"},
            related_user_id=1,
        )

        assert record.status == NotificationStatus.SENT
        assert record.error_message is None
        assert record.template_name == "verification-email"
        assert record.related_user_id == 1
        assert transport.recipients() == ["jane.doe@example.com"]
        assert transport.sent[0].is_html is True
        assert "verify-email?token=abc" in transport.sent[0].body

        stored = get_record(record.id)
        assert stored.status == NotificationStatus.SENT
        assert stored.body == transport.sent[0].body

    def test_propagate_raises_after_persisting_failed(self, service, transport):
        transport.fail_all = True

        with pytest.raises(TransportError, match="550 mailbox unavailable"):
            service.send_templated(
                "jane.doe@example.com",
                "Verify your email address",
                "verification-email",
                {"verificationLink": "https://portal.acme.io/verify-email?token=abc"},
            )

        records = all_records()
        assert len(records) == 1
        assert records[0].status == NotificationStatus.FAILED
        assert records[0].error_message == "550 mailbox unavailable"

    def test_suppress_returns_failed_record(self, service, transport):
        transport.fail_all = True

        record = service.send_templated(
            "jane.doe@example.com",
            "Verify your email address",
            "verification-email",
            {"verificationLink": "x"},
            policy=FailurePolicy.SUPPRESS,
        )

        assert record.status == NotificationStatus.FAILED
        assert record.error_message == "550 mailbox unavailable"

    def test_render_error_creates_no_record(self, service, transport):
        with pytest.raises(RenderError):
            service.send_templated("jane.doe@example.com", "Subject", "verification-email", {})

        assert all_records() == []
        assert transport.attempts == []

    def test_pending_record_exists_before_transport_call(self, service):
        seen = []

        def check_pending(to, subject, body, is_html, attachments):
            with get_session() as session:
                pending = NotificationRecordRepository(session).find_by_status(NotificationStatus.PENDING)
            seen.extend(record.recipient_address for record in pending)

        service.transport = Mock(send=Mock(side_effect=check_pending))

        service.send_custom("jane.doe@example.com", "Hello", "<p>Hi</p>")

        assert seen == ["jane.doe@example.com"]

    def test_unexpected_transport_exception_is_wrapped(self, service):
        service.transport = Mock(send=Mock(side_effect=RuntimeError("connection reset")))

        with pytest.raises(TransportError, match="connection reset") as exc_info:
            service.send_custom("jane.doe@example.com", "Hello", "Hi")

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert all_records()[0].status == NotificationStatus.FAILED


class TestSendCustom:
    def test_plain_text_custom_email(self, service, transport):
        record = service.send_custom(
            "jane.doe@example.com", "Hello", "Plain body", is_html=False, campaign_id="bulk-1"
        )

        assert record.template_name == "custom-email"
        assert record.campaign_id == "bulk-1"
        assert record.is_html is False
        assert transport.sent[0].is_html is False
        assert transport.sent[0].body == "Plain body"


class TestSendWithAttachment:
    def test_attachment_is_sent_and_stored(self, service, transport):
        record = service.send_with_attachment(
            "sam.lee@example.com",
            "Interview Scheduled: Jane Doe - Backend Engineer",
            "Calendar invite attached",
            b"BEGIN:VCALENDAR\r\nEND:VCALENDAR\r\n",
            "interview.ics",
            template_name="calendar-invite",
        )

        assert record.status == NotificationStatus.SENT
        attachment = transport.sent[0].attachments[0]
        assert attachment.filename == "interview.ics"
        assert attachment.media_type == CALENDAR_MEDIA_TYPE
        assert transport.sent[0].is_html is False

        stored = get_record(record.id)
        assert stored.attachment_name == "interview.ics"
        assert stored.attachment_media_type == CALENDAR_MEDIA_TYPE
        assert stored.attachment_content == b"BEGIN:VCALENDAR\r\nEND:VCALENDAR\r\n"

    def test_blank_address_is_context_error(self, service, transport):
        with pytest.raises(InvalidContextError, match="recipient_address"):
            service.send_with_attachment(
                "   ", "Interview Scheduled", "Calendar invite attached", b"BEGIN:VCALENDAR", "interview.ics"
            )

        assert transport.attempts == []
        assert all_records() == []


class TestResend:
    def test_resend_failed_record(self, service, transport):
        transport.fail_all = True
        failed = service.send_custom(
            "jane.doe@example.com", "Hello", "Hi", policy=FailurePolicy.SUPPRESS
        )
        transport.fail_all = False

        record = service.resend(failed.id)

        assert record.id == failed.id
        assert record.status == NotificationStatus.SENT
        assert record.retry_count == 1
        assert record.last_retry_at == FIXED_NOW
        assert record.error_message is None
        assert transport.sent[-1].body == "Hi"

    def test_resend_failing_again_propagates(self, service, transport):
        transport.fail_all = True
        failed = service.send_custom(
            "jane.doe@example.com", "Hello", "Hi", policy=FailurePolicy.SUPPRESS
        )

        with pytest.raises(TransportError):
            service.resend(failed.id)

        stored = get_record(failed.id)
        assert stored.status == NotificationStatus.FAILED
        assert stored.retry_count == 1

    def test_resend_reattaches_stored_attachment(self, service, transport):
        transport.fail_all = True
        failed = service.send_with_attachment(
            "sam.lee@example.com",
            "Invite",
            "Attached",
            b"BEGIN:VCALENDAR\r\nEND:VCALENDAR\r\n",
            "interview.ics",
            policy=FailurePolicy.SUPPRESS,
        )
        transport.fail_all = False

        service.resend(failed.id)

        attachment = transport.sent[-1].attachments[0]
        assert attachment.filename == "interview.ics"
        assert attachment.content == b"BEGIN:VCALENDAR\r\nEND:VCALENDAR\r\n"
        assert attachment.media_type == CALENDAR_MEDIA_TYPE

    def test_resend_never_rerenders(self, service, transport):
        record = service.send_templated(
            "jane.doe@example.com", "Verify", "verification-email", {"verificationLink": "link-1"}
        )
        service.template_renderer = Mock()

        service.resend(record.id)

        service.template_renderer.render.assert_not_called()
        assert transport.sent[-1].body == transport.sent[0].body

    def test_resend_unknown_record(self, service):
        with pytest.raises(RecordNotFoundError):
            service.resend(999)


class TestResendAllFailed:
    def test_counts_outcomes(self, service, transport):
        transport.fail_for = {"bounce@example.com", "later@example.com"}
        service.send_custom("bounce@example.com", "A", "a", policy=FailurePolicy.SUPPRESS)
        service.send_custom("later@example.com", "B", "b", policy=FailurePolicy.SUPPRESS)
        service.send_custom("jane.doe@example.com", "C", "c")
        transport.fail_for = {"bounce@example.com"}

        summary = service.resend_all_failed()

        assert summary.total == 2
        assert summary.success_count == 1
        assert summary.failure_count == 1

    def test_nothing_to_resend(self, service):
        summary = service.resend_all_failed()
        assert (summary.total, summary.success_count, summary.failure_count) == (0, 0, 0)


class TestDeliveryStats:
    def test_counts_every_status(self, service, transport):
        transport.fail_for = {"bounce@example.com"}
        service.send_custom("jane.doe@example.com", "A", "a")
        service.send_custom("sam.lee@example.com", "B", "b")
        service.send_custom("bounce@example.com", "C", "c", policy=FailurePolicy.SUPPRESS)

        assert service.delivery_stats() == {
            NotificationStatus.PENDING: 0,
            NotificationStatus.SENT: 2,
            NotificationStatus.FAILED: 1,
        }


class TestAccountEmails:
    def test_verification_email(self, service, transport):
        record = service.send_verification_email("jane.doe@example.com", "tok123")

        assert record.subject == "Verify your email address"
        assert "https://portal.acme.io/verify-email?token=tok123" in transport.sent[0].body

    def test_password_reset_email(self, service, transport):
        record = service.send_password_reset_email("jane.doe@example.com", "reset9", user_id=1)

        assert record.subject == "Reset Your Password"
        assert record.related_user_id == 1
        assert "https://portal.acme.io/reset-password?token=reset9" in transport.sent[0].body

    def test_new_user_email(self, service, transport):
        record = service.send_new_user_email(make_user(user_id=7), "welcome1")

        assert record.template_name == "new-user-email"
        assert record.related_user_id == 7
        assert "Welcome, Jane!" in transport.sent[0].body

    def test_account_email_failure_always_propagates(self, service, transport):
        transport.fail_all = True

        with pytest.raises(TransportError):
            service.send_password_reset_email("jane.doe@example.com", "reset9")


class TestEventHelpers:
    def test_application_email(self, service, transport):
        record = service.send_application_email(make_application(), EmailEvent.APPLICATION_SHORTLISTED)

        assert record.recipient_address == "jane.doe@example.com"
        assert record.subject == "Congratulations! You've Been Shortlisted - Backend Engineer"
        assert record.template_name == "application-shortlisted"
        assert record.related_user_id == 1

    def test_application_email_suppresses_by_default(self, service, transport):
        transport.fail_all = True

        record = service.send_application_email(make_application(), EmailEvent.JOB_OFFER)

        assert record.status == NotificationStatus.FAILED

    def test_interview_email_to_interviewer(self, service, transport):
        record = service.send_interview_email(make_interview(), EmailEvent.INTERVIEW_ASSIGNED_TO_INTERVIEWER)

        assert record.recipient_address == "sam.lee@example.com"
        assert record.subject == "New Interview Assignment - Backend Engineer"
        assert "https://portal.acme.io/interviewer/dashboard" in transport.sent[0].body

    def test_missing_candidate_address_is_context_error(self, service, transport):
        application = make_application(candidate=make_user(email=None))

        with pytest.raises(InvalidContextError):
            service.send_application_email(application, EmailEvent.JOB_OFFER)

        assert transport.attempts == []
        assert all_records() == []


class TestCustomJobOffer:
    CONTENT = (
        "Dear {{candidateName}},\n\n"
        "We are pleased to offer you a salary of **EUR 85,000** <gross>.\n"
        "Start date: May 1\n\n"
        "Kind regards"
    )

    def test_personalized_offer_is_laid_out_as_html(self, service, transport):
        record = service.send_custom_job_offer(make_application(), "Your offer from Acme", self.CONTENT)

        assert record.status == NotificationStatus.SENT
        assert record.template_name == "custom-job-offer"
        assert record.recipient_address == "jane.doe@example.com"
        assert record.related_user_id == 1
        assert record.is_html is True

        message = transport.sent[0]
        assert message.subject == "Your offer from Acme"
        assert "<p>Dear Jane Doe,</p>" in message.body
        assert "<strong>EUR 85,000</strong> &lt;gross&gt;.<br>\nStart date: May 1" in message.body
        assert "<p>Kind regards</p>" in message.body
        assert "{{candidateName}}" not in message.body

    def test_failure_is_suppressed_by_default(self, service, transport):
        transport.fail_all = True

        record = service.send_custom_job_offer(make_application(), "Your offer", self.CONTENT)

        assert record.status == NotificationStatus.FAILED
        assert record.error_message == "550 mailbox unavailable"

    def test_propagate_policy(self, service, transport):
        transport.fail_all = True

        with pytest.raises(TransportError):
            service.send_custom_job_offer(
                make_application(), "Your offer", self.CONTENT, policy=FailurePolicy.PROPAGATE
            )

    def test_candidate_without_address(self, service, transport):
        application = make_application(candidate=make_user(email=None))

        with pytest.raises(InvalidContextError):
            service.send_custom_job_offer(application, "Your offer", self.CONTENT)

        assert transport.attempts == []
