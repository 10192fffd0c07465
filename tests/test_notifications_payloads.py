"""Tests for template variable builders and campaign personalization."""

from datetime import datetime, timezone

import pytest

from recruit_notify.domain.models import ApplicationStatus, Job, LocationType
from recruit_notify.notifications.events import EmailEvent
from recruit_notify.notifications.models import InvalidContextError
from recruit_notify.notifications.payloads import (
    DEFAULT_LOCATION_INFO,
    ONLINE_LOCATION_INFO,
    build_application_variables,
    build_interview_variables,
    location_info,
    offer_paragraphs,
    personalize_content,
)
from tests.helpers import make_application, make_interview, make_user

FRONTEND = "https://portal.acme.io/"


class TestApplicationVariables:
    def test_received_includes_application_date(self):
        application = make_application(created_at=datetime(2025, 1, 15, 14, 5, tzinfo=timezone.utc))

        variables = build_application_variables(application, EmailEvent.APPLICATION_RECEIVED)

        assert variables == {
            "candidateName": "Jane Doe",
            "jobTitle": "Backend Engineer",
            "applicationId": "10",
            "applicationDate": "January 15, 2025 at 02:05 PM",
        }

    def test_other_events_omit_date(self):
        variables = build_application_variables(make_application(), EmailEvent.JOB_OFFER)
        assert "applicationDate" not in variables

    def test_missing_candidate(self):
        application = make_application().model_copy(update={"candidate": None})

        with pytest.raises(InvalidContextError, match="no candidate"):
            build_application_variables(application, EmailEvent.JOB_OFFER)


class TestInterviewVariables:
    def test_assigned_to_interviewer(self):
        interview = make_interview()

        variables = build_interview_variables(
            interview, EmailEvent.INTERVIEW_ASSIGNED_TO_INTERVIEWER, FRONTEND
        )

        assert variables["scheduledDate"] == "Friday, March 14, 2025 at 10:30 AM"
        assert variables["durationMinutes"] == 45
        assert variables["locationType"] == "Office Interview"
        assert variables["locationAddress"] == "12 Main Street, Floor 3"
        assert variables["locationInfo"] == "12 Main Street, Floor 3"
        assert variables["interviewerName"] == "Sam Lee"
        assert variables["candidateEmail"] == "jane.doe@example.com"
        assert variables["interviewTemplate"] == "Technical Interview"
        assert variables["interviewerPortalLink"] == "https://portal.acme.io/interviewer/dashboard"

    def test_assigned_to_candidate_online(self):
        interview = make_interview(location_type=LocationType.ONLINE, location_address=None)

        variables = build_interview_variables(interview, EmailEvent.INTERVIEW_ASSIGNED_TO_CANDIDATE, FRONTEND)

        assert variables["locationInfo"] == ONLINE_LOCATION_INFO
        assert "locationAddress" not in variables
        assert variables["candidatePortalLink"] == "https://portal.acme.io/candidate/dashboard"
        assert "interviewerName" not in variables

    def test_cancelled_includes_scheduled_at(self):
        variables = build_interview_variables(
            make_interview(), EmailEvent.INTERVIEW_CANCELLED_TO_CANDIDATE, FRONTEND
        )

        assert variables["scheduledAt"] == "Friday, March 14, 2025 at 10:30 AM"
        assert variables["interviewTemplate"] == "Technical Interview"

    def test_unscheduled_interview_has_no_schedule_keys(self):
        interview = make_interview(
            scheduled_at=None, duration_minutes=None, location_type=None, location_address=None
        )

        variables = build_interview_variables(interview, EmailEvent.INTERVIEW_CANCELLED_TO_INTERVIEWER, FRONTEND)

        assert "scheduledDate" not in variables
        assert "scheduledAt" not in variables
        assert "durationMinutes" not in variables
        assert variables["locationInfo"] == DEFAULT_LOCATION_INFO


class TestLocationInfo:
    def test_office_without_address_uses_default(self):
        interview = make_interview(location_type=LocationType.OFFICE, location_address=None)
        assert location_info(interview, "Reception") == "Reception"


class TestPersonalizeContent:
    def test_replaces_known_tokens(self):
        application = make_application(
            candidate=make_user(first_name="Jane", last_name="Doe"),
            job=Job(id=5, title="Backend Engineer", department="Platform"),
            status=ApplicationStatus.REVIEWED,
        )

        content = personalize_content(
            "Hi {{firstName}} {{lastName}} ({{candidateName}}): {{jobTitle}}/{{jobDepartment}} is {{applicationStatus}}",
            application,
        )

        assert content == "Hi Jane Doe (Jane Doe): Backend Engineer/Platform is REVIEWED"

    def test_unknown_tokens_left_alone(self):
        content = personalize_content("Hello {{nickname}}", make_application())
        assert content == "Hello {{nickname}}"

    def test_missing_department_becomes_empty(self):
        application = make_application(job=Job(id=5, title="Backend Engineer"))
        assert personalize_content("[{{jobDepartment}}]", application) == "[]"

    def test_none_content(self):
        assert personalize_content(None, make_application()) is None


class TestOfferParagraphs:
    def test_blank_lines_split_paragraphs(self):
        assert offer_paragraphs("Hello\n\n\n\nBye\r\n\r\nSee you") == ["Hello", "Bye", "See you"]

    def test_line_breaks_and_bold(self):
        (paragraph,) = offer_paragraphs("Salary: **EUR 85,000**\nBonus: **10%**")

        assert paragraph == "Salary: <strong>EUR 85,000</strong><br>\nBonus: <strong>10%</strong>"

    def test_markup_is_escaped(self):
        (paragraph,) = offer_paragraphs("<script>alert(1)</script> & more")

        assert "<script>" not in paragraph
        assert paragraph.startswith("&lt;script&gt;")
        assert "&amp; more" in paragraph
