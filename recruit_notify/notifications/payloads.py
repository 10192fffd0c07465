"""Payload resolution for notification templates.

This module builds template variable maps from applications and interviews,
and personalizes ad-hoc campaign content per recipient.
"""

import re
from typing import Any, Dict, List, Optional

from markupsafe import Markup, escape

from recruit_notify.domain.models import Application, Interview, LocationType, User

from .events import EmailEvent
from .models import InvalidContextError

APPLICATION_DATE_FORMAT = "%B %d, %Y at %I:%M %p"
SCHEDULED_DATE_FORMAT = "%A, %B %d, %Y at %I:%M %p"

DEFAULT_LOCATION_INFO = "Interview Room"
ONLINE_LOCATION_INFO = "Online Interview (Meeting link will be provided)"

LOCATION_TYPE_DISPLAY = {
    LocationType.OFFICE: "Office Interview",
    LocationType.ONLINE: "Online Interview",
}

BOLD_MARKUP = re.compile(r"\*\*(.+?)\*\*")

PERSONALIZATION_TOKENS = (
    "candidateName",
    "firstName",
    "lastName",
    "jobTitle",
    "jobDepartment",
    "applicationStatus",
)


def build_application_variables(application: Application, event: EmailEvent) -> Dict[str, Any]:
    """Build template variables for an application event.

    Args:
        application: Application with candidate and job loaded
        event: Event being notified

    Returns:
        Dictionary with candidateName, jobTitle, applicationId and, for
        APPLICATION_RECEIVED, applicationDate

    Raises:
        InvalidContextError: If the application has no candidate or job
    """
    variables = _base_variables(application)

    if event == EmailEvent.APPLICATION_RECEIVED and application.created_at is not None:
        variables["applicationDate"] = application.created_at.strftime(APPLICATION_DATE_FORMAT)

    return variables


def build_interview_variables(
    interview: Interview,
    event: EmailEvent,
    frontend_url: str,
    default_location: str = DEFAULT_LOCATION_INFO,
) -> Dict[str, Any]:
    """Build template variables for an interview event.

    Schedule details are included when present; each event then adds its own
    keys (interviewer details and portal links).

    Raises:
        InvalidContextError: If the application has no candidate or job
    """
    application = interview.application
    schedule = interview.schedule
    variables = _base_variables(application)
    frontend_url = frontend_url.rstrip("/")
    interviewer_portal = f"{frontend_url}/interviewer/dashboard"
    candidate_portal = f"{frontend_url}/candidate/dashboard"

    if schedule.scheduled_at is not None:
        variables["scheduledDate"] = schedule.scheduled_at.strftime(SCHEDULED_DATE_FORMAT)
    if schedule.duration_minutes is not None:
        variables["durationMinutes"] = schedule.duration_minutes
    if schedule.location_type is not None:
        variables["locationType"] = LOCATION_TYPE_DISPLAY[schedule.location_type]
        if schedule.location_type == LocationType.OFFICE and schedule.location_address:
            variables["locationAddress"] = schedule.location_address
    variables["locationInfo"] = location_info(interview, default_location)

    if event == EmailEvent.INTERVIEW_ASSIGNED_TO_INTERVIEWER:
        variables["interviewerName"] = interview.interviewer.full_name
        variables["candidateEmail"] = application.candidate.email or ""
        variables["interviewTemplate"] = interview.skeleton.name
        variables["interviewerPortalLink"] = interviewer_portal
    elif event == EmailEvent.INTERVIEW_ASSIGNED_TO_CANDIDATE:
        variables["candidatePortalLink"] = candidate_portal
    elif event == EmailEvent.INTERVIEW_CANCELLED_TO_CANDIDATE:
        variables["interviewTemplate"] = interview.skeleton.name
        variables["candidatePortalLink"] = candidate_portal
        if schedule.scheduled_at is not None:
            variables["scheduledAt"] = schedule.scheduled_at.strftime(SCHEDULED_DATE_FORMAT)
    elif event == EmailEvent.INTERVIEW_CANCELLED_TO_INTERVIEWER:
        variables["interviewerName"] = interview.interviewer.full_name
        variables["interviewTemplate"] = interview.skeleton.name
        variables["interviewerPortalLink"] = interviewer_portal
        if schedule.scheduled_at is not None:
            variables["scheduledAt"] = schedule.scheduled_at.strftime(SCHEDULED_DATE_FORMAT)

    return variables


def location_info(interview: Interview, default_location: str = DEFAULT_LOCATION_INFO) -> str:
    """Human-readable location line for interview emails."""
    schedule = interview.schedule
    if schedule.location_type == LocationType.OFFICE and schedule.location_address:
        return schedule.location_address
    if schedule.location_type == LocationType.ONLINE:
        return ONLINE_LOCATION_INFO
    return default_location


def personalization_values(application: Application) -> Dict[str, str]:
    """Values for the campaign personalization tokens. Missing values become ''."""
    candidate: Optional[User] = application.candidate
    job = application.job
    return {
        "candidateName": candidate.full_name if candidate else "",
        "firstName": (candidate.first_name or "") if candidate else "",
        "lastName": (candidate.last_name or "") if candidate else "",
        "jobTitle": job.title if job else "",
        "jobDepartment": (job.department or "") if job else "",
        "applicationStatus": application.status.value if application.status else "",
    }


def personalize_content(content: Optional[str], application: Application) -> Optional[str]:
    """Substitute ``{{token}}`` placeholders in campaign content for one recipient.

    Only the literal tokens in PERSONALIZATION_TOKENS are replaced; anything
    else is left untouched.
    """
    if content is None:
        return None

    values = personalization_values(application)
    for token in PERSONALIZATION_TOKENS:
        content = content.replace("{{" + token + "}}", values[token])
    return content


def _base_variables(application: Application) -> Dict[str, Any]:
    if application.candidate is None:
        raise InvalidContextError(f"Application {application.id} has no candidate")
    if application.job is None:
        raise InvalidContextError(f"Application {application.id} has no job")
    return {
        "candidateName": application.candidate.full_name,
        "jobTitle": application.job.title,
        "applicationId": str(application.id),
    }


def offer_paragraphs(content: str) -> List[Markup]:
    """Lay out plain-text offer content as HTML-safe paragraphs.

    Blank lines separate paragraphs, single line breaks become ``<br>`` and
    ``**text**`` becomes bold. All other markup in the content is escaped.
    """
    paragraphs = []
    for block in content.replace("\r\n", "\n").split("\n\n"):
        block = block.strip()
        if not block:
            continue
        html = BOLD_MARKUP.sub(r"<strong>\1</strong>", str(escape(block)))
        paragraphs.append(Markup(html.replace("\n", "<br>\n")))
    return paragraphs
