"""Business events and their recipient/subject mapping.

Each EmailEvent maps to exactly one recipient type and one subject format with a
single ``{job_title}`` slot. The mapping is built once at import time and checked
to cover every event, so an unmapped event fails on import rather than at send time.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional

from recruit_notify.domain.models import Application, Interview, User

from .models import InvalidContextError, UnsupportedEventError


class EmailEvent(str, Enum):
    """Business triggers. Each value is the name of the template rendered for it."""

    APPLICATION_RECEIVED = "application-received"
    APPLICATION_REVIEWED = "application-reviewed"
    APPLICATION_SHORTLISTED = "application-shortlisted"
    INTERVIEW_ASSIGNED_TO_INTERVIEWER = "interview-assigned-interviewer"
    INTERVIEW_ASSIGNED_TO_CANDIDATE = "interview-assigned-candidate"
    INTERVIEW_CANCELLED_TO_CANDIDATE = "interview-cancelled-candidate"
    INTERVIEW_CANCELLED_TO_INTERVIEWER = "interview-cancelled-interviewer"
    JOB_OFFER = "job-offer"

    @property
    def template_name(self) -> str:
        return self.value


class RecipientType(str, Enum):
    """Who receives the message for an event."""

    CANDIDATE = "CANDIDATE"
    INTERVIEWER = "INTERVIEWER"
    ADMIN = "ADMIN"


@dataclass(frozen=True)
class EventConfig:
    """Recipient type and subject format for one event."""

    recipient_type: RecipientType
    subject_format: str

    def subject_for(self, job_title: str) -> str:
        return self.subject_format.format(job_title=job_title)


@dataclass(frozen=True)
class ResolvedRecipient:
    """Literal address for a send plus the user it relates to (weak reference)."""

    address: str
    related_user_id: Optional[int]


EVENT_CONFIG: Mapping[EmailEvent, EventConfig] = MappingProxyType(
    {
        EmailEvent.APPLICATION_RECEIVED: EventConfig(
            RecipientType.CANDIDATE, "Application Received - {job_title}"
        ),
        EmailEvent.APPLICATION_REVIEWED: EventConfig(
            RecipientType.CANDIDATE, "Application Status Update - {job_title}"
        ),
        EmailEvent.APPLICATION_SHORTLISTED: EventConfig(
            RecipientType.CANDIDATE, "Congratulations! You've Been Shortlisted - {job_title}"
        ),
        EmailEvent.INTERVIEW_ASSIGNED_TO_INTERVIEWER: EventConfig(
            RecipientType.INTERVIEWER, "New Interview Assignment - {job_title}"
        ),
        EmailEvent.INTERVIEW_ASSIGNED_TO_CANDIDATE: EventConfig(
            RecipientType.CANDIDATE, "Interview Scheduled - {job_title}"
        ),
        EmailEvent.INTERVIEW_CANCELLED_TO_CANDIDATE: EventConfig(
            RecipientType.CANDIDATE, "Interview Cancelled - {job_title}"
        ),
        EmailEvent.INTERVIEW_CANCELLED_TO_INTERVIEWER: EventConfig(
            RecipientType.INTERVIEWER, "Interview Assignment Cancelled - {job_title}"
        ),
        EmailEvent.JOB_OFFER: EventConfig(RecipientType.CANDIDATE, "Job Offer - {job_title}"),
    }
)

_unmapped = [event.name for event in EmailEvent if event not in EVENT_CONFIG]
if _unmapped:
    raise UnsupportedEventError(f"Email events without configuration: {', '.join(_unmapped)}")


def resolve(event: EmailEvent) -> EventConfig:
    """Look up the recipient type and subject format for an event.

    Raises:
        UnsupportedEventError: If the event has no configured mapping
    """
    try:
        return EVENT_CONFIG[event]
    except (KeyError, TypeError) as e:
        raise UnsupportedEventError(f"Unsupported email event: {event!r}") from e


def resolve_recipient(
    event: EmailEvent,
    application: Application,
    interview: Optional[Interview] = None,
) -> ResolvedRecipient:
    """Determine the literal recipient address for an event in its business context.

    Raises:
        UnsupportedEventError: If the event has no configured mapping
        InvalidContextError: If the context lacks the person or address the event needs
    """
    recipient_type = resolve(event).recipient_type

    if recipient_type == RecipientType.CANDIDATE:
        return _user_recipient(application.candidate, "candidate", application)

    if recipient_type == RecipientType.INTERVIEWER:
        if interview is None:
            raise InvalidContextError(
                f"Event {event.name} is interviewer-scoped and requires an interview"
            )
        return _user_recipient(interview.interviewer, "interviewer", application)

    return admin_recipient(application)


def admin_recipient(application: Application) -> ResolvedRecipient:
    """Address an ADMIN-scoped message for an application.

    Uses the admin who shortlisted the application. Without one, the message goes
    to the candidate's address instead.
    """
    if application.shortlisted_by is not None and application.shortlisted_by.email:
        return _user_recipient(application.shortlisted_by, "admin", application)
    return _user_recipient(application.candidate, "candidate", application)


def _user_recipient(user: Optional[User], role: str, application: Application) -> ResolvedRecipient:
    if user is None:
        raise InvalidContextError(f"Application {application.id} has no {role}")
    if not user.email or not user.email.strip():
        raise InvalidContextError(f"The {role} of application {application.id} has no email address")
    return ResolvedRecipient(address=user.email.strip(), related_user_id=user.id)
