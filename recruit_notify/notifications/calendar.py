"""iCalendar (RFC 5545) invites for scheduled interviews.

The generator emits one VEVENT inside a VCALENDAR with METHOD:PUBLISH. Times are
floating (no zone, no trailing Z) so calendar clients show the interview at the
wall-clock time it was scheduled for. Lines end with CRLF and are folded at 75
octets; text values are escaped per RFC 5545 section 3.3.11.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from recruit_notify.config.models import CalendarConfig
from recruit_notify.domain.models import Interview, LocationType, User

from .models import InvalidContextError
from .payloads import SCHEDULED_DATE_FORMAT

CRLF = "\r\n"
MAX_LINE_OCTETS = 75
ICS_DATETIME_FORMAT = "%Y%m%dT%H%M%S"

CALENDAR_TEMPLATE = "calendar-invite"
CALENDAR_FILENAME = "interview.ics"
ADMIN_COPY_SUFFIX = " (Admin Copy)"
ADMIN_COPY_NOTE = "\n\nThis is a copy for your records as the interview coordinator."

_PARTICIPANT_PARAMS = "ROLE=REQ-PARTICIPANT;PARTSTAT=NEEDS-ACTION;RSVP=TRUE"


def escape_text(value: Optional[str]) -> str:
    """Escape a TEXT property value.

    Backslash, semicolon and comma get a backslash; CR, LF and CRLF become a
    literal ``\\n``.
    """
    if value is None:
        return ""
    escaped = value.replace("\\", "\\\\").replace(";", "\\;").replace(",", "\\,")
    escaped = escaped.replace("\r\n", "\n").replace("\r", "\n")
    return escaped.replace("\n", "\\n")


def quote_param(value: str) -> str:
    """Format a parameter value, quoting it when it contains ``:``, ``;`` or ``,``."""
    value = value.replace('"', "'").replace("\r", " ").replace("\n", " ")
    if any(char in value for char in ":;,"):
        return f'"{value}"'
    return value


def fold_line(line: str) -> str:
    """Fold a content line so no physical line exceeds 75 octets.

    The first physical line holds up to 75 octets; each continuation line is a
    single space followed by up to 74 octets. UTF-8 sequences are never split.
    Physical lines are joined with CRLF; no trailing CRLF is added.
    """
    if len(line.encode("utf-8")) <= MAX_LINE_OCTETS:
        return line

    lines = []
    current = ""
    current_octets = 0
    limit = MAX_LINE_OCTETS
    for char in line:
        char_octets = len(char.encode("utf-8"))
        if current_octets + char_octets > limit:
            lines.append(current)
            current = ""
            current_octets = 0
            limit = MAX_LINE_OCTETS - 1
        current += char
        current_octets += char_octets
    lines.append(current)

    return (CRLF + " ").join(lines)


def format_ics_datetime(value: datetime) -> str:
    """Floating DATE-TIME: ``yyyyMMddTHHmmss`` with no zone suffix."""
    return value.strftime(ICS_DATETIME_FORMAT)


class CalendarInviteGenerator:
    """Builds the ICS payload attached to interview invitations."""

    def __init__(
        self,
        config: Optional[CalendarConfig] = None,
        clock: Callable[[], datetime] = datetime.now,
        uid_factory: Callable[[], object] = uuid.uuid4,
    ):
        """Initialize generator.

        Args:
            config: Calendar settings (PRODID, UID domain, location texts)
            clock: Source of the local "now" used for DTSTAMP/CREATED/LAST-MODIFIED
            uid_factory: Source of the random part of each UID
        """
        self.config = config or CalendarConfig()
        self.clock = clock
        self.uid_factory = uid_factory

    def generate(self, interview: Interview) -> str:
        """Generate the calendar for one interview.

        Every call produces a new UID, so each send is an independent calendar
        object rather than an update of an earlier one.

        Raises:
            InvalidContextError: If the interview has no schedule time, candidate or job
        """
        start = interview.schedule.scheduled_at
        if start is None:
            raise InvalidContextError(f"Interview {interview.id} has no scheduled time")
        candidate = _require_candidate(interview)
        job_title = _require_job_title(interview)

        timestamp = format_ics_datetime(self.clock())
        admin = interview.assigned_by
        interviewer = interview.interviewer

        lines = [
            "BEGIN:VCALENDAR",
            "VERSION:2.0",
            f"PRODID:{self.config.product_id}",
            "CALSCALE:GREGORIAN",
            "METHOD:PUBLISH",
            "BEGIN:VEVENT",
            f"UID:interview-{interview.id}-{self.uid_factory()}@{self.config.org_domain}",
            f"DTSTAMP:{timestamp}",
            f"DTSTART:{format_ics_datetime(start)}",
            f"DTEND:{format_ics_datetime(interview.ends_at)}",
            "SUMMARY:"
            + escape_text(
                f"Interview: {candidate.full_name} - {job_title} ({interview.skeleton.name})"
            ),
            "DESCRIPTION:" + escape_text(self.describe(interview)),
            "LOCATION:" + escape_text(self.location(interview)),
            f"ORGANIZER;CN={quote_param(admin.full_name)}:MAILTO:{admin.email or ''}",
            _attendee(interviewer),
            _attendee(candidate),
            "STATUS:CONFIRMED",
            "TRANSP:OPAQUE",
            "PRIORITY:5",
            "SEQUENCE:0",
            "CLASS:PUBLIC",
            f"CREATED:{timestamp}",
            f"LAST-MODIFIED:{timestamp}",
            "END:VEVENT",
            "END:VCALENDAR",
        ]
        return CRLF.join(fold_line(line) for line in lines) + CRLF

    def describe(self, interview: Interview) -> str:
        """Unescaped DESCRIPTION text."""
        candidate = _require_candidate(interview)
        parts = [
            "Interview Details:\n\n",
            f"Candidate: {candidate.full_name}\n",
            f"Position: {_require_job_title(interview)}\n",
            f"Interview Type: {interview.skeleton.name}\n",
            f"Interviewer: {interview.interviewer.full_name}\n",
            f"Assigned by: {interview.assigned_by.full_name}\n\n",
        ]
        if interview.schedule.notes:
            parts.append(f"Notes: {interview.schedule.notes}\n\n")
        if interview.schedule.location_type == LocationType.ONLINE and self.config.meeting_link_placeholder:
            parts.append(f"\nMeeting Link: {self.config.meeting_link_placeholder}\n")
            parts.append("(Actual meeting link will be provided before the interview)")
        return "".join(parts)

    def location(self, interview: Interview) -> str:
        """Unescaped LOCATION text."""
        schedule = interview.schedule
        if schedule.location_type == LocationType.OFFICE and schedule.location_address:
            return schedule.location_address
        if schedule.location_type == LocationType.ONLINE:
            return self.config.online_location
        return self.config.default_location


@dataclass(frozen=True)
class InviteMessage:
    """One calendar invite email: who gets it and what it says."""

    address: Optional[str]
    related_user_id: Optional[int]
    subject: str
    body: str


def build_invite_subject(interview: Interview) -> str:
    candidate = _require_candidate(interview)
    return f"Interview Scheduled: {candidate.full_name} - {_require_job_title(interview)}"


def build_invite_email_body(interview: Interview, config: Optional[CalendarConfig] = None) -> str:
    """Plain-text body accompanying the calendar attachment."""
    config = config or CalendarConfig()
    candidate = _require_candidate(interview)
    interviewer = interview.interviewer
    admin = interview.assigned_by
    schedule = interview.schedule

    lines = [
        "Dear Team,",
        "",
        "An interview has been scheduled with the following details:",
        "",
        "Interview Details:",
        f"- Candidate: {candidate.full_name}",
        f"- Position: {_require_job_title(interview)}",
        f"- Interview Type: {interview.skeleton.name}",
    ]
    if schedule.scheduled_at is not None:
        lines.append(f"- Date & Time: {schedule.scheduled_at.strftime(SCHEDULED_DATE_FORMAT)}")
    if schedule.duration_minutes is not None:
        lines.append(f"- Duration: {schedule.duration_minutes} minutes")
    else:
        lines.append("- Duration: 1 hour")

    if schedule.location_type == LocationType.OFFICE and schedule.location_address:
        lines.append(f"- Location: {schedule.location_address}")
    elif schedule.location_type == LocationType.ONLINE:
        lines.append("- Location: Online Interview")
        if config.meeting_link_placeholder:
            lines.append(f"- Meeting Link: {config.meeting_link_placeholder} (Link will be provided)")
    else:
        lines.append(f"- Location: {config.default_location}")

    lines += [
        "",
        "Participants:",
        f"- Interviewer: {_with_email(interviewer)}",
        f"- Candidate: {_with_email(candidate)}",
        f"- Coordinator: {_with_email(admin)}",
        "",
    ]
    if schedule.notes:
        lines += ["Additional Notes:", schedule.notes, ""]

    lines += [
        "A calendar invite (.ics file) is attached to this email. Please add it to your calendar.",
        "",
        f"For any questions or rescheduling requests, please contact {admin.full_name} "
        f"at {admin.email or 'the recruiting team'}.",
        "",
        "Best regards,",
        "The Recruiting Team",
    ]
    return "\n".join(lines)


def build_invite_messages(
    interview: Interview, config: Optional[CalendarConfig] = None
) -> List[InviteMessage]:
    """Invite emails in send order: interviewer, candidate, then the admin copy."""
    subject = build_invite_subject(interview)
    body = build_invite_email_body(interview, config)
    candidate = _require_candidate(interview)
    admin = interview.assigned_by
    return [
        InviteMessage(interview.interviewer.email, interview.interviewer.id, subject, body),
        InviteMessage(candidate.email, candidate.id, subject, body),
        InviteMessage(admin.email, admin.id, subject + ADMIN_COPY_SUFFIX, body + ADMIN_COPY_NOTE),
    ]


def _attendee(user: User) -> str:
    return f"ATTENDEE;CN={quote_param(user.full_name)};{_PARTICIPANT_PARAMS}:MAILTO:{user.email or ''}"


def _with_email(user: User) -> str:
    if user.email:
        return f"{user.full_name} ({user.email})"
    return user.full_name


def _require_candidate(interview: Interview) -> User:
    candidate = interview.application.candidate
    if candidate is None:
        raise InvalidContextError(f"Interview {interview.id} has no candidate")
    return candidate


def _require_job_title(interview: Interview) -> str:
    job = interview.application.job
    if job is None:
        raise InvalidContextError(f"Interview {interview.id} has no job")
    return job.title
