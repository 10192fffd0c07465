"""Core domain models for the recruiting notification engine.

This module defines the data structures used throughout the application:
- User, Job, Application: business context consumed by the notification engine
- InterviewSkeleton, Interview: interview data driven by the lifecycle state machine
- NotificationRecord: the write-ahead delivery record (outbox row)
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from recruit_notify.utils.timestamps import ensure_utc

DEFAULT_INTERVIEW_DURATION_MINUTES = 60


class Role(str, Enum):
    """Capabilities a user can hold."""

    ADMIN = "ADMIN"
    CANDIDATE = "CANDIDATE"
    INTERVIEWER = "INTERVIEWER"


class ApplicationStatus(str, Enum):
    """Stages an application moves through."""

    APPLIED = "APPLIED"
    REVIEWED = "REVIEWED"
    SHORTLISTED = "SHORTLISTED"
    INTERVIEWING = "INTERVIEWING"
    OFFERED = "OFFERED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    WITHDRAWN = "WITHDRAWN"
    OFFER_ACCEPTED = "OFFER_ACCEPTED"


class InterviewStatus(str, Enum):
    """Interview states. Cancellation removes the interview instead of adding a state."""

    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class LocationType(str, Enum):
    """Where an interview takes place."""

    OFFICE = "OFFICE"
    ONLINE = "ONLINE"


class NotificationStatus(str, Enum):
    """Delivery state of a notification record."""

    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


class User(BaseModel):
    """A person known to the recruiting system (candidate, interviewer or admin)."""

    id: Optional[int] = Field(None, description="Database identifier")
    email: Optional[str] = Field(None, description="Email address, may be missing")
    first_name: str = Field("", description="Given name")
    last_name: str = Field("", description="Family name")
    roles: List[Role] = Field(default_factory=list, description="Granted capabilities")

    @property
    def full_name(self) -> str:
        """First and last name joined by a space."""
        return f"{self.first_name} {self.last_name}".strip()

    def has_role(self, role: Role) -> bool:
        return role in self.roles


class Job(BaseModel):
    """A job posting applications are made against."""

    id: Optional[int] = Field(None, description="Database identifier")
    title: str = Field(..., description="Job title")
    department: Optional[str] = Field(None, description="Owning department")

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        """Strip whitespace from the title."""
        if not v or not v.strip():
            raise ValueError("Job title cannot be empty or whitespace-only")
        return v.strip()


class Application(BaseModel):
    """A candidate's application to a job.

    Candidate and job are optional because legacy rows can reference records that
    no longer exist; bulk campaigns report such applications as failures.
    """

    id: Optional[int] = Field(None, description="Database identifier")
    candidate: Optional[User] = Field(None, description="Applying candidate")
    job: Optional[Job] = Field(None, description="Job applied for")
    status: ApplicationStatus = Field(ApplicationStatus.APPLIED, description="Current stage")
    is_shortlisted: bool = Field(False, description="Whether an admin shortlisted it")
    shortlisted_by: Optional[User] = Field(None, description="Admin who shortlisted it")
    created_at: Optional[datetime] = Field(None, description="When the application was made (UTC)")

    @field_validator("created_at")
    @classmethod
    def normalize_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Ensure datetime is timezone-aware and in UTC."""
        return ensure_utc(v)


class FocusArea(BaseModel):
    """A named evaluation dimension on an interview skeleton."""

    title: str = Field(..., description="Focus area title, e.g. 'System Design'")
    description: Optional[str] = Field(None, description="What the interviewer should assess")


class InterviewSkeleton(BaseModel):
    """A reusable interview template listing the focus areas to evaluate."""

    id: Optional[int] = Field(None, description="Database identifier")
    name: str = Field(..., description="Template name")
    focus_areas: List[FocusArea] = Field(default_factory=list)


class InterviewResponse(BaseModel):
    """Interviewer feedback for one focus area."""

    focus_area_title: str
    feedback: str = ""
    rating: int = Field(0, ge=0, le=100)


class InterviewSchedule(BaseModel):
    """When and where an interview happens.

    ``scheduled_at`` is a floating local time: it carries no timezone and is
    rendered into calendar invites exactly as given.
    """

    scheduled_at: Optional[datetime] = None
    duration_minutes: Optional[int] = Field(None, gt=0)
    location_type: Optional[LocationType] = None
    location_address: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("scheduled_at")
    @classmethod
    def make_floating(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Drop timezone info so the time stays floating."""
        if v is None:
            return None
        return v.replace(tzinfo=None, microsecond=0)

    @field_validator("location_address", "notes")
    @classmethod
    def strip_optional(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        stripped = v.strip()
        return stripped if stripped else None


class Interview(BaseModel):
    """An interview assigned to an interviewer for a shortlisted application."""

    id: Optional[int] = Field(None, description="Database identifier")
    application: Application
    interviewer: User
    skeleton: InterviewSkeleton
    assigned_by: User
    status: InterviewStatus = InterviewStatus.ASSIGNED
    schedule: InterviewSchedule = Field(default_factory=InterviewSchedule)
    responses: List[InterviewResponse] = Field(default_factory=list)
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("completed_at", "created_at", "updated_at")
    @classmethod
    def normalize_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Ensure datetime is timezone-aware and in UTC."""
        return ensure_utc(v)

    @property
    def effective_duration_minutes(self) -> int:
        """Scheduled duration, falling back to one hour."""
        return self.schedule.duration_minutes or DEFAULT_INTERVIEW_DURATION_MINUTES

    @property
    def ends_at(self) -> Optional[datetime]:
        if self.schedule.scheduled_at is None:
            return None
        return self.schedule.scheduled_at + timedelta(minutes=self.effective_duration_minutes)


class NotificationRecord(BaseModel):
    """One attempted (or retried) outbound message.

    The record is written in PENDING state before any transport call and then
    moved to SENT or FAILED. ``error_message`` is only set when FAILED.
    ``related_user_id`` is a weak reference used for audit and filtering.
    """

    id: Optional[int] = Field(None, description="Database identifier")
    recipient_address: str = Field(..., description="Destination email address")
    subject: str = Field("", description="Message subject")
    body: str = Field("", description="Fully rendered message body")
    template_name: str = Field(..., description="Template used to produce the body")
    status: NotificationStatus = NotificationStatus.PENDING
    error_message: Optional[str] = None
    retry_count: int = Field(0, ge=0)
    last_retry_at: Optional[datetime] = None
    related_user_id: Optional[int] = None
    campaign_id: Optional[str] = None
    is_html: bool = True
    attachment_name: Optional[str] = None
    attachment_media_type: Optional[str] = None
    attachment_content: Optional[bytes] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("recipient_address", "template_name")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Field cannot be empty or whitespace-only")
        return v.strip()

    @field_validator("last_retry_at", "created_at", "updated_at")
    @classmethod
    def normalize_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Ensure datetime is timezone-aware and in UTC."""
        return ensure_utc(v)

    @property
    def has_attachment(self) -> bool:
        return self.attachment_name is not None and self.attachment_content is not None
