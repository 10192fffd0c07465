"""Database schema definition and ORM models.

This module defines SQLAlchemy ORM models for the database schema and provides
conversion methods between ORM models and domain models.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    ForeignKey,
    Index,
    Integer,
    LargeBinary,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, relationship

from recruit_notify.domain.models import (
    Application,
    ApplicationStatus,
    FocusArea,
    Interview,
    InterviewResponse,
    InterviewSchedule,
    InterviewSkeleton,
    InterviewStatus,
    Job,
    LocationType,
    NotificationRecord,
    NotificationStatus,
    Role,
    User,
)
from recruit_notify.utils.timestamps import ensure_utc, utc_now

logger = logging.getLogger(__name__)

# Create base class for ORM models
Base = declarative_base()

FLOATING_FORMAT = "%Y-%m-%dT%H:%M:%S"


class NotificationRecordModel(Base):
    """ORM model for the notification_records table (the outbox).

    One row per attempted send. Rows are written PENDING before transport and
    updated to SENT or FAILED afterwards.
    """

    __tablename__ = "notification_records"

    id = Column(Integer, primary_key=True, autoincrement=True)

    recipient_address = Column(String(320), nullable=False)
    subject = Column(Text, nullable=False, default="")
    body = Column(Text, nullable=False, default="")
    template_name = Column(String(100), nullable=False)
    is_html = Column(Boolean, nullable=False, default=True)

    # Delivery state
    status = Column(String(20), nullable=False)
    error_message = Column(Text, nullable=True)
    retry_count = Column(Integer, nullable=False, default=0)
    last_retry_at = Column(String(50), nullable=True)

    # Weak references, never foreign keys
    related_user_id = Column(Integer, nullable=True)
    campaign_id = Column(String(255), nullable=True)

    # Stored attachment so resends carry the same artifact
    attachment_name = Column(String(255), nullable=True)
    attachment_media_type = Column(String(100), nullable=True)
    attachment_content = Column(LargeBinary, nullable=True)

    # Timestamps (stored as ISO 8601 strings)
    created_at = Column(String(50), nullable=False)
    updated_at = Column(String(50), nullable=False)

    __table_args__ = (
        Index("idx_notification_records_status", "status"),
        Index("idx_notification_records_recipient", "recipient_address"),
        Index("idx_notification_records_campaign", "campaign_id"),
    )

    def to_domain(self) -> NotificationRecord:
        """Convert ORM model to domain model.

        Returns:
            NotificationRecord: Domain model instance
        """
        return NotificationRecord(
            id=self.id,
            recipient_address=self.recipient_address,
            subject=self.subject,
            body=self.body,
            template_name=self.template_name,
            status=NotificationStatus(self.status),
            error_message=self.error_message,
            retry_count=self.retry_count,
            last_retry_at=_parse_datetime(self.last_retry_at),
            related_user_id=self.related_user_id,
            campaign_id=self.campaign_id,
            is_html=self.is_html,
            attachment_name=self.attachment_name,
            attachment_media_type=self.attachment_media_type,
            attachment_content=self.attachment_content,
            created_at=_parse_datetime(self.created_at),
            updated_at=_parse_datetime(self.updated_at),
        )

    @classmethod
    def from_domain(cls, record: NotificationRecord) -> "NotificationRecordModel":
        """Create ORM model from domain model.

        Args:
            record: Domain model instance

        Returns:
            NotificationRecordModel: ORM model instance
        """
        return cls(
            id=record.id,
            recipient_address=record.recipient_address,
            subject=record.subject,
            body=record.body,
            template_name=record.template_name,
            is_html=record.is_html,
            status=record.status.value,
            error_message=record.error_message,
            retry_count=record.retry_count,
            last_retry_at=_format_datetime(record.last_retry_at),
            related_user_id=record.related_user_id,
            campaign_id=record.campaign_id,
            attachment_name=record.attachment_name,
            attachment_media_type=record.attachment_media_type,
            attachment_content=record.attachment_content,
            created_at=_format_datetime(record.created_at),
            updated_at=_format_datetime(record.updated_at),
        )


class UserModel(Base):
    """ORM model for users table."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(320), nullable=True)
    first_name = Column(String(255), nullable=False, default="")
    last_name = Column(String(255), nullable=False, default="")
    # Comma-separated role names
    roles = Column(String(255), nullable=False, default="")

    __table_args__ = (Index("idx_users_email", "email"),)

    def to_domain(self) -> User:
        return User(
            id=self.id,
            email=self.email,
            first_name=self.first_name,
            last_name=self.last_name,
            roles=[Role(name) for name in self.roles.split(",") if name],
        )

    @classmethod
    def from_domain(cls, user: User) -> "UserModel":
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            roles=",".join(role.value for role in user.roles),
        )


class JobModel(Base):
    """ORM model for jobs table."""

    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(Text, nullable=False)
    department = Column(String(255), nullable=True)

    def to_domain(self) -> Job:
        return Job(id=self.id, title=self.title, department=self.department)

    @classmethod
    def from_domain(cls, job: Job) -> "JobModel":
        return cls(id=job.id, title=job.title, department=job.department)


class ApplicationModel(Base):
    """ORM model for applications table.

    Candidate and job references are nullable; the notification engine treats
    missing associations as per-target failures rather than errors.
    """

    __tablename__ = "applications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    candidate_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=True)
    status = Column(String(30), nullable=False)
    is_shortlisted = Column(Boolean, nullable=False, default=False)
    shortlisted_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(String(50), nullable=False)

    candidate = relationship("UserModel", foreign_keys=[candidate_id])
    job = relationship("JobModel")
    shortlisted_by = relationship("UserModel", foreign_keys=[shortlisted_by_id])

    __table_args__ = (
        Index("idx_applications_job", "job_id"),
        Index("idx_applications_status", "status"),
    )

    def to_domain(self) -> Application:
        """Convert ORM model (with loaded associations) to domain model."""
        return Application(
            id=self.id,
            candidate=self.candidate.to_domain() if self.candidate else None,
            job=self.job.to_domain() if self.job else None,
            status=ApplicationStatus(self.status),
            is_shortlisted=self.is_shortlisted,
            shortlisted_by=self.shortlisted_by.to_domain() if self.shortlisted_by else None,
            created_at=_parse_datetime(self.created_at),
        )

    @classmethod
    def from_domain(cls, application: Application) -> "ApplicationModel":
        """Create ORM model from domain model, referencing associations by id."""
        return cls(
            id=application.id,
            candidate_id=application.candidate.id if application.candidate else None,
            job_id=application.job.id if application.job else None,
            status=application.status.value,
            is_shortlisted=application.is_shortlisted,
            shortlisted_by_id=(
                application.shortlisted_by.id if application.shortlisted_by else None
            ),
            created_at=_format_datetime(application.created_at or utc_now()),
        )


class InterviewSkeletonModel(Base):
    """ORM model for interview_skeletons table."""

    __tablename__ = "interview_skeletons"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    # List of {"title": ..., "description": ...}
    focus_areas = Column(JSON, nullable=False, default=list)

    def to_domain(self) -> InterviewSkeleton:
        return InterviewSkeleton(
            id=self.id,
            name=self.name,
            focus_areas=[FocusArea(**area) for area in (self.focus_areas or [])],
        )

    @classmethod
    def from_domain(cls, skeleton: InterviewSkeleton) -> "InterviewSkeletonModel":
        return cls(
            id=skeleton.id,
            name=skeleton.name,
            focus_areas=[area.model_dump() for area in skeleton.focus_areas],
        )


class InterviewModel(Base):
    """ORM model for interviews table.

    At most one interview exists per (application, interviewer, skeleton).
    Schedule times are stored as floating local times without a zone suffix.
    """

    __tablename__ = "interviews"

    id = Column(Integer, primary_key=True, autoincrement=True)
    application_id = Column(Integer, ForeignKey("applications.id"), nullable=False)
    interviewer_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    skeleton_id = Column(Integer, ForeignKey("interview_skeletons.id"), nullable=False)
    assigned_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    status = Column(String(20), nullable=False)

    # Schedule
    scheduled_at = Column(String(50), nullable=True)
    duration_minutes = Column(Integer, nullable=True)
    location_type = Column(String(20), nullable=True)
    location_address = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    # List of {"focus_area_title": ..., "feedback": ..., "rating": ...}
    responses = Column(JSON, nullable=False, default=list)

    # Timestamps (stored as ISO 8601 strings)
    completed_at = Column(String(50), nullable=True)
    created_at = Column(String(50), nullable=False)
    updated_at = Column(String(50), nullable=False)

    application = relationship("ApplicationModel")
    interviewer = relationship("UserModel", foreign_keys=[interviewer_id])
    skeleton = relationship("InterviewSkeletonModel")
    assigned_by = relationship("UserModel", foreign_keys=[assigned_by_id])

    __table_args__ = (
        UniqueConstraint(
            "application_id", "interviewer_id", "skeleton_id", name="uq_interviews_assignment"
        ),
        Index("idx_interviews_interviewer", "interviewer_id"),
    )

    def to_domain(self) -> Interview:
        """Convert ORM model (with loaded associations) to domain model."""
        return Interview(
            id=self.id,
            application=self.application.to_domain(),
            interviewer=self.interviewer.to_domain(),
            skeleton=self.skeleton.to_domain(),
            assigned_by=self.assigned_by.to_domain(),
            status=InterviewStatus(self.status),
            schedule=InterviewSchedule(
                scheduled_at=_parse_floating(self.scheduled_at),
                duration_minutes=self.duration_minutes,
                location_type=LocationType(self.location_type) if self.location_type else None,
                location_address=self.location_address,
                notes=self.notes,
            ),
            responses=[InterviewResponse(**item) for item in (self.responses or [])],
            completed_at=_parse_datetime(self.completed_at),
            created_at=_parse_datetime(self.created_at),
            updated_at=_parse_datetime(self.updated_at),
        )

    @classmethod
    def from_domain(cls, interview: Interview) -> "InterviewModel":
        """Create ORM model from domain model, referencing associations by id."""
        model = cls(
            id=interview.id,
            application_id=interview.application.id,
            interviewer_id=interview.interviewer.id,
            skeleton_id=interview.skeleton.id,
            assigned_by_id=interview.assigned_by.id,
        )
        model.apply(interview)
        return model

    def apply(self, interview: Interview) -> None:
        """Copy mutable interview state onto this row."""
        schedule = interview.schedule
        self.status = interview.status.value
        self.scheduled_at = _format_floating(schedule.scheduled_at)
        self.duration_minutes = schedule.duration_minutes
        self.location_type = schedule.location_type.value if schedule.location_type else None
        self.location_address = schedule.location_address
        self.notes = schedule.notes
        self.responses = [response.model_dump() for response in interview.responses]
        self.completed_at = _format_datetime(interview.completed_at)
        self.created_at = _format_datetime(interview.created_at)
        self.updated_at = _format_datetime(interview.updated_at)


def _format_datetime(dt: Optional[datetime]) -> Optional[str]:
    """Format datetime as ISO 8601 string for database storage.

    Args:
        dt: Datetime object (naive values are treated as UTC)

    Returns:
        ISO 8601 formatted string or None
    """
    if dt is None:
        return None

    # ISO 8601 with explicit Z suffix
    return ensure_utc(dt).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def _parse_datetime(dt_str: Optional[str]) -> Optional[datetime]:
    """Parse ISO 8601 string to datetime object.

    Args:
        dt_str: ISO 8601 formatted string

    Returns:
        Timezone-aware datetime in UTC or None
    """
    if dt_str is None or dt_str == "":
        return None

    # Handle formats: YYYY-MM-DDTHH:MM:SS.ffffffZ or YYYY-MM-DDTHH:MM:SSZ
    dt_str = dt_str.rstrip("Z")

    try:
        dt = datetime.strptime(dt_str, "%Y-%m-%dT%H:%M:%S.%f")
    except ValueError:
        dt = datetime.strptime(dt_str, "%Y-%m-%dT%H:%M:%S")

    return ensure_utc(dt)


def _format_floating(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    return dt.strftime(FLOATING_FORMAT)


def _parse_floating(dt_str: Optional[str]) -> Optional[datetime]:
    if not dt_str:
        return None
    return datetime.strptime(dt_str, FLOATING_FORMAT)


def create_schema(engine: Engine) -> None:
    """Create all tables and indexes if they don't exist (idempotent).

    Args:
        engine: SQLAlchemy engine instance
    """
    logger.info("Creating database schema if not exists")

    try:
        Base.metadata.create_all(engine, checkfirst=True)

        from sqlalchemy import inspect

        inspector = inspect(engine)
        tables = inspector.get_table_names()
        logger.info(f"Database schema ready. Tables: {', '.join(tables)}")

    except Exception as e:
        logger.error(f"Failed to create database schema: {e}", exc_info=True)
        raise
