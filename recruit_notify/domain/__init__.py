"""Domain models for the recruiting notification engine."""

from .models import (
    DEFAULT_INTERVIEW_DURATION_MINUTES,
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

__all__ = [
    "DEFAULT_INTERVIEW_DURATION_MINUTES",
    "Application",
    "ApplicationStatus",
    "FocusArea",
    "Interview",
    "InterviewResponse",
    "InterviewSchedule",
    "InterviewSkeleton",
    "InterviewStatus",
    "Job",
    "LocationType",
    "NotificationRecord",
    "NotificationStatus",
    "Role",
    "User",
]
