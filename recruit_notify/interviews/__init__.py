"""Interview lifecycle: assignment, start, submission and cancellation."""

from .exceptions import (
    DuplicateAssignmentError,
    InterviewAccessError,
    InterviewError,
    InvalidAssignmentError,
    InvalidStateError,
)
from .lifecycle import InterviewLifecycle

__all__ = [
    "InterviewLifecycle",
    "InterviewError",
    "DuplicateAssignmentError",
    "InvalidStateError",
    "InvalidAssignmentError",
    "InterviewAccessError",
]
