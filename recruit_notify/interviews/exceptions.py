"""Interview lifecycle exceptions.

Business-rule violations raised by the lifecycle. They always propagate to the
caller and are never absorbed like notification failures are.
"""


class InterviewError(Exception):
    """Base exception for interview lifecycle errors."""

    pass


class DuplicateAssignmentError(InterviewError):
    """Raised when an interview already exists for the same application, interviewer and skeleton."""

    pass


class InvalidStateError(InterviewError):
    """Raised when a transition is attempted from the wrong state.

    Examples:
    - start on an interview that is not ASSIGNED
    - submit on an interview that is not IN_PROGRESS
    - cancel on a COMPLETED interview
    """

    pass


class InvalidAssignmentError(InterviewError):
    """Raised when assignment preconditions fail.

    Examples:
    - application not shortlisted
    - assignee lacks the INTERVIEWER role
    - OFFICE interview without an address
    """

    pass


class InterviewAccessError(InterviewError):
    """Raised when an interviewer acts on an interview assigned to someone else."""

    pass
