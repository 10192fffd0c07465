"""Persistence layer exceptions.

All persistence exceptions inherit from PersistenceError so callers such as the
delivery engine can catch database failures with a single except clause.
"""


class PersistenceError(Exception):
    """Base exception for all persistence layer errors."""

    pass


class DatabaseConnectionError(PersistenceError):
    """Raised when database connection or initialization fails.

    Examples:
    - Invalid database URL
    - Database file not accessible
    - get_session() called before init_database()
    """

    pass


class RecordNotFoundError(PersistenceError):
    """Raised when a required record is not found.

    Used for operations that expect a record to exist (status updates, resends,
    interview saves and deletes). Optional lookups return None instead.
    """

    pass


class DataIntegrityError(PersistenceError):
    """Raised when a database constraint is violated.

    Examples:
    - Duplicate interview assignment for the same application, interviewer and skeleton
    - Foreign key referencing a missing user, job or application
    """

    pass
