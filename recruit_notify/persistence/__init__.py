"""Persistence layer for database operations using SQLAlchemy.

This module provides the public API for database operations including:
- Database initialization and connection management
- Repository classes for the notification outbox and business records
- Custom exceptions for error handling

Example usage:
    >>> from recruit_notify.persistence import init_database, get_session
    >>> from recruit_notify.persistence import NotificationRecordRepository
    >>> from recruit_notify.domain.models import NotificationStatus
    >>>
    >>> init_database("sqlite:///./data/recruit_notify.db")
    >>>
    >>> with get_session() as session:
    ...     repo = NotificationRecordRepository(session)
    ...     failed = repo.find_by_status(NotificationStatus.FAILED)
"""

# Database initialization and session management
from .database import SessionScope, close_database, get_engine, get_session, init_database

# Repository classes
from .repositories import (
    ApplicationRepository,
    InterviewRepository,
    JobRepository,
    NotificationRecordRepository,
    SkeletonRepository,
    UserRepository,
)

# Exceptions
from .exceptions import (
    DatabaseConnectionError,
    DataIntegrityError,
    PersistenceError,
    RecordNotFoundError,
)

__all__ = [
    # Database functions
    "init_database",
    "get_session",
    "close_database",
    "get_engine",
    "SessionScope",
    # Repositories
    "NotificationRecordRepository",
    "UserRepository",
    "JobRepository",
    "ApplicationRepository",
    "SkeletonRepository",
    "InterviewRepository",
    # Exceptions
    "PersistenceError",
    "DatabaseConnectionError",
    "RecordNotFoundError",
    "DataIntegrityError",
]
