"""Data access layer (repositories) for persistence operations.

This module provides repository classes for the notification outbox and for the
business records the notification engine reads (users, jobs, applications,
interview skeletons and interviews). Repositories encapsulate database operations
and return domain models rather than ORM models.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from recruit_notify.domain.models import (
    Application,
    ApplicationStatus,
    Interview,
    InterviewSkeleton,
    Job,
    NotificationRecord,
    NotificationStatus,
    User,
)
from recruit_notify.utils.timestamps import utc_now

from .exceptions import DataIntegrityError, PersistenceError, RecordNotFoundError
from .schema import (
    ApplicationModel,
    InterviewModel,
    InterviewSkeletonModel,
    JobModel,
    NotificationRecordModel,
    UserModel,
    _format_datetime,
    _parse_datetime,
)

logger = logging.getLogger(__name__)


class NotificationRecordRepository:
    """Repository for the notification outbox.

    Recipient, subject and body are immutable once a record is created; only the
    delivery state (status, error message, retry bookkeeping) changes afterwards.
    """

    def __init__(self, session: Session):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy session for database operations
        """
        self.session = session

    def create(self, record: NotificationRecord) -> NotificationRecord:
        """Insert a new record in PENDING state.

        Any status or error message on the incoming record is ignored.

        Args:
            record: Record to persist (id is assigned by the database)

        Returns:
            Persisted NotificationRecord with its id

        Raises:
            DataIntegrityError: If a constraint is violated
            PersistenceError: If database error occurs
        """
        try:
            now = utc_now()
            pending = record.model_copy(
                update={
                    "id": None,
                    "status": NotificationStatus.PENDING,
                    "error_message": None,
                    "created_at": now,
                    "updated_at": now,
                }
            )
            model = NotificationRecordModel.from_domain(pending)
            self.session.add(model)
            self.session.flush()
            return model.to_domain()

        except IntegrityError as e:
            logger.error(
                f"Integrity error creating notification for {record.recipient_address}: {e}",
                exc_info=True,
            )
            raise DataIntegrityError(
                f"Failed to create notification record due to constraint violation: {e}"
            ) from e
        except SQLAlchemyError as e:
            logger.error(f"Error creating notification record: {e}", exc_info=True)
            raise PersistenceError(f"Failed to create notification record: {e}") from e

    def update_status(
        self,
        record_id: int,
        status: NotificationStatus,
        error_message: Optional[str] = None,
    ) -> NotificationRecord:
        """Set the delivery status of a record.

        ``error_message`` is stored only for FAILED and cleared otherwise.

        Raises:
            RecordNotFoundError: If the record doesn't exist
            PersistenceError: If database error occurs
        """
        try:
            model = self.session.get(NotificationRecordModel, record_id)
            if model is None:
                raise RecordNotFoundError(f"Notification record {record_id} not found")

            model.status = status.value
            model.error_message = (error_message or "") if status == NotificationStatus.FAILED else None
            model.updated_at = _format_datetime(utc_now())
            self.session.flush()
            return model.to_domain()

        except RecordNotFoundError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error updating notification record {record_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to update notification record: {e}") from e

    def mark_retry(self, record_id: int, retried_at: Optional[datetime] = None) -> NotificationRecord:
        """Prepare a record for a resend attempt.

        Locks the row, increments ``retry_count``, moves ``last_retry_at`` forward
        (never backwards) and resets the status to PENDING.

        Raises:
            RecordNotFoundError: If the record doesn't exist
            PersistenceError: If database error occurs
        """
        try:
            stmt = (
                select(NotificationRecordModel)
                .where(NotificationRecordModel.id == record_id)
                .with_for_update()
            )
            model = self.session.execute(stmt).scalar_one_or_none()
            if model is None:
                raise RecordNotFoundError(f"Notification record {record_id} not found")

            retried_at = retried_at or utc_now()
            previous = _parse_datetime(model.last_retry_at)
            if previous is not None and previous > retried_at:
                retried_at = previous

            model.retry_count = (model.retry_count or 0) + 1
            model.last_retry_at = _format_datetime(retried_at)
            model.status = NotificationStatus.PENDING.value
            model.error_message = None
            model.updated_at = _format_datetime(utc_now())
            self.session.flush()
            return model.to_domain()

        except RecordNotFoundError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error marking retry for record {record_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to mark notification retry: {e}") from e

    def get_by_id(self, record_id: int) -> Optional[NotificationRecord]:
        """Retrieve a record by id, or None if it doesn't exist."""
        try:
            model = self.session.get(NotificationRecordModel, record_id)
            return model.to_domain() if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving notification record {record_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve notification record: {e}") from e

    def find_by_status(self, status: NotificationStatus) -> List[NotificationRecord]:
        """Query records in a given status, oldest first."""
        return self._find(NotificationRecordModel.status == status.value)

    def find_by_recipient(self, recipient_address: str) -> List[NotificationRecord]:
        return self._find(NotificationRecordModel.recipient_address == recipient_address)

    def find_by_template(self, template_name: str) -> List[NotificationRecord]:
        return self._find(NotificationRecordModel.template_name == template_name)

    def find_by_campaign(self, campaign_id: str) -> List[NotificationRecord]:
        return self._find(NotificationRecordModel.campaign_id == campaign_id)

    def count_by_status(self, status: NotificationStatus) -> int:
        """Count records in a given status.

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            stmt = select(func.count(NotificationRecordModel.id)).where(
                NotificationRecordModel.status == status.value
            )
            return self.session.execute(stmt).scalar_one()
        except SQLAlchemyError as e:
            logger.error(f"Error counting notifications with status {status.value}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to count notification records: {e}") from e

    def counts_by_status(self) -> Dict[NotificationStatus, int]:
        """Count records for every status, including zero counts."""
        return {status: self.count_by_status(status) for status in NotificationStatus}

    def _find(self, condition) -> List[NotificationRecord]:
        try:
            stmt = (
                select(NotificationRecordModel)
                .where(condition)
                .order_by(NotificationRecordModel.created_at, NotificationRecordModel.id)
            )
            models = self.session.execute(stmt).scalars().all()
            return [model.to_domain() for model in models]
        except SQLAlchemyError as e:
            logger.error(f"Error querying notification records: {e}", exc_info=True)
            raise PersistenceError(f"Failed to query notification records: {e}") from e


class UserRepository:
    """Repository for users."""

    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, user_id: int) -> Optional[User]:
        try:
            model = self.session.get(UserModel, user_id)
            return model.to_domain() if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving user {user_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve user: {e}") from e

    def add(self, user: User) -> User:
        """Insert a user and return it with its assigned id."""
        try:
            model = UserModel.from_domain(user)
            self.session.add(model)
            self.session.flush()
            return model.to_domain()
        except IntegrityError as e:
            raise DataIntegrityError(f"Failed to add user due to constraint violation: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error adding user: {e}", exc_info=True)
            raise PersistenceError(f"Failed to add user: {e}") from e


class JobRepository:
    """Repository for jobs."""

    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, job_id: int) -> Optional[Job]:
        try:
            model = self.session.get(JobModel, job_id)
            return model.to_domain() if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving job {job_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve job: {e}") from e

    def add(self, job: Job) -> Job:
        try:
            model = JobModel.from_domain(job)
            self.session.add(model)
            self.session.flush()
            return model.to_domain()
        except SQLAlchemyError as e:
            logger.error(f"Error adding job: {e}", exc_info=True)
            raise PersistenceError(f"Failed to add job: {e}") from e


class ApplicationRepository:
    """Repository for applications, including campaign recipient selection."""

    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, application_id: int) -> Optional[Application]:
        try:
            model = self.session.get(ApplicationModel, application_id)
            return model.to_domain() if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving application {application_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve application: {e}") from e

    def get_by_ids(self, application_ids: Sequence[int]) -> List[Application]:
        """Retrieve applications by id, ordered by id. Unknown ids are skipped."""
        if not application_ids:
            return []
        return self._find(ApplicationModel.id.in_(list(application_ids)))

    def find_for_campaign(
        self,
        job_id: Optional[int] = None,
        status: Optional[ApplicationStatus] = None,
    ) -> List[Application]:
        """Select applications by optional job and status filters.

        With neither filter every application is returned.
        """
        conditions = []
        if job_id is not None:
            conditions.append(ApplicationModel.job_id == job_id)
        if status is not None:
            conditions.append(ApplicationModel.status == status.value)
        return self._find(*conditions)

    def add(self, application: Application) -> Application:
        try:
            model = ApplicationModel.from_domain(application)
            self.session.add(model)
            self.session.flush()
            self.session.refresh(model)
            return model.to_domain()
        except IntegrityError as e:
            raise DataIntegrityError(
                f"Failed to add application due to constraint violation: {e}"
            ) from e
        except SQLAlchemyError as e:
            logger.error(f"Error adding application: {e}", exc_info=True)
            raise PersistenceError(f"Failed to add application: {e}") from e

    def _find(self, *conditions) -> List[Application]:
        try:
            stmt = select(ApplicationModel).where(*conditions).order_by(ApplicationModel.id)
            models = self.session.execute(stmt).scalars().all()
            return [model.to_domain() for model in models]
        except SQLAlchemyError as e:
            logger.error(f"Error querying applications: {e}", exc_info=True)
            raise PersistenceError(f"Failed to query applications: {e}") from e


class SkeletonRepository:
    """Repository for interview skeletons."""

    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, skeleton_id: int) -> Optional[InterviewSkeleton]:
        try:
            model = self.session.get(InterviewSkeletonModel, skeleton_id)
            return model.to_domain() if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving skeleton {skeleton_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve interview skeleton: {e}") from e

    def add(self, skeleton: InterviewSkeleton) -> InterviewSkeleton:
        try:
            model = InterviewSkeletonModel.from_domain(skeleton)
            self.session.add(model)
            self.session.flush()
            return model.to_domain()
        except SQLAlchemyError as e:
            logger.error(f"Error adding skeleton: {e}", exc_info=True)
            raise PersistenceError(f"Failed to add interview skeleton: {e}") from e


class InterviewRepository:
    """Repository for interviews."""

    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, interview_id: int) -> Optional[Interview]:
        try:
            model = self.session.get(InterviewModel, interview_id)
            return model.to_domain() if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving interview {interview_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve interview: {e}") from e

    def find_by_assignment(
        self, application_id: int, interviewer_id: int, skeleton_id: int
    ) -> Optional[Interview]:
        """Find the interview for an exact (application, interviewer, skeleton) triple."""
        try:
            stmt = select(InterviewModel).where(
                InterviewModel.application_id == application_id,
                InterviewModel.interviewer_id == interviewer_id,
                InterviewModel.skeleton_id == skeleton_id,
            )
            model = self.session.execute(stmt).scalar_one_or_none()
            return model.to_domain() if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error checking interview assignment: {e}", exc_info=True)
            raise PersistenceError(f"Failed to query interviews: {e}") from e

    def add(self, interview: Interview) -> Interview:
        """Insert a new interview and return it with associations loaded.

        Raises:
            DataIntegrityError: If the assignment triple already exists
            PersistenceError: If database error occurs
        """
        try:
            now = utc_now()
            interview = interview.model_copy(
                update={"created_at": interview.created_at or now, "updated_at": now}
            )
            model = InterviewModel.from_domain(interview)
            self.session.add(model)
            self.session.flush()
            self.session.refresh(model)
            return model.to_domain()
        except IntegrityError as e:
            logger.error(f"Integrity error adding interview: {e}", exc_info=True)
            raise DataIntegrityError(
                f"Failed to add interview due to constraint violation: {e}"
            ) from e
        except SQLAlchemyError as e:
            logger.error(f"Error adding interview: {e}", exc_info=True)
            raise PersistenceError(f"Failed to add interview: {e}") from e

    def save(self, interview: Interview) -> Interview:
        """Persist the mutable state (status, schedule, responses) of an interview.

        Raises:
            RecordNotFoundError: If the interview doesn't exist
            PersistenceError: If database error occurs
        """
        try:
            model = self.session.get(InterviewModel, interview.id)
            if model is None:
                raise RecordNotFoundError(f"Interview {interview.id} not found")
            model.apply(interview.model_copy(update={"updated_at": utc_now()}))
            self.session.flush()
            return model.to_domain()
        except RecordNotFoundError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error saving interview {interview.id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to save interview: {e}") from e

    def delete(self, interview_id: int) -> None:
        """Delete an interview row.

        Raises:
            RecordNotFoundError: If the interview doesn't exist
            PersistenceError: If database error occurs
        """
        try:
            model = self.session.get(InterviewModel, interview_id)
            if model is None:
                raise RecordNotFoundError(f"Interview {interview_id} not found")
            self.session.delete(model)
            self.session.flush()
        except RecordNotFoundError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error deleting interview {interview_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to delete interview: {e}") from e
