"""Interview lifecycle state machine.

States: ASSIGNED -> IN_PROGRESS -> COMPLETED. Cancellation deletes the interview
and is allowed from ASSIGNED or IN_PROGRESS only.

Each mutation is committed in its own session before any notification is sent.
Notifications are best-effort: every send is attempted independently and a
failure is logged, never raised, so the business operation keeps its result.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from recruit_notify.config.models import CalendarConfig
from recruit_notify.domain.models import (
    Interview,
    InterviewResponse,
    InterviewSchedule,
    InterviewStatus,
    LocationType,
    NotificationRecord,
    Role,
)
from recruit_notify.logging import get_logger
from recruit_notify.logging.context import log_context
from recruit_notify.notifications.calendar import (
    CALENDAR_FILENAME,
    CALENDAR_TEMPLATE,
    CalendarInviteGenerator,
    build_invite_messages,
)
from recruit_notify.notifications.events import EmailEvent
from recruit_notify.notifications.models import (
    CALENDAR_MEDIA_TYPE,
    FailurePolicy,
    NotificationError,
)
from recruit_notify.notifications.service import NotificationService
from recruit_notify.persistence.database import SessionScope, get_session
from recruit_notify.persistence.exceptions import (
    DataIntegrityError,
    PersistenceError,
    RecordNotFoundError,
)
from recruit_notify.persistence.repositories import (
    ApplicationRepository,
    InterviewRepository,
    SkeletonRepository,
    UserRepository,
)
from recruit_notify.utils.timestamps import utc_now

from .exceptions import (
    DuplicateAssignmentError,
    InterviewAccessError,
    InvalidAssignmentError,
    InvalidStateError,
)

logger = get_logger(__name__, component="interview")


class InterviewLifecycle:
    """Drives interview transitions and the notifications they trigger.

    Send order on assignment: interviewer email, candidate email, then (if a
    time is scheduled) one calendar invite each to interviewer, candidate and
    assigning admin. On cancellation: interviewer email, then candidate email.
    """

    def __init__(
        self,
        notification_service: NotificationService,
        calendar_generator: Optional[CalendarInviteGenerator] = None,
        session_scope: SessionScope = get_session,
        calendar_config: Optional[CalendarConfig] = None,
        clock: Callable[[], datetime] = utc_now,
        logger_instance: Optional[logging.Logger] = None,
    ):
        self.notifications = notification_service
        self.calendar_config = calendar_config or CalendarConfig()
        self.calendar_generator = calendar_generator or CalendarInviteGenerator(self.calendar_config)
        self.session_scope = session_scope
        self.clock = clock
        self.logger = logger_instance or logger

    def get(self, interview_id: int) -> Optional[Interview]:
        with self.session_scope() as session:
            return InterviewRepository(session).get_by_id(interview_id)

    def assign(
        self,
        application_id: int,
        interviewer_id: int,
        skeleton_id: int,
        admin_id: int,
        schedule: Optional[InterviewSchedule] = None,
    ) -> Interview:
        """Assign an interviewer to a shortlisted application.

        Raises:
            RecordNotFoundError: If the application, interviewer, skeleton or admin doesn't exist
            InvalidAssignmentError: If the application isn't shortlisted, the user isn't an
                interviewer, or an OFFICE interview has no address
            DuplicateAssignmentError: If the same assignment already exists
        """
        schedule = schedule or InterviewSchedule()

        with self.session_scope() as session:
            application = ApplicationRepository(session).get_by_id(application_id)
            if application is None:
                raise RecordNotFoundError(f"Application {application_id} not found")
            if not application.is_shortlisted:
                raise InvalidAssignmentError(
                    f"Application {application_id} must be shortlisted before assigning an interview"
                )

            users = UserRepository(session)
            interviewer = users.get_by_id(interviewer_id)
            if interviewer is None:
                raise RecordNotFoundError(f"Interviewer {interviewer_id} not found")
            if not interviewer.has_role(Role.INTERVIEWER):
                raise InvalidAssignmentError(f"User {interviewer_id} does not have the INTERVIEWER role")

            skeleton = SkeletonRepository(session).get_by_id(skeleton_id)
            if skeleton is None:
                raise RecordNotFoundError(f"Interview skeleton {skeleton_id} not found")

            admin = users.get_by_id(admin_id)
            if admin is None:
                raise RecordNotFoundError(f"Admin {admin_id} not found")

            interviews = InterviewRepository(session)
            if interviews.find_by_assignment(application_id, interviewer_id, skeleton_id):
                raise DuplicateAssignmentError(
                    f"Interview already assigned for application {application_id}, "
                    f"interviewer {interviewer_id} and skeleton {skeleton_id}"
                )

            if schedule.location_type == LocationType.OFFICE and not schedule.location_address:
                raise InvalidAssignmentError("Office interviews require a location address")

            try:
                interview = interviews.add(
                    Interview(
                        application=application,
                        interviewer=interviewer,
                        skeleton=skeleton,
                        assigned_by=admin,
                        status=InterviewStatus.ASSIGNED,
                        schedule=schedule,
                        responses=[
                            InterviewResponse(focus_area_title=area.title, feedback="", rating=0)
                            for area in skeleton.focus_areas
                        ],
                    )
                )
            except DataIntegrityError as e:
                raise DuplicateAssignmentError(
                    f"Interview already assigned for application {application_id}, "
                    f"interviewer {interviewer_id} and skeleton {skeleton_id}"
                ) from e

        with log_context(interview_id=interview.id):
            self.logger.info(
                f"Interview {interview.id} assigned to {interviewer.full_name}",
                extra={
                    "event": "interview.assigned",
                    "application_id": application_id,
                    "interviewer_id": interviewer_id,
                    "scheduled": schedule.scheduled_at is not None,
                },
            )
            self._notify(interview, EmailEvent.INTERVIEW_ASSIGNED_TO_INTERVIEWER)
            self._notify(interview, EmailEvent.INTERVIEW_ASSIGNED_TO_CANDIDATE)
            if interview.schedule.scheduled_at is not None:
                self.send_calendar_invites(interview)

        return interview

    def start(self, interview_id: int, interviewer_id: int) -> Interview:
        """Move an ASSIGNED interview to IN_PROGRESS.

        Raises:
            RecordNotFoundError: If the interview doesn't exist
            InterviewAccessError: If the caller isn't the assigned interviewer
            InvalidStateError: If the interview isn't ASSIGNED
        """
        with self.session_scope() as session:
            repo = InterviewRepository(session)
            interview = self._load_owned(repo, interview_id, interviewer_id)
            if interview.status != InterviewStatus.ASSIGNED:
                raise InvalidStateError(
                    f"Interview {interview_id} cannot be started from status {interview.status.value}"
                )
            interview = repo.save(interview.model_copy(update={"status": InterviewStatus.IN_PROGRESS}))

        self.logger.info(
            f"Interview {interview_id} started",
            extra={"event": "interview.started", "interview_id": interview_id},
        )
        return interview

    def submit(
        self,
        interview_id: int,
        responses: Sequence[InterviewResponse],
        interviewer_id: int,
    ) -> Interview:
        """Record feedback and complete an IN_PROGRESS interview.

        Raises:
            RecordNotFoundError: If the interview doesn't exist
            InterviewAccessError: If the caller isn't the assigned interviewer
            InvalidStateError: If the interview isn't IN_PROGRESS
        """
        with self.session_scope() as session:
            repo = InterviewRepository(session)
            interview = self._load_owned(repo, interview_id, interviewer_id)
            if interview.status != InterviewStatus.IN_PROGRESS:
                raise InvalidStateError(
                    f"Interview {interview_id} cannot be submitted from status {interview.status.value}"
                )
            interview = repo.save(
                interview.model_copy(
                    update={
                        "responses": list(responses),
                        "status": InterviewStatus.COMPLETED,
                        "completed_at": self.clock(),
                    }
                )
            )

        self.logger.info(
            f"Interview {interview_id} completed with {len(interview.responses)} responses",
            extra={"event": "interview.completed", "interview_id": interview_id},
        )
        return interview

    def cancel(self, interview_id: int, admin_id: int) -> Interview:
        """Cancel an interview by deleting it, then notify interviewer and candidate.

        The deletion is committed before any notification is attempted.

        Returns:
            Snapshot of the interview as it was before deletion

        Raises:
            RecordNotFoundError: If the admin or interview doesn't exist
            InvalidStateError: If the interview is COMPLETED
        """
        with self.session_scope() as session:
            if UserRepository(session).get_by_id(admin_id) is None:
                raise RecordNotFoundError(f"Admin {admin_id} not found")

            repo = InterviewRepository(session)
            interview = repo.get_by_id(interview_id)
            if interview is None:
                raise RecordNotFoundError(f"Interview {interview_id} not found")
            if interview.status == InterviewStatus.COMPLETED:
                raise InvalidStateError(f"Completed interview {interview_id} cannot be cancelled")

            repo.delete(interview_id)

        with log_context(interview_id=interview_id):
            self.logger.info(
                f"Interview {interview_id} cancelled",
                extra={"event": "interview.cancelled", "admin_id": admin_id},
            )
            self._notify(interview, EmailEvent.INTERVIEW_CANCELLED_TO_INTERVIEWER)
            self._notify(interview, EmailEvent.INTERVIEW_CANCELLED_TO_CANDIDATE)

        return interview

    def send_calendar_invites(self, interview: Interview) -> List[NotificationRecord]:
        """Generate the invite once and send it to interviewer, candidate and admin.

        Each send is independent; recipients without an address are skipped.
        """
        try:
            content = self.calendar_generator.generate(interview).encode("utf-8")
            messages = build_invite_messages(interview, self.calendar_config)
        except NotificationError as e:
            self.logger.warning(
                f"Calendar invite for interview {interview.id} not generated: {e}",
                extra={"event": "interview.calendar.skipped"},
            )
            return []

        records = []
        for message in messages:
            if not (message.address and message.address.strip()):
                self.logger.warning(
                    f"Skipping calendar invite for user {message.related_user_id}: no email address",
                    extra={"event": "interview.calendar.skipped"},
                )
                continue
            try:
                records.append(
                    self.notifications.send_with_attachment(
                        message.address,
                        message.subject,
                        message.body,
                        content,
                        CALENDAR_FILENAME,
                        media_type=CALENDAR_MEDIA_TYPE,
                        is_html=False,
                        related_user_id=message.related_user_id,
                        policy=FailurePolicy.SUPPRESS,
                        template_name=CALENDAR_TEMPLATE,
                    )
                )
            except (NotificationError, PersistenceError) as e:
                self.logger.warning(
                    f"Calendar invite to {message.address} failed: {e}",
                    extra={"event": "interview.calendar.failure"},
                )
        return records

    def _notify(self, interview: Interview, event: EmailEvent) -> Optional[NotificationRecord]:
        try:
            return self.notifications.send_interview_email(
                interview, event, policy=FailurePolicy.SUPPRESS
            )
        except (NotificationError, PersistenceError) as e:
            self.logger.warning(
                f"{event.name} notification for interview {interview.id} failed: {e}",
                extra={
                    "event": "interview.notification.failure",
                    "email_event": event.value,
                    "error_type": type(e).__name__,
                },
            )
            return None

    def _load_owned(self, repo: InterviewRepository, interview_id: int, interviewer_id: int) -> Interview:
        interview = repo.get_by_id(interview_id)
        if interview is None:
            raise RecordNotFoundError(f"Interview {interview_id} not found")
        if interview.interviewer.id != interviewer_id:
            raise InterviewAccessError(
                f"Interview {interview_id} is not assigned to interviewer {interviewer_id}"
            )
        return interview
