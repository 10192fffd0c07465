"""Data models for bulk campaign selection and reporting."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from recruit_notify.domain.models import ApplicationStatus


class CampaignStatus(str, Enum):
    """Aggregate outcome of a campaign run."""

    SUCCESS = "SUCCESS"
    PARTIAL_SUCCESS = "PARTIAL_SUCCESS"
    FAILED = "FAILED"


@dataclass
class RecipientSelector:
    """
    Which applications a campaign targets.

    A non-empty ``application_ids`` list takes precedence; otherwise the optional
    ``job_id`` and ``status`` filters apply, and with neither every application
    is selected.
    """

    application_ids: Optional[List[int]] = None
    job_id: Optional[int] = None
    status: Optional[ApplicationStatus] = None

    @property
    def uses_explicit_ids(self) -> bool:
        return bool(self.application_ids)


@dataclass
class CampaignFailure:
    """
    One recipient that did not receive the campaign.

    Attributes:
        recipient: Address the message was meant for, or a placeholder when unknown
        name: Recipient display name, or a placeholder when unknown
        application_id: Application the target came from (None for the test send)
        error_message: Why the target failed
    """

    recipient: str
    name: str
    application_id: Optional[int]
    error_message: str


@dataclass
class CampaignRecipient:
    """A resolved campaign recipient shown by the preview."""

    application_id: int
    name: str
    email: Optional[str]
    job_title: Optional[str]
    application_status: str


@dataclass
class CampaignPreview:
    """Read-only result of resolving a selector without sending."""

    total_recipients: int = 0
    recipients: List[CampaignRecipient] = field(default_factory=list)


@dataclass
class BulkCampaignResult:
    """
    Aggregate results from one campaign run. Computed per request, never stored.

    Attributes:
        campaign_id: Tag written on every notification record of the run
        started_at: UTC timestamp when the run began
        completed_at: UTC timestamp when the run finished
        total_attempted: Selected targets plus the test send, if any
        success_count: Messages that ended SENT
        failure_count: Targets that failed, including invalid ones
        notification_ids: Ids of the records created during the run
        failures: Per-target failure details
        status: SUCCESS, PARTIAL_SUCCESS or FAILED
    """

    campaign_id: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    total_attempted: int = 0
    success_count: int = 0
    failure_count: int = 0
    notification_ids: List[int] = field(default_factory=list)
    failures: List[CampaignFailure] = field(default_factory=list)
    status: CampaignStatus = CampaignStatus.FAILED

    def record_success(self, notification_id: int) -> None:
        self.success_count += 1
        self.notification_ids.append(notification_id)

    def record_failure(self, failure: CampaignFailure, notification_id: Optional[int] = None) -> None:
        self.failures.append(failure)
        self.failure_count = len(self.failures)
        if notification_id is not None:
            self.notification_ids.append(notification_id)

    def finalize(self, completed_at: datetime) -> "BulkCampaignResult":
        """Stamp the completion time and derive the aggregate status."""
        self.completed_at = completed_at
        if self.success_count == 0:
            self.status = CampaignStatus.FAILED
        elif self.failure_count == 0:
            self.status = CampaignStatus.SUCCESS
        else:
            self.status = CampaignStatus.PARTIAL_SUCCESS
        return self
