"""Bulk email campaigns to applicants."""

from .models import (
    BulkCampaignResult,
    CampaignFailure,
    CampaignPreview,
    CampaignRecipient,
    CampaignStatus,
    RecipientSelector,
)
from .runner import (
    BULK_EMAIL_TEMPLATE,
    BULK_EMAIL_TEST_TEMPLATE,
    BulkCampaignRunner,
    build_campaign_id,
)

__all__ = [
    "BulkCampaignRunner",
    "BulkCampaignResult",
    "CampaignFailure",
    "CampaignPreview",
    "CampaignRecipient",
    "CampaignStatus",
    "RecipientSelector",
    "BULK_EMAIL_TEMPLATE",
    "BULK_EMAIL_TEST_TEMPLATE",
    "build_campaign_id",
]
