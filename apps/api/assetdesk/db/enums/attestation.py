"""Attestation campaign enums."""

from enum import Enum


class CampaignStatus(str, Enum):
    """
    Status of an attestation campaign.

    draft -> active -> completed, and active -> cancelled.
    """

    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CampaignTargetType(str, Enum):
    """Who a campaign is addressed to."""

    ALL = "all"
    SELECTED = "selected"
    COMPANIES = "companies"


class RecordStatus(str, Enum):
    """Status of a single user's attestation within a campaign."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# Records that still expect action from the employee
OPEN_RECORD_STATUSES = (RecordStatus.PENDING.value, RecordStatus.IN_PROGRESS.value)
