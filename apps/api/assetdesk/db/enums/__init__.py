"""Enum definitions for application constants."""

from assetdesk.db.enums.assets import AssetStatus
from assetdesk.db.enums.attestation import (
    OPEN_RECORD_STATUSES,
    CampaignStatus,
    CampaignTargetType,
    RecordStatus,
)
from assetdesk.db.enums.audit import AuditAction, AuditEntity
from assetdesk.db.enums.auth import Role
from assetdesk.db.enums.permissions import (
    ROLES_CAN_MANAGE_ASSETS,
    ROLES_CAN_MANAGE_CAMPAIGNS,
    ROLES_CAN_MONITOR_CAMPAIGNS,
    ROLES_CAN_MANAGE_USERS,
    ROLES_EXEMPT_FROM_PROMOTION,
    ROLES_SEE_ALL_ASSETS,
)

__all__ = [
    "AssetStatus",
    "AuditAction",
    "AuditEntity",
    "CampaignStatus",
    "CampaignTargetType",
    "OPEN_RECORD_STATUSES",
    "RecordStatus",
    "Role",
    "ROLES_CAN_MANAGE_ASSETS",
    "ROLES_CAN_MANAGE_CAMPAIGNS",
    "ROLES_CAN_MONITOR_CAMPAIGNS",
    "ROLES_CAN_MANAGE_USERS",
    "ROLES_EXEMPT_FROM_PROMOTION",
    "ROLES_SEE_ALL_ASSETS",
]
