"""Audit enums."""

from enum import Enum


class AuditAction(str, Enum):
    """Actions written to the audit log."""

    # Users
    REGISTER = "register"
    UPDATE_PROFILE = "update_profile"
    COMPLETE_PROFILE = "complete_profile"
    UPDATE_ROLE = "update_role"
    DELETE_USER = "delete_user"
    AUTO_ASSIGN_MANAGER_ROLE = "auto_assign_manager_role"
    SYNC_ASSETS = "sync_assets"

    # Assets and companies
    CREATE = "create"
    UPDATE = "update"
    STATUS_CHANGE = "status_change"
    DELETE = "delete"
    BULK_UPDATE_MANAGER = "bulk_update_manager"

    # Attestation
    CAMPAIGN_LAUNCHED = "campaign_launched"
    CAMPAIGN_CANCELLED = "campaign_cancelled"
    CAMPAIGN_AUTO_CLOSED = "campaign_auto_closed"
    ASSET_ATTESTED = "asset_attested"
    NEW_ASSET_ADDED = "new_asset_added"
    ATTESTATION_COMPLETED = "attestation_completed"
    INVITE_CONVERTED = "invite_converted"
    REMINDER_SENT = "reminder_sent"
    ESCALATION_SENT = "escalation_sent"
    INVITES_RESENT = "invites_resent"


class AuditEntity(str, Enum):
    """Entity types written to the audit log."""

    USER = "user"
    ASSET = "asset"
    COMPANY = "company"
    CAMPAIGN = "attestation_campaign"
    RECORD = "attestation_record"
    INVITE = "attestation_invite"
