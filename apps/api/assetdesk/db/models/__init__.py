"""SQLAlchemy ORM models."""

from assetdesk.db.models.assets import Asset, Company
from assetdesk.db.models.attestation import (
    AttestationAssetReview,
    AttestationCampaign,
    AttestationNewAsset,
    AttestationPendingInvite,
    AttestationRecord,
)
from assetdesk.db.models.audit import AuditLog
from assetdesk.db.models.auth import User

__all__ = [
    "Asset",
    "AttestationAssetReview",
    "AttestationCampaign",
    "AttestationNewAsset",
    "AttestationPendingInvite",
    "AttestationRecord",
    "AuditLog",
    "Company",
    "User",
]
