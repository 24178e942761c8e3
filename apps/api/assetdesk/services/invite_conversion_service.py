"""Pending-invite conversion.

When an invited asset owner registers, each of their open invites becomes a
real attestation record, but only while the invite's campaign is still
active. An invite is marked converted with a conditional UPDATE
(registered_at IS NULL), so two overlapping registrations cannot both
convert it.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from assetdesk.core.structured_logging import build_log_context
from assetdesk.db.enums import AuditAction, AuditEntity, CampaignStatus, RecordStatus
from assetdesk.db.models import AttestationPendingInvite, AttestationRecord, User
from assetdesk.services import audit_service, directory_service
from assetdesk.utils.datetime_utils import utc_now
from assetdesk.utils.normalization import normalize_email

logger = logging.getLogger(__name__)


@dataclass
class InviteConversionResult:
    converted_record_ids: list[int] = field(default_factory=list)
    skipped_invite_ids: list[int] = field(default_factory=list)

    @property
    def redirect_to_attestations(self) -> bool:
        """True when the new user has something to attest right away."""
        return bool(self.converted_record_ids)


@dataclass
class InviteValidation:
    valid: bool
    reason: str | None = None
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    campaign_name: str | None = None
    campaign_description: str | None = None
    asset_count: int = 0


def list_open_invites_for_email(db: Session, email: str) -> list[AttestationPendingInvite]:
    return (
        db.query(AttestationPendingInvite)
        .filter(
            func.lower(AttestationPendingInvite.employee_email) == normalize_email(email),
            AttestationPendingInvite.registered_at.is_(None),
        )
        .order_by(AttestationPendingInvite.id)
        .all()
    )


def _get_or_create_record(db: Session, campaign_id: int, user_id: int) -> AttestationRecord:
    record = (
        db.query(AttestationRecord)
        .filter(AttestationRecord.campaign_id == campaign_id, AttestationRecord.user_id == user_id)
        .first()
    )
    if record:
        return record
    record = AttestationRecord(
        campaign_id=campaign_id,
        user_id=user_id,
        status=RecordStatus.PENDING.value,
    )
    db.add(record)
    db.flush()
    return record


def convert_pending_invites(
    db: Session,
    user: User,
    now: datetime | None = None,
) -> InviteConversionResult:
    """
    Turn the user's open invites into attestation records.

    Invites whose campaign is no longer active stay unconverted. Does not
    commit; runs inside the registration transaction.
    """
    now = now or utc_now()
    result = InviteConversionResult()

    for invite in list_open_invites_for_email(db, user.email):
        campaign = invite.campaign
        if campaign is None or campaign.status != CampaignStatus.ACTIVE.value:
            result.skipped_invite_ids.append(invite.id)
            logger.info(
                "Invite %s not converted: campaign is %s",
                invite.id, campaign.status if campaign else "missing",
            )
            continue

        record = _get_or_create_record(db, campaign.id, user.id)
        marked = (
            db.query(AttestationPendingInvite)
            .filter(
                AttestationPendingInvite.id == invite.id,
                AttestationPendingInvite.registered_at.is_(None),
            )
            .update(
                {
                    AttestationPendingInvite.registered_at: now,
                    AttestationPendingInvite.converted_record_id: record.id,
                },
                synchronize_session="fetch",
            )
        )
        if not marked:
            result.skipped_invite_ids.append(invite.id)
            continue

        result.converted_record_ids.append(record.id)
        audit_service.log(
            db, AuditAction.INVITE_CONVERTED, AuditEntity.INVITE,
            entity_id=invite.id, entity_name=campaign.name,
            details={"record_id": record.id, "campaign_id": campaign.id},
            actor_email=user.email,
        )
        logger.info(
            "Converted invite %s into record %s", invite.id, record.id,
            extra=build_log_context(user_id=user.id, campaign_id=campaign.id),
        )

    return result


def get_invite_by_token(db: Session, token: str) -> AttestationPendingInvite | None:
    if not token:
        return None
    return (
        db.query(AttestationPendingInvite)
        .filter(AttestationPendingInvite.invite_token == token)
        .first()
    )


def validate_invite_token(db: Session, token: str) -> InviteValidation:
    """Public check used by the registration page before sign-up."""
    invite = get_invite_by_token(db, token)
    if not invite:
        return InviteValidation(valid=False, reason="Invalid invite token")
    if invite.registered_at is not None:
        return InviteValidation(valid=False, reason="Invite has already been used")

    campaign = invite.campaign
    if campaign is None or campaign.status != CampaignStatus.ACTIVE.value:
        return InviteValidation(valid=False, reason="Campaign is no longer active")

    return InviteValidation(
        valid=True,
        email=invite.employee_email,
        first_name=invite.employee_first_name,
        last_name=invite.employee_last_name,
        campaign_name=campaign.name,
        campaign_description=campaign.description,
        asset_count=directory_service.count_assets_by_employee_email(db, invite.employee_email),
    )
