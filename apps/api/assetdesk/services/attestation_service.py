"""Attestation campaign engine.

Campaign lifecycle (draft -> active -> completed, active -> cancelled),
per-user records, pending invites for unregistered owners, new-asset
staging and transfer, and manual reminders/escalations.

State transitions that can race (launch, record completion) are claimed
with a conditional UPDATE on the current status, so a second caller gets a
no-op result instead of duplicating work.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from assetdesk.core.security import generate_invite_token
from assetdesk.core.structured_logging import build_log_context
from assetdesk.db.enums import (
    OPEN_RECORD_STATUSES,
    AssetStatus,
    AuditAction,
    AuditEntity,
    CampaignStatus,
    CampaignTargetType,
    RecordStatus,
    Role,
)
from assetdesk.db.models import (
    Asset,
    AttestationAssetReview,
    AttestationCampaign,
    AttestationNewAsset,
    AttestationPendingInvite,
    AttestationRecord,
    Company,
    User,
)
from assetdesk.schemas.attestation import (
    CampaignCreate,
    CampaignStats,
    CampaignUpdate,
    DashboardRecord,
    NewAssetCreate,
)
from assetdesk.services import (
    asset_service,
    audit_service,
    company_service,
    directory_service,
    ownership_service,
)
from assetdesk.services.notification_service import AttestationNotifier, NotificationResult
from assetdesk.utils.datetime_utils import utc_now
from assetdesk.utils.normalization import normalize_email

logger = logging.getLogger(__name__)


@dataclass
class LaunchResult:
    launched: bool
    reason: str | None = None
    records_created: int = 0
    invites_created: int = 0
    notifications_failed: int = 0


@dataclass
class CompletionResult:
    completed: bool
    reason: str | None = None
    transferred_asset_ids: list[int] = field(default_factory=list)
    failed_new_asset_ids: list[int] = field(default_factory=list)


@dataclass
class NudgeResult:
    sent: int = 0
    skipped: int = 0
    failed: int = 0


def _safe_send(send, *args, log_context: dict | None = None, **kwargs) -> NotificationResult:
    """Call a notifier method; an unexpected exception becomes a failed result."""
    try:
        return send(*args, **kwargs)
    except Exception as e:
        logger.exception("Notification raised unexpectedly", extra=log_context or {})
        return NotificationResult(success=False, error=str(e))


# =============================================================================
# Campaign CRUD
# =============================================================================

def get_campaign(db: Session, campaign_id: int) -> AttestationCampaign | None:
    return db.query(AttestationCampaign).filter(AttestationCampaign.id == campaign_id).first()


def list_campaigns(db: Session) -> list[AttestationCampaign]:
    return (
        db.query(AttestationCampaign)
        .order_by(AttestationCampaign.created_at.desc(), AttestationCampaign.id.desc())
        .all()
    )


def pending_invite_counts(db: Session, campaign_ids: list[int]) -> dict[int, int]:
    """Unconverted invite counts per campaign."""
    if not campaign_ids:
        return {}
    rows = (
        db.query(AttestationPendingInvite.campaign_id, func.count(AttestationPendingInvite.id))
        .filter(
            AttestationPendingInvite.campaign_id.in_(campaign_ids),
            AttestationPendingInvite.registered_at.is_(None),
        )
        .group_by(AttestationPendingInvite.campaign_id)
        .all()
    )
    return {campaign_id: count for campaign_id, count in rows}


def _dedupe_ids(ids: list[int] | None) -> list[int] | None:
    if ids is None:
        return None
    return list(dict.fromkeys(ids))


def _normalize_scope_updates(campaign: AttestationCampaign, updates: dict) -> None:
    """Validate a draft's target scope edit; only the id list matching the type is kept."""
    if updates.get("target_type") is not None:
        updates["target_type"] = CampaignTargetType(updates["target_type"]).value
    target_type = updates.get("target_type") or campaign.target_type
    for ids_field in ("target_company_ids", "target_user_ids"):
        if ids_field in updates:
            updates[ids_field] = _dedupe_ids(updates[ids_field])

    if target_type == CampaignTargetType.COMPANIES.value:
        if not (updates.get("target_company_ids") or campaign.target_company_ids):
            raise ValueError("target_company_ids is required when target_type is 'companies'")
        if not updates.get("target_company_ids"):
            updates.pop("target_company_ids", None)
        updates["target_user_ids"] = None
    elif target_type == CampaignTargetType.SELECTED.value:
        if not (updates.get("target_user_ids") or campaign.target_user_ids):
            raise ValueError("target_user_ids is required when target_type is 'selected'")
        if not updates.get("target_user_ids"):
            updates.pop("target_user_ids", None)
        updates["target_company_ids"] = None
    else:
        updates["target_company_ids"] = None
        updates["target_user_ids"] = None


def create_campaign(
    db: Session,
    data: CampaignCreate,
    created_by: User | None = None,
) -> AttestationCampaign:
    """Create a draft campaign. Omitted thresholds fall back to configured defaults."""
    target_type = CampaignTargetType(data.target_type)
    campaign = AttestationCampaign(
        name=data.name,
        description=data.description,
        start_date=data.start_date,
        end_date=data.end_date,
        status=CampaignStatus.DRAFT.value,
        target_type=target_type.value,
        target_company_ids=(
            _dedupe_ids(data.target_company_ids)
            if target_type == CampaignTargetType.COMPANIES
            else None
        ),
        target_user_ids=(
            _dedupe_ids(data.target_user_ids)
            if target_type == CampaignTargetType.SELECTED
            else None
        ),
        created_by_id=created_by.id if created_by else None,
    )
    for threshold in ("reminder_days", "escalation_days", "unregistered_reminder_days"):
        value = getattr(data, threshold)
        if value is not None:
            setattr(campaign, threshold, value)

    db.add(campaign)
    db.flush()
    audit_service.log(
        db, AuditAction.CREATE, AuditEntity.CAMPAIGN,
        entity_id=campaign.id, entity_name=campaign.name,
        details={"target_type": campaign.target_type},
        actor_email=created_by.email if created_by else None,
    )
    db.commit()
    db.refresh(campaign)
    return campaign


def update_campaign(
    db: Session,
    campaign: AttestationCampaign,
    data: CampaignUpdate,
    actor_email: str | None = None,
) -> AttestationCampaign:
    """
    Edit a draft or active campaign.

    Target scope can only change while the campaign is a draft, since
    records and invites are created at launch.
    """
    status = CampaignStatus(campaign.status)
    if status not in (CampaignStatus.DRAFT, CampaignStatus.ACTIVE):
        raise ValueError(f"Cannot edit a {status.value} campaign")

    updates = data.model_dump(exclude_unset=True)
    if status != CampaignStatus.DRAFT and (
        updates.keys() & {"target_type", "target_company_ids", "target_user_ids"}
    ):
        raise ValueError("Target scope can only be changed before launch")

    if status == CampaignStatus.DRAFT:
        _normalize_scope_updates(campaign, updates)

    for field_name, value in updates.items():
        if value is None and field_name in (
            "name", "target_type", "reminder_days", "escalation_days", "unregistered_reminder_days"
        ):
            continue
        setattr(campaign, field_name, value)

    audit_service.log(
        db, AuditAction.UPDATE, AuditEntity.CAMPAIGN,
        entity_id=campaign.id, entity_name=campaign.name,
        details={"fields": sorted(updates)}, actor_email=actor_email,
    )
    db.commit()
    db.refresh(campaign)
    return campaign


def cancel_campaign(
    db: Session,
    campaign: AttestationCampaign,
    actor_email: str | None = None,
) -> AttestationCampaign:
    """active -> cancelled. Records are left as they are."""
    cancelled = (
        db.query(AttestationCampaign)
        .filter(
            AttestationCampaign.id == campaign.id,
            AttestationCampaign.status == CampaignStatus.ACTIVE.value,
        )
        .update({AttestationCampaign.status: CampaignStatus.CANCELLED.value},
                synchronize_session="fetch")
    )
    if not cancelled:
        raise ValueError(f"Only active campaigns can be cancelled (status: {campaign.status})")

    audit_service.log(
        db, AuditAction.CAMPAIGN_CANCELLED, AuditEntity.CAMPAIGN,
        entity_id=campaign.id, entity_name=campaign.name, actor_email=actor_email,
    )
    db.commit()
    db.refresh(campaign)
    return campaign


def delete_campaign(db: Session, campaign: AttestationCampaign, actor_email: str | None = None) -> None:
    """Delete a campaign with its records, invites and staging rows."""
    audit_service.log(
        db, AuditAction.DELETE, AuditEntity.CAMPAIGN,
        entity_id=campaign.id, entity_name=campaign.name,
        details={"status": campaign.status}, actor_email=actor_email,
    )
    db.delete(campaign)
    db.commit()


# =============================================================================
# Launch
# =============================================================================

def launch_campaign(
    db: Session,
    campaign: AttestationCampaign,
    notifier: AttestationNotifier,
    actor_email: str | None = None,
    now: datetime | None = None,
) -> LaunchResult:
    """
    Launch a draft campaign.

    Creates one pending record per in-scope registered user and one pending
    invite per in-scope unregistered asset owner, then marks the campaign
    active with start_date = now. Company-scoped campaigns only reach owners
    of assets in existing target companies; an owner with assets in several
    of them is counted once. Selected campaigns reach the listed active users
    and create no invites. Launch emails are best-effort.
    """
    now = now or utc_now()
    if campaign.status != CampaignStatus.DRAFT.value:
        return LaunchResult(
            launched=False,
            reason=f"Only draft campaigns can be launched (status: {campaign.status})",
        )

    company_ids: list[int] | None = None
    if campaign.target_type == CampaignTargetType.COMPANIES.value:
        company_ids = company_service.existing_company_ids(db, campaign.target_company_ids or [])
        if not company_ids:
            return LaunchResult(launched=False, reason="No valid target companies")
        users = directory_service.get_registered_owners_by_company_ids(db, company_ids)
        unregistered = directory_service.get_unregistered_owners(db, company_ids)
        if not users and not unregistered:
            return LaunchResult(launched=False, reason="No asset owners found in target companies")
    elif campaign.target_type == CampaignTargetType.SELECTED.value:
        # Selected campaigns address registered users only; no invites
        users = directory_service.get_active_users_by_ids(db, campaign.target_user_ids or [])
        unregistered = []
        if not users:
            return LaunchResult(launched=False, reason="No valid target users")
    else:
        users = [u for u in directory_service.list_users(db) if u.is_active]
        unregistered = directory_service.get_unregistered_owners(db)

    # Claim the draft -> active transition; a concurrent launch gets rowcount 0
    claimed = (
        db.query(AttestationCampaign)
        .filter(
            AttestationCampaign.id == campaign.id,
            AttestationCampaign.status == CampaignStatus.DRAFT.value,
        )
        .update(
            {
                AttestationCampaign.status: CampaignStatus.ACTIVE.value,
                AttestationCampaign.start_date: now,
            },
            synchronize_session="fetch",
        )
    )
    if not claimed:
        db.rollback()
        return LaunchResult(launched=False, reason="Campaign was launched concurrently")
    if company_ids is not None:
        campaign.target_company_ids = company_ids

    existing_user_ids = {
        row.user_id
        for row in db.query(AttestationRecord.user_id)
        .filter(AttestationRecord.campaign_id == campaign.id)
        .all()
    }
    new_records: list[tuple[AttestationRecord, User]] = []
    for user in users:
        if user.id in existing_user_ids:
            continue
        existing_user_ids.add(user.id)
        record = AttestationRecord(
            campaign_id=campaign.id,
            user_id=user.id,
            status=RecordStatus.PENDING.value,
        )
        db.add(record)
        new_records.append((record, user))

    existing_invite_emails = {
        normalize_email(row.employee_email)
        for row in db.query(AttestationPendingInvite.employee_email)
        .filter(AttestationPendingInvite.campaign_id == campaign.id)
        .all()
    }
    new_invites: list[tuple[AttestationPendingInvite, int]] = []
    for owner in unregistered:
        email = normalize_email(owner.email)
        if email in existing_invite_emails:
            continue
        existing_invite_emails.add(email)
        invite = AttestationPendingInvite(
            campaign_id=campaign.id,
            employee_email=email,
            employee_first_name=owner.first_name,
            employee_last_name=owner.last_name,
            invite_token=generate_invite_token(),
        )
        db.add(invite)
        new_invites.append((invite, owner.asset_count))

    db.flush()
    audit_service.log(
        db, AuditAction.CAMPAIGN_LAUNCHED, AuditEntity.CAMPAIGN,
        entity_id=campaign.id, entity_name=campaign.name,
        details={
            "records_created": len(new_records),
            "invites_created": len(new_invites),
            "target_type": campaign.target_type,
        },
        actor_email=actor_email,
    )
    db.commit()
    logger.info(
        "Launched campaign %s: %s record(s), %s invite(s)",
        campaign.id, len(new_records), len(new_invites),
    )

    failed = 0
    for record, user in new_records:
        result = _safe_send(
            notifier.send_launch_notice, user, campaign,
            log_context=build_log_context(campaign_id=campaign.id, user_id=user.id),
        )
        if not result.success:
            failed += 1
            logger.warning(
                "Launch notice failed for user %s: %s", user.id, result.error,
                extra=build_log_context(campaign_id=campaign.id, record_id=record.id),
            )
    for invite, asset_count in new_invites:
        result = _safe_send(
            notifier.send_registration_invite, invite, campaign, asset_count,
            log_context=build_log_context(campaign_id=campaign.id, invite_id=invite.id),
        )
        if result.success:
            invite.invite_sent_at = utc_now()
        else:
            failed += 1
            logger.warning("Registration invite %s failed: %s", invite.id, result.error)
    db.commit()

    return LaunchResult(
        launched=True,
        records_created=len(new_records),
        invites_created=len(new_invites),
        notifications_failed=failed,
    )


# =============================================================================
# Stats and dashboard
# =============================================================================

def get_campaign_stats(db: Session, campaign: AttestationCampaign) -> CampaignStats:
    counts = dict(
        db.query(AttestationRecord.status, func.count(AttestationRecord.id))
        .filter(AttestationRecord.campaign_id == campaign.id)
        .group_by(AttestationRecord.status)
        .all()
    )
    reminders = (
        db.query(func.count(AttestationRecord.id))
        .filter(
            AttestationRecord.campaign_id == campaign.id,
            AttestationRecord.reminder_sent_at.isnot(None),
        )
        .scalar()
        or 0
    )
    escalations = (
        db.query(func.count(AttestationRecord.id))
        .filter(
            AttestationRecord.campaign_id == campaign.id,
            AttestationRecord.escalation_sent_at.isnot(None),
        )
        .scalar()
        or 0
    )
    invites = db.query(AttestationPendingInvite).filter(
        AttestationPendingInvite.campaign_id == campaign.id
    )
    converted = invites.filter(AttestationPendingInvite.registered_at.isnot(None)).count()
    total_invites = invites.count()

    return CampaignStats(
        total=sum(counts.values()),
        pending=counts.get(RecordStatus.PENDING.value, 0),
        in_progress=counts.get(RecordStatus.IN_PROGRESS.value, 0),
        completed=counts.get(RecordStatus.COMPLETED.value, 0),
        reminders_sent=reminders,
        escalations_sent=escalations,
        pending_invites=total_invites - converted,
        converted_invites=converted,
    )


def get_campaign_dashboard(db: Session, campaign: AttestationCampaign) -> list[DashboardRecord]:
    """One row per record with the user's identity, manager and companies."""
    records = (
        db.query(AttestationRecord)
        .options(joinedload(AttestationRecord.user))
        .filter(AttestationRecord.campaign_id == campaign.id)
        .order_by(AttestationRecord.id)
        .all()
    )
    rows = []
    for record in records:
        user = record.user
        assets = directory_service.get_assets_for_owner(db, user)
        company_ids = sorted({a.company_id for a in assets})
        companies = [
            c.name for c in db.query(Company).filter(Company.id.in_(company_ids)).order_by(Company.name)
        ] if company_ids else []
        rows.append(
            DashboardRecord(
                record_id=record.id,
                user_id=user.id,
                user_email=user.email,
                user_name=user.full_name,
                user_role=user.role,
                manager_email=ownership_service.resolve_manager_email_for_user(db, user),
                status=record.status,
                started_at=record.started_at,
                completed_at=record.completed_at,
                reminder_sent_at=record.reminder_sent_at,
                escalation_sent_at=record.escalation_sent_at,
                companies=companies,
            )
        )
    return rows


def list_pending_invites(db: Session, campaign_id: int) -> list[AttestationPendingInvite]:
    return (
        db.query(AttestationPendingInvite)
        .filter(AttestationPendingInvite.campaign_id == campaign_id)
        .order_by(AttestationPendingInvite.id)
        .all()
    )


def get_pending_invite(db: Session, invite_id: int) -> AttestationPendingInvite | None:
    return db.query(AttestationPendingInvite).filter(AttestationPendingInvite.id == invite_id).first()


# =============================================================================
# Employee self-service
# =============================================================================

def get_record(db: Session, record_id: int) -> AttestationRecord | None:
    return db.query(AttestationRecord).filter(AttestationRecord.id == record_id).first()


def get_record_for_user(db: Session, campaign_id: int, user_id: int) -> AttestationRecord | None:
    return (
        db.query(AttestationRecord)
        .filter(AttestationRecord.campaign_id == campaign_id, AttestationRecord.user_id == user_id)
        .first()
    )


def list_my_attestations(db: Session, user: User) -> list[AttestationRecord]:
    """The user's records in active campaigns."""
    return (
        db.query(AttestationRecord)
        .join(AttestationCampaign, AttestationCampaign.id == AttestationRecord.campaign_id)
        .options(joinedload(AttestationRecord.campaign))
        .filter(
            AttestationRecord.user_id == user.id,
            AttestationCampaign.status == CampaignStatus.ACTIVE.value,
        )
        .order_by(AttestationRecord.id)
        .all()
    )


def get_record_assets(db: Session, record: AttestationRecord) -> list[Asset]:
    """Assets the record's user must review, limited to target companies when scoped."""
    campaign = record.campaign
    company_ids = None
    if campaign.target_type == CampaignTargetType.COMPANIES.value:
        company_ids = campaign.target_company_ids or []
        if not company_ids:
            return []
    return directory_service.get_assets_for_owner(db, record.user, company_ids=company_ids)


def _ensure_open(record: AttestationRecord) -> None:
    if record.status not in OPEN_RECORD_STATUSES:
        raise ValueError("Attestation is already completed")
    if record.campaign.status != CampaignStatus.ACTIVE.value:
        raise ValueError(f"Campaign is not active (status: {record.campaign.status})")


def _mark_started(record: AttestationRecord, now: datetime) -> None:
    """pending -> in_progress on first interaction."""
    if record.status == RecordStatus.PENDING.value:
        record.status = RecordStatus.IN_PROGRESS.value
        record.started_at = now


def attest_asset(
    db: Session,
    record: AttestationRecord,
    asset: Asset,
    attested_status: AssetStatus,
    notes: str | None = None,
    returned_date: date | None = None,
    actor_email: str | None = None,
    now: datetime | None = None,
) -> AttestationAssetReview:
    """
    Record the employee's review of one existing asset.

    A changed status is written through to the asset. 'returned' needs a
    returned_date.
    """
    _ensure_open(record)
    attested_status = AssetStatus(attested_status)
    if attested_status == AssetStatus.RETURNED and not returned_date:
        raise ValueError("returned_date is required when status is 'returned'")

    now = now or utc_now()
    review = AttestationAssetReview(
        attestation_record_id=record.id,
        asset_id=asset.id,
        attested_status=attested_status.value,
        previous_status=asset.status,
        notes=notes,
        attested_at=now,
    )
    db.add(review)
    _mark_started(record, now)

    if asset.status != attested_status.value:
        asset_service.update_status(
            db, asset, attested_status,
            returned_date=returned_date, actor_email=actor_email, commit=False,
        )

    db.flush()
    audit_service.log(
        db, AuditAction.ASSET_ATTESTED, AuditEntity.RECORD,
        entity_id=record.id, entity_name=asset.asset_tag,
        details={
            "asset_id": asset.id,
            "previous_status": review.previous_status,
            "attested_status": attested_status.value,
        },
        actor_email=actor_email,
    )
    db.commit()
    db.refresh(review)
    return review


def add_new_asset(
    db: Session,
    record: AttestationRecord,
    data: NewAssetCreate,
    actor_email: str | None = None,
    now: datetime | None = None,
) -> AttestationNewAsset:
    """
    Stage an asset the employee holds but which is missing from the store.

    Nothing is written to the assets table until the record completes.
    """
    _ensure_open(record)
    if not company_service.get_company(db, data.company_id):
        raise ValueError(f"Company {data.company_id} not found")

    user = record.user
    staged = AttestationNewAsset(
        attestation_record_id=record.id,
        asset_type=data.asset_type,
        make=data.make,
        model=data.model,
        serial_number=data.serial_number,
        asset_tag=data.asset_tag,
        company_id=data.company_id,
        issued_date=data.issued_date,
        notes=data.notes,
        employee_first_name=data.employee_first_name or user.first_name,
        employee_last_name=data.employee_last_name or user.last_name,
        employee_email=data.employee_email or user.email,
        manager_first_name=data.manager_first_name or user.manager_first_name,
        manager_last_name=data.manager_last_name or user.manager_last_name,
        manager_email=data.manager_email or user.manager_email,
    )
    db.add(staged)
    _mark_started(record, now or utc_now())
    db.flush()

    audit_service.log(
        db, AuditAction.NEW_ASSET_ADDED, AuditEntity.RECORD,
        entity_id=record.id, entity_name=staged.asset_tag,
        details={"new_asset_id": staged.id, "company_id": staged.company_id},
        actor_email=actor_email,
    )
    db.commit()
    db.refresh(staged)
    return staged


def _transfer_new_asset(db: Session, staged: AttestationNewAsset, user: User) -> Asset:
    """Create the store asset for a staging row; owner identity is the completing user."""
    manager_email = staged.manager_email or user.manager_email
    manager = directory_service.get_user_by_email(db, manager_email)
    asset = Asset(
        employee_first_name=user.first_name or "",
        employee_last_name=user.last_name or "",
        employee_email=user.email,
        owner_id=user.id,
        manager_first_name=staged.manager_first_name or user.manager_first_name,
        manager_last_name=staged.manager_last_name or user.manager_last_name,
        manager_email=manager_email,
        manager_id=manager.id if manager else None,
        company_id=staged.company_id,
        asset_type=staged.asset_type,
        make=staged.make,
        model=staged.model,
        serial_number=staged.serial_number,
        asset_tag=staged.asset_tag,
        status=AssetStatus.ACTIVE.value,
        issued_date=staged.issued_date,
        notes=staged.notes,
    )
    db.add(asset)
    db.flush()
    staged.transferred_asset_id = asset.id
    return asset


def complete_record(
    db: Session,
    record_id: int,
    notifier: AttestationNotifier | None = None,
    actor_email: str | None = None,
    now: datetime | None = None,
) -> CompletionResult:
    """
    Complete a record and transfer its staged new assets.

    The pending/in_progress -> completed transition is a conditional UPDATE,
    so a repeated or concurrent call is a no-op and never transfers twice.
    Staged rows that collide with an existing serial or tag are skipped and
    reported; they do not block completion.
    """
    now = now or utc_now()
    record = get_record(db, record_id)
    if record is None:
        return CompletionResult(completed=False, reason="Record not found")
    if record.campaign.status != CampaignStatus.ACTIVE.value:
        return CompletionResult(
            completed=False,
            reason=f"Campaign is not active (status: {record.campaign.status})",
        )

    claimed = (
        db.query(AttestationRecord)
        .filter(
            AttestationRecord.id == record_id,
            AttestationRecord.status.in_(OPEN_RECORD_STATUSES),
        )
        .update(
            {
                AttestationRecord.status: RecordStatus.COMPLETED.value,
                AttestationRecord.completed_at: now,
            },
            synchronize_session="fetch",
        )
    )
    if not claimed:
        return CompletionResult(completed=False, reason="Record is not pending or in progress")

    user = record.user
    campaign = record.campaign
    result = CompletionResult(completed=True)

    staged_rows = (
        db.query(AttestationNewAsset)
        .filter(
            AttestationNewAsset.attestation_record_id == record.id,
            AttestationNewAsset.transferred_asset_id.is_(None),
        )
        .order_by(AttestationNewAsset.id)
        .all()
    )
    for staged in staged_rows:
        conflict = asset_service.find_conflict(db, staged.serial_number, staged.asset_tag)
        if conflict:
            logger.warning(
                "Skipping transfer of new asset %s: %s", staged.id, conflict,
                extra=build_log_context(record_id=record.id),
            )
            result.failed_new_asset_ids.append(staged.id)
            continue
        asset = _transfer_new_asset(db, staged, user)
        result.transferred_asset_ids.append(asset.id)

    audit_service.log(
        db, AuditAction.ATTESTATION_COMPLETED, AuditEntity.RECORD,
        entity_id=record.id, entity_name=campaign.name,
        details={
            "transferred_asset_ids": result.transferred_asset_ids,
            "failed_new_asset_ids": result.failed_new_asset_ids,
        },
        actor_email=actor_email or user.email,
    )
    db.commit()

    if notifier is not None:
        for admin in directory_service.list_users_by_role(db, Role.ADMIN):
            sent = _safe_send(
                notifier.send_completion_notice, admin.email, user, campaign,
                log_context=build_log_context(record_id=record.id, user_id=admin.id),
            )
            if not sent.success:
                logger.warning("Completion notice to admin %s failed: %s", admin.id, sent.error)
    return result


# =============================================================================
# Manual reminders, escalations and invite resends
# =============================================================================

def send_manual_reminder(
    db: Session,
    record: AttestationRecord,
    notifier: AttestationNotifier,
    actor_email: str | None = None,
) -> NotificationResult:
    """Remind one user now. Sets reminder_sent_at on success."""
    if record.status not in OPEN_RECORD_STATUSES:
        raise ValueError("Attestation is already completed")

    result = _safe_send(
        notifier.send_reminder, record.user, record.campaign,
        log_context=build_log_context(record_id=record.id),
    )
    if result.success:
        record.reminder_sent_at = utc_now()
        audit_service.log(
            db, AuditAction.REMINDER_SENT, AuditEntity.RECORD,
            entity_id=record.id, entity_name=record.campaign.name,
            details={"manual": True}, actor_email=actor_email,
        )
        db.commit()
    return result


def send_bulk_reminders(
    db: Session,
    campaign: AttestationCampaign,
    notifier: AttestationNotifier,
    actor_email: str | None = None,
) -> NudgeResult:
    """Remind every user with an open record in the campaign."""
    if campaign.status != CampaignStatus.ACTIVE.value:
        raise ValueError(f"Campaign is not active (status: {campaign.status})")

    outcome = NudgeResult()
    records = (
        db.query(AttestationRecord)
        .filter(AttestationRecord.campaign_id == campaign.id)
        .order_by(AttestationRecord.id)
        .all()
    )
    for record in records:
        if record.status not in OPEN_RECORD_STATUSES:
            outcome.skipped += 1
            continue
        result = _safe_send(
            notifier.send_reminder, record.user, campaign,
            log_context=build_log_context(record_id=record.id),
        )
        if result.success:
            record.reminder_sent_at = utc_now()
            outcome.sent += 1
        else:
            outcome.failed += 1
            logger.warning("Bulk reminder for record %s failed: %s", record.id, result.error)

    audit_service.log(
        db, AuditAction.REMINDER_SENT, AuditEntity.CAMPAIGN,
        entity_id=campaign.id, entity_name=campaign.name,
        details={"manual": True, "sent": outcome.sent, "failed": outcome.failed},
        actor_email=actor_email,
    )
    db.commit()
    return outcome


def send_manual_escalation(
    db: Session,
    record: AttestationRecord,
    notifier: AttestationNotifier,
    message: str | None = None,
    actor_email: str | None = None,
) -> NotificationResult:
    """Escalate one open record to the user's manager now."""
    if record.status not in OPEN_RECORD_STATUSES:
        raise ValueError("Attestation is already completed")
    user = record.user
    manager_email = ownership_service.resolve_manager_email_for_user(db, user)
    if not manager_email:
        raise ValueError("No manager email on file for this user")

    result = _safe_send(
        notifier.send_escalation, manager_email, user.full_name, user.email, record.campaign,
        message=message,
        log_context=build_log_context(record_id=record.id),
    )
    if result.success:
        record.escalation_sent_at = utc_now()
        audit_service.log(
            db, AuditAction.ESCALATION_SENT, AuditEntity.RECORD,
            entity_id=record.id, entity_name=record.campaign.name,
            details={"manual": True}, actor_email=actor_email,
        )
        db.commit()
    return result


def resend_invite(
    db: Session,
    invite: AttestationPendingInvite,
    notifier: AttestationNotifier,
    actor_email: str | None = None,
) -> NotificationResult:
    """Resend one registration invite."""
    if invite.registered_at is not None:
        raise ValueError("Invite has already been used")
    campaign = invite.campaign
    if campaign.status != CampaignStatus.ACTIVE.value:
        raise ValueError(f"Campaign is not active (status: {campaign.status})")

    asset_count = directory_service.count_assets_by_employee_email(db, invite.employee_email)
    result = _safe_send(
        notifier.send_registration_invite, invite, campaign, asset_count,
        log_context=build_log_context(invite_id=invite.id),
    )
    if result.success:
        invite.invite_sent_at = utc_now()
        audit_service.log(
            db, AuditAction.INVITES_RESENT, AuditEntity.INVITE,
            entity_id=invite.id, entity_name=campaign.name, actor_email=actor_email,
        )
        db.commit()
    return result


def resend_invites(
    db: Session,
    campaign: AttestationCampaign,
    notifier: AttestationNotifier,
    actor_email: str | None = None,
) -> NudgeResult:
    """Resend every unconverted invite of an active campaign."""
    if campaign.status != CampaignStatus.ACTIVE.value:
        raise ValueError(f"Campaign is not active (status: {campaign.status})")

    outcome = NudgeResult()
    invites = (
        db.query(AttestationPendingInvite)
        .filter(
            AttestationPendingInvite.campaign_id == campaign.id,
            AttestationPendingInvite.registered_at.is_(None),
        )
        .order_by(AttestationPendingInvite.id)
        .all()
    )
    for invite in invites:
        asset_count = directory_service.count_assets_by_employee_email(db, invite.employee_email)
        result = _safe_send(
            notifier.send_registration_invite, invite, campaign, asset_count,
            log_context=build_log_context(invite_id=invite.id),
        )
        if result.success:
            invite.invite_sent_at = utc_now()
            outcome.sent += 1
        else:
            outcome.failed += 1
            logger.warning("Invite resend %s failed: %s", invite.id, result.error)

    audit_service.log(
        db, AuditAction.INVITES_RESENT, AuditEntity.CAMPAIGN,
        entity_id=campaign.id, entity_name=campaign.name,
        details={"sent": outcome.sent, "failed": outcome.failed},
        actor_email=actor_email,
    )
    db.commit()
    return outcome
