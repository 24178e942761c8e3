"""Time-driven attestation passes: reminders, escalations, auto-close.

Invoked by the worker loop, the internal cron endpoint, or the CLI. Each
pass only looks at active campaigns and handles every record or invite
independently; one failure is logged and recorded in `errors` without
stopping the rest.

The *_sent_at markers are idempotency keys. An item is claimed by setting
its marker with a conditional UPDATE (marker IS NULL) before sending, and
only the run that wins the claim sends. A failed send clears the claim so
the next run retries. Overlapping runs therefore never double-send.
"""

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from assetdesk.core.structured_logging import build_log_context
from assetdesk.db.enums import OPEN_RECORD_STATUSES, AuditAction, AuditEntity, CampaignStatus
from assetdesk.db.models import AttestationCampaign, AttestationPendingInvite, AttestationRecord
from assetdesk.services import audit_service, directory_service, ownership_service
from assetdesk.services.notification_service import AttestationNotifier, NotificationResult
from assetdesk.utils.datetime_utils import elapsed_days, ensure_utc, utc_now

logger = logging.getLogger(__name__)


def _new_stats() -> dict:
    return {"sent": 0, "skipped": 0, "failed": 0, "errors": []}


def _active_campaigns(db: Session) -> list[AttestationCampaign]:
    return (
        db.query(AttestationCampaign)
        .filter(AttestationCampaign.status == CampaignStatus.ACTIVE.value)
        .order_by(AttestationCampaign.id)
        .all()
    )


def _threshold_reached(campaign: AttestationCampaign, days: int, now: datetime) -> bool:
    elapsed = elapsed_days(campaign.start_date, now)
    return elapsed is not None and elapsed >= days


def _claim(db: Session, model, item_id: int, marker, now: datetime) -> bool:
    """Set marker if still NULL. Returns True for the caller that set it."""
    claimed = (
        db.query(model)
        .filter(model.id == item_id, marker.is_(None))
        .update({marker: now}, synchronize_session="fetch")
    )
    db.commit()
    return bool(claimed)


def _release(db: Session, model, item_id: int, marker, claimed_at: datetime) -> None:
    """Undo our own claim so the item is retried next run."""
    db.query(model).filter(model.id == item_id, marker == claimed_at).update(
        {marker: None}, synchronize_session="fetch"
    )
    db.commit()


def _send(send, *args, **kwargs) -> NotificationResult:
    try:
        return send(*args, **kwargs)
    except Exception as e:
        logger.exception("Notifier raised during scheduled send")
        return NotificationResult(success=False, error=str(e))


def _deliver(
    db: Session,
    stats: dict,
    pass_name: str,
    model,
    item_id: int,
    marker,
    now: datetime,
    send,
    *args,
) -> None:
    """Claim, send, and release on failure."""
    if not _claim(db, model, item_id, marker, now):
        stats["skipped"] += 1
        return
    result = _send(send, *args)
    if result.success:
        stats["sent"] += 1
        return
    _release(db, model, item_id, marker, now)
    stats["failed"] += 1
    stats["errors"].append({"pass": pass_name, "item_id": item_id, "error": result.error})
    logger.warning(
        "%s send failed for item %s: %s", pass_name, item_id, result.error,
        extra=build_log_context(pass_name=pass_name),
    )


def _record_error(db: Session, stats: dict, pass_name: str, item_id: int, error: Exception) -> None:
    db.rollback()
    stats["errors"].append({"pass": pass_name, "item_id": item_id, "error": str(error)})
    logger.exception(
        "%s failed for item %s", pass_name, item_id,
        extra=build_log_context(pass_name=pass_name),
    )


# =============================================================================
# Registered users
# =============================================================================

def _open_records(db: Session, campaign_id: int, marker) -> list[AttestationRecord]:
    return (
        db.query(AttestationRecord)
        .filter(
            AttestationRecord.campaign_id == campaign_id,
            AttestationRecord.status.in_(OPEN_RECORD_STATUSES),
            marker.is_(None),
        )
        .order_by(AttestationRecord.id)
        .all()
    )


def process_reminders(db: Session, notifier: AttestationNotifier, now: datetime | None = None) -> dict:
    """Remind users whose record is still open reminder_days after start."""
    now = now or utc_now()
    stats = _new_stats()
    for campaign in _active_campaigns(db):
        if not _threshold_reached(campaign, campaign.reminder_days, now):
            continue
        for record in _open_records(db, campaign.id, AttestationRecord.reminder_sent_at):
            try:
                _deliver(
                    db, stats, "reminder", AttestationRecord, record.id,
                    AttestationRecord.reminder_sent_at, now,
                    notifier.send_reminder, record.user, campaign,
                )
            except Exception as e:
                _record_error(db, stats, "reminder", record.id, e)
    return stats


def process_escalations(db: Session, notifier: AttestationNotifier, now: datetime | None = None) -> dict:
    """
    Escalate open records to the user's manager escalation_days after start.

    Users with no resolvable manager email are skipped without a marker.
    """
    now = now or utc_now()
    stats = _new_stats()
    for campaign in _active_campaigns(db):
        if not _threshold_reached(campaign, campaign.escalation_days, now):
            continue
        for record in _open_records(db, campaign.id, AttestationRecord.escalation_sent_at):
            try:
                user = record.user
                manager_email = ownership_service.resolve_manager_email_for_user(db, user)
                if not manager_email:
                    stats["skipped"] += 1
                    continue
                _deliver(
                    db, stats, "escalation", AttestationRecord, record.id,
                    AttestationRecord.escalation_sent_at, now,
                    notifier.send_escalation, manager_email, user.full_name, user.email, campaign,
                )
            except Exception as e:
                _record_error(db, stats, "escalation", record.id, e)
    return stats


# =============================================================================
# Unregistered invitees
# =============================================================================

def _open_invites(db: Session, campaign_id: int, marker) -> list[AttestationPendingInvite]:
    return (
        db.query(AttestationPendingInvite)
        .filter(
            AttestationPendingInvite.campaign_id == campaign_id,
            AttestationPendingInvite.registered_at.is_(None),
            marker.is_(None),
        )
        .order_by(AttestationPendingInvite.id)
        .all()
    )


def process_unregistered_reminders(
    db: Session,
    notifier: AttestationNotifier,
    now: datetime | None = None,
) -> dict:
    """Remind invitees who have not registered unregistered_reminder_days after start."""
    now = now or utc_now()
    stats = _new_stats()
    for campaign in _active_campaigns(db):
        if not _threshold_reached(campaign, campaign.unregistered_reminder_days, now):
            continue
        for invite in _open_invites(db, campaign.id, AttestationPendingInvite.reminder_sent_at):
            try:
                asset_count = directory_service.count_assets_by_employee_email(
                    db, invite.employee_email
                )
                _deliver(
                    db, stats, "unregistered_reminder", AttestationPendingInvite, invite.id,
                    AttestationPendingInvite.reminder_sent_at, now,
                    notifier.send_unregistered_reminder, invite, campaign, asset_count,
                )
            except Exception as e:
                _record_error(db, stats, "unregistered_reminder", invite.id, e)
    return stats


def process_unregistered_escalations(
    db: Session,
    notifier: AttestationNotifier,
    now: datetime | None = None,
) -> dict:
    """
    Escalate unregistered invitees escalation_days after start.

    The manager is the first one found on the invitee's assets; invitees
    with no assets or no manager are skipped.
    """
    now = now or utc_now()
    stats = _new_stats()
    for campaign in _active_campaigns(db):
        if not _threshold_reached(campaign, campaign.escalation_days, now):
            continue
        for invite in _open_invites(db, campaign.id, AttestationPendingInvite.escalation_sent_at):
            try:
                assets = directory_service.get_assets_by_employee_email(db, invite.employee_email)
                manager = next(
                    (
                        m for m in (ownership_service.resolve_asset_manager(a) for a in assets)
                        if m.email
                    ),
                    None,
                )
                if manager is None:
                    stats["skipped"] += 1
                    continue
                _deliver(
                    db, stats, "unregistered_escalation", AttestationPendingInvite, invite.id,
                    AttestationPendingInvite.escalation_sent_at, now,
                    notifier.send_unregistered_escalation,
                    manager.email, manager.full_name, invite.employee_email,
                    invite.employee_name, campaign, len(assets),
                )
            except Exception as e:
                _record_error(db, stats, "unregistered_escalation", invite.id, e)
    return stats


# =============================================================================
# Auto-close
# =============================================================================

def auto_close_expired_campaigns(db: Session, now: datetime | None = None) -> dict:
    """
    active -> completed once end_date has passed.

    Campaigns without an end_date never close. Records are left untouched.
    """
    now = ensure_utc(now or utc_now())
    stats = {"closed": 0, "errors": []}
    candidates = (
        db.query(AttestationCampaign)
        .filter(
            AttestationCampaign.status == CampaignStatus.ACTIVE.value,
            AttestationCampaign.end_date.isnot(None),
        )
        .order_by(AttestationCampaign.id)
        .all()
    )
    for campaign in candidates:
        if ensure_utc(campaign.end_date) >= now:
            continue
        try:
            closed = (
                db.query(AttestationCampaign)
                .filter(
                    AttestationCampaign.id == campaign.id,
                    AttestationCampaign.status == CampaignStatus.ACTIVE.value,
                )
                .update(
                    {AttestationCampaign.status: CampaignStatus.COMPLETED.value},
                    synchronize_session="fetch",
                )
            )
            if not closed:
                continue
            audit_service.log(
                db, AuditAction.CAMPAIGN_AUTO_CLOSED, AuditEntity.CAMPAIGN,
                entity_id=campaign.id, entity_name=campaign.name,
                details={"end_date": ensure_utc(campaign.end_date).isoformat()},
                actor_email="system",
            )
            db.commit()
            stats["closed"] += 1
            logger.info("Auto-closed campaign %s", campaign.id)
        except Exception as e:
            _record_error(db, stats, "auto_close", campaign.id, e)
    return stats


# =============================================================================
# Entry point
# =============================================================================

def run_scheduled_tasks(
    db: Session,
    notifier: AttestationNotifier,
    now: datetime | None = None,
) -> dict:
    """Run every pass once. Returns a summary with per-pass errors merged."""
    now = now or utc_now()
    reminders = process_reminders(db, notifier, now)
    escalations = process_escalations(db, notifier, now)
    unregistered_reminders = process_unregistered_reminders(db, notifier, now)
    unregistered_escalations = process_unregistered_escalations(db, notifier, now)
    closed = auto_close_expired_campaigns(db, now)

    summary = {
        "reminders_sent": reminders["sent"],
        "escalations_sent": escalations["sent"],
        "unregistered_reminders_sent": unregistered_reminders["sent"],
        "unregistered_escalations_sent": unregistered_escalations["sent"],
        "campaigns_closed": closed["closed"],
        "errors": (
            reminders["errors"]
            + escalations["errors"]
            + unregistered_reminders["errors"]
            + unregistered_escalations["errors"]
            + closed["errors"]
        ),
    }
    logger.info(
        "Attestation scheduler run: %s reminder(s), %s escalation(s), "
        "%s unregistered reminder(s), %s unregistered escalation(s), %s closed, %s error(s)",
        summary["reminders_sent"], summary["escalations_sent"],
        summary["unregistered_reminders_sent"], summary["unregistered_escalations_sent"],
        summary["campaigns_closed"], len(summary["errors"]),
    )
    return summary
