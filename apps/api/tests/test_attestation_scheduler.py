"""Scheduled attestation passes: reminders, escalations, auto-close."""

from datetime import timedelta

from assetdesk.db.enums import CampaignStatus, RecordStatus


def _open_record(db, campaign, user, status=RecordStatus.PENDING):
    from assetdesk.db.models import AttestationRecord

    record = AttestationRecord(campaign_id=campaign.id, user_id=user.id, status=status.value)
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def _invite(db, campaign, email, token=None):
    from assetdesk.db.models import AttestationPendingInvite

    invite = AttestationPendingInvite(
        campaign_id=campaign.id,
        employee_email=email,
        employee_first_name="Gina",
        employee_last_name="Ghost",
        invite_token=token or f"tok-{email}",
    )
    db.add(invite)
    db.commit()
    db.refresh(invite)
    return invite


# =============================================================================
# Reminders
# =============================================================================

def test_reminder_sent_once_after_threshold(db, notifier, make_user, make_campaign):
    from assetdesk.services import attestation_scheduler

    user = make_user(email="slow@example.com")
    campaign = make_campaign(status=CampaignStatus.ACTIVE, started_days_ago=8, reminder_days=7)
    record = _open_record(db, campaign, user, RecordStatus.IN_PROGRESS)

    first = attestation_scheduler.process_reminders(db, notifier)
    second = attestation_scheduler.process_reminders(db, notifier)

    assert first["sent"] == 1
    assert second["sent"] == 0
    assert notifier.sent("send_reminder") == [("send_reminder", "slow@example.com", campaign.id)]
    db.refresh(record)
    assert record.reminder_sent_at is not None


def test_reminder_waits_for_threshold(db, notifier, make_user, make_campaign):
    from assetdesk.services import attestation_scheduler

    user = make_user()
    campaign = make_campaign(status=CampaignStatus.ACTIVE, started_days_ago=3, reminder_days=7)
    _open_record(db, campaign, user)

    stats = attestation_scheduler.process_reminders(db, notifier)

    assert stats["sent"] == 0
    assert notifier.calls == []


def test_completed_records_and_inactive_campaigns_are_ignored(db, notifier, make_user, make_campaign):
    from assetdesk.services import attestation_scheduler

    done = make_user(email="done@example.com")
    other = make_user(email="other@example.com")
    active = make_campaign(status=CampaignStatus.ACTIVE, started_days_ago=30)
    cancelled = make_campaign(status=CampaignStatus.CANCELLED, started_days_ago=30)
    _open_record(db, active, done, RecordStatus.COMPLETED)
    _open_record(db, cancelled, other)

    stats = attestation_scheduler.process_reminders(db, notifier)

    assert stats["sent"] == 0
    assert notifier.calls == []


def test_failed_reminder_releases_marker_for_retry(db, notifier, make_user, make_campaign):
    from assetdesk.services import attestation_scheduler

    user = make_user()
    campaign = make_campaign(status=CampaignStatus.ACTIVE, started_days_ago=10)
    record = _open_record(db, campaign, user)
    notifier.failing = {"send_reminder"}

    stats = attestation_scheduler.process_reminders(db, notifier)

    assert stats["sent"] == 0
    assert stats["failed"] == 1
    assert stats["errors"] == [
        {"pass": "reminder", "item_id": record.id, "error": "simulated failure"}
    ]
    db.refresh(record)
    assert record.reminder_sent_at is None

    notifier.failing = set()
    retry = attestation_scheduler.process_reminders(db, notifier)
    assert retry["sent"] == 1


def test_raising_notifier_does_not_stop_the_pass(db, notifier, make_user, make_campaign):
    from assetdesk.services import attestation_scheduler

    campaign = make_campaign(status=CampaignStatus.ACTIVE, started_days_ago=10)
    _open_record(db, campaign, make_user(email="a@example.com"))
    _open_record(db, campaign, make_user(email="b@example.com"))
    notifier.raising = {"send_reminder"}

    stats = attestation_scheduler.process_reminders(db, notifier)

    assert stats["failed"] == 2
    assert [e["error"] for e in stats["errors"]] == ["send_reminder exploded"] * 2


# =============================================================================
# Escalations
# =============================================================================

def test_escalation_goes_to_profile_manager(db, notifier, make_user, make_campaign):
    from assetdesk.services import attestation_scheduler

    user = make_user(email="emp@example.com", manager_email="boss@example.com")
    campaign = make_campaign(status=CampaignStatus.ACTIVE, started_days_ago=12, escalation_days=10)
    record = _open_record(db, campaign, user)

    stats = attestation_scheduler.process_escalations(db, notifier)

    assert stats["sent"] == 1
    assert notifier.sent("send_escalation") == [
        ("send_escalation", "boss@example.com", "emp@example.com", campaign.id)
    ]
    db.refresh(record)
    assert record.escalation_sent_at is not None


def test_escalation_without_manager_is_skipped_and_unmarked(db, notifier, make_user, make_campaign):
    from assetdesk.services import attestation_scheduler

    user = make_user(email="orphan@example.com")
    campaign = make_campaign(status=CampaignStatus.ACTIVE, started_days_ago=12)
    record = _open_record(db, campaign, user)

    stats = attestation_scheduler.process_escalations(db, notifier)

    assert stats["sent"] == 0
    assert stats["skipped"] == 1
    db.refresh(record)
    assert record.escalation_sent_at is None


# =============================================================================
# Unregistered invitees
# =============================================================================

def test_unregistered_reminder_includes_asset_count(db, notifier, make_asset, make_campaign):
    from assetdesk.services import attestation_scheduler

    make_asset("ghost@example.com")
    make_asset("GHOST@example.com")
    campaign = make_campaign(
        status=CampaignStatus.ACTIVE, started_days_ago=8, unregistered_reminder_days=7
    )
    invite = _invite(db, campaign, "ghost@example.com")

    stats = attestation_scheduler.process_unregistered_reminders(db, notifier)
    again = attestation_scheduler.process_unregistered_reminders(db, notifier)

    assert (stats["sent"], again["sent"]) == (1, 0)
    assert notifier.sent("send_unregistered_reminder") == [
        ("send_unregistered_reminder", "ghost@example.com", campaign.id, 2)
    ]
    db.refresh(invite)
    assert invite.reminder_sent_at is not None


def test_registered_invites_are_not_reminded(db, notifier, make_campaign):
    from assetdesk.services import attestation_scheduler
    from assetdesk.utils.datetime_utils import utc_now

    campaign = make_campaign(status=CampaignStatus.ACTIVE, started_days_ago=30)
    invite = _invite(db, campaign, "joined@example.com")
    invite.registered_at = utc_now()
    db.commit()

    stats = attestation_scheduler.process_unregistered_reminders(db, notifier)

    assert stats["sent"] == 0


def test_unregistered_escalation_uses_asset_manager(db, notifier, make_user, make_asset, make_campaign):
    from assetdesk.services import attestation_scheduler

    boss = make_user(email="boss@example.com", first_name="Bea", last_name="Boss")
    make_asset("ghost@example.com")
    make_asset("ghost@example.com", manager_email="stale@example.com", manager_id=boss.id)
    campaign = make_campaign(status=CampaignStatus.ACTIVE, started_days_ago=11, escalation_days=10)
    _invite(db, campaign, "ghost@example.com")
    orphan = _invite(db, campaign, "nomanager@example.com")
    make_asset("nomanager@example.com")

    stats = attestation_scheduler.process_unregistered_escalations(db, notifier)

    assert stats["sent"] == 1
    assert stats["skipped"] == 1
    assert notifier.sent("send_unregistered_escalation") == [
        ("send_unregistered_escalation", "boss@example.com", "ghost@example.com", campaign.id, 2)
    ]
    db.refresh(orphan)
    assert orphan.escalation_sent_at is None


# =============================================================================
# Auto-close and full run
# =============================================================================

def test_auto_close_expired_campaign(db, make_user, make_campaign):
    from assetdesk.db.models import AuditLog
    from assetdesk.services import attestation_scheduler
    from assetdesk.utils.datetime_utils import utc_now

    now = utc_now()
    expired = make_campaign(status=CampaignStatus.ACTIVE, end_date=now - timedelta(hours=1))
    running = make_campaign(status=CampaignStatus.ACTIVE, end_date=now + timedelta(days=1))
    open_ended = make_campaign(status=CampaignStatus.ACTIVE)
    record = _open_record(db, expired, make_user())

    stats = attestation_scheduler.auto_close_expired_campaigns(db, now)

    assert stats == {"closed": 1, "errors": []}
    for campaign, status in (
        (expired, CampaignStatus.COMPLETED),
        (running, CampaignStatus.ACTIVE),
        (open_ended, CampaignStatus.ACTIVE),
    ):
        db.refresh(campaign)
        assert campaign.status == status.value
    db.refresh(record)
    assert record.status == RecordStatus.PENDING.value
    audit = db.query(AuditLog).filter(AuditLog.action == "campaign_auto_closed").one()
    assert audit.actor_email == "system"


def test_run_scheduled_tasks_summary(db, notifier, make_user, make_asset, make_campaign):
    from assetdesk.services import attestation_scheduler
    from assetdesk.utils.datetime_utils import utc_now

    user = make_user(email="emp@example.com", manager_email="boss@example.com")
    make_asset("ghost@example.com", manager_email="boss@example.com")
    campaign = make_campaign(status=CampaignStatus.ACTIVE, started_days_ago=15)
    _open_record(db, campaign, user)
    _invite(db, campaign, "ghost@example.com")
    make_campaign(status=CampaignStatus.ACTIVE, end_date=utc_now() - timedelta(days=1))

    summary = attestation_scheduler.run_scheduled_tasks(db, notifier)

    assert summary == {
        "reminders_sent": 1,
        "escalations_sent": 1,
        "unregistered_reminders_sent": 1,
        "unregistered_escalations_sent": 1,
        "campaigns_closed": 1,
        "errors": [],
    }
    rerun = attestation_scheduler.run_scheduled_tasks(db, notifier)
    assert rerun["reminders_sent"] + rerun["escalations_sent"] == 0
