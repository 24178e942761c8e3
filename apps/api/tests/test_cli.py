"""CLI commands run against the test database."""

import pytest
from click.testing import CliRunner

from assetdesk.db.enums import Role


@pytest.fixture
def runner(db, monkeypatch):
    from assetdesk import cli as cli_module

    monkeypatch.setattr(cli_module, "SessionLocal", lambda: db)
    return CliRunner()


def test_create_company(runner, db):
    from assetdesk.cli import cli
    from assetdesk.db.models import Company

    first = runner.invoke(cli, ["create-company", "--name", "Acme"])
    duplicate = runner.invoke(cli, ["create-company", "--name", "Acme"])

    assert first.exit_code == 0
    assert "✓ Created company: Acme" in first.output
    assert "❌" in duplicate.output
    assert db.query(Company).filter(Company.name == "Acme").count() == 1


def test_sync_ownership_backfills_links(runner, db, make_user, make_asset):
    from assetdesk.cli import cli
    from assetdesk.db.models import Asset

    asset_id = make_asset("emp@example.com", manager_email="boss@example.com").id
    emp_id = make_user(email="emp@example.com").id
    boss_id = make_user(email="boss@example.com").id

    result = runner.invoke(cli, ["sync-ownership"])

    assert result.exit_code == 0
    assert "1 owner link(s), 1 manager link(s)" in result.output
    asset = db.query(Asset).filter(Asset.id == asset_id).one()
    assert (asset.owner_id, asset.manager_id) == (emp_id, boss_id)


def test_sync_ownership_unknown_email(runner):
    from assetdesk.cli import cli

    result = runner.invoke(cli, ["sync-ownership", "--email", "ghost@example.com"])

    assert "No user registered" in result.output


def test_promote_managers(runner, db, make_user, make_asset):
    from assetdesk.cli import cli
    from assetdesk.db.models import User

    make_asset("emp@example.com", manager_email="boss@example.com")
    make_user(email="boss@example.com")

    result = runner.invoke(cli, ["promote-managers"])

    assert result.exit_code == 0
    assert "boss@example.com" in result.output
    boss = db.query(User).filter(User.email == "boss@example.com").one()
    assert boss.role == Role.MANAGER.value


def test_run_scheduler_reports_summary_and_errors(
    runner, db, notifier, monkeypatch, make_user, make_campaign
):
    from assetdesk import cli as cli_module
    from assetdesk.cli import cli
    from assetdesk.db.enums import CampaignStatus
    from assetdesk.db.models import AttestationRecord

    monkeypatch.setattr(cli_module, "EmailNotifier", lambda: notifier)
    notifier.failing = {"send_escalation"}

    user = make_user(email="late@example.com", manager_email="boss@example.com")
    campaign = make_campaign(status=CampaignStatus.ACTIVE, started_days_ago=12)
    db.add(AttestationRecord(campaign_id=campaign.id, user_id=user.id))
    db.commit()

    result = runner.invoke(cli, ["run-scheduler"])

    assert result.exit_code == 0
    assert "✓ Reminders: 1, escalations: 0" in result.output
    assert "❌ escalation item" in result.output
