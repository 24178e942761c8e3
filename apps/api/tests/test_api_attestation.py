"""Attestation endpoints: campaign management and the employee flow."""

import pytest

from assetdesk.db.enums import CampaignStatus, Role


@pytest.mark.asyncio
async def test_campaign_lifecycle_over_http(authed_client, notifier, make_user, make_asset):
    make_user(email="emp@example.com")
    make_asset("emp@example.com")
    make_asset("ghost@example.com")

    created = await authed_client.post("/attestation/campaigns", json={"name": "FY26"})
    assert created.status_code == 201
    campaign_id = created.json()["id"]
    assert created.json()["status"] == "draft"

    launched = await authed_client.post(f"/attestation/campaigns/{campaign_id}/launch")
    assert launched.status_code == 200
    # admin and emp get records; ghost gets an invite
    assert launched.json()["records_created"] == 2
    assert launched.json()["invites_created"] == 1

    again = await authed_client.post(f"/attestation/campaigns/{campaign_id}/launch")
    assert again.status_code == 400

    stats = await authed_client.get(f"/attestation/campaigns/{campaign_id}/stats")
    assert stats.json()["pending"] == 2
    assert stats.json()["pending_invites"] == 1

    invites = await authed_client.get(f"/attestation/campaigns/{campaign_id}/pending-invites")
    assert [i["employee_email"] for i in invites.json()] == ["ghost@example.com"]

    dashboard = await authed_client.get(f"/attestation/campaigns/{campaign_id}/dashboard")
    assert dashboard.status_code == 200
    assert {r["user_email"] for r in dashboard.json()["records"]} == {
        "admin@example.com", "emp@example.com",
    }

    cancelled = await authed_client.post(f"/attestation/campaigns/{campaign_id}/cancel")
    assert cancelled.json()["status"] == "cancelled"


@pytest.mark.asyncio
async def test_employee_cannot_manage_campaigns(client_for, make_user):
    employee = make_user()

    async with client_for(employee) as c:
        res = await c.post("/attestation/campaigns", json={"name": "Nope"})

    assert res.status_code == 403


@pytest.mark.asyncio
async def test_coordinator_can_manage_campaigns(client_for, make_user):
    coordinator = make_user(role=Role.ATTESTATION_COORDINATOR)

    async with client_for(coordinator) as c:
        res = await c.post("/attestation/campaigns", json={"name": "Coordinated"})

    assert res.status_code == 201


@pytest.mark.asyncio
async def test_employee_attests_and_completes(
    client_for, db, notifier, admin_user, make_user, make_asset, make_company
):
    from assetdesk.db.models import Asset
    from assetdesk.schemas.attestation import CampaignCreate
    from assetdesk.services import attestation_service

    employee = make_user(email="emp@example.com", manager_email="boss@example.com")
    asset = make_asset("emp@example.com")
    company = make_company()
    campaign = attestation_service.create_campaign(db, CampaignCreate(name="FY26"))
    attestation_service.launch_campaign(db, campaign, notifier)

    async with client_for(employee) as c:
        mine = await c.get("/attestation/my")
        assert mine.status_code == 200
        [entry] = mine.json()
        record_id = entry["id"]
        assert entry["campaign_name"] == "FY26"

        detail = await c.get(f"/attestation/records/{record_id}")
        assert [a["id"] for a in detail.json()["assets"]] == [asset.id]

        attested = await c.post(
            f"/attestation/records/{record_id}/assets/{asset.id}",
            json={"attested_status": "damaged", "notes": "cracked screen"},
        )
        assert attested.status_code == 200

        staged = await c.post(
            f"/attestation/records/{record_id}/new-assets",
            json={
                "asset_type": "dock",
                "serial_number": "DOCK-1",
                "asset_tag": "TAG-DOCK-1",
                "company_id": company.id,
            },
        )
        assert staged.status_code == 201

        done = await c.post(f"/attestation/records/{record_id}/complete")
        assert done.status_code == 200
        assert len(done.json()["transferred_asset_ids"]) == 1

        twice = await c.post(f"/attestation/records/{record_id}/complete")
        assert twice.status_code == 400

    db.refresh(asset)
    assert asset.status == "damaged"
    dock = db.query(Asset).filter(Asset.serial_number == "DOCK-1").one()
    assert dock.owner_id == employee.id
    assert notifier.sent("send_completion_notice")


@pytest.mark.asyncio
async def test_record_of_someone_else_is_not_found(client_for, db, make_user, make_campaign):
    from assetdesk.db.models import AttestationRecord

    owner = make_user(email="owner@example.com")
    snooper = make_user(email="snoop@example.com")
    campaign = make_campaign(status=CampaignStatus.ACTIVE)
    record = AttestationRecord(campaign_id=campaign.id, user_id=owner.id)
    db.add(record)
    db.commit()

    async with client_for(snooper) as c:
        res = await c.get(f"/attestation/records/{record.id}")
        complete = await c.post(f"/attestation/records/{record.id}/complete")

    assert res.status_code == 404
    assert complete.status_code == 404


@pytest.mark.asyncio
async def test_manual_escalation_without_manager(authed_client, db, make_user, make_campaign):
    from assetdesk.db.models import AttestationRecord

    orphan = make_user(email="orphan@example.com")
    campaign = make_campaign(status=CampaignStatus.ACTIVE)
    record = AttestationRecord(campaign_id=campaign.id, user_id=orphan.id)
    db.add(record)
    db.commit()

    res = await authed_client.post(f"/attestation/records/{record.id}/escalate", json={})

    assert res.status_code == 400


@pytest.mark.asyncio
async def test_manual_reminder_failure_is_bad_gateway(
    authed_client, db, notifier, make_user, make_campaign
):
    from assetdesk.db.models import AttestationRecord

    user = make_user()
    campaign = make_campaign(status=CampaignStatus.ACTIVE)
    record = AttestationRecord(campaign_id=campaign.id, user_id=user.id)
    db.add(record)
    db.commit()
    notifier.failing = {"send_reminder"}

    res = await authed_client.post(f"/attestation/records/{record.id}/remind")

    assert res.status_code == 502


@pytest.mark.asyncio
async def test_validate_invite_endpoint(client, db, notifier, admin_user, make_asset, make_campaign):
    from assetdesk.db.models import AttestationPendingInvite
    from assetdesk.services import attestation_service

    make_asset("ghost@example.com")
    campaign = make_campaign(name="FY26")
    attestation_service.launch_campaign(db, campaign, notifier)
    token = db.query(AttestationPendingInvite).one().invite_token

    ok = await client.get(f"/auth/validate-invite/{token}")
    bad = await client.get("/auth/validate-invite/not-a-token")

    assert ok.json()["valid"] is True
    assert ok.json()["campaign_name"] == "FY26"
    assert (bad.json()["valid"], bad.json()["reason"]) == (False, "Invalid invite token")


@pytest.mark.asyncio
async def test_invited_owner_registers_and_is_redirected(
    client, db, notifier, admin_user, make_asset, make_campaign
):
    from assetdesk.services import attestation_service

    make_asset("ghost@example.com")
    campaign = make_campaign()
    attestation_service.launch_campaign(db, campaign, notifier)

    res = await client.post(
        "/auth/register",
        json={"email": "ghost@example.com", "first_name": "Gina", "last_name": "Ghost"},
    )

    assert res.status_code == 201
    assert res.json()["redirect_to_attestations"] is True
    assert len(res.json()["converted_record_ids"]) == 1


@pytest.mark.asyncio
async def test_manager_can_monitor_and_remind(
    client_for, db, notifier, make_user, make_asset, make_campaign
):
    from assetdesk.db.models import AttestationRecord

    manager = make_user(email="boss@example.com", role=Role.MANAGER)
    report = make_user(email="emp@example.com", manager_email="boss@example.com")
    campaign = make_campaign(status=CampaignStatus.ACTIVE)
    record = AttestationRecord(campaign_id=campaign.id, user_id=report.id)
    db.add(record)
    db.commit()

    async with client_for(manager) as c:
        listed = await c.get("/attestation/campaigns")
        detail = await c.get(f"/attestation/campaigns/{campaign.id}")
        dashboard = await c.get(f"/attestation/campaigns/{campaign.id}/dashboard")
        invites = await c.get(f"/attestation/campaigns/{campaign.id}/pending-invites")
        remind_one = await c.post(f"/attestation/records/{record.id}/remind")
        remind_all = await c.post(f"/attestation/campaigns/{campaign.id}/remind")

    assert [item["id"] for item in listed.json()] == [campaign.id]
    assert detail.status_code == 200
    assert dashboard.status_code == 200
    assert invites.status_code == 200
    assert remind_one.status_code == 200
    assert remind_all.status_code == 200
    assert notifier.sent("send_reminder")


@pytest.mark.asyncio
async def test_manager_cannot_change_campaigns(client_for, db, make_user, make_campaign):
    from assetdesk.db.models import AttestationRecord

    manager = make_user(email="boss@example.com", role=Role.MANAGER)
    report = make_user(email="emp@example.com")
    draft = make_campaign()
    active = make_campaign(status=CampaignStatus.ACTIVE)
    record = AttestationRecord(campaign_id=active.id, user_id=report.id)
    db.add(record)
    db.commit()

    async with client_for(manager) as c:
        created = await c.post("/attestation/campaigns", json={"name": "Nope"})
        launched = await c.post(f"/attestation/campaigns/{draft.id}/launch")
        escalated = await c.post(f"/attestation/records/{record.id}/escalate", json={})
        record_detail = await c.get(f"/attestation/records/{record.id}")

    assert created.status_code == 403
    assert launched.status_code == 403
    assert escalated.status_code == 403
    assert record_detail.status_code == 404
