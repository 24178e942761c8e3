"""Email notifier: dry run, Resend responses, retries."""

import httpx
import pytest

from assetdesk.db.models import AttestationCampaign, AttestationPendingInvite, User


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    from assetdesk.services import notification_service

    monkeypatch.setattr(notification_service.time, "sleep", lambda _: None)


@pytest.fixture
def campaign():
    return AttestationCampaign(id=7, name="FY26 <assets>", description="Yearly check")


@pytest.fixture
def user():
    return User(id=3, email="emp@example.com", first_name="Eve", last_name="Employee")


def _notifier(handler):
    from assetdesk.services.notification_service import EmailNotifier

    client = httpx.Client(transport=httpx.MockTransport(handler))
    return EmailNotifier(
        api_key="re_test", from_address="Desk <desk@example.com>",
        frontend_url="https://desk.example.com/", client=client,
    )


def test_dry_run_without_api_key(user, campaign):
    from assetdesk.services.notification_service import EmailNotifier

    notifier = EmailNotifier(api_key="")

    assert notifier.dry_run is True
    assert notifier.send_reminder(user, campaign).success is True


def test_reminder_posts_to_resend(user, campaign):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "email_1"})

    result = _notifier(handler).send_reminder(user, campaign)

    assert result.success is True
    request = seen[0]
    assert str(request.url) == "https://api.resend.com/emails"
    assert request.headers["Authorization"] == "Bearer re_test"
    assert request.headers["Idempotency-Key"].startswith("attestation-reminder/7/3/")
    body = request.read().decode()
    assert "emp@example.com" in body
    assert "FY26 &lt;assets&gt;" in body
    assert "https://desk.example.com/my-attestations" in body


def test_invite_link_carries_token(campaign):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.read().decode())
        return httpx.Response(200, json={})

    invite = AttestationPendingInvite(
        id=5, employee_email="ghost@example.com", invite_token="tok123",
    )
    result = _notifier(handler).send_registration_invite(invite, campaign, 2)

    assert result.success is True
    assert "/register?invite=tok123" in seen[0]
    assert "2 asset(s)" in seen[0]


def test_client_error_is_not_retried(user, campaign):
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        return httpx.Response(422, json={"message": "invalid"})

    result = _notifier(handler).send_reminder(user, campaign)

    assert (result.success, result.error) == (False, "HTTP 422")
    assert len(attempts) == 1


def test_server_error_is_retried_then_reported(user, campaign):
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        return httpx.Response(503)

    result = _notifier(handler).send_completion_notice("admin@example.com", user, campaign)

    assert (result.success, result.error) == (False, "HTTP 503")
    assert len(attempts) == 3


def test_transient_error_recovers(user, campaign):
    responses = iter([httpx.Response(429), httpx.Response(200, json={})])

    result = _notifier(lambda request: next(responses)).send_launch_notice(user, campaign)

    assert result.success is True


def test_timeout_becomes_failed_result(user, campaign):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    result = _notifier(handler).send_escalation(
        "boss@example.com", "Eve Employee", "emp@example.com", campaign, message="Please chase"
    )

    assert (result.success, result.error) == (False, "Connection timeout")


def test_repeated_manual_reminders_use_distinct_keys(db, make_user, make_campaign):
    from assetdesk.db.enums import CampaignStatus
    from assetdesk.db.models import AttestationRecord
    from assetdesk.services import attestation_service

    keys = []

    def handler(request: httpx.Request) -> httpx.Response:
        keys.append(request.headers["Idempotency-Key"])
        return httpx.Response(200, json={"id": "email_1"})

    employee = make_user(email="emp@example.com")
    campaign = make_campaign(status=CampaignStatus.ACTIVE)
    record = AttestationRecord(campaign_id=campaign.id, user_id=employee.id)
    db.add(record)
    db.commit()
    notifier = _notifier(handler)

    first = attestation_service.send_manual_reminder(db, record, notifier)
    second = attestation_service.send_manual_reminder(db, record, notifier)

    assert first.success and second.success
    assert len(keys) == 2
    assert keys[0] != keys[1]


def test_retried_reminder_keeps_its_key(user, campaign):
    keys = []

    def handler(request: httpx.Request) -> httpx.Response:
        keys.append(request.headers["Idempotency-Key"])
        if len(keys) == 1:
            return httpx.Response(503)
        return httpx.Response(200, json={})

    result = _notifier(handler).send_reminder(user, campaign)

    assert result.success is True
    assert len(keys) == 2
    assert keys[0] == keys[1]
