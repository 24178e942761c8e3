"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database, schema created and dropped per test
- Factories for users, companies, assets and campaigns
- A recording notifier standing in for the email sender
- HTTPX AsyncClient with session cookie and CSRF header
"""
import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import AsyncGenerator, Generator

# Must be set before assetdesk settings are imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TESTING"] = "1"
os.environ["RESEND_API_KEY"] = ""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from assetdesk.core.deps import COOKIE_NAME, get_db, get_notifier
from assetdesk.core.security import create_session_token
from assetdesk.db.base import Base
from assetdesk.db.enums import CampaignStatus, CampaignTargetType, Role
from assetdesk.db.models import Asset, AttestationCampaign, Company, User
from assetdesk.db.session import SessionLocal, engine
from assetdesk.main import app
from assetdesk.services.notification_service import NotificationResult
from assetdesk.utils.datetime_utils import utc_now


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Fresh schema for every test.

    The engine uses a single shared in-memory connection, so app code can
    commit freely and the next test still starts empty.
    """
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


# =============================================================================
# Factories
# =============================================================================

@pytest.fixture
def make_user(db: Session):
    counter = {"n": 0}

    def _make(
        email: str | None = None,
        role: Role = Role.EMPLOYEE,
        first_name: str = "Test",
        last_name: str = "User",
        **fields,
    ) -> User:
        counter["n"] += 1
        user = User(
            email=(email or f"user{counter['n']}@example.com").lower(),
            first_name=first_name,
            last_name=last_name,
            role=role.value,
            **fields,
        )
        user.refresh_profile_complete()
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_company(db: Session):
    counter = {"n": 0}

    def _make(name: str | None = None) -> Company:
        counter["n"] += 1
        company = Company(name=name or f"Company {counter['n']}")
        db.add(company)
        db.commit()
        db.refresh(company)
        return company

    return _make


@pytest.fixture
def make_asset(db: Session, make_company):
    counter = {"n": 0}

    def _make(employee_email: str, company: Company | None = None, **fields) -> Asset:
        counter["n"] += 1
        company = company or make_company()
        values = {
            "employee_first_name": "Asset",
            "employee_last_name": "Holder",
            "asset_type": "laptop",
            "serial_number": f"SN-{counter['n']:05d}",
            "asset_tag": f"TAG-{counter['n']:05d}",
        }
        values.update(fields)
        asset = Asset(employee_email=employee_email, company_id=company.id, **values)
        db.add(asset)
        db.commit()
        db.refresh(asset)
        return asset

    return _make


@pytest.fixture
def make_campaign(db: Session):
    def _make(
        name: str = "Annual attestation",
        status: CampaignStatus = CampaignStatus.DRAFT,
        target_type: CampaignTargetType = CampaignTargetType.ALL,
        target_company_ids: list[int] | None = None,
        started_days_ago: int | None = None,
        **fields,
    ) -> AttestationCampaign:
        campaign = AttestationCampaign(
            name=name,
            status=status.value,
            target_type=target_type.value,
            target_company_ids=target_company_ids,
            **fields,
        )
        if started_days_ago is not None:
            campaign.start_date = utc_now() - timedelta(days=started_days_ago)
        db.add(campaign)
        db.commit()
        db.refresh(campaign)
        return campaign

    return _make


# =============================================================================
# Notifier
# =============================================================================

@dataclass
class RecordingNotifier:
    """Records every send; methods listed in `failing` report failure."""
    calls: list[tuple] = field(default_factory=list)
    failing: set[str] = field(default_factory=set)
    raising: set[str] = field(default_factory=set)

    def _record(self, method: str, *args) -> NotificationResult:
        if method in self.raising:
            raise RuntimeError(f"{method} exploded")
        self.calls.append((method, *args))
        if method in self.failing:
            return NotificationResult(success=False, error="simulated failure")
        return NotificationResult(success=True)

    def sent(self, method: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == method]

    def send_reminder(self, user, campaign):
        return self._record("send_reminder", user.email, campaign.id)

    def send_escalation(self, manager_email, employee_name, employee_email, campaign, message=None):
        return self._record("send_escalation", manager_email, employee_email, campaign.id)

    def send_unregistered_reminder(self, invite, campaign, asset_count):
        return self._record("send_unregistered_reminder", invite.employee_email, campaign.id, asset_count)

    def send_unregistered_escalation(
        self, manager_email, manager_name, employee_email, employee_name, campaign, asset_count
    ):
        return self._record(
            "send_unregistered_escalation", manager_email, employee_email, campaign.id, asset_count
        )

    def send_launch_notice(self, user, campaign):
        return self._record("send_launch_notice", user.email, campaign.id)

    def send_registration_invite(self, invite, campaign, asset_count):
        return self._record("send_registration_invite", invite.employee_email, campaign.id, asset_count)

    def send_completion_notice(self, admin_email, user, campaign):
        return self._record("send_completion_notice", admin_email, user.email, campaign.id)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


# =============================================================================
# Auth / Client Fixtures
# =============================================================================

@pytest.fixture
def admin_user(make_user) -> User:
    return make_user(email="admin@example.com", role=Role.ADMIN, first_name="Ada", last_name="Admin")


def session_cookie(user: User) -> dict[str, str]:
    return {COOKIE_NAME: create_session_token(user.id, user.email, user.role)}


@pytest.fixture(scope="function")
async def client(db: Session, notifier: RecordingNotifier) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated AsyncClient for public endpoints (CSRF header included)."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"X-Requested-With": "XMLHttpRequest"},
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def client_for(db: Session, notifier: RecordingNotifier):
    """
    Factory for an AsyncClient authenticated as a given user.

    Usage:
        async with client_for(user) as c:
            await c.get("/auth/me")
    """
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier

    def _make(user: User) -> AsyncClient:
        return AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
            cookies=session_cookie(user),
            headers={"X-Requested-With": "XMLHttpRequest"},  # CSRF header
        )

    yield _make
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def authed_client(client_for, admin_user: User) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient authenticated as an admin."""
    async with client_for(admin_user) as c:
        yield c
