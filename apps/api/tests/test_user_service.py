"""Profile and admin flows in user_service."""

import pytest

from assetdesk.db.enums import Role


def test_complete_profile_survives_propagation_failure(db, make_user, monkeypatch, caplog):
    from assetdesk.schemas.user import CompleteProfileRequest
    from assetdesk.services import ownership_service, user_service

    user = make_user(email="emp@example.com")

    def broken(*args, **kwargs):
        raise RuntimeError("asset table locked")

    monkeypatch.setattr(ownership_service, "update_manager_for_employee", broken)

    updated = user_service.complete_profile(
        db, user,
        CompleteProfileRequest(
            manager_first_name="Bea", manager_last_name="Boss", manager_email="boss@example.com"
        ),
    )

    assert updated.manager_email == "boss@example.com"
    assert updated.profile_complete is True
    assert "Manager propagation failed" in caplog.text


def test_update_profile_raises_propagation_failure(db, make_user, monkeypatch):
    from assetdesk.schemas.user import ProfileUpdate
    from assetdesk.services import ownership_service, user_service

    user = make_user(email="emp@example.com")

    def broken(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(ownership_service, "update_manager_for_employee", broken)

    with pytest.raises(RuntimeError):
        user_service.update_profile(db, user, ProfileUpdate(manager_email="boss@example.com"))


def test_name_only_edit_leaves_assets_alone(db, make_user, make_asset):
    from assetdesk.schemas.user import ProfileUpdate
    from assetdesk.services import user_service

    user = make_user(email="emp@example.com", manager_email="boss@example.com")
    asset = make_asset("emp@example.com", manager_email="asset.boss@example.com")

    user_service.update_profile(db, user, ProfileUpdate(first_name="Evelyn"))

    db.refresh(asset)
    assert asset.manager_email == "asset.boss@example.com"


def test_delete_user_clears_manager_links(db, make_user, make_asset):
    from assetdesk.db.models import Asset, User
    from assetdesk.services import user_service

    boss = make_user(email="boss@example.com", role=Role.MANAGER)
    asset_id = make_asset(
        "emp@example.com", manager_email="boss@example.com", manager_id=boss.id
    ).id

    user_service.delete_user(db, boss, actor_email="admin@example.com")

    assert db.query(User).filter(User.email == "boss@example.com").count() == 0
    asset = db.query(Asset).filter(Asset.id == asset_id).one()
    assert asset.manager_id is None
    assert asset.manager_email == "boss@example.com"


def test_update_role_is_audited(db, make_user):
    from assetdesk.db.models import AuditLog
    from assetdesk.services import user_service

    user = make_user()

    user_service.update_role(db, user, Role.ATTESTATION_COORDINATOR, actor_email="admin@example.com")

    assert user.role == Role.ATTESTATION_COORDINATOR.value
    audit = db.query(AuditLog).filter(AuditLog.action == "update_role").one()
    assert audit.details == {"previous_role": "employee", "new_role": "attestation_coordinator"}
