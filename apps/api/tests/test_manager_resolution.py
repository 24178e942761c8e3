"""Manager display precedence and automatic manager-role promotion."""

from assetdesk.db.enums import Role


def test_resolver_prefers_linked_user():
    from assetdesk.db.models import User
    from assetdesk.services.ownership_service import ManagerIdentity, resolve_manager

    denormalized = ManagerIdentity("Old", "Name", "old@example.com")
    linked = User(email="boss@example.com", first_name="Bea", last_name="Boss")

    resolved = resolve_manager(denormalized, linked)

    assert resolved == ManagerIdentity("Bea", "Boss", "boss@example.com")
    assert resolved.full_name == "Bea Boss"


def test_resolver_falls_back_to_denormalized_fields():
    from assetdesk.services.ownership_service import ManagerIdentity, resolve_manager

    denormalized = ManagerIdentity("Una", "Registered", "una@example.com")

    assert resolve_manager(denormalized, None) is denormalized


def test_asset_read_reflects_manager_profile_edits(db, make_user, make_asset):
    from assetdesk.services import asset_service

    boss = make_user(email="boss@example.com", first_name="Bea", last_name="Boss")
    asset = make_asset(
        "emp@example.com",
        manager_first_name="Stale",
        manager_last_name="Text",
        manager_email="boss@example.com",
        manager_id=boss.id,
    )

    boss.first_name = "Beatrice"
    db.commit()

    read = asset_service.asset_to_read(asset_service.get_asset(db, asset.id))
    assert read.manager_first_name == "Beatrice"
    assert read.manager_last_name == "Boss"
    assert read.manager_email == "boss@example.com"


def test_asset_read_shows_unregistered_manager_text(db, make_asset):
    from assetdesk.services import asset_service

    asset = make_asset(
        "emp@example.com",
        manager_first_name="Una",
        manager_last_name="Known",
        manager_email="una@example.com",
    )

    read = asset_service.asset_to_read(asset_service.get_asset(db, asset.id))
    assert (read.manager_first_name, read.manager_email) == ("Una", "una@example.com")
    assert read.manager_id is None


def test_promotion_when_named_on_asset(db, make_user, make_asset):
    from assetdesk.db.models import AuditLog
    from assetdesk.services import ownership_service

    make_asset("emp@example.com", manager_email="Boss@Example.com")
    boss = make_user(email="boss@example.com")

    assert ownership_service.promote_to_manager_if_needed(db, "BOSS@example.com") is True
    db.commit()
    db.refresh(boss)

    assert boss.role == Role.MANAGER.value
    audit = db.query(AuditLog).filter(AuditLog.action == "auto_assign_manager_role").one()
    assert audit.entity_id == boss.id


def test_promotion_when_named_on_user_profile(db, make_user):
    from assetdesk.services import ownership_service

    boss = make_user(email="boss@example.com")
    make_user(email="emp@example.com", manager_email="boss@example.com")

    assert ownership_service.promote_to_manager_if_needed(db, "boss@example.com") is True
    db.refresh(boss)
    assert boss.role == Role.MANAGER.value


def test_promotion_is_idempotent_and_never_demotes_admin(db, make_user, make_asset):
    from assetdesk.services import ownership_service

    make_asset("emp@example.com", manager_email="boss@example.com")
    make_asset("emp2@example.com", manager_email="admin@example.com")
    boss = make_user(email="boss@example.com")
    admin = make_user(email="admin@example.com", role=Role.ADMIN)

    assert ownership_service.promote_to_manager_if_needed(db, "boss@example.com") is True
    assert ownership_service.promote_to_manager_if_needed(db, "boss@example.com") is False
    assert ownership_service.promote_to_manager_if_needed(db, "admin@example.com") is False
    db.refresh(boss)
    db.refresh(admin)
    assert boss.role == Role.MANAGER.value
    assert admin.role == Role.ADMIN.value


def test_no_promotion_without_reports(db, make_user):
    from assetdesk.services import ownership_service

    user = make_user(email="lonely@example.com")

    assert ownership_service.promote_to_manager_if_needed(db, user.email) is False
    assert ownership_service.promote_to_manager_if_needed(db, "nobody@example.com") is False


def test_escalation_target_prefers_profile_then_assets(db, make_user, make_asset):
    from assetdesk.services import ownership_service

    boss = make_user(email="boss@example.com")
    with_profile = make_user(email="a@example.com", manager_email="profile@example.com")
    without_profile = make_user(email="b@example.com")
    make_asset("a@example.com", manager_email="asset@example.com")
    make_asset("b@example.com", manager_email="text@example.com", manager_id=boss.id)

    assert ownership_service.resolve_manager_email_for_user(db, with_profile) == "profile@example.com"
    assert ownership_service.resolve_manager_email_for_user(db, without_profile) == "boss@example.com"
