"""Ownership sync: backfilling owner_id / manager_id from email text."""


def test_sync_links_owner_and_manager(db, make_user, make_asset):
    from assetdesk.services import ownership_service

    owned = make_asset("emp@example.com")
    managed = make_asset("other@example.com", manager_email="emp@example.com")
    user = make_user(email="emp@example.com")

    result = ownership_service.sync_ownership(db, "emp@example.com")
    db.commit()

    assert result.owner_updates == 1
    assert result.manager_updates == 1
    db.refresh(owned)
    db.refresh(managed)
    assert owned.owner_id == user.id
    assert managed.manager_id == user.id
    assert managed.owner_id is None


def test_sync_is_idempotent(db, make_user, make_asset):
    from assetdesk.services import ownership_service

    make_asset("emp@example.com")
    make_asset("emp@example.com")
    make_user(email="emp@example.com")

    first = ownership_service.sync_ownership(db, "emp@example.com")
    db.commit()
    second = ownership_service.sync_ownership(db, "emp@example.com")

    assert first.owner_updates == 2
    assert second.total == 0


def test_sync_is_case_insensitive(db, make_user, make_asset):
    from assetdesk.services import ownership_service

    asset = make_asset("Emp@Example.COM", manager_email="BOSS@example.com")
    emp = make_user(email="emp@example.com")
    boss = make_user(email="boss@example.com")

    ownership_service.sync_ownership(db, "EMP@EXAMPLE.com")
    ownership_service.sync_ownership(db, "boss@EXAMPLE.com")
    db.commit()
    db.refresh(asset)

    assert asset.owner_id == emp.id
    assert asset.manager_id == boss.id


def test_sync_never_clobbers_existing_link(db, make_user, make_asset):
    from assetdesk.services import ownership_service

    first = make_user(email="first@example.com")
    asset = make_asset("emp@example.com", owner_id=first.id)
    make_user(email="emp@example.com")

    result = ownership_service.sync_ownership(db, "emp@example.com")
    db.commit()
    db.refresh(asset)

    assert result.owner_updates == 0
    assert asset.owner_id == first.id


def test_sync_without_registered_user_is_noop(db, make_asset):
    from assetdesk.services import ownership_service

    asset = make_asset("ghost@example.com")

    result = ownership_service.sync_ownership(db, "ghost@example.com")

    assert result.total == 0
    db.refresh(asset)
    assert asset.owner_id is None


def test_update_manager_for_employee_matches_email_and_owner_id(db, make_user, make_asset):
    from assetdesk.services import ownership_service

    emp = make_user(email="emp@example.com")
    old_boss = make_user(email="old@example.com")
    by_email = make_asset("EMP@example.com", manager_email="old@example.com", manager_id=old_boss.id)
    # Email text drifted but the row is linked by id
    by_id = make_asset("emp.old@example.com", owner_id=emp.id, manager_email="old@example.com")
    unrelated = make_asset("someone@example.com", manager_email="old@example.com")

    updated = ownership_service.update_manager_for_employee(
        db, "emp@example.com", "New", "Boss", "new@example.com"
    )
    db.commit()

    assert updated == 2
    for asset in (by_email, by_id):
        db.refresh(asset)
        assert asset.manager_email == "new@example.com"
        assert asset.manager_first_name == "New"
        assert asset.manager_id is None
    db.refresh(unrelated)
    assert unrelated.manager_email == "old@example.com"


def test_unregistered_manager_stays_denormalized_until_registration(db, make_user, make_asset):
    from assetdesk.services import ownership_service

    make_user(email="emp@example.com")
    asset = make_asset("emp@example.com")

    ownership_service.update_manager_for_employee(
        db, "emp@example.com", "Future", "Boss", "future@example.com"
    )
    ownership_service.sync_ownership(db, "future@example.com")
    db.commit()
    db.refresh(asset)
    assert asset.manager_id is None

    boss = make_user(email="future@example.com")
    ownership_service.sync_ownership(db, "future@example.com")
    db.commit()
    db.refresh(asset)
    assert asset.manager_id == boss.id


def test_get_unregistered_owners_groups_by_email(db, make_user, make_asset, make_company):
    from assetdesk.services import directory_service

    acme = make_company("Acme")
    other = make_company("Other")
    make_asset("ghost@example.com", company=acme, employee_first_name="Gina")
    make_asset("GHOST@example.com", company=other)
    make_asset("known@example.com", company=acme)
    make_user(email="known@example.com")

    owners = directory_service.get_unregistered_owners(db)
    assert [(o.email, o.asset_count, o.first_name) for o in owners] == [
        ("ghost@example.com", 2, "Gina")
    ]

    scoped = directory_service.get_unregistered_owners(db, company_ids=[other.id])
    assert [(o.email, o.asset_count) for o in scoped] == [("ghost@example.com", 1)]
