"""Asset store operations.

Owner and manager links are resolved from email at write time: a create
links to already-registered users, and editing employee_email or
manager_email re-links (or unlinks) explicitly. Users who register later
are picked up by ownership_service.sync_ownership.
"""

import logging
from datetime import date

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from assetdesk.core.permissions import visible_assets_filter
from assetdesk.db.enums import AssetStatus, AuditAction, AuditEntity, Role
from assetdesk.db.models import Asset
from assetdesk.schemas.asset import AssetCreate, AssetRead, AssetUpdate
from assetdesk.services import audit_service, company_service, directory_service
from assetdesk.services.ownership_service import (
    promote_to_manager_if_needed,
    resolve_asset_manager,
)

logger = logging.getLogger(__name__)


class AssetConflictError(ValueError):
    """Serial number or asset tag already used by another asset."""


# =============================================================================
# Reads
# =============================================================================

def asset_to_read(asset: Asset) -> AssetRead:
    """Serialize an asset with the effective (resolved) manager identity."""
    manager = resolve_asset_manager(asset)
    return AssetRead(
        id=asset.id,
        employee_first_name=asset.employee_first_name,
        employee_last_name=asset.employee_last_name,
        employee_email=asset.employee_email,
        owner_id=asset.owner_id,
        manager_first_name=manager.first_name,
        manager_last_name=manager.last_name,
        manager_email=manager.email,
        manager_id=asset.manager_id,
        company_id=asset.company_id,
        company_name=asset.company.name if asset.company else None,
        asset_type=asset.asset_type,
        make=asset.make,
        model=asset.model,
        serial_number=asset.serial_number,
        asset_tag=asset.asset_tag,
        status=asset.status,
        issued_date=asset.issued_date,
        returned_date=asset.returned_date,
        notes=asset.notes,
        created_at=asset.created_at,
        updated_at=asset.updated_at,
    )


def get_asset(db: Session, asset_id: int) -> Asset | None:
    return (
        db.query(Asset)
        .options(joinedload(Asset.manager), joinedload(Asset.company))
        .filter(Asset.id == asset_id)
        .first()
    )


def list_assets_for_user(
    db: Session,
    role: Role,
    email: str,
    user_id: int | None,
    company_id: int | None = None,
    status: AssetStatus | None = None,
) -> list[Asset]:
    """Assets visible to the caller's role, optionally filtered."""
    query = db.query(Asset).options(joinedload(Asset.manager), joinedload(Asset.company))
    predicate = visible_assets_filter(role, email, user_id)
    if predicate is not None:
        query = query.filter(predicate)
    if company_id is not None:
        query = query.filter(Asset.company_id == company_id)
    if status is not None:
        query = query.filter(Asset.status == AssetStatus(status).value)
    return query.order_by(Asset.id).all()


def find_conflict(
    db: Session,
    serial_number: str | None,
    asset_tag: str | None,
    exclude_id: int | None = None,
) -> str | None:
    """Return a conflict message if serial or tag is already taken."""
    conditions = []
    if serial_number:
        conditions.append(Asset.serial_number == serial_number)
    if asset_tag:
        conditions.append(Asset.asset_tag == asset_tag)
    if not conditions:
        return None
    query = db.query(Asset).filter(or_(*conditions))
    if exclude_id is not None:
        query = query.filter(Asset.id != exclude_id)
    existing = query.first()
    if not existing:
        return None
    if serial_number and existing.serial_number == serial_number:
        return f"Serial number '{serial_number}' is already in use"
    return f"Asset tag '{asset_tag}' is already in use"


def _user_id_for_email(db: Session, email: str | None) -> int | None:
    user = directory_service.get_user_by_email(db, email)
    return user.id if user else None


# =============================================================================
# Writes
# =============================================================================

def create_asset(db: Session, data: AssetCreate, actor_email: str | None = None) -> Asset:
    """
    Create an asset.

    Raises:
        AssetConflictError: duplicate serial number or asset tag
        ValueError: unknown company, or returned status without a date
    """
    if not company_service.get_company(db, data.company_id):
        raise ValueError(f"Company {data.company_id} not found")
    if data.status == AssetStatus.RETURNED and not data.returned_date:
        raise ValueError("returned_date is required when status is 'returned'")
    conflict = find_conflict(db, data.serial_number, data.asset_tag)
    if conflict:
        raise AssetConflictError(conflict)

    asset = Asset(
        **data.model_dump(exclude={"status"}),
        status=AssetStatus(data.status).value,
        owner_id=_user_id_for_email(db, data.employee_email),
        manager_id=_user_id_for_email(db, data.manager_email),
    )
    db.add(asset)
    try:
        db.flush()
    except IntegrityError as e:
        db.rollback()
        raise AssetConflictError("Serial number or asset tag is already in use") from e

    audit_service.log(
        db, AuditAction.CREATE, AuditEntity.ASSET,
        entity_id=asset.id, entity_name=asset.asset_tag,
        details={"company_id": asset.company_id, "asset_type": asset.asset_type},
        actor_email=actor_email,
    )
    if data.manager_email:
        promote_to_manager_if_needed(db, data.manager_email, actor_email=actor_email)
    db.commit()
    db.refresh(asset)
    return asset


def update_asset(
    db: Session,
    asset: Asset,
    data: AssetUpdate,
    actor_email: str | None = None,
) -> Asset:
    """
    Partial update.

    Changing employee_email is the only path that replaces owner_id; changing
    manager_email re-links manager_id the same way.
    """
    updates = data.model_dump(exclude_unset=True)
    for required in ("employee_first_name", "employee_last_name", "employee_email",
                     "company_id", "asset_type", "serial_number", "asset_tag"):
        if required in updates and updates[required] is None:
            raise ValueError(f"{required} cannot be cleared")

    conflict = find_conflict(
        db, updates.get("serial_number"), updates.get("asset_tag"), exclude_id=asset.id
    )
    if conflict:
        raise AssetConflictError(conflict)
    if "company_id" in updates and not company_service.get_company(db, updates["company_id"]):
        raise ValueError(f"Company {updates['company_id']} not found")

    if "employee_email" in updates:
        new_email = updates["employee_email"]
        if new_email.lower() != asset.employee_email.lower():
            asset.owner_id = _user_id_for_email(db, new_email)
    manager_changed = False
    if "manager_email" in updates:
        new_manager = updates["manager_email"]
        if (new_manager or "").lower() != (asset.manager_email or "").lower():
            asset.manager_id = _user_id_for_email(db, new_manager)
            manager_changed = bool(new_manager)

    for field, value in updates.items():
        setattr(asset, field, value)

    try:
        db.flush()
    except IntegrityError as e:
        db.rollback()
        raise AssetConflictError("Serial number or asset tag is already in use") from e

    audit_service.log(
        db, AuditAction.UPDATE, AuditEntity.ASSET,
        entity_id=asset.id, entity_name=asset.asset_tag,
        details={"fields": sorted(updates)}, actor_email=actor_email,
    )
    if manager_changed:
        promote_to_manager_if_needed(db, asset.manager_email, actor_email=actor_email)
    db.commit()
    db.refresh(asset)
    return asset


def update_status(
    db: Session,
    asset: Asset,
    status: AssetStatus,
    returned_date: date | None = None,
    notes: str | None = None,
    actor_email: str | None = None,
    commit: bool = True,
) -> Asset:
    """Change lifecycle status. 'returned' requires a returned_date."""
    status = AssetStatus(status)
    if status == AssetStatus.RETURNED and not (returned_date or asset.returned_date):
        raise ValueError("returned_date is required when status is 'returned'")

    previous = asset.status
    asset.status = status.value
    if returned_date:
        asset.returned_date = returned_date
    if notes is not None:
        asset.notes = notes
    db.flush()

    audit_service.log(
        db, AuditAction.STATUS_CHANGE, AuditEntity.ASSET,
        entity_id=asset.id, entity_name=asset.asset_tag,
        details={"previous_status": previous, "new_status": status.value},
        actor_email=actor_email,
    )
    if commit:
        db.commit()
        db.refresh(asset)
    return asset


def bulk_update_manager(
    db: Session,
    asset_ids: list[int],
    manager_first_name: str | None,
    manager_last_name: str | None,
    manager_email: str,
    actor_email: str | None = None,
) -> int:
    """Reassign the manager on several assets at once. Returns rows updated."""
    manager_id = _user_id_for_email(db, manager_email)
    updated = (
        db.query(Asset)
        .filter(Asset.id.in_(asset_ids))
        .update(
            {
                Asset.manager_first_name: manager_first_name,
                Asset.manager_last_name: manager_last_name,
                Asset.manager_email: manager_email,
                Asset.manager_id: manager_id,
            },
            synchronize_session="fetch",
        )
    )
    audit_service.log(
        db, AuditAction.BULK_UPDATE_MANAGER, AuditEntity.ASSET,
        details={"asset_ids": asset_ids, "updated": updated},
        actor_email=actor_email,
    )
    if updated:
        promote_to_manager_if_needed(db, manager_email, actor_email=actor_email)
    db.commit()
    return updated


def delete_asset(db: Session, asset: Asset, actor_email: str | None = None) -> None:
    audit_service.log(
        db, AuditAction.DELETE, AuditEntity.ASSET,
        entity_id=asset.id, entity_name=asset.asset_tag, actor_email=actor_email,
    )
    db.delete(asset)
    db.commit()
