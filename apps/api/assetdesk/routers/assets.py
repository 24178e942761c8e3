"""Asset endpoints, scoped by role."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from assetdesk.core.deps import get_current_user, get_db, require_csrf_header, require_roles
from assetdesk.core.permissions import can_delete_asset, can_edit_asset, can_view_asset
from assetdesk.db.enums import ROLES_CAN_MANAGE_ASSETS, AssetStatus, Role
from assetdesk.db.models import Asset, User
from assetdesk.schemas.asset import (
    AssetCreate,
    AssetRead,
    AssetStatusUpdate,
    AssetUpdate,
    BulkManagerUpdate,
)
from assetdesk.services import asset_service

router = APIRouter(prefix="/assets", tags=["assets"])


def _get_visible_asset(db: Session, asset_id: int, user: User) -> Asset:
    """404 both when missing and when the caller may not see it."""
    asset = asset_service.get_asset(db, asset_id)
    if not asset or not can_view_asset(user.role, user.email, user.id, asset):
        raise HTTPException(status_code=404, detail="Asset not found")
    return asset


@router.get("", response_model=list[AssetRead])
def list_assets(
    company_id: int | None = None,
    status: AssetStatus | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Assets visible to the caller: all, managed plus own, or own only."""
    assets = asset_service.list_assets_for_user(
        db, Role(user.role), user.email, user.id, company_id=company_id, status=status
    )
    return [asset_service.asset_to_read(a) for a in assets]


@router.get("/{asset_id}", response_model=AssetRead)
def get_asset(
    asset_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return asset_service.asset_to_read(_get_visible_asset(db, asset_id, user))


@router.post(
    "",
    response_model=AssetRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_asset(
    body: AssetCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """
    Create an asset.

    Admins create for anyone; other users only for themselves.
    """
    if Role(user.role) not in ROLES_CAN_MANAGE_ASSETS and (
        body.employee_email.lower() != user.email.lower()
    ):
        raise HTTPException(status_code=403, detail="You can only register your own assets")
    try:
        asset = asset_service.create_asset(db, body, actor_email=user.email)
    except asset_service.AssetConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return asset_service.asset_to_read(asset_service.get_asset(db, asset.id))


@router.patch(
    "/{asset_id}",
    response_model=AssetRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_asset(
    asset_id: int,
    body: AssetUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    asset = _get_visible_asset(db, asset_id, user)
    if not can_edit_asset(user.role, user.email, user.id, asset):
        raise HTTPException(status_code=403, detail="Not allowed to edit this asset")
    try:
        asset = asset_service.update_asset(db, asset, body, actor_email=user.email)
    except asset_service.AssetConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return asset_service.asset_to_read(asset_service.get_asset(db, asset.id))


@router.patch(
    "/{asset_id}/status",
    response_model=AssetRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_asset_status(
    asset_id: int,
    body: AssetStatusUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    asset = _get_visible_asset(db, asset_id, user)
    if not can_edit_asset(user.role, user.email, user.id, asset):
        raise HTTPException(status_code=403, detail="Not allowed to edit this asset")
    try:
        asset = asset_service.update_status(
            db, asset, body.status,
            returned_date=body.returned_date, notes=body.notes, actor_email=user.email,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return asset_service.asset_to_read(asset)


@router.post("/bulk/manager", dependencies=[Depends(require_csrf_header)])
def bulk_update_manager(
    body: BulkManagerUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_roles(ROLES_CAN_MANAGE_ASSETS)),
):
    updated = asset_service.bulk_update_manager(
        db,
        body.asset_ids,
        body.manager_first_name,
        body.manager_last_name,
        body.manager_email,
        actor_email=admin.email,
    )
    return {"updated": updated}


@router.delete("/{asset_id}", status_code=204, dependencies=[Depends(require_csrf_header)])
def delete_asset(
    asset_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    asset = _get_visible_asset(db, asset_id, user)
    if not can_delete_asset(user.role, user.email, user.id, asset):
        raise HTTPException(status_code=403, detail="Not allowed to delete this asset")
    asset_service.delete_asset(db, asset, actor_email=user.email)
