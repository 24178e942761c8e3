"""Role-based visibility and edit rules for assets."""

from sqlalchemy import false, func, or_
from sqlalchemy.sql.elements import ColumnElement

from assetdesk.db.enums import ROLES_CAN_MANAGE_ASSETS, ROLES_SEE_ALL_ASSETS, Role
from assetdesk.db.models import Asset


def visible_assets_filter(role: Role, email: str, user_id: int | None) -> ColumnElement[bool] | None:
    """
    SQL predicate selecting the assets a role may see.

    Returns None when no restriction applies. Managers see their own assets
    plus those they manage; employees see their own. Email matching covers
    rows not yet linked by id.
    """
    role = Role(role)
    if role in ROLES_SEE_ALL_ASSETS:
        return None

    normalized = (email or "").strip().lower()
    own = [func.lower(Asset.employee_email) == normalized]
    if user_id is not None:
        own.append(Asset.owner_id == user_id)

    if role == Role.MANAGER:
        managed = [func.lower(Asset.manager_email) == normalized]
        if user_id is not None:
            managed.append(Asset.manager_id == user_id)
        return or_(*own, *managed)

    if role == Role.EMPLOYEE:
        return or_(*own)

    return false()


def can_view_asset(role: Role, email: str, user_id: int | None, asset: Asset) -> bool:
    """In-memory mirror of visible_assets_filter for a single asset."""
    role = Role(role)
    if role in ROLES_SEE_ALL_ASSETS:
        return True
    normalized = (email or "").strip().lower()
    owns = _is_owner(email, user_id, asset)
    if role == Role.EMPLOYEE:
        return owns
    if role == Role.MANAGER:
        manages = (asset.manager_id is not None and asset.manager_id == user_id) or (
            (asset.manager_email or "").lower() == normalized
        )
        return owns or manages
    return False


def _is_owner(email: str, user_id: int | None, asset: Asset) -> bool:
    normalized = (email or "").strip().lower()
    return (asset.owner_id is not None and asset.owner_id == user_id) or (
        (asset.employee_email or "").lower() == normalized
    )


def can_edit_asset(role: Role, email: str, user_id: int | None, asset: Asset) -> bool:
    """Admins edit anything; other owners edit their own, except employees."""
    role = Role(role)
    if role in ROLES_CAN_MANAGE_ASSETS:
        return True
    return role != Role.EMPLOYEE and _is_owner(email, user_id, asset)


def can_delete_asset(role: Role, email: str, user_id: int | None, asset: Asset) -> bool:
    return can_edit_asset(role, email, user_id, asset)
