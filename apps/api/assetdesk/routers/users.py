"""User profile and admin user management endpoints."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from assetdesk.core.deps import get_current_user, get_db, require_csrf_header, require_roles
from assetdesk.db.enums import ROLES_CAN_MANAGE_USERS
from assetdesk.db.models import User
from assetdesk.schemas.user import (
    AdminUserUpdate,
    CompleteProfileRequest,
    ProfileUpdate,
    RoleUpdate,
    UserRead,
)
from assetdesk.services import directory_service, user_service

router = APIRouter(prefix="/users", tags=["users"])


# =============================================================================
# Self-service
# =============================================================================

@router.get("/me", response_model=UserRead)
def get_profile(user: User = Depends(get_current_user)):
    return user


@router.patch("/me", response_model=UserRead, dependencies=[Depends(require_csrf_header)])
def update_profile(
    body: ProfileUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Update own profile. A new manager is pushed onto the user's assets."""
    return user_service.update_profile(db, user, body, actor_email=user.email)


@router.post(
    "/me/complete-profile",
    response_model=UserRead,
    dependencies=[Depends(require_csrf_header)],
)
def complete_profile(
    body: CompleteProfileRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return user_service.complete_profile(db, user, body)


@router.get("/me/direct-reports", response_model=list[UserRead])
def list_direct_reports(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return directory_service.list_direct_reports(db, user.email)


# =============================================================================
# Admin
# =============================================================================

def _get_user_or_404(db: Session, user_id: int) -> User:
    user = directory_service.get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("", response_model=list[UserRead])
def list_users(
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(ROLES_CAN_MANAGE_USERS)),
):
    return directory_service.list_users(db)


@router.patch(
    "/{user_id}",
    response_model=UserRead,
    dependencies=[Depends(require_csrf_header)],
)
def admin_update_user(
    user_id: int,
    body: AdminUserUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_roles(ROLES_CAN_MANAGE_USERS)),
):
    user = _get_user_or_404(db, user_id)
    return user_service.admin_update_user(db, user, body, actor_email=admin.email)


@router.patch(
    "/{user_id}/role",
    response_model=UserRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_role(
    user_id: int,
    body: RoleUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_roles(ROLES_CAN_MANAGE_USERS)),
):
    user = _get_user_or_404(db, user_id)
    if user.id == admin.id:
        raise HTTPException(status_code=400, detail="Cannot change your own role")
    return user_service.update_role(db, user, body.role, actor_email=admin.email)


@router.delete("/{user_id}", status_code=204, dependencies=[Depends(require_csrf_header)])
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(require_roles(ROLES_CAN_MANAGE_USERS)),
):
    user = _get_user_or_404(db, user_id)
    if user.id == admin.id:
        raise HTTPException(status_code=400, detail="Cannot delete your own account")
    try:
        user_service.delete_user(db, user, actor_email=admin.email)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
