"""User registration and profile flows.

These are the event sources for the ownership engine: registering links the
new account to assets already keyed by its email and converts open
attestation invites, and a manager change on a profile is pushed onto the
user's assets.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from assetdesk.core.config import settings
from assetdesk.db.enums import AuditAction, AuditEntity, Role
from assetdesk.db.models import Asset, AttestationRecord, User
from assetdesk.schemas.user import (
    AdminUserUpdate,
    CompleteProfileRequest,
    ProfileUpdate,
    RegisterRequest,
)
from assetdesk.services import audit_service, directory_service, ownership_service
from assetdesk.services.audit_service import hash_email
from assetdesk.services.invite_conversion_service import (
    InviteConversionResult,
    convert_pending_invites,
)
from assetdesk.utils.datetime_utils import utc_now
from assetdesk.utils.normalization import normalize_email, split_full_name

logger = logging.getLogger(__name__)

MANAGER_FIELDS = ("manager_first_name", "manager_last_name", "manager_email")


class UserConflictError(ValueError):
    """A user with this email already exists."""


@dataclass
class RegistrationResult:
    user: User
    conversion: InviteConversionResult


def _manager_fields(data) -> dict:
    """
    Manager fields set on a payload.

    A combined manager_name fills first/last when those are not given.
    """
    updates = {
        k: v for k, v in data.model_dump(exclude_unset=True).items() if k in MANAGER_FIELDS
    }
    manager_name = getattr(data, "manager_name", None)
    if manager_name:
        first, last = split_full_name(manager_name)
        updates.setdefault("manager_first_name", first)
        updates.setdefault("manager_last_name", last)
    if updates.get("manager_email"):
        updates["manager_email"] = normalize_email(updates["manager_email"])
    return updates


def _initial_role(db: Session, email: str) -> Role:
    if directory_service.count_users(db) == 0:
        return Role.ADMIN
    if settings.ADMIN_EMAIL and normalize_email(settings.ADMIN_EMAIL) == normalize_email(email):
        return Role.ADMIN
    return Role.EMPLOYEE


# =============================================================================
# Registration / login
# =============================================================================

def register_user(db: Session, data: RegisterRequest) -> RegistrationResult:
    """
    Create an account and wire it into existing asset and campaign data.

    Raises:
        UserConflictError: email already registered
    """
    email = normalize_email(data.email)
    if directory_service.get_user_by_email(db, email):
        raise UserConflictError("A user with this email already exists")

    manager = _manager_fields(data)
    user = User(
        email=email,
        first_name=data.first_name,
        last_name=data.last_name,
        role=_initial_role(db, email).value,
        last_login_at=utc_now(),
        **manager,
    )
    user.refresh_profile_complete()
    db.add(user)
    db.flush()

    audit_service.log(
        db, AuditAction.REGISTER, AuditEntity.USER,
        entity_id=user.id, entity_name=user.email,
        details={"role": user.role}, actor_email=user.email,
    )

    synced = ownership_service.sync_ownership(db, user.email)
    if synced.total:
        audit_service.log(
            db, AuditAction.SYNC_ASSETS, AuditEntity.USER,
            entity_id=user.id, entity_name=user.email,
            details={
                "owner_updates": synced.owner_updates,
                "manager_updates": synced.manager_updates,
            },
            actor_email=user.email,
        )

    # The new user may already be named as someone's manager
    ownership_service.promote_to_manager_if_needed(db, user.email)
    if user.manager_email:
        ownership_service.promote_to_manager_if_needed(
            db, user.manager_email, actor_email=user.email
        )

    conversion = convert_pending_invites(db, user)
    db.commit()
    db.refresh(user)

    logger.info(
        "Registered user %s (%s): %s asset link(s), %s invite(s) converted",
        user.id, hash_email(user.email), synced.total, len(conversion.converted_record_ids),
    )
    return RegistrationResult(user=user, conversion=conversion)


def login(db: Session, email: str) -> User | None:
    """Look up an active user by email and stamp last_login_at."""
    user = directory_service.get_user_by_email(db, email)
    if not user or not user.is_active:
        return None
    user.last_login_at = utc_now()
    db.commit()
    db.refresh(user)
    return user


# =============================================================================
# Profile
# =============================================================================

def _propagate_manager_change(db: Session, user: User, actor_email: str | None) -> None:
    """Push the user's manager onto their assets and link/promote the manager."""
    updated = ownership_service.update_manager_for_employee(
        db,
        user.email,
        user.manager_first_name,
        user.manager_last_name,
        user.manager_email,
    )
    ownership_service.sync_ownership(db, user.email)
    if user.manager_email:
        ownership_service.sync_ownership(db, user.manager_email)
        ownership_service.promote_to_manager_if_needed(
            db, user.manager_email, actor_email=actor_email
        )
    logger.info("Propagated manager change for user %s to %s asset(s)", user.id, updated)


def _apply_profile(
    db: Session,
    user: User,
    data: ProfileUpdate,
    actor_email: str | None,
    action: AuditAction,
    raise_on_propagation_error: bool = True,
) -> User:
    updates = data.model_dump(exclude_unset=True)
    for name_field in ("first_name", "last_name"):
        if updates.get(name_field):
            setattr(user, name_field, updates[name_field])

    manager = _manager_fields(data)
    previous = tuple(getattr(user, f) for f in MANAGER_FIELDS)
    for field_name, value in manager.items():
        setattr(user, field_name, value)
    manager_changed = tuple(getattr(user, f) for f in MANAGER_FIELDS) != previous

    user.refresh_profile_complete()
    db.flush()

    if manager_changed:
        try:
            _propagate_manager_change(db, user, actor_email)
        except Exception:
            if raise_on_propagation_error:
                raise
            logger.exception("Manager propagation failed for user %s", user.id)

    audit_service.log(
        db, action, AuditEntity.USER,
        entity_id=user.id, entity_name=user.email,
        details={"fields": sorted(set(updates) | set(manager)), "manager_changed": manager_changed},
        actor_email=actor_email or user.email,
    )
    db.commit()
    db.refresh(user)
    return user


def update_profile(
    db: Session,
    user: User,
    data: ProfileUpdate,
    actor_email: str | None = None,
) -> User:
    """Self-service profile edit. A manager change propagates to assets."""
    return _apply_profile(db, user, data, actor_email, AuditAction.UPDATE_PROFILE)


def complete_profile(db: Session, user: User, data: CompleteProfileRequest) -> User:
    """
    Collect manager details after first login.

    The profile is saved even when propagating to assets fails; that error
    is logged.
    """
    return _apply_profile(
        db, user, data, user.email, AuditAction.COMPLETE_PROFILE,
        raise_on_propagation_error=False,
    )


# =============================================================================
# Admin
# =============================================================================

def admin_update_user(
    db: Session,
    user: User,
    data: AdminUserUpdate,
    actor_email: str | None = None,
) -> User:
    if data.role is not None and data.role.value != user.role:
        update_role(db, user, data.role, actor_email=actor_email)
    return _apply_profile(db, user, data, actor_email, AuditAction.UPDATE_PROFILE)


def update_role(db: Session, user: User, role: Role, actor_email: str | None = None) -> User:
    role = Role(role)
    previous = user.role
    if previous == role.value:
        return user
    user.role = role.value
    audit_service.log(
        db, AuditAction.UPDATE_ROLE, AuditEntity.USER,
        entity_id=user.id, entity_name=user.email,
        details={"previous_role": previous, "new_role": role.value},
        actor_email=actor_email,
    )
    db.commit()
    db.refresh(user)
    logger.info("Role of user %s changed from %s to %s", user.id, previous, role.value)
    return user


def delete_user(db: Session, user: User, actor_email: str | None = None) -> None:
    """
    Delete an account.

    Refused while the user still owns assets or has attestation records.
    """
    owned = db.query(Asset).filter(Asset.owner_id == user.id).count()
    if owned:
        raise ValueError(f"User still owns {owned} asset(s); reassign them first")
    records = db.query(AttestationRecord).filter(AttestationRecord.user_id == user.id).count()
    if records:
        raise ValueError("User has attestation records and cannot be deleted")

    # Drop manager links; the denormalized manager text stays on the assets
    db.query(Asset).filter(Asset.manager_id == user.id).update(
        {Asset.manager_id: None}, synchronize_session="fetch"
    )
    audit_service.log(
        db, AuditAction.DELETE_USER, AuditEntity.USER,
        entity_id=user.id, entity_name=user.email, actor_email=actor_email,
    )
    db.delete(user)
    db.commit()
