"""Ownership sync engine.

Reconciles assets keyed by email text with registered user accounts:

- sync_ownership backfills owner_id / manager_id once a matching user exists
- update_manager_for_employee propagates a manager change onto an
  employee's assets
- resolve_manager picks the manager identity shown for an asset
- promote_to_manager_if_needed upgrades users who manage someone

Every write carries its own "still unset" predicate in the UPDATE, so
overlapping calls are harmless without locking. None of these functions
commit; the caller owns the transaction.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from assetdesk.db.enums import ROLES_EXEMPT_FROM_PROMOTION, AuditAction, AuditEntity, Role
from assetdesk.db.models import Asset, User
from assetdesk.services import audit_service, directory_service
from assetdesk.services.audit_service import hash_email
from assetdesk.utils.normalization import normalize_email

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OwnershipSyncResult:
    owner_updates: int = 0
    manager_updates: int = 0

    @property
    def total(self) -> int:
        return self.owner_updates + self.manager_updates


@dataclass(frozen=True)
class ManagerIdentity:
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None

    @property
    def full_name(self) -> str | None:
        name = " ".join(p for p in (self.first_name, self.last_name) if p)
        return name or None


# =============================================================================
# Sync
# =============================================================================

def sync_ownership(db: Session, email: str) -> OwnershipSyncResult:
    """
    Link assets to the user registered under `email`.

    Sets owner_id on assets whose employee email matches and whose owner_id
    is NULL, and manager_id on assets whose manager email matches and whose
    manager_id is NULL. Existing links are never replaced, so a second call
    returns zero updates.
    """
    user = directory_service.get_user_by_email(db, email)
    if not user:
        return OwnershipSyncResult()

    normalized = normalize_email(email)
    owner_updates = (
        db.query(Asset)
        .filter(
            func.lower(Asset.employee_email) == normalized,
            Asset.owner_id.is_(None),
        )
        .update({Asset.owner_id: user.id}, synchronize_session="fetch")
    )
    manager_updates = (
        db.query(Asset)
        .filter(
            func.lower(Asset.manager_email) == normalized,
            Asset.manager_id.is_(None),
        )
        .update({Asset.manager_id: user.id}, synchronize_session="fetch")
    )

    if owner_updates or manager_updates:
        logger.info(
            "Ownership sync for %s: %s owner link(s), %s manager link(s)",
            hash_email(email), owner_updates, manager_updates,
        )
    return OwnershipSyncResult(owner_updates=owner_updates, manager_updates=manager_updates)


def update_manager_for_employee(
    db: Session,
    employee_email: str,
    manager_first_name: str | None,
    manager_last_name: str | None,
    manager_email: str | None,
) -> int:
    """
    Rewrite the manager fields on every asset of an employee.

    Assets are matched by employee email and, when the employee has an
    account, by owner_id (catches rows whose email text has drifted).
    manager_id is cleared; run sync_ownership(manager_email) afterwards to
    link a registered manager. Returns the number of assets updated.
    """
    normalized = normalize_email(employee_email)
    conditions = [func.lower(Asset.employee_email) == normalized]
    user = directory_service.get_user_by_email(db, employee_email)
    if user:
        conditions.append(Asset.owner_id == user.id)

    updated = (
        db.query(Asset)
        .filter(or_(*conditions))
        .update(
            {
                Asset.manager_first_name: manager_first_name,
                Asset.manager_last_name: manager_last_name,
                Asset.manager_email: manager_email,
                Asset.manager_id: None,
            },
            synchronize_session="fetch",
        )
    )
    logger.info("Updated manager on %s asset(s) for %s", updated, hash_email(employee_email))
    return updated


# =============================================================================
# Display resolution
# =============================================================================

def resolve_manager(denormalized: ManagerIdentity, linked: User | None) -> ManagerIdentity:
    """
    Effective manager identity for display.

    A linked account wins over the text stored on the asset, which is how a
    manager's own profile edits reach every asset they manage.
    """
    if linked is None:
        return denormalized
    return ManagerIdentity(
        first_name=linked.first_name,
        last_name=linked.last_name,
        email=linked.email,
    )


def resolve_asset_manager(asset: Asset) -> ManagerIdentity:
    denormalized = ManagerIdentity(
        first_name=asset.manager_first_name,
        last_name=asset.manager_last_name,
        email=asset.manager_email,
    )
    return resolve_manager(denormalized, asset.manager)


def resolve_manager_email_for_user(db: Session, user: User) -> str | None:
    """
    Manager email to escalate to for a user.

    The user's own profile wins; otherwise the first manager found on the
    user's assets, preferring a linked account.
    """
    if user.manager_email:
        return user.manager_email
    for asset in directory_service.get_assets_for_owner(db, user):
        email = resolve_asset_manager(asset).email
        if email:
            return email
    return None


# =============================================================================
# Role promotion
# =============================================================================

def promote_to_manager_if_needed(
    db: Session,
    email: str | None,
    actor_email: str | None = None,
) -> bool:
    """
    Upgrade a user to manager when someone reports to them.

    Applies when the email appears as manager_email on an asset or on another
    user's profile and the user is not already manager or admin. Never
    demotes. Returns True when the role changed.
    """
    user = directory_service.get_user_by_email(db, email)
    if not user:
        return False
    if Role(user.role) in ROLES_EXEMPT_FROM_PROMOTION:
        return False
    if not directory_service.email_is_referenced_as_manager(db, user.email):
        return False

    previous_role = user.role
    user.role = Role.MANAGER.value
    db.flush()

    audit_service.log(
        db,
        AuditAction.AUTO_ASSIGN_MANAGER_ROLE,
        AuditEntity.USER,
        entity_id=user.id,
        entity_name=user.email,
        details={"previous_role": previous_role, "new_role": Role.MANAGER.value},
        actor_email=actor_email or "system",
    )
    logger.info("Promoted user %s from %s to manager", user.id, previous_role)
    return True
