"""Identity directory - case-insensitive lookups of users and assets.

Pure accessors. Business rules live in ownership_service and
attestation_service.
"""

from dataclasses import dataclass

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from assetdesk.db.enums import Role
from assetdesk.db.models import Asset, User
from assetdesk.utils.normalization import normalize_email


@dataclass(frozen=True)
class UnregisteredOwner:
    """An employee email present on assets but with no user account."""

    email: str
    first_name: str | None
    last_name: str | None
    asset_count: int


# =============================================================================
# Users
# =============================================================================

def get_user(db: Session, user_id: int) -> User | None:
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_email(db: Session, email: str | None) -> User | None:
    """Case-insensitive lookup. Returns None for empty input."""
    normalized = normalize_email(email)
    if not normalized:
        return None
    return db.query(User).filter(func.lower(User.email) == normalized).first()


def list_users(db: Session) -> list[User]:
    return db.query(User).order_by(User.id).all()


def list_users_by_role(db: Session, role: Role) -> list[User]:
    return db.query(User).filter(User.role == role.value).order_by(User.id).all()


def get_active_users_by_ids(db: Session, user_ids: list[int]) -> list[User]:
    """Active users among the given ids; unknown ids are ignored."""
    if not user_ids:
        return []
    return (
        db.query(User)
        .filter(User.id.in_(user_ids), User.is_active.is_(True))
        .order_by(User.id)
        .all()
    )


def count_users(db: Session) -> int:
    return db.query(func.count(User.id)).scalar() or 0


def list_direct_reports(db: Session, manager_email: str) -> list[User]:
    """Users whose denormalized manager_email points at this email."""
    normalized = normalize_email(manager_email)
    return db.query(User).filter(func.lower(User.manager_email) == normalized).all()


# =============================================================================
# Assets
# =============================================================================

def get_assets_by_employee_email(db: Session, email: str) -> list[Asset]:
    normalized = normalize_email(email)
    return (
        db.query(Asset)
        .filter(func.lower(Asset.employee_email) == normalized)
        .order_by(Asset.id)
        .all()
    )


def get_assets_by_manager_email(db: Session, email: str) -> list[Asset]:
    normalized = normalize_email(email)
    return (
        db.query(Asset)
        .filter(func.lower(Asset.manager_email) == normalized)
        .order_by(Asset.id)
        .all()
    )


def count_assets_by_employee_email(db: Session, email: str) -> int:
    normalized = normalize_email(email)
    return (
        db.query(func.count(Asset.id))
        .filter(func.lower(Asset.employee_email) == normalized)
        .scalar()
        or 0
    )


def get_assets_for_owner(
    db: Session,
    user: User,
    company_ids: list[int] | None = None,
) -> list[Asset]:
    """Assets linked to the user by owner_id, or by employee email if not yet linked."""
    query = db.query(Asset).filter(
        or_(
            Asset.owner_id == user.id,
            func.lower(Asset.employee_email) == normalize_email(user.email),
        )
    )
    if company_ids:
        query = query.filter(Asset.company_id.in_(company_ids))
    return query.order_by(Asset.id).all()


def email_is_referenced_as_manager(db: Session, email: str) -> bool:
    """True when the email is a manager on any asset or any user profile."""
    normalized = normalize_email(email)
    if not normalized:
        return False
    on_asset = (
        db.query(Asset.id)
        .filter(func.lower(Asset.manager_email) == normalized)
        .first()
    )
    if on_asset:
        return True
    on_user = (
        db.query(User.id)
        .filter(func.lower(User.manager_email) == normalized)
        .first()
    )
    return on_user is not None


# =============================================================================
# Campaign scope
# =============================================================================

def get_registered_owners_by_company_ids(db: Session, company_ids: list[int]) -> list[User]:
    """
    Distinct active users holding at least one asset in the given companies.

    Matches on owner_id and on employee email, so users whose assets have not
    been linked yet are still found. A person with assets in several target
    companies is returned once.
    """
    if not company_ids:
        return []
    return (
        db.query(User)
        .join(
            Asset,
            or_(
                Asset.owner_id == User.id,
                func.lower(Asset.employee_email) == func.lower(User.email),
            ),
        )
        .filter(Asset.company_id.in_(company_ids), User.is_active.is_(True))
        .distinct()
        .order_by(User.id)
        .all()
    )


def get_unregistered_owners(
    db: Session,
    company_ids: list[int] | None = None,
) -> list[UnregisteredOwner]:
    """
    Employee emails on assets with no matching user, grouped case-insensitively.

    Names come from the lowest-id asset for that email.
    """
    registered = select(func.lower(User.email))
    lowered = func.lower(Asset.employee_email)
    query = (
        db.query(
            lowered.label("email"),
            func.min(Asset.id).label("first_asset_id"),
            func.count(Asset.id).label("asset_count"),
        )
        .filter(Asset.owner_id.is_(None))
        .filter(lowered.notin_(registered))
    )
    if company_ids is not None:
        query = query.filter(Asset.company_id.in_(company_ids))
    rows = query.group_by(lowered).order_by(lowered).all()

    first_ids = [row.first_asset_id for row in rows]
    names = {
        asset.id: (asset.employee_first_name, asset.employee_last_name)
        for asset in db.query(Asset).filter(Asset.id.in_(first_ids)).all()
    } if first_ids else {}

    owners = []
    for row in rows:
        first_name, last_name = names.get(row.first_asset_id, (None, None))
        owners.append(
            UnregisteredOwner(
                email=row.email,
                first_name=first_name,
                last_name=last_name,
                asset_count=row.asset_count,
            )
        )
    return owners
