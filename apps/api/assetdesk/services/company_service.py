"""Company store."""

from sqlalchemy import func
from sqlalchemy.orm import Session

from assetdesk.db.enums import AuditAction, AuditEntity
from assetdesk.db.models import Asset, Company
from assetdesk.schemas.company import CompanyCreate, CompanyUpdate
from assetdesk.services import audit_service


class CompanyConflictError(ValueError):
    """Duplicate company name, or delete of a company still in use."""


def get_company(db: Session, company_id: int) -> Company | None:
    return db.query(Company).filter(Company.id == company_id).first()


def get_company_by_name(db: Session, name: str) -> Company | None:
    return db.query(Company).filter(func.lower(Company.name) == name.strip().lower()).first()


def list_companies(db: Session) -> list[Company]:
    return db.query(Company).order_by(Company.name).all()


def existing_company_ids(db: Session, company_ids: list[int]) -> list[int]:
    """Filter ids down to companies that exist, keeping the given order."""
    if not company_ids:
        return []
    found = {
        row.id for row in db.query(Company.id).filter(Company.id.in_(company_ids)).all()
    }
    return [cid for cid in dict.fromkeys(company_ids) if cid in found]


def create_company(db: Session, data: CompanyCreate, actor_email: str | None = None) -> Company:
    if get_company_by_name(db, data.name):
        raise CompanyConflictError(f"Company '{data.name}' already exists")

    company = Company(name=data.name.strip(), description=data.description)
    db.add(company)
    db.flush()
    audit_service.log(
        db, AuditAction.CREATE, AuditEntity.COMPANY,
        entity_id=company.id, entity_name=company.name, actor_email=actor_email,
    )
    db.commit()
    db.refresh(company)
    return company


def update_company(
    db: Session,
    company: Company,
    data: CompanyUpdate,
    actor_email: str | None = None,
) -> Company:
    updates = data.model_dump(exclude_unset=True)
    new_name = updates.get("name")
    if new_name:
        existing = get_company_by_name(db, new_name)
        if existing and existing.id != company.id:
            raise CompanyConflictError(f"Company '{new_name}' already exists")
        updates["name"] = new_name.strip()

    for field, value in updates.items():
        setattr(company, field, value)
    audit_service.log(
        db, AuditAction.UPDATE, AuditEntity.COMPANY,
        entity_id=company.id, entity_name=company.name,
        details={"fields": sorted(updates)}, actor_email=actor_email,
    )
    db.commit()
    db.refresh(company)
    return company


def delete_company(db: Session, company: Company, actor_email: str | None = None) -> None:
    """Refuses while any asset still references the company."""
    in_use = db.query(func.count(Asset.id)).filter(Asset.company_id == company.id).scalar() or 0
    if in_use:
        raise CompanyConflictError(
            f"Company '{company.name}' still has {in_use} asset(s) assigned"
        )
    audit_service.log(
        db, AuditAction.DELETE, AuditEntity.COMPANY,
        entity_id=company.id, entity_name=company.name, actor_email=actor_email,
    )
    db.delete(company)
    db.commit()
