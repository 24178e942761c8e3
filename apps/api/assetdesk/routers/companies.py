"""Company endpoints."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from assetdesk.core.deps import get_current_user, get_db, require_csrf_header, require_roles
from assetdesk.db.enums import ROLES_CAN_MANAGE_USERS
from assetdesk.db.models import Company, User
from assetdesk.schemas.company import CompanyCreate, CompanyRead, CompanyUpdate
from assetdesk.services import company_service

router = APIRouter(prefix="/companies", tags=["companies"])


def _get_company_or_404(db: Session, company_id: int) -> Company:
    company = company_service.get_company(db, company_id)
    if not company:
        raise HTTPException(status_code=404, detail="Company not found")
    return company


@router.get("", response_model=list[CompanyRead])
def list_companies(
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    return company_service.list_companies(db)


@router.get("/{company_id}", response_model=CompanyRead)
def get_company(
    company_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    return _get_company_or_404(db, company_id)


@router.post(
    "",
    response_model=CompanyRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_company(
    body: CompanyCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_roles(ROLES_CAN_MANAGE_USERS)),
):
    try:
        return company_service.create_company(db, body, actor_email=admin.email)
    except company_service.CompanyConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.patch(
    "/{company_id}",
    response_model=CompanyRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_company(
    company_id: int,
    body: CompanyUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_roles(ROLES_CAN_MANAGE_USERS)),
):
    company = _get_company_or_404(db, company_id)
    try:
        return company_service.update_company(db, company, body, actor_email=admin.email)
    except company_service.CompanyConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.delete("/{company_id}", status_code=204, dependencies=[Depends(require_csrf_header)])
def delete_company(
    company_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(require_roles(ROLES_CAN_MANAGE_USERS)),
):
    company = _get_company_or_404(db, company_id)
    try:
        company_service.delete_company(db, company, actor_email=admin.email)
    except company_service.CompanyConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
