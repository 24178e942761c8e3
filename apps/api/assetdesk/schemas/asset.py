"""Asset schemas for request/response validation."""
from datetime import date, datetime

from pydantic import BaseModel, EmailStr, Field, model_validator

from assetdesk.db.enums import AssetStatus


class AssetCreate(BaseModel):
    """Create an asset. Owner and manager are given by email."""
    employee_first_name: str = Field(..., min_length=1, max_length=100)
    employee_last_name: str = Field(..., min_length=1, max_length=100)
    employee_email: EmailStr
    manager_first_name: str | None = Field(None, max_length=100)
    manager_last_name: str | None = Field(None, max_length=100)
    manager_email: EmailStr | None = None
    company_id: int
    asset_type: str = Field(..., min_length=1, max_length=50)
    make: str | None = Field(None, max_length=100)
    model: str | None = Field(None, max_length=100)
    serial_number: str = Field(..., min_length=1, max_length=100)
    asset_tag: str = Field(..., min_length=1, max_length=100)
    status: AssetStatus = AssetStatus.ACTIVE
    issued_date: date | None = None
    returned_date: date | None = None
    notes: str | None = None


class AssetUpdate(BaseModel):
    """Partial update. Editing employee_email re-links the owner."""
    employee_first_name: str | None = Field(None, min_length=1, max_length=100)
    employee_last_name: str | None = Field(None, min_length=1, max_length=100)
    employee_email: EmailStr | None = None
    manager_first_name: str | None = Field(None, max_length=100)
    manager_last_name: str | None = Field(None, max_length=100)
    manager_email: EmailStr | None = None
    company_id: int | None = None
    asset_type: str | None = Field(None, min_length=1, max_length=50)
    make: str | None = Field(None, max_length=100)
    model: str | None = Field(None, max_length=100)
    serial_number: str | None = Field(None, min_length=1, max_length=100)
    asset_tag: str | None = Field(None, min_length=1, max_length=100)
    issued_date: date | None = None
    returned_date: date | None = None
    notes: str | None = None


class AssetStatusUpdate(BaseModel):
    status: AssetStatus
    returned_date: date | None = None
    notes: str | None = None

    @model_validator(mode="after")
    def _returned_needs_date(self):
        if self.status == AssetStatus.RETURNED and not self.returned_date:
            raise ValueError("returned_date is required when status is 'returned'")
        return self


class BulkManagerUpdate(BaseModel):
    """Reassign the manager on a set of assets."""
    asset_ids: list[int] = Field(..., min_length=1)
    manager_first_name: str | None = None
    manager_last_name: str | None = None
    manager_email: EmailStr


class AssetRead(BaseModel):
    """
    Asset as returned to clients.

    manager_* fields are already resolved: a linked manager account wins
    over the denormalized text stored on the row.
    """
    id: int
    employee_first_name: str
    employee_last_name: str
    employee_email: str
    owner_id: int | None
    manager_first_name: str | None
    manager_last_name: str | None
    manager_email: str | None
    manager_id: int | None
    company_id: int
    company_name: str | None = None
    asset_type: str
    make: str | None
    model: str | None
    serial_number: str
    asset_tag: str
    status: str
    issued_date: date | None
    returned_date: date | None
    notes: str | None
    created_at: datetime
    updated_at: datetime
