"""User and auth schemas."""
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from assetdesk.db.enums import Role


class RegisterRequest(BaseModel):
    """
    Registration payload.

    The identity provider has already authenticated the caller; only
    profile fields are collected here.
    """
    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    manager_first_name: str | None = Field(None, max_length=100)
    manager_last_name: str | None = Field(None, max_length=100)
    manager_email: EmailStr | None = None
    manager_name: str | None = Field(None, max_length=200)


class LoginRequest(BaseModel):
    email: EmailStr


class ProfileUpdate(BaseModel):
    """Self-service profile update."""
    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, min_length=1, max_length=100)
    manager_first_name: str | None = Field(None, max_length=100)
    manager_last_name: str | None = Field(None, max_length=100)
    manager_email: EmailStr | None = None
    manager_name: str | None = Field(None, max_length=200)


class CompleteProfileRequest(BaseModel):
    """Manager details collected after first SSO login."""
    manager_first_name: str = Field(..., min_length=1, max_length=100)
    manager_last_name: str = Field(..., min_length=1, max_length=100)
    manager_email: EmailStr


class AdminUserUpdate(ProfileUpdate):
    """Admin edit of another user (same fields plus role)."""
    role: Role | None = None


class RoleUpdate(BaseModel):
    role: Role


class UserRead(BaseModel):
    id: int
    email: str
    first_name: str | None
    last_name: str | None
    role: Role
    manager_first_name: str | None
    manager_last_name: str | None
    manager_email: str | None
    profile_complete: bool
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AuthResponse(BaseModel):
    """Registration/login result."""
    user: UserRead
    token: str
    redirect_to_attestations: bool = False
    converted_record_ids: list[int] = []
