"""User identity models."""

from __future__ import annotations

from typing import TYPE_CHECKING

from datetime import datetime

from sqlalchemy import Boolean, Index, Integer, String, false, func, text, true
from sqlalchemy.orm import Mapped, mapped_column, relationship

from assetdesk.db.base import Base
from assetdesk.db.enums import Role

if TYPE_CHECKING:
    from assetdesk.db.models import Asset


class User(Base):
    """
    A registered person.

    Email is unique and every lookup compares lower(email). The manager_*
    fields are a denormalized pointer to this user's own manager, who may
    not have an account yet.
    """

    __tablename__ = "users"
    __table_args__ = (
        Index("ix_users_manager_email", "manager_email"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    role: Mapped[str] = mapped_column(
        String(30), default=Role.EMPLOYEE.value, server_default=text("'employee'"), nullable=False
    )

    # Denormalized manager pointer
    manager_first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    manager_last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    manager_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    profile_complete: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=true(), nullable=False
    )
    last_login_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    owned_assets: Mapped[list["Asset"]] = relationship(
        back_populates="owner", foreign_keys="Asset.owner_id"
    )

    @property
    def full_name(self) -> str:
        name = " ".join(p for p in (self.first_name, self.last_name) if p)
        return name or self.email

    def refresh_profile_complete(self) -> None:
        """Profile is complete once name and manager email are known."""
        self.profile_complete = bool(self.first_name and self.last_name and self.manager_email)
