"""Company and asset models."""

from __future__ import annotations

from typing import TYPE_CHECKING

from datetime import date, datetime

from sqlalchemy import ForeignKey, Index, Integer, String, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from assetdesk.db.base import Base
from assetdesk.db.enums import AssetStatus

if TYPE_CHECKING:
    from assetdesk.db.models import User


class Company(Base):
    """Scoping unit for assets and company-targeted campaigns."""

    __tablename__ = "companies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    assets: Mapped[list["Asset"]] = relationship(back_populates="company")


class Asset(Base):
    """
    A company-issued item.

    employee_email is always present and is the ownership key. owner_id and
    manager_id stay null until a registered user's email matches
    case-insensitively (see ownership_service.sync_ownership).
    """

    __tablename__ = "assets"
    __table_args__ = (
        Index("ix_assets_employee_email", "employee_email"),
        Index("ix_assets_manager_email", "manager_email"),
        Index("ix_assets_company_id", "company_id"),
        Index("ix_assets_owner_id", "owner_id"),
        Index("ix_assets_manager_id", "manager_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Owner identity (denormalized + link)
    employee_first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    employee_last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    employee_email: Mapped[str] = mapped_column(String(255), nullable=False)
    owner_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    # Manager identity (denormalized + link)
    manager_first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    manager_last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    manager_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    manager_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    company_id: Mapped[int] = mapped_column(
        ForeignKey("companies.id", ondelete="RESTRICT"), nullable=False
    )

    # Item attributes
    asset_type: Mapped[str] = mapped_column(String(50), nullable=False)
    make: Mapped[str | None] = mapped_column(String(100), nullable=True)
    model: Mapped[str | None] = mapped_column(String(100), nullable=True)
    serial_number: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    asset_tag: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=AssetStatus.ACTIVE.value, server_default=text("'active'"), nullable=False
    )
    issued_date: Mapped[date | None] = mapped_column(nullable=True)
    returned_date: Mapped[date | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    owner: Mapped["User | None"] = relationship(
        back_populates="owned_assets", foreign_keys=[owner_id]
    )
    manager: Mapped["User | None"] = relationship(foreign_keys=[manager_id])
    company: Mapped["Company"] = relationship(back_populates="assets")
