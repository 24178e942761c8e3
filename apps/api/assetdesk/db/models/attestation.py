"""Attestation campaign models."""

from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, ForeignKey, Index, Integer, String, Text, UniqueConstraint, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from assetdesk.core.config import settings
from assetdesk.db.base import Base
from assetdesk.db.enums import CampaignStatus, CampaignTargetType, RecordStatus

if TYPE_CHECKING:
    from assetdesk.db.models import Asset, Company, User


class AttestationCampaign(Base):
    """
    A time-boxed exercise asking employees to reconfirm their assets.

    target_company_ids and target_user_ids are JSON arrays of integers, used
    when target_type is 'companies' or 'selected' respectively.
    """

    __tablename__ = "attestation_campaigns"
    __table_args__ = (
        Index("ix_attestation_campaigns_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_date: Mapped[datetime | None] = mapped_column(nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=CampaignStatus.DRAFT.value, server_default=text("'draft'"), nullable=False
    )
    target_type: Mapped[str] = mapped_column(
        String(20), default=CampaignTargetType.ALL.value, server_default=text("'all'"), nullable=False
    )
    target_company_ids: Mapped[list[int] | None] = mapped_column(JSON, nullable=True)
    target_user_ids: Mapped[list[int] | None] = mapped_column(JSON, nullable=True)

    # Thresholds, in whole days since start_date
    reminder_days: Mapped[int] = mapped_column(
        Integer, default=lambda: settings.DEFAULT_REMINDER_DAYS, nullable=False
    )
    escalation_days: Mapped[int] = mapped_column(
        Integer, default=lambda: settings.DEFAULT_ESCALATION_DAYS, nullable=False
    )
    unregistered_reminder_days: Mapped[int] = mapped_column(
        Integer, default=lambda: settings.DEFAULT_UNREGISTERED_REMINDER_DAYS, nullable=False
    )

    created_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    created_by: Mapped["User | None"] = relationship()
    records: Mapped[list["AttestationRecord"]] = relationship(
        back_populates="campaign", cascade="all, delete-orphan"
    )
    pending_invites: Mapped[list["AttestationPendingInvite"]] = relationship(
        back_populates="campaign", cascade="all, delete-orphan"
    )


class AttestationRecord(Base):
    """One user's attestation within a campaign. Unique per (campaign, user)."""

    __tablename__ = "attestation_records"
    __table_args__ = (
        UniqueConstraint("campaign_id", "user_id", name="uq_attestation_record_campaign_user"),
        Index("ix_attestation_records_user", "user_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    campaign_id: Mapped[int] = mapped_column(
        ForeignKey("attestation_campaigns.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20), default=RecordStatus.PENDING.value, server_default=text("'pending'"), nullable=False
    )
    started_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # One-shot markers (idempotency keys for the scheduler)
    reminder_sent_at: Mapped[datetime | None] = mapped_column(nullable=True)
    escalation_sent_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    campaign: Mapped["AttestationCampaign"] = relationship(back_populates="records")
    user: Mapped["User"] = relationship()
    asset_reviews: Mapped[list["AttestationAssetReview"]] = relationship(
        back_populates="record", cascade="all, delete-orphan"
    )
    new_assets: Mapped[list["AttestationNewAsset"]] = relationship(
        back_populates="record", cascade="all, delete-orphan"
    )


class AttestationAssetReview(Base):
    """An employee's confirmation (or status change) of one existing asset."""

    __tablename__ = "attestation_assets"
    __table_args__ = (
        Index("ix_attestation_assets_record", "attestation_record_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    attestation_record_id: Mapped[int] = mapped_column(
        ForeignKey("attestation_records.id", ondelete="CASCADE"), nullable=False
    )
    asset_id: Mapped[int] = mapped_column(
        ForeignKey("assets.id", ondelete="CASCADE"), nullable=False
    )
    attested_status: Mapped[str] = mapped_column(String(20), nullable=False)
    previous_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    attested_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    record: Mapped["AttestationRecord"] = relationship(back_populates="asset_reviews")
    asset: Mapped["Asset"] = relationship()


class AttestationPendingInvite(Base):
    """
    Placeholder for an in-scope asset owner with no account at launch.

    registered_at and converted_record_id are set once, together, when the
    addressee registers while the campaign is still active.
    """

    __tablename__ = "attestation_pending_invites"
    __table_args__ = (
        Index("ix_attestation_invites_campaign_email", "campaign_id", "employee_email"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    campaign_id: Mapped[int] = mapped_column(
        ForeignKey("attestation_campaigns.id", ondelete="CASCADE"), nullable=False
    )
    employee_email: Mapped[str] = mapped_column(String(255), nullable=False)
    employee_first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    employee_last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    invite_token: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    invite_sent_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # One-shot markers
    reminder_sent_at: Mapped[datetime | None] = mapped_column(nullable=True)
    escalation_sent_at: Mapped[datetime | None] = mapped_column(nullable=True)
    registered_at: Mapped[datetime | None] = mapped_column(nullable=True)
    converted_record_id: Mapped[int | None] = mapped_column(
        ForeignKey("attestation_records.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    campaign: Mapped["AttestationCampaign"] = relationship(back_populates="pending_invites")

    @property
    def employee_name(self) -> str:
        name = " ".join(p for p in (self.employee_first_name, self.employee_last_name) if p)
        return name or self.employee_email


class AttestationNewAsset(Base):
    """
    Staging row for an asset declared during attestation.

    Transferred into the assets table when the record completes. The row is
    kept afterwards; transferred_asset_id points at the created asset.
    """

    __tablename__ = "attestation_new_assets"
    __table_args__ = (
        Index("ix_attestation_new_assets_record", "attestation_record_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    attestation_record_id: Mapped[int] = mapped_column(
        ForeignKey("attestation_records.id", ondelete="CASCADE"), nullable=False
    )
    asset_type: Mapped[str] = mapped_column(String(50), nullable=False)
    make: Mapped[str | None] = mapped_column(String(100), nullable=True)
    model: Mapped[str | None] = mapped_column(String(100), nullable=True)
    serial_number: Mapped[str] = mapped_column(String(100), nullable=False)
    asset_tag: Mapped[str] = mapped_column(String(100), nullable=False)
    company_id: Mapped[int] = mapped_column(
        ForeignKey("companies.id", ondelete="RESTRICT"), nullable=False
    )
    issued_date: Mapped[date | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    employee_first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    employee_last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    employee_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    manager_first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    manager_last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    manager_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    transferred_asset_id: Mapped[int | None] = mapped_column(
        ForeignKey("assets.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    record: Mapped["AttestationRecord"] = relationship(back_populates="new_assets")
    company: Mapped["Company"] = relationship()
