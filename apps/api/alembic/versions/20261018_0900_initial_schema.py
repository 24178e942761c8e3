"""initial_schema

Revision ID: 20261018_0900
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261018_0900'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=True),
        sa.Column("last_name", sa.String(length=100), nullable=True),
        sa.Column("role", sa.String(length=30), server_default=sa.text("'employee'"), nullable=False),
        sa.Column("manager_first_name", sa.String(length=100), nullable=True),
        sa.Column("manager_last_name", sa.String(length=100), nullable=True),
        sa.Column("manager_email", sa.String(length=255), nullable=True),
        sa.Column("profile_complete", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("email"),
    )
    op.create_index("ix_users_manager_email", "users", ["manager_email"])

    op.create_table(
        "companies",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "assets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("employee_first_name", sa.String(length=100), nullable=False),
        sa.Column("employee_last_name", sa.String(length=100), nullable=False),
        sa.Column("employee_email", sa.String(length=255), nullable=False),
        sa.Column("owner_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("manager_first_name", sa.String(length=100), nullable=True),
        sa.Column("manager_last_name", sa.String(length=100), nullable=True),
        sa.Column("manager_email", sa.String(length=255), nullable=True),
        sa.Column("manager_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("asset_type", sa.String(length=50), nullable=False),
        sa.Column("make", sa.String(length=100), nullable=True),
        sa.Column("model", sa.String(length=100), nullable=True),
        sa.Column("serial_number", sa.String(length=100), nullable=False),
        sa.Column("asset_tag", sa.String(length=100), nullable=False),
        sa.Column("status", sa.String(length=20), server_default=sa.text("'active'"), nullable=False),
        sa.Column("issued_date", sa.Date(), nullable=True),
        sa.Column("returned_date", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("serial_number"),
        sa.UniqueConstraint("asset_tag"),
    )
    op.create_index("ix_assets_employee_email", "assets", ["employee_email"])
    op.create_index("ix_assets_manager_email", "assets", ["manager_email"])
    op.create_index("ix_assets_company_id", "assets", ["company_id"])
    op.create_index("ix_assets_owner_id", "assets", ["owner_id"])
    op.create_index("ix_assets_manager_id", "assets", ["manager_id"])

    op.create_table(
        "attestation_campaigns",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(length=20), server_default=sa.text("'draft'"), nullable=False),
        sa.Column("target_type", sa.String(length=20), server_default=sa.text("'all'"), nullable=False),
        sa.Column("target_company_ids", sa.JSON(), nullable=True),
        sa.Column("target_user_ids", sa.JSON(), nullable=True),
        sa.Column("reminder_days", sa.Integer(), nullable=False),
        sa.Column("escalation_days", sa.Integer(), nullable=False),
        sa.Column("unregistered_reminder_days", sa.Integer(), nullable=False),
        sa.Column("created_by_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_attestation_campaigns_status", "attestation_campaigns", ["status"])

    op.create_table(
        "attestation_records",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "campaign_id", sa.Integer(),
            sa.ForeignKey("attestation_campaigns.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("status", sa.String(length=20), server_default=sa.text("'pending'"), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reminder_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("escalation_sent_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("campaign_id", "user_id", name="uq_attestation_record_campaign_user"),
    )
    op.create_index("ix_attestation_records_user", "attestation_records", ["user_id"])

    op.create_table(
        "attestation_assets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "attestation_record_id", sa.Integer(),
            sa.ForeignKey("attestation_records.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("asset_id", sa.Integer(), sa.ForeignKey("assets.id", ondelete="CASCADE"), nullable=False),
        sa.Column("attested_status", sa.String(length=20), nullable=False),
        sa.Column("previous_status", sa.String(length=20), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("attested_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_attestation_assets_record", "attestation_assets", ["attestation_record_id"])

    op.create_table(
        "attestation_pending_invites",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "campaign_id", sa.Integer(),
            sa.ForeignKey("attestation_campaigns.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("employee_email", sa.String(length=255), nullable=False),
        sa.Column("employee_first_name", sa.String(length=100), nullable=True),
        sa.Column("employee_last_name", sa.String(length=100), nullable=True),
        sa.Column("invite_token", sa.String(length=128), nullable=False),
        sa.Column("invite_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reminder_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("escalation_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("registered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "converted_record_id", sa.Integer(),
            sa.ForeignKey("attestation_records.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("invite_token"),
    )
    op.create_index(
        "ix_attestation_invites_campaign_email",
        "attestation_pending_invites",
        ["campaign_id", "employee_email"],
    )

    op.create_table(
        "attestation_new_assets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "attestation_record_id", sa.Integer(),
            sa.ForeignKey("attestation_records.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("asset_type", sa.String(length=50), nullable=False),
        sa.Column("make", sa.String(length=100), nullable=True),
        sa.Column("model", sa.String(length=100), nullable=True),
        sa.Column("serial_number", sa.String(length=100), nullable=False),
        sa.Column("asset_tag", sa.String(length=100), nullable=False),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("issued_date", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("employee_first_name", sa.String(length=100), nullable=True),
        sa.Column("employee_last_name", sa.String(length=100), nullable=True),
        sa.Column("employee_email", sa.String(length=255), nullable=True),
        sa.Column("manager_first_name", sa.String(length=100), nullable=True),
        sa.Column("manager_last_name", sa.String(length=100), nullable=True),
        sa.Column("manager_email", sa.String(length=255), nullable=True),
        sa.Column(
            "transferred_asset_id", sa.Integer(),
            sa.ForeignKey("assets.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_attestation_new_assets_record", "attestation_new_assets", ["attestation_record_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=True),
        sa.Column("entity_name", sa.String(length=255), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("actor_email", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity_type", "entity_id"])
    op.create_index("ix_audit_logs_created", "audit_logs", ["created_at"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("audit_logs")
    op.drop_table("attestation_new_assets")
    op.drop_table("attestation_pending_invites")
    op.drop_table("attestation_assets")
    op.drop_table("attestation_records")
    op.drop_table("attestation_campaigns")
    op.drop_table("assets")
    op.drop_table("companies")
    op.drop_table("users")
