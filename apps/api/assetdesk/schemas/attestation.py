"""Attestation campaign schemas."""
from datetime import date, datetime

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from assetdesk.db.enums import AssetStatus, CampaignTargetType
from assetdesk.schemas.asset import AssetRead


# =============================================================================
# Campaigns
# =============================================================================

class CampaignCreate(BaseModel):
    """Create a campaign in draft status."""
    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    target_type: CampaignTargetType = CampaignTargetType.ALL
    target_company_ids: list[int] | None = None
    target_user_ids: list[int] | None = None
    reminder_days: int | None = Field(None, ge=1)
    escalation_days: int | None = Field(None, ge=1)
    unregistered_reminder_days: int | None = Field(None, ge=1)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _empty_string_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def _scope_needs_ids(self):
        if self.target_type == CampaignTargetType.COMPANIES and not self.target_company_ids:
            raise ValueError("target_company_ids is required when target_type is 'companies'")
        if self.target_type == CampaignTargetType.SELECTED and not self.target_user_ids:
            raise ValueError("target_user_ids is required when target_type is 'selected'")
        return self


class CampaignUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    target_type: CampaignTargetType | None = None
    target_company_ids: list[int] | None = None
    target_user_ids: list[int] | None = None
    reminder_days: int | None = Field(None, ge=1)
    escalation_days: int | None = Field(None, ge=1)
    unregistered_reminder_days: int | None = Field(None, ge=1)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _empty_string_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class CampaignRead(BaseModel):
    id: int
    name: str
    description: str | None
    start_date: datetime | None
    end_date: datetime | None
    status: str
    target_type: str
    target_company_ids: list[int] | None
    target_user_ids: list[int] | None = None
    reminder_days: int
    escalation_days: int
    unregistered_reminder_days: int
    created_by_id: int | None
    created_at: datetime
    updated_at: datetime
    pending_invites_count: int = 0

    model_config = {"from_attributes": True}


class CampaignStats(BaseModel):
    total: int = 0
    pending: int = 0
    in_progress: int = 0
    completed: int = 0
    reminders_sent: int = 0
    escalations_sent: int = 0
    pending_invites: int = 0
    converted_invites: int = 0


class LaunchResponse(BaseModel):
    launched: bool
    reason: str | None = None
    records_created: int = 0
    invites_created: int = 0


class DashboardRecord(BaseModel):
    """One row of the campaign dashboard."""
    record_id: int
    user_id: int
    user_email: str
    user_name: str
    user_role: str
    manager_email: str | None
    status: str
    started_at: datetime | None
    completed_at: datetime | None
    reminder_sent_at: datetime | None
    escalation_sent_at: datetime | None
    companies: list[str] = []


class PendingInviteRead(BaseModel):
    id: int
    campaign_id: int
    employee_email: str
    employee_first_name: str | None
    employee_last_name: str | None
    invite_sent_at: datetime | None
    reminder_sent_at: datetime | None
    escalation_sent_at: datetime | None
    registered_at: datetime | None
    converted_record_id: int | None

    model_config = {"from_attributes": True}


class CampaignDashboard(BaseModel):
    campaign: CampaignRead
    stats: CampaignStats
    records: list[DashboardRecord]
    pending_invites: list[PendingInviteRead]


class EscalationRequest(BaseModel):
    message: str | None = Field(None, max_length=2000)


class NudgeResponse(BaseModel):
    sent: int = 0
    skipped: int = 0
    failed: int = 0


# =============================================================================
# Records (employee self-service)
# =============================================================================

class RecordRead(BaseModel):
    id: int
    campaign_id: int
    user_id: int
    status: str
    started_at: datetime | None
    completed_at: datetime | None
    reminder_sent_at: datetime | None
    escalation_sent_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class MyAttestation(RecordRead):
    campaign_name: str
    campaign_description: str | None
    campaign_end_date: datetime | None


class AttestAssetRequest(BaseModel):
    attested_status: AssetStatus
    notes: str | None = None
    returned_date: date | None = None

    @model_validator(mode="after")
    def _returned_needs_date(self):
        if self.attested_status == AssetStatus.RETURNED and not self.returned_date:
            raise ValueError("returned_date is required when status is 'returned'")
        return self


class AssetReviewRead(BaseModel):
    id: int
    asset_id: int
    attested_status: str
    previous_status: str | None
    notes: str | None
    attested_at: datetime

    model_config = {"from_attributes": True}


class NewAssetCreate(BaseModel):
    """Asset declared by the employee during attestation."""
    asset_type: str = Field(..., min_length=1, max_length=50)
    make: str | None = Field(None, max_length=100)
    model: str | None = Field(None, max_length=100)
    serial_number: str = Field(..., min_length=1, max_length=100)
    asset_tag: str = Field(..., min_length=1, max_length=100)
    company_id: int
    issued_date: date | None = None
    notes: str | None = None
    employee_first_name: str | None = Field(None, max_length=100)
    employee_last_name: str | None = Field(None, max_length=100)
    employee_email: EmailStr | None = None
    manager_first_name: str | None = Field(None, max_length=100)
    manager_last_name: str | None = Field(None, max_length=100)
    manager_email: EmailStr | None = None


class NewAssetRead(BaseModel):
    id: int
    attestation_record_id: int
    asset_type: str
    make: str | None
    model: str | None
    serial_number: str
    asset_tag: str
    company_id: int
    notes: str | None
    transferred_asset_id: int | None
    created_at: datetime

    model_config = {"from_attributes": True}


class RecordDetail(BaseModel):
    """Everything the employee needs to work through one attestation."""
    record: RecordRead
    campaign: CampaignRead
    assets: list[AssetRead]
    reviews: list[AssetReviewRead]
    new_assets: list[NewAssetRead]


class CompletionResponse(BaseModel):
    completed: bool
    reason: str | None = None
    transferred_asset_ids: list[int] = []
    failed_new_asset_ids: list[int] = []


# =============================================================================
# Invites (public)
# =============================================================================

class InviteValidationResponse(BaseModel):
    valid: bool
    reason: str | None = None
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    campaign_name: str | None = None
    campaign_description: str | None = None
    asset_count: int = 0


# =============================================================================
# Internal
# =============================================================================

class SchedulerRunResponse(BaseModel):
    reminders_sent: int
    escalations_sent: int
    unregistered_reminders_sent: int
    unregistered_escalations_sent: int
    campaigns_closed: int
    errors: list[dict]
