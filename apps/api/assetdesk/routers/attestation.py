"""Attestation campaign endpoints.

Campaign management (create, launch, escalate) is for admins and
attestation coordinators; managers may also read campaign progress and send
reminders. Record endpoints serve the employee working
through their own attestation.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from assetdesk.core.deps import (
    get_current_user,
    get_db,
    get_notifier,
    require_csrf_header,
    require_roles,
)
from assetdesk.db.enums import ROLES_CAN_MANAGE_CAMPAIGNS, ROLES_CAN_MONITOR_CAMPAIGNS, Role
from assetdesk.db.models import AttestationCampaign, AttestationRecord, User
from assetdesk.schemas.attestation import (
    AssetReviewRead,
    AttestAssetRequest,
    CampaignCreate,
    CampaignDashboard,
    CampaignRead,
    CampaignStats,
    CampaignUpdate,
    CompletionResponse,
    EscalationRequest,
    LaunchResponse,
    MyAttestation,
    NewAssetCreate,
    NewAssetRead,
    NudgeResponse,
    PendingInviteRead,
    RecordDetail,
    RecordRead,
)
from assetdesk.services import asset_service, attestation_service
from assetdesk.services.notification_service import AttestationNotifier, NotificationResult

router = APIRouter(prefix="/attestation", tags=["attestation"])

require_campaign_manager = require_roles(ROLES_CAN_MANAGE_CAMPAIGNS)
require_campaign_monitor = require_roles(ROLES_CAN_MONITOR_CAMPAIGNS)


# =============================================================================
# Helpers
# =============================================================================

def _get_campaign_or_404(db: Session, campaign_id: int) -> AttestationCampaign:
    campaign = attestation_service.get_campaign(db, campaign_id)
    if not campaign:
        raise HTTPException(status_code=404, detail="Campaign not found")
    return campaign


def _campaign_read(db: Session, campaign: AttestationCampaign) -> CampaignRead:
    counts = attestation_service.pending_invite_counts(db, [campaign.id])
    read = CampaignRead.model_validate(campaign)
    read.pending_invites_count = counts.get(campaign.id, 0)
    return read


def _get_record_or_404(
    db: Session,
    record_id: int,
    user: User,
    staff_roles: set[Role] = ROLES_CAN_MANAGE_CAMPAIGNS,
) -> AttestationRecord:
    """The record's own user and staff_roles may see it; others get 404."""
    record = attestation_service.get_record(db, record_id)
    if not record:
        raise HTTPException(status_code=404, detail="Attestation record not found")
    if record.user_id != user.id and Role(user.role) not in staff_roles:
        raise HTTPException(status_code=404, detail="Attestation record not found")
    return record


def _get_own_record_or_404(db: Session, record_id: int, user: User) -> AttestationRecord:
    record = attestation_service.get_record(db, record_id)
    if not record or record.user_id != user.id:
        raise HTTPException(status_code=404, detail="Attestation record not found")
    return record


def _single_nudge(result: NotificationResult) -> NudgeResponse:
    if not result.success:
        raise HTTPException(status_code=502, detail=f"Notification failed: {result.error}")
    return NudgeResponse(sent=1)


# =============================================================================
# Campaigns
# =============================================================================

@router.get("/campaigns", response_model=list[CampaignRead])
def list_campaigns(
    db: Session = Depends(get_db),
    _: User = Depends(require_campaign_monitor),
):
    campaigns = attestation_service.list_campaigns(db)
    counts = attestation_service.pending_invite_counts(db, [c.id for c in campaigns])
    result = []
    for campaign in campaigns:
        read = CampaignRead.model_validate(campaign)
        read.pending_invites_count = counts.get(campaign.id, 0)
        result.append(read)
    return result


@router.post(
    "/campaigns",
    response_model=CampaignRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_campaign(
    body: CampaignCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_campaign_manager),
):
    try:
        campaign = attestation_service.create_campaign(db, body, created_by=user)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _campaign_read(db, campaign)


@router.get("/campaigns/{campaign_id}", response_model=CampaignRead)
def get_campaign(
    campaign_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_campaign_monitor),
):
    return _campaign_read(db, _get_campaign_or_404(db, campaign_id))


@router.patch(
    "/campaigns/{campaign_id}",
    response_model=CampaignRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_campaign(
    campaign_id: int,
    body: CampaignUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_campaign_manager),
):
    campaign = _get_campaign_or_404(db, campaign_id)
    try:
        campaign = attestation_service.update_campaign(db, campaign, body, actor_email=user.email)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _campaign_read(db, campaign)


@router.delete(
    "/campaigns/{campaign_id}",
    status_code=204,
    dependencies=[Depends(require_csrf_header)],
)
def delete_campaign(
    campaign_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_campaign_manager),
):
    campaign = _get_campaign_or_404(db, campaign_id)
    attestation_service.delete_campaign(db, campaign, actor_email=user.email)


@router.post(
    "/campaigns/{campaign_id}/launch",
    response_model=LaunchResponse,
    dependencies=[Depends(require_csrf_header)],
)
def launch_campaign(
    campaign_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_campaign_manager),
    notifier: AttestationNotifier = Depends(get_notifier),
):
    """Create records and invites for everyone in scope and activate the campaign."""
    campaign = _get_campaign_or_404(db, campaign_id)
    result = attestation_service.launch_campaign(db, campaign, notifier, actor_email=user.email)
    if not result.launched:
        raise HTTPException(status_code=400, detail=result.reason)
    return LaunchResponse(
        launched=True,
        records_created=result.records_created,
        invites_created=result.invites_created,
    )


@router.post(
    "/campaigns/{campaign_id}/cancel",
    response_model=CampaignRead,
    dependencies=[Depends(require_csrf_header)],
)
def cancel_campaign(
    campaign_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_campaign_manager),
):
    campaign = _get_campaign_or_404(db, campaign_id)
    try:
        campaign = attestation_service.cancel_campaign(db, campaign, actor_email=user.email)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _campaign_read(db, campaign)


@router.get("/campaigns/{campaign_id}/stats", response_model=CampaignStats)
def get_campaign_stats(
    campaign_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_campaign_monitor),
):
    return attestation_service.get_campaign_stats(db, _get_campaign_or_404(db, campaign_id))


@router.get("/campaigns/{campaign_id}/dashboard", response_model=CampaignDashboard)
def get_campaign_dashboard(
    campaign_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_campaign_monitor),
):
    campaign = _get_campaign_or_404(db, campaign_id)
    return CampaignDashboard(
        campaign=_campaign_read(db, campaign),
        stats=attestation_service.get_campaign_stats(db, campaign),
        records=attestation_service.get_campaign_dashboard(db, campaign),
        pending_invites=[
            PendingInviteRead.model_validate(i)
            for i in attestation_service.list_pending_invites(db, campaign.id)
        ],
    )


@router.get("/campaigns/{campaign_id}/pending-invites", response_model=list[PendingInviteRead])
def list_pending_invites(
    campaign_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_campaign_monitor),
):
    campaign = _get_campaign_or_404(db, campaign_id)
    return attestation_service.list_pending_invites(db, campaign.id)


@router.post(
    "/campaigns/{campaign_id}/resend-invites",
    response_model=NudgeResponse,
    dependencies=[Depends(require_csrf_header)],
)
def resend_invites(
    campaign_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_campaign_manager),
    notifier: AttestationNotifier = Depends(get_notifier),
):
    campaign = _get_campaign_or_404(db, campaign_id)
    try:
        result = attestation_service.resend_invites(db, campaign, notifier, actor_email=user.email)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return NudgeResponse(sent=result.sent, skipped=result.skipped, failed=result.failed)


@router.post(
    "/campaigns/{campaign_id}/remind",
    response_model=NudgeResponse,
    dependencies=[Depends(require_csrf_header)],
)
def send_bulk_reminders(
    campaign_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_campaign_monitor),
    notifier: AttestationNotifier = Depends(get_notifier),
):
    campaign = _get_campaign_or_404(db, campaign_id)
    try:
        result = attestation_service.send_bulk_reminders(
            db, campaign, notifier, actor_email=user.email
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return NudgeResponse(sent=result.sent, skipped=result.skipped, failed=result.failed)


@router.post(
    "/pending-invites/{invite_id}/resend",
    response_model=NudgeResponse,
    dependencies=[Depends(require_csrf_header)],
)
def resend_invite(
    invite_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_campaign_manager),
    notifier: AttestationNotifier = Depends(get_notifier),
):
    invite = attestation_service.get_pending_invite(db, invite_id)
    if not invite:
        raise HTTPException(status_code=404, detail="Invite not found")
    try:
        result = attestation_service.resend_invite(db, invite, notifier, actor_email=user.email)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _single_nudge(result)


@router.post(
    "/records/{record_id}/remind",
    response_model=NudgeResponse,
    dependencies=[Depends(require_csrf_header)],
)
def send_reminder(
    record_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_campaign_monitor),
    notifier: AttestationNotifier = Depends(get_notifier),
):
    record = _get_record_or_404(db, record_id, user, ROLES_CAN_MONITOR_CAMPAIGNS)
    try:
        result = attestation_service.send_manual_reminder(
            db, record, notifier, actor_email=user.email
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _single_nudge(result)


@router.post(
    "/records/{record_id}/escalate",
    response_model=NudgeResponse,
    dependencies=[Depends(require_csrf_header)],
)
def send_escalation(
    record_id: int,
    body: EscalationRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_campaign_manager),
    notifier: AttestationNotifier = Depends(get_notifier),
):
    record = _get_record_or_404(db, record_id, user)
    try:
        result = attestation_service.send_manual_escalation(
            db, record, notifier, message=body.message, actor_email=user.email
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _single_nudge(result)


# =============================================================================
# Employee self-service
# =============================================================================

@router.get("/my", response_model=list[MyAttestation])
def list_my_attestations(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Open and completed records of the caller in active campaigns."""
    records = attestation_service.list_my_attestations(db, user)
    return [
        MyAttestation(
            **RecordRead.model_validate(r).model_dump(),
            campaign_name=r.campaign.name,
            campaign_description=r.campaign.description,
            campaign_end_date=r.campaign.end_date,
        )
        for r in records
    ]


@router.get("/records/{record_id}", response_model=RecordDetail)
def get_record(
    record_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    record = _get_record_or_404(db, record_id, user)
    return RecordDetail(
        record=RecordRead.model_validate(record),
        campaign=_campaign_read(db, record.campaign),
        assets=[
            asset_service.asset_to_read(a)
            for a in attestation_service.get_record_assets(db, record)
        ],
        reviews=[AssetReviewRead.model_validate(r) for r in record.asset_reviews],
        new_assets=[NewAssetRead.model_validate(n) for n in record.new_assets],
    )


@router.post(
    "/records/{record_id}/assets/{asset_id}",
    response_model=AssetReviewRead,
    dependencies=[Depends(require_csrf_header)],
)
def attest_asset(
    record_id: int,
    asset_id: int,
    body: AttestAssetRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Confirm or correct the status of one asset under review."""
    record = _get_own_record_or_404(db, record_id, user)
    asset = next(
        (a for a in attestation_service.get_record_assets(db, record) if a.id == asset_id),
        None,
    )
    if not asset:
        raise HTTPException(status_code=404, detail="Asset not part of this attestation")
    try:
        return attestation_service.attest_asset(
            db, record, asset, body.attested_status,
            notes=body.notes, returned_date=body.returned_date, actor_email=user.email,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post(
    "/records/{record_id}/new-assets",
    response_model=NewAssetRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def add_new_asset(
    record_id: int,
    body: NewAssetCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Declare an asset that is missing from the store; created on completion."""
    record = _get_own_record_or_404(db, record_id, user)
    try:
        return attestation_service.add_new_asset(db, record, body, actor_email=user.email)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post(
    "/records/{record_id}/complete",
    response_model=CompletionResponse,
    dependencies=[Depends(require_csrf_header)],
)
def complete_record(
    record_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    notifier: AttestationNotifier = Depends(get_notifier),
):
    record = _get_own_record_or_404(db, record_id, user)
    result = attestation_service.complete_record(
        db, record.id, notifier=notifier, actor_email=user.email
    )
    if not result.completed:
        raise HTTPException(status_code=400, detail=result.reason)
    return CompletionResponse(
        completed=True,
        transferred_asset_ids=result.transferred_asset_ids,
        failed_new_asset_ids=result.failed_new_asset_ids,
    )
