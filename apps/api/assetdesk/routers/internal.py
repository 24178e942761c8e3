"""
Internal endpoints for scheduled/cron operations.

Protected by X-Internal-Secret header.
Call from an external cron when the worker loop is not running.
"""
import logging

from fastapi import APIRouter, Depends, Header, HTTPException

from assetdesk.core.config import settings
from assetdesk.core.deps import get_notifier
from assetdesk.db.session import SessionLocal
from assetdesk.schemas.attestation import SchedulerRunResponse
from assetdesk.services import attestation_scheduler
from assetdesk.services.notification_service import AttestationNotifier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal/scheduled", tags=["internal"])


def verify_internal_secret(x_internal_secret: str = Header(...)):
    """Verify the internal secret header."""
    expected = settings.INTERNAL_SECRET
    if not expected:
        raise HTTPException(status_code=501, detail="INTERNAL_SECRET not configured")
    if x_internal_secret != expected:
        raise HTTPException(status_code=403, detail="Invalid internal secret")


@router.post("/attestations", response_model=SchedulerRunResponse)
def run_attestation_scheduler(
    x_internal_secret: str = Header(...),
    notifier: AttestationNotifier = Depends(get_notifier),
):
    """
    One pass of the attestation scheduler.

    Sends due reminders and escalations (registered and unregistered) and
    closes campaigns past their end date. Safe to call while another run is
    in progress; each item is claimed before it is sent.
    """
    verify_internal_secret(x_internal_secret)

    with SessionLocal() as db:
        summary = attestation_scheduler.run_scheduled_tasks(db, notifier)

    if summary["errors"]:
        logger.warning("Scheduled attestation run finished with %s error(s)", len(summary["errors"]))
    return SchedulerRunResponse(**summary)
