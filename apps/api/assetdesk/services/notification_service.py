"""Outbound attestation notifications.

AttestationNotifier is the interface the campaign engine and scheduler
depend on. Every method returns a NotificationResult and never raises, so a
failed send is just a result the caller records.

EmailNotifier delivers through the Resend HTTP API. Without RESEND_API_KEY
it logs a dry run and reports success, which keeps local and CI runs quiet.
"""

from __future__ import annotations

import logging
import random
import time
import uuid
from dataclasses import dataclass
from html import escape
from typing import Callable, Protocol

import httpx

from assetdesk.core.config import settings
from assetdesk.db.models import AttestationCampaign, AttestationPendingInvite, User
from assetdesk.services.audit_service import hash_email

logger = logging.getLogger(__name__)

RESEND_SEND_URL = "https://api.resend.com/emails"
RESEND_MAX_ATTEMPTS = 3
RESEND_RETRY_BASE_DELAY = 0.5
RESEND_RETRY_MAX_DELAY = 4.0
DEFAULT_RETRY_STATUSES = {429, 500, 502, 503, 504}


@dataclass(frozen=True)
class NotificationResult:
    success: bool
    error: str | None = None


class AttestationNotifier(Protocol):
    def send_reminder(self, user: User, campaign: AttestationCampaign) -> NotificationResult:
        """Remind a registered user to finish their attestation."""

    def send_escalation(
        self,
        manager_email: str,
        employee_name: str,
        employee_email: str,
        campaign: AttestationCampaign,
        message: str | None = None,
    ) -> NotificationResult:
        """Tell a manager that a report's attestation is overdue."""

    def send_unregistered_reminder(
        self,
        invite: AttestationPendingInvite,
        campaign: AttestationCampaign,
        asset_count: int,
    ) -> NotificationResult:
        """Remind an unregistered asset owner to sign up and attest."""

    def send_unregistered_escalation(
        self,
        manager_email: str,
        manager_name: str | None,
        employee_email: str,
        employee_name: str,
        campaign: AttestationCampaign,
        asset_count: int,
    ) -> NotificationResult:
        """Tell a manager that an unregistered report has not signed up."""

    def send_launch_notice(self, user: User, campaign: AttestationCampaign) -> NotificationResult:
        """Announce a newly launched campaign to a registered user."""

    def send_registration_invite(
        self,
        invite: AttestationPendingInvite,
        campaign: AttestationCampaign,
        asset_count: int,
    ) -> NotificationResult:
        """Invite an unregistered asset owner to register."""

    def send_completion_notice(
        self,
        admin_email: str,
        user: User,
        campaign: AttestationCampaign,
    ) -> NotificationResult:
        """Tell an admin that a user completed their attestation."""


# =============================================================================
# HTTP
# =============================================================================

def request_with_retries(
    request_fn: Callable[[], httpx.Response],
    *,
    max_attempts: int = RESEND_MAX_ATTEMPTS,
    base_delay: float = RESEND_RETRY_BASE_DELAY,
    max_delay: float = RESEND_RETRY_MAX_DELAY,
    retry_statuses: set[int] | None = None,
    sleep: Callable[[float], None] | None = None,
) -> httpx.Response:
    """Execute an HTTP request with exponential backoff retries."""
    statuses = retry_statuses or DEFAULT_RETRY_STATUSES
    sleep = sleep or time.sleep

    for attempt in range(max_attempts):
        try:
            response = request_fn()
        except httpx.RequestError as exc:
            if attempt >= max_attempts - 1:
                raise
            delay = min(max_delay, base_delay * (2**attempt))
            if delay:
                delay = delay + random.uniform(0, delay / 2)
            logger.warning("HTTP request failed, retrying", exc_info=exc)
            if delay:
                sleep(delay)
            continue

        if response.status_code in statuses and attempt < max_attempts - 1:
            delay = min(max_delay, base_delay * (2**attempt))
            if delay:
                delay = delay + random.uniform(0, delay / 2)
            logger.warning("HTTP request returned %s, retrying", response.status_code)
            if delay:
                sleep(delay)
            continue

        return response

    return response


# =============================================================================
# Email notifier
# =============================================================================

class EmailNotifier:
    """AttestationNotifier backed by the Resend email API."""

    def __init__(
        self,
        api_key: str | None = None,
        from_address: str | None = None,
        frontend_url: str | None = None,
        timeout: float | None = None,
        client: httpx.Client | None = None,
    ):
        self.api_key = settings.RESEND_API_KEY if api_key is None else api_key
        self.from_address = from_address or settings.EMAIL_FROM
        self.frontend_url = (frontend_url or settings.FRONTEND_URL).rstrip("/")
        self.timeout = timeout or settings.EMAIL_TIMEOUT_SECONDS
        self._client = client

    @property
    def dry_run(self) -> bool:
        return not self.api_key

    def _send(
        self,
        to_email: str,
        subject: str,
        html: str,
        idempotency_key: str | None = None,
    ) -> NotificationResult:
        if self.dry_run:
            logger.info("[DRY RUN] Would send '%s' to %s", subject, hash_email(to_email))
            return NotificationResult(success=True)

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        payload = {
            "from": self.from_address,
            "to": [to_email],
            "subject": subject,
            "html": html,
        }

        client = self._client or httpx.Client(timeout=self.timeout)
        try:
            response = request_with_retries(
                lambda: client.post(RESEND_SEND_URL, headers=headers, json=payload)
            )
        except httpx.TimeoutException:
            logger.warning("Resend timeout sending '%s' to %s", subject, hash_email(to_email))
            return NotificationResult(success=False, error="Connection timeout")
        except httpx.HTTPError as e:
            logger.warning("Resend request error: %s", e.__class__.__name__)
            return NotificationResult(success=False, error=f"Request error: {e.__class__.__name__}")
        finally:
            if self._client is None:
                client.close()

        if response.status_code >= 400:
            logger.warning(
                "Resend rejected '%s' to %s: HTTP %s",
                subject, hash_email(to_email), response.status_code,
            )
            return NotificationResult(success=False, error=f"HTTP {response.status_code}")
        return NotificationResult(success=True)

    # -------------------------------------------------------------------------
    # Message builders
    # -------------------------------------------------------------------------

    def _link(self, path: str) -> str:
        return f"{self.frontend_url}{path}"

    def _wrap(self, *paragraphs: str) -> str:
        return "".join(f"<p>{p}</p>" for p in paragraphs)

    def _campaign_end(self, campaign: AttestationCampaign) -> str:
        if not campaign.end_date:
            return ""
        return f" The campaign closes on {campaign.end_date.date().isoformat()}."

    def send_reminder(self, user, campaign):
        link = self._link("/my-attestations")
        html = self._wrap(
            f"Hi {escape(user.first_name or user.email)},",
            f"Your attestation for <b>{escape(campaign.name)}</b> is still open."
            f"{self._campaign_end(campaign)}",
            f'<a href="{link}">Review your assets</a>',
        )
        return self._send(
            user.email,
            f"Reminder: {campaign.name}",
            html,
            # One key per send; retries of this call reuse it, a later reminder does not
            idempotency_key=f"attestation-reminder/{campaign.id}/{user.id}/{uuid.uuid4().hex}",
        )

    def send_escalation(self, manager_email, employee_name, employee_email, campaign, message=None):
        paragraphs = [
            f"{escape(employee_name)} ({escape(employee_email)}) has not completed the "
            f"asset attestation <b>{escape(campaign.name)}</b>.",
        ]
        if message:
            paragraphs.append(escape(message))
        paragraphs.append("Please follow up with them.")
        return self._send(
            manager_email,
            f"Overdue attestation: {employee_name}",
            self._wrap(*paragraphs),
        )

    def send_unregistered_reminder(self, invite, campaign, asset_count):
        link = self._link(f"/register?invite={invite.invite_token}")
        html = self._wrap(
            f"Hi {escape(invite.employee_first_name or invite.employee_email)},",
            f"You have {asset_count} asset(s) to confirm for <b>{escape(campaign.name)}</b>, "
            "but you have not created an account yet.",
            f'<a href="{link}">Register to start</a>',
        )
        return self._send(
            invite.employee_email,
            f"Action needed: {campaign.name}",
            html,
            idempotency_key=f"attestation-invite-reminder/{invite.id}",
        )

    def send_unregistered_escalation(
        self, manager_email, manager_name, employee_email, employee_name, campaign, asset_count
    ):
        html = self._wrap(
            f"Hi {escape(manager_name or manager_email)},",
            f"{escape(employee_name)} ({escape(employee_email)}) holds {asset_count} asset(s) "
            f"in scope for <b>{escape(campaign.name)}</b> and has not registered yet.",
            "Please ask them to check their invitation email.",
        )
        return self._send(
            manager_email,
            f"Unregistered employee: {employee_name}",
            html,
        )

    def send_launch_notice(self, user, campaign):
        link = self._link("/my-attestations")
        html = self._wrap(
            f"Hi {escape(user.first_name or user.email)},",
            f"A new asset attestation has started: <b>{escape(campaign.name)}</b>."
            f"{self._campaign_end(campaign)}",
            escape(campaign.description or ""),
            f'<a href="{link}">Review your assets</a>',
        )
        return self._send(
            user.email,
            f"Asset attestation: {campaign.name}",
            html,
            idempotency_key=f"attestation-launch/{campaign.id}/{user.id}",
        )

    def send_registration_invite(self, invite, campaign, asset_count):
        link = self._link(f"/register?invite={invite.invite_token}")
        html = self._wrap(
            f"Hi {escape(invite.employee_first_name or invite.employee_email)},",
            f"You have {asset_count} asset(s) registered to you. Please create an account "
            f"and confirm them for <b>{escape(campaign.name)}</b>.",
            f'<a href="{link}">Register</a>',
        )
        return self._send(
            invite.employee_email,
            f"Please register: {campaign.name}",
            html,
        )

    def send_completion_notice(self, admin_email, user, campaign):
        html = self._wrap(
            f"{escape(user.full_name)} ({escape(user.email)}) completed "
            f"<b>{escape(campaign.name)}</b>.",
        )
        return self._send(
            admin_email,
            f"Attestation completed: {user.full_name}",
            html,
        )
