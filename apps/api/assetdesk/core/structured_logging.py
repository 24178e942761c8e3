"""Structured logging helpers (PII-safe)."""

from typing import Any


def build_log_context(
    *,
    user_id: int | None = None,
    campaign_id: int | None = None,
    record_id: int | None = None,
    invite_id: int | None = None,
    asset_id: int | None = None,
    pass_name: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict (ids only, never emails)."""
    context: dict[str, Any] = {}
    if user_id is not None:
        context["user_id"] = user_id
    if campaign_id is not None:
        context["campaign_id"] = campaign_id
    if record_id is not None:
        context["record_id"] = record_id
    if invite_id is not None:
        context["invite_id"] = invite_id
    if asset_id is not None:
        context["asset_id"] = asset_id
    if pass_name:
        context["pass_name"] = pass_name
    return context
