"""Audit logging service - write-only sink for user-visible changes.

Guidelines:
- NEVER log secrets (session tokens, invite tokens)
- Use hash_email when an email goes to application logs
- Use IDs instead of raw data where possible
"""

import hashlib
from typing import Any

from sqlalchemy.orm import Session

from assetdesk.db.enums import AuditAction, AuditEntity
from assetdesk.db.models import AuditLog


def hash_email(email: str | None) -> str:
    """Hash email for log lines (prefix + SHA256 suffix for debugging)."""
    if not email:
        return ""
    prefix = email.split("@")[0][:3] if "@" in email else email[:3]
    suffix = hashlib.sha256(email.lower().encode()).hexdigest()[:12]
    return f"{prefix}...@[hash:{suffix}]"


def log(
    db: Session,
    action: AuditAction | str,
    entity_type: AuditEntity | str,
    entity_id: int | None = None,
    entity_name: str | None = None,
    details: dict[str, Any] | None = None,
    actor_email: str | None = None,
) -> AuditLog:
    """
    Append an audit entry.

    Flushes but does not commit; the caller's transaction owns the write.
    """
    entry = AuditLog(
        action=action.value if isinstance(action, AuditAction) else action,
        entity_type=entity_type.value if isinstance(entity_type, AuditEntity) else entity_type,
        entity_id=entity_id,
        entity_name=entity_name,
        details=details,
        actor_email=actor_email,
    )
    db.add(entry)
    db.flush()
    return entry


def list_for_entity(
    db: Session,
    entity_type: AuditEntity | str,
    entity_id: int,
    limit: int = 100,
) -> list[AuditLog]:
    """Most recent entries for one entity (admin views and tests)."""
    entity_value = entity_type.value if isinstance(entity_type, AuditEntity) else entity_type
    return (
        db.query(AuditLog)
        .filter(AuditLog.entity_type == entity_value, AuditLog.entity_id == entity_id)
        .order_by(AuditLog.id.desc())
        .limit(limit)
        .all()
    )
