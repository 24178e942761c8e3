"""Security utilities for JWT session tokens and invite tokens."""

import secrets
from datetime import datetime, timedelta, timezone

import jwt

from assetdesk.core.config import settings


# =============================================================================
# Session Token (JWT in cookie or Bearer header)
# =============================================================================

def create_session_token(user_id: int, email: str, role: str) -> str:
    """
    Create signed session JWT.

    Always signs with current secret (JWT_SECRET).
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "iat": now,
        "exp": now + timedelta(hours=settings.JWT_EXPIRES_HOURS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")


def decode_session_token(token: str) -> dict:
    """
    Decode and verify session JWT.

    Tries current secret first, then previous (for rotation support).

    Raises:
        jwt.InvalidTokenError: If token invalid with all secrets
    """
    last_error = None
    for secret in settings.jwt_secrets:
        try:
            return jwt.decode(token, secret, algorithms=["HS256"])
        except jwt.InvalidTokenError as e:
            last_error = e
            continue
    raise last_error  # type: ignore


# =============================================================================
# Attestation invite tokens
# =============================================================================

def generate_invite_token() -> str:
    """Generate an unguessable, URL-safe invite token (32 random bytes)."""
    return secrets.token_urlsafe(32)
