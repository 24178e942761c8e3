"""Rate limiting configuration for the asset API."""

import os

from slowapi import Limiter
from slowapi.util import get_remote_address

from assetdesk.core.config import settings

IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")
DEFAULT_LIMITS = (
    []
    if IS_TESTING or settings.RATE_LIMIT_API <= 0
    else [f"{settings.RATE_LIMIT_API}/minute"]
)
AUTH_LIMIT = f"{settings.RATE_LIMIT_AUTH}/minute" if settings.RATE_LIMIT_AUTH > 0 else "1000/minute"

# Point RATE_LIMIT_STORAGE_URI at a shared backend for multi-worker deployments
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://" if IS_TESTING else settings.RATE_LIMIT_STORAGE_URI,
    default_limits=DEFAULT_LIMITS,
    enabled=not IS_TESTING,
)
