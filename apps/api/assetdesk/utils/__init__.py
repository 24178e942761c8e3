"""Utility modules."""

from assetdesk.utils.datetime_utils import elapsed_days, ensure_utc, utc_now
from assetdesk.utils.normalization import normalize_email, split_full_name

__all__ = [
    "elapsed_days",
    "ensure_utc",
    "normalize_email",
    "split_full_name",
    "utc_now",
]
