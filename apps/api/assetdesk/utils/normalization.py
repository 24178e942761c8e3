"""Data normalization utilities."""

from typing import Optional


def normalize_email(email: Optional[str]) -> str:
    """
    Normalize email for case-insensitive comparison.

    Returns an empty string for missing input so it can be used directly in
    equality filters without matching anything.
    """
    if not email:
        return ""
    return email.strip().lower()


def split_full_name(full_name: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    """Split 'First Last Name' into ('First', 'Last Name')."""
    parts = (full_name or "").split()
    if not parts:
        return None, None
    return parts[0], " ".join(parts[1:]) or None
