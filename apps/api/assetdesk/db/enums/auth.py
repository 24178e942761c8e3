"""Auth-related enums."""

from enum import Enum


class Role(str, Enum):
    """
    User roles.

    - EMPLOYEE: Sees and attests to their own assets
    - MANAGER: Also sees assets of their direct reports
    - ATTESTATION_COORDINATOR: Runs attestation campaigns, read-only on assets
    - ADMIN: Full access
    """

    EMPLOYEE = "employee"
    MANAGER = "manager"
    ATTESTATION_COORDINATOR = "attestation_coordinator"
    ADMIN = "admin"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_
