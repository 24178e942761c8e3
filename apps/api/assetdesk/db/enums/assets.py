"""Asset-related enums."""

from enum import Enum


class AssetStatus(str, Enum):
    """Lifecycle status of a physical asset."""

    ACTIVE = "active"
    RETURNED = "returned"
    LOST = "lost"
    DAMAGED = "damaged"
    RETIRED = "retired"
