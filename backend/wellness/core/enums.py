# backend/wellness/core/enums.py
"""
Core enums for the wellness marketplace.

Roles arrive as free-form strings in token claims ("Business", "business",
" THERAPIST "). They are normalized exactly once, at the authentication
boundary, into RoleName; nothing downstream compares raw role strings.
"""

from enum import Enum
from typing import Optional


class RoleName(str, Enum):
    """The three sides of the marketplace."""

    CUSTOMER = "customer"
    THERAPIST = "therapist"
    BUSINESS = "business"

    @classmethod
    def normalize(cls, raw: Optional[str]) -> "RoleName":
        """
        Map a claim value onto a RoleName, case-insensitively.

        Raises:
            ValueError: If the value is empty or not a known role
        """
        candidate = (raw or "").strip().lower()
        for member in cls:
            if member.value == candidate:
                return member
        raise ValueError(f"Unknown role: {raw!r}")


class AssociationStatus(str, Enum):
    """Approval state of a therapist's association with a business."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class SystemActor(str, Enum):
    """Non-human actors that may drive booking transitions."""

    SYSTEM = "system"
