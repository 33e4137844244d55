# backend/wellness/schemas/association.py
"""Therapist and business association schemas."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field

from .base import StandardizedModel
from ._strict_base import StrictRequestModel


class AssociationRequestCreate(StrictRequestModel):
    business_id: str = Field(..., description="Business the therapist wants to work for")


class AssociationDecision(StrictRequestModel):
    action: Literal["approve", "reject"]


class AssociationResponse(StandardizedModel):
    id: str
    therapist_id: str
    business_id: str
    status: str
    requested_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None


class RosterEntry(AssociationResponse):
    """Association as listed for the business, with the therapist's name."""

    therapist_name: Optional[str] = None
    professional_title: Optional[str] = None


class RosterResponse(StandardizedModel):
    therapists: List[RosterEntry]
    total: int
