# backend/wellness/models/availability.py
"""
Concrete, bookable availability slots.

A slot belongs to one therapist on one date. Its status flips from
available to booked in the same transaction that creates the booking, via
a conditional update keyed on the current status (see
AvailabilityRepository.claim_slot).
"""

from enum import Enum

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Index, String
from sqlalchemy.sql import func
import ulid

from ..database import Base


class SlotStatus(str, Enum):
    AVAILABLE = "available"
    BOOKED = "booked"


class TherapistAvailabilitySlot(Base):
    """One therapist's bookable window on a specific date (HH:MM strings)."""

    __tablename__ = "therapist_availability_slots"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    therapist_id = Column(String(26), ForeignKey("therapists.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    status = Column(String(20), nullable=False, default=SlotStatus.AVAILABLE.value)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("status IN ('available', 'booked')", name="ck_slot_status"),
        Index("idx_slots_therapist_date", "therapist_id", "date"),
    )

    def __repr__(self) -> str:
        return (
            f"<TherapistAvailabilitySlot {self.id} therapist={self.therapist_id} "
            f"{self.date} {self.start_time}-{self.end_time} {self.status}>"
        )
