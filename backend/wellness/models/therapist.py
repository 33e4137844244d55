# backend/wellness/models/therapist.py
"""
Therapist profile and business association models.

weekly_availability is stored as JSON keyed by weekday name:
    {"Monday": [{"start_time": "09:00", "end_time": "12:00"}], ...}
"""

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import AssociationStatus
from ..database import Base
from .business import service_therapists


class Therapist(Base):
    """Therapist profile linked one-to-one with a User."""

    __tablename__ = "therapists"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    user_id = Column(String(26), ForeignKey("users.id"), nullable=False, unique=True)
    full_name = Column(String(255), nullable=False)
    professional_title = Column(String(255), nullable=True)
    weekly_availability = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", back_populates="therapist_profile")
    associations = relationship(
        "TherapistBusinessAssociation", back_populates="therapist", cascade="all, delete-orphan"
    )
    services = relationship("Service", secondary=service_therapists, back_populates="therapists")

    def __repr__(self) -> str:
        return f"<Therapist {self.id} {self.full_name}>"


class TherapistBusinessAssociation(Base):
    """A therapist's request to work for a business, and its approval state."""

    __tablename__ = "therapist_business_associations"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    therapist_id = Column(
        String(26), ForeignKey("therapists.id", ondelete="CASCADE"), nullable=False, index=True
    )
    business_id = Column(
        String(26), ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status = Column(String(20), nullable=False, default=AssociationStatus.PENDING.value)
    requested_at = Column(DateTime(timezone=True), server_default=func.now())
    approved_at = Column(DateTime(timezone=True), nullable=True)

    therapist = relationship("Therapist", back_populates="associations")

    __table_args__ = (
        UniqueConstraint("therapist_id", "business_id", name="uq_therapist_business"),
    )

    def __repr__(self) -> str:
        return f"<TherapistBusinessAssociation {self.therapist_id}->{self.business_id} {self.status}>"
