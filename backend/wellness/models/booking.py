# backend/wellness/models/booking.py
"""
Booking model for the wellness marketplace.

A booking references its customer, therapist (nullable until assigned),
service and business by id. Status and the customer-visibility flag are
never written here: every change to them is planned by
wellness.domain.booking_state and applied by BookingRepository.
"""

from enum import Enum
import logging
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import expression, func
import ulid

from ..database import Base

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    RESCHEDULED = "rescheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    THERAPIST_CONFIRMED = "therapist_confirmed"
    THERAPIST_REJECTED = "therapist_rejected"


TERMINAL_STATUSES = frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED})


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    COMPLETED = "completed"
    PAID = "paid"
    FAILED = "failed"


# Any of these means money has been collected against the booking.
SETTLED_PAYMENT_STATUSES = frozenset(
    {PaymentStatus.PARTIAL, PaymentStatus.COMPLETED, PaymentStatus.PAID}
)


class PayoutStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


def display_code(booking_id: str) -> str:
    """
    User-facing booking reference derived from the stored id.

    ULIDs put their random component last, so the tail is what varies
    between bookings created in the same millisecond.
    """
    return f"BK-{booking_id[-8:].upper()}"


class Booking(Base):
    """Appointment request between a customer and a therapist for one service."""

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    customer_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    therapist_id = Column(String(26), ForeignKey("therapists.id"), nullable=True, index=True)
    service_id = Column(String(26), ForeignKey("services.id"), nullable=False)
    business_id = Column(String(26), ForeignKey("businesses.id"), nullable=False, index=True)

    # Schedule
    booking_date = Column(Date, nullable=False, index=True)
    time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=True)
    original_date = Column(Date, nullable=True)
    original_time = Column(String(5), nullable=True)

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    # Bumped on every applied transition; the compare-and-set key alongside status.
    version = Column(Integer, nullable=False, default=1, server_default="1")

    # Assignment and response bookkeeping
    assigned_by_admin = Column(
        Boolean, nullable=False, default=False, server_default=expression.false()
    )
    assigned_by_id = Column(String(26), nullable=True)
    response_visible_to_business_only = Column(
        Boolean, nullable=False, default=False, server_default=expression.false()
    )
    therapist_responded = Column(
        Boolean, nullable=False, default=False, server_default=expression.false()
    )
    confirmed_by = Column(String(26), nullable=True)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by = Column(String(26), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    rescheduled_by = Column(String(26), nullable=True)
    rescheduled_at = Column(DateTime(timezone=True), nullable=True)
    relayed_by = Column(String(26), nullable=True)
    relayed_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Payment
    service_price = Column(Numeric(10, 2), nullable=False)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    therapist_payout_status = Column(String(20), nullable=True)
    therapist_payout_amount = Column(Numeric(10, 2), nullable=True)
    therapist_paid_at = Column(DateTime(timezone=True), nullable=True)

    slot_id = Column(String(26), ForeignKey("therapist_availability_slots.id"), nullable=True)
    customer_note = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    customer = relationship("User", foreign_keys=[customer_id])
    therapist = relationship("Therapist", foreign_keys=[therapist_id])
    service = relationship("Service")
    payments = relationship("Payment", back_populates="booking", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'rescheduled', 'completed', 'cancelled', "
            "'therapist_confirmed', 'therapist_rejected')",
            name="ck_bookings_status",
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'partial', 'completed', 'paid', 'failed')",
            name="ck_bookings_payment_status",
        ),
        CheckConstraint("service_price >= 0", name="check_price_non_negative"),
        Index("idx_bookings_therapist_date", "therapist_id", "booking_date"),
    )

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if not self.status:
            self.status = BookingStatus.PENDING.value
        if self.response_visible_to_business_only is None:
            self.response_visible_to_business_only = False
        if self.assigned_by_admin is None:
            self.assigned_by_admin = False
        if self.therapist_responded is None:
            self.therapist_responded = False
        if not self.payment_status:
            self.payment_status = PaymentStatus.PENDING.value

    @property
    def display_code(self) -> str:
        return display_code(self.id)

    @property
    def is_terminal(self) -> bool:
        return self.status in {s.value for s in TERMINAL_STATUSES}

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: customer={self.customer_id}, "
            f"therapist={self.therapist_id}, date={self.booking_date}, "
            f"time={self.time}, status={self.status}>"
        )
