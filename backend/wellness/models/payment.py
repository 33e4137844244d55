# backend/wellness/models/payment.py
"""Payment attempts recorded against bookings."""

from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class PaymentRecordStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentType(str, Enum):
    ADVANCE = "advance"
    FULL = "full"


class PaymentMethod(str, Enum):
    CARD = "card"
    CASH = "cash"
    GATEWAY = "gateway"


class Payment(Base):
    """A single gateway payment (or failure) for a booking."""

    __tablename__ = "payments"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=False, index=True)

    amount = Column(Numeric(10, 2), nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)
    remaining_amount = Column(Numeric(10, 2), nullable=False, default=0)
    payment_type = Column(String(20), nullable=False, default=PaymentType.ADVANCE.value)
    method = Column(String(20), nullable=False, default=PaymentMethod.GATEWAY.value)
    status = Column(String(20), nullable=False, default=PaymentRecordStatus.PENDING.value)

    gateway_order_id = Column(String(255), nullable=True)
    gateway_payment_id = Column(String(255), nullable=True, unique=True)
    failure_reason = Column(Text, nullable=True)

    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    booking = relationship("Booking", back_populates="payments")

    def __repr__(self) -> str:
        return f"<Payment {self.id} booking={self.booking_id} amount={self.amount} {self.status}>"
