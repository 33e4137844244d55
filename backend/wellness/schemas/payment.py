# backend/wellness/schemas/payment.py
"""Payment, payout and earnings schemas."""

from datetime import date, datetime
from typing import List, Optional

from pydantic import Field

from .base import Money, StandardizedModel
from ._strict_base import StrictRequestModel


class OrderCreateRequest(StrictRequestModel):
    booking_id: str
    amount: Optional[Money] = Field(
        None, description="Total to base the advance on; defaults to the service price"
    )


class OrderResponse(StandardizedModel):
    order_id: str
    amount: int = Field(..., description="Advance in minor currency units")
    currency: str
    key_id: str
    is_mock: bool = False


class PaymentVerifyRequest(StrictRequestModel):
    """What the client receives from the gateway checkout."""

    booking_id: str
    amount: Money = Field(..., description="Amount actually paid")
    order_id: str
    payment_id: str
    signature: Optional[str] = None


class PaymentFailureRequest(StrictRequestModel):
    booking_id: str
    order_id: str
    reason: Optional[str] = Field(None, max_length=500)


class CashPaymentRequest(StrictRequestModel):
    booking_id: str
    amount: Optional[Money] = Field(
        None, description="Amount due at the venue; defaults to the service price"
    )


class TherapistEarningItem(StandardizedModel):
    booking_id: str
    display_code: str
    booking_date: date
    time: str
    service_price: Money
    payout_amount: Money
    payout_status: str
    completed_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None


class TherapistEarningsResponse(StandardizedModel):
    bookings: List[TherapistEarningItem]
    total: Money
    paid: Money
    pending: Money


class BusinessEarningItem(StandardizedModel):
    booking_id: str
    display_code: str
    customer_id: str
    therapist_id: Optional[str] = None
    service_id: str
    booking_date: date
    time: str
    service_price: Money
    payment_status: str
    status: str


class BusinessEarningsResponse(StandardizedModel):
    bookings: List[BusinessEarningItem]
    total_amount: Money
    total: int
    page: int
    limit: int
