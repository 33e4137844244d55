# backend/wellness/schemas/booking.py
"""
Booking schemas for the wellness marketplace.

Two response shapes exist on purpose: staff (business and therapist) see
the stored status and review flags, while customers get CustomerBookingView,
whose status is masked until the business relays a therapist's response.
"""

from datetime import date, datetime
from typing import Any, List, Literal, Optional

from pydantic import Field, field_validator

from ..domain.booking_state import customer_display_status, customer_view_status
from .base import Money, StandardizedModel, ensure_date_only, ensure_hhmm
from ._strict_base import StrictRequestModel


class DirectBookingCreate(StrictRequestModel):
    """Customer books a specific therapist's slot."""

    therapist_id: str = Field(..., description="Therapist to book")
    service_id: str = Field(..., description="Service being booked")
    booking_date: date = Field(..., description="Date of the appointment")
    time: str = Field(..., description="Start time, HH:MM")
    customer_note: Optional[str] = Field(None, max_length=1000)

    @field_validator("booking_date", mode="before")
    @classmethod
    def _enforce_date_only(cls, v: object) -> object:
        return ensure_date_only(v, "booking_date")

    @field_validator("time", mode="before")
    @classmethod
    def _parse_time(cls, v: object) -> object:
        return ensure_hhmm(v, "time")

    @field_validator("customer_note")
    @classmethod
    def clean_note(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v else v


class BookingRequestCreate(StrictRequestModel):
    """Customer asks the business to find a therapist."""

    service_id: str = Field(..., description="Service being requested")
    booking_date: date = Field(..., description="Requested date")
    time: str = Field(..., description="Requested start time, HH:MM")
    preferred_therapist_id: Optional[str] = Field(
        None, description="Hint for the business; not a reservation"
    )
    customer_note: Optional[str] = Field(None, max_length=1000)

    @field_validator("booking_date", mode="before")
    @classmethod
    def _enforce_date_only(cls, v: object) -> object:
        return ensure_date_only(v, "booking_date")

    @field_validator("time", mode="before")
    @classmethod
    def _parse_time(cls, v: object) -> object:
        return ensure_hhmm(v, "time")

    @field_validator("customer_note")
    @classmethod
    def clean_note(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v else v


class AssignBookingRequest(StrictRequestModel):
    therapist_id: str = Field(..., description="Approved therapist to route the booking to")


class TherapistResponseRequest(StrictRequestModel):
    response: Literal["confirm", "reject"]


class RelayRequest(StrictRequestModel):
    """Business decision on a therapist response it is holding back."""

    decision: Literal["approve", "revert_to_pending"] = "approve"


class RescheduleRequest(StrictRequestModel):
    new_date: date
    new_time: str

    @field_validator("new_date", mode="before")
    @classmethod
    def _enforce_date_only(cls, v: object) -> object:
        return ensure_date_only(v, "new_date")

    @field_validator("new_time", mode="before")
    @classmethod
    def _parse_time(cls, v: object) -> object:
        return ensure_hhmm(v, "new_time")


class BookingResponse(StandardizedModel):
    """Full booking as the business and the therapist see it."""

    id: str
    display_code: str
    customer_id: str
    therapist_id: Optional[str] = None
    service_id: str
    business_id: str
    booking_date: date
    time: str
    end_time: Optional[str] = None
    original_date: Optional[date] = None
    original_time: Optional[str] = None
    status: str
    version: int
    assigned_by_admin: bool
    therapist_responded: bool
    response_visible_to_business_only: bool
    confirmed_by: Optional[str] = None
    cancelled_by: Optional[str] = None
    service_price: Money
    payment_status: str
    therapist_payout_status: Optional[str] = None
    therapist_payout_amount: Optional[Money] = None
    customer_note: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CustomerBookingView(StandardizedModel):
    """
    Booking as its customer sees it.

    ``status`` never shows a therapist-intermediate value or a response
    the business has not relayed yet; ``display_status`` reads
    "processing" while the business is reviewing. The therapist stays
    unnamed until the business relays.
    """

    id: str
    display_code: str
    therapist_id: Optional[str] = None
    service_id: str
    booking_date: date
    time: str
    end_time: Optional[str] = None
    original_date: Optional[date] = None
    original_time: Optional[str] = None
    status: str
    display_status: str
    service_price: Money
    payment_status: str
    customer_note: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_booking(cls, booking: Any) -> "CustomerBookingView":
        hidden = bool(booking.response_visible_to_business_only)
        return cls(
            id=booking.id,
            display_code=booking.display_code,
            therapist_id=None if hidden else booking.therapist_id,
            service_id=booking.service_id,
            booking_date=booking.booking_date,
            time=booking.time,
            end_time=booking.end_time,
            original_date=booking.original_date,
            original_time=booking.original_time,
            status=customer_view_status(booking).value,
            display_status=customer_display_status(booking),
            service_price=booking.service_price,
            payment_status=booking.payment_status,
            customer_note=booking.customer_note,
            created_at=booking.created_at,
        )


class CustomerBookingListResponse(StandardizedModel):
    bookings: List[CustomerBookingView]
    total: int


class BookingListResponse(StandardizedModel):
    bookings: List[BookingResponse]
    total: int
