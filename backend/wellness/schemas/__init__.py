# backend/wellness/schemas/__init__.py
"""Pydantic request and response DTOs."""

from .association import (
    AssociationDecision,
    AssociationRequestCreate,
    AssociationResponse,
    RosterEntry,
    RosterResponse,
)
from .availability import (
    AvailableSlotResponse,
    AvailableSlotsResponse,
    SlotCreate,
    SlotResponse,
    TimeWindow,
    WeeklyAvailabilityResponse,
    WeeklyAvailabilityUpdate,
)
from .base import Money, StandardizedModel
from .booking import (
    AssignBookingRequest,
    BookingListResponse,
    BookingRequestCreate,
    BookingResponse,
    CustomerBookingListResponse,
    CustomerBookingView,
    DirectBookingCreate,
    RelayRequest,
    RescheduleRequest,
    TherapistResponseRequest,
)
from .payment import (
    BusinessEarningItem,
    BusinessEarningsResponse,
    CashPaymentRequest,
    OrderCreateRequest,
    OrderResponse,
    PaymentFailureRequest,
    PaymentVerifyRequest,
    TherapistEarningItem,
    TherapistEarningsResponse,
)

__all__ = [
    "AssignBookingRequest",
    "AssociationDecision",
    "AssociationRequestCreate",
    "AssociationResponse",
    "AvailableSlotResponse",
    "AvailableSlotsResponse",
    "BookingListResponse",
    "BookingRequestCreate",
    "BookingResponse",
    "BusinessEarningItem",
    "BusinessEarningsResponse",
    "CashPaymentRequest",
    "CustomerBookingListResponse",
    "CustomerBookingView",
    "DirectBookingCreate",
    "Money",
    "OrderCreateRequest",
    "OrderResponse",
    "PaymentFailureRequest",
    "PaymentVerifyRequest",
    "RelayRequest",
    "RescheduleRequest",
    "RosterEntry",
    "RosterResponse",
    "SlotCreate",
    "SlotResponse",
    "StandardizedModel",
    "TherapistEarningItem",
    "TherapistEarningsResponse",
    "TherapistResponseRequest",
    "TimeWindow",
    "WeeklyAvailabilityResponse",
    "WeeklyAvailabilityUpdate",
]
