# backend/wellness/routes/payments.py
"""
Payment routes

Endpoints:
    POST /payments/orders                  → Customer opens a gateway order for the advance
    POST /payments/verify                  → Customer submits the gateway's success callback
    POST /payments/failed                  → Customer reports a failed checkout
    POST /payments/payouts/{booking_id}    → Business pays the therapist's share
    POST /payments/cash                    → Customer chooses to pay at the venue
    POST /payments/cash/{booking_id}/collect → Business records the cash as collected
    GET  /payments/earnings/therapist      → Therapist's completed bookings and payouts
    GET  /payments/earnings/business       → Business's paid bookings (?type=half|full)
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Body, Depends, Path, Query, status

from ..auth import Principal, require_role
from ..core.enums import RoleName
from ..core.exceptions import DomainException, ForbiddenException
from ..domain.booking_state import Actor
from ..schemas.booking import BookingResponse, CustomerBookingView
from ..schemas.payment import (
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
from ..services.payment_service import GatewayRefs, PaymentService
from .dependencies import ULID_PATH_PATTERN, get_payment_service, handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments"])

BookingId = Annotated[str, Path(description="Booking ULID", pattern=ULID_PATH_PATTERN)]


def _ensure_own_booking(service: PaymentService, principal: Principal, booking_id: str) -> None:
    booking = service.booking_service.get_booking(booking_id)
    if booking.customer_id != principal.id:
        raise ForbiddenException("You do not have access to this booking")


@router.post("/orders", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreateRequest = Body(...),
    principal: Principal = Depends(require_role(RoleName.CUSTOMER)),
    service: PaymentService = Depends(get_payment_service),
) -> OrderResponse:
    try:
        order = service.create_order(principal.id, payload.booking_id, payload.amount)
    except DomainException as e:
        handle_domain_exception(e)
    return OrderResponse(
        order_id=order.order_id,
        amount=order.amount_minor,
        currency=order.currency,
        key_id=order.key_id,
        is_mock=order.is_mock,
    )


@router.post("/verify", response_model=CustomerBookingView)
def verify_payment(
    payload: PaymentVerifyRequest = Body(...),
    principal: Principal = Depends(require_role(RoleName.CUSTOMER)),
    service: PaymentService = Depends(get_payment_service),
) -> CustomerBookingView:
    """Verify the gateway signature, record the payment and confirm the booking."""
    try:
        _ensure_own_booking(service, principal, payload.booking_id)
        booking = service.record_payment_success(
            payload.booking_id,
            payload.amount,
            GatewayRefs(
                order_id=payload.order_id,
                payment_id=payload.payment_id,
                signature=payload.signature,
            ),
            actor=Actor(id=principal.id, role=principal.role),
        )
    except DomainException as e:
        handle_domain_exception(e)
    return CustomerBookingView.from_booking(booking)


@router.post("/failed", response_model=CustomerBookingView)
def report_payment_failure(
    payload: PaymentFailureRequest = Body(...),
    principal: Principal = Depends(require_role(RoleName.CUSTOMER)),
    service: PaymentService = Depends(get_payment_service),
) -> CustomerBookingView:
    try:
        _ensure_own_booking(service, principal, payload.booking_id)
        booking = service.record_payment_failure(
            payload.booking_id,
            GatewayRefs(order_id=payload.order_id, payment_id=""),
            reason=payload.reason,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return CustomerBookingView.from_booking(booking)


@router.post("/payouts/{booking_id}", response_model=BookingResponse)
def pay_therapist(
    booking_id: BookingId,
    principal: Principal = Depends(require_role(RoleName.BUSINESS)),
    service: PaymentService = Depends(get_payment_service),
) -> BookingResponse:
    try:
        booking = service.pay_therapist(principal.id, booking_id)
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.post("/cash", response_model=CustomerBookingView)
def choose_cash_payment(
    payload: CashPaymentRequest = Body(...),
    principal: Principal = Depends(require_role(RoleName.CUSTOMER)),
    service: PaymentService = Depends(get_payment_service),
) -> CustomerBookingView:
    """Pay at the venue: the booking is confirmed and the payment stays pending."""
    try:
        booking = service.process_cash_payment(principal.id, payload.booking_id, payload.amount)
    except DomainException as e:
        handle_domain_exception(e)
    return CustomerBookingView.from_booking(booking)


@router.post("/cash/{booking_id}/collect", response_model=BookingResponse)
def collect_cash_payment(
    booking_id: BookingId,
    principal: Principal = Depends(require_role(RoleName.BUSINESS)),
    service: PaymentService = Depends(get_payment_service),
) -> BookingResponse:
    try:
        booking = service.collect_cash_payment(principal.id, booking_id)
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.get("/earnings/therapist", response_model=TherapistEarningsResponse)
def therapist_earnings(
    principal: Principal = Depends(require_role(RoleName.THERAPIST)),
    service: PaymentService = Depends(get_payment_service),
) -> TherapistEarningsResponse:
    try:
        earnings = service.therapist_earnings(principal.id)
    except DomainException as e:
        handle_domain_exception(e)
    return TherapistEarningsResponse(
        bookings=[
            TherapistEarningItem(
                booking_id=line.booking.id,
                display_code=line.booking.display_code,
                booking_date=line.booking.booking_date,
                time=line.booking.time,
                service_price=line.booking.service_price,
                payout_amount=line.payout_amount,
                payout_status=line.payout_status,
                completed_at=line.booking.completed_at,
                paid_at=line.booking.therapist_paid_at,
            )
            for line in earnings.lines
        ],
        total=earnings.total,
        paid=earnings.paid,
        pending=earnings.pending,
    )


@router.get("/earnings/business", response_model=BusinessEarningsResponse)
def business_earnings(
    payment_type: str = Query(..., alias="type", description='"half" or "full"'),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    principal: Principal = Depends(require_role(RoleName.BUSINESS)),
    service: PaymentService = Depends(get_payment_service),
) -> BusinessEarningsResponse:
    try:
        earnings = service.business_earnings(principal.id, payment_type, page, limit)
    except DomainException as e:
        handle_domain_exception(e)
    return BusinessEarningsResponse(
        bookings=[
            BusinessEarningItem(
                booking_id=b.id,
                display_code=b.display_code,
                customer_id=b.customer_id,
                therapist_id=b.therapist_id,
                service_id=b.service_id,
                booking_date=b.booking_date,
                time=b.time,
                service_price=b.service_price,
                payment_status=b.payment_status,
                status=b.status,
            )
            for b in earnings.bookings
        ],
        total_amount=earnings.total_amount,
        total=earnings.count,
        page=earnings.page,
        limit=earnings.limit,
    )
