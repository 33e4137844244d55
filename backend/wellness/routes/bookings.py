# backend/wellness/routes/bookings.py
"""
Booking routes

All business logic is delegated to BookingService; every status change
goes through the booking state machine there.

Endpoints:
    POST /bookings                         → Customer books a therapist's slot
    POST /bookings/requests                → Customer asks a business for an appointment
    GET  /bookings/mine                    → Customer's bookings (masked statuses)
    GET  /bookings/mine/{booking_id}       → One of the customer's bookings
    GET  /bookings/business                → Business's bookings (full view)
    GET  /bookings/business/responses      → Therapist responses awaiting relay
    GET  /bookings/therapist/assigned      → Therapist's assigned bookings
    POST /bookings/{booking_id}/assign     → Business assigns a therapist
    POST /bookings/{booking_id}/respond    → Therapist confirms or rejects
    POST /bookings/{booking_id}/relay      → Business relays or reverts a response
    POST /bookings/{booking_id}/reschedule → Business moves the appointment
    POST /bookings/{booking_id}/cancel     → Any party cancels
    POST /bookings/{booking_id}/complete   → Therapist marks the session done
"""

import logging
from typing import Annotated, Optional, Union

from fastapi import APIRouter, Body, Depends, Path, Query, status

from ..auth import Principal, get_current_principal, require_role
from ..core.enums import RoleName
from ..core.exceptions import DomainException
from ..models.booking import Booking, BookingStatus
from ..schemas.booking import (
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
from ..services.booking_service import BookingService
from .dependencies import ULID_PATH_PATTERN, get_booking_service, handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["bookings"])

BookingId = Annotated[str, Path(description="Booking ULID", pattern=ULID_PATH_PATTERN)]


def _view_for(principal: Principal, booking: Booking) -> Union[BookingResponse, CustomerBookingView]:
    if principal.role == RoleName.CUSTOMER:
        return CustomerBookingView.from_booking(booking)
    return BookingResponse.model_validate(booking)


@router.post(
    "",
    response_model=CustomerBookingView,
    status_code=status.HTTP_201_CREATED,
)
def create_direct_booking(
    payload: DirectBookingCreate = Body(...),
    principal: Principal = Depends(require_role(RoleName.CUSTOMER)),
    service: BookingService = Depends(get_booking_service),
) -> CustomerBookingView:
    """Book a therapist directly; the slot is claimed atomically or the call fails with 409."""
    try:
        booking = service.create_direct_booking(
            customer_id=principal.id,
            therapist_id=payload.therapist_id,
            service_id=payload.service_id,
            booking_date=payload.booking_date,
            time=payload.time,
            customer_note=payload.customer_note,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return CustomerBookingView.from_booking(booking)


@router.post(
    "/requests",
    response_model=CustomerBookingView,
    status_code=status.HTTP_201_CREATED,
)
def create_booking_request(
    payload: BookingRequestCreate = Body(...),
    principal: Principal = Depends(require_role(RoleName.CUSTOMER)),
    service: BookingService = Depends(get_booking_service),
) -> CustomerBookingView:
    try:
        booking = service.create_booking_request(
            customer_id=principal.id,
            service_id=payload.service_id,
            booking_date=payload.booking_date,
            time=payload.time,
            preferred_therapist_id=payload.preferred_therapist_id,
            customer_note=payload.customer_note,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return CustomerBookingView.from_booking(booking)


@router.get("/mine", response_model=CustomerBookingListResponse)
def list_my_bookings(
    principal: Principal = Depends(require_role(RoleName.CUSTOMER)),
    service: BookingService = Depends(get_booking_service),
) -> CustomerBookingListResponse:
    bookings = service.list_customer_bookings(principal.id)
    views = [CustomerBookingView.from_booking(b) for b in bookings]
    return CustomerBookingListResponse(bookings=views, total=len(views))


@router.get("/mine/{booking_id}", response_model=CustomerBookingView)
def get_my_booking(
    booking_id: BookingId,
    principal: Principal = Depends(require_role(RoleName.CUSTOMER)),
    service: BookingService = Depends(get_booking_service),
) -> CustomerBookingView:
    try:
        booking = service.get_customer_booking(principal.id, booking_id)
    except DomainException as e:
        handle_domain_exception(e)
    return CustomerBookingView.from_booking(booking)


@router.get("/business", response_model=BookingListResponse)
def list_business_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    principal: Principal = Depends(require_role(RoleName.BUSINESS)),
    service: BookingService = Depends(get_booking_service),
) -> BookingListResponse:
    try:
        bookings = service.list_business_bookings(principal.id, status_filter)
    except DomainException as e:
        handle_domain_exception(e)
    items = [BookingResponse.model_validate(b) for b in bookings]
    return BookingListResponse(bookings=items, total=len(items))


@router.get("/business/responses", response_model=BookingListResponse)
def list_pending_therapist_responses(
    principal: Principal = Depends(require_role(RoleName.BUSINESS)),
    service: BookingService = Depends(get_booking_service),
) -> BookingListResponse:
    """Hidden therapist responses the business still has to relay or revert."""
    try:
        bookings = service.list_pending_therapist_responses(principal.id)
    except DomainException as e:
        handle_domain_exception(e)
    items = [BookingResponse.model_validate(b) for b in bookings]
    return BookingListResponse(bookings=items, total=len(items))


@router.get("/therapist/assigned", response_model=BookingListResponse)
def list_assigned_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    principal: Principal = Depends(require_role(RoleName.THERAPIST)),
    service: BookingService = Depends(get_booking_service),
) -> BookingListResponse:
    try:
        bookings = service.list_therapist_assigned_bookings(principal.id, status_filter)
    except DomainException as e:
        handle_domain_exception(e)
    items = [BookingResponse.model_validate(b) for b in bookings]
    return BookingListResponse(bookings=items, total=len(items))


@router.post("/{booking_id}/assign", response_model=BookingResponse)
def assign_booking(
    booking_id: BookingId,
    payload: AssignBookingRequest = Body(...),
    principal: Principal = Depends(require_role(RoleName.BUSINESS)),
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = service.assign_booking_to_therapist(principal.id, booking_id, payload.therapist_id)
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/respond", response_model=BookingResponse)
def therapist_respond(
    booking_id: BookingId,
    payload: TherapistResponseRequest = Body(...),
    principal: Principal = Depends(require_role(RoleName.THERAPIST)),
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = service.therapist_respond(principal.id, booking_id, payload.response)
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/relay", response_model=BookingResponse)
def relay_response(
    booking_id: BookingId,
    payload: Optional[RelayRequest] = Body(None),
    principal: Principal = Depends(require_role(RoleName.BUSINESS)),
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = service.business_relay_response(
            principal.id, booking_id, payload.decision if payload else "approve"
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/reschedule", response_model=BookingResponse)
def reschedule_booking(
    booking_id: BookingId,
    payload: RescheduleRequest = Body(...),
    principal: Principal = Depends(require_role(RoleName.BUSINESS)),
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = service.reschedule_booking(
            principal.id, principal.role, booking_id, payload.new_date, payload.new_time
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.post(
    "/{booking_id}/cancel",
    response_model=Union[BookingResponse, CustomerBookingView],
)
def cancel_booking(
    booking_id: BookingId,
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
) -> Union[BookingResponse, CustomerBookingView]:
    """Cancel as whichever party is calling; customers get the masked view back."""
    try:
        booking = service.cancel_booking(principal.id, principal.role, booking_id)
    except DomainException as e:
        handle_domain_exception(e)
    return _view_for(principal, booking)


@router.post("/{booking_id}/complete", response_model=BookingResponse)
def complete_booking(
    booking_id: BookingId,
    principal: Principal = Depends(require_role(RoleName.THERAPIST)),
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = service.mark_completed(principal.id, booking_id)
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)
