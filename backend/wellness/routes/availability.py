# backend/wellness/routes/availability.py
"""
Availability routes

Endpoints:
    POST /availability/slots                       → Therapist publishes a slot
    GET  /availability/therapists/{id}/slots       → Published slots on a date
    PUT  /availability/weekly                      → Therapist replaces the weekly template
    GET  /availability/services/{service_id}/slots → Generated slots for a service on a date
"""

from datetime import date
import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query, status

from ..auth import Principal, get_current_principal, require_role
from ..core.enums import RoleName
from ..core.exceptions import DomainException
from ..schemas.availability import (
    AvailableSlotResponse,
    AvailableSlotsResponse,
    SlotCreate,
    SlotResponse,
    WeeklyAvailabilityResponse,
    WeeklyAvailabilityUpdate,
)
from ..services.availability_service import AvailabilityService
from .dependencies import get_availability_service, handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["availability"])


@router.post("/slots", response_model=SlotResponse, status_code=status.HTTP_201_CREATED)
def create_slot(
    payload: SlotCreate = Body(...),
    principal: Principal = Depends(require_role(RoleName.THERAPIST)),
    service: AvailabilityService = Depends(get_availability_service),
) -> SlotResponse:
    try:
        slot = service.create_slot(principal.id, payload.date, payload.start_time, payload.end_time)
    except DomainException as e:
        handle_domain_exception(e)
    return SlotResponse.model_validate(slot)


@router.get("/therapists/{therapist_id}/slots", response_model=List[SlotResponse])
def list_therapist_slots(
    therapist_id: str,
    on_date: date = Query(..., alias="date"),
    _: Principal = Depends(get_current_principal),
    service: AvailabilityService = Depends(get_availability_service),
) -> List[SlotResponse]:
    return [SlotResponse.model_validate(s) for s in service.list_slots(therapist_id, on_date)]


@router.put("/weekly", response_model=WeeklyAvailabilityResponse)
def set_weekly_availability(
    payload: WeeklyAvailabilityUpdate = Body(...),
    principal: Principal = Depends(require_role(RoleName.THERAPIST)),
    service: AvailabilityService = Depends(get_availability_service),
) -> WeeklyAvailabilityResponse:
    weekly = {
        day: [window.model_dump() for window in windows]
        for day, windows in payload.weekly_availability.items()
    }
    try:
        therapist = service.set_weekly_availability(principal.id, weekly)
    except DomainException as e:
        handle_domain_exception(e)
    return WeeklyAvailabilityResponse(
        therapist_id=therapist.id, weekly_availability=therapist.weekly_availability or {}
    )


@router.get("/services/{service_id}/slots", response_model=AvailableSlotsResponse)
def get_available_slots(
    service_id: str,
    on_date: date = Query(..., alias="date"),
    therapist_id: Optional[str] = Query(None),
    _: Principal = Depends(get_current_principal),
    service: AvailabilityService = Depends(get_availability_service),
) -> AvailableSlotsResponse:
    """Candidate start times; with therapist_id, each carries whether it is bookable."""
    try:
        slots = service.get_available_slots(service_id, on_date, therapist_id)
    except DomainException as e:
        handle_domain_exception(e)
    return AvailableSlotsResponse(
        service_id=service_id,
        date=on_date,
        therapist_id=therapist_id,
        slots=[
            AvailableSlotResponse(
                start_time=s.start_time,
                end_time=s.end_time,
                is_available=s.is_available,
                status=s.status,
            )
            for s in slots
        ],
    )
