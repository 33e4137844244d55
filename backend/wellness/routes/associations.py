# backend/wellness/routes/associations.py
"""
Therapist and business association routes

Endpoints:
    POST  /associations                 → Therapist asks to join a business
    GET   /associations                 → Business lists its therapists (optional ?status=)
    PATCH /associations/{therapist_id}  → Business approves or rejects a pending request
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Body, Depends, Path, Query, status

from ..auth import Principal, require_role
from ..core.enums import AssociationStatus, RoleName
from ..core.exceptions import DomainException
from ..schemas.association import (
    AssociationDecision,
    AssociationRequestCreate,
    AssociationResponse,
    RosterEntry,
    RosterResponse,
)
from ..services.association_service import AssociationService
from .dependencies import ULID_PATH_PATTERN, get_association_service, handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["associations"])


@router.post("", response_model=AssociationResponse, status_code=status.HTTP_201_CREATED)
def request_business(
    payload: AssociationRequestCreate = Body(...),
    principal: Principal = Depends(require_role(RoleName.THERAPIST)),
    service: AssociationService = Depends(get_association_service),
) -> AssociationResponse:
    try:
        association = service.request_business(principal.id, payload.business_id)
    except DomainException as e:
        handle_domain_exception(e)
    return AssociationResponse.model_validate(association)


@router.get("", response_model=RosterResponse)
def list_business_therapists(
    status_filter: Optional[AssociationStatus] = Query(None, alias="status"),
    principal: Principal = Depends(require_role(RoleName.BUSINESS)),
    service: AssociationService = Depends(get_association_service),
) -> RosterResponse:
    try:
        associations = service.list_business_therapists(principal.id, status_filter)
    except DomainException as e:
        handle_domain_exception(e)
    entries = [
        RosterEntry(
            id=a.id,
            therapist_id=a.therapist_id,
            business_id=a.business_id,
            status=a.status,
            requested_at=a.requested_at,
            approved_at=a.approved_at,
            therapist_name=a.therapist.full_name,
            professional_title=a.therapist.professional_title,
        )
        for a in associations
    ]
    return RosterResponse(therapists=entries, total=len(entries))


@router.patch("/{therapist_id}", response_model=AssociationResponse)
def decide_association(
    therapist_id: Annotated[str, Path(description="Therapist ULID", pattern=ULID_PATH_PATTERN)],
    payload: AssociationDecision = Body(...),
    principal: Principal = Depends(require_role(RoleName.BUSINESS)),
    service: AssociationService = Depends(get_association_service),
) -> AssociationResponse:
    try:
        association = service.decide_association(principal.id, therapist_id, payload.action)
    except DomainException as e:
        handle_domain_exception(e)
    return AssociationResponse.model_validate(association)
