# backend/wellness/routes/dependencies.py
"""Service providers and shared helpers for the routers."""

from typing import NoReturn

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..core.exceptions import DomainException
from ..database import get_db
from ..services.association_service import AssociationService
from ..services.availability_service import AvailabilityService
from ..services.booking_service import BookingService
from ..services.payment_service import PaymentService

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    return BookingService(db)


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    return AvailabilityService(db)


def get_association_service(db: Session = Depends(get_db)) -> AssociationService:
    return AssociationService(db)


def get_payment_service(
    db: Session = Depends(get_db),
    booking_service: BookingService = Depends(get_booking_service),
) -> PaymentService:
    return PaymentService(
        db,
        notification_service=booking_service.notification_service,
        booking_service=booking_service,
    )


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
