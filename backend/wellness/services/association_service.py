# backend/wellness/services/association_service.py
"""
Association Service for the wellness marketplace

A therapist works for a business only once the business approves them.
Handles:
- Therapists asking to join a business
- The business approving or rejecting a pending request
- The business's roster, optionally filtered by approval state
"""

from datetime import datetime, timezone
import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.enums import AssociationStatus
from ..core.exceptions import ConflictException, NotFoundException, ValidationException
from ..models.business import Business
from ..models.therapist import Therapist, TherapistBusinessAssociation
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

DECISIONS: Dict[str, AssociationStatus] = {
    "approve": AssociationStatus.APPROVED,
    "reject": AssociationStatus.REJECTED,
}


class AssociationService(BaseService):
    """Service layer for therapist and business associations."""

    def __init__(self, db: Session, notification_service: Optional[NotificationService] = None):
        super().__init__(db)
        self.notification_service = notification_service or NotificationService()
        self.therapist_repository = RepositoryFactory.create_therapist_repository(db)
        self.business_repository = RepositoryFactory.create_business_repository(db)

    def _therapist_for_user(self, user_id: str) -> Therapist:
        therapist = self.therapist_repository.get_by_user_id(user_id)
        if not therapist:
            raise NotFoundException("Therapist profile not found")
        return therapist

    def _business_for_owner(self, owner_id: str) -> Business:
        business = self.business_repository.get_by_owner(owner_id)
        if not business:
            raise NotFoundException("Business not found")
        return business

    @BaseService.measure_operation("request_business")
    def request_business(
        self, therapist_user_id: str, business_id: str
    ) -> TherapistBusinessAssociation:
        """
        Ask to work for a business.

        A previously rejected therapist may ask again; the request reopens
        as pending.

        Raises:
            NotFoundException: No therapist profile, or the business is missing
            ConflictException: A request is already pending or approved
        """
        therapist = self._therapist_for_user(therapist_user_id)
        business = self.business_repository.get_by_id(business_id)
        if not business:
            raise NotFoundException("Business not found", details={"business_id": business_id})

        existing = self.therapist_repository.get_association(therapist.id, business.id)
        if existing and existing.status == AssociationStatus.PENDING.value:
            raise ConflictException("Already requested", details={"business_id": business.id})
        if existing and existing.status == AssociationStatus.APPROVED.value:
            raise ConflictException("Already approved", details={"business_id": business.id})

        with self.transaction():
            association = self.therapist_repository.request_association(therapist.id, business.id)

        self.logger.info(f"Therapist {therapist.id} requested to join business {business.id}")
        self.notification_service.notify_association_requested(
            business.owner_id, therapist.full_name, business.name
        )
        return association

    @BaseService.measure_operation("decide_association")
    def decide_association(
        self, business_user_id: str, therapist_id: str, decision: str
    ) -> TherapistBusinessAssociation:
        """
        Approve or reject a therapist's pending request.

        Raises:
            ValidationException: decision is not approve or reject
            NotFoundException: Business, therapist or pending request missing
        """
        status = DECISIONS.get((decision or "").strip().lower())
        if status is None:
            raise ValidationException(
                "action must be 'approve' or 'reject'", details={"action": decision}
            )
        business = self._business_for_owner(business_user_id)
        therapist = self.therapist_repository.get_by_id(therapist_id)
        if not therapist:
            raise NotFoundException("Therapist not found", details={"therapist_id": therapist_id})

        association = self.therapist_repository.get_association(therapist.id, business.id)
        if not association or association.status != AssociationStatus.PENDING.value:
            raise NotFoundException(
                "No pending request found", details={"therapist_id": therapist.id}
            )

        with self.transaction():
            association = self.therapist_repository.set_association_status(
                association, status, datetime.now(timezone.utc)
            )

        self.logger.info(f"Business {business.id} {status.value} therapist {therapist.id}")
        self.notification_service.notify_association_decided(
            therapist.user_id, business.name, status.value
        )
        return association

    def list_business_therapists(
        self, business_user_id: str, status: Optional[AssociationStatus] = None
    ) -> List[TherapistBusinessAssociation]:
        business = self._business_for_owner(business_user_id)
        return self.therapist_repository.get_associations_for_business(business.id, status)
