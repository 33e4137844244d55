# backend/wellness/repositories/therapist_repository.py
"""
Therapist Repository

Therapist profiles, their weekly availability and their approval state
with each business.
"""

from datetime import datetime, timezone
import logging
from typing import Any, Dict, List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..core.enums import AssociationStatus
from ..core.exceptions import RepositoryException
from ..models.therapist import Therapist, TherapistBusinessAssociation
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class TherapistRepository(BaseRepository[Therapist]):
    def __init__(self, db: Session):
        super().__init__(db, Therapist)
        self.logger = logging.getLogger(__name__)

    def get_by_user_id(self, user_id: str) -> Optional[Therapist]:
        return cast(Optional[Therapist], self.find_one_by(user_id=user_id))

    def is_approved_for_business(self, therapist_id: str, business_id: str) -> bool:
        """True iff the therapist holds an approved association with the business."""
        try:
            return (
                self.db.query(TherapistBusinessAssociation)
                .filter(
                    TherapistBusinessAssociation.therapist_id == therapist_id,
                    TherapistBusinessAssociation.business_id == business_id,
                    TherapistBusinessAssociation.status == AssociationStatus.APPROVED.value,
                )
                .first()
                is not None
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking association {therapist_id}/{business_id}: {str(e)}")
            raise RepositoryException(f"Failed to check therapist association: {str(e)}")

    def get_association(
        self, therapist_id: str, business_id: str
    ) -> Optional[TherapistBusinessAssociation]:
        try:
            return cast(
                Optional[TherapistBusinessAssociation],
                self.db.query(TherapistBusinessAssociation)
                .filter(
                    TherapistBusinessAssociation.therapist_id == therapist_id,
                    TherapistBusinessAssociation.business_id == business_id,
                )
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting association {therapist_id}/{business_id}: {str(e)}")
            raise RepositoryException(f"Failed to get therapist association: {str(e)}")

    def get_associations_for_business(
        self, business_id: str, status: Optional[AssociationStatus] = None
    ) -> List[TherapistBusinessAssociation]:
        """Associations of a business with their therapists loaded, oldest request first."""
        try:
            query = (
                self.db.query(TherapistBusinessAssociation)
                .options(joinedload(TherapistBusinessAssociation.therapist))
                .filter(TherapistBusinessAssociation.business_id == business_id)
            )
            if status is not None:
                query = query.filter(TherapistBusinessAssociation.status == status.value)
            return cast(
                List[TherapistBusinessAssociation],
                query.order_by(TherapistBusinessAssociation.requested_at).all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing therapists for {business_id}: {str(e)}")
            raise RepositoryException(f"Failed to list therapists: {str(e)}")

    def request_association(
        self, therapist_id: str, business_id: str
    ) -> TherapistBusinessAssociation:
        """Create a pending association, or reopen a rejected one."""
        association = self.get_association(therapist_id, business_id)
        if association is None:
            association = TherapistBusinessAssociation(
                therapist_id=therapist_id, business_id=business_id
            )
            self.db.add(association)
        association.status = AssociationStatus.PENDING.value
        association.requested_at = datetime.now(timezone.utc)
        association.approved_at = None
        self.db.flush()
        return association

    def set_association_status(
        self,
        association: TherapistBusinessAssociation,
        status: AssociationStatus,
        decided_at: datetime,
    ) -> TherapistBusinessAssociation:
        association.status = status.value
        association.approved_at = decided_at if status == AssociationStatus.APPROVED else None
        self.db.flush()
        return association

    def set_weekly_availability(
        self, therapist: Therapist, weekly: Dict[str, List[Dict[str, Any]]]
    ) -> Therapist:
        therapist.weekly_availability = weekly
        self.db.flush()
        return therapist
