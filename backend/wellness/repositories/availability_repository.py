# backend/wellness/repositories/availability_repository.py
"""
AvailabilityRepository - Concrete Therapist Slots

Handles the therapist_availability_slots table: creation, overlap lookups
and the atomic available -> booked claim that guards against double booking.
"""

from datetime import date
import logging
from typing import List, Optional, cast

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.availability import SlotStatus, TherapistAvailabilitySlot
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class AvailabilityRepository(BaseRepository[TherapistAvailabilitySlot]):
    """Repository for therapist availability slots."""

    def __init__(self, db: Session):
        super().__init__(db, TherapistAvailabilitySlot)
        self.logger = logging.getLogger(__name__)

    def get_slots_for_date(
        self, therapist_id: str, slot_date: date
    ) -> List[TherapistAvailabilitySlot]:
        """All slots for a therapist on one date, ordered by start time."""
        try:
            return cast(
                List[TherapistAvailabilitySlot],
                self.db.query(TherapistAvailabilitySlot)
                .filter(
                    TherapistAvailabilitySlot.therapist_id == therapist_id,
                    TherapistAvailabilitySlot.date == slot_date,
                )
                .order_by(TherapistAvailabilitySlot.start_time)
                .all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting slots for {therapist_id} on {slot_date}: {str(e)}")
            raise RepositoryException(f"Failed to get availability slots: {str(e)}")

    def find_overlapping(
        self, therapist_id: str, slot_date: date, start_time: str, end_time: str
    ) -> Optional[TherapistAvailabilitySlot]:
        """
        First slot on the date whose [start, end) intersects the given range.

        HH:MM strings are zero-padded, so lexical comparison matches time order.
        """
        try:
            return cast(
                Optional[TherapistAvailabilitySlot],
                self.db.query(TherapistAvailabilitySlot)
                .filter(
                    TherapistAvailabilitySlot.therapist_id == therapist_id,
                    TherapistAvailabilitySlot.date == slot_date,
                    TherapistAvailabilitySlot.start_time < end_time,
                    TherapistAvailabilitySlot.end_time > start_time,
                )
                .order_by(TherapistAvailabilitySlot.start_time)
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking slot overlap: {str(e)}")
            raise RepositoryException(f"Failed to check slot overlap: {str(e)}")

    def find_available_covering(
        self, therapist_id: str, slot_date: date, at_time: str
    ) -> Optional[TherapistAvailabilitySlot]:
        """Available slot whose window satisfies start <= at_time < end."""
        try:
            return cast(
                Optional[TherapistAvailabilitySlot],
                self.db.query(TherapistAvailabilitySlot)
                .filter(
                    TherapistAvailabilitySlot.therapist_id == therapist_id,
                    TherapistAvailabilitySlot.date == slot_date,
                    TherapistAvailabilitySlot.status == SlotStatus.AVAILABLE.value,
                    TherapistAvailabilitySlot.start_time <= at_time,
                    TherapistAvailabilitySlot.end_time > at_time,
                )
                .order_by(TherapistAvailabilitySlot.start_time)
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding covering slot: {str(e)}")
            raise RepositoryException(f"Failed to find availability slot: {str(e)}")

    def claim_slot(self, slot_id: str) -> bool:
        """
        Flip a slot from available to booked in one conditional UPDATE.

        Returns False when another transaction already claimed it.
        """
        try:
            result = self.db.execute(
                update(TherapistAvailabilitySlot)
                .where(
                    TherapistAvailabilitySlot.id == slot_id,
                    TherapistAvailabilitySlot.status == SlotStatus.AVAILABLE.value,
                )
                .values(status=SlotStatus.BOOKED.value)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error claiming slot {slot_id}: {str(e)}")
            raise RepositoryException(f"Failed to claim slot: {str(e)}")
        claimed = result.rowcount == 1
        self.logger.debug("Slot %s claim %s", slot_id, "won" if claimed else "lost")
        return claimed

    def release_slot(self, slot_id: str) -> bool:
        """Return a booked slot to available. False if it was not booked."""
        try:
            result = self.db.execute(
                update(TherapistAvailabilitySlot)
                .where(
                    TherapistAvailabilitySlot.id == slot_id,
                    TherapistAvailabilitySlot.status == SlotStatus.BOOKED.value,
                )
                .values(status=SlotStatus.AVAILABLE.value)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error releasing slot {slot_id}: {str(e)}")
            raise RepositoryException(f"Failed to release slot: {str(e)}")
        return result.rowcount == 1
