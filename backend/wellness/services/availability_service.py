# backend/wellness/services/availability_service.py
"""
Availability Service for the wellness marketplace

Therapist self-service availability:
- Concrete slots on specific dates (no overlaps on the same date)
- The weekly availability template used to filter generated slots

And the customer-facing slot listing for a service on a date, generated
from business hours and narrowed by the therapist's weekly windows and
existing bookings.
"""

from dataclasses import dataclass
from datetime import date
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import AvailabilityOverlapException, NotFoundException, ValidationException
from ..domain.scheduling import (
    WEEKDAY_NAMES,
    TimeSlot,
    format_hhmm,
    generate_slots,
    is_slot_available,
    parse_hhmm,
    ranges_overlap,
)
from ..models.availability import SlotStatus, TherapistAvailabilitySlot
from ..models.therapist import Therapist
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotAvailability:
    start_time: str
    end_time: str
    is_available: bool
    status: str


class AvailabilityService(BaseService):
    """Service layer for therapist availability and slot listings."""

    def __init__(self, db: Session, break_minutes: Optional[int] = None):
        super().__init__(db)
        self.break_minutes = (
            settings.default_break_minutes if break_minutes is None else break_minutes
        )
        self.repository = RepositoryFactory.create_availability_repository(db)
        self.therapist_repository = RepositoryFactory.create_therapist_repository(db)
        self.service_repository = RepositoryFactory.create_service_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)

    def _therapist_for_user(self, user_id: str) -> Therapist:
        therapist = self.therapist_repository.get_by_user_id(user_id)
        if not therapist:
            raise NotFoundException("Therapist profile not found")
        return therapist

    @BaseService.measure_operation("create_slot")
    def create_slot(
        self, therapist_user_id: str, slot_date: date, start_time: str, end_time: str
    ) -> TherapistAvailabilitySlot:
        """
        Publish a bookable slot for the calling therapist.

        Slots on the same date may touch but not intersect.

        Raises:
            ValidationException: Malformed times or end not after start
            AvailabilityOverlapException: Intersects an existing slot
        """
        if not isinstance(slot_date, date):
            raise ValidationException("date must be a date", details={"field": "date"})
        start = parse_hhmm(start_time, "start_time")
        end = parse_hhmm(end_time, "end_time")
        if end <= start:
            raise ValidationException(
                "end_time must be after start_time",
                details={"start_time": start_time, "end_time": end_time},
            )
        start_time, end_time = format_hhmm(start), format_hhmm(end)
        therapist = self._therapist_for_user(therapist_user_id)

        with self.transaction():
            existing = self.repository.find_overlapping(
                therapist.id, slot_date, start_time, end_time
            )
            if existing:
                raise AvailabilityOverlapException(
                    specific_date=slot_date.isoformat(),
                    new_range=f"{start_time}-{end_time}",
                    conflicting_range=f"{existing.start_time}-{existing.end_time}",
                )
            slot = self.repository.create(
                therapist_id=therapist.id,
                date=slot_date,
                start_time=start_time,
                end_time=end_time,
                status=SlotStatus.AVAILABLE.value,
            )

        self.logger.info(
            f"Therapist {therapist.id} published slot {slot.id} on {slot_date} "
            f"{start_time}-{end_time}"
        )
        return slot

    def list_slots(self, therapist_id: str, slot_date: date) -> List[TherapistAvailabilitySlot]:
        return self.repository.get_slots_for_date(therapist_id, slot_date)

    @BaseService.measure_operation("set_weekly_availability")
    def set_weekly_availability(
        self, therapist_user_id: str, weekly: Mapping[str, Sequence[Mapping[str, Any]]]
    ) -> Therapist:
        """
        Replace the therapist's weekly availability template.

        Day names are matched case-insensitively and stored capitalized
        ("Monday"); windows are stored as start_time/end_time pairs.
        """
        cleaned: Dict[str, List[Dict[str, str]]] = {}
        for raw_day, windows in weekly.items():
            day = str(raw_day).strip().lower()
            if day not in WEEKDAY_NAMES:
                raise ValidationException(f"Unknown weekday: {raw_day}", details={"day": raw_day})
            day_windows = cleaned.setdefault(day.capitalize(), [])
            for window in windows:
                start = parse_hhmm(window.get("start_time", ""), "start_time")
                end = parse_hhmm(window.get("end_time", ""), "end_time")
                if end <= start:
                    raise ValidationException(
                        "end_time must be after start_time",
                        details={"day": raw_day, "window": dict(window)},
                    )
                day_windows.append({"start_time": format_hhmm(start), "end_time": format_hhmm(end)})

        therapist = self._therapist_for_user(therapist_user_id)
        with self.transaction():
            therapist = self.therapist_repository.set_weekly_availability(therapist, cleaned)

        self.logger.info(f"Therapist {therapist.id} updated weekly availability ({len(cleaned)} days)")
        return therapist

    @BaseService.measure_operation("get_available_slots")
    def get_available_slots(
        self, service_id: str, on_date: date, therapist_id: Optional[str] = None
    ) -> List[SlotAvailability]:
        """
        Candidate slots for a service on a date.

        Slots come from the business's opening hours and the service
        duration, separated by the configured break. With a therapist, a
        slot is available only if it falls inside the therapist's weekly
        availability and no live booking of theirs overlaps it.
        """
        service = self.service_repository.get_with_business(service_id)
        if not service:
            raise NotFoundException("Service not found", details={"service_id": service_id})
        business = service.business
        candidates = list(
            generate_slots(
                business.opening_time,
                business.closing_time,
                service.duration_minutes,
                self.break_minutes,
            )
        )
        if not therapist_id:
            return [
                SlotAvailability(slot.start_time, slot.end_time, True, SlotStatus.AVAILABLE.value)
                for slot in candidates
            ]

        therapist = self.therapist_repository.get_by_id(therapist_id)
        if not therapist:
            raise NotFoundException("Therapist not found", details={"therapist_id": therapist_id})
        bookings = self.booking_repository.get_therapist_bookings_for_date(therapist.id, on_date)

        result: List[SlotAvailability] = []
        for slot in candidates:
            clash = self._first_overlapping_booking(slot, bookings)
            open_in_schedule = is_slot_available(slot, therapist.weekly_availability, on_date)
            result.append(
                SlotAvailability(
                    start_time=slot.start_time,
                    end_time=slot.end_time,
                    is_available=open_in_schedule and clash is None,
                    status=clash.status if clash is not None else SlotStatus.AVAILABLE.value,
                )
            )
        return result

    @staticmethod
    def _first_overlapping_booking(slot: TimeSlot, bookings: Sequence[Any]) -> Optional[Any]:
        slot_start = parse_hhmm(slot.start_time)
        slot_end = parse_hhmm(slot.end_time)
        for booking in bookings:
            start = parse_hhmm(booking.time)
            end = parse_hhmm(booking.end_time) if booking.end_time else start + 1
            if ranges_overlap(slot_start, slot_end, start, end):
                return booking
        return None
