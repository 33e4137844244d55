# backend/wellness/repositories/booking_repository.py
"""
Booking Repository

Implements all data access for bookings. The only write path for a
booking's status and customer-visibility flag is ``apply_transition``: it
applies a plan from wellness.domain.booking_state as one conditional UPDATE
keyed on the booking id, the status the plan was computed from and the
row version. If another request moved the booking first, no row matches
and the caller gets a ConflictException instead of a lost update.
"""

from datetime import date, datetime
from decimal import Decimal
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple, cast

from sqlalchemy import or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload
from sqlalchemy.sql import func

from ..core.exceptions import ConflictException, RepositoryException
from ..domain.booking_state import TransitionPlan
from ..models.booking import (
    TERMINAL_STATUSES,
    Booking,
    BookingStatus,
    PaymentStatus,
    PayoutStatus,
)
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

# Never accepted as extra values alongside a plan.
_PLAN_OWNED_FIELDS = frozenset({"status", "response_visible_to_business_only", "version"})
_TERMINAL_VALUES = [s.value for s in TERMINAL_STATUSES]


class BookingRepository(BaseRepository[Booking]):
    """Repository for booking data access."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    def apply_transition(self, booking: Booking, plan: TransitionPlan, **extra: Any) -> Booking:
        """
        Persist a planned transition with a compare-and-set UPDATE.

        Args:
            booking: The booking the plan was computed from
            plan: Output of plan_transition
            **extra: Non-state columns written in the same statement (e.g. slot_id)

        Returns:
            The refreshed booking

        Raises:
            ConflictException: The booking changed since it was read
        """
        if plan.noop:
            return booking
        forbidden = _PLAN_OWNED_FIELDS.intersection(extra)
        if forbidden:
            raise ValueError(f"Fields {sorted(forbidden)} may only be set by a transition plan")

        values: Dict[str, Any] = dict(plan.changes)
        values.update(extra)
        values["version"] = Booking.version + 1
        values["updated_at"] = func.now()

        try:
            result = self.db.execute(
                update(Booking)
                .where(
                    Booking.id == booking.id,
                    Booking.status == plan.from_status.value,
                    Booking.version == booking.version,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error applying {plan.action.value} to booking {booking.id}: {str(e)}")
            raise RepositoryException(f"Failed to update booking: {str(e)}")

        if result.rowcount != 1:
            self.logger.warning(
                "Stale transition %s on booking %s (expected status %s, version %s)",
                plan.action.value,
                booking.id,
                plan.from_status.value,
                booking.version,
            )
            raise ConflictException(
                "Booking was modified by another request; reload and try again",
                code="BOOKING_STALE",
                details={"booking_id": booking.id, "expected_status": plan.from_status.value},
            )

        self.db.refresh(booking)
        return booking

    def set_payment_status(self, booking: Booking, payment_status: PaymentStatus) -> Booking:
        """Record a payment outcome that does not move the booking's status."""
        try:
            self.db.execute(
                update(Booking)
                .where(Booking.id == booking.id)
                .values(
                    payment_status=payment_status.value,
                    version=Booking.version + 1,
                    updated_at=func.now(),
                )
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error setting payment status on {booking.id}: {str(e)}")
            raise RepositoryException(f"Failed to update payment status: {str(e)}")
        self.db.refresh(booking)
        return booking

    def mark_payout_paid(self, booking: Booking, amount: Decimal, paid_at: datetime) -> bool:
        """
        Record the therapist payout once. Returns False if it was already
        marked paid by another request.
        """
        try:
            result = self.db.execute(
                update(Booking)
                .where(
                    Booking.id == booking.id,
                    or_(
                        Booking.therapist_payout_status.is_(None),
                        Booking.therapist_payout_status != PayoutStatus.PAID.value,
                    ),
                )
                .values(
                    therapist_payout_status=PayoutStatus.PAID.value,
                    therapist_payout_amount=amount,
                    therapist_paid_at=paid_at,
                    version=Booking.version + 1,
                    updated_at=func.now(),
                )
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error recording payout for {booking.id}: {str(e)}")
            raise RepositoryException(f"Failed to record payout: {str(e)}")
        self.db.refresh(booking)
        return result.rowcount == 1

    def get_booking_with_details(self, booking_id: str) -> Optional[Booking]:
        return self.get_by_id(booking_id, load_relationships=True)

    def find_duplicate_request(
        self, customer_id: str, service_id: str, booking_date: date, time: str
    ) -> Optional[Booking]:
        """A live booking by the same customer for the same service, date and time."""
        try:
            return cast(
                Optional[Booking],
                self.db.query(Booking)
                .filter(
                    Booking.customer_id == customer_id,
                    Booking.service_id == service_id,
                    Booking.booking_date == booking_date,
                    Booking.time == time,
                    Booking.status.notin_(_TERMINAL_VALUES),
                )
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking duplicate request: {str(e)}")
            raise RepositoryException(f"Failed to check duplicate booking: {str(e)}")

    def get_customer_bookings(self, customer_id: str) -> List[Booking]:
        try:
            query = self._apply_eager_loading(
                self.db.query(Booking).filter(Booking.customer_id == customer_id)
            )
            return cast(
                List[Booking],
                query.order_by(Booking.booking_date.desc(), Booking.time.desc()).all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting customer bookings: {str(e)}")
            raise RepositoryException(f"Failed to get customer bookings: {str(e)}")

    def get_business_bookings(
        self, business_id: str, status: Optional[BookingStatus] = None
    ) -> List[Booking]:
        try:
            query = self.db.query(Booking).filter(Booking.business_id == business_id)
            if status is not None:
                query = query.filter(Booking.status == status.value)
            return cast(
                List[Booking], query.order_by(Booking.booking_date, Booking.time).all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting business bookings: {str(e)}")
            raise RepositoryException(f"Failed to get business bookings: {str(e)}")

    def get_therapist_assigned_bookings(
        self, therapist_id: str, statuses: Sequence[BookingStatus]
    ) -> List[Booking]:
        """Business-assigned bookings routed to the therapist, soonest first."""
        try:
            query = self._apply_eager_loading(
                self.db.query(Booking).filter(
                    Booking.therapist_id == therapist_id,
                    Booking.assigned_by_admin.is_(True),
                    Booking.status.in_([s.value for s in statuses]),
                )
            )
            return cast(
                List[Booking], query.order_by(Booking.booking_date, Booking.time).all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting assigned bookings for {therapist_id}: {str(e)}")
            raise RepositoryException(f"Failed to get assigned bookings: {str(e)}")

    def get_awaiting_relay(self, business_id: str) -> List[Booking]:
        """Therapist responses the business has not shared with the customer yet."""
        try:
            query = self._apply_eager_loading(
                self.db.query(Booking).filter(
                    Booking.business_id == business_id,
                    Booking.assigned_by_admin.is_(True),
                    Booking.response_visible_to_business_only.is_(True),
                )
            )
            return cast(
                List[Booking], query.order_by(Booking.booking_date, Booking.time).all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting responses awaiting relay: {str(e)}")
            raise RepositoryException(f"Failed to get therapist responses: {str(e)}")

    def get_therapist_completed_bookings(self, therapist_id: str) -> List[Booking]:
        try:
            return cast(
                List[Booking],
                self.db.query(Booking)
                .filter(
                    Booking.therapist_id == therapist_id,
                    Booking.status == BookingStatus.COMPLETED.value,
                )
                .order_by(Booking.completed_at.desc())
                .all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting completed bookings for {therapist_id}: {str(e)}")
            raise RepositoryException(f"Failed to get completed bookings: {str(e)}")

    def get_business_paid_bookings(
        self,
        business_id: str,
        payment_statuses: Sequence[PaymentStatus],
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> Tuple[List[Booking], int]:
        """
        Confirmed or completed bookings of a business by payment status.

        Returns:
            One page of bookings (newest first) and the total match count
        """
        try:
            query = self.db.query(Booking).filter(
                Booking.business_id == business_id,
                Booking.status.in_(
                    [BookingStatus.CONFIRMED.value, BookingStatus.COMPLETED.value]
                ),
                Booking.payment_status.in_([s.value for s in payment_statuses]),
            )
            total = query.count()
            page = query.order_by(Booking.created_at.desc(), Booking.id.desc()).offset(offset)
            if limit is not None:
                page = page.limit(limit)
            return cast(List[Booking], page.all()), total
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting paid bookings for {business_id}: {str(e)}")
            raise RepositoryException(f"Failed to get business earnings: {str(e)}")

    def get_therapist_bookings_for_date(self, therapist_id: str, on_date: date) -> List[Booking]:
        """Non-terminal bookings holding the therapist's time on one date."""
        try:
            return cast(
                List[Booking],
                self.db.query(Booking)
                .filter(
                    Booking.therapist_id == therapist_id,
                    Booking.booking_date == on_date,
                    Booking.status.notin_(_TERMINAL_VALUES),
                )
                .order_by(Booking.time)
                .all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting therapist bookings for {on_date}: {str(e)}")
            raise RepositoryException(f"Failed to get therapist bookings: {str(e)}")

    def get_expired_unpaid(self, today: date) -> List[Booking]:
        """Non-terminal bookings dated before today that were never paid."""
        try:
            return cast(
                List[Booking],
                self.db.query(Booking)
                .filter(
                    Booking.booking_date < today,
                    Booking.payment_status == PaymentStatus.PENDING.value,
                    Booking.status.notin_(_TERMINAL_VALUES),
                )
                .order_by(Booking.booking_date)
                .all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting expired bookings: {str(e)}")
            raise RepositoryException(f"Failed to get expired bookings: {str(e)}")

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(
            joinedload(Booking.service),
            joinedload(Booking.therapist),
        )
