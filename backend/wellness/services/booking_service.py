# backend/wellness/services/booking_service.py
"""
Booking Service for the wellness marketplace

Handles the booking lifecycle end to end:
- Direct bookings against a therapist's availability slot
- Booking requests awaiting business assignment
- Assignment, therapist responses and business relay
- Reschedule, cancel and completion
- The daily sweep that expires unpaid past bookings

Every status or visibility change is planned by
wellness.domain.booking_state and applied through
BookingRepository.apply_transition inside one transaction, together with
any slot claim or release it implies. Notifications go out after commit.
"""

from datetime import date
import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import RoleName
from ..core.exceptions import (
    BookingConflictException,
    ConflictException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
)
from ..domain.booking_state import (
    Actor,
    BookingAction,
    TransitionPlan,
    initial_state,
    plan_transition,
)
from ..domain.scheduling import add_minutes, format_hhmm, parse_hhmm
from ..models.booking import Booking, BookingStatus
from ..models.business import Service
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

THERAPIST_RESPONSES = {"confirm": BookingAction.CONFIRM, "reject": BookingAction.REJECT}
RELAY_ACTIONS = {
    "approve": BookingAction.RELAY,
    "revert_to_pending": BookingAction.REVERT_TO_PENDING,
}
ASSIGNED_WORK_STATUSES = (
    BookingStatus.PENDING,
    BookingStatus.CONFIRMED,
    BookingStatus.RESCHEDULED,
)


def normalize_time(value: str, field_name: str = "time") -> str:
    """Validate an HH:MM string and return it in canonical form."""
    return format_hhmm(parse_hhmm(value, field_name))


def _require_date(value: object, field_name: str) -> date:
    if not isinstance(value, date):
        raise ValidationException(f"{field_name} must be a date", details={"field": field_name})
    return value


class BookingService(BaseService):
    """
    Service layer for booking operations.

    Centralizes all booking workflows and coordinates slot claims,
    transitions and notifications.
    """

    def __init__(
        self,
        db: Session,
        notification_service: Optional[NotificationService] = None,
        payout_rate: Optional[float] = None,
    ):
        super().__init__(db)
        self.notification_service = notification_service or NotificationService()
        self.payout_rate = settings.therapist_payout_rate if payout_rate is None else payout_rate
        self.repository = RepositoryFactory.create_booking_repository(db)
        self.availability_repository = RepositoryFactory.create_availability_repository(db)
        self.therapist_repository = RepositoryFactory.create_therapist_repository(db)
        self.business_repository = RepositoryFactory.create_business_repository(db)
        self.service_repository = RepositoryFactory.create_service_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)

    # ------------------------------------------------------------------
    # Actor and entity resolution
    # ------------------------------------------------------------------

    def resolve_actor(self, user_id: str, role: RoleName) -> Actor:
        """
        Build the state-machine actor for an authenticated user.

        Therapists and business owners are resolved to the profile ids
        that bookings reference.

        Raises:
            NotFoundException: If the therapist profile or business is missing
        """
        if role == RoleName.THERAPIST:
            therapist = self.therapist_repository.get_by_user_id(user_id)
            if not therapist:
                raise NotFoundException("Therapist profile not found")
            return Actor(id=user_id, role=role, therapist_id=therapist.id)
        if role == RoleName.BUSINESS:
            business = self.business_repository.get_by_owner(user_id)
            if not business:
                raise NotFoundException("Business not found")
            return Actor(id=user_id, role=role, business_id=business.id)
        return Actor(id=user_id, role=RoleName.CUSTOMER)

    def get_booking(self, booking_id: str) -> Booking:
        booking = self.repository.get_booking_with_details(booking_id)
        if not booking:
            raise NotFoundException("Booking not found", details={"booking_id": booking_id})
        return booking

    def _get_service(self, service_id: str) -> Service:
        service = self.service_repository.get_with_business(service_id)
        if not service:
            raise NotFoundException("Service not found", details={"service_id": service_id})
        return service

    def _business_owner_id(self, booking: Booking) -> Optional[str]:
        business = self.business_repository.get_by_id(booking.business_id)
        return business.owner_id if business else None

    # ------------------------------------------------------------------
    # Transition plumbing
    # ------------------------------------------------------------------

    def apply_transition(
        self,
        booking: Booking,
        actor: Actor,
        action: BookingAction,
        *,
        claim_therapist_id: Optional[str] = None,
        **context,
    ) -> Tuple[Booking, TransitionPlan]:
        """
        Plan a transition and write it, together with slot bookkeeping.

        Must run inside self.transaction(). A slot held by the booking is
        released when the plan says so; when claim_therapist_id is given,
        an available slot of that therapist covering the (new) date and
        time is claimed and linked to the booking in the same UPDATE.
        """
        plan = plan_transition(booking, actor, action, **context)
        if plan.noop:
            self.logger.info(
                f"Booking {booking.id}: {action.value} by {actor.role.value} is a no-op "
                f"(status {booking.status})"
            )
            return booking, plan

        extra = {}
        if plan.release_slot and booking.slot_id:
            self.availability_repository.release_slot(booking.slot_id)
            extra["slot_id"] = None
        if claim_therapist_id:
            on_date = context.get("new_date") or booking.booking_date
            at_time = context.get("new_time") or booking.time
            slot = self.availability_repository.find_available_covering(
                claim_therapist_id, on_date, at_time
            )
            if slot and self.availability_repository.claim_slot(slot.id):
                extra["slot_id"] = slot.id

        booking = self.repository.apply_transition(booking, plan, **extra)
        self.logger.info(
            f"Booking {booking.id}: {action.value} by {actor.role.value} {actor.id} "
            f"{plan.from_status.value} -> {plan.to_status.value}"
        )
        prometheus_metrics.record_booking_transition(
            action.value, plan.from_status.value, plan.to_status.value
        )
        return booking, plan

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    @BaseService.measure_operation("create_direct_booking")
    def create_direct_booking(
        self,
        customer_id: str,
        therapist_id: str,
        service_id: str,
        booking_date: date,
        time: str,
        customer_note: Optional[str] = None,
    ) -> Booking:
        """
        Book a therapist directly against one of their availability slots.

        The slot claim and the booking insert commit together; if another
        request claimed the slot first, nothing is written.

        Raises:
            ValidationException: Malformed date or time
            NotFoundException: Customer, therapist or service missing
            BookingConflictException: No available slot covers the time
        """
        booking_date = _require_date(booking_date, "booking_date")
        time = normalize_time(time)
        self.log_operation(
            "create_direct_booking",
            customer_id=customer_id,
            therapist_id=therapist_id,
            booking_date=booking_date.isoformat(),
        )

        if not self.user_repository.get_active(customer_id):
            raise NotFoundException("Customer not found")
        therapist = self.therapist_repository.get_by_id(therapist_id)
        if not therapist:
            raise NotFoundException("Therapist not found", details={"therapist_id": therapist_id})
        service = self._get_service(service_id)
        end_time = add_minutes(time, service.duration_minutes, "time")

        conflict_details = {
            "therapist_id": therapist_id,
            "booking_date": booking_date.isoformat(),
            "time": time,
        }
        with self.transaction():
            slot = self.availability_repository.find_available_covering(
                therapist.id, booking_date, time
            )
            if not slot:
                raise BookingConflictException(details=conflict_details)
            if not self.availability_repository.claim_slot(slot.id):
                self.logger.info(f"Lost slot claim for {slot.id}; reporting conflict")
                raise BookingConflictException(details=conflict_details)
            booking = self.repository.create(
                customer_id=customer_id,
                therapist_id=therapist.id,
                service_id=service.id,
                business_id=service.business_id,
                booking_date=booking_date,
                time=time,
                end_time=end_time,
                service_price=service.price,
                slot_id=slot.id,
                customer_note=customer_note,
                **initial_state(BookingAction.CREATE_DIRECT),
            )

        self.logger.info(f"Booking {booking.id} created directly for slot {slot.id}")
        self.notification_service.notify_booking_created(booking)
        return booking

    @BaseService.measure_operation("create_booking_request")
    def create_booking_request(
        self,
        customer_id: str,
        service_id: str,
        booking_date: date,
        time: str,
        preferred_therapist_id: Optional[str] = None,
        customer_note: Optional[str] = None,
    ) -> Booking:
        """
        Ask a business for an appointment without holding a slot.

        The booking stays pending until the business assigns a therapist.

        Raises:
            ConflictException: The customer already has a live request for
                the same service, date and time
        """
        booking_date = _require_date(booking_date, "booking_date")
        time = normalize_time(time)

        if not self.user_repository.get_active(customer_id):
            raise NotFoundException("Customer not found")
        service = self._get_service(service_id)
        end_time = add_minutes(time, service.duration_minutes, "time")
        if preferred_therapist_id and not self.therapist_repository.get_by_id(
            preferred_therapist_id
        ):
            raise NotFoundException(
                "Therapist not found", details={"therapist_id": preferred_therapist_id}
            )

        with self.transaction():
            duplicate = self.repository.find_duplicate_request(
                customer_id, service.id, booking_date, time
            )
            if duplicate:
                raise ConflictException(
                    "You already have a booking for this service at that time",
                    details={"booking_id": duplicate.id},
                )
            booking = self.repository.create(
                customer_id=customer_id,
                therapist_id=preferred_therapist_id,
                service_id=service.id,
                business_id=service.business_id,
                booking_date=booking_date,
                time=time,
                end_time=end_time,
                service_price=service.price,
                customer_note=customer_note,
                **initial_state(BookingAction.CREATE_REQUEST),
            )

        self.logger.info(f"Booking request {booking.id} created for business {booking.business_id}")
        self.notification_service.notify_booking_created(booking)
        self.notification_service.notify_booking_request(booking, service.business.owner_id)
        return booking

    # ------------------------------------------------------------------
    # Assignment and responses
    # ------------------------------------------------------------------

    @BaseService.measure_operation("assign_booking_to_therapist")
    def assign_booking_to_therapist(
        self, business_user_id: str, booking_id: str, therapist_id: str
    ) -> Booking:
        """
        Assign (or re-assign) a pending booking to an approved therapist.

        Raises:
            NotFoundException: Booking, business or therapist missing
            ForbiddenException: Booking belongs to another business, or the
                therapist is not approved for this business
            ConflictException: Booking is no longer pending
        """
        actor = self.resolve_actor(business_user_id, RoleName.BUSINESS)
        booking = self.get_booking(booking_id)
        if booking.business_id != actor.business_id:
            raise ForbiddenException("Booking does not belong to your business")
        therapist = self.therapist_repository.get_by_id(therapist_id)
        if not therapist:
            raise NotFoundException("Therapist not found", details={"therapist_id": therapist_id})
        if not self.therapist_repository.is_approved_for_business(therapist.id, actor.business_id):
            raise ForbiddenException(
                "Therapist is not approved for this business",
                details={"therapist_id": therapist.id},
            )
        if booking.status != BookingStatus.PENDING.value:
            raise ConflictException(
                f"Booking cannot be assigned while {booking.status}",
                details={"booking_id": booking.id, "status": booking.status},
            )

        keeps_slot = booking.therapist_id == therapist.id and booking.slot_id is not None
        with self.transaction():
            booking, _ = self.apply_transition(
                booking,
                actor,
                BookingAction.ASSIGN,
                claim_therapist_id=None if keeps_slot else therapist.id,
                therapist_id=therapist.id,
            )

        self.notification_service.notify_booking_assigned(booking, therapist.user_id)
        return booking

    @BaseService.measure_operation("therapist_respond")
    def therapist_respond(self, therapist_user_id: str, booking_id: str, response: str) -> Booking:
        """
        Confirm or reject a business-assigned booking.

        The response stays hidden from the customer until the business
        relays it.
        """
        action = THERAPIST_RESPONSES.get((response or "").strip().lower())
        if action is None:
            raise ValidationException(
                "response must be 'confirm' or 'reject'", details={"response": response}
            )
        actor = self.resolve_actor(therapist_user_id, RoleName.THERAPIST)
        booking = self.get_booking(booking_id)

        with self.transaction():
            booking, _ = self.apply_transition(booking, actor, action)

        self.notification_service.notify_therapist_responded(
            booking, self._business_owner_id(booking)
        )
        return booking

    @BaseService.measure_operation("business_relay_response")
    def business_relay_response(
        self, business_user_id: str, booking_id: str, decision: str
    ) -> Booking:
        """
        Act on a therapist's response: relay it to the customer ("approve")
        or send the booking back to pending for re-assignment.

        Relaying a response that is already visible returns the booking
        unchanged.
        """
        action = RELAY_ACTIONS.get((decision or "").strip().lower())
        if action is None:
            raise ValidationException(
                "decision must be 'approve' or 'revert_to_pending'", details={"decision": decision}
            )
        actor = self.resolve_actor(business_user_id, RoleName.BUSINESS)
        booking = self.get_booking(booking_id)

        with self.transaction():
            booking, plan = self.apply_transition(booking, actor, action)

        if action == BookingAction.RELAY and not plan.noop:
            self.notification_service.notify_response_relayed(booking)
        return booking

    # ------------------------------------------------------------------
    # Reschedule, cancel, complete
    # ------------------------------------------------------------------

    @BaseService.measure_operation("reschedule_booking")
    def reschedule_booking(
        self, user_id: str, role: RoleName, booking_id: str, new_date: date, new_time: str
    ) -> Booking:
        """
        Move a booking to a new date and time.

        The first reschedule records the original date and time; later
        ones leave them alone. A slot held by the therapist is released and
        a slot covering the new time is claimed when one is available.
        """
        new_date = _require_date(new_date, "new_date")
        new_time = normalize_time(new_time, "new_time")
        actor = self.resolve_actor(user_id, role)
        booking = self.get_booking(booking_id)
        service = self._get_service(booking.service_id)
        new_end_time = add_minutes(new_time, service.duration_minutes, "new_time")

        with self.transaction():
            booking, _ = self.apply_transition(
                booking,
                actor,
                BookingAction.RESCHEDULE,
                claim_therapist_id=booking.therapist_id,
                new_date=new_date,
                new_time=new_time,
                new_end_time=new_end_time,
            )

        self.notification_service.notify_booking_rescheduled(booking)
        return booking

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(self, user_id: str, role: RoleName, booking_id: str) -> Booking:
        """
        Cancel a booking on behalf of a customer, therapist or business.

        A therapist's cancellation of a business-assigned booking is held
        back from the customer until relayed.
        """
        actor = self.resolve_actor(user_id, role)
        booking = self.get_booking(booking_id)

        with self.transaction():
            booking, _ = self.apply_transition(booking, actor, BookingAction.CANCEL)

        if role == RoleName.BUSINESS:
            self.notification_service.notify_booking_cancelled(booking, booking.customer_id)
        elif role == RoleName.THERAPIST:
            self.notification_service.notify_therapist_responded(
                booking, self._business_owner_id(booking)
            )
        else:
            self.notification_service.notify_booking_cancelled(
                booking, self._business_owner_id(booking)
            )
        return booking

    @BaseService.measure_operation("mark_completed")
    def mark_completed(self, therapist_user_id: str, booking_id: str) -> Booking:
        """
        Mark a paid, confirmed booking as completed and compute the
        therapist payout at the configured rate.
        """
        actor = self.resolve_actor(therapist_user_id, RoleName.THERAPIST)
        booking = self.get_booking(booking_id)

        with self.transaction():
            booking, _ = self.apply_transition(
                booking, actor, BookingAction.COMPLETE, payout_rate=self.payout_rate
            )

        self.notification_service.notify_booking_completed(
            booking, self._business_owner_id(booking)
        )
        return booking

    # ------------------------------------------------------------------
    # Read paths
    # ------------------------------------------------------------------

    def get_customer_booking(self, customer_id: str, booking_id: str) -> Booking:
        booking = self.get_booking(booking_id)
        if booking.customer_id != customer_id:
            raise ForbiddenException("You do not have access to this booking")
        return booking

    def list_customer_bookings(self, customer_id: str) -> List[Booking]:
        return self.repository.get_customer_bookings(customer_id)

    def list_business_bookings(
        self, business_user_id: str, status: Optional[BookingStatus] = None
    ) -> List[Booking]:
        actor = self.resolve_actor(business_user_id, RoleName.BUSINESS)
        return self.repository.get_business_bookings(actor.business_id, status)

    def list_therapist_assigned_bookings(
        self, therapist_user_id: str, status: Optional[BookingStatus] = None
    ) -> List[Booking]:
        """
        Bookings the business routed to this therapist that still need them.

        Without a status filter, pending, confirmed and rescheduled bookings
        are returned.
        """
        actor = self.resolve_actor(therapist_user_id, RoleName.THERAPIST)
        statuses = [status] if status is not None else list(ASSIGNED_WORK_STATUSES)
        return self.repository.get_therapist_assigned_bookings(actor.therapist_id, statuses)

    def list_pending_therapist_responses(self, business_user_id: str) -> List[Booking]:
        """Therapist responses held back from customers until the business relays them."""
        actor = self.resolve_actor(business_user_id, RoleName.BUSINESS)
        return self.repository.get_awaiting_relay(actor.business_id)

    # ------------------------------------------------------------------
    # Expiry sweep
    # ------------------------------------------------------------------

    @BaseService.measure_operation("cancel_expired_bookings")
    def cancel_expired_bookings(self, today: Optional[date] = None) -> List[str]:
        """
        Cancel unpaid bookings whose date has passed.

        Each booking expires in its own transaction. A booking that was
        paid or moved by a request in the meantime is skipped. Bookings
        with any collected payment are never selected.

        Returns:
            Ids of the bookings that were cancelled
        """
        today = today or date.today()
        actor = Actor.system()
        candidates = self.repository.get_expired_unpaid(today)
        self.logger.info(f"Expiry sweep for {today}: {len(candidates)} candidate bookings")

        cancelled: List[str] = []
        for booking in candidates:
            booking_id = booking.id
            try:
                with self.transaction():
                    booking, _ = self.apply_transition(
                        booking, actor, BookingAction.EXPIRE, today=today
                    )
            except (ConflictException, InvalidTransitionException) as e:
                self.logger.warning(f"Skipping expiry of booking {booking_id}: {e.message}")
                continue
            cancelled.append(booking_id)
            self.notification_service.notify_booking_cancelled(booking, booking.customer_id)

        self.logger.info(f"Expiry sweep cancelled {len(cancelled)} bookings")
        return cancelled
