from datetime import timedelta
from decimal import Decimal
from unittest.mock import Mock

import pytest

from wellness.core.enums import AssociationStatus, RoleName
from wellness.core.exceptions import (
    BookingConflictException,
    ConflictException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
)
from wellness.domain.booking_state import (
    Actor,
    BookingAction,
    customer_display_status,
    customer_view_status,
    plan_transition,
    visibility_invariant_holds,
)
from wellness.models import Booking, PaymentStatus, SlotStatus, TherapistAvailabilitySlot
from wellness.models.booking import BookingStatus
from wellness.services.booking_service import BookingService
from wellness.services.notification_service import NotificationService


def _slot_status(db, slot_id):
    db.expire_all()
    return db.get(TherapistAvailabilitySlot, slot_id).status


@pytest.fixture
def direct_booking(booking_service, customer, therapist, service, make_slot, booking_day):
    slot = make_slot(therapist, booking_day, "10:00", "11:00")
    booking = booking_service.create_direct_booking(
        customer.id, therapist.id, service.id, booking_day, "10:00"
    )
    return booking, slot


@pytest.fixture
def paid_confirmed_booking(db, booking_service, direct_booking):
    booking, _ = direct_booking
    with booking_service.transaction():
        booking, _ = booking_service.apply_transition(
            booking,
            Actor.system(),
            BookingAction.PAYMENT_SUCCEEDED,
            payment_status=PaymentStatus.COMPLETED,
        )
    return booking


class TestCreateDirectBooking:
    def test_claims_slot_and_creates_pending_booking(self, db, direct_booking, mock_sender):
        booking, slot = direct_booking
        assert booking.status == BookingStatus.PENDING.value
        assert booking.end_time == "11:00"
        assert booking.service_price == Decimal("100.00")
        assert booking.slot_id == slot.id
        assert booking.version == 1
        assert _slot_status(db, slot.id) == SlotStatus.BOOKED.value
        mock_sender.send.assert_called_once()
        assert mock_sender.send.call_args.kwargs["event_type"] == "booking_created"

    def test_second_booking_for_same_slot_conflicts(
        self, db, booking_service, direct_booking, make_user, therapist, service, booking_day
    ):
        other_customer = make_user(RoleName.CUSTOMER)
        with pytest.raises(BookingConflictException) as exc:
            booking_service.create_direct_booking(
                other_customer.id, therapist.id, service.id, booking_day, "10:00"
            )
        assert exc.value.code == "BOOKING_CONFLICT"
        assert db.query(Booking).count() == 1

    def test_lost_claim_writes_nothing(
        self, db, booking_service, customer, therapist, service, make_slot, booking_day
    ):
        make_slot(therapist, booking_day, "10:00", "11:00")
        booking_service.availability_repository.claim_slot = Mock(return_value=False)
        with pytest.raises(BookingConflictException):
            booking_service.create_direct_booking(
                customer.id, therapist.id, service.id, booking_day, "10:00"
            )
        assert db.query(Booking).count() == 0

    def test_no_covering_slot_conflicts(
        self, booking_service, customer, therapist, service, make_slot, booking_day
    ):
        make_slot(therapist, booking_day, "10:00", "11:00")
        with pytest.raises(BookingConflictException):
            booking_service.create_direct_booking(
                customer.id, therapist.id, service.id, booking_day, "11:00"
            )

    def test_time_inside_slot_is_covered(
        self, booking_service, customer, therapist, service, make_slot, booking_day
    ):
        slot = make_slot(therapist, booking_day, "10:00", "12:00")
        booking = booking_service.create_direct_booking(
            customer.id, therapist.id, service.id, booking_day, "10:30"
        )
        assert booking.slot_id == slot.id

    def test_malformed_time_is_validation_error(
        self, booking_service, customer, therapist, service, booking_day
    ):
        with pytest.raises(ValidationException):
            booking_service.create_direct_booking(
                customer.id, therapist.id, service.id, booking_day, "10am"
            )

    def test_unknown_therapist_is_not_found(self, booking_service, customer, service, booking_day):
        with pytest.raises(NotFoundException):
            booking_service.create_direct_booking(
                customer.id, "01J00000000000000000000000", service.id, booking_day, "10:00"
            )

    def test_notification_failure_does_not_fail_booking(
        self, db, customer, therapist, service, make_slot, booking_day
    ):
        sender = Mock()
        sender.send.side_effect = RuntimeError("smtp down")
        service_under_test = BookingService(db, notification_service=NotificationService(sender))
        make_slot(therapist, booking_day, "10:00", "11:00")

        booking = service_under_test.create_direct_booking(
            customer.id, therapist.id, service.id, booking_day, "10:00"
        )
        assert booking.id
        assert db.query(Booking).count() == 1


class TestBookingRequests:
    def test_request_is_pending_without_slot(
        self, booking_service, customer, service, business_owner, booking_day, mock_sender
    ):
        booking = booking_service.create_booking_request(
            customer.id, service.id, booking_day, "14:00"
        )
        assert booking.status == BookingStatus.PENDING.value
        assert booking.therapist_id is None
        assert booking.slot_id is None
        recipients = [c.args[0] for c in mock_sender.send.call_args_list]
        assert business_owner.id in recipients

    def test_duplicate_request_conflicts(self, booking_service, customer, service, booking_day):
        booking_service.create_booking_request(customer.id, service.id, booking_day, "14:00")
        with pytest.raises(ConflictException):
            booking_service.create_booking_request(customer.id, service.id, booking_day, "14:00")


class TestAssignment:
    def test_assign_reject_revert_scenario(
        self,
        db,
        booking_service,
        direct_booking,
        business_owner,
        other_therapist,
        make_slot,
        booking_day,
    ):
        booking, slot = direct_booking
        other_slot = make_slot(other_therapist, booking_day, "09:00", "12:00")

        booking = booking_service.assign_booking_to_therapist(
            business_owner.id, booking.id, other_therapist.id
        )
        assert booking.assigned_by_admin is True
        assert booking.therapist_id == other_therapist.id
        assert booking.slot_id == other_slot.id
        assert _slot_status(db, slot.id) == SlotStatus.AVAILABLE.value
        assert _slot_status(db, other_slot.id) == SlotStatus.BOOKED.value

        booking = booking_service.therapist_respond(
            other_therapist.user_id, booking.id, "reject"
        )
        assert booking.status == BookingStatus.THERAPIST_REJECTED.value
        assert booking.response_visible_to_business_only is True
        assert customer_view_status(booking) == BookingStatus.PENDING
        assert customer_display_status(booking) == "processing"
        assert visibility_invariant_holds(booking)

        booking = booking_service.business_relay_response(
            business_owner.id, booking.id, "revert_to_pending"
        )
        assert booking.status == BookingStatus.PENDING.value
        assert booking.assigned_by_admin is False
        assert booking.therapist_id is None
        assert booking.response_visible_to_business_only is False
        assert _slot_status(db, other_slot.id) == SlotStatus.AVAILABLE.value

    def test_unapproved_therapist_is_forbidden(
        self, booking_service, direct_booking, business, business_owner, make_therapist
    ):
        booking, _ = direct_booking
        pending = make_therapist(business, status=AssociationStatus.PENDING)
        with pytest.raises(ForbiddenException):
            booking_service.assign_booking_to_therapist(business_owner.id, booking.id, pending.id)

    def test_unknown_therapist_is_not_found(self, booking_service, direct_booking, business_owner):
        booking, _ = direct_booking
        with pytest.raises(NotFoundException):
            booking_service.assign_booking_to_therapist(
                business_owner.id, booking.id, "01J00000000000000000000000"
            )

    def test_other_business_is_forbidden(
        self, db, booking_service, direct_booking, make_user, other_therapist
    ):
        from wellness.models import Business

        booking, _ = direct_booking
        rival_owner = make_user(RoleName.BUSINESS)
        db.add(Business(owner_id=rival_owner.id, name="Rival Spa"))
        db.commit()
        with pytest.raises(ForbiddenException):
            booking_service.assign_booking_to_therapist(
                rival_owner.id, booking.id, other_therapist.id
            )

    def test_non_pending_booking_conflicts(
        self, booking_service, paid_confirmed_booking, business_owner, other_therapist
    ):
        with pytest.raises(ConflictException):
            booking_service.assign_booking_to_therapist(
                business_owner.id, paid_confirmed_booking.id, other_therapist.id
            )

    def test_confirm_then_relay_is_idempotent(
        self, booking_service, direct_booking, business_owner, other_therapist, mock_sender
    ):
        booking, _ = direct_booking
        booking_service.assign_booking_to_therapist(
            business_owner.id, booking.id, other_therapist.id
        )
        booking = booking_service.therapist_respond(other_therapist.user_id, booking.id, "confirm")
        assert booking.status == BookingStatus.CONFIRMED.value
        assert customer_view_status(booking) == BookingStatus.PENDING

        booking = booking_service.business_relay_response(business_owner.id, booking.id, "approve")
        assert customer_view_status(booking) == BookingStatus.CONFIRMED
        version = booking.version
        sends = mock_sender.send.call_count

        booking = booking_service.business_relay_response(business_owner.id, booking.id, "approve")
        assert booking.status == BookingStatus.CONFIRMED.value
        assert booking.version == version
        assert mock_sender.send.call_count == sends

    def test_unknown_response_is_validation_error(
        self, booking_service, direct_booking, therapist
    ):
        booking, _ = direct_booking
        with pytest.raises(ValidationException):
            booking_service.therapist_respond(therapist.user_id, booking.id, "maybe")

    def test_therapist_cannot_respond_to_direct_booking(
        self, booking_service, direct_booking, therapist
    ):
        booking, _ = direct_booking
        with pytest.raises(InvalidTransitionException) as exc:
            booking_service.therapist_respond(therapist.user_id, booking.id, "confirm")
        assert exc.value.status_code == 403


class TestStaleWrites:
    def test_transition_planned_from_stale_read_conflicts(
        self, db, booking_service, direct_booking, business_owner
    ):
        booking, _ = direct_booking
        actor = booking_service.resolve_actor(business_owner.id, RoleName.BUSINESS)
        plan = plan_transition(booking, actor, BookingAction.CANCEL)
        with booking_service.transaction():
            booking_service.repository.apply_transition(booking, plan)

        stale = Booking(id=booking.id, status=BookingStatus.PENDING.value, version=1)
        with pytest.raises(ConflictException) as exc:
            with booking_service.transaction():
                booking_service.repository.apply_transition(stale, plan)
        assert exc.value.code == "BOOKING_STALE"

    def test_plan_fields_cannot_be_smuggled_as_extras(
        self, booking_service, direct_booking, business_owner
    ):
        booking, _ = direct_booking
        actor = booking_service.resolve_actor(business_owner.id, RoleName.BUSINESS)
        plan = plan_transition(booking, actor, BookingAction.CANCEL)
        with pytest.raises(ValueError):
            booking_service.repository.apply_transition(booking, plan, status="confirmed")


class TestRescheduleCancelComplete:
    def test_reschedule_twice_preserves_first_original(
        self, booking_service, direct_booking, business_owner, other_therapist, booking_day
    ):
        booking, _ = direct_booking
        booking_service.assign_booking_to_therapist(
            business_owner.id, booking.id, other_therapist.id
        )
        first_day = booking_day + timedelta(days=1)
        booking = booking_service.reschedule_booking(
            business_owner.id, RoleName.BUSINESS, booking.id, first_day, "14:00"
        )
        assert booking.status == BookingStatus.RESCHEDULED.value
        assert booking.original_date == booking_day
        assert booking.original_time == "10:00"
        assert booking.end_time == "15:00"

        booking = booking_service.therapist_respond(other_therapist.user_id, booking.id, "confirm")
        booking = booking_service.business_relay_response(business_owner.id, booking.id, "approve")

        second_day = booking_day + timedelta(days=2)
        booking = booking_service.reschedule_booking(
            business_owner.id, RoleName.BUSINESS, booking.id, second_day, "16:00"
        )
        assert booking.booking_date == second_day
        assert booking.time == "16:00"
        assert booking.original_date == booking_day
        assert booking.original_time == "10:00"

    def test_reschedule_releases_old_slot_and_claims_new_one(
        self, db, booking_service, direct_booking, business_owner, therapist, make_slot, booking_day
    ):
        booking, old_slot = direct_booking
        new_slot = make_slot(therapist, booking_day, "15:00", "16:00")
        booking = booking_service.reschedule_booking(
            business_owner.id, RoleName.BUSINESS, booking.id, booking_day, "15:00"
        )
        assert booking.slot_id == new_slot.id
        assert _slot_status(db, old_slot.id) == SlotStatus.AVAILABLE.value
        assert _slot_status(db, new_slot.id) == SlotStatus.BOOKED.value

    def test_customer_cannot_reschedule(self, booking_service, direct_booking, customer, booking_day):
        booking, _ = direct_booking
        with pytest.raises(InvalidTransitionException) as exc:
            booking_service.reschedule_booking(
                customer.id, RoleName.CUSTOMER, booking.id, booking_day, "12:00"
            )
        assert exc.value.status_code == 403

    def test_customer_cancel_releases_slot(self, db, booking_service, direct_booking, customer):
        booking, slot = direct_booking
        booking = booking_service.cancel_booking(customer.id, RoleName.CUSTOMER, booking.id)
        assert booking.status == BookingStatus.CANCELLED.value
        assert booking.cancelled_by == customer.id
        assert booking.slot_id is None
        assert _slot_status(db, slot.id) == SlotStatus.AVAILABLE.value

    def test_cancelled_booking_cannot_be_cancelled_again(
        self, booking_service, direct_booking, customer
    ):
        booking, _ = direct_booking
        booking_service.cancel_booking(customer.id, RoleName.CUSTOMER, booking.id)
        with pytest.raises(InvalidTransitionException) as exc:
            booking_service.cancel_booking(customer.id, RoleName.CUSTOMER, booking.id)
        assert exc.value.status_code == 400

    def test_other_customer_cannot_cancel(self, booking_service, direct_booking, make_user):
        booking, _ = direct_booking
        stranger = make_user(RoleName.CUSTOMER)
        with pytest.raises(InvalidTransitionException) as exc:
            booking_service.cancel_booking(stranger.id, RoleName.CUSTOMER, booking.id)
        assert exc.value.status_code == 403

    def test_mark_completed_computes_payout(
        self, booking_service, paid_confirmed_booking, therapist
    ):
        booking = booking_service.mark_completed(therapist.user_id, paid_confirmed_booking.id)
        assert booking.status == BookingStatus.COMPLETED.value
        assert booking.therapist_payout_amount == Decimal("40.00")
        assert booking.payment_status == PaymentStatus.PAID.value

    def test_unpaid_booking_cannot_be_completed(
        self, booking_service, direct_booking, business_owner, therapist
    ):
        booking, _ = direct_booking
        with pytest.raises(InvalidTransitionException):
            booking_service.mark_completed(therapist.user_id, booking.id)


def test_customer_reads_only_their_bookings(booking_service, direct_booking, customer, make_user):
    booking, _ = direct_booking
    assert [b.id for b in booking_service.list_customer_bookings(customer.id)] == [booking.id]
    assert booking_service.get_customer_booking(customer.id, booking.id).id == booking.id
    with pytest.raises(ForbiddenException):
        booking_service.get_customer_booking(make_user(RoleName.CUSTOMER).id, booking.id)


def test_business_lists_its_bookings(booking_service, direct_booking, business_owner):
    booking, _ = direct_booking
    listed = booking_service.list_business_bookings(business_owner.id, BookingStatus.PENDING)
    assert [b.id for b in listed] == [booking.id]
    assert booking_service.list_business_bookings(business_owner.id, BookingStatus.CONFIRMED) == []


class TestStaffQueues:
    def test_therapist_sees_only_open_assignments(
        self,
        booking_service,
        direct_booking,
        business_owner,
        other_therapist,
        customer,
        service,
        booking_day,
    ):
        booking, _ = direct_booking
        request = booking_service.create_booking_request(
            customer.id, service.id, booking_day, "15:00"
        )
        booking_service.assign_booking_to_therapist(
            business_owner.id, request.id, other_therapist.id
        )
        booking_service.assign_booking_to_therapist(
            business_owner.id, booking.id, other_therapist.id
        )
        booking_service.therapist_respond(other_therapist.user_id, request.id, "reject")

        assigned = booking_service.list_therapist_assigned_bookings(other_therapist.user_id)
        assert [b.id for b in assigned] == [booking.id]

        rejected = booking_service.list_therapist_assigned_bookings(
            other_therapist.user_id, BookingStatus.THERAPIST_REJECTED
        )
        assert [b.id for b in rejected] == [request.id]

    def test_direct_bookings_are_not_assignments(self, booking_service, direct_booking, therapist):
        assert booking_service.list_therapist_assigned_bookings(therapist.user_id) == []

    def test_business_queue_holds_unrelayed_responses(
        self, booking_service, direct_booking, business_owner, other_therapist
    ):
        booking, _ = direct_booking
        booking_service.assign_booking_to_therapist(
            business_owner.id, booking.id, other_therapist.id
        )
        assert booking_service.list_pending_therapist_responses(business_owner.id) == []

        booking_service.therapist_respond(other_therapist.user_id, booking.id, "confirm")
        queue = booking_service.list_pending_therapist_responses(business_owner.id)
        assert [b.id for b in queue] == [booking.id]

        booking_service.business_relay_response(business_owner.id, booking.id, "approve")
        assert booking_service.list_pending_therapist_responses(business_owner.id) == []

    def test_customer_has_no_therapist_queue(self, booking_service, customer):
        with pytest.raises(NotFoundException):
            booking_service.list_therapist_assigned_bookings(customer.id)
