from datetime import date, datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from wellness.core.enums import RoleName
from wellness.core.exceptions import InvalidTransitionException, ValidationException
from wellness.domain.booking_state import (
    TRANSITIONS,
    Actor,
    BookingAction,
    calculate_payout,
    customer_display_status,
    customer_view_status,
    initial_state,
    plan_transition,
    visibility_invariant_holds,
)
from wellness.models.booking import BookingStatus, PaymentStatus

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)

CUSTOMER = Actor(id="cust", role=RoleName.CUSTOMER)
THERAPIST = Actor(id="t-user", role=RoleName.THERAPIST, therapist_id="t1")
OTHER_THERAPIST = Actor(id="t2-user", role=RoleName.THERAPIST, therapist_id="t2")
BUSINESS = Actor(id="owner", role=RoleName.BUSINESS, business_id="biz")
OTHER_BUSINESS = Actor(id="owner2", role=RoleName.BUSINESS, business_id="biz2")


def make_booking(**overrides):
    fields = dict(
        id="01J000000000000000000000AB",
        customer_id="cust",
        therapist_id="t1",
        business_id="biz",
        booking_date=date(2025, 3, 1),
        time="10:00",
        original_date=None,
        original_time=None,
        service_price=Decimal("100.00"),
        payment_status=PaymentStatus.PENDING.value,
        relayed_at=None,
        **initial_state(BookingAction.CREATE_DIRECT),
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


def apply(booking, plan):
    """Mirror what the repository does with a plan."""
    for key, value in plan.changes.items():
        setattr(booking, key, value)
    return booking


def test_new_bookings_start_pending_and_visible():
    state = initial_state(BookingAction.CREATE_REQUEST)
    assert state["status"] == BookingStatus.PENDING.value
    assert state["assigned_by_admin"] is False
    assert state["response_visible_to_business_only"] is False
    with pytest.raises(ValueError):
        initial_state(BookingAction.CANCEL)


def test_assign_marks_booking_admin_assigned():
    booking = make_booking()
    plan = plan_transition(booking, BUSINESS, BookingAction.ASSIGN, now=NOW, therapist_id="t2")
    assert plan.to_status == BookingStatus.PENDING
    assert plan.changes["assigned_by_admin"] is True
    assert plan.changes["therapist_id"] == "t2"
    assert plan.release_slot is True


def test_assign_requires_therapist():
    with pytest.raises(ValidationException):
        plan_transition(make_booking(), BUSINESS, BookingAction.ASSIGN, now=NOW)


def test_business_cannot_touch_another_business_booking():
    with pytest.raises(InvalidTransitionException) as exc:
        plan_transition(make_booking(), OTHER_BUSINESS, BookingAction.ASSIGN, therapist_id="t2")
    assert exc.value.status_code == 403


def test_customer_cannot_assign():
    with pytest.raises(InvalidTransitionException) as exc:
        plan_transition(make_booking(), CUSTOMER, BookingAction.ASSIGN, therapist_id="t2")
    assert exc.value.permission_denied is True


def test_therapist_confirm_is_hidden_until_relayed():
    booking = make_booking(assigned_by_admin=True)
    apply(booking, plan_transition(booking, THERAPIST, BookingAction.CONFIRM, now=NOW))

    assert booking.status == BookingStatus.CONFIRMED.value
    assert booking.response_visible_to_business_only is True
    assert customer_view_status(booking) == BookingStatus.PENDING
    assert customer_display_status(booking) == "processing"
    assert visibility_invariant_holds(booking)


def test_therapist_cannot_respond_to_direct_booking():
    with pytest.raises(InvalidTransitionException) as exc:
        plan_transition(make_booking(), THERAPIST, BookingAction.CONFIRM)
    assert exc.value.status_code == 403


def test_other_therapist_cannot_respond():
    booking = make_booking(assigned_by_admin=True)
    with pytest.raises(InvalidTransitionException) as exc:
        plan_transition(booking, OTHER_THERAPIST, BookingAction.REJECT)
    assert exc.value.status_code == 403


def test_wrong_source_state_is_400():
    booking = make_booking(assigned_by_admin=True, status=BookingStatus.COMPLETED.value)
    with pytest.raises(InvalidTransitionException) as exc:
        plan_transition(booking, THERAPIST, BookingAction.CONFIRM)
    assert exc.value.status_code == 400
    assert exc.value.details["current_status"] == "completed"


def test_relay_exposes_response_and_is_idempotent():
    booking = make_booking(assigned_by_admin=True)
    apply(booking, plan_transition(booking, THERAPIST, BookingAction.CONFIRM, now=NOW))
    apply(booking, plan_transition(booking, BUSINESS, BookingAction.RELAY, now=NOW))

    assert booking.status == BookingStatus.CONFIRMED.value
    assert booking.response_visible_to_business_only is False
    assert customer_view_status(booking) == BookingStatus.CONFIRMED

    again = plan_transition(booking, BUSINESS, BookingAction.RELAY, now=NOW)
    assert again.noop is True
    assert again.changes == {}


def test_relay_without_response_is_rejected():
    booking = make_booking(assigned_by_admin=True)
    with pytest.raises(InvalidTransitionException):
        plan_transition(booking, BUSINESS, BookingAction.RELAY)


def test_relayed_rejection_cancels_booking():
    booking = make_booking(assigned_by_admin=True)
    apply(booking, plan_transition(booking, THERAPIST, BookingAction.REJECT, now=NOW))
    assert booking.status == BookingStatus.THERAPIST_REJECTED.value
    assert customer_view_status(booking) == BookingStatus.PENDING

    plan = plan_transition(booking, BUSINESS, BookingAction.RELAY, now=NOW)
    assert plan.to_status == BookingStatus.CANCELLED
    assert plan.release_slot is True


def test_revert_to_pending_clears_assignment():
    booking = make_booking(assigned_by_admin=True)
    apply(booking, plan_transition(booking, THERAPIST, BookingAction.REJECT, now=NOW))
    apply(booking, plan_transition(booking, BUSINESS, BookingAction.REVERT_TO_PENDING, now=NOW))

    assert booking.status == BookingStatus.PENDING.value
    assert booking.therapist_id is None
    assert booking.assigned_by_admin is False
    assert booking.therapist_responded is False
    assert booking.response_visible_to_business_only is False


def test_reschedule_keeps_first_original_date_and_time():
    booking = make_booking(status=BookingStatus.CONFIRMED.value)
    apply(
        booking,
        plan_transition(
            booking,
            BUSINESS,
            BookingAction.RESCHEDULE,
            now=NOW,
            new_date=date(2025, 3, 5),
            new_time="14:00",
        ),
    )
    booking.status = BookingStatus.CONFIRMED.value
    apply(
        booking,
        plan_transition(
            booking,
            BUSINESS,
            BookingAction.RESCHEDULE,
            now=NOW,
            new_date=date(2025, 3, 8),
            new_time="16:00",
        ),
    )

    assert booking.booking_date == date(2025, 3, 8)
    assert booking.time == "16:00"
    assert booking.original_date == date(2025, 3, 1)
    assert booking.original_time == "10:00"


def test_customer_cannot_cancel_paid_booking():
    booking = make_booking(payment_status=PaymentStatus.PARTIAL.value)
    with pytest.raises(InvalidTransitionException):
        plan_transition(booking, CUSTOMER, BookingAction.CANCEL)


def test_therapist_cancel_of_assigned_booking_is_hidden():
    booking = make_booking(assigned_by_admin=True)
    apply(booking, plan_transition(booking, THERAPIST, BookingAction.CANCEL, now=NOW))
    assert booking.status == BookingStatus.CANCELLED.value
    assert customer_view_status(booking) == BookingStatus.PENDING


def test_payment_on_assigned_booking_only_settles_money():
    booking = make_booking(assigned_by_admin=True)
    plan = plan_transition(
        booking,
        Actor.system(),
        BookingAction.PAYMENT_SUCCEEDED,
        payment_status=PaymentStatus.PARTIAL,
    )
    assert plan.to_status == BookingStatus.PENDING
    assert plan.changes == {"payment_status": PaymentStatus.PARTIAL.value}

    apply(booking, plan)
    assert booking.therapist_responded is False
    confirm = plan_transition(booking, THERAPIST, BookingAction.CONFIRM, now=NOW)
    assert confirm.to_status == BookingStatus.CONFIRMED


def test_payment_does_not_rehide_relayed_response():
    booking = make_booking(
        assigned_by_admin=True,
        therapist_responded=True,
        status=BookingStatus.CONFIRMED.value,
        relayed_at=NOW,
    )
    plan = plan_transition(booking, CUSTOMER, BookingAction.PAYMENT_SUCCEEDED)
    apply(booking, plan)
    assert booking.response_visible_to_business_only is False
    assert customer_view_status(booking) == BookingStatus.CONFIRMED


def test_payment_on_direct_booking_is_visible():
    plan = plan_transition(make_booking(), CUSTOMER, BookingAction.PAYMENT_SUCCEEDED)
    assert plan.changes["payment_status"] == PaymentStatus.COMPLETED.value
    assert plan.changes["response_visible_to_business_only"] is False


def test_complete_computes_forty_percent_payout():
    booking = make_booking(
        status=BookingStatus.CONFIRMED.value, payment_status=PaymentStatus.COMPLETED.value
    )
    plan = plan_transition(booking, THERAPIST, BookingAction.COMPLETE, payout_rate=0.40)
    assert plan.changes["therapist_payout_amount"] == Decimal("40.00")
    assert plan.changes["payment_status"] == PaymentStatus.PAID.value


def test_complete_requires_payment():
    booking = make_booking(status=BookingStatus.CONFIRMED.value)
    with pytest.raises(InvalidTransitionException):
        plan_transition(booking, THERAPIST, BookingAction.COMPLETE, payout_rate=0.40)


def test_complete_waits_for_relay_on_assigned_booking():
    booking = make_booking(
        assigned_by_admin=True,
        therapist_responded=True,
        response_visible_to_business_only=True,
        status=BookingStatus.CONFIRMED.value,
        payment_status=PaymentStatus.COMPLETED.value,
    )
    with pytest.raises(InvalidTransitionException) as exc:
        plan_transition(booking, THERAPIST, BookingAction.COMPLETE, payout_rate=0.40)
    assert exc.value.details["action"] == "complete"

    apply(booking, plan_transition(booking, BUSINESS, BookingAction.RELAY, now=NOW))
    apply(booking, plan_transition(booking, THERAPIST, BookingAction.COMPLETE, payout_rate=0.40))
    assert customer_display_status(booking) == "completed"


def test_expire_skips_paid_and_future_bookings():
    today = date(2025, 3, 2)
    paid = make_booking(payment_status=PaymentStatus.COMPLETED.value)
    with pytest.raises(InvalidTransitionException):
        plan_transition(paid, Actor.system(), BookingAction.EXPIRE, today=today)

    upcoming = make_booking(booking_date=today)
    with pytest.raises(InvalidTransitionException):
        plan_transition(upcoming, Actor.system(), BookingAction.EXPIRE, today=today)

    stale = make_booking()
    plan = plan_transition(stale, Actor.system(), BookingAction.EXPIRE, today=today)
    assert plan.to_status == BookingStatus.CANCELLED


def test_only_system_may_expire():
    with pytest.raises(InvalidTransitionException):
        plan_transition(make_booking(), BUSINESS, BookingAction.EXPIRE, today=date(2025, 3, 2))


def test_transition_table_rules_match_their_keys():
    for (action, role), rule in TRANSITIONS.items():
        assert rule.action == action
        assert rule.role == role
        assert rule.sources


@pytest.mark.parametrize(
    "price,expected",
    [(100, Decimal("40.00")), ("75.50", Decimal("30.20")), (Decimal("0.05"), Decimal("0.02"))],
)
def test_calculate_payout(price, expected):
    assert calculate_payout(price, 0.40) == expected
