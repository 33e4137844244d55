# backend/wellness/domain/booking_state.py
"""
Booking status and visibility state machine.

This module is the only place that decides a booking's ``status`` and its
``response_visible_to_business_only`` flag. ``plan_transition`` validates
who is acting, on what, from which state, and returns every field change
the move implies. It never mutates the booking: BookingRepository applies a
plan with a compare-and-set keyed on the status the plan was computed from.

Rules worth knowing:
    - Therapist responses on business-assigned bookings are hidden from the
      customer until the business relays them.
    - Relaying a response that is already visible is a no-op.
    - The original date/time survive only from the first reschedule.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple, Union

from ..core.enums import RoleName, SystemActor
from ..core.exceptions import InvalidTransitionException, ValidationException
from ..models.booking import (
    SETTLED_PAYMENT_STATUSES,
    TERMINAL_STATUSES,
    BookingStatus,
    PaymentStatus,
    PayoutStatus,
)

ActorRole = Union[RoleName, SystemActor]


class BookingAction(str, Enum):
    CREATE_DIRECT = "create_direct"
    CREATE_REQUEST = "create_request"
    ASSIGN = "assign"
    CONFIRM = "confirm"
    REJECT = "reject"
    RELAY = "relay"
    REVERT_TO_PENDING = "revert_to_pending"
    RESCHEDULE = "reschedule"
    CANCEL = "cancel"
    PAYMENT_SUCCEEDED = "payment_succeeded"
    PAY_AT_VENUE = "pay_at_venue"
    COMPLETE = "complete"
    EXPIRE = "expire"


@dataclass(frozen=True)
class Actor:
    """
    Who is acting. ``id`` is the user id; therapist and business actors
    also carry the profile id that bookings reference.
    """

    id: str
    role: ActorRole
    therapist_id: Optional[str] = None
    business_id: Optional[str] = None

    @classmethod
    def system(cls) -> "Actor":
        return cls(id=SystemActor.SYSTEM.value, role=SystemActor.SYSTEM)


@dataclass(frozen=True)
class TransitionRule:
    action: BookingAction
    role: ActorRole
    sources: FrozenSet[BookingStatus]
    requires_admin_assignment: bool = False


@dataclass(frozen=True)
class TransitionPlan:
    action: BookingAction
    from_status: BookingStatus
    to_status: BookingStatus
    changes: Dict[str, Any] = field(default_factory=dict)
    noop: bool = False
    release_slot: bool = False


_S = BookingStatus
_ACTIVE = frozenset({_S.PENDING, _S.CONFIRMED, _S.RESCHEDULED})
_NON_TERMINAL = frozenset(set(BookingStatus) - set(TERMINAL_STATUSES))
_THERAPIST_RESPONSES = frozenset({_S.CONFIRMED, _S.THERAPIST_CONFIRMED, _S.THERAPIST_REJECTED})


def _rule(
    action: BookingAction,
    role: ActorRole,
    sources: FrozenSet[BookingStatus],
    requires_admin_assignment: bool = False,
) -> Tuple[Tuple[BookingAction, ActorRole], TransitionRule]:
    return (action, role), TransitionRule(action, role, sources, requires_admin_assignment)


TRANSITIONS: Mapping[Tuple[BookingAction, ActorRole], TransitionRule] = dict(
    [
        _rule(BookingAction.ASSIGN, RoleName.BUSINESS, frozenset({_S.PENDING})),
        _rule(
            BookingAction.CONFIRM,
            RoleName.THERAPIST,
            frozenset({_S.PENDING, _S.RESCHEDULED}),
            requires_admin_assignment=True,
        ),
        _rule(
            BookingAction.REJECT,
            RoleName.THERAPIST,
            frozenset({_S.PENDING, _S.RESCHEDULED}),
            requires_admin_assignment=True,
        ),
        _rule(
            BookingAction.RELAY,
            RoleName.BUSINESS,
            _THERAPIST_RESPONSES | {_S.CANCELLED},
            requires_admin_assignment=True,
        ),
        _rule(
            BookingAction.REVERT_TO_PENDING,
            RoleName.BUSINESS,
            _THERAPIST_RESPONSES,
            requires_admin_assignment=True,
        ),
        _rule(BookingAction.RESCHEDULE, RoleName.BUSINESS, frozenset({_S.PENDING, _S.CONFIRMED})),
        _rule(
            BookingAction.CANCEL,
            RoleName.THERAPIST,
            _ACTIVE,
            requires_admin_assignment=True,
        ),
        _rule(
            BookingAction.CANCEL,
            RoleName.CUSTOMER,
            _ACTIVE | {_S.THERAPIST_CONFIRMED, _S.THERAPIST_REJECTED},
        ),
        _rule(BookingAction.CANCEL, RoleName.BUSINESS, _NON_TERMINAL),
        _rule(BookingAction.PAYMENT_SUCCEEDED, RoleName.CUSTOMER, _ACTIVE),
        _rule(BookingAction.PAYMENT_SUCCEEDED, RoleName.BUSINESS, _ACTIVE),
        _rule(BookingAction.PAYMENT_SUCCEEDED, SystemActor.SYSTEM, _ACTIVE),
        _rule(
            BookingAction.PAY_AT_VENUE,
            RoleName.CUSTOMER,
            frozenset({_S.PENDING, _S.RESCHEDULED}),
        ),
        _rule(BookingAction.COMPLETE, RoleName.THERAPIST, frozenset({_S.CONFIRMED})),
        _rule(BookingAction.EXPIRE, SystemActor.SYSTEM, _NON_TERMINAL),
    ]
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def initial_state(action: BookingAction) -> Dict[str, Any]:
    """Field values for a newly created booking (direct or request)."""
    if action not in (BookingAction.CREATE_DIRECT, BookingAction.CREATE_REQUEST):
        raise ValueError(f"{action} does not create bookings")
    return {
        "status": BookingStatus.PENDING.value,
        "assigned_by_admin": False,
        "assigned_by_id": None,
        "therapist_responded": False,
        "response_visible_to_business_only": False,
    }


def _current_status(booking: Any) -> BookingStatus:
    try:
        return BookingStatus(booking.status)
    except ValueError as exc:
        raise InvalidTransitionException(
            f"Booking has unknown status {booking.status!r}", current_status=str(booking.status)
        ) from exc


def _check_ownership(booking: Any, actor: Actor, action: BookingAction) -> None:
    role = actor.role
    if role == RoleName.CUSTOMER:
        owned = booking.customer_id == actor.id
    elif role == RoleName.THERAPIST:
        owned = actor.therapist_id is not None and booking.therapist_id == actor.therapist_id
    elif role == RoleName.BUSINESS:
        owned = actor.business_id is not None and booking.business_id == actor.business_id
    else:
        owned = True
    if not owned:
        raise InvalidTransitionException(
            f"Not permitted to {action.value} this booking",
            current_status=booking.status,
            action=action.value,
            permission_denied=True,
        )


def _resolve_rule(booking: Any, actor: Actor, action: BookingAction) -> TransitionRule:
    rule = TRANSITIONS.get((action, actor.role))
    if rule is None:
        raise InvalidTransitionException(
            f"{getattr(actor.role, 'value', actor.role)} cannot {action.value} bookings",
            current_status=booking.status,
            action=action.value,
            permission_denied=True,
        )
    _check_ownership(booking, actor, action)
    if rule.requires_admin_assignment and not booking.assigned_by_admin:
        raise InvalidTransitionException(
            f"Only business-assigned bookings allow {action.value}",
            current_status=booking.status,
            action=action.value,
            permission_denied=True,
        )
    return rule


def _require_source(booking: Any, rule: TransitionRule, current: BookingStatus) -> None:
    if current not in rule.sources:
        raise InvalidTransitionException(
            f"Cannot {rule.action.value} a booking in status {current.value}",
            current_status=current.value,
            action=rule.action.value,
        )


def calculate_payout(service_price: Any, payout_rate: float) -> Decimal:
    """Therapist share of the service price, rounded to cents."""
    price = Decimal(str(service_price))
    return (price * Decimal(str(payout_rate))).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def plan_transition(
    booking: Any,
    actor: Actor,
    action: BookingAction,
    *,
    now: Optional[datetime] = None,
    **context: Any,
) -> TransitionPlan:
    """
    Validate a requested move and return the changes it implies.

    Context keys by action:
        ASSIGN: therapist_id
        RESCHEDULE: new_date, new_time, new_end_time
        PAYMENT_SUCCEEDED: payment_status (partial or completed)
        COMPLETE: payout_rate
        EXPIRE: today

    Raises:
        InvalidTransitionException: Wrong actor, ownership or source state
        ValidationException: Missing context for the action
    """
    now = now or _utcnow()
    current = _current_status(booking)
    rule = _resolve_rule(booking, actor, action)

    if action == BookingAction.RELAY:
        return _plan_relay(booking, actor, rule, current, now)

    _require_source(booking, rule, current)
    builder = _BUILDERS[action]
    return builder(booking, actor, current, now, context)


def _plan_assign(booking, actor, current, now, context) -> TransitionPlan:
    therapist_id = context.get("therapist_id")
    if not therapist_id:
        raise ValidationException("therapist_id is required to assign a booking")
    return TransitionPlan(
        action=BookingAction.ASSIGN,
        from_status=current,
        to_status=_S.PENDING,
        changes={
            "status": _S.PENDING.value,
            "therapist_id": therapist_id,
            "assigned_by_admin": True,
            "assigned_by_id": actor.id,
            "therapist_responded": False,
            "response_visible_to_business_only": False,
            "confirmed_by": None,
            "confirmed_at": None,
            "relayed_by": None,
            "relayed_at": None,
        },
        release_slot=booking.therapist_id is not None and booking.therapist_id != therapist_id,
    )


def _plan_confirm(booking, actor, current, now, context) -> TransitionPlan:
    return TransitionPlan(
        action=BookingAction.CONFIRM,
        from_status=current,
        to_status=_S.CONFIRMED,
        changes={
            "status": _S.CONFIRMED.value,
            "therapist_responded": True,
            "response_visible_to_business_only": True,
            "confirmed_by": actor.id,
            "confirmed_at": now,
            "relayed_by": None,
            "relayed_at": None,
        },
    )


def _plan_reject(booking, actor, current, now, context) -> TransitionPlan:
    return TransitionPlan(
        action=BookingAction.REJECT,
        from_status=current,
        to_status=_S.THERAPIST_REJECTED,
        changes={
            "status": _S.THERAPIST_REJECTED.value,
            "therapist_responded": True,
            "response_visible_to_business_only": True,
            "relayed_by": None,
            "relayed_at": None,
        },
    )


def _plan_relay(booking, actor, rule, current, now) -> TransitionPlan:
    if not booking.response_visible_to_business_only:
        if booking.therapist_responded and current in (_S.CONFIRMED, _S.CANCELLED):
            return TransitionPlan(
                action=BookingAction.RELAY, from_status=current, to_status=current, noop=True
            )
        raise InvalidTransitionException(
            "There is no therapist response awaiting relay",
            current_status=current.value,
            action=BookingAction.RELAY.value,
        )
    _require_source(booking, rule, current)

    changes: Dict[str, Any] = {
        "response_visible_to_business_only": False,
        "relayed_by": actor.id,
        "relayed_at": now,
    }
    release_slot = False
    if current == _S.THERAPIST_REJECTED:
        # The customer learns the request could not be fulfilled.
        to_status = _S.CANCELLED
        changes.update(cancelled_by=actor.id, cancelled_at=now)
        release_slot = True
    elif current == _S.CANCELLED:
        to_status = _S.CANCELLED
    else:
        to_status = _S.CONFIRMED
    changes["status"] = to_status.value
    return TransitionPlan(
        action=BookingAction.RELAY,
        from_status=current,
        to_status=to_status,
        changes=changes,
        release_slot=release_slot,
    )


def _plan_revert(booking, actor, current, now, context) -> TransitionPlan:
    if not booking.therapist_responded:
        raise InvalidTransitionException(
            "Therapist has not responded to this booking yet",
            current_status=current.value,
            action=BookingAction.REVERT_TO_PENDING.value,
        )
    return TransitionPlan(
        action=BookingAction.REVERT_TO_PENDING,
        from_status=current,
        to_status=_S.PENDING,
        changes={
            "status": _S.PENDING.value,
            "therapist_id": None,
            "assigned_by_admin": False,
            "assigned_by_id": None,
            "therapist_responded": False,
            "response_visible_to_business_only": False,
            "confirmed_by": None,
            "confirmed_at": None,
        },
        release_slot=True,
    )


def _plan_reschedule(booking, actor, current, now, context) -> TransitionPlan:
    new_date: Optional[date] = context.get("new_date")
    new_time: Optional[str] = context.get("new_time")
    if new_date is None or not new_time:
        raise ValidationException("new_date and new_time are required to reschedule")
    changes: Dict[str, Any] = {
        "status": _S.RESCHEDULED.value,
        "booking_date": new_date,
        "time": new_time,
        "end_time": context.get("new_end_time"),
        "rescheduled_by": actor.id,
        "rescheduled_at": now,
        "therapist_responded": False,
        "response_visible_to_business_only": False,
    }
    if booking.original_date is None and booking.original_time is None:
        changes["original_date"] = booking.booking_date
        changes["original_time"] = booking.time
    return TransitionPlan(
        action=BookingAction.RESCHEDULE,
        from_status=current,
        to_status=_S.RESCHEDULED,
        changes=changes,
        release_slot=booking.therapist_id is not None,
    )


def _plan_cancel(booking, actor, current, now, context) -> TransitionPlan:
    changes: Dict[str, Any] = {
        "status": _S.CANCELLED.value,
        "cancelled_by": actor.id,
        "cancelled_at": now,
    }
    if actor.role == RoleName.THERAPIST:
        changes.update(therapist_responded=True, response_visible_to_business_only=True)
        changes.update(relayed_by=None, relayed_at=None)
    elif actor.role == RoleName.CUSTOMER:
        if booking.payment_status in {s.value for s in SETTLED_PAYMENT_STATUSES}:
            raise InvalidTransitionException(
                "Paid bookings can only be cancelled by the business",
                current_status=current.value,
                action=BookingAction.CANCEL.value,
            )
        changes["response_visible_to_business_only"] = False
    else:
        changes["response_visible_to_business_only"] = False
        if booking.response_visible_to_business_only:
            changes.update(relayed_by=actor.id, relayed_at=now)
    return TransitionPlan(
        action=BookingAction.CANCEL,
        from_status=current,
        to_status=_S.CANCELLED,
        changes=changes,
        release_slot=booking.therapist_id is not None,
    )


def _plan_payment(booking, actor, current, now, context) -> TransitionPlan:
    payment_status = PaymentStatus(context.get("payment_status", PaymentStatus.COMPLETED))
    if payment_status not in (PaymentStatus.PARTIAL, PaymentStatus.COMPLETED, PaymentStatus.PAID):
        raise ValidationException(
            "A successful payment must be partial, completed or paid",
            details={"payment_status": payment_status.value},
        )
    if booking.assigned_by_admin:
        # Status and visibility on assigned bookings belong to the therapist
        # response and the business relay; a payment only settles money.
        return TransitionPlan(
            action=BookingAction.PAYMENT_SUCCEEDED,
            from_status=current,
            to_status=current,
            changes={"payment_status": payment_status.value},
        )
    return TransitionPlan(
        action=BookingAction.PAYMENT_SUCCEEDED,
        from_status=current,
        to_status=_S.CONFIRMED,
        changes={
            "status": _S.CONFIRMED.value,
            "payment_status": payment_status.value,
            "confirmed_by": actor.id,
            "confirmed_at": now,
            "response_visible_to_business_only": False,
        },
    )


def _plan_pay_at_venue(booking, actor, current, now, context) -> TransitionPlan:
    if booking.payment_status in {s.value for s in SETTLED_PAYMENT_STATUSES}:
        raise InvalidTransitionException(
            "Booking is already paid",
            current_status=current.value,
            action=BookingAction.PAY_AT_VENUE.value,
        )
    if booking.assigned_by_admin:
        return TransitionPlan(
            action=BookingAction.PAY_AT_VENUE, from_status=current, to_status=current, noop=True
        )
    return TransitionPlan(
        action=BookingAction.PAY_AT_VENUE,
        from_status=current,
        to_status=_S.CONFIRMED,
        changes={
            "status": _S.CONFIRMED.value,
            "confirmed_by": actor.id,
            "confirmed_at": now,
            "response_visible_to_business_only": False,
        },
    )


def _plan_complete(booking, actor, current, now, context) -> TransitionPlan:
    if booking.payment_status not in {s.value for s in SETTLED_PAYMENT_STATUSES}:
        raise InvalidTransitionException(
            "Only paid bookings can be marked completed",
            current_status=current.value,
            action=BookingAction.COMPLETE.value,
        )
    if booking.response_visible_to_business_only:
        raise InvalidTransitionException(
            "The business must relay the confirmation before completion",
            current_status=current.value,
            action=BookingAction.COMPLETE.value,
        )
    payout_rate = context.get("payout_rate")
    if payout_rate is None:
        raise ValidationException("payout_rate is required to complete a booking")
    return TransitionPlan(
        action=BookingAction.COMPLETE,
        from_status=current,
        to_status=_S.COMPLETED,
        changes={
            "status": _S.COMPLETED.value,
            "payment_status": PaymentStatus.PAID.value,
            "completed_at": now,
            "therapist_payout_amount": calculate_payout(booking.service_price, payout_rate),
            "therapist_payout_status": PayoutStatus.PENDING.value,
        },
    )


def _plan_expire(booking, actor, current, now, context) -> TransitionPlan:
    today: date = context.get("today") or now.date()
    if booking.payment_status != PaymentStatus.PENDING.value:
        raise InvalidTransitionException(
            "Only unpaid bookings expire",
            current_status=current.value,
            action=BookingAction.EXPIRE.value,
        )
    if booking.booking_date >= today:
        raise InvalidTransitionException(
            "Booking date has not passed yet",
            current_status=current.value,
            action=BookingAction.EXPIRE.value,
        )
    return TransitionPlan(
        action=BookingAction.EXPIRE,
        from_status=current,
        to_status=_S.CANCELLED,
        changes={
            "status": _S.CANCELLED.value,
            "cancelled_by": actor.id,
            "cancelled_at": now,
            "response_visible_to_business_only": False,
        },
        release_slot=booking.therapist_id is not None,
    )


_BUILDERS = {
    BookingAction.ASSIGN: _plan_assign,
    BookingAction.CONFIRM: _plan_confirm,
    BookingAction.REJECT: _plan_reject,
    BookingAction.REVERT_TO_PENDING: _plan_revert,
    BookingAction.RESCHEDULE: _plan_reschedule,
    BookingAction.CANCEL: _plan_cancel,
    BookingAction.PAYMENT_SUCCEEDED: _plan_payment,
    BookingAction.PAY_AT_VENUE: _plan_pay_at_venue,
    BookingAction.COMPLETE: _plan_complete,
    BookingAction.EXPIRE: _plan_expire,
}


def customer_view_status(booking: Any) -> BookingStatus:
    """
    Status as the customer may see it.

    Anything hidden behind business review reads as pending, and the
    therapist-intermediate statuses never leak to the customer.
    """
    if booking.response_visible_to_business_only:
        return _S.PENDING
    current = BookingStatus(booking.status)
    if current in (_S.THERAPIST_CONFIRMED, _S.THERAPIST_REJECTED):
        return _S.PENDING
    return current


def customer_display_status(booking: Any) -> str:
    if booking.response_visible_to_business_only:
        return "processing"
    return customer_view_status(booking).value


def visibility_invariant_holds(booking: Any) -> bool:
    """
    A therapist response on a business-assigned booking that the business
    has not relayed must be hidden from the customer.
    """
    awaiting_relay = (
        bool(booking.assigned_by_admin)
        and bool(booking.therapist_responded)
        and booking.relayed_at is None
        and booking.status in {s.value for s in _THERAPIST_RESPONSES}
    )
    return not awaiting_relay or bool(booking.response_visible_to_business_only)
