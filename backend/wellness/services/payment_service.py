# backend/wellness/services/payment_service.py
"""
Payment Service for the wellness marketplace

Handles:
- Gateway order creation for a booking's advance payment
- Signature-verified payment success, which confirms a direct booking through
  the state machine (assigned bookings only record the payment status)
- Payment failures, which never move the booking's status
- Cash at the venue: chosen by the customer, collected by the business
- The business paying the therapist their share after completion
- Earnings summaries for therapists and businesses
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import RoleName
from ..core.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from ..domain.booking_state import Actor, BookingAction, calculate_payout
from ..models.booking import (
    SETTLED_PAYMENT_STATUSES,
    Booking,
    BookingStatus,
    PaymentStatus,
    PayoutStatus,
)
from ..models.payment import Payment, PaymentMethod, PaymentRecordStatus, PaymentType
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .booking_service import BookingService
from .notification_service import NotificationService
from .payment_gateway import GatewayOrder, PaymentGatewayClient

logger = logging.getLogger(__name__)

_CENTS = Decimal("0.01")


@dataclass(frozen=True)
class GatewayRefs:
    """Identifiers the gateway hands back to the client after checkout."""

    order_id: str
    payment_id: str
    signature: Optional[str] = None


@dataclass(frozen=True)
class EarningLine:
    booking: Booking
    payout_amount: Decimal
    payout_status: str


@dataclass(frozen=True)
class TherapistEarnings:
    lines: List[EarningLine]
    total: Decimal
    paid: Decimal
    pending: Decimal


@dataclass(frozen=True)
class BusinessEarnings:
    bookings: List[Booking]
    total_amount: Decimal
    count: int
    page: int
    limit: int


EARNING_PAYMENT_TYPES: Dict[str, Tuple[PaymentStatus, ...]] = {
    "half": (PaymentStatus.PARTIAL,),
    "full": (PaymentStatus.COMPLETED, PaymentStatus.PAID),
}


def _money(value: Any) -> Decimal:
    return Decimal(str(value)).quantize(_CENTS, rounding=ROUND_HALF_UP)


class PaymentService(BaseService):
    """Service layer for payments, therapist payouts and earnings."""

    def __init__(
        self,
        db: Session,
        gateway: Optional[PaymentGatewayClient] = None,
        notification_service: Optional[NotificationService] = None,
        booking_service: Optional[BookingService] = None,
    ):
        super().__init__(db)
        self.gateway = gateway or PaymentGatewayClient()
        self.notification_service = notification_service or NotificationService()
        self.booking_service = booking_service or BookingService(
            db, notification_service=self.notification_service
        )
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.payment_repository = RepositoryFactory.create_payment_repository(db)

    def _get_booking(self, booking_id: str) -> Booking:
        booking = self.booking_repository.get_by_id(booking_id)
        if not booking:
            raise NotFoundException("Booking not found", details={"booking_id": booking_id})
        return booking

    @BaseService.measure_operation("create_order")
    def create_order(
        self, customer_id: str, booking_id: str, amount: Optional[Any] = None
    ) -> GatewayOrder:
        """
        Open a gateway order for the advance on a booking.

        The advance is the configured share of ``amount`` (the booking's
        service price when omitted), sent to the gateway in minor units.

        Raises:
            ForbiddenException: The booking belongs to another customer
            ValidationException: The booking is closed or the amount is not positive
            UpstreamFailureException: The gateway failed
        """
        booking = self._get_booking(booking_id)
        if booking.customer_id != customer_id:
            raise ForbiddenException("You do not have access to this booking")
        if booking.is_terminal:
            raise ValidationException(
                f"Booking is {booking.status} and cannot be paid",
                details={"status": booking.status},
            )
        total = _money(booking.service_price if amount is None else amount)
        if total <= 0:
            raise ValidationException("amount must be positive", details={"amount": str(total)})
        advance = _money(total * Decimal(str(settings.advance_payment_rate)))
        amount_minor = int(advance * 100)

        order = self.gateway.create_order(
            amount_minor, settings.payment_currency, receipt=f"receipt_{booking.id}"
        )
        self.logger.info(
            f"Order {order.order_id} for booking {booking.id}: {advance} {order.currency}"
            f"{' (mock)' if order.is_mock else ''}"
        )
        return order

    def verify_signature(self, order_id: str, payment_id: str, signature: Optional[str]) -> bool:
        return self.gateway.verify_signature(order_id, payment_id, signature or "")

    @BaseService.measure_operation("record_payment_success")
    def record_payment_success(
        self,
        booking_id: str,
        amount: Any,
        gateway_refs: GatewayRefs,
        actor: Optional[Actor] = None,
    ) -> Booking:
        """
        Record a successful gateway payment and confirm the booking.

        Stores the advance and the remainder still due at the venue, then
        applies the payment-succeeded transition. Recording the same gateway
        payment id again returns the booking unchanged.

        Raises:
            ValidationException: Bad signature or non-positive amount
            InvalidTransitionException: The booking cannot take a payment now
        """
        if not self.verify_signature(
            gateway_refs.order_id, gateway_refs.payment_id, gateway_refs.signature
        ):
            self.logger.warning(
                f"Rejected payment {gateway_refs.payment_id} for booking {booking_id}: bad signature"
            )
            raise ValidationException("Invalid payment signature", code="INVALID_SIGNATURE")
        paid = _money(amount)
        if paid <= 0:
            raise ValidationException("amount must be positive", details={"amount": str(paid)})

        actor = actor or Actor.system()
        booking = self._get_booking(booking_id)
        existing = self.payment_repository.get_by_gateway_payment_id(gateway_refs.payment_id)
        if existing and existing.status == PaymentRecordStatus.COMPLETED.value:
            if existing.booking_id != booking.id:
                raise ConflictException("Payment already recorded against another booking")
            self.logger.info(f"Payment {gateway_refs.payment_id} already recorded; no-op")
            return booking

        total = _money(booking.service_price)
        remaining = max(Decimal("0.00"), total - paid)
        payment_status = PaymentStatus.COMPLETED if remaining == 0 else PaymentStatus.PARTIAL

        with self.transaction():
            self.payment_repository.create(
                booking_id=booking.id,
                amount=paid,
                total_amount=total,
                remaining_amount=remaining,
                payment_type=(PaymentType.FULL if remaining == 0 else PaymentType.ADVANCE).value,
                method=PaymentMethod.GATEWAY.value,
                status=PaymentRecordStatus.COMPLETED.value,
                gateway_order_id=gateway_refs.order_id,
                gateway_payment_id=gateway_refs.payment_id,
                paid_at=datetime.now(timezone.utc),
            )
            booking, _ = self.booking_service.apply_transition(
                booking,
                actor,
                BookingAction.PAYMENT_SUCCEEDED,
                payment_status=payment_status,
            )

        self.logger.info(
            f"Payment {gateway_refs.payment_id} recorded for booking {booking.id}: "
            f"{paid} of {total} ({payment_status.value})"
        )
        self.notification_service.notify_payment_received(booking)
        return booking

    @BaseService.measure_operation("record_payment_failure")
    def record_payment_failure(
        self, booking_id: str, gateway_refs: GatewayRefs, reason: Optional[str] = None
    ) -> Booking:
        """
        Store a failed gateway attempt.

        The booking's status is untouched; its payment status becomes
        failed unless money was already collected.
        """
        booking = self._get_booking(booking_id)
        with self.transaction():
            self.payment_repository.create(
                booking_id=booking.id,
                amount=Decimal("0.00"),
                total_amount=_money(booking.service_price),
                remaining_amount=_money(booking.service_price),
                payment_type=PaymentType.ADVANCE.value,
                method=PaymentMethod.GATEWAY.value,
                status=PaymentRecordStatus.FAILED.value,
                gateway_order_id=gateway_refs.order_id,
                failure_reason=reason,
            )
            if booking.payment_status not in {s.value for s in SETTLED_PAYMENT_STATUSES}:
                booking = self.booking_repository.set_payment_status(booking, PaymentStatus.FAILED)

        self.logger.warning(
            f"Payment failed for booking {booking.id} (order {gateway_refs.order_id}): {reason}"
        )
        return booking

    @BaseService.measure_operation("pay_therapist")
    def pay_therapist(self, business_user_id: str, booking_id: str) -> Booking:
        """
        Mark the therapist's share of a completed, fully paid booking as paid.

        Raises:
            NotFoundException: Booking missing or not owned by the business
            ValidationException: Booking not completed or not fully paid
            ConflictException: Payout already recorded
        """
        actor = self.booking_service.resolve_actor(business_user_id, RoleName.BUSINESS)
        booking = self._get_booking(booking_id)
        if booking.business_id != actor.business_id:
            raise NotFoundException("Booking not found or does not belong to your business")
        if booking.status != BookingStatus.COMPLETED.value:
            raise ValidationException("Only completed bookings can be processed for therapist payout")
        if booking.payment_status not in (PaymentStatus.COMPLETED.value, PaymentStatus.PAID.value):
            raise ValidationException(
                "Only bookings with completed payment can be processed for therapist payout"
            )
        if booking.therapist_payout_status == PayoutStatus.PAID.value:
            raise ConflictException("Therapist payout already processed")

        amount = calculate_payout(booking.service_price, self.booking_service.payout_rate)
        with self.transaction():
            if not self.booking_repository.mark_payout_paid(
                booking, amount, datetime.now(timezone.utc)
            ):
                raise ConflictException("Therapist payout already processed")

        self.logger.info(f"Therapist payout {amount} recorded for booking {booking.id}")
        return booking

    # ------------------------------------------------------------------
    # Pay at venue
    # ------------------------------------------------------------------

    def _pending_cash_payment(self, booking_id: str) -> Optional[Payment]:
        for payment in self.payment_repository.get_for_booking(booking_id):
            if (
                payment.method == PaymentMethod.CASH.value
                and payment.status == PaymentRecordStatus.PENDING.value
            ):
                return payment
        return None

    @BaseService.measure_operation("process_cash_payment")
    def process_cash_payment(
        self, customer_id: str, booking_id: str, amount: Optional[Any] = None
    ) -> Booking:
        """
        Customer chooses to pay in cash at the venue.

        A pending cash payment is recorded and a direct booking is
        confirmed; its payment status stays pending until the business
        collects the money. Business-assigned bookings keep their status.

        Raises:
            ForbiddenException: The booking belongs to another customer
            ValidationException: Non-positive amount
            ConflictException: Cash payment was already chosen
            InvalidTransitionException: The booking is paid or closed
        """
        booking = self._get_booking(booking_id)
        if booking.customer_id != customer_id:
            raise ForbiddenException("You do not have access to this booking")
        total = _money(booking.service_price if amount is None else amount)
        if total <= 0:
            raise ValidationException("amount must be positive", details={"amount": str(total)})
        if self._pending_cash_payment(booking.id):
            raise ConflictException(
                "Cash payment already chosen for this booking", details={"booking_id": booking.id}
            )

        actor = Actor(id=customer_id, role=RoleName.CUSTOMER)
        with self.transaction():
            self.payment_repository.create(
                booking_id=booking.id,
                amount=total,
                total_amount=total,
                remaining_amount=total,
                payment_type=PaymentType.FULL.value,
                method=PaymentMethod.CASH.value,
                status=PaymentRecordStatus.PENDING.value,
            )
            booking, _ = self.booking_service.apply_transition(
                booking, actor, BookingAction.PAY_AT_VENUE
            )

        self.logger.info(f"Booking {booking.id} will be paid in cash at the venue: {total}")
        return booking

    @BaseService.measure_operation("collect_cash_payment")
    def collect_cash_payment(self, business_user_id: str, booking_id: str) -> Booking:
        """
        Business records that the customer paid the cash at the venue.

        Raises:
            NotFoundException: Booking not owned by the business, or no
                pending cash payment
        """
        actor = self.booking_service.resolve_actor(business_user_id, RoleName.BUSINESS)
        booking = self._get_booking(booking_id)
        if booking.business_id != actor.business_id:
            raise NotFoundException("Booking not found or does not belong to your business")
        payment = self._pending_cash_payment(booking.id)
        if payment is None:
            raise NotFoundException(
                "No pending cash payment for this booking", details={"booking_id": booking.id}
            )

        with self.transaction():
            self.payment_repository.mark_collected(payment, datetime.now(timezone.utc))
            booking, _ = self.booking_service.apply_transition(
                booking,
                actor,
                BookingAction.PAYMENT_SUCCEEDED,
                payment_status=PaymentStatus.COMPLETED,
            )

        self.logger.info(f"Cash {payment.amount} collected for booking {booking.id}")
        self.notification_service.notify_payment_received(booking)
        return booking

    # ------------------------------------------------------------------
    # Earnings
    # ------------------------------------------------------------------

    def therapist_earnings(self, therapist_user_id: str) -> TherapistEarnings:
        """
        Completed bookings of the therapist with their share of each.

        Bookings completed before a payout amount was stored fall back to
        the configured payout rate.
        """
        actor = self.booking_service.resolve_actor(therapist_user_id, RoleName.THERAPIST)
        lines: List[EarningLine] = []
        for booking in self.booking_repository.get_therapist_completed_bookings(
            actor.therapist_id
        ):
            amount = booking.therapist_payout_amount
            if amount is None:
                amount = calculate_payout(booking.service_price, self.booking_service.payout_rate)
            lines.append(
                EarningLine(
                    booking=booking,
                    payout_amount=_money(amount),
                    payout_status=booking.therapist_payout_status or PayoutStatus.PENDING.value,
                )
            )
        settled = [line for line in lines if line.payout_status == PayoutStatus.PAID.value]
        paid = sum((line.payout_amount for line in settled), Decimal("0.00"))
        total = sum((line.payout_amount for line in lines), Decimal("0.00"))
        return TherapistEarnings(lines=lines, total=total, paid=paid, pending=total - paid)

    def business_earnings(
        self, business_user_id: str, payment_type: str, page: int = 1, limit: int = 10
    ) -> BusinessEarnings:
        """
        One page of a business's paid bookings and the service value they carry.

        ``payment_type`` is "half" for bookings with only the advance paid
        and "full" for fully paid ones.

        Raises:
            ValidationException: Unknown payment type or bad paging
        """
        statuses = EARNING_PAYMENT_TYPES.get((payment_type or "").strip().lower())
        if statuses is None:
            raise ValidationException(
                'Invalid payment type. Must be "half" or "full"',
                details={"type": payment_type},
            )
        if page < 1 or limit < 1:
            raise ValidationException("page and limit must be positive")
        actor = self.booking_service.resolve_actor(business_user_id, RoleName.BUSINESS)
        bookings, count = self.booking_repository.get_business_paid_bookings(
            actor.business_id, statuses, offset=(page - 1) * limit, limit=limit
        )
        total_amount = sum((_money(b.service_price) for b in bookings), Decimal("0.00"))
        return BusinessEarnings(
            bookings=bookings, total_amount=total_amount, count=count, page=page, limit=limit
        )
