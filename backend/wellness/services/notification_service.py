# backend/wellness/services/notification_service.py
"""
Notification Service for the wellness marketplace

Booking workflows announce what happened to the people involved. Delivery
is fire-and-forget: whatever the sender raises is logged and counted, and
the workflow that triggered the message still succeeds.

Message bodies are Jinja2 templates rendered with StrictUndefined, so a
missing variable fails loudly in tests rather than producing a blank.
"""

from dataclasses import dataclass
import logging
import time
from typing import Any, Dict, Optional, Protocol

from jinja2 import DictLoader, Environment, StrictUndefined

from ..models.booking import Booking
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)


class NotificationSender(Protocol):
    """Anything that can deliver a rendered message to a user."""

    def send(self, recipient_id: str, subject: str, body: str, *, event_type: str) -> None:
        ...


class LoggingNotificationSender:
    """Default sender: writes the message to the application log."""

    def send(self, recipient_id: str, subject: str, body: str, *, event_type: str) -> None:
        logger.info(f"[{event_type}] to {recipient_id}: {subject} | {body}")


@dataclass(frozen=True)
class _Template:
    subject: str
    body: str


_TEMPLATES: Dict[str, _Template] = {
    "booking_created": _Template(
        "Booking {{ code }} received",
        "Your booking for {{ booking_date }} at {{ time }} has been received and is pending.",
    ),
    "booking_request_received": _Template(
        "New booking request {{ code }}",
        "A customer requested {{ booking_date }} at {{ time }}. Assign a therapist to proceed.",
    ),
    "booking_assigned": _Template(
        "New assignment {{ code }}",
        "You have been assigned a booking on {{ booking_date }} at {{ time }}. "
        "Please confirm or reject it.",
    ),
    "therapist_responded": _Template(
        "Therapist response for {{ code }}",
        "The therapist responded to booking {{ code }}: {{ status }}. "
        "Review it before it is shared with the customer.",
    ),
    "response_relayed": _Template(
        "Update on booking {{ code }}",
        "{% if status == 'cancelled' %}We could not fulfil your booking on {{ booking_date }} "
        "at {{ time }}.{% else %}Your booking on {{ booking_date }} at {{ time }} is {{ status }}."
        "{% endif %}",
    ),
    "booking_rescheduled": _Template(
        "Booking {{ code }} rescheduled",
        "Your booking has moved to {{ booking_date }} at {{ time }}.",
    ),
    "booking_cancelled": _Template(
        "Booking {{ code }} cancelled",
        "The booking on {{ booking_date }} at {{ time }} has been cancelled.",
    ),
    "payment_received": _Template(
        "Payment received for {{ code }}",
        "We received your payment for the booking on {{ booking_date }} at {{ time }}.",
    ),
    "booking_completed": _Template(
        "Booking {{ code }} completed",
        "Booking {{ code }} was marked completed. Payout due: {{ payout }}.",
    ),
    "association_requested": _Template(
        "{{ therapist_name }} wants to join {{ business_name }}",
        "{{ therapist_name }} asked to work with {{ business_name }}. "
        "Approve or reject the request.",
    ),
    "association_decided": _Template(
        "Your request to join {{ business_name }}",
        "{{ business_name }} {{ decision }} your request.",
    ),
}


def _build_environment() -> Environment:
    sources: Dict[str, str] = {}
    for name, template in _TEMPLATES.items():
        sources[f"{name}.subject"] = template.subject
        sources[f"{name}.body"] = template.body
    return Environment(loader=DictLoader(sources), undefined=StrictUndefined, autoescape=False)


class NotificationService:
    """
    Central notification service for booking and association events.

    Each ``notify_*`` helper renders one template and hands it to the
    configured sender. None of them raise.
    """

    def __init__(self, sender: Optional[NotificationSender] = None) -> None:
        self.sender: NotificationSender = sender or LoggingNotificationSender()
        self.environment = _build_environment()
        self.logger = logging.getLogger(self.__class__.__name__)

    def _context(self, booking: Booking, **extra: Any) -> Dict[str, Any]:
        context: Dict[str, Any] = {
            "code": booking.display_code,
            "booking_date": booking.booking_date.isoformat(),
            "time": booking.time,
            "status": booking.status,
        }
        context.update(extra)
        return context

    def _dispatch(
        self, event_type: str, recipient_id: Optional[str], context: Dict[str, Any]
    ) -> bool:
        if not recipient_id:
            self.logger.debug(f"Skipping {event_type}: no recipient")
            return False
        start = time.time()
        try:
            subject = self.environment.get_template(f"{event_type}.subject").render(**context)
            body = self.environment.get_template(f"{event_type}.body").render(**context)
            self.sender.send(recipient_id, subject, body, event_type=event_type)
        except Exception as e:
            self.logger.error(
                f"Notification {event_type} to {recipient_id} failed: {str(e)}", exc_info=True
            )
            prometheus_metrics.record_notification_outcome(event_type, "failed")
            return False
        self.logger.debug(f"Notification {event_type} sent in {time.time() - start:.3f}s")
        prometheus_metrics.record_notification_outcome(event_type, "sent")
        return True

    def notify_booking_created(self, booking: Booking) -> bool:
        return self._dispatch("booking_created", booking.customer_id, self._context(booking))

    def notify_booking_request(self, booking: Booking, business_owner_id: Optional[str]) -> bool:
        return self._dispatch(
            "booking_request_received", business_owner_id, self._context(booking)
        )

    def notify_booking_assigned(self, booking: Booking, therapist_user_id: Optional[str]) -> bool:
        return self._dispatch("booking_assigned", therapist_user_id, self._context(booking))

    def notify_therapist_responded(
        self, booking: Booking, business_owner_id: Optional[str]
    ) -> bool:
        """Tell the business a therapist answered; the customer hears nothing yet."""
        return self._dispatch("therapist_responded", business_owner_id, self._context(booking))

    def notify_response_relayed(self, booking: Booking) -> bool:
        return self._dispatch("response_relayed", booking.customer_id, self._context(booking))

    def notify_booking_rescheduled(self, booking: Booking) -> bool:
        return self._dispatch("booking_rescheduled", booking.customer_id, self._context(booking))

    def notify_booking_cancelled(self, booking: Booking, recipient_id: Optional[str]) -> bool:
        return self._dispatch("booking_cancelled", recipient_id, self._context(booking))

    def notify_payment_received(self, booking: Booking) -> bool:
        return self._dispatch("payment_received", booking.customer_id, self._context(booking))

    def notify_booking_completed(self, booking: Booking, business_owner_id: Optional[str]) -> bool:
        return self._dispatch(
            "booking_completed",
            business_owner_id,
            self._context(booking, payout=booking.therapist_payout_amount),
        )

    def notify_association_requested(
        self, business_owner_id: Optional[str], therapist_name: str, business_name: str
    ) -> bool:
        return self._dispatch(
            "association_requested",
            business_owner_id,
            {"therapist_name": therapist_name, "business_name": business_name},
        )

    def notify_association_decided(
        self, therapist_user_id: Optional[str], business_name: str, decision: str
    ) -> bool:
        return self._dispatch(
            "association_decided",
            therapist_user_id,
            {"business_name": business_name, "decision": decision},
        )
