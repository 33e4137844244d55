# backend/wellness/services/__init__.py
"""
Service layer for the wellness marketplace.

Services own transactions, logging and notifications; all SQL lives in
the repositories and all status decisions in wellness.domain.booking_state.
"""

from .association_service import AssociationService
from .availability_service import AvailabilityService, SlotAvailability
from .base import BaseService
from .booking_service import BookingService
from .notification_service import LoggingNotificationSender, NotificationSender, NotificationService
from .payment_gateway import GatewayOrder, PaymentGatewayClient
from .payment_service import GatewayRefs, PaymentService

__all__ = [
    "AssociationService",
    "AvailabilityService",
    "BaseService",
    "BookingService",
    "GatewayOrder",
    "GatewayRefs",
    "LoggingNotificationSender",
    "NotificationSender",
    "NotificationService",
    "PaymentGatewayClient",
    "PaymentService",
    "SlotAvailability",
]
