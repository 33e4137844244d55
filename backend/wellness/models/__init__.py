"""
Database models for the wellness marketplace.

The models are organized by functionality:
- Users (customers, therapists and business owners share one table)
- Businesses and their services
- Therapist profiles, weekly availability and business associations
- Concrete availability slots
- Bookings and payments
"""

from .availability import SlotStatus, TherapistAvailabilitySlot
from .booking import Booking, BookingStatus, PaymentStatus, PayoutStatus
from .business import Business, Service, service_therapists
from .payment import Payment, PaymentMethod, PaymentRecordStatus, PaymentType
from .therapist import Therapist, TherapistBusinessAssociation
from .user import User

__all__ = [
    "Booking",
    "BookingStatus",
    "Business",
    "Payment",
    "PaymentMethod",
    "PaymentRecordStatus",
    "PaymentStatus",
    "PaymentType",
    "PayoutStatus",
    "Service",
    "SlotStatus",
    "Therapist",
    "TherapistAvailabilitySlot",
    "TherapistBusinessAssociation",
    "User",
    "service_therapists",
]
