# backend/wellness/repositories/__init__.py
"""
Repository layer for the wellness marketplace.

Repositories own every query against the database and never commit;
services own the transaction boundary.

Usage:
    from wellness.repositories import RepositoryFactory

    booking_repository = RepositoryFactory.create_booking_repository(db)
"""

from .availability_repository import AvailabilityRepository
from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .business_repository import BusinessRepository, ServiceRepository
from .factory import RepositoryFactory
from .payment_repository import PaymentRepository
from .therapist_repository import TherapistRepository
from .user_repository import UserRepository

__all__ = [
    "AvailabilityRepository",
    "BaseRepository",
    "BookingRepository",
    "BusinessRepository",
    "PaymentRepository",
    "RepositoryFactory",
    "ServiceRepository",
    "TherapistRepository",
    "UserRepository",
]
