# backend/wellness/repositories/factory.py
"""
Repository Factory

Centralizes repository creation so services receive consistently
initialized repositories bound to their session.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

if TYPE_CHECKING:
    from .availability_repository import AvailabilityRepository
    from .booking_repository import BookingRepository
    from .business_repository import BusinessRepository, ServiceRepository
    from .payment_repository import PaymentRepository
    from .therapist_repository import TherapistRepository
    from .user_repository import UserRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_availability_repository(db: Session) -> "AvailabilityRepository":
        from .availability_repository import AvailabilityRepository

        return AvailabilityRepository(db)

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_business_repository(db: Session) -> "BusinessRepository":
        from .business_repository import BusinessRepository

        return BusinessRepository(db)

    @staticmethod
    def create_service_repository(db: Session) -> "ServiceRepository":
        from .business_repository import ServiceRepository

        return ServiceRepository(db)

    @staticmethod
    def create_therapist_repository(db: Session) -> "TherapistRepository":
        from .therapist_repository import TherapistRepository

        return TherapistRepository(db)

    @staticmethod
    def create_user_repository(db: Session) -> "UserRepository":
        from .user_repository import UserRepository

        return UserRepository(db)

    @staticmethod
    def create_payment_repository(db: Session) -> "PaymentRepository":
        from .payment_repository import PaymentRepository

        return PaymentRepository(db)
