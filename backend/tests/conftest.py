# backend/tests/conftest.py
"""
Pytest configuration for the wellness backend.

Every test gets a fresh in-memory SQLite database (shared across threads
through StaticPool so TestClient requests see the same data), factory
fixtures for the marketplace's users, businesses, therapists, services and
slots, and a mock notification sender.
"""

import os

# Set testing mode BEFORE any wellness imports.
os.environ["ENVIRONMENT"] = "test"
os.environ["CI"] = "true"
os.environ["PAYMENT_GATEWAY_KEY_ID"] = ""
os.environ["PAYMENT_GATEWAY_KEY_SECRET"] = ""

from datetime import date, timedelta
from decimal import Decimal
from typing import Callable, Dict, Optional
from unittest.mock import Mock

from fastapi.testclient import TestClient
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from wellness.auth import create_access_token
from wellness.core.config import settings
from wellness.core.enums import AssociationStatus, RoleName
from wellness.database import Base, get_db
from wellness.main import app
from wellness.models import (
    Business,
    Service,
    SlotStatus,
    Therapist,
    TherapistAvailabilitySlot,
    TherapistBusinessAssociation,
    User,
)
from wellness.services.booking_service import BookingService
from wellness.services.notification_service import NotificationService

settings.is_testing = True

FULL_WEEK = {
    day: [{"start_time": "09:00", "end_time": "18:00"}]
    for day in ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
}


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory) -> Session:
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def client(db: Session):
    """Create a test client bound to the test database."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()
    test_client.close()


@pytest.fixture
def mock_sender() -> Mock:
    return Mock()


@pytest.fixture
def notification_service(mock_sender: Mock) -> NotificationService:
    return NotificationService(sender=mock_sender)


@pytest.fixture
def booking_service(db: Session, notification_service: NotificationService) -> BookingService:
    return BookingService(db, notification_service=notification_service, payout_rate=0.40)


@pytest.fixture
def booking_day() -> date:
    """A future Saturday, so tests never depend on today's weekday."""
    today = date.today()
    return today + timedelta(days=(5 - today.weekday()) % 7 + 7)


@pytest.fixture
def make_user(db: Session) -> Callable[..., User]:
    counter = {"n": 0}

    def _make(role: RoleName, name: Optional[str] = None) -> User:
        counter["n"] += 1
        user = User(
            email=f"{role.value}{counter['n']}@example.com",
            name=name or f"Test {role.value.title()} {counter['n']}",
            role=role.value,
            is_active=True,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def customer(make_user) -> User:
    return make_user(RoleName.CUSTOMER, "Casey Customer")


@pytest.fixture
def business_owner(make_user) -> User:
    return make_user(RoleName.BUSINESS, "Blair Owner")


@pytest.fixture
def business(db: Session, business_owner: User) -> Business:
    biz = Business(
        owner_id=business_owner.id,
        name="Calm Waters Spa",
        opening_time="09:00",
        closing_time="18:00",
    )
    db.add(biz)
    db.commit()
    return biz


@pytest.fixture
def service(db: Session, business: Business) -> Service:
    svc = Service(
        business_id=business.id,
        name="Deep Tissue Massage",
        category="massage",
        price=Decimal("100.00"),
        duration_minutes=60,
    )
    db.add(svc)
    db.commit()
    return svc


@pytest.fixture
def make_therapist(db: Session, make_user) -> Callable[..., Therapist]:
    def _make(
        business: Optional[Business] = None,
        status: AssociationStatus = AssociationStatus.APPROVED,
        weekly: Optional[Dict] = None,
    ) -> Therapist:
        user = make_user(RoleName.THERAPIST)
        therapist = Therapist(
            user_id=user.id,
            full_name=user.name,
            weekly_availability=FULL_WEEK if weekly is None else weekly,
        )
        db.add(therapist)
        db.flush()
        if business is not None:
            db.add(
                TherapistBusinessAssociation(
                    therapist_id=therapist.id, business_id=business.id, status=status.value
                )
            )
        db.commit()
        return therapist

    return _make


@pytest.fixture
def therapist(make_therapist, business: Business) -> Therapist:
    return make_therapist(business)


@pytest.fixture
def other_therapist(make_therapist, business: Business) -> Therapist:
    return make_therapist(business)


@pytest.fixture
def make_slot(db: Session) -> Callable[..., TherapistAvailabilitySlot]:
    def _make(
        therapist: Therapist,
        on_date: date,
        start_time: str = "10:00",
        end_time: str = "11:00",
        status: SlotStatus = SlotStatus.AVAILABLE,
    ) -> TherapistAvailabilitySlot:
        slot = TherapistAvailabilitySlot(
            therapist_id=therapist.id,
            date=on_date,
            start_time=start_time,
            end_time=end_time,
            status=status.value,
        )
        db.add(slot)
        db.commit()
        return slot

    return _make


@pytest.fixture
def auth_headers_for() -> Callable[[User], Dict[str, str]]:
    def _headers(user: User) -> Dict[str, str]:
        token = create_access_token(user.id, user.role)
        return {"Authorization": f"Bearer {token}"}

    return _headers
