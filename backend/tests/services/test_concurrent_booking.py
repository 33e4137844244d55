"""
Two customers racing for the same slot, each through their own session on
a file-backed SQLite database, so the only thing deciding the winner is the
conditional claim UPDATE.
"""

from decimal import Decimal
from unittest.mock import Mock

import pytest
from sqlalchemy.orm import sessionmaker

from wellness.core.enums import AssociationStatus, RoleName
from wellness.core.exceptions import BookingConflictException
from wellness.database import Base, build_engine, init_db
from wellness.models import (
    Booking,
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


@pytest.fixture
def file_engine(tmp_path):
    race_engine = build_engine(f"sqlite:///{tmp_path / 'race.db'}")
    init_db(bind=race_engine)
    yield race_engine
    Base.metadata.drop_all(bind=race_engine)
    race_engine.dispose()


@pytest.fixture
def file_sessions(file_engine):
    factory = sessionmaker(bind=file_engine, autoflush=False, expire_on_commit=False)
    opened = []

    def _open():
        session = factory()
        opened.append(session)
        return session

    yield _open
    for session in opened:
        session.rollback()
        session.close()


@pytest.fixture
def seeded(file_sessions, booking_day):
    db = file_sessions()
    customer = RoleName.CUSTOMER.value
    first = User(email="first@example.com", name="First Customer", role=customer)
    second = User(email="second@example.com", name="Second Customer", role=customer)
    owner = User(email="owner@example.com", name="Spa Owner", role=RoleName.BUSINESS.value)
    therapist_user = User(
        email="tess@example.com", name="Tess Therapist", role=RoleName.THERAPIST.value
    )
    db.add_all([first, second, owner, therapist_user])
    db.flush()
    business = Business(owner_id=owner.id, name="Harbour Spa")
    db.add(business)
    db.flush()
    service = Service(
        business_id=business.id, name="Swedish Massage", price=Decimal("80.00"), duration_minutes=60
    )
    therapist = Therapist(user_id=therapist_user.id, full_name=therapist_user.name)
    db.add_all([service, therapist])
    db.flush()
    db.add(
        TherapistBusinessAssociation(
            therapist_id=therapist.id,
            business_id=business.id,
            status=AssociationStatus.APPROVED.value,
        )
    )
    slot = TherapistAvailabilitySlot(
        therapist_id=therapist.id, date=booking_day, start_time="10:00", end_time="11:00"
    )
    db.add(slot)
    db.commit()
    return {
        "customers": (first.id, second.id),
        "therapist_id": therapist.id,
        "service_id": service.id,
        "slot_id": slot.id,
    }


def _service_for(session):
    return BookingService(session, notification_service=NotificationService(sender=Mock()))


def test_only_one_of_two_sessions_claims_the_slot(file_sessions, seeded, booking_day):
    first_id, second_id = seeded["customers"]
    winner_service = _service_for(file_sessions())
    loser_service = _service_for(file_sessions())

    # Both read the slot as available before either writes.
    seen_by_winner = winner_service.availability_repository.find_available_covering(
        seeded["therapist_id"], booking_day, "10:00"
    )
    seen_by_loser = loser_service.availability_repository.find_available_covering(
        seeded["therapist_id"], booking_day, "10:00"
    )
    assert seen_by_winner is not None and seen_by_loser is not None
    assert seen_by_winner.id == seen_by_loser.id == seeded["slot_id"]

    booking = winner_service.create_direct_booking(
        first_id, seeded["therapist_id"], seeded["service_id"], booking_day, "10:00"
    )
    assert booking.slot_id == seeded["slot_id"]

    # The loser proceeds on its stale read; only the claim UPDATE can stop it.
    loser_service.availability_repository.find_available_covering = Mock(
        return_value=seen_by_loser
    )
    with pytest.raises(BookingConflictException) as exc:
        loser_service.create_direct_booking(
            second_id, seeded["therapist_id"], seeded["service_id"], booking_day, "10:00"
        )
    assert exc.value.code == "BOOKING_CONFLICT"

    check = file_sessions()
    bookings = check.query(Booking).all()
    assert [b.customer_id for b in bookings] == [first_id]
    slot = check.get(TherapistAvailabilitySlot, seeded["slot_id"])
    assert slot.status == SlotStatus.BOOKED.value


def test_sequential_second_attempt_sees_no_free_slot(file_sessions, seeded, booking_day):
    first_id, second_id = seeded["customers"]
    _service_for(file_sessions()).create_direct_booking(
        first_id, seeded["therapist_id"], seeded["service_id"], booking_day, "10:00"
    )
    with pytest.raises(BookingConflictException):
        _service_for(file_sessions()).create_direct_booking(
            second_id, seeded["therapist_id"], seeded["service_id"], booking_day, "10:00"
        )
    assert file_sessions().query(Booking).count() == 1
