import pytest

from wellness.core.exceptions import AvailabilityOverlapException, NotFoundException, ValidationException
from wellness.services.availability_service import AvailabilityService


@pytest.fixture
def availability_service(db):
    return AvailabilityService(db, break_minutes=15)


class TestCreateSlot:
    def test_creates_available_slot(self, availability_service, therapist, booking_day):
        slot = availability_service.create_slot(therapist.user_id, booking_day, "09:00", "10:00")
        assert slot.start_time == "09:00"
        assert slot.status == "available"
        assert [s.id for s in availability_service.list_slots(therapist.id, booking_day)] == [slot.id]

    def test_overlapping_slot_is_rejected(self, availability_service, therapist, booking_day):
        availability_service.create_slot(therapist.user_id, booking_day, "10:00", "11:00")
        with pytest.raises(AvailabilityOverlapException) as exc:
            availability_service.create_slot(therapist.user_id, booking_day, "10:30", "11:30")
        assert exc.value.status_code == 409
        assert exc.value.code == "AVAILABILITY_OVERLAP"

    def test_touching_slots_are_allowed(self, availability_service, therapist, booking_day):
        availability_service.create_slot(therapist.user_id, booking_day, "10:00", "11:00")
        availability_service.create_slot(therapist.user_id, booking_day, "11:00", "12:00")
        availability_service.create_slot(therapist.user_id, booking_day, "09:00", "10:00")
        assert len(availability_service.list_slots(therapist.id, booking_day)) == 3

    def test_same_time_for_another_therapist_is_fine(
        self, availability_service, therapist, other_therapist, booking_day
    ):
        availability_service.create_slot(therapist.user_id, booking_day, "10:00", "11:00")
        availability_service.create_slot(other_therapist.user_id, booking_day, "10:00", "11:00")

    def test_end_before_start_is_validation_error(self, availability_service, therapist, booking_day):
        with pytest.raises(ValidationException):
            availability_service.create_slot(therapist.user_id, booking_day, "11:00", "10:00")

    def test_non_therapist_has_no_profile(self, availability_service, customer, booking_day):
        with pytest.raises(NotFoundException):
            availability_service.create_slot(customer.id, booking_day, "10:00", "11:00")


class TestWeeklyAvailability:
    def test_stores_capitalized_days(self, availability_service, therapist):
        therapist = availability_service.set_weekly_availability(
            therapist.user_id, {"monday": [{"start_time": "09:00", "end_time": "12:00"}]}
        )
        assert therapist.weekly_availability == {
            "Monday": [{"start_time": "09:00", "end_time": "12:00"}]
        }

    def test_unknown_day_is_rejected(self, availability_service, therapist):
        with pytest.raises(ValidationException):
            availability_service.set_weekly_availability(
                therapist.user_id, {"Funday": [{"start_time": "09:00", "end_time": "12:00"}]}
            )


class TestGeneratedSlots:
    def test_lists_business_hours_without_therapist(self, availability_service, service, booking_day):
        slots = availability_service.get_available_slots(service.id, booking_day)
        assert slots[0].start_time == "09:00"
        assert slots[1].start_time == "10:15"
        assert all(s.is_available for s in slots)
        assert slots[-1].end_time <= "18:00"

    def test_filters_by_weekly_windows_and_bookings(
        self,
        db,
        availability_service,
        booking_service,
        customer,
        service,
        make_therapist,
        business,
        make_slot,
        booking_day,
    ):
        weekly = {"Saturday": [{"start_time": "09:00", "end_time": "12:00"}]}
        part_timer = make_therapist(business, weekly=weekly)
        make_slot(part_timer, booking_day, "09:00", "10:00")
        booking_service.create_direct_booking(
            customer.id, part_timer.id, service.id, booking_day, "09:00"
        )

        slots = {
            s.start_time: s
            for s in availability_service.get_available_slots(service.id, booking_day, part_timer.id)
        }
        assert slots["09:00"].is_available is False
        assert slots["09:00"].status == "pending"
        assert slots["10:15"].is_available is True
        assert slots["14:00"].is_available is False
        assert slots["14:00"].status == "available"

    def test_unknown_service_is_not_found(self, availability_service, booking_day):
        with pytest.raises(NotFoundException):
            availability_service.get_available_slots("01J00000000000000000000000", booking_day)
