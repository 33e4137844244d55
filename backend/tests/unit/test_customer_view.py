from datetime import date
from decimal import Decimal

from wellness.models.booking import Booking, BookingStatus, display_code
from wellness.schemas.booking import BookingResponse, CustomerBookingView


def _booking(**overrides) -> Booking:
    fields = dict(
        id="01JABCDEFGHJKMNPQRSTVWXYZ0",
        customer_id="cust",
        therapist_id="t1",
        service_id="svc",
        business_id="biz",
        booking_date=date(2025, 3, 1),
        time="10:00",
        end_time="11:00",
        service_price=Decimal("100.00"),
        version=1,
    )
    fields.update(overrides)
    return Booking(**fields)


def test_display_code_is_derived_from_id():
    assert display_code("01JABCDEFGHJKMNPQRSTVWXYZ0") == "BK-STVWXYZ0"
    assert _booking().display_code == "BK-STVWXYZ0"


def test_hidden_confirmation_reads_as_processing():
    booking = _booking(
        status=BookingStatus.CONFIRMED.value,
        assigned_by_admin=True,
        therapist_responded=True,
        response_visible_to_business_only=True,
    )
    view = CustomerBookingView.from_booking(booking)
    assert view.status == "pending"
    assert view.display_status == "processing"

    staff_view = BookingResponse.model_validate(booking)
    assert staff_view.status == "confirmed"
    assert staff_view.response_visible_to_business_only is True


def test_therapist_intermediate_status_never_leaks():
    booking = _booking(status=BookingStatus.THERAPIST_CONFIRMED.value)
    assert CustomerBookingView.from_booking(booking).status == "pending"


def test_visible_status_passes_through_and_money_serializes_as_float():
    booking = _booking(status=BookingStatus.CONFIRMED.value)
    view = CustomerBookingView.from_booking(booking)
    assert view.status == "confirmed"
    assert view.display_status == "confirmed"
    assert view.model_dump(mode="json")["service_price"] == 100.0


def test_reassigned_therapist_is_not_named_until_relayed():
    hidden = _booking(
        therapist_id="t2",
        status=BookingStatus.CONFIRMED.value,
        assigned_by_admin=True,
        therapist_responded=True,
        response_visible_to_business_only=True,
    )
    assert CustomerBookingView.from_booking(hidden).therapist_id is None
    assert BookingResponse.model_validate(hidden).therapist_id == "t2"

    hidden.response_visible_to_business_only = False
    assert CustomerBookingView.from_booking(hidden).therapist_id == "t2"
