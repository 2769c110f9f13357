"""Test API request/response models."""
import pytest
from pydantic import ValidationError

from clinicdesk.api.models import (
    AvailabilityResponse,
    BookingCreate,
    CenterCreate,
    NewsCreate,
    ServiceCreate,
)


def test_booking_create_strips_whitespace():
    """Patient fields arrive from a form and may carry stray spaces."""
    req = BookingCreate(
        service_id="s1",
        date="2025-03-10",
        patient_name="  Ana Perez ",
        patient_id=" 12345689",
        patient_phone="0414-5550000"
    )
    assert req.patient_name == "Ana Perez"
    assert req.patient_id == "12345689"


def test_booking_create_short_patient_id_fails():
    with pytest.raises(ValidationError) as exc_info:
        BookingCreate(
            service_id="s1",
            date="2025-03-10",
            patient_name="Ana Perez",
            patient_id="123",
            patient_phone="0414"
        )
    assert "patient_id" in str(exc_info.value)


def test_booking_create_bad_date_fails():
    with pytest.raises(ValidationError):
        BookingCreate(
            service_id="s1",
            date="10/03/2025",
            patient_name="Ana Perez",
            patient_id="12345689",
            patient_phone="0414"
        )


def test_service_create_defaults():
    req = ServiceCreate(name="Pediatrics")
    assert req.start_time == "07:00 AM"
    assert req.interval_minutes == 30
    assert req.allowed_days == [1, 2, 3, 4, 5]


@pytest.mark.parametrize("field,value", [
    ("start_time", "7am"),
    ("interval_minutes", 0),
    ("daily_capacity", 0),
    ("allowed_days", []),
    ("allowed_days", [7]),
])
def test_service_create_rejects(field, value):
    with pytest.raises(ValidationError):
        ServiceCreate(name="Pediatrics", **{field: value})


def test_news_create_needs_an_hour():
    with pytest.raises(ValidationError):
        NewsCreate(title="Notice", content="...", duration_hours=0)


def test_center_id_is_a_slug():
    assert CenterCreate(id="cdi-baraure", name="CDI Baraure").id == "cdi-baraure"
    with pytest.raises(ValidationError):
        CenterCreate(id="CDI Baraure", name="CDI Baraure")


def test_availability_unknown_is_not_zero():
    """No selection yet serializes as null, not as a fully booked day."""
    resp = AvailabilityResponse(service_id="s1", date="2025-03-10")
    assert resp.model_dump()["available"] is None
