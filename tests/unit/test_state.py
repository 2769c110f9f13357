"""Test appointment state machine and view enums."""
import pytest

from clinicdesk.state import (
    AdminTab,
    AppointmentStatus,
    HistoryWindow,
    PublicView,
    SystemStatus,
    VALID_TRANSITIONS,
    can_cancel,
    validate_transition,
)


def test_appointment_status_values():
    """Stored status strings."""
    assert AppointmentStatus.PENDING.value == "pending"
    assert AppointmentStatus.CONFIRMED.value == "confirmed"
    assert AppointmentStatus.TREATED.value == "treated"


def test_every_status_has_transition_entry():
    for status in AppointmentStatus:
        assert status in VALID_TRANSITIONS


@pytest.mark.parametrize("current,intended", [
    (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED),
    (AppointmentStatus.PENDING, AppointmentStatus.TREATED),
    (AppointmentStatus.CONFIRMED, AppointmentStatus.TREATED),
])
def test_valid_transitions(current, intended):
    assert validate_transition(current, intended) is True


@pytest.mark.parametrize("current,intended", [
    (AppointmentStatus.TREATED, AppointmentStatus.PENDING),
    (AppointmentStatus.TREATED, AppointmentStatus.CONFIRMED),
    (AppointmentStatus.CONFIRMED, AppointmentStatus.PENDING),
    (AppointmentStatus.CONFIRMED, AppointmentStatus.CONFIRMED),
])
def test_invalid_transitions(current, intended):
    assert validate_transition(current, intended) is False


def test_cancel_allowed_only_before_treatment():
    assert can_cancel(AppointmentStatus.PENDING)
    assert can_cancel(AppointmentStatus.CONFIRMED)
    assert not can_cancel(AppointmentStatus.TREATED)


def test_view_enums_are_closed():
    assert [v.value for v in PublicView] == ["news", "doctors", "appointments"]
    assert [t.value for t in AdminTab] == [
        "news", "doctors", "services", "appointments", "history", "team"
    ]
    assert [w.value for w in HistoryWindow] == ["today", "week", "all"]


def test_system_status_values():
    assert {s.value for s in SystemStatus} == {
        "OK", "MISSING_TABLES", "AUTH_ERROR", "CONNECTION_ERROR"
    }


def test_enum_from_string():
    """Path and query parameters arrive as strings."""
    assert PublicView("doctors") is PublicView.DOCTORS
    with pytest.raises(ValueError):
        PublicView("services")
