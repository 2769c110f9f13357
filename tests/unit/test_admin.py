"""Test center administration operations."""
import datetime as dt
from datetime import UTC, timedelta
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from clinicdesk import config
from clinicdesk.admin import AdminService
from clinicdesk.auth import InvalidAPIKeyError
from clinicdesk.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    RegistrationRejectedError,
)
from clinicdesk.models import Appointment, Center
from clinicdesk.state import AppointmentStatus, HistoryWindow

NOW = dt.datetime(2025, 3, 10, 15, 0, tzinfo=UTC)


@pytest.fixture
def admin(gateway, api_key_manager, center, service):
    return AdminService(gateway, api_key_manager, now=lambda: NOW)


@pytest.fixture
def appointment(gateway, service):
    appointment = Appointment(
        id="a1",
        center_id="baraure",
        service_id="s1",
        patient_name="Ana Perez",
        patient_id="12345689",
        patient_phone="0414-5550000",
        date=dt.date(2025, 3, 10),
        time="07:00 AM",
    )
    gateway.create_appointment(appointment)
    return appointment


class TestNews:

    def test_expiry_from_duration(self, admin):
        item = admin.create_news("baraure", "Vaccination day", "Saturday 8am", duration_hours=48)
        now_ms = int(NOW.timestamp() * 1000)
        assert item.created_at == now_ms
        assert item.expires_at == now_ms + 48 * 3600 * 1000
        assert admin.list_news("baraure") == [item]

    def test_default_duration_is_one_day(self, admin):
        item = admin.create_news("baraure", "Notice", "Closed on Friday")
        assert item.expires_at - item.created_at == 24 * 3600 * 1000

    def test_media_type_dropped_without_url(self, admin):
        item = admin.create_news("baraure", "Notice", "Text only", media_type="image")
        assert item.media_type is None

    def test_non_positive_duration_rejected(self, admin):
        with pytest.raises(ValueError):
            admin.create_news("baraure", "Notice", "...", duration_hours=0)

    def test_delete_checks_center(self, admin, gateway):
        item = admin.create_news("baraure", "Notice", "...")
        gateway.create_center(Center(id="acarigua", name="CDI Acarigua"))

        with pytest.raises(NotFoundError):
            admin.delete_news("acarigua", item.id)

        admin.delete_news("baraure", item.id)
        assert admin.list_news("baraure") == []


class TestDoctors:

    def test_create_and_delete(self, admin):
        doctor = admin.create_doctor("baraure", "Dr. Rivas", "Cardiology", description="20 years")
        assert admin.list_doctors("baraure") == [doctor]

        admin.delete_doctor("baraure", doctor.id)
        assert admin.list_doctors("baraure") == []

    def test_delete_unknown(self, admin):
        with pytest.raises(NotFoundError):
            admin.delete_doctor("baraure", "nope")


class TestServices:

    def test_create_with_defaults(self, admin):
        created = admin.create_service("baraure", "Pediatrics")
        assert created.allowed_days == [1, 2, 3, 4, 5]
        assert created.daily_capacity == config.DEFAULT_DAILY_CAPACITY
        assert created in admin.list_services("baraure")

    def test_create_validates(self, admin):
        with pytest.raises(ValidationError):
            admin.create_service("baraure", "Pediatrics", start_time="7 o'clock")
        with pytest.raises(ValidationError):
            admin.create_service("baraure", "Pediatrics", daily_capacity=0)

    def test_toggle_pause_twice(self, admin):
        paused = admin.toggle_service_pause("baraure", "s1")
        assert paused.is_paused is True
        assert admin.list_services("baraure")[0].is_paused is True

        resumed = admin.toggle_service_pause("baraure", "s1")
        assert resumed.is_paused is False

    def test_delete_removes_bookings(self, admin, gateway, appointment):
        admin.delete_service("baraure", "s1")
        assert admin.list_services("baraure") == []
        assert gateway.list_appointments("baraure") == []

    def test_unknown_service(self, admin):
        with pytest.raises(NotFoundError):
            admin.toggle_service_pause("baraure", "nope")


class TestAppointments:

    def test_confirm(self, admin, appointment):
        confirmed = admin.confirm_appointment("baraure", "a1")
        assert confirmed.status is AppointmentStatus.CONFIRMED
        assert admin.list_appointments("baraure")[0].status is AppointmentStatus.CONFIRMED

    def test_confirm_twice_rejected(self, admin, appointment):
        admin.confirm_appointment("baraure", "a1")
        with pytest.raises(InvalidTransitionError):
            admin.confirm_appointment("baraure", "a1")

    def test_mark_treated_archives_and_removes(self, admin, appointment):
        record = admin.mark_treated("baraure", "a1")

        assert record.service_name == "General Medicine"
        assert record.patient_name == "Ana Perez"
        assert record.treated_at == NOW
        assert record.notes == "Treated from appointment of 2025-03-10"
        assert admin.list_appointments("baraure") == []
        assert [r.id for r in admin.list_history("baraure")] == [record.id]

    def test_confirmed_can_be_treated(self, admin, appointment):
        admin.confirm_appointment("baraure", "a1")
        admin.mark_treated("baraure", "a1")
        assert admin.list_appointments("baraure") == []

    def test_mark_treated_falls_back_when_service_is_gone(self, admin, gateway, appointment):
        with patch.object(gateway, "find_service", return_value=None):
            record = admin.mark_treated("baraure", "a1")
        assert record.service_name == "General Consultation"

    def test_cancel_leaves_no_history(self, admin, appointment):
        admin.cancel_appointment("baraure", "a1")
        assert admin.list_appointments("baraure") == []
        assert admin.list_history("baraure") == []

    def test_other_center_cannot_touch(self, admin, gateway, appointment):
        gateway.create_center(Center(id="acarigua", name="CDI Acarigua"))
        with pytest.raises(NotFoundError):
            admin.cancel_appointment("acarigua", "a1")


class TestHistory:

    def test_windows(self, admin, gateway, appointment):
        admin.mark_treated("baraure", "a1")
        old = AdminService(gateway, admin.keys, now=lambda: NOW - timedelta(days=10))
        gateway.create_appointment(appointment.model_copy(update={"id": "a2"}))
        old.mark_treated("baraure", "a2")

        assert len(admin.list_history("baraure", HistoryWindow.ALL)) == 2
        assert len(admin.list_history("baraure", HistoryWindow.WEEK)) == 1
        assert len(admin.list_history("baraure", HistoryWindow.TODAY)) == 1

    def test_delete_record(self, admin, appointment):
        record = admin.mark_treated("baraure", "a1")
        admin.delete_history_record("baraure", record.id)
        assert admin.list_history("baraure") == []

        with pytest.raises(NotFoundError):
            admin.delete_history_record("baraure", record.id)


class TestTeam:

    @pytest.fixture(autouse=True)
    def registration_code(self, monkeypatch):
        monkeypatch.setattr(config, "ADMIN_REGISTRATION_CODE", "letmein")

    def test_register_returns_working_key(self, admin, api_key_manager):
        tenure, api_key = admin.register_admin("baraure", "letmein", "Maria", "Gomez", "0414")

        identity = api_key_manager.validate_api_key(api_key)
        assert identity.user_id == tenure.user_id
        assert identity.center_id == "baraure"
        assert not identity.is_super_admin
        assert [t.user_id for t in admin.list_team("baraure")] == [tenure.user_id]

    def test_wrong_code_rejected(self, admin):
        with pytest.raises(RegistrationRejectedError):
            admin.register_admin("baraure", "guess", "Maria", "Gomez")

    def test_registration_disabled_without_code(self, admin, monkeypatch):
        monkeypatch.setattr(config, "ADMIN_REGISTRATION_CODE", "")
        with pytest.raises(RegistrationRejectedError):
            admin.register_admin("baraure", "", "Maria", "Gomez")

    def test_unknown_center(self, admin):
        with pytest.raises(NotFoundError):
            admin.register_admin("nowhere", "letmein", "Maria", "Gomez")

    def test_revoke_ends_tenure_and_keys(self, admin, api_key_manager):
        tenure, api_key = admin.register_admin("baraure", "letmein", "Maria", "Gomez")

        admin.revoke_admin("baraure", tenure.user_id)

        team = admin.list_team("baraure")
        assert team[0].is_active is False
        assert team[0].end_date is not None
        with pytest.raises(InvalidAPIKeyError):
            api_key_manager.validate_api_key(api_key)

    def test_active_admins_listed_first(self, admin):
        first, _ = admin.register_admin("baraure", "letmein", "Maria", "Gomez")
        second, _ = admin.register_admin("baraure", "letmein", "Jose", "Lara")
        admin.revoke_admin("baraure", first.user_id)

        assert [t.user_id for t in admin.list_team("baraure")] == [second.user_id, first.user_id]

    def test_revoke_twice(self, admin):
        tenure, _ = admin.register_admin("baraure", "letmein", "Maria", "Gomez")
        admin.revoke_admin("baraure", tenure.user_id)
        with pytest.raises(NotFoundError):
            admin.revoke_admin("baraure", tenure.user_id)


class TestCenters:

    def test_list_ordered_by_name(self, admin):
        admin.create_center(Center(id="acarigua", name="AAA Acarigua"))
        assert [c.id for c in admin.list_centers()] == ["acarigua", "baraure"]

    def test_duplicate_id(self, admin):
        with pytest.raises(ConflictError):
            admin.create_center(Center(id="baraure", name="Again"))

    def test_update_location(self, admin, gateway):
        updated = admin.update_center("baraure", "Av. 5", "Guanare")
        assert updated.location == "Av. 5"
        assert gateway.get_center("baraure").city == "Guanare"

    def test_delete_cascades(self, admin, gateway, appointment):
        admin.create_doctor("baraure", "Dr. Rivas", "Cardiology")
        admin.delete_center("baraure")

        assert admin.list_centers() == []
        assert gateway.list_services("baraure") == []
        assert gateway.list_doctors("baraure") == []
        assert gateway.list_appointments("baraure") == []

    def test_delete_unknown(self, admin):
        with pytest.raises(NotFoundError):
            admin.delete_center("nowhere")
