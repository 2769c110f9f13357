"""End-to-end tests for the FastAPI server over an in-memory SQL gateway."""
import datetime as dt
import uuid
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from clinicdesk import config
from clinicdesk.api.dependencies import (
    get_api_key_manager,
    get_booking_service,
    get_gateway,
    get_rate_limiter,
)
from clinicdesk.api.database_models import ServiceRow
from clinicdesk.api_server import app
from clinicdesk.booking import GENERIC_FAILURE_MESSAGE, LIMIT_MESSAGE, SUCCESS_MESSAGE, BookingService
from clinicdesk.errors import BackendError
from clinicdesk.models import Appointment, Center, NewsItem, Service
from clinicdesk.rate_limiter import RateLimiter

TODAY = dt.date(2025, 3, 10)  # Monday


@pytest.fixture
def limiter():
    return RateLimiter(default_requests=100, default_window_seconds=60)


@pytest.fixture
def client(gateway, api_key_manager, center, service, limiter):
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_api_key_manager] = lambda: api_key_manager
    app.dependency_overrides[get_booking_service] = lambda: BookingService(gateway, today=lambda: TODAY)
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(api_key_manager):
    key = api_key_manager.generate_api_key("admin-1", center_id="baraure")
    return {"X-API-Key": key}


@pytest.fixture
def super_headers(api_key_manager):
    key = api_key_manager.generate_api_key("root", is_super_admin=True)
    return {"X-API-Key": key}


def booking_body(**overrides):
    body = {
        "service_id": "s1",
        "date": TODAY.isoformat(),
        "patient_name": "Ana Perez",
        "patient_id": "12345689",
        "patient_phone": "0414-5550000",
    }
    body.update(overrides)
    return body


class TestPublic:

    def test_health_has_request_id(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.headers["X-Request-ID"].startswith("req-")

    def test_status(self, client):
        assert client.get("/api/v1/status").json() == {"status": "OK"}

    def test_centers(self, client):
        assert [c["id"] for c in client.get("/api/v1/centers").json()] == ["baraure"]

    def test_news_view_hides_expired(self, client, gateway):
        now_ms = int(dt.datetime.now(dt.UTC).timestamp() * 1000)
        gateway.create_news(NewsItem(
            id="live", center_id="baraure", title="Open", content="...",
            created_at=now_ms, expires_at=now_ms + 3_600_000,
        ))
        gateway.create_news(NewsItem(
            id="old", center_id="baraure", title="Gone", content="...",
            created_at=now_ms - 7_200_000, expires_at=now_ms - 3_600_000,
        ))

        body = client.get("/api/v1/centers/baraure/views/news").json()

        assert body["center"]["id"] == "baraure"
        assert body["view"] == "news"
        assert [n["id"] for n in body["items"]] == ["live"]

    def test_appointments_view_is_masked(self, client, gateway):
        gateway.create_appointment(Appointment(
            id="a1", center_id="baraure", service_id="s1", patient_name="Ana Perez",
            patient_id="12345689", patient_phone="0414-5550000",
            date=dt.date.today() + dt.timedelta(days=1), time="07:00 AM",
        ))

        items = client.get("/api/v1/centers/baraure/views/appointments").json()["items"]

        assert items[0]["masked_identity"] == "Ana 12...89"
        assert "patient_phone" not in items[0]
        assert "patient_id" not in items[0]

    def test_unknown_view(self, client):
        response = client.get("/api/v1/centers/baraure/views/billing")
        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_unknown_center(self, client):
        response = client.get("/api/v1/centers/nowhere/views/news")
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_paused_services_not_listed(self, client, gateway):
        gateway.create_service(Service(id="s2", center_id="baraure", name="Lab", daily_capacity=5, is_paused=True))
        ids = [s["id"] for s in client.get("/api/v1/centers/baraure/services").json()]
        assert ids == ["s1"]


class TestAvailability:

    def test_preview(self, client):
        response = client.get(
            "/api/v1/centers/baraure/availability",
            params={"service_id": "s1", "date": TODAY.isoformat()},
        )
        body = response.json()
        assert body["available"] == 3
        assert body["estimated_time"] == "07:00 AM"

    def test_incomplete_selection(self, client):
        body = client.get("/api/v1/centers/baraure/availability", params={"service_id": "s1"}).json()
        assert body["available"] is None
        assert body["estimated_time"] is None

    def test_stored_service_with_bad_start_time_does_not_break_center(self, client, gateway):
        with gateway.SessionLocal() as db:
            db.add(ServiceRow(
                id="legacy", center_id="baraure", name="Old", allowed_days=[1, 2, 3, 4, 5],
                daily_capacity=5, is_paused=False, start_time="7am", interval_minutes=30,
            ))
            db.commit()

        response = client.get(
            "/api/v1/centers/baraure/availability",
            params={"service_id": "s1", "date": TODAY.isoformat()},
        )

        assert response.status_code == 200
        assert response.json()["available"] == 3
        assert [s["id"] for s in client.get("/api/v1/centers/baraure/services").json()] == ["s1"]


class TestBooking:

    def test_books_first_slot(self, client):
        response = client.post("/api/v1/centers/baraure/appointments", json=booking_body())

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == SUCCESS_MESSAGE
        assert body["time"] == "07:00 AM"
        uuid.UUID(body["appointment_id"])

    def test_past_date(self, client):
        response = client.post(
            "/api/v1/centers/baraure/appointments",
            json=booking_body(date=(TODAY - dt.timedelta(days=1)).isoformat()),
        )
        assert response.status_code == 400
        assert response.json()["code"] == "PAST_DATE"

    def test_paused_service(self, client, gateway):
        gateway.set_service_paused("s1", True)
        response = client.post("/api/v1/centers/baraure/appointments", json=booking_body())
        assert response.status_code == 409
        assert response.json()["code"] == "SERVICE_PAUSED"

    def test_short_patient_id(self, client):
        response = client.post("/api/v1/centers/baraure/appointments", json=booking_body(patient_id="12"))
        assert response.status_code == 422

    def test_patient_limit(self, client, gateway):
        gateway.create_service(Service(id="big", center_id="baraure", name="Lab", daily_capacity=20))
        for _ in range(config.DAILY_PATIENT_LIMIT):
            assert client.post(
                "/api/v1/centers/baraure/appointments", json=booking_body(service_id="big")
            ).status_code == 201

        response = client.post("/api/v1/centers/baraure/appointments", json=booking_body(service_id="big"))

        assert response.status_code == 429
        assert response.json()["error"] == LIMIT_MESSAGE.format(limit=config.DAILY_PATIENT_LIMIT)
        assert response.json()["code"] == "BOOKING_LIMIT_EXCEEDED"

    def test_center_rate_limit(self, client, limiter):
        limiter.set_limit("baraure", 1, 60)
        assert client.post("/api/v1/centers/baraure/appointments", json=booking_body()).status_code == 201

        response = client.post(
            "/api/v1/centers/baraure/appointments", json=booking_body(patient_id="99990001")
        )

        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) > 0

    def test_unknown_center_is_not_rate_limited(self, client, limiter):
        response = client.post("/api/v1/centers/nowhere/appointments", json=booking_body())

        assert response.status_code == 404
        assert "nowhere" not in limiter.request_log

    def test_backend_failure_uses_generic_message(self, client, gateway):
        with patch.object(
            gateway, "create_appointment",
            side_effect=BackendError("connection reset", status_code=503),
        ):
            response = client.post("/api/v1/centers/baraure/appointments", json=booking_body())

        assert response.status_code == 502
        assert response.json()["error"] == GENERIC_FAILURE_MESSAGE
        assert response.json()["code"] == "BOOKING_FAILED"

    def test_backend_limit_error_maps_to_limit_message(self, client, gateway):
        with patch.object(
            gateway, "create_appointment",
            side_effect=BackendError("Límite excedido: máximo 5 citas por día", status_code=400),
        ):
            response = client.post("/api/v1/centers/baraure/appointments", json=booking_body())

        assert response.status_code == 429
        assert response.json()["error"] == LIMIT_MESSAGE.format(limit=config.DAILY_PATIENT_LIMIT)
        assert response.json()["code"] == "BOOKING_LIMIT_EXCEEDED"


class TestAdmin:

    def test_missing_key(self, client):
        assert client.get("/api/v1/admin/centers/baraure/news").status_code == 422

    def test_invalid_key(self, client):
        response = client.get(
            "/api/v1/admin/centers/baraure/news", headers={"X-API-Key": "ak_" + "0" * 32}
        )
        assert response.status_code == 401

    def test_key_for_another_center(self, client, gateway, admin_headers):
        gateway.create_center(Center(id="acarigua", name="CDI Acarigua"))
        response = client.get("/api/v1/admin/centers/acarigua/news", headers=admin_headers)
        assert response.status_code == 403

    def test_news_lifecycle(self, client, admin_headers):
        created = client.post(
            "/api/v1/admin/centers/baraure/news",
            json={"title": "Vaccination day", "content": "Saturday 8am", "duration_hours": 48},
            headers=admin_headers,
        )
        assert created.status_code == 201
        item = created.json()
        assert item["expires_at"] - item["created_at"] == 48 * 3600 * 1000

        deleted = client.delete(f"/api/v1/admin/centers/baraure/news/{item['id']}", headers=admin_headers)
        assert deleted.status_code == 204
        assert client.get("/api/v1/admin/centers/baraure/news", headers=admin_headers).json() == []

    def test_service_with_bad_start_time(self, client, admin_headers):
        response = client.post(
            "/api/v1/admin/centers/baraure/services",
            json={"name": "Pediatrics", "start_time": "seven"},
            headers=admin_headers,
        )
        assert response.status_code == 422

    def test_service_toggle(self, client, admin_headers):
        response = client.post(
            "/api/v1/admin/centers/baraure/services/s1/toggle-pause", headers=admin_headers
        )
        assert response.json()["is_paused"] is True
        assert client.get("/api/v1/centers/baraure/services").json() == []

    def test_confirm_treat_and_history(self, client, admin_headers):
        appointment_id = client.post(
            "/api/v1/centers/baraure/appointments", json=booking_body()
        ).json()["appointment_id"]
        base = "/api/v1/admin/centers/baraure/appointments"

        confirmed = client.post(f"{base}/{appointment_id}/confirm", headers=admin_headers)
        assert confirmed.json()["status"] == "confirmed"

        again = client.post(f"{base}/{appointment_id}/confirm", headers=admin_headers)
        assert again.status_code == 409
        assert again.json()["code"] == "INVALID_TRANSITION"

        treated = client.post(f"{base}/{appointment_id}/treat", headers=admin_headers)
        assert treated.json()["service_name"] == "General Medicine"
        assert client.get(base, headers=admin_headers).json() == []

        history = client.get(
            "/api/v1/admin/centers/baraure/history", params={"window": "all"}, headers=admin_headers
        ).json()
        assert [r["id"] for r in history] == [treated.json()["id"]]

    def test_register_with_wrong_code(self, client, monkeypatch):
        monkeypatch.setattr(config, "ADMIN_REGISTRATION_CODE", "letmein")
        response = client.post("/api/v1/admin/register", json={
            "center_id": "baraure", "secret_code": "guess", "first_name": "Maria", "last_name": "Gomez",
        })
        assert response.status_code == 403
        assert response.json()["code"] == "REGISTRATION_REJECTED"

    def test_registered_key_works(self, client, monkeypatch):
        monkeypatch.setattr(config, "ADMIN_REGISTRATION_CODE", "letmein")
        response = client.post("/api/v1/admin/register", json={
            "center_id": "baraure", "secret_code": "letmein", "first_name": "Maria", "last_name": "Gomez",
        })
        assert response.status_code == 201
        headers = {"X-API-Key": response.json()["api_key"]}

        team = client.get("/api/v1/admin/centers/baraure/team", headers=headers).json()
        assert [t["first_name"] for t in team] == ["Maria"]


class TestSuperAdmin:

    def test_center_key_rejected(self, client, admin_headers):
        assert client.get("/api/v1/super/centers", headers=admin_headers).status_code == 403

    def test_center_lifecycle(self, client, super_headers):
        created = client.post(
            "/api/v1/super/centers",
            json={"id": "acarigua", "name": "CDI Acarigua", "city": "Acarigua"},
            headers=super_headers,
        )
        assert created.status_code == 201

        duplicate = client.post(
            "/api/v1/super/centers", json={"id": "acarigua", "name": "Again"}, headers=super_headers
        )
        assert duplicate.status_code == 409

        patched = client.patch(
            "/api/v1/super/centers/acarigua",
            json={"location": "Av. Libertador", "city": "Acarigua"},
            headers=super_headers,
        )
        assert patched.json()["location"] == "Av. Libertador"

        assert client.delete("/api/v1/super/centers/acarigua", headers=super_headers).status_code == 204
        assert client.delete("/api/v1/super/centers/acarigua", headers=super_headers).status_code == 404

    def test_super_admin_manages_any_center(self, client, super_headers):
        response = client.get("/api/v1/admin/centers/baraure/services", headers=super_headers)
        assert response.status_code == 200

    def test_invalid_center_id(self, client, super_headers):
        response = client.post(
            "/api/v1/super/centers", json={"id": "Bad Id", "name": "X"}, headers=super_headers
        )
        assert response.status_code == 422
