"""REST gateway: clinic data held by a hosted backend-as-a-service.

The backend exposes PostgREST-style table endpoints under /rest/v1/<table>
and remote procedures under /rest/v1/rpc/<name>. Rows use snake_case column
names that match the domain model fields, so most rows validate directly.

Row-level authorization and the per-patient booking limit are enforced by
the backend; its error messages are passed through unchanged in BackendError.
"""
import logging
from typing import Any, Dict, List, Optional

import requests

from clinicdesk import config
from clinicdesk.circuit_breaker import CircuitBreaker, CircuitBreakerOpen
from clinicdesk.errors import BackendError
from clinicdesk.gateway.base import ClinicGateway, validate_rows
from clinicdesk.http_client import create_http_session
from clinicdesk.models import (
    AdminTenure,
    Appointment,
    Center,
    Doctor,
    NewsItem,
    PublicAppointment,
    Service,
    TreatedPatient,
)
from clinicdesk.state import AppointmentStatus, SystemStatus

logger = logging.getLogger(__name__)

# PostgreSQL "undefined_table"
MISSING_TABLE_CODE = "42P01"
# PostgREST "JWT invalid"
AUTH_ERROR_CODE = "PGRST301"


def _eq(value: str) -> str:
    return f"eq.{value}"


class RestGateway(ClinicGateway):
    """Clinic data access over the hosted backend's HTTP interface."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        session: Optional[requests.Session] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        """
        Args:
            base_url: Backend root URL, e.g. https://project.example.co
            api_key: Project API key sent on every request
            session: HTTP session (default: create_http_session())
            circuit_breaker: Breaker shared by all calls (default: 5 failures / 60s)
        """
        self.base_url = base_url.rstrip("/")
        self.session = session or create_http_session()
        self.session.headers.update({
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        })
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=5,
            timeout=60,
            name="Hosted backend",
            trip_on=(requests.exceptions.RequestException,),
        )

    # --- Transport ---

    def _send(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}/rest/v1/{path}"
        senders = {
            "GET": self.session.get,
            "POST": self.session.post,
            "PATCH": self.session.patch,
            "DELETE": self.session.delete,
        }
        if method not in senders:
            raise ValueError(f"Unsupported HTTP method: {method}")

        try:
            response = self.circuit_breaker.call(senders[method], url, **kwargs)
        except (requests.exceptions.RequestException, CircuitBreakerOpen) as e:
            logger.error(f"{method} {path} failed: {e}")
            raise BackendError(str(e)) from e

        if response.status_code >= 400:
            raise self._error_from(response)
        return response

    @staticmethod
    def _error_from(response: requests.Response) -> BackendError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        message = body.get("message") or response.text or f"HTTP {response.status_code}"
        return BackendError(message, status_code=response.status_code, backend_code=body.get("code"))

    def _select(self, table: str, **filters) -> List[Dict[str, Any]]:
        params = {"select": "*"}
        params.update(filters)
        return self._send("GET", table, params=params).json() or []

    def _insert(self, table: str, row: Dict[str, Any]) -> None:
        self._send("POST", table, json=row, headers={"Prefer": "return=minimal"})

    def _update(self, table: str, row_id: str, changes: Dict[str, Any]) -> None:
        self._send("PATCH", table, params={"id": _eq(row_id)}, json=changes)

    def _delete(self, table: str, row_id: str) -> None:
        self._send("DELETE", table, params={"id": _eq(row_id)})

    def _rpc(self, name: str, args: Dict[str, Any]) -> Any:
        response = self._send("POST", f"rpc/{name}", json=args)
        return response.json() if response.content else None

    # --- Status ---

    def check_system_status(self) -> SystemStatus:
        try:
            rows = self._send("GET", "centers", params={"select": "id", "limit": "1"}).json()
        except BackendError as e:
            logger.error(f"Backend check failed: {e}")
            message = str(e).lower()
            if e.backend_code == MISSING_TABLE_CODE or "does not exist" in message:
                return SystemStatus.MISSING_TABLES
            if e.backend_code == AUTH_ERROR_CODE or e.status_code == 401 or "jwt" in message:
                return SystemStatus.AUTH_ERROR
            return SystemStatus.CONNECTION_ERROR

        if not rows:
            return SystemStatus.MISSING_TABLES
        return SystemStatus.OK

    # --- Centers ---

    def list_centers(self) -> List[Center]:
        return validate_rows(Center, self._select("centers", order="name.asc"))

    def create_center(self, center: Center) -> None:
        self._insert("centers", center.model_dump(mode="json", exclude_none=True))

    def update_center(self, center_id: str, location: str, city: Optional[str]) -> None:
        self._update("centers", center_id, {"location": location, "city": city})

    def delete_center(self, center_id: str) -> None:
        self._delete("centers", center_id)

    # --- News ---

    def list_news(self, center_id: str) -> List[NewsItem]:
        rows = self._select("news", center_id=_eq(center_id), order="created_at.desc")
        return validate_rows(NewsItem, rows)

    def create_news(self, item: NewsItem) -> None:
        self._insert("news", item.model_dump(mode="json"))

    def delete_news(self, news_id: str) -> None:
        self._delete("news", news_id)

    # --- Doctors ---

    def list_doctors(self, center_id: str) -> List[Doctor]:
        rows = self._select("doctors", center_id=_eq(center_id))
        return validate_rows(Doctor, [{**row, "image_url": row.get("image_url") or ""} for row in rows])

    def create_doctor(self, doctor: Doctor) -> None:
        self._insert("doctors", doctor.model_dump(mode="json"))

    def delete_doctor(self, doctor_id: str) -> None:
        self._delete("doctors", doctor_id)

    # --- Services ---

    def list_services(self, center_id: str) -> List[Service]:
        return validate_rows(Service, self._select("services", center_id=_eq(center_id)))

    def create_service(self, service: Service) -> None:
        self._insert("services", service.model_dump(mode="json"))

    def set_service_paused(self, service_id: str, is_paused: bool) -> None:
        self._update("services", service_id, {"is_paused": is_paused})

    def delete_service(self, service_id: str) -> None:
        self._delete("services", service_id)

    # --- Appointments ---

    def list_appointments(self, center_id: str) -> List[Appointment]:
        return validate_rows(Appointment, self._select("appointments", center_id=_eq(center_id)))

    def list_public_appointments(self, center_id: str) -> List[PublicAppointment]:
        rows = self._rpc("get_public_appointments", {"target_center_id": center_id}) or []
        return [
            PublicAppointment(
                service_id=row["service_id"],
                date=row["appt_date"],
                time=row["appt_time"],
                masked_identity=row.get("masked_identity") or "",
            )
            for row in rows
        ]

    def create_appointment(self, appointment: Appointment, enforce_capacity: bool = True) -> None:
        # Capacity at write time is the backend's constraint to enforce, if it has one
        self._insert("appointments", appointment.model_dump(mode="json"))

    def update_appointment_status(self, appointment_id: str, status: AppointmentStatus) -> None:
        self._update("appointments", appointment_id, {"status": status.value})

    def delete_appointment(self, appointment_id: str) -> None:
        self._delete("appointments", appointment_id)

    # --- Treated patients ---

    def list_treated_patients(self, center_id: str) -> List[TreatedPatient]:
        rows = self._select("treated_patients", center_id=_eq(center_id), order="treated_at.desc")
        return validate_rows(TreatedPatient, rows)

    def create_treated_patient(self, record: TreatedPatient) -> None:
        self._insert("treated_patients", record.model_dump(mode="json"))

    def delete_treated_patient(self, record_id: str) -> None:
        self._delete("treated_patients", record_id)

    # --- Team ---

    def list_admins(self, center_id: str) -> List[AdminTenure]:
        rows = self._select("view_admin_tenure", center_id=_eq(center_id), order="is_active.desc")
        return validate_rows(AdminTenure, rows)

    def add_admin(self, tenure: AdminTenure) -> None:
        self._insert("center_admins", tenure.model_dump(mode="json", exclude={"days_in_office"}))

    def revoke_admin(self, user_id: str, center_id: str) -> None:
        self._rpc("revoke_admin_role", {
            "target_user_id": user_id,
            "target_center_id": center_id,
        })


def create_rest_gateway() -> RestGateway:
    """Build a REST gateway from configuration."""
    return RestGateway(base_url=config.BACKEND_URL, api_key=config.BACKEND_API_KEY)
