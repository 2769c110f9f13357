"""
Data gateway interface.

Every read and write of clinic data goes through a ClinicGateway. The SQL
gateway owns the tables itself; the REST gateway forwards to a hosted
backend. Callers never talk to either directly.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from clinicdesk.errors import NotFoundError
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

ModelT = TypeVar("ModelT", bound=BaseModel)


def validate_rows(model: Type[ModelT], rows: Iterable[Any], **options) -> List[ModelT]:
    """
    Convert stored rows to models, dropping rows that no longer validate.

    Older rows may hold values the models now reject (e.g. a free-text
    start time). Such a row is logged and skipped; the others are returned.

    Args:
        model: Pydantic model to build
        rows: Dicts or ORM objects
        options: Passed to model_validate (e.g. from_attributes=True)
    """
    valid = []
    for row in rows:
        try:
            valid.append(model.model_validate(row, **options))
        except ValidationError as e:
            row_id = row.get("id") if isinstance(row, dict) else getattr(row, "id", None)
            logger.warning(
                f"Skipping {model.__name__} row {row_id!r}: "
                f"{e.error_count()} invalid field(s): {e.errors()[0]['msg']}"
            )
    return valid


class ClinicGateway(ABC):
    """Base interface for clinic data access."""

    @abstractmethod
    def check_system_status(self) -> SystemStatus:
        """Check the backend: reachable, authorized, and initialized."""

    # --- Centers ---
    @abstractmethod
    def list_centers(self) -> List[Center]:
        """All centers, ordered by name."""

    @abstractmethod
    def create_center(self, center: Center) -> None:
        pass

    @abstractmethod
    def update_center(self, center_id: str, location: str, city: Optional[str]) -> None:
        pass

    @abstractmethod
    def delete_center(self, center_id: str) -> None:
        """Delete a center and everything that belongs to it."""

    # --- News ---
    @abstractmethod
    def list_news(self, center_id: str) -> List[NewsItem]:
        """News for a center, newest first."""

    @abstractmethod
    def create_news(self, item: NewsItem) -> None:
        pass

    @abstractmethod
    def delete_news(self, news_id: str) -> None:
        pass

    # --- Doctors ---
    @abstractmethod
    def list_doctors(self, center_id: str) -> List[Doctor]:
        pass

    @abstractmethod
    def create_doctor(self, doctor: Doctor) -> None:
        pass

    @abstractmethod
    def delete_doctor(self, doctor_id: str) -> None:
        pass

    # --- Services ---
    @abstractmethod
    def list_services(self, center_id: str) -> List[Service]:
        pass

    @abstractmethod
    def create_service(self, service: Service) -> None:
        pass

    @abstractmethod
    def set_service_paused(self, service_id: str, is_paused: bool) -> None:
        pass

    @abstractmethod
    def delete_service(self, service_id: str) -> None:
        """Delete a service and its live appointments."""

    # --- Appointments ---
    @abstractmethod
    def list_appointments(self, center_id: str) -> List[Appointment]:
        """Full appointment details. Administrators only."""

    @abstractmethod
    def list_public_appointments(self, center_id: str) -> List[PublicAppointment]:
        """Occupied slots with masked patient identity. Safe for anonymous use."""

    @abstractmethod
    def create_appointment(self, appointment: Appointment, enforce_capacity: bool = True) -> None:
        """
        Persist a new booking.

        Raises:
            BookingLimitExceeded: If the patient hit the daily booking limit
            CapacityExceededError: If enforce_capacity and the day is full
                (only where the backend can check it at write time)
        """

    @abstractmethod
    def update_appointment_status(self, appointment_id: str, status: AppointmentStatus) -> None:
        pass

    @abstractmethod
    def delete_appointment(self, appointment_id: str) -> None:
        pass

    # --- Treated patients ---
    @abstractmethod
    def list_treated_patients(self, center_id: str) -> List[TreatedPatient]:
        """History for a center, most recently treated first."""

    @abstractmethod
    def create_treated_patient(self, record: TreatedPatient) -> None:
        pass

    @abstractmethod
    def delete_treated_patient(self, record_id: str) -> None:
        pass

    # --- Team ---
    @abstractmethod
    def list_admins(self, center_id: str) -> List[AdminTenure]:
        """Administrator tenures for a center, active ones first."""

    @abstractmethod
    def add_admin(self, tenure: AdminTenure) -> None:
        pass

    @abstractmethod
    def revoke_admin(self, user_id: str, center_id: str) -> None:
        """End an administrator's tenure at a center."""

    # --- Helpers shared by all gateways ---
    def get_center(self, center_id: str) -> Center:
        """
        Raises:
            NotFoundError: If the center does not exist
        """
        for center in self.list_centers():
            if center.id == center_id:
                return center
        raise NotFoundError(f"Center '{center_id}' not found")

    def find_service(self, center_id: str, service_id: str) -> Optional[Service]:
        """Service of this center, or None."""
        return next(
            (s for s in self.list_services(center_id) if s.id == service_id),
            None
        )

    def get_appointment(self, center_id: str, appointment_id: str) -> Appointment:
        """
        Raises:
            NotFoundError: If the appointment does not exist in this center
        """
        for appointment in self.list_appointments(center_id):
            if appointment.id == appointment_id:
                return appointment
        raise NotFoundError(f"Appointment '{appointment_id}' not found")
