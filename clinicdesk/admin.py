"""Center administration and super-admin operations.

Every method takes the center it acts on and checks that the target record
belongs to that center before touching it; authentication happens upstream
(clinicdesk.api.dependencies).
"""
import datetime as dt
import hmac
import uuid
from datetime import UTC
from typing import Callable, List, Optional, Tuple

from clinicdesk import config
from clinicdesk.auth import APIKeyManager
from clinicdesk.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    RegistrationRejectedError,
)
from clinicdesk.gateway.base import ClinicGateway
from clinicdesk.history import filter_history
from clinicdesk.logging_config import get_logger
from clinicdesk.models import (
    AdminTenure,
    Appointment,
    Center,
    Doctor,
    MediaType,
    NewsItem,
    Service,
    TreatedPatient,
)
from clinicdesk.state import AppointmentStatus, HistoryWindow, can_cancel, validate_transition

logger = get_logger(__name__)


def _utc_now() -> dt.datetime:
    return dt.datetime.now(UTC)


def _epoch_ms(moment: dt.datetime) -> int:
    return int(moment.timestamp() * 1000)


class AdminService:
    """Operations available to center administrators and super-admins."""

    def __init__(
        self,
        gateway: ClinicGateway,
        keys: APIKeyManager,
        now: Callable[[], dt.datetime] = _utc_now,
    ):
        self.gateway = gateway
        self.keys = keys
        self.now = now

    # --- News ---

    def list_news(self, center_id: str) -> List[NewsItem]:
        return self.gateway.list_news(center_id)

    def create_news(
        self,
        center_id: str,
        title: str,
        content: str,
        duration_hours: int = config.DEFAULT_NEWS_DURATION_HOURS,
        media_url: Optional[str] = None,
        media_type: Optional[MediaType] = None,
    ) -> NewsItem:
        """
        Publish a news item visible for duration_hours from now.

        Raises:
            ValueError: If duration_hours is not positive
        """
        if duration_hours <= 0:
            raise ValueError("News duration must be at least one hour")

        created_at = _epoch_ms(self.now())
        item = NewsItem(
            id=str(uuid.uuid4()),
            center_id=center_id,
            title=title,
            content=content,
            media_url=media_url or None,
            media_type=media_type if media_url else None,
            created_at=created_at,
            expires_at=created_at + duration_hours * 3600 * 1000,
        )
        self.gateway.create_news(item)
        logger.info("news_created", center_id=center_id, news_id=item.id)
        return item

    def delete_news(self, center_id: str, news_id: str) -> None:
        if not any(n.id == news_id for n in self.gateway.list_news(center_id)):
            raise NotFoundError(f"News item '{news_id}' not found")
        self.gateway.delete_news(news_id)

    # --- Doctors ---

    def list_doctors(self, center_id: str) -> List[Doctor]:
        return self.gateway.list_doctors(center_id)

    def create_doctor(
        self,
        center_id: str,
        name: str,
        specialty: str,
        description: str = "",
        image_url: str = "",
    ) -> Doctor:
        doctor = Doctor(
            id=str(uuid.uuid4()),
            center_id=center_id,
            name=name,
            specialty=specialty,
            description=description,
            image_url=image_url,
        )
        self.gateway.create_doctor(doctor)
        return doctor

    def delete_doctor(self, center_id: str, doctor_id: str) -> None:
        if not any(d.id == doctor_id for d in self.gateway.list_doctors(center_id)):
            raise NotFoundError(f"Doctor '{doctor_id}' not found")
        self.gateway.delete_doctor(doctor_id)

    # --- Services ---

    def list_services(self, center_id: str) -> List[Service]:
        return self.gateway.list_services(center_id)

    def create_service(
        self,
        center_id: str,
        name: str,
        daily_capacity: int = config.DEFAULT_DAILY_CAPACITY,
        allowed_days: Optional[List[int]] = None,
        start_time: str = config.DEFAULT_START_TIME,
        interval_minutes: int = config.DEFAULT_INTERVAL_MINUTES,
    ) -> Service:
        """
        Create a bookable service.

        Raises:
            pydantic.ValidationError: If capacity, days or start time are invalid
        """
        service = Service(
            id=str(uuid.uuid4()),
            center_id=center_id,
            name=name,
            daily_capacity=daily_capacity,
            allowed_days=config.DEFAULT_ALLOWED_DAYS if allowed_days is None else allowed_days,
            is_paused=False,
            start_time=start_time,
            interval_minutes=interval_minutes,
        )
        self.gateway.create_service(service)
        logger.info("service_created", center_id=center_id, service_id=service.id)
        return service

    def toggle_service_pause(self, center_id: str, service_id: str) -> Service:
        """Flip is_paused and return the updated service."""
        service = self._require_service(center_id, service_id)
        self.gateway.set_service_paused(service_id, not service.is_paused)
        return service.model_copy(update={"is_paused": not service.is_paused})

    def delete_service(self, center_id: str, service_id: str) -> None:
        self._require_service(center_id, service_id)
        self.gateway.delete_service(service_id)

    # --- Appointments ---

    def list_appointments(self, center_id: str) -> List[Appointment]:
        return self.gateway.list_appointments(center_id)

    def confirm_appointment(self, center_id: str, appointment_id: str) -> Appointment:
        """
        Raises:
            NotFoundError: If the appointment is not in this center
            InvalidTransitionError: If it is not pending
        """
        appointment = self.gateway.get_appointment(center_id, appointment_id)
        self._check_transition(appointment, AppointmentStatus.CONFIRMED)
        self.gateway.update_appointment_status(appointment_id, AppointmentStatus.CONFIRMED)
        return appointment.model_copy(update={"status": AppointmentStatus.CONFIRMED})

    def mark_treated(self, center_id: str, appointment_id: str) -> TreatedPatient:
        """
        Archive an appointment into the history and remove the live record.

        The history keeps the service name as it was at treatment time.
        """
        appointment = self.gateway.get_appointment(center_id, appointment_id)
        self._check_transition(appointment, AppointmentStatus.TREATED)

        service = self.gateway.find_service(center_id, appointment.service_id)
        record = TreatedPatient(
            id=str(uuid.uuid4()),
            center_id=center_id,
            patient_name=appointment.patient_name,
            patient_id=appointment.patient_id,
            patient_phone=appointment.patient_phone,
            service_name=service.name if service else config.FALLBACK_SERVICE_NAME,
            treated_at=self.now(),
            notes=f"Treated from appointment of {appointment.date.isoformat()}",
        )
        self.gateway.create_treated_patient(record)
        self.gateway.delete_appointment(appointment_id)
        logger.info("appointment_treated", center_id=center_id, appointment_id=appointment_id)
        return record

    def cancel_appointment(self, center_id: str, appointment_id: str) -> None:
        """Delete a booking without creating history."""
        appointment = self.gateway.get_appointment(center_id, appointment_id)
        if not can_cancel(appointment.status):
            raise InvalidTransitionError(
                f"Appointment in state '{appointment.status.value}' cannot be cancelled"
            )
        self.gateway.delete_appointment(appointment_id)
        logger.info("appointment_cancelled", center_id=center_id, appointment_id=appointment_id)

    # --- History ---

    def list_history(
        self,
        center_id: str,
        window: HistoryWindow = HistoryWindow.ALL
    ) -> List[TreatedPatient]:
        records = self.gateway.list_treated_patients(center_id)
        return filter_history(records, window, self.now())

    def delete_history_record(self, center_id: str, record_id: str) -> None:
        records = self.gateway.list_treated_patients(center_id)
        if not any(r.id == record_id for r in records):
            raise NotFoundError(f"History record '{record_id}' not found")
        self.gateway.delete_treated_patient(record_id)

    # --- Team ---

    def list_team(self, center_id: str) -> List[AdminTenure]:
        return self.gateway.list_admins(center_id)

    def register_admin(
        self,
        center_id: str,
        secret_code: str,
        first_name: str,
        last_name: str,
        phone: str = "",
    ) -> Tuple[AdminTenure, str]:
        """
        Self-registration of a center administrator.

        Returns:
            (tenure, api_key); the key is shown only once

        Raises:
            RegistrationRejectedError: If the code is wrong or registration is disabled
            NotFoundError: If the center does not exist
        """
        expected = config.ADMIN_REGISTRATION_CODE
        if not expected or not hmac.compare_digest(secret_code.encode(), expected.encode()):
            raise RegistrationRejectedError("Invalid registration code")

        self.gateway.get_center(center_id)
        tenure = AdminTenure(
            user_id=str(uuid.uuid4()),
            center_id=center_id,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            start_date=self.now(),
            is_active=True,
        )
        self.gateway.add_admin(tenure)
        api_key = self.keys.generate_api_key(
            tenure.user_id,
            center_id=center_id,
            description=f"{first_name} {last_name}",
        )
        logger.info("admin_registered", center_id=center_id, user_id=tenure.user_id)
        return tenure, api_key

    def revoke_admin(self, center_id: str, user_id: str) -> None:
        """End the tenure and deactivate every key the admin holds for the center."""
        self.gateway.revoke_admin(user_id, center_id)
        revoked = self.keys.revoke_user(user_id, center_id)
        logger.info("admin_revoked", center_id=center_id, user_id=user_id, keys_revoked=revoked)

    # --- Super-admin: centers ---

    def list_centers(self) -> List[Center]:
        return self.gateway.list_centers()

    def create_center(self, center: Center) -> Center:
        if any(c.id == center.id for c in self.gateway.list_centers()):
            raise ConflictError(f"Center '{center.id}' already exists")
        self.gateway.create_center(center)
        logger.info("center_created", center_id=center.id)
        return center

    def update_center(self, center_id: str, location: str, city: Optional[str] = None) -> Center:
        center = self.gateway.get_center(center_id)
        self.gateway.update_center(center_id, location, city)
        return center.model_copy(update={"location": location, "city": city})

    def delete_center(self, center_id: str) -> None:
        self.gateway.get_center(center_id)
        self.gateway.delete_center(center_id)
        logger.info("center_deleted", center_id=center_id)

    # --- Internals ---

    def _require_service(self, center_id: str, service_id: str) -> Service:
        service = self.gateway.find_service(center_id, service_id)
        if service is None:
            raise NotFoundError(f"Service '{service_id}' not found")
        return service

    @staticmethod
    def _check_transition(appointment: Appointment, intended: AppointmentStatus) -> None:
        if not validate_transition(appointment.status, intended):
            raise InvalidTransitionError(
                f"Cannot move appointment from '{appointment.status.value}' to '{intended.value}'"
            )
