"""SQL gateway: clinic data stored through SQLAlchemy.

Pattern: Thin wrapper around SQLAlchemy, converting rows to domain models at
the boundary. Works with SQLite for development and tests, PostgreSQL in
production.
"""
import datetime as dt
import logging
import threading
from contextlib import contextmanager
from datetime import UTC, timedelta
from typing import List, Optional

from sqlalchemy import create_engine, func, select
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from clinicdesk import config
from clinicdesk.api.database_models import (
    AppointmentRow,
    Base,
    CenterAdminRow,
    CenterRow,
    DoctorRow,
    NewsRow,
    ServiceRow,
    TreatedPatientRow,
    engine_options,
    utc_now,
)
from clinicdesk.errors import BookingLimitExceeded, CapacityExceededError, NotFoundError
from clinicdesk.gateway.base import ClinicGateway, validate_rows
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


def _aware(value: Optional[dt.datetime]) -> Optional[dt.datetime]:
    """SQLite drops tzinfo; stored timestamps are always UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class SqlGateway(ClinicGateway):
    """
    Clinic data access over a relational database.

    Sessions are serialized inside one process, so the capacity check in
    create_appointment cannot interleave with another insert from the same
    server. PostgreSQL deployments additionally lock the service row.
    """

    def __init__(self, database_url: str):
        """
        Initialize gateway with database connection.

        Args:
            database_url: SQLAlchemy connection string
        """
        self.engine = create_engine(database_url, **engine_options(database_url))
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine)
        self._lock = threading.RLock()

    @contextmanager
    def _session(self):
        with self._lock, self.SessionLocal() as db:
            yield db

    def check_system_status(self) -> SystemStatus:
        try:
            with self._session() as db:
                first = db.execute(select(CenterRow.id).limit(1)).first()
        except OperationalError as e:
            logger.error(f"Database check failed: {e}")
            if "no such table" in str(e).lower() or "does not exist" in str(e).lower():
                return SystemStatus.MISSING_TABLES
            return SystemStatus.CONNECTION_ERROR
        except SQLAlchemyError as e:
            logger.error(f"Database check failed: {e}")
            return SystemStatus.CONNECTION_ERROR

        if first is None:
            return SystemStatus.MISSING_TABLES
        return SystemStatus.OK

    # --- Centers ---

    def list_centers(self) -> List[Center]:
        with self._session() as db:
            rows = db.query(CenterRow).order_by(CenterRow.name).all()
            return [self._to_center(row) for row in rows]

    def create_center(self, center: Center) -> None:
        with self._session() as db:
            db.add(CenterRow(**center.model_dump(mode="json")))
            db.commit()

    def update_center(self, center_id: str, location: str, city: Optional[str]) -> None:
        with self._session() as db:
            row = db.get(CenterRow, center_id)
            if row is None:
                raise NotFoundError(f"Center '{center_id}' not found")
            row.location = location
            row.city = city
            db.commit()

    def delete_center(self, center_id: str) -> None:
        with self._session() as db:
            row = db.get(CenterRow, center_id)
            if row is None:
                raise NotFoundError(f"Center '{center_id}' not found")
            # SQLite does not enforce ON DELETE CASCADE unless asked to
            for model in (AppointmentRow, ServiceRow, NewsRow, DoctorRow,
                          TreatedPatientRow, CenterAdminRow):
                db.query(model).filter(model.center_id == center_id).delete()
            db.delete(row)
            db.commit()

    # --- News ---

    def list_news(self, center_id: str) -> List[NewsItem]:
        with self._session() as db:
            rows = (
                db.query(NewsRow)
                .filter(NewsRow.center_id == center_id)
                .order_by(NewsRow.created_at.desc())
                .all()
            )
            return validate_rows(NewsItem, rows, from_attributes=True)

    def create_news(self, item: NewsItem) -> None:
        with self._session() as db:
            db.add(NewsRow(**item.model_dump(mode="json")))
            db.commit()

    def delete_news(self, news_id: str) -> None:
        self._delete_by_id(NewsRow, news_id, "News item")

    # --- Doctors ---

    def list_doctors(self, center_id: str) -> List[Doctor]:
        with self._session() as db:
            rows = db.query(DoctorRow).filter(DoctorRow.center_id == center_id).all()
            return [
                Doctor(
                    id=row.id,
                    center_id=row.center_id,
                    name=row.name,
                    specialty=row.specialty,
                    description=row.description or "",
                    image_url=row.image_url or "",
                )
                for row in rows
            ]

    def create_doctor(self, doctor: Doctor) -> None:
        with self._session() as db:
            db.add(DoctorRow(**doctor.model_dump(mode="json")))
            db.commit()

    def delete_doctor(self, doctor_id: str) -> None:
        self._delete_by_id(DoctorRow, doctor_id, "Doctor")

    # --- Services ---

    def list_services(self, center_id: str) -> List[Service]:
        with self._session() as db:
            rows = db.query(ServiceRow).filter(ServiceRow.center_id == center_id).all()
            return validate_rows(Service, rows, from_attributes=True)

    def create_service(self, service: Service) -> None:
        with self._session() as db:
            db.add(ServiceRow(**service.model_dump(mode="json")))
            db.commit()

    def set_service_paused(self, service_id: str, is_paused: bool) -> None:
        with self._session() as db:
            row = db.get(ServiceRow, service_id)
            if row is None:
                raise NotFoundError(f"Service '{service_id}' not found")
            row.is_paused = is_paused
            db.commit()

    def delete_service(self, service_id: str) -> None:
        with self._session() as db:
            row = db.get(ServiceRow, service_id)
            if row is None:
                raise NotFoundError(f"Service '{service_id}' not found")
            db.query(AppointmentRow).filter(AppointmentRow.service_id == service_id).delete()
            db.delete(row)
            db.commit()

    # --- Appointments ---

    def list_appointments(self, center_id: str) -> List[Appointment]:
        with self._session() as db:
            rows = (
                db.query(AppointmentRow)
                .filter(AppointmentRow.center_id == center_id)
                .order_by(AppointmentRow.date, AppointmentRow.created_at)
                .all()
            )
            return [self._to_appointment(row) for row in rows]

    def list_public_appointments(self, center_id: str) -> List[PublicAppointment]:
        return [
            PublicAppointment.from_appointment(appointment)
            for appointment in self.list_appointments(center_id)
        ]

    def create_appointment(self, appointment: Appointment, enforce_capacity: bool = True) -> None:
        with self._session() as db:
            service_query = db.query(ServiceRow).filter(ServiceRow.id == appointment.service_id)
            if self.engine.dialect.name != "sqlite":
                service_query = service_query.with_for_update()
            service = service_query.first()
            if service is None:
                raise NotFoundError(f"Service '{appointment.service_id}' not found")

            since = utc_now() - timedelta(hours=24)
            recent = db.scalar(
                select(func.count()).select_from(AppointmentRow).where(
                    AppointmentRow.patient_id == appointment.patient_id,
                    AppointmentRow.created_at >= since,
                )
            )
            if recent >= config.DAILY_PATIENT_LIMIT:
                raise BookingLimitExceeded(appointment.patient_id, config.DAILY_PATIENT_LIMIT)

            if enforce_capacity:
                taken = db.scalar(
                    select(func.count()).select_from(AppointmentRow).where(
                        AppointmentRow.service_id == appointment.service_id,
                        AppointmentRow.date == appointment.date.isoformat(),
                    )
                )
                if taken >= service.daily_capacity:
                    raise CapacityExceededError(
                        f"Service '{service.name}' is fully booked on {appointment.date.isoformat()}"
                    )

            db.add(AppointmentRow(**appointment.model_dump(mode="json")))
            db.commit()

    def update_appointment_status(self, appointment_id: str, status: AppointmentStatus) -> None:
        with self._session() as db:
            row = db.get(AppointmentRow, appointment_id)
            if row is None:
                raise NotFoundError(f"Appointment '{appointment_id}' not found")
            row.status = status.value
            db.commit()

    def delete_appointment(self, appointment_id: str) -> None:
        self._delete_by_id(AppointmentRow, appointment_id, "Appointment")

    # --- Treated patients ---

    def list_treated_patients(self, center_id: str) -> List[TreatedPatient]:
        with self._session() as db:
            rows = (
                db.query(TreatedPatientRow)
                .filter(TreatedPatientRow.center_id == center_id)
                .order_by(TreatedPatientRow.treated_at.desc())
                .all()
            )
            return [
                TreatedPatient(
                    id=row.id,
                    center_id=row.center_id,
                    patient_name=row.patient_name,
                    patient_id=row.patient_id,
                    patient_phone=row.patient_phone,
                    service_name=row.service_name,
                    treated_at=_aware(row.treated_at),
                    notes=row.notes,
                )
                for row in rows
            ]

    def create_treated_patient(self, record: TreatedPatient) -> None:
        with self._session() as db:
            db.add(TreatedPatientRow(**record.model_dump()))
            db.commit()

    def delete_treated_patient(self, record_id: str) -> None:
        self._delete_by_id(TreatedPatientRow, record_id, "History record")

    # --- Team ---

    def list_admins(self, center_id: str) -> List[AdminTenure]:
        now = utc_now()
        with self._session() as db:
            rows = (
                db.query(CenterAdminRow)
                .filter(CenterAdminRow.center_id == center_id)
                .order_by(CenterAdminRow.is_active.desc(), CenterAdminRow.start_date)
                .all()
            )
            tenures = []
            for row in rows:
                start = _aware(row.start_date)
                end = _aware(row.end_date)
                tenures.append(AdminTenure(
                    user_id=row.user_id,
                    center_id=row.center_id,
                    first_name=row.first_name,
                    last_name=row.last_name,
                    phone=row.phone,
                    start_date=start,
                    end_date=end,
                    is_active=row.is_active,
                    days_in_office=((end or now) - start).days,
                ))
            return tenures

    def add_admin(self, tenure: AdminTenure) -> None:
        with self._session() as db:
            db.add(CenterAdminRow(**tenure.model_dump(exclude={"days_in_office"})))
            db.commit()

    def revoke_admin(self, user_id: str, center_id: str) -> None:
        with self._session() as db:
            row = db.get(CenterAdminRow, (user_id, center_id))
            if row is None or not row.is_active:
                raise NotFoundError(f"No active administrator '{user_id}' in center '{center_id}'")
            row.is_active = False
            row.end_date = utc_now()
            db.commit()

    # --- Internals ---

    def _delete_by_id(self, model, record_id: str, label: str) -> None:
        with self._session() as db:
            row = db.get(model, record_id)
            if row is None:
                raise NotFoundError(f"{label} '{record_id}' not found")
            db.delete(row)
            db.commit()

    @staticmethod
    def _to_center(row: CenterRow) -> Center:
        return Center(
            id=row.id,
            name=row.name,
            location=row.location or "",
            city=row.city,
            primary_color=row.primary_color,
            uuid=row.uuid,
            theme_preset=row.theme_preset,
        )

    @staticmethod
    def _to_appointment(row: AppointmentRow) -> Appointment:
        return Appointment(
            id=row.id,
            center_id=row.center_id,
            service_id=row.service_id,
            patient_name=row.patient_name,
            patient_id=row.patient_id,
            patient_phone=row.patient_phone,
            date=row.date,
            time=row.time,
            status=row.status,
        )
