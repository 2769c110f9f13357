"""
Domain models for the multi-tenant clinic system.

Supports:
- Centers (tenants) and their public content (news, doctors)
- Bookable services with a daily capacity and fixed-interval schedule
- Appointments, their public masked projection, and treated-patient history
- Administrator tenure records

Models are frozen: collections built from them (see clinicdesk.store) are
replaced, never mutated in place.
"""
import datetime as dt
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from clinicdesk import config
from clinicdesk.allocator import parse_clock
from clinicdesk.state import AppointmentStatus


class ThemePreset(str, Enum):
    """Visual presets a center can pick."""
    CLINICAL = "clinical"
    VASCULAR = "vascular"
    XRAY = "xray"


class MediaType(str, Enum):
    """Kinds of media attached to a news item."""
    IMAGE = "image"
    VIDEO = "video"


class Center(BaseModel):
    """A single clinic (tenant)."""
    id: str = Field(..., min_length=1, max_length=100, description="Center slug, e.g. baraure")
    name: str = Field(..., min_length=1, max_length=200)
    location: str = Field(default="", max_length=300)
    city: Optional[str] = None
    primary_color: Optional[str] = None
    uuid: Optional[str] = None
    theme_preset: Optional[ThemePreset] = None

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "id": "baraure",
                "name": "CDI Baraure Center",
                "location": "Baraure, Araure",
                "city": "Araure",
                "primary_color": "#0ea5e9"
            }
        }
    )


class NewsItem(BaseModel):
    """Time-limited announcement shown on the public page."""
    id: str
    center_id: str
    title: str = Field(..., min_length=1, max_length=300)
    content: str = Field(..., min_length=1)
    media_url: Optional[str] = None
    media_type: Optional[MediaType] = None
    created_at: int = Field(..., description="Creation time, epoch milliseconds")
    expires_at: int = Field(..., description="Expiry time, epoch milliseconds")

    model_config = ConfigDict(frozen=True)

    def is_active(self, now_ms: int) -> bool:
        """News stays visible until its expiry instant."""
        return self.expires_at > now_ms


class Doctor(BaseModel):
    """Member of a center's medical team."""
    id: str
    center_id: str
    name: str = Field(..., min_length=1, max_length=200)
    specialty: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    image_url: str = ""

    model_config = ConfigDict(frozen=True)


class Service(BaseModel):
    """
    Bookable medical offering.

    start_time and interval_minutes may arrive empty from older rows; the
    allocator falls back to the configured defaults in that case.
    """
    id: str
    center_id: str
    name: str = Field(..., min_length=1, max_length=200)
    daily_capacity: int = Field(..., gt=0, description="Bookings accepted per day")
    allowed_days: List[int] = Field(
        default_factory=lambda: list(config.DEFAULT_ALLOWED_DAYS),
        description="Weekday numbers, 0=Sunday ... 6=Saturday"
    )
    is_paused: bool = False
    start_time: Optional[str] = Field(
        default=config.DEFAULT_START_TIME,
        description='First slot of the day, "hh:mm AM|PM"'
    )
    interval_minutes: Optional[int] = Field(
        default=config.DEFAULT_INTERVAL_MINUTES,
        ge=0,
        description="Minutes between consecutive bookings"
    )

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "id": "s1",
                "center_id": "baraure",
                "name": "General Medicine",
                "daily_capacity": 25,
                "allowed_days": [1, 2, 3, 4, 5],
                "is_paused": False,
                "start_time": "07:00 AM",
                "interval_minutes": 30
            }
        }
    )

    @field_validator("allowed_days")
    @classmethod
    def validate_allowed_days(cls, v):
        """Weekdays must be 0-6; duplicates are dropped."""
        if any(day < 0 or day > 6 for day in v):
            raise ValueError("Allowed days must be weekday numbers between 0 and 6")
        return sorted(set(v))

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, v):
        """Reject start times the allocator could not parse."""
        if v:
            parse_clock(v)
        return v

    def is_open_on(self, day: dt.date) -> bool:
        """True if the service takes bookings on this calendar date."""
        # date.weekday() is Monday=0; stored days use Sunday=0
        return (day.weekday() + 1) % 7 in self.allowed_days


class Appointment(BaseModel):
    """A booking for one patient, one service, one date."""
    id: str
    center_id: str
    service_id: str
    patient_name: str = Field(..., min_length=1, max_length=200)
    patient_id: str = Field(..., min_length=1, max_length=50)
    patient_phone: str = Field(..., min_length=1, max_length=50)
    date: dt.date
    time: str = Field(..., description='Assigned time of day, "hh:mm AM|PM"')
    status: AppointmentStatus = AppointmentStatus.PENDING

    model_config = ConfigDict(frozen=True)


def mask_identity(patient_name: str, patient_id: str) -> str:
    """
    Public stand-in for a patient: first name plus the edges of the id.

    Example:
        >>> mask_identity("Ana Perez", "12345689")
        'Ana 12...89'
    """
    parts = patient_name.split()
    first_name = parts[0] if parts else ""
    return f"{first_name} {patient_id[:2]}...{patient_id[-2:]}"


class PublicAppointment(BaseModel):
    """Anonymous view of a booking: enough to show occupied slots."""
    service_id: str
    date: dt.date
    time: str
    masked_identity: str = ""

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_appointment(cls, appointment: "Appointment") -> "PublicAppointment":
        return cls(
            service_id=appointment.service_id,
            date=appointment.date,
            time=appointment.time,
            masked_identity=mask_identity(appointment.patient_name, appointment.patient_id),
        )


class TreatedPatient(BaseModel):
    """Append-only history entry created when an appointment is treated."""
    id: str
    center_id: str
    patient_name: str
    patient_id: str
    patient_phone: str
    service_name: str
    treated_at: dt.datetime
    notes: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class AdminTenure(BaseModel):
    """An administrator's assignment to a center."""
    user_id: str
    center_id: str
    first_name: str
    last_name: str
    phone: str = ""
    start_date: dt.datetime
    end_date: Optional[dt.datetime] = None
    is_active: bool = True
    days_in_office: int = 0

    model_config = ConfigDict(frozen=True)
