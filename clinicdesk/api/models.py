"""Pydantic models for API request/response validation."""
import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, Field, ConfigDict, field_validator

from clinicdesk import config
from clinicdesk.allocator import parse_clock
from clinicdesk.models import AdminTenure, MediaType, ThemePreset
from clinicdesk.state import SystemStatus


class BookingCreate(BaseModel):
    """Request schema for POST /api/v1/centers/{center_id}/appointments."""
    service_id: str = Field(..., min_length=1, description="Service to book")
    date: dt.date = Field(..., description="Requested day (YYYY-MM-DD)")
    patient_name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Patient full name",
        examples=["Ana Perez"]
    )
    patient_id: str = Field(
        ...,
        min_length=4,
        max_length=50,
        description="National identity number",
        examples=["12345689"]
    )
    patient_phone: str = Field(..., min_length=1, max_length=50, examples=["0414-5550000"])

    model_config = ConfigDict(
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "service_id": "s1",
                "date": "2025-03-10",
                "patient_name": "Ana Perez",
                "patient_id": "12345689",
                "patient_phone": "0414-5550000"
            }
        }
    )


class BookingResponse(BaseModel):
    """Response schema for a successful booking."""
    message: str = Field(..., description="User-facing confirmation")
    appointment_id: str
    service_id: str
    date: dt.date
    time: str = Field(..., description='Assigned time, "hh:mm AM|PM"')

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "message": "Appointment booked! Please come to the center on the selected day.",
                "appointment_id": "9d7c1f3e-5a8b-4a71-9d55-0f0b3c1e2a44",
                "service_id": "s1",
                "date": "2025-03-10",
                "time": "07:30 AM"
            }
        }
    )


class AvailabilityResponse(BaseModel):
    """Remaining slots for a service on a date.

    available is None when the service is unknown, which is not the same as
    a fully booked day (available == 0).
    """
    service_id: str
    date: dt.date
    available: Optional[int] = None
    estimated_time: Optional[str] = None
    rolls_over: bool = False


class StatusResponse(BaseModel):
    """Backend readiness."""
    status: SystemStatus


class NewsCreate(BaseModel):
    """Request schema for publishing news."""
    title: str = Field(..., min_length=1, max_length=300)
    content: str = Field(..., min_length=1)
    duration_hours: int = Field(
        default=config.DEFAULT_NEWS_DURATION_HOURS,
        ge=1,
        description="Hours the item stays visible"
    )
    media_url: Optional[str] = None
    media_type: Optional[MediaType] = None


class DoctorCreate(BaseModel):
    """Request schema for adding a doctor."""
    name: str = Field(..., min_length=1, max_length=200)
    specialty: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    image_url: str = ""


class ServiceCreate(BaseModel):
    """Request schema for creating a service."""
    name: str = Field(..., min_length=1, max_length=200)
    daily_capacity: int = Field(default=config.DEFAULT_DAILY_CAPACITY, gt=0)
    allowed_days: List[int] = Field(
        default_factory=lambda: list(config.DEFAULT_ALLOWED_DAYS),
        description="Weekday numbers, 0=Sunday ... 6=Saturday"
    )
    start_time: str = Field(default=config.DEFAULT_START_TIME, examples=["07:00 AM"])
    interval_minutes: int = Field(default=config.DEFAULT_INTERVAL_MINUTES, gt=0)

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, v):
        """Must be "hh:mm AM|PM"."""
        parse_clock(v)
        return v

    @field_validator("allowed_days")
    @classmethod
    def validate_allowed_days(cls, v):
        if not v:
            raise ValueError("Select at least one weekday")
        if any(day < 0 or day > 6 for day in v):
            raise ValueError("Allowed days must be weekday numbers between 0 and 6")
        return v


class CenterCreate(BaseModel):
    """Request schema for creating a center."""
    id: str = Field(..., min_length=1, max_length=100, pattern=r"^[a-z0-9][a-z0-9-]*$")
    name: str = Field(..., min_length=1, max_length=200)
    location: str = Field(default="", max_length=300)
    city: Optional[str] = None
    primary_color: Optional[str] = None
    theme_preset: Optional[ThemePreset] = None


class CenterUpdate(BaseModel):
    """Request schema for editing a center's address."""
    location: str = Field(..., max_length=300)
    city: Optional[str] = None


class AdminRegister(BaseModel):
    """Request schema for administrator self-registration."""
    center_id: str = Field(..., min_length=1)
    secret_code: str = Field(..., min_length=1, description="Shared registration code")
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone: str = ""


class AdminRegistered(BaseModel):
    """Response schema for a successful registration. The key is shown once."""
    tenure: AdminTenure
    api_key: str


class ErrorResponse(BaseModel):
    """Error response schema."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Detailed error information")
    code: Optional[str] = Field(None, description="Error code")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "Booking Rejected",
                "detail": "No slots left for 'General Medicine' on 2025-03-10",
                "code": "FULLY_BOOKED"
            }
        }
    )
