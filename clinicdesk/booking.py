"""Public appointment booking.

Two entry points share the slot allocator:
- preview(): how many slots remain and what time the next booking gets
- submit(): validate the request, assign the slot, persist the booking

submit() is split into plan() (reads) and commit() (write). Nothing locks
between the two, so two requests planned against the same snapshot can both
commit unless the gateway enforces capacity at write time.
"""
import datetime as dt
import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from clinicdesk import config
from clinicdesk.allocator import SlotAssignment, allocate
from clinicdesk.errors import (
    DayNotAllowedError,
    FullyBookedError,
    NotFoundError,
    PastDateError,
    ServicePausedError,
    SlotOutOfDayError,
)
from clinicdesk.gateway.base import ClinicGateway
from clinicdesk.logging_config import get_logger
from clinicdesk.models import Appointment, Service
from clinicdesk.state import AppointmentStatus

logger = get_logger(__name__)

SUCCESS_MESSAGE = "Appointment booked! Please come to the center on the selected day."
LIMIT_MESSAGE = (
    "You have reached the maximum of {limit} bookings for today. "
    "Please try again in 24 hours."
)
GENERIC_FAILURE_MESSAGE = "Could not book the appointment. Please try again."


@dataclass(frozen=True)
class SlotPreview:
    """What a patient sees before submitting."""
    service_id: str
    date: dt.date
    available: int
    estimated_time: str
    rolls_over: bool = False


@dataclass(frozen=True)
class BookingRequest:
    """Patient-supplied booking data."""
    service_id: str
    date: dt.date
    patient_name: str
    patient_id: str
    patient_phone: str


@dataclass(frozen=True)
class BookingPlan:
    """A validated request and the slot it will receive."""
    center_id: str
    service: Service
    request: BookingRequest
    assignment: SlotAssignment


def failure_message(exc: Exception) -> str:
    """User-facing message for a failed submission."""
    if config.BOOKING_LIMIT_MARKER in str(exc):
        return LIMIT_MESSAGE.format(limit=config.DAILY_PATIENT_LIMIT)
    return GENERIC_FAILURE_MESSAGE


class BookingService:
    """Availability previews and booking submission for one gateway."""

    def __init__(
        self,
        gateway: ClinicGateway,
        today: Callable[[], dt.date] = dt.date.today,
        enforce_capacity: bool = True,
    ):
        """
        Args:
            gateway: Data access
            today: Clock used to reject past dates
            enforce_capacity: Ask the gateway to re-check capacity on insert
        """
        self.gateway = gateway
        self.today = today
        self.enforce_capacity = enforce_capacity

    def preview(
        self,
        center_id: str,
        service_id: Optional[str],
        day: Optional[dt.date]
    ) -> Optional[SlotPreview]:
        """
        Remaining slots and estimated time for a service on a date.

        Returns None while the selection is incomplete or the service is
        unknown; a fully booked day returns a preview with available == 0.
        """
        if not service_id or not day:
            return None

        service = self.gateway.find_service(center_id, service_id)
        if service is None:
            return None

        existing = self.gateway.list_public_appointments(center_id)
        assignment = allocate(service, day, existing)
        return SlotPreview(
            service_id=service_id,
            date=day,
            available=assignment.available,
            estimated_time=assignment.time,
            rolls_over=assignment.rolls_over,
        )

    def plan(self, center_id: str, request: BookingRequest) -> BookingPlan:
        """
        Validate a request against the current bookings and assign its slot.

        Raises:
            NotFoundError: If the service does not exist in this center
            ServicePausedError, PastDateError, DayNotAllowedError,
            FullyBookedError, SlotOutOfDayError: If the request is rejected
        """
        service = self.gateway.find_service(center_id, request.service_id)
        if service is None:
            raise NotFoundError(f"Service '{request.service_id}' not found")
        if service.is_paused:
            raise ServicePausedError(f"Service '{service.name}' is not taking bookings")
        if request.date < self.today():
            raise PastDateError("Appointment date must be today or in the future")
        if not service.is_open_on(request.date):
            weekday = config.DAYS_OF_WEEK[(request.date.weekday() + 1) % 7]
            raise DayNotAllowedError(f"Service '{service.name}' does not attend on {weekday}")

        existing = self.gateway.list_public_appointments(center_id)
        assignment = allocate(service, request.date, existing)
        if assignment.available == 0:
            raise FullyBookedError(
                f"No slots left for '{service.name}' on {request.date.isoformat()}"
            )
        if assignment.rolls_over:
            raise SlotOutOfDayError(
                f"The next slot for '{service.name}' would fall past midnight"
            )

        return BookingPlan(
            center_id=center_id,
            service=service,
            request=request,
            assignment=assignment,
        )

    def commit(self, plan: BookingPlan) -> Appointment:
        """
        Persist a planned booking.

        Raises:
            BookingLimitExceeded, CapacityExceededError, BackendError:
                Propagated from the gateway; never retried
        """
        request = plan.request
        appointment = Appointment(
            id=str(uuid.uuid4()),
            center_id=plan.center_id,
            service_id=request.service_id,
            patient_name=request.patient_name,
            patient_id=request.patient_id,
            patient_phone=request.patient_phone,
            date=request.date,
            time=plan.assignment.time,
            status=AppointmentStatus.PENDING,
        )
        self.gateway.create_appointment(appointment, enforce_capacity=self.enforce_capacity)
        logger.info(
            "appointment_booked",
            center_id=plan.center_id,
            service_id=request.service_id,
            date=request.date.isoformat(),
            time=appointment.time,
        )
        return appointment

    def submit(self, center_id: str, request: BookingRequest) -> Appointment:
        """Plan and commit in one call."""
        return self.commit(self.plan(center_id, request))
