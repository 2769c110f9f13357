"""Domain exceptions.

All errors raised by the gateway, booking and admin layers derive from
ClinicError so the API layer can map them to HTTP responses in one place.
"""
from clinicdesk import config


class ClinicError(Exception):
    """Base class for clinic domain errors."""
    code = "CLINIC_ERROR"


class NotFoundError(ClinicError):
    """Raised when a center, service, appointment or record does not exist."""
    code = "NOT_FOUND"


class InvalidTransitionError(ClinicError):
    """Raised when an appointment status change is not allowed."""
    code = "INVALID_TRANSITION"


class BookingError(ClinicError):
    """Raised when a booking request cannot be accepted."""
    code = "BOOKING_REJECTED"


class ServicePausedError(BookingError):
    """Raised when booking a paused service."""
    code = "SERVICE_PAUSED"


class DayNotAllowedError(BookingError):
    """Raised when the requested date falls on a day the service is closed."""
    code = "DAY_NOT_ALLOWED"


class PastDateError(BookingError):
    """Raised when the requested date is before today."""
    code = "PAST_DATE"


class FullyBookedError(BookingError):
    """Raised when no slots remain for the service on the requested date."""
    code = "FULLY_BOOKED"


class SlotOutOfDayError(BookingError):
    """Raised when the next slot would fall past midnight."""
    code = "SLOT_OUT_OF_DAY"


class CapacityExceededError(ClinicError):
    """Raised by the data layer when an insert would exceed daily capacity."""
    code = "CAPACITY_EXCEEDED"


class BookingLimitExceeded(ClinicError):
    """Raised when a patient exceeds the per-day booking limit.

    The message always carries BOOKING_LIMIT_MARKER, which is also what the
    hosted backend puts in its own error text.
    """
    code = "BOOKING_LIMIT_EXCEEDED"

    def __init__(self, patient_id: str, limit: int):
        super().__init__(
            f"{config.BOOKING_LIMIT_MARKER}: patient {patient_id} "
            f"already has {limit} bookings today"
        )
        self.patient_id = patient_id
        self.limit = limit


class BackendError(ClinicError):
    """Raised when the data backend rejects or fails a request."""
    code = "BACKEND_ERROR"

    def __init__(self, message: str, status_code: int = None, backend_code: str = None):
        super().__init__(message)
        self.status_code = status_code
        self.backend_code = backend_code


class RegistrationRejectedError(ClinicError):
    """Raised when an admin self-registration code does not match."""
    code = "REGISTRATION_REJECTED"


class ConflictError(ClinicError):
    """Raised when creating a record whose id is already taken."""
    code = "CONFLICT"


class BookingFailedError(BackendError):
    """Raised when the backend fails a booking for a reason other than the patient limit."""
    code = "BOOKING_FAILED"
