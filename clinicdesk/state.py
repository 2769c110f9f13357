"""Appointment lifecycle and view selection enums.

Best Practices:
- Use Enums for discrete states
- Keep the transition map explicit and in one place
"""
from enum import Enum
from typing import Dict, List


class AppointmentStatus(str, Enum):
    """
    Stored appointment states.

    Lifecycle:
    - PENDING: initial state of every booking
    - CONFIRMED: acknowledged by a center administrator
    - TREATED: patient seen; the live record is archived and removed
    """
    PENDING = "pending"
    CONFIRMED = "confirmed"
    TREATED = "treated"


# State machine transition map
# Pattern: Current state → [allowed next states]
VALID_TRANSITIONS: Dict[AppointmentStatus, List[AppointmentStatus]] = {
    AppointmentStatus.PENDING: [
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.TREATED,
    ],
    AppointmentStatus.CONFIRMED: [
        AppointmentStatus.TREATED,
    ],
    AppointmentStatus.TREATED: [],
}

# States from which an administrator may delete the booking outright
CANCELLABLE_STATES = frozenset({AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED})


def validate_transition(
    current: AppointmentStatus,
    intended: AppointmentStatus
) -> bool:
    """
    Validate an appointment status transition.

    Example:
        >>> validate_transition(AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)
        True
        >>> validate_transition(AppointmentStatus.TREATED, AppointmentStatus.PENDING)
        False
    """
    allowed = VALID_TRANSITIONS.get(current, [])
    return intended in allowed


def can_cancel(status: AppointmentStatus) -> bool:
    """True if an appointment in this state may be deleted without history."""
    return status in CANCELLABLE_STATES


class PublicView(str, Enum):
    """Sections of the public center page."""
    NEWS = "news"
    DOCTORS = "doctors"
    APPOINTMENTS = "appointments"


class AdminTab(str, Enum):
    """Sections of the center administration panel."""
    NEWS = "news"
    DOCTORS = "doctors"
    SERVICES = "services"
    APPOINTMENTS = "appointments"
    HISTORY = "history"
    TEAM = "team"


class HistoryWindow(str, Enum):
    """Time windows for the treated-patient history."""
    TODAY = "today"
    WEEK = "week"  # last 7 days
    ALL = "all"


class SystemStatus(str, Enum):
    """Outcome of the backend readiness check."""
    OK = "OK"
    MISSING_TABLES = "MISSING_TABLES"
    AUTH_ERROR = "AUTH_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
