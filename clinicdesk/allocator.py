"""Appointment slot allocation.

Given a service and a target date, report how many bookings remain and the
time of day the next booking receives. Bookings are handed out in order: the
Nth booking of the day (0-indexed) is scheduled at start_time + N * interval.

Both the availability preview and booking submission go through this module,
so identical inputs always produce identical answers.
"""
import datetime as dt
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple, Union

from clinicdesk import config

MINUTES_PER_DAY = 24 * 60

DateLike = Union[dt.date, str]


class InvalidClockError(ValueError):
    """Raised when a time of day is not in "hh:mm AM|PM" form."""


@dataclass(frozen=True)
class SlotAssignment:
    """Result of allocating the next slot of a service on a date."""
    available: int
    time: str
    day_offset: int = 0

    @property
    def rolls_over(self) -> bool:
        """True if the assigned time falls on a later day than requested."""
        return self.day_offset > 0


def parse_clock(value: str) -> Tuple[int, int]:
    """
    Parse a 12-hour clock string into 24-hour (hour, minute).

    Example:
        >>> parse_clock("07:30 PM")
        (19, 30)
        >>> parse_clock("12:05 AM")
        (0, 5)
    """
    try:
        clock, meridiem = value.strip().split()
        hour_text, minute_text = clock.split(":")
        hour, minute = int(hour_text), int(minute_text)
    except (AttributeError, ValueError):
        raise InvalidClockError(f'Invalid time "{value}". Use "hh:mm AM" or "hh:mm PM"')

    meridiem = meridiem.upper()
    if meridiem not in ("AM", "PM") or not 0 <= hour <= 12 or not 0 <= minute <= 59:
        raise InvalidClockError(f'Invalid time "{value}". Use "hh:mm AM" or "hh:mm PM"')

    if meridiem == "PM" and hour < 12:
        hour += 12
    if meridiem == "AM" and hour == 12:
        hour = 0
    return hour, minute


def format_clock(total_minutes: int) -> str:
    """Render minutes since midnight as "hh:mm AM|PM", wrapping at 24h."""
    hour = (total_minutes // 60) % 24
    minute = total_minutes % 60
    meridiem = "PM" if hour >= 12 else "AM"
    display_hour = hour % 12 or 12
    return f"{display_hour:02d}:{minute:02d} {meridiem}"


def _as_date(value: DateLike) -> dt.date:
    if isinstance(value, str):
        return dt.date.fromisoformat(value)
    return value


def count_taken(service_id: str, day: DateLike, appointments: Iterable) -> int:
    """Count bookings for this service on this date."""
    day = _as_date(day)
    return sum(
        1 for appt in appointments
        if appt.service_id == service_id and _as_date(appt.date) == day
    )


def available_slots(service, day: DateLike, appointments: Iterable) -> Optional[int]:
    """
    Remaining bookings for the service on the given date.

    Returns None when the service is unknown, which callers must keep apart
    from 0 (fully booked).
    """
    if service is None:
        return None
    taken = count_taken(service.id, day, appointments)
    return max(0, service.daily_capacity - taken)


def _slot_minutes(service, taken: int) -> int:
    interval = service.interval_minutes or config.DEFAULT_INTERVAL_MINUTES
    hour, minute = parse_clock(service.start_time or config.DEFAULT_START_TIME)
    return hour * 60 + minute + taken * interval


def estimated_time(service, day: DateLike, appointments: Iterable) -> str:
    """
    Time of day the next booking for this service and date would receive.

    Raises:
        InvalidClockError: If the service's start time is malformed
    """
    taken = count_taken(service.id, day, appointments)
    return format_clock(_slot_minutes(service, taken))


def allocate(service, day: DateLike, appointments: Iterable) -> SlotAssignment:
    """
    Availability and next time slot in one pass.

    day_offset reports how many midnights the slot crossed; the display
    string alone wraps silently.
    """
    appointments = list(appointments)
    taken = count_taken(service.id, day, appointments)
    total = _slot_minutes(service, taken)
    return SlotAssignment(
        available=max(0, service.daily_capacity - taken),
        time=format_clock(total),
        day_offset=total // MINUTES_PER_DAY,
    )
