"""Immutable per-center snapshot of public data.

A snapshot is loaded once from the gateway and then replaced, never mutated:
each update function returns a new CenterSnapshot. render_view() selects what
a public page section shows.
"""
import asyncio
import datetime as dt
from dataclasses import dataclass, replace
from typing import List, Tuple

from fastapi.concurrency import run_in_threadpool

from clinicdesk import config
from clinicdesk.gateway.base import ClinicGateway
from clinicdesk.models import (
    Appointment,
    Center,
    Doctor,
    NewsItem,
    PublicAppointment,
    Service,
)
from clinicdesk.state import PublicView


@dataclass(frozen=True)
class CenterSnapshot:
    """Public data of one center at one point in time."""
    center: Center
    news: Tuple[NewsItem, ...] = ()
    doctors: Tuple[Doctor, ...] = ()
    services: Tuple[Service, ...] = ()
    appointments: Tuple[PublicAppointment, ...] = ()


async def load_center_snapshot(gateway: ClinicGateway, center_id: str) -> CenterSnapshot:
    """
    Fetch a center and its public collections.

    The four collection reads run concurrently in the thread pool.

    Raises:
        NotFoundError: If the center does not exist
    """
    center = await run_in_threadpool(gateway.get_center, center_id)
    news, doctors, services, appointments = await asyncio.gather(
        run_in_threadpool(gateway.list_news, center_id),
        run_in_threadpool(gateway.list_doctors, center_id),
        run_in_threadpool(gateway.list_services, center_id),
        run_in_threadpool(gateway.list_public_appointments, center_id),
    )
    return CenterSnapshot(
        center=center,
        news=tuple(news),
        doctors=tuple(doctors),
        services=tuple(services),
        appointments=tuple(appointments),
    )


# --- News ---

def with_news(snapshot: CenterSnapshot, item: NewsItem) -> CenterSnapshot:
    """Newest first."""
    return replace(snapshot, news=(item,) + snapshot.news)


def without_news(snapshot: CenterSnapshot, news_id: str) -> CenterSnapshot:
    return replace(snapshot, news=tuple(n for n in snapshot.news if n.id != news_id))


def without_expired_news(snapshot: CenterSnapshot, now_ms: int) -> CenterSnapshot:
    return replace(snapshot, news=tuple(n for n in snapshot.news if n.is_active(now_ms)))


# --- Doctors ---

def with_doctor(snapshot: CenterSnapshot, doctor: Doctor) -> CenterSnapshot:
    return replace(snapshot, doctors=snapshot.doctors + (doctor,))


def without_doctor(snapshot: CenterSnapshot, doctor_id: str) -> CenterSnapshot:
    return replace(snapshot, doctors=tuple(d for d in snapshot.doctors if d.id != doctor_id))


# --- Services ---

def with_service(snapshot: CenterSnapshot, service: Service) -> CenterSnapshot:
    return replace(snapshot, services=snapshot.services + (service,))


def with_service_toggled(snapshot: CenterSnapshot, service_id: str) -> CenterSnapshot:
    """Flip is_paused on one service."""
    return replace(snapshot, services=tuple(
        s.model_copy(update={"is_paused": not s.is_paused}) if s.id == service_id else s
        for s in snapshot.services
    ))


def without_service(snapshot: CenterSnapshot, service_id: str) -> CenterSnapshot:
    """Drop a service together with its bookings."""
    return replace(
        snapshot,
        services=tuple(s for s in snapshot.services if s.id != service_id),
        appointments=tuple(a for a in snapshot.appointments if a.service_id != service_id),
    )


# --- Appointments ---

def with_booking(snapshot: CenterSnapshot, appointment: Appointment) -> CenterSnapshot:
    """Add a just-booked appointment, masked like every other public booking."""
    public = PublicAppointment.from_appointment(appointment)
    return replace(snapshot, appointments=snapshot.appointments + (public,))


def upcoming_appointments(
    snapshot: CenterSnapshot,
    today: dt.date,
    limit: int = config.PUBLIC_UPCOMING_LIMIT
) -> List[PublicAppointment]:
    """Next bookings from today on, ordered by date."""
    upcoming = [a for a in snapshot.appointments if a.date >= today]
    # stable: same-day bookings keep their booking order
    upcoming.sort(key=lambda a: a.date)
    return upcoming[:limit]


def render_view(snapshot: CenterSnapshot, view: PublicView, now: dt.datetime) -> list:
    """
    Items a public page section displays.

    Args:
        snapshot: Center data
        view: Section to render
        now: Aware current time; decides expired news and "today"

    Raises:
        ValueError: If view is not a PublicView member
    """
    if view == PublicView.NEWS:
        now_ms = int(now.timestamp() * 1000)
        return [n for n in snapshot.news if n.is_active(now_ms)]
    if view == PublicView.DOCTORS:
        return list(snapshot.doctors)
    if view == PublicView.APPOINTMENTS:
        return upcoming_appointments(snapshot, now.date())
    raise ValueError(f"Unknown view: {view}")
