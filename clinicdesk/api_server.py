"""FastAPI server for the clinic management service.

Features:
- Public center pages: news, doctors, upcoming bookings, availability
- Public booking with per-center rate limiting
- Center administration behind X-API-Key (center-scoped or super-admin keys)
- Super-admin center management
- Global exception handling with ErrorResponse bodies
- Structured logging with request IDs
"""
import datetime as dt
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from clinicdesk import __version__, config
from clinicdesk.admin import AdminService
from clinicdesk.api.dependencies import (
    check_booking_rate_limit,
    get_admin_service,
    get_booking_service,
    get_gateway,
    require_admin,
    require_super_admin,
)
from clinicdesk.api.models import (
    AdminRegister,
    AdminRegistered,
    AvailabilityResponse,
    BookingCreate,
    BookingResponse,
    CenterCreate,
    CenterUpdate,
    DoctorCreate,
    ErrorResponse,
    NewsCreate,
    ServiceCreate,
    StatusResponse,
)
from clinicdesk.booking import SUCCESS_MESSAGE, BookingRequest, BookingService, failure_message
from clinicdesk.errors import (
    BackendError,
    BookingError,
    BookingFailedError,
    BookingLimitExceeded,
    CapacityExceededError,
    ClinicError,
    ConflictError,
    DayNotAllowedError,
    InvalidTransitionError,
    NotFoundError,
    PastDateError,
    RegistrationRejectedError,
)
from clinicdesk.gateway import ClinicGateway
from clinicdesk.logging_config import RequestIDMiddleware, setup_structured_logging
from clinicdesk.models import (
    AdminTenure,
    Appointment,
    Center,
    Doctor,
    NewsItem,
    Service,
    TreatedPatient,
)
from clinicdesk.state import HistoryWindow, PublicView, SystemStatus
from clinicdesk.store import load_center_snapshot, render_view

logger = logging.getLogger(__name__)

# First match wins, so subclasses come before their bases
ERROR_STATUS = [
    (BookingLimitExceeded, status.HTTP_429_TOO_MANY_REQUESTS, "Booking Limit Exceeded"),
    (NotFoundError, status.HTTP_404_NOT_FOUND, "Not Found"),
    (PastDateError, status.HTTP_400_BAD_REQUEST, "Booking Rejected"),
    (DayNotAllowedError, status.HTTP_400_BAD_REQUEST, "Booking Rejected"),
    (BookingError, status.HTTP_409_CONFLICT, "Booking Rejected"),
    (CapacityExceededError, status.HTTP_409_CONFLICT, "Booking Rejected"),
    (InvalidTransitionError, status.HTTP_409_CONFLICT, "Invalid Status Change"),
    (ConflictError, status.HTTP_409_CONFLICT, "Conflict"),
    (RegistrationRejectedError, status.HTTP_403_FORBIDDEN, "Registration Rejected"),
    (BookingFailedError, status.HTTP_502_BAD_GATEWAY, "Booking Failed"),
    (BackendError, status.HTTP_502_BAD_GATEWAY, "Backend Error"),
]


def _local_now() -> dt.datetime:
    return dt.datetime.now().astimezone()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown logic."""
    setup_structured_logging(config.LOG_LEVEL)
    logger.info("FastAPI server starting up...")

    backend_status = get_gateway().check_system_status()
    if backend_status == SystemStatus.OK:
        logger.info("Data backend ready")
    else:
        # Keep serving; /api/v1/status reports the problem to clients
        logger.warning(f"Data backend not ready: {backend_status.value}")

    yield

    logger.info("FastAPI server shutting down...")


app = FastAPI(
    title="Clinic Management API",
    description="Multi-tenant clinic management: public pages, booking and administration",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)
app.add_middleware(RequestIDMiddleware)


# Global exception handlers
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors consistently."""
    logger.warning(f"Validation error: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            error="Validation Error",
            detail=str(exc.errors()),
            code="VALIDATION_ERROR"
        ).model_dump()
    )


@app.exception_handler(ClinicError)
async def clinic_error_handler(request: Request, exc: ClinicError):
    """Map domain errors to HTTP responses."""
    status_code, title = next(
        ((code, title) for cls, code, title in ERROR_STATUS if isinstance(exc, cls)),
        (status.HTTP_400_BAD_REQUEST, "Request Failed")
    )
    error_code = exc.code

    if isinstance(exc, BookingFailedError):
        title = failure_message(exc)

    # The hosted backend reports the per-patient limit as a plain error
    if config.BOOKING_LIMIT_MARKER in str(exc):
        status_code = status.HTTP_429_TOO_MANY_REQUESTS
        title = failure_message(exc)
        error_code = BookingLimitExceeded.code

    if status_code >= 500:
        logger.error(f"{title}: {exc}")
    else:
        logger.info(f"{title}: {exc}")

    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=title, detail=str(exc), code=error_code).model_dump()
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all handler for unexpected exceptions."""
    logger.error(f"Unexpected error: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="Internal Server Error",
            detail="An unexpected error occurred. Please try again later.",
            code="INTERNAL_ERROR"
        ).model_dump()
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for load balancers."""
    return {
        "status": "healthy",
        "service": "clinicdesk-api",
        "version": __version__
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API info."""
    return {
        "message": "Clinic Management API",
        "docs": "/docs",
        "health": "/health"
    }


# --- Public ---

@app.get("/api/v1/status", tags=["Health"], response_model=StatusResponse)
def system_status(gateway: ClinicGateway = Depends(get_gateway)):
    """Readiness of the data backend (tables present, credentials accepted)."""
    return StatusResponse(status=gateway.check_system_status())


@app.get("/api/v1/centers", tags=["Public"], response_model=List[Center])
def list_centers(gateway: ClinicGateway = Depends(get_gateway)):
    return gateway.list_centers()


@app.get("/api/v1/centers/{center_id}/views/{view}", tags=["Public"])
async def center_view(
    center_id: str,
    view: PublicView,
    gateway: ClinicGateway = Depends(get_gateway)
):
    """
    One section of a center's public page.

    news: active announcements; doctors: the medical team;
    appointments: the next upcoming bookings with masked patient identity.
    """
    snapshot = await load_center_snapshot(gateway, center_id)
    return {
        "center": snapshot.center,
        "view": view,
        "items": render_view(snapshot, view, _local_now()),
    }


@app.get("/api/v1/centers/{center_id}/services", tags=["Public"], response_model=List[Service])
def list_bookable_services(center_id: str, gateway: ClinicGateway = Depends(get_gateway)):
    """Services currently taking bookings."""
    gateway.get_center(center_id)
    return [s for s in gateway.list_services(center_id) if not s.is_paused]


@app.get(
    "/api/v1/centers/{center_id}/availability",
    tags=["Public"],
    response_model=AvailabilityResponse
)
def availability(
    center_id: str,
    service_id: Optional[str] = None,
    date: Optional[dt.date] = None,
    booking: BookingService = Depends(get_booking_service)
):
    """
    Remaining slots and the time the next booking would get.

    available is null until both service_id and date are given, or when the
    service does not exist; 0 means fully booked.
    """
    preview = booking.preview(center_id, service_id, date)
    if preview is None:
        return AvailabilityResponse(service_id=service_id or "", date=date or _local_now().date())
    return AvailabilityResponse(
        service_id=preview.service_id,
        date=preview.date,
        available=preview.available,
        estimated_time=preview.estimated_time,
        rolls_over=preview.rolls_over,
    )


@app.post(
    "/api/v1/centers/{center_id}/appointments",
    tags=["Public"],
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_booking_rate_limit)]
)
def book_appointment(
    center_id: str,
    request: BookingCreate,
    booking: BookingService = Depends(get_booking_service)
):
    """
    Book the next free slot of a service.

    Raises:
        400: Past date or closed weekday
        404: Unknown service
        409: Paused, fully booked, or slot past midnight
        429: Patient daily limit or center rate limit reached
        502: Backend failed the write
    """
    try:
        appointment = booking.submit(center_id, BookingRequest(**request.model_dump()))
    except BackendError as e:
        if config.BOOKING_LIMIT_MARKER in str(e):
            raise
        raise BookingFailedError(str(e), status_code=e.status_code, backend_code=e.backend_code) from e
    return BookingResponse(
        message=SUCCESS_MESSAGE,
        appointment_id=appointment.id,
        service_id=appointment.service_id,
        date=appointment.date,
        time=appointment.time,
    )


# --- Admin ---

@app.post(
    "/api/v1/admin/register",
    tags=["Admin"],
    response_model=AdminRegistered,
    status_code=status.HTTP_201_CREATED
)
def register_admin(request: AdminRegister, admin: AdminService = Depends(get_admin_service)):
    """Create an administrator for a center. Returns the API key once."""
    tenure, api_key = admin.register_admin(
        request.center_id,
        request.secret_code,
        request.first_name,
        request.last_name,
        request.phone,
    )
    return AdminRegistered(tenure=tenure, api_key=api_key)


center_admin = APIRouter(
    prefix="/api/v1/admin/centers/{center_id}",
    tags=["Admin"],
    dependencies=[Depends(require_admin)]
)


@center_admin.get("/news", response_model=List[NewsItem])
def admin_list_news(center_id: str, admin: AdminService = Depends(get_admin_service)):
    return admin.list_news(center_id)


@center_admin.post("/news", response_model=NewsItem, status_code=status.HTTP_201_CREATED)
def admin_create_news(
    center_id: str,
    request: NewsCreate,
    admin: AdminService = Depends(get_admin_service)
):
    return admin.create_news(
        center_id,
        request.title,
        request.content,
        duration_hours=request.duration_hours,
        media_url=request.media_url,
        media_type=request.media_type,
    )


@center_admin.delete("/news/{news_id}", status_code=status.HTTP_204_NO_CONTENT)
def admin_delete_news(center_id: str, news_id: str, admin: AdminService = Depends(get_admin_service)):
    admin.delete_news(center_id, news_id)


@center_admin.get("/doctors", response_model=List[Doctor])
def admin_list_doctors(center_id: str, admin: AdminService = Depends(get_admin_service)):
    return admin.list_doctors(center_id)


@center_admin.post("/doctors", response_model=Doctor, status_code=status.HTTP_201_CREATED)
def admin_create_doctor(
    center_id: str,
    request: DoctorCreate,
    admin: AdminService = Depends(get_admin_service)
):
    return admin.create_doctor(center_id, **request.model_dump())


@center_admin.delete("/doctors/{doctor_id}", status_code=status.HTTP_204_NO_CONTENT)
def admin_delete_doctor(center_id: str, doctor_id: str, admin: AdminService = Depends(get_admin_service)):
    admin.delete_doctor(center_id, doctor_id)


@center_admin.get("/services", response_model=List[Service])
def admin_list_services(center_id: str, admin: AdminService = Depends(get_admin_service)):
    return admin.list_services(center_id)


@center_admin.post("/services", response_model=Service, status_code=status.HTTP_201_CREATED)
def admin_create_service(
    center_id: str,
    request: ServiceCreate,
    admin: AdminService = Depends(get_admin_service)
):
    return admin.create_service(center_id, **request.model_dump())


@center_admin.post("/services/{service_id}/toggle-pause", response_model=Service)
def admin_toggle_service(center_id: str, service_id: str, admin: AdminService = Depends(get_admin_service)):
    return admin.toggle_service_pause(center_id, service_id)


@center_admin.delete("/services/{service_id}", status_code=status.HTTP_204_NO_CONTENT)
def admin_delete_service(center_id: str, service_id: str, admin: AdminService = Depends(get_admin_service)):
    admin.delete_service(center_id, service_id)


@center_admin.get("/appointments", response_model=List[Appointment])
def admin_list_appointments(center_id: str, admin: AdminService = Depends(get_admin_service)):
    return admin.list_appointments(center_id)


@center_admin.post("/appointments/{appointment_id}/confirm", response_model=Appointment)
def admin_confirm_appointment(
    center_id: str,
    appointment_id: str,
    admin: AdminService = Depends(get_admin_service)
):
    return admin.confirm_appointment(center_id, appointment_id)


@center_admin.post("/appointments/{appointment_id}/treat", response_model=TreatedPatient)
def admin_treat_appointment(
    center_id: str,
    appointment_id: str,
    admin: AdminService = Depends(get_admin_service)
):
    """Archive the appointment into the history."""
    return admin.mark_treated(center_id, appointment_id)


@center_admin.delete("/appointments/{appointment_id}", status_code=status.HTTP_204_NO_CONTENT)
def admin_cancel_appointment(
    center_id: str,
    appointment_id: str,
    admin: AdminService = Depends(get_admin_service)
):
    admin.cancel_appointment(center_id, appointment_id)


@center_admin.get("/history", response_model=List[TreatedPatient])
def admin_list_history(
    center_id: str,
    window: HistoryWindow = HistoryWindow.ALL,
    admin: AdminService = Depends(get_admin_service)
):
    return admin.list_history(center_id, window)


@center_admin.delete("/history/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
def admin_delete_history(center_id: str, record_id: str, admin: AdminService = Depends(get_admin_service)):
    admin.delete_history_record(center_id, record_id)


@center_admin.get("/team", response_model=List[AdminTenure])
def admin_list_team(center_id: str, admin: AdminService = Depends(get_admin_service)):
    return admin.list_team(center_id)


@center_admin.delete("/team/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def admin_revoke(center_id: str, user_id: str, admin: AdminService = Depends(get_admin_service)):
    """End a tenure and deactivate the admin's keys for this center."""
    admin.revoke_admin(center_id, user_id)


# --- Super-admin ---

super_admin = APIRouter(
    prefix="/api/v1/super/centers",
    tags=["Super-admin"],
    dependencies=[Depends(require_super_admin)]
)


@super_admin.get("", response_model=List[Center])
def super_list_centers(admin: AdminService = Depends(get_admin_service)):
    return admin.list_centers()


@super_admin.post("", response_model=Center, status_code=status.HTTP_201_CREATED)
def super_create_center(request: CenterCreate, admin: AdminService = Depends(get_admin_service)):
    return admin.create_center(Center(**request.model_dump()))


@super_admin.patch("/{center_id}", response_model=Center)
def super_update_center(
    center_id: str,
    request: CenterUpdate,
    admin: AdminService = Depends(get_admin_service)
):
    return admin.update_center(center_id, request.location, request.city)


@super_admin.delete("/{center_id}", status_code=status.HTTP_204_NO_CONTENT)
def super_delete_center(center_id: str, admin: AdminService = Depends(get_admin_service)):
    admin.delete_center(center_id)


app.include_router(center_admin)
app.include_router(super_admin)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "clinicdesk.api_server:app",
        host="0.0.0.0",
        port=8000,
        log_level=config.LOG_LEVEL.lower()
    )
