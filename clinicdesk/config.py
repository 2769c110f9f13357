"""Configuration for the clinic management service.

Business defaults live here - modify as needed without touching code.
Every value can be overridden through the environment (or a .env file).
"""
import os
from dotenv import load_dotenv

load_dotenv()

# Service schedule defaults (used when a service omits them)
DEFAULT_START_TIME = os.getenv("DEFAULT_START_TIME", "07:00 AM")
DEFAULT_INTERVAL_MINUTES = int(os.getenv("DEFAULT_INTERVAL_MINUTES", "30"))
DEFAULT_DAILY_CAPACITY = 15

# Weekday numbers follow the calendar convention 0=Sunday ... 6=Saturday
DEFAULT_ALLOWED_DAYS = [1, 2, 3, 4, 5]
DAYS_OF_WEEK = [
    "Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"
]

# Maximum bookings one patient id can submit per calendar day
DAILY_PATIENT_LIMIT = int(os.getenv("DAILY_PATIENT_LIMIT", "5"))

# Marker the backend puts in the error raised by the per-patient limit
BOOKING_LIMIT_MARKER = "Límite excedido"

# Public listing of upcoming bookings
PUBLIC_UPCOMING_LIMIT = 5

# History record fallbacks
FALLBACK_SERVICE_NAME = "General Consultation"

# News lifetime when the admin does not specify one (hours)
DEFAULT_NEWS_DURATION_HOURS = 24

# Data access
GATEWAY = os.getenv("GATEWAY", "sql")  # "sql" or "rest"
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///clinicdesk.db")
BACKEND_URL = os.getenv("BACKEND_URL", "http://localhost:54321")
BACKEND_API_KEY = os.getenv("BACKEND_API_KEY", "")
HTTP_TIMEOUT_SECONDS = int(os.getenv("HTTP_TIMEOUT_SECONDS", "15"))

# Admin self-registration requires this shared secret
ADMIN_REGISTRATION_CODE = os.getenv("ADMIN_REGISTRATION_CODE", "")

# Public booking rate limit, per center
PUBLIC_BOOKING_LIMIT = int(os.getenv("PUBLIC_BOOKING_LIMIT", "60"))
PUBLIC_BOOKING_WINDOW_SECONDS = int(os.getenv("PUBLIC_BOOKING_WINDOW_SECONDS", "3600"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Browser origins allowed to call the API
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]
