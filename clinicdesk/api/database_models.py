"""SQLAlchemy database models for the SQL gateway and API keys."""
from datetime import datetime, UTC
import bcrypt
from sqlalchemy import (
    Column, String, Text, Integer, BigInteger, DateTime, Boolean, JSON, ForeignKey, Index
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

Base = declarative_base()


def utc_now():
    """Get current UTC timestamp."""
    return datetime.now(UTC)


def engine_options(database_url: str) -> dict:
    """create_engine() keyword arguments for this URL.

    SQLite needs cross-thread access; in-memory databases need one shared
    connection or every session would see an empty database.
    """
    if not database_url.startswith("sqlite"):
        return {"pool_pre_ping": True}
    options = {"connect_args": {"check_same_thread": False}}
    if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
        options["poolclass"] = StaticPool
    return options


class CenterRow(Base):
    """Clinic (tenant) table."""
    __tablename__ = "centers"

    id = Column(String(100), primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    location = Column(String(300), nullable=False, default="")
    city = Column(String(200), nullable=True)
    primary_color = Column(String(20), nullable=True)
    uuid = Column(String(36), nullable=True, unique=True)
    theme_preset = Column(String(20), nullable=True)

    def __repr__(self):
        return f"<CenterRow(id={self.id}, name={self.name})>"


class NewsRow(Base):
    """Time-limited announcements."""
    __tablename__ = "news"

    id = Column(String(100), primary_key=True)
    center_id = Column(String(100), ForeignKey("centers.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(300), nullable=False)
    content = Column(Text, nullable=False)
    media_url = Column(Text, nullable=True)
    media_type = Column(String(10), nullable=True)
    created_at = Column(BigInteger, nullable=False)  # epoch ms
    expires_at = Column(BigInteger, nullable=False)  # epoch ms


class DoctorRow(Base):
    """Medical team members."""
    __tablename__ = "doctors"

    id = Column(String(100), primary_key=True)
    center_id = Column(String(100), ForeignKey("centers.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    specialty = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    image_url = Column(Text, nullable=True)


class ServiceRow(Base):
    """Bookable services."""
    __tablename__ = "services"

    id = Column(String(100), primary_key=True)
    center_id = Column(String(100), ForeignKey("centers.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    allowed_days = Column(JSON, nullable=False, default=list)
    daily_capacity = Column(Integer, nullable=False, default=15)
    is_paused = Column(Boolean, nullable=False, default=False)
    start_time = Column(String(8), nullable=True)
    interval_minutes = Column(Integer, nullable=True)


class AppointmentRow(Base):
    """Live bookings (pending or confirmed)."""
    __tablename__ = "appointments"
    __table_args__ = (
        Index("ix_appointments_service_date", "service_id", "date"),
    )

    id = Column(String(100), primary_key=True)
    center_id = Column(String(100), ForeignKey("centers.id", ondelete="CASCADE"), nullable=False, index=True)
    service_id = Column(String(100), ForeignKey("services.id", ondelete="CASCADE"), nullable=False)
    patient_name = Column(String(200), nullable=False)
    patient_id = Column(String(50), nullable=False, index=True)
    patient_phone = Column(String(50), nullable=False)
    date = Column(String(10), nullable=False)  # YYYY-MM-DD
    time = Column(String(8), nullable=False)  # hh:mm AM|PM
    status = Column(String(20), nullable=False, default="pending")
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)


class TreatedPatientRow(Base):
    """Append-only treatment history."""
    __tablename__ = "treated_patients"

    id = Column(String(100), primary_key=True)
    center_id = Column(String(100), ForeignKey("centers.id", ondelete="CASCADE"), nullable=False, index=True)
    patient_name = Column(String(200), nullable=False)
    patient_id = Column(String(50), nullable=False)
    patient_phone = Column(String(50), nullable=False)
    service_name = Column(String(200), nullable=False)
    treated_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    notes = Column(Text, nullable=True)


class CenterAdminRow(Base):
    """Administrator assignments, one row per tenure."""
    __tablename__ = "center_admins"

    user_id = Column(String(100), primary_key=True)
    center_id = Column(String(100), ForeignKey("centers.id", ondelete="CASCADE"), primary_key=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone = Column(String(50), nullable=False, default="")
    start_date = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)


class APIKey(Base):
    """API key authentication table with bcrypt hashing."""
    __tablename__ = "api_keys"

    # Prefix of the key, stored for O(1) lookup
    key_prefix = Column(String(20), primary_key=True, index=True)
    key_hash = Column(String(255), nullable=False)
    user_id = Column(String(100), nullable=False, index=True)
    center_id = Column(String(100), nullable=True, index=True)  # None for super-admins
    is_super_admin = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    last_used = Column(DateTime, default=utc_now, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    description = Column(String(500), nullable=True)

    @staticmethod
    def hash_key(api_key: str) -> str:
        """Hash API key using bcrypt."""
        return bcrypt.hashpw(api_key.encode(), bcrypt.gensalt()).decode()

    @staticmethod
    def verify_key(api_key: str, key_hash: str) -> bool:
        """Verify API key against hash."""
        return bcrypt.checkpw(api_key.encode(), key_hash.encode())

    @staticmethod
    def get_key_prefix(api_key: str) -> str:
        """Get first 16 chars for indexing."""
        return api_key[:16]

    def __repr__(self):
        return f"<APIKey(prefix={self.key_prefix}, center={self.center_id}, active={self.is_active})>"
