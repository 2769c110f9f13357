"""Shared test fixtures."""
import pytest

from clinicdesk.auth import APIKeyManager
from clinicdesk.gateway.sql import SqlGateway
from clinicdesk.models import Center, Service


@pytest.fixture
def gateway() -> SqlGateway:
    """SQL gateway over a private in-memory database."""
    return SqlGateway(database_url="sqlite:///:memory:")


@pytest.fixture
def api_key_manager() -> APIKeyManager:
    """Create APIKeyManager with in-memory database."""
    return APIKeyManager(database_url="sqlite:///:memory:")


@pytest.fixture
def center(gateway) -> Center:
    center = Center(id="baraure", name="CDI Baraure", location="Baraure, Araure", city="Araure")
    gateway.create_center(center)
    return center


@pytest.fixture
def service(gateway, center) -> Service:
    """General Medicine: 3 per day from 07:00 AM every 30 minutes, Mon-Fri."""
    service = Service(
        id="s1",
        center_id=center.id,
        name="General Medicine",
        daily_capacity=3,
        allowed_days=[1, 2, 3, 4, 5],
        start_time="07:00 AM",
        interval_minutes=30,
    )
    gateway.create_service(service)
    return service


@pytest.fixture
def make_service():
    """Build a Service with sensible defaults."""
    def _create(**overrides) -> Service:
        fields = {
            "id": "s1",
            "center_id": "baraure",
            "name": "General Medicine",
            "daily_capacity": 3,
            "start_time": "07:00 AM",
            "interval_minutes": 30,
        }
        fields.update(overrides)
        return Service(**fields)
    return _create
