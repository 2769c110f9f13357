"""Multi-tenant clinic management service: centers, news, doctors, services and bookings."""

__version__ = "1.0.0"
