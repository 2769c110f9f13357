"""
Gateway factory.

Picks the data-access implementation named by configuration.
"""
from clinicdesk import config
from clinicdesk.gateway.base import ClinicGateway


def get_gateway(kind: str = None) -> ClinicGateway:
    """
    Build the gateway for the given kind.

    Args:
        kind: "sql" or "rest" (default: config.GATEWAY)

    Raises:
        ValueError: If kind is not supported
    """
    kind = kind or config.GATEWAY
    if kind == "sql":
        from clinicdesk.gateway.sql import SqlGateway
        return SqlGateway(database_url=config.DATABASE_URL)
    elif kind == "rest":
        from clinicdesk.gateway.rest import create_rest_gateway
        return create_rest_gateway()
    else:
        raise ValueError(f"Unsupported gateway: {kind}")


__all__ = ["ClinicGateway", "get_gateway"]
