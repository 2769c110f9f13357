"""FastAPI dependency injection functions."""
from fastapi import Depends, Header, HTTPException, status

from clinicdesk import config
from clinicdesk.admin import AdminService
from clinicdesk.auth import AdminIdentity, APIKeyManager, InvalidAPIKeyError
from clinicdesk.booking import BookingService
from clinicdesk.gateway import ClinicGateway, get_gateway as build_gateway
from clinicdesk.rate_limiter import RateLimiter, RateLimitExceeded


# Initialize singletons
_gateway = None
_api_key_manager = None
_rate_limiter = None


def get_gateway() -> ClinicGateway:
    """Get or create the data gateway singleton."""
    global _gateway
    if _gateway is None:
        _gateway = build_gateway()
    return _gateway


def get_api_key_manager() -> APIKeyManager:
    """Get or create API key manager singleton."""
    global _api_key_manager
    if _api_key_manager is None:
        _api_key_manager = APIKeyManager(database_url=config.DATABASE_URL)
    return _api_key_manager


def get_rate_limiter() -> RateLimiter:
    """Get or create rate limiter singleton."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter()
    return _rate_limiter


def get_booking_service(gateway: ClinicGateway = Depends(get_gateway)) -> BookingService:
    return BookingService(gateway)


def get_admin_service(
    gateway: ClinicGateway = Depends(get_gateway),
    keys: APIKeyManager = Depends(get_api_key_manager)
) -> AdminService:
    return AdminService(gateway, keys)


async def validate_api_key(
    x_api_key: str = Header(..., description="API Key"),
    keys: APIKeyManager = Depends(get_api_key_manager)
) -> AdminIdentity:
    """
    FastAPI dependency for API key validation.

    Raises:
        HTTPException 401: If API key invalid
    """
    try:
        return keys.validate_api_key(x_api_key)
    except InvalidAPIKeyError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "ApiKey"}
        )


async def require_admin(
    center_id: str,
    identity: AdminIdentity = Depends(validate_api_key)
) -> AdminIdentity:
    """
    Key must belong to this center (or to a super-admin).

    Raises:
        HTTPException 403: If the key manages another center
    """
    if not identity.can_manage(center_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"API key is not authorized for center '{center_id}'"
        )
    return identity


async def require_super_admin(
    identity: AdminIdentity = Depends(validate_api_key)
) -> AdminIdentity:
    """
    Raises:
        HTTPException 403: If the key is not a super-admin key
    """
    if not identity.is_super_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Super-admin API key required"
        )
    return identity


def check_booking_rate_limit(
    center_id: str,
    gateway: ClinicGateway = Depends(get_gateway),
    limiter: RateLimiter = Depends(get_rate_limiter)
) -> None:
    """
    Public bookings are rate limited per center. Only existing centers are counted.

    Raises:
        NotFoundError: If the center does not exist
        HTTPException 429: If rate limit exceeded
    """
    gateway.get_center(center_id)
    try:
        limiter.check_rate_limit(center_id)
    except RateLimitExceeded as e:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=str(e),
            headers={"Retry-After": str(e.retry_after)}
        )
