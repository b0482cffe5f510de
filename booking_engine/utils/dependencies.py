"""
FastAPI dependencies for authentication and service wiring.
"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from ..cache import get_cache
from ..database import get_db_manager
from ..services.audit_service import AuditService
from ..services.booking_service import BookingService
from ..services.engine import BookingEngine
from ..services.notification_service import NotificationService
from ..utils.auth import Principal, Role, verify_token
from ..utils.exceptions import AccessDeniedError, AuthenticationError
from ..utils.logging_config import log_security_event


# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)

_engine: Optional[BookingEngine] = None


def get_engine() -> BookingEngine:
    """The process-wide booking engine, built on first use."""
    global _engine
    if _engine is None:
        _engine = BookingEngine(get_db_manager(), cache=get_cache())
    return _engine


async def get_current_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Principal:
    """
    Decode the caller's principal from the bearer token.

    Raises:
        AuthenticationError: if the token is missing or invalid
    """
    if credentials is None:
        raise AuthenticationError()

    principal = verify_token(credentials.credentials)
    if principal is None:
        log_security_event(
            "invalid_token",
            {"path": request.url.path, "client_ip": request.client.host if request.client else None},
        )
        raise AuthenticationError("Could not validate credentials")

    request.state.principal = principal
    return principal


async def get_booking_manager(
    principal: Principal = Depends(get_current_principal),
) -> Principal:
    """Require an organizer or admin principal."""
    if principal.role not in (Role.ORGANIZER, Role.ADMIN):
        raise AccessDeniedError(
            "Only admins and organizers can manage bookings",
            required_role=Role.ORGANIZER.value,
        )
    return principal


def get_booking_service(engine: BookingEngine = Depends(get_engine)) -> BookingService:
    return engine.booking_service()


def get_notification_service(engine: BookingEngine = Depends(get_engine)) -> NotificationService:
    return engine.notification_service()


def get_audit_service(engine: BookingEngine = Depends(get_engine)) -> AuditService:
    return engine.audit_service()
