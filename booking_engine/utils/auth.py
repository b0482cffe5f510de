"""
Principal model and JWT token handling.

Tokens are issued by the identity service; the engine only decodes them.
``create_access_token`` exists for local tooling and tests.
"""

import enum
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError

from ..config import get_settings


class Role(str, enum.Enum):
    """Roles carried by a principal."""
    ATTENDEE = "attendee"
    ORGANIZER = "organizer"
    ADMIN = "admin"


class Principal(BaseModel):
    """The authenticated caller. Tenant scope always comes from here."""
    id: UUID
    role: Role
    tenant_id: UUID


def create_access_token(
    principal: Principal,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT access token for a principal.

    Args:
        principal: The principal to encode in the token
        expires_delta: Optional custom expiration time

    Returns:
        The encoded JWT token
    """
    settings = get_settings()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
        )

    to_encode = {
        "sub": str(principal.id),
        "role": principal.role.value,
        "tenant_id": str(principal.tenant_id),
        "exp": expire,
    }

    return jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM
    )


def verify_token(token: str) -> Optional[Principal]:
    """
    Verify and decode a JWT token.

    Returns:
        Principal if the token is valid and carries sub, role and tenant_id,
        None otherwise
    """
    settings = get_settings()

    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )
    except JWTError:
        return None

    try:
        return Principal(
            id=payload.get("sub"),
            role=payload.get("role"),
            tenant_id=payload.get("tenant_id"),
        )
    except ValidationError:
        return None
