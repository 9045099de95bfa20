"""Bearer token helpers.

Tokens are issued by the platform identity service; this service only
verifies them and reads the staff identity from ``sub``.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from gradebook.core.config import settings


def create_access_token(
    staff_id: str,
    school_id: str,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token for a staff member."""
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES
        )

    to_encode: dict[str, Any] = {
        "sub": staff_id,
        "school_id": school_id,
        "exp": expire,
        "type": "access",
    }

    return jwt.encode(
        to_encode,
        settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
    )


def decode_token(token: str) -> dict[str, Any] | None:
    """Decode and validate a JWT token."""
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
        return payload
    except JWTError:
        return None


def verify_access_token(token: str) -> dict[str, Any] | None:
    """Verify an access token and return its payload."""
    payload = decode_token(token)
    if payload and payload.get("type") == "access":
        return payload
    return None
