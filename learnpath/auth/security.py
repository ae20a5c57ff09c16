"""JWT access token handling.

Tokens are issued by the identity provider; this service only validates
them and reads the subject and role.
"""

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from jose import JWTError, jwt

from learnpath.auth.context import StudentContext
from learnpath.auth.permissions import UserRole
from learnpath.config.settings import get_settings


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and validate an access token.

    Validates signature, expiration and ``type == "access"``.

    Raises:
        JWTError: If token is invalid, expired, or wrong type
    """
    settings = get_settings()

    payload = jwt.decode(
        token,
        settings.auth_secret_key,
        algorithms=[settings.auth_algorithm],
    )

    if payload.get("type") != "access":
        msg = "Invalid token type: expected 'access'"
        raise JWTError(msg)

    return payload


def context_from_payload(payload: dict[str, Any]) -> StudentContext:
    """Build a StudentContext from decoded token claims.

    Raises:
        JWTError: If ``sub`` is not a UUID or ``role`` is unknown
    """
    try:
        user_id = UUID(str(payload["sub"]))
        role = UserRole(payload.get("role", UserRole.STUDENT.value))
    except (KeyError, ValueError) as e:
        msg = "Invalid token claims"
        raise JWTError(msg) from e
    return StudentContext(user_id=user_id, role=role)


def create_access_token(
    user_id: UUID,
    role: UserRole = UserRole.STUDENT,
    expires_minutes: int = 15,
) -> str:
    """Create an access token (used by tests and local tooling)."""
    settings = get_settings()
    now = datetime.now(UTC)
    claims = {
        "sub": str(user_id),
        "role": role.value,
        "type": "access",
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(claims, settings.auth_secret_key, algorithm=settings.auth_algorithm)
