"""FastAPI dependencies for authentication.

Provides dependency injection for:
- Current user extraction from the bearer JWT
- Role-based access control
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError

from learnpath.auth.context import StudentContext
from learnpath.auth.permissions import UserRole, has_permission
from learnpath.auth.security import context_from_payload, decode_access_token
from learnpath.core.context import set_user_id


def get_token_from_header(request: Request) -> str | None:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    expected_parts = 2
    parts = auth_header.split()
    if len(parts) != expected_parts or parts[0].lower() != "bearer":
        return None

    return parts[1]


async def get_current_user(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> StudentContext:
    """Get the authenticated caller from the JWT.

    Raises:
        HTTPException(401): If token is missing, invalid, or expired
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        ctx = context_from_payload(decode_access_token(token))
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    # Set user_id in context for logging
    set_user_id(ctx.user_id)
    return ctx


def require_permission(required_role: UserRole):
    """Create dependency requiring at least a permission level.

    Example:
        @router.post("/courses")
        async def create(user: Annotated[StudentContext, Depends(
            require_permission(UserRole.INSTRUCTOR))]): ...
    """

    async def permission_checker(
        user: Annotated[StudentContext, Depends(get_current_user)],
    ) -> StudentContext:
        if not has_permission(user.role, required_role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return user

    return permission_checker


CurrentUser = Annotated[StudentContext, Depends(get_current_user)]
InstructorUser = Annotated[
    StudentContext, Depends(require_permission(UserRole.INSTRUCTOR))
]
AdminUser = Annotated[StudentContext, Depends(require_permission(UserRole.ADMIN))]
