"""Explicit caller identity passed into every core operation."""

from dataclasses import dataclass
from uuid import UUID

from learnpath.auth.permissions import UserRole, has_permission


class AuthRequiredError(Exception):
    """Action attempted without an authenticated user (or with too low a role)."""

    def __init__(self, message: str = "Authentication required"):
        self.message = message
        self.code = "auth_required"
        super().__init__(message)


@dataclass(frozen=True)
class StudentContext:
    """Who is acting: the authenticated user id and role."""

    user_id: UUID
    role: UserRole = UserRole.STUDENT

    def has_role(self, required_role: UserRole) -> bool:
        return has_permission(self.role, required_role)


def require_context(
    ctx: StudentContext | None,
    required_role: UserRole = UserRole.STUDENT,
) -> StudentContext:
    """Return ``ctx`` if it is authenticated with at least ``required_role``.

    Raises:
        AuthRequiredError: If there is no context or the role is too low
    """
    if ctx is None or ctx.user_id is None:
        raise AuthRequiredError
    if not ctx.has_role(required_role):
        raise AuthRequiredError(f"Role '{required_role.value}' required")
    return ctx
