"""Role-based access control for the marketplace.

Hierarchical roles:
- ADMIN (level 2): approves or rejects submitted courses
- INSTRUCTOR (level 1): authors own courses, lessons and quizzes
- STUDENT (level 0): enrolls, plays lessons, takes quizzes
"""

from enum import Enum


class UserRole(str, Enum):
    """User roles with hierarchical levels (higher = more permissions)."""

    STUDENT = "student"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"


ROLE_HIERARCHY: dict[UserRole, int] = {
    UserRole.STUDENT: 0,
    UserRole.INSTRUCTOR: 1,
    UserRole.ADMIN: 2,
}


def get_role_level(role: UserRole | str) -> int:
    """Get the permission level for a role.

    Unknown role strings get the lowest level.
    """
    if isinstance(role, str):
        try:
            role = UserRole(role)
        except ValueError:
            return 0
    return ROLE_HIERARCHY.get(role, 0)


def has_permission(user_role: UserRole | str, required_role: UserRole | str) -> bool:
    """Check if user has at least the required permission level.

    Examples:
        >>> has_permission(UserRole.ADMIN, UserRole.INSTRUCTOR)
        True
        >>> has_permission(UserRole.STUDENT, UserRole.INSTRUCTOR)
        False
        >>> has_permission("admin", "student")
        True
    """
    return get_role_level(user_role) >= get_role_level(required_role)


def is_admin(role: UserRole | str) -> bool:
    """Check if role is ADMIN."""
    return get_role_level(role) == ROLE_HIERARCHY[UserRole.ADMIN]
