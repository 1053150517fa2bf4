"""Bearer token authentication and role checks."""

from learnmate.auth.dependencies import CourseAdminUser, CurrentUser, OptionalUser
from learnmate.auth.permissions import UserRole, has_permission
from learnmate.auth.schemas import AuthenticatedUser


__all__ = [
    "AuthenticatedUser",
    "CourseAdminUser",
    "CurrentUser",
    "OptionalUser",
    "UserRole",
    "has_permission",
]
