"""Roles and their ordering.

A learner (`user`) studies enrolled courses. A `course_admin` additionally
sees draft courses and can drop cached lesson outlines. A `website_admin`
can do everything a course admin can.
"""

from enum import Enum


class UserRole(str, Enum):
    USER = "user"
    COURSE_ADMIN = "course_admin"
    WEBSITE_ADMIN = "website_admin"


# Higher level includes every permission of the lower ones
ROLE_HIERARCHY: dict[UserRole, int] = {role: level for level, role in enumerate(UserRole)}


def get_role_level(role: UserRole | str) -> int:
    """Level of `role`; unknown role names rank as a plain learner."""
    try:
        return ROLE_HIERARCHY[UserRole(role)]
    except ValueError:
        return ROLE_HIERARCHY[UserRole.USER]


def has_permission(user_role: UserRole | str, required_role: UserRole | str) -> bool:
    """Whether `user_role` ranks at least as high as `required_role`.

    >>> has_permission("website_admin", UserRole.COURSE_ADMIN)
    True
    >>> has_permission("user", "course_admin")
    False
    """
    return get_role_level(user_role) >= get_role_level(required_role)


def is_at_least_course_admin(role: UserRole | str) -> bool:
    """Course admins and website admins may view unpublished courses."""
    return has_permission(role, UserRole.COURSE_ADMIN)
