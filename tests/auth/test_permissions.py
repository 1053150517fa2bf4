"""Tests for auth permissions."""

import pytest

from learnmate.auth.permissions import (
    ROLE_HIERARCHY,
    UserRole,
    get_role_level,
    has_permission,
    is_at_least_course_admin,
)


class TestUserRole:
    """Tests for UserRole enum."""

    def test_role_values(self) -> None:
        """Roles should have correct string values."""
        assert UserRole.USER.value == "user"
        assert UserRole.COURSE_ADMIN.value == "course_admin"
        assert UserRole.WEBSITE_ADMIN.value == "website_admin"

    def test_role_hierarchy(self) -> None:
        """Roles should have correct hierarchy levels."""
        assert ROLE_HIERARCHY[UserRole.USER] == 0
        assert ROLE_HIERARCHY[UserRole.COURSE_ADMIN] == 1
        assert ROLE_HIERARCHY[UserRole.WEBSITE_ADMIN] == 2

    def test_all_roles_have_levels(self) -> None:
        """All UserRole members should have defined levels."""
        for role in UserRole:
            assert role in ROLE_HIERARCHY


class TestGetRoleLevel:
    """Tests for get_role_level function."""

    @pytest.mark.parametrize(
        "role,expected_level",
        [
            (UserRole.USER, 0),
            (UserRole.COURSE_ADMIN, 1),
            (UserRole.WEBSITE_ADMIN, 2),
        ],
    )
    def test_enum_roles(self, role: UserRole, expected_level: int) -> None:
        """Should return correct level for enum roles."""
        assert get_role_level(role) == expected_level

    @pytest.mark.parametrize(
        "role,expected_level",
        [
            ("user", 0),
            ("course_admin", 1),
            ("website_admin", 2),
        ],
    )
    def test_string_roles(self, role: str, expected_level: int) -> None:
        """Should return correct level for string roles."""
        assert get_role_level(role) == expected_level

    def test_invalid_role_returns_zero(self) -> None:
        """Invalid roles should return level 0."""
        assert get_role_level("invalid") == 0
        assert get_role_level("superadmin") == 0


class TestHasPermission:
    """Tests for has_permission function."""

    def test_website_admin_has_all_permissions(self) -> None:
        assert has_permission(UserRole.WEBSITE_ADMIN, UserRole.USER) is True
        assert has_permission(UserRole.WEBSITE_ADMIN, UserRole.COURSE_ADMIN) is True
        assert has_permission(UserRole.WEBSITE_ADMIN, UserRole.WEBSITE_ADMIN) is True

    def test_course_admin_permissions(self) -> None:
        assert has_permission(UserRole.COURSE_ADMIN, UserRole.USER) is True
        assert has_permission(UserRole.COURSE_ADMIN, UserRole.COURSE_ADMIN) is True
        assert has_permission(UserRole.COURSE_ADMIN, UserRole.WEBSITE_ADMIN) is False

    def test_user_permissions(self) -> None:
        """User should only have base access."""
        assert has_permission(UserRole.USER, UserRole.USER) is True
        assert has_permission(UserRole.USER, UserRole.COURSE_ADMIN) is False
        assert has_permission(UserRole.USER, UserRole.WEBSITE_ADMIN) is False

    def test_string_roles(self) -> None:
        """Should work with string role values."""
        assert has_permission("website_admin", "user") is True
        assert has_permission("user", "course_admin") is False


class TestIsAtLeastCourseAdmin:
    @pytest.mark.parametrize(
        "role,expected",
        [("user", False), ("course_admin", True), ("website_admin", True), ("bogus", False)],
    )
    def test_roles(self, role: str, expected: bool) -> None:
        assert is_at_least_course_admin(role) is expected
