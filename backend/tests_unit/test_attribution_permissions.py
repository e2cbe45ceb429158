"""Permission checker tests: role mapping and fail-closed behaviour."""

import pytest

from attribution_engine.services.attribution.permissions import (
    CAMPAIGNS_VIEW,
    RolePermissionChecker,
    role_allows,
)


@pytest.mark.parametrize(
    "role,allowed",
    [
        ("admin", True),
        ("executive", True),
        ("marketing_staff", True),
        ("inventory_staff", False),
        ("staff", False),
        ("customer", False),
        ("unknown_role", False),
    ],
)
def test_campaigns_view_by_role(role, allowed):
    checker = RolePermissionChecker(lambda user_id: role)

    assert checker.has_permission("u-1", CAMPAIGNS_VIEW) is allowed


def test_admin_has_every_capability():
    assert role_allows("admin", "anything:at_all")


def test_lookup_error_fails_closed():
    def _broken(user_id):
        raise ConnectionError("roles table unavailable")

    assert RolePermissionChecker(_broken).has_permission("u-1", CAMPAIGNS_VIEW) is False


def test_user_without_role_is_denied():
    assert RolePermissionChecker(lambda user_id: None).has_permission("u-1", CAMPAIGNS_VIEW) is False


def test_empty_user_id_is_denied_without_lookup():
    calls = []
    checker = RolePermissionChecker(lambda user_id: calls.append(user_id) or "admin")

    assert checker.has_permission("", CAMPAIGNS_VIEW) is False
    assert calls == []
