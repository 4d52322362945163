"""Tests for capability resolution and the role guard."""
import asyncio

import pytest

from ems_client.guards import RoleGuard
from ems_client.models import UserProfile, UserRole
from ems_client.permissions import Action, Ownership, allowed_actions, can


def _user(role: str | None) -> UserProfile:
    return UserProfile(id="u", username="u", email=None, role=UserRole.from_value(role))


@pytest.mark.parametrize(
    "role,resource,action,expected",
    [
        ("SYSTEM_ADMIN", "locations", Action.DELETE, True),
        ("HR_MANAGER", "locations", Action.DELETE, False),
        ("DEPARTMENT_MANAGER", "locations", Action.LIST, True),
        ("EMPLOYEE", "locations", Action.LIST, False),
        ("EMPLOYEE", "departments", Action.VIEW, True),
        ("HR_MANAGER", "employees", Action.CREATE, True),
        ("DEPARTMENT_MANAGER", "employees", Action.CREATE, False),
        ("HR_MANAGER", "projects", Action.CREATE, False),
        ("SYSTEM_ADMIN", "users", Action.CREATE, True),
        ("HR_MANAGER", "users", Action.CREATE, False),
        ("EMPLOYEE", "tasks", Action.DELETE, False),
        ("HR_MANAGER", "employee-projects", Action.CREATE, True),
        ("EMPLOYEE", "employee-projects", Action.LIST, True),
    ],
)
def test_unconditional_rules(role, resource, action, expected):
    assert can(_user(role), resource, action) is expected


def test_ownership_conditions():
    manager = _user("DEPARTMENT_MANAGER")
    employee = _user("EMPLOYEE")

    assert can(manager, "departments", Action.UPDATE) is False
    assert can(manager, "departments", Action.UPDATE, Ownership(own_department=True)) is True
    assert can(manager, "projects", "delete", Ownership(own_department=True)) is True

    assert can(employee, "employees", Action.VIEW) is False
    assert can(employee, "employees", Action.VIEW, Ownership(own_record=True)) is True
    assert can(employee, "employees", Action.VIEW, Ownership(own_department=True)) is False
    assert can(employee, "tasks", Action.UPDATE, Ownership(assigned=True)) is True
    assert can(employee, "projects", Action.UPDATE, Ownership(assigned=True)) is False
    assert can(employee, "employee-projects", Action.VIEW, Ownership(own_record=True)) is True
    assert can(manager, "employee-projects", Action.DELETE, Ownership(own_department=True)) is True


def test_unknown_inputs_are_denied():
    assert can(None, "employees", Action.LIST) is False
    assert can(_user(None), "employees", Action.LIST) is False
    assert can(_user("SYSTEM_ADMIN"), "payroll", Action.LIST) is False
    assert can(_user("SYSTEM_ADMIN"), "employees", "archive") is False


def test_allowed_actions():
    assert allowed_actions(_user("EMPLOYEE"), "departments") == {Action.LIST, Action.VIEW}


class _FakeAuth:
    def __init__(self, role: str | None):
        self.user = _user(role) if role else None

    def is_authenticated(self):
        return self.user is not None

    def has_any_role(self, roles):
        return self.user.role in {UserRole.from_value(r) for r in roles}

    def get_current_user(self):
        return self.user


def test_guard_redirects_anonymous_to_login(navigator):
    guard = RoleGuard(_FakeAuth(None), navigator)
    assert guard.can_activate(["SYSTEM_ADMIN"], "/locations") is False
    assert navigator.current == "/login?returnUrl=%2Flocations"


def test_guard_redirects_missing_role_to_dashboard(navigator):
    guard = RoleGuard(_FakeAuth("EMPLOYEE"), navigator)
    assert guard.can_activate([UserRole.SYSTEM_ADMIN, UserRole.HR_MANAGER], "/locations") is False
    assert navigator.current == "/dashboard"


def test_guard_allows_matching_role_and_open_routes(navigator):
    guard = RoleGuard(_FakeAuth("HR_MANAGER"), navigator)
    assert guard.can_activate(["HR_MANAGER"], "/employees") is True
    assert guard.can_activate(None, "/profile") is True
    assert navigator.history == ["/"]


def test_guard_with_real_auth_service(make_client, seed_session, navigator):
    seed_session(valid=True)
    api = make_client()
    assert api.guard.can_activate(["EMPLOYEE"], "/tasks") is True
    assert api.guard.can_activate(["SYSTEM_ADMIN"], "/audit") is False
    assert navigator.current == "/dashboard"
    asyncio.run(api.aclose())
