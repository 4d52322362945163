"""
Capability resolution: one policy table deciding (user, resource, action) -> allow/deny.
Each rule grants some roles outright and others only under an ownership fact
(own record, own department, assigned task/project). The API enforces the same table;
client-side checks only decide what to offer.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ems_client.models import ADMIN_ROLES, ALL_ROLES, MANAGER_ROLES, UserRole

SA = UserRole.SYSTEM_ADMIN
HR = UserRole.HR_MANAGER
DM = UserRole.DEPARTMENT_MANAGER
EMP = UserRole.EMPLOYEE


class Action(str, Enum):
    LIST = "list"
    VIEW = "view"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class Ownership:
    own_record: bool = False
    own_department: bool = False
    assigned: bool = False


@dataclass(frozen=True)
class Rule:
    roles: frozenset = frozenset()
    # role -> Ownership attribute that must be true
    conditional: dict = field(default_factory=dict)

    def allows(self, role: UserRole, ownership: Ownership | None) -> bool:
        if role in self.roles:
            return True
        condition = self.conditional.get(role)
        if condition is None or ownership is None:
            return False
        return bool(getattr(ownership, condition))


def _rule(roles: Any = (), **conditional: str) -> Rule:
    return Rule(
        roles=frozenset(roles),
        conditional={UserRole[name]: attr for name, attr in conditional.items()},
    )


POLICY: dict[str, dict[Action, Rule]] = {
    "departments": {
        Action.LIST: _rule(ALL_ROLES),
        Action.VIEW: _rule(ALL_ROLES),
        Action.CREATE: _rule(ADMIN_ROLES),
        Action.UPDATE: _rule(ADMIN_ROLES, DEPARTMENT_MANAGER="own_department"),
        Action.DELETE: _rule(ADMIN_ROLES),
    },
    "locations": {
        Action.LIST: _rule(MANAGER_ROLES),
        Action.VIEW: _rule(MANAGER_ROLES),
        Action.CREATE: _rule(ADMIN_ROLES),
        Action.UPDATE: _rule(ADMIN_ROLES),
        Action.DELETE: _rule({SA}),
    },
    "employees": {
        Action.LIST: _rule(ALL_ROLES),
        Action.VIEW: _rule(ADMIN_ROLES, DEPARTMENT_MANAGER="own_department", EMPLOYEE="own_record"),
        Action.CREATE: _rule(ADMIN_ROLES),
        Action.UPDATE: _rule(ADMIN_ROLES, DEPARTMENT_MANAGER="own_department", EMPLOYEE="own_record"),
        Action.DELETE: _rule(ADMIN_ROLES),
    },
    "projects": {
        Action.LIST: _rule(ALL_ROLES),
        Action.VIEW: _rule(MANAGER_ROLES, EMPLOYEE="assigned"),
        Action.CREATE: _rule({SA}, DEPARTMENT_MANAGER="own_department"),
        Action.UPDATE: _rule({SA}, DEPARTMENT_MANAGER="own_department"),
        Action.DELETE: _rule({SA}, DEPARTMENT_MANAGER="own_department"),
    },
    "tasks": {
        Action.LIST: _rule(ALL_ROLES),
        Action.VIEW: _rule(MANAGER_ROLES, EMPLOYEE="assigned"),
        Action.CREATE: _rule({SA}, DEPARTMENT_MANAGER="own_department"),
        Action.UPDATE: _rule({SA}, DEPARTMENT_MANAGER="own_department", EMPLOYEE="assigned"),
        Action.DELETE: _rule({SA}, DEPARTMENT_MANAGER="own_department"),
    },
    "employee-projects": {
        Action.LIST: _rule(ALL_ROLES),
        Action.VIEW: _rule(MANAGER_ROLES, EMPLOYEE="own_record"),
        Action.CREATE: _rule(ADMIN_ROLES, DEPARTMENT_MANAGER="own_department"),
        Action.UPDATE: _rule(ADMIN_ROLES, DEPARTMENT_MANAGER="own_department"),
        Action.DELETE: _rule(ADMIN_ROLES, DEPARTMENT_MANAGER="own_department"),
    },
    "users": {
        Action.CREATE: _rule({SA}),
    },
    "audit": {
        Action.LIST: _rule({SA}),
    },
}


def can(user: Any, resource: str, action: Action | str, ownership: Ownership | None = None) -> bool:
    """
    True when user (anything with a .role) may perform action on resource.
    Unknown resources, actions and roles are denied.
    """
    if user is None:
        return False
    role = UserRole.from_value(getattr(user, "role", None))
    if role is None:
        return False
    try:
        action = Action(action)
    except ValueError:
        return False
    rule = POLICY.get(resource, {}).get(action)
    if rule is None:
        return False
    return rule.allows(role, ownership)


def allowed_actions(user: Any, resource: str, ownership: Ownership | None = None) -> set[Action]:
    return {action for action in Action if can(user, resource, action, ownership)}
