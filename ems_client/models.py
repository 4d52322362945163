"""
Client-side data model: user profile, session, auth response and pagination shapes.
Wire format is camelCase JSON; attributes are snake_case.
"""
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class UserRole(str, Enum):
    SYSTEM_ADMIN = "SYSTEM_ADMIN"
    HR_MANAGER = "HR_MANAGER"
    DEPARTMENT_MANAGER = "DEPARTMENT_MANAGER"
    EMPLOYEE = "EMPLOYEE"

    @classmethod
    def from_value(cls, value: "str | UserRole | None") -> "UserRole | None":
        """Case-insensitive lookup; None for unknown roles."""
        if value is None:
            return None
        if isinstance(value, UserRole):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            return None


ADMIN_ROLES = frozenset({UserRole.SYSTEM_ADMIN, UserRole.HR_MANAGER})
MANAGER_ROLES = ADMIN_ROLES | {UserRole.DEPARTMENT_MANAGER}
ALL_ROLES = frozenset(UserRole)


@dataclass(frozen=True)
class UserProfile:
    id: str
    username: str
    email: str | None
    role: UserRole | None
    employee_id: str | None = None
    created_at: str | None = None
    last_login: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UserProfile":
        return cls(
            id=str(data["id"]),
            username=data["username"],
            email=data.get("email"),
            role=UserRole.from_value(data.get("role")),
            employee_id=data.get("employeeId"),
            created_at=data.get("createdAt"),
            last_login=data.get("lastLogin"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role.value if self.role else None,
            "employeeId": self.employee_id,
            "createdAt": self.created_at,
            "lastLogin": self.last_login,
        }


@dataclass(frozen=True)
class AuthResponse:
    token: str
    refresh_token: str
    user: UserProfile
    expires_in: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AuthResponse":
        return cls(
            token=data["token"],
            refresh_token=data["refreshToken"],
            user=UserProfile.from_dict(data["user"]),
            expires_in=int(data.get("expiresIn") or 0),
        )


@dataclass(frozen=True)
class Session:
    """Authenticated credential bundle; replaced wholesale on refresh."""

    access_token: str
    refresh_token: str
    user: UserProfile
    expires_at: float

    @classmethod
    def from_auth_response(cls, response: AuthResponse, now: float | None = None) -> "Session":
        issued = time.time() if now is None else now
        return cls(
            access_token=response.token,
            refresh_token=response.refresh_token,
            user=response.user,
            expires_at=issued + response.expires_in,
        )

    def expires_within(self, seconds: float, now: float | None = None) -> bool:
        current = time.time() if now is None else now
        return self.expires_at - current < seconds


@dataclass(frozen=True)
class FilterOption:
    id: str
    label: str
    value: str | None = None


@dataclass(frozen=True)
class PageRequest:
    page: int = 0
    size: int = 20
    sort_by: str | None = None
    sort_dir: str = "ASC"

    def to_body(self) -> dict[str, Any]:
        """Query body; sortBy only when set."""
        body: dict[str, Any] = {
            "page": self.page,
            "size": self.size,
            "sortDir": (self.sort_dir or "ASC").upper(),
        }
        if self.sort_by and self.sort_by.strip():
            body["sortBy"] = self.sort_by.strip()
        return body


@dataclass
class Page:
    content: list[dict[str, Any]]
    page: int
    size: int
    total_elements: int
    total_pages: int
    first: bool = True
    last: bool = True
    has_next: bool = False
    has_previous: bool = False
    filters: dict[str, list[FilterOption]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Page":
        filters = {
            name: [FilterOption(id=o["id"], label=o["label"], value=o.get("value")) for o in options]
            for name, options in (data.get("filters") or {}).items()
        }
        return cls(
            content=list(data.get("content") or []),
            page=data.get("page", 0),
            size=data.get("size", 0),
            total_elements=data.get("totalElements", 0),
            total_pages=data.get("totalPages", 0),
            first=data.get("first", True),
            last=data.get("last", True),
            has_next=data.get("hasNext", False),
            has_previous=data.get("hasPrevious", False),
            filters=filters,
        )
