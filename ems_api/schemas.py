"""
Request bodies. camelCase on the wire, snake_case attributes.
"""
from datetime import date

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from ems_api.config import PROJECT_STATUSES, TASK_PRIORITIES, TASK_STATUSES
from ems_client.models import UserRole


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Auth ---


class LoginRequest(CamelModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class RefreshRequest(CamelModel):
    refresh_token: str = Field(min_length=1)


class RegisterRequest(CamelModel):
    username: str = Field(min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(min_length=1)
    role: UserRole = UserRole.EMPLOYEE

    @field_validator("role", mode="before")
    @classmethod
    def _role(cls, value):
        role = UserRole.from_value(value)
        if role is None:
            raise ValueError("Invalid role")
        return role


class ActivateRequest(CamelModel):
    token: str = Field(min_length=1)
    password: str = Field(min_length=1)


class ForgotPasswordRequest(CamelModel):
    email: EmailStr


class ResetPasswordRequest(CamelModel):
    token: str = Field(min_length=1)
    password: str = Field(min_length=1)


# --- Queries ---


class QueryRequest(CamelModel):
    page: int = 0
    size: int | None = None
    sort_by: str | None = None
    sort_dir: str = "ASC"


# --- Resources ---


class LocationIn(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    address: str | None = Field(default=None, max_length=255)
    city: str = Field(min_length=1, max_length=100)
    state: str = Field(min_length=1, max_length=100)
    country: str = Field(min_length=1, max_length=100)
    postal_code: str | None = Field(default=None, max_length=20)


class DepartmentIn(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    location_id: str | None = None
    budget: float | None = Field(default=None, ge=0)
    budget_utilization: float | None = Field(default=None, ge=0, le=1)
    performance_metric: float | None = Field(default=None, ge=0, le=100)
    # The UI sends departmentHeadId
    head_id: str | None = Field(default=None, alias="departmentHeadId")


class EmployeeIn(CamelModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    phone: str | None = Field(default=None, max_length=32)
    address: str | None = Field(default=None, max_length=255)
    designation: str = Field(min_length=1, max_length=100)
    salary: float = Field(ge=0)
    joining_date: date
    location_id: str | None = None
    department_id: str | None = None
    manager_id: str | None = None
    performance_rating: float | None = Field(default=None, ge=0, le=5)
    work_location: str | None = Field(default=None, max_length=100)
    experience_years: int | None = Field(default=None, ge=0)


class ProjectIn(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    start_date: date
    end_date: date | None = None
    status: str = "Planning"
    budget: float | None = Field(default=None, ge=0)
    department_id: str
    project_manager_id: str | None = None

    @field_validator("status")
    @classmethod
    def _status(cls, value: str) -> str:
        if value not in PROJECT_STATUSES:
            raise ValueError(f"Status must be one of: {', '.join(PROJECT_STATUSES)}")
        return value


class TaskIn(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    status: str = "Not Started"
    priority: str = "Medium"
    start_date: date
    due_date: date | None = None
    completed_date: date | None = None
    project_id: str
    assigned_to_id: str | None = None

    @field_validator("status")
    @classmethod
    def _status(cls, value: str) -> str:
        if value not in TASK_STATUSES:
            raise ValueError(f"Status must be one of: {', '.join(TASK_STATUSES)}")
        return value

    @field_validator("priority")
    @classmethod
    def _priority(cls, value: str) -> str:
        if value not in TASK_PRIORITIES:
            raise ValueError(f"Priority must be one of: {', '.join(TASK_PRIORITIES)}")
        return value


class AssignmentIn(CamelModel):
    employee_id: str = Field(min_length=1)
    project_id: str = Field(min_length=1)
    role: str | None = Field(default=None, max_length=100)
    assigned_date: date | None = None
