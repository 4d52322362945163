"""
SQLAlchemy models for the EMS API: users and account tokens, locations, departments,
employees, projects (with assignments), tasks, and the audit log.
Primary keys are UUID strings. to_dict() renders the camelCase wire shape.
"""
import uuid
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import Boolean, Date, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _uuid() -> str:
    return str(uuid.uuid4())


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    username: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    # bcrypt over the client-side SHA-256 pre-hash; None until an invited user activates
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="ACTIVE")  # ACTIVE | INVITED
    employee_id: Mapped[str | None] = mapped_column(ForeignKey("employees.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)
    last_login: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    employee: Mapped["Employee | None"] = relationship("Employee")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "employeeId": self.employee_id,
            "createdAt": _iso(self.created_at),
            "lastLogin": _iso(self.last_login),
        }


class AccountToken(Base):
    """Single-use invite or password-reset token. Only the SHA-256 of the token is stored."""
    __tablename__ = "account_tokens"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    purpose: Mapped[str] = mapped_column(String(16), nullable=False)  # invite | reset
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    used: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)

    user: Mapped["User"] = relationship("User")


class Location(Base):
    __tablename__ = "locations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    state: Mapped[str] = mapped_column(String(100), nullable=False)
    country: Mapped[str] = mapped_column(String(100), nullable=False)
    postal_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "country": self.country,
            "postalCode": self.postal_code,
        }


class Department(Base):
    __tablename__ = "departments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    location_id: Mapped[str | None] = mapped_column(ForeignKey("locations.id"), nullable=True)
    budget: Mapped[float | None] = mapped_column(Float, nullable=True)
    budget_utilization: Mapped[float | None] = mapped_column(Float, nullable=True)
    performance_metric: Mapped[float | None] = mapped_column(Float, nullable=True)
    # No FK: employees already reference departments
    head_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)

    location: Mapped["Location | None"] = relationship("Location")
    head: Mapped["Employee | None"] = relationship(
        "Employee",
        primaryjoin="foreign(Department.head_id) == Employee.id",
        viewonly=True,
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "locationId": self.location_id,
            "locationName": self.location.name if self.location else None,
            "budget": self.budget,
            "budgetUtilization": self.budget_utilization,
            "performanceMetric": self.performance_metric,
            "departmentHeadId": self.head_id,
            "departmentHeadName": self.head.full_name if self.head else None,
            "createdAt": _iso(self.created_at),
        }


class Employee(Base):
    __tablename__ = "employees"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    designation: Mapped[str] = mapped_column(String(100), nullable=False)
    salary: Mapped[float] = mapped_column(Float, nullable=False)
    joining_date: Mapped[date] = mapped_column(Date, nullable=False)
    location_id: Mapped[str | None] = mapped_column(ForeignKey("locations.id"), nullable=True)
    department_id: Mapped[str | None] = mapped_column(ForeignKey("departments.id"), nullable=True)
    manager_id: Mapped[str | None] = mapped_column(ForeignKey("employees.id"), nullable=True)
    performance_rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    work_location: Mapped[str | None] = mapped_column(String(100), nullable=True)
    experience_years: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)

    location: Mapped["Location | None"] = relationship("Location")
    department: Mapped["Department | None"] = relationship("Department", foreign_keys=[department_id])
    manager: Mapped["Employee | None"] = relationship("Employee", remote_side="Employee.id")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "designation": self.designation,
            "salary": self.salary,
            "joiningDate": _iso(self.joining_date),
            "locationId": self.location_id,
            "locationName": self.location.name if self.location else None,
            "departmentId": self.department_id,
            "departmentName": self.department.name if self.department else None,
            "managerId": self.manager_id,
            "managerName": self.manager.full_name if self.manager else None,
            "performanceRating": self.performance_rating,
            "workLocation": self.work_location,
            "experienceYears": self.experience_years,
        }


class EmployeeProject(Base):
    """Assignment of an employee to a project."""
    __tablename__ = "employee_projects"

    employee_id: Mapped[str] = mapped_column(ForeignKey("employees.id"), primary_key=True)
    project_id: Mapped[str] = mapped_column(ForeignKey("projects.id"), primary_key=True)
    role: Mapped[str | None] = mapped_column(String(100), nullable=True)
    assigned_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    employee: Mapped["Employee"] = relationship("Employee")
    project: Mapped["Project"] = relationship("Project")

    def to_dict(self) -> dict[str, Any]:
        return {
            "employeeId": self.employee_id,
            "projectId": self.project_id,
            "employeeName": self.employee.full_name if self.employee else None,
            "projectName": self.project.name if self.project else None,
            "role": self.role,
            "assignedDate": _iso(self.assigned_date),
        }


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="Planning")
    budget: Mapped[float | None] = mapped_column(Float, nullable=True)
    department_id: Mapped[str] = mapped_column(ForeignKey("departments.id"), nullable=False)
    project_manager_id: Mapped[str | None] = mapped_column(ForeignKey("employees.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)

    department: Mapped["Department"] = relationship("Department")
    project_manager: Mapped["Employee | None"] = relationship("Employee")
    tasks: Mapped[list["Task"]] = relationship("Task", back_populates="project", cascade="all, delete-orphan")

    def to_dict(self) -> dict[str, Any]:
        statuses = [t.status for t in self.tasks]
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "startDate": _iso(self.start_date),
            "endDate": _iso(self.end_date),
            "status": self.status,
            "budget": self.budget,
            "departmentId": self.department_id,
            "projectManagerId": self.project_manager_id,
            "department": {"id": self.department.id, "name": self.department.name} if self.department else None,
            "projectManager": (
                {
                    "id": self.project_manager.id,
                    "firstName": self.project_manager.first_name,
                    "lastName": self.project_manager.last_name,
                }
                if self.project_manager
                else None
            ),
            "taskCounts": {
                "open": statuses.count("Not Started"),
                "inProgress": statuses.count("In Progress"),
                "closed": statuses.count("Completed") + statuses.count("Cancelled"),
            },
        }


class Task(Base):
    __tablename__ = "tasks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="Not Started")
    priority: Mapped[str] = mapped_column(String(50), nullable=False, default="Medium")
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    completed_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    project_id: Mapped[str] = mapped_column(ForeignKey("projects.id"), nullable=False)
    assigned_to_id: Mapped[str | None] = mapped_column(ForeignKey("employees.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)

    project: Mapped["Project"] = relationship("Project", back_populates="tasks")
    assigned_to: Mapped["Employee | None"] = relationship("Employee")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "startDate": _iso(self.start_date),
            "dueDate": _iso(self.due_date),
            "completedDate": _iso(self.completed_date),
            "projectId": self.project_id,
            "projectName": self.project.name if self.project else None,
            "assignedToId": self.assigned_to_id,
            "assignedToName": self.assigned_to.full_name if self.assigned_to else None,
        }


class AuditLog(Base):
    """Audit log for security-relevant events. No tokens or passwords stored."""
    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    user_id: Mapped[str | None] = mapped_column(String(36), nullable=True)  # None = anonymous
    username: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    outcome: Mapped[str] = mapped_column(String(16), nullable=False)  # success | fail
