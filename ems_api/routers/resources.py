"""
CRUD endpoints for employees, departments, locations, projects and tasks.

One router factory serves every resource:
    GET    /{r}            paginated list (page, size, sortBy, sortDir query params)
    POST   /{r}            paginated query (JSON body), response includes filter options
    GET    /{r}/{id}
    POST   /{r}/create     201
    PUT    /{r}/{id}
    DELETE /{r}/{id}       204
plus GET /employees/search. Every handler checks the capability table first.
"""
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic.alias_generators import to_camel
from sqlalchemy import func, or_
from sqlalchemy.orm import Query, Session

from ems_api import accounts, ownership
from ems_api.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, PROJECT_STATUSES, TASK_PRIORITIES, TASK_STATUSES
from ems_api.database import get_db
from ems_api.deps import CurrentUser, authorize
from ems_api.errors import FieldValidationError
from ems_api.models import AccountToken, Department, Employee, EmployeeProject, Location, Project, Task, User
from ems_api.schemas import DepartmentIn, EmployeeIn, LocationIn, ProjectIn, QueryRequest, TaskIn
from ems_client.permissions import Action

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 20


@dataclass
class ResourceDef:
    name: str
    model: type
    schema: type
    label: str
    # camelCase sort key -> column
    sort_fields: dict[str, Any]
    default_sort: str
    # snake_case payload field -> referenced model
    references: dict[str, type] = field(default_factory=dict)
    # snake_case payload fields that must be unique
    unique: tuple[str, ...] = ()
    filters: Callable[[Session], dict[str, list[dict]]] | None = None
    after_create: Callable[[Session, Any], None] | None = None
    before_delete: Callable[[Session, Any], None] | None = None
    # narrows list and query results to the rows the user may see
    scope: Callable[[Session, User, Query], Query] | None = None


def _options(rows, label: Callable[[Any], str]) -> list[dict]:
    return [{"id": r.id, "label": label(r), "value": r.id} for r in rows]


def _values(values) -> list[dict]:
    return [{"id": v, "label": v, "value": v} for v in values]


def clamp_page(page: int | None, size: int | None) -> tuple[int, int]:
    """Negative pages become 0; size defaults to 20 and is clamped to 1..100."""
    page = max(page or 0, 0)
    if size is None:
        return page, DEFAULT_PAGE_SIZE
    return page, min(max(size, 1), MAX_PAGE_SIZE)


def _order_by(rd: ResourceDef, sort_by: str | None, sort_dir: str | None):
    key = (sort_by or "").strip() or rd.default_sort
    if "_" in key:
        key = to_camel(key)
    column = rd.sort_fields.get(key)
    if column is None:
        raise FieldValidationError("sortBy", f"Cannot sort {rd.name} by '{key}'", sort_by)
    direction = (sort_dir or "ASC").strip().upper()
    if direction not in ("ASC", "DESC"):
        raise FieldValidationError("sortDir", "Sort direction must be ASC or DESC", sort_dir)
    return column.desc() if direction == "DESC" else column.asc()


def paginate(
    db: Session,
    rd: ResourceDef,
    user: User,
    page: int | None,
    size: int | None,
    sort_by: str | None,
    sort_dir: str | None,
    with_filters: bool = False,
) -> dict:
    page, size = clamp_page(page, size)
    order = _order_by(rd, sort_by, sort_dir)
    query = db.query(rd.model)
    if rd.scope is not None:
        query = rd.scope(db, user, query)
    total = query.count()
    rows = query.order_by(order, *rd.model.__mapper__.primary_key).offset(page * size).limit(size).all()
    total_pages = math.ceil(total / size) if total else 0
    body = {
        "content": [r.to_dict() for r in rows],
        "page": page,
        "size": size,
        "totalElements": total,
        "totalPages": total_pages,
        "first": page == 0,
        "last": page >= total_pages - 1,
        "hasNext": page < total_pages - 1,
        "hasPrevious": page > 0,
    }
    if with_filters and rd.filters is not None:
        body["filters"] = rd.filters(db)
    return body


def _load(db: Session, rd: ResourceDef, item_id: str):
    entity = db.get(rd.model, item_id)
    if entity is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{rd.label} not found with id: {item_id}")
    return entity


def _check_payload(db: Session, rd: ResourceDef, payload: dict, current_id: str | None = None) -> None:
    for name, target in rd.references.items():
        value = payload.get(name)
        if value is not None and db.get(target, value) is None:
            raise FieldValidationError(to_camel(name), f"{target.__name__} not found", value)
    for name in rd.unique:
        column = getattr(rd.model, name)
        clash = db.query(rd.model).filter(column == payload.get(name))
        if current_id is not None:
            clash = clash.filter(rd.model.id != current_id)
        if clash.first() is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"{rd.label} with {to_camel(name)} '{payload.get(name)}' already exists",
            )


def build_router(rd: ResourceDef) -> APIRouter:
    router = APIRouter(prefix=f"/{rd.name}", tags=[rd.name])
    schema = rd.schema

    @router.get("")
    def list_page(
        user: CurrentUser,
        page: int = 0,
        size: int | None = None,
        sortBy: str | None = None,
        sortDir: str = "ASC",
        db: Session = Depends(get_db),
    ):
        authorize(user, rd.name, Action.LIST)
        return paginate(db, rd, user, page, size, sortBy, sortDir)

    @router.post("")
    def query(body: QueryRequest, user: CurrentUser, db: Session = Depends(get_db)):
        authorize(user, rd.name, Action.LIST)
        return paginate(db, rd, user, body.page, body.size, body.sort_by, body.sort_dir, with_filters=True)

    if rd.name == "employees":
        # Registered before /{item_id} so "search" is not taken for an id

        @router.get("/search")
        def search(
            user: CurrentUser,
            q: str = "",
            departmentId: str | None = None,
            excludeId: str | None = None,
            db: Session = Depends(get_db),
        ):
            authorize(user, rd.name, Action.LIST)
            return [e.to_dict() for e in search_employees(db, q, departmentId, excludeId)]

    @router.get("/{item_id}")
    def get_one(item_id: str, user: CurrentUser, db: Session = Depends(get_db)):
        entity = _load(db, rd, item_id)
        authorize(user, rd.name, Action.VIEW, ownership.for_existing(db, user, rd.name, entity))
        return entity.to_dict()

    @router.post("/create", status_code=status.HTTP_201_CREATED)
    def create(body: schema, user: CurrentUser, db: Session = Depends(get_db)):
        payload = body.model_dump()
        authorize(user, rd.name, Action.CREATE, ownership.for_new(db, user, rd.name, payload))
        _check_payload(db, rd, payload)
        entity = rd.model(**payload)
        db.add(entity)
        db.commit()
        if rd.after_create is not None:
            rd.after_create(db, entity)
        db.refresh(entity)
        logger.info("%s created %s %s", user.username, rd.label, entity.id)
        return entity.to_dict()

    @router.put("/{item_id}")
    def update(item_id: str, body: schema, user: CurrentUser, db: Session = Depends(get_db)):
        entity = _load(db, rd, item_id)
        authorize(user, rd.name, Action.UPDATE, ownership.for_existing(db, user, rd.name, entity))
        payload = body.model_dump()
        _check_payload(db, rd, payload, current_id=item_id)
        if rd.name == "employees" and payload.get("manager_id") == item_id:
            raise FieldValidationError("managerId", "Employee cannot be their own manager", item_id)
        for name, value in payload.items():
            setattr(entity, name, value)
        db.commit()
        db.refresh(entity)
        logger.info("%s updated %s %s", user.username, rd.label, item_id)
        return entity.to_dict()

    @router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete(item_id: str, user: CurrentUser, db: Session = Depends(get_db)):
        entity = _load(db, rd, item_id)
        authorize(user, rd.name, Action.DELETE, ownership.for_existing(db, user, rd.name, entity))
        if rd.before_delete is not None:
            rd.before_delete(db, entity)
        db.delete(entity)
        db.commit()
        logger.info("%s deleted %s %s", user.username, rd.label, item_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return router


def search_employees(db: Session, q: str, department_id: str | None, exclude_id: str | None) -> list[Employee]:
    """Case-insensitive match on first name, last name, full name or email."""
    query = db.query(Employee)
    term = (q or "").strip().lower()
    if term:
        pattern = f"%{term}%"
        full_name = func.lower(Employee.first_name + " " + Employee.last_name)
        query = query.filter(
            or_(
                func.lower(Employee.first_name).like(pattern),
                func.lower(Employee.last_name).like(pattern),
                func.lower(Employee.email).like(pattern),
                full_name.like(pattern),
            )
        )
    if department_id:
        query = query.filter(Employee.department_id == department_id)
    if exclude_id:
        query = query.filter(Employee.id != exclude_id)
    return query.order_by(Employee.first_name, Employee.last_name).limit(SEARCH_LIMIT).all()


# --- Delete rules ---


def _location_in_use(db: Session, location: Location) -> None:
    if db.query(Department).filter(Department.location_id == location.id).first() is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Location is still used by departments")
    if db.query(Employee).filter(Employee.location_id == location.id).first() is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Location is still used by employees")


def _department_in_use(db: Session, department: Department) -> None:
    if db.query(Employee).filter(Employee.department_id == department.id).first() is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Department still has employees")
    if db.query(Project).filter(Project.department_id == department.id).first() is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Department still has projects")


def _detach_employee(db: Session, employee: Employee) -> None:
    """Clear every reference to the employee; the linked user account is removed."""
    db.query(Employee).filter(Employee.manager_id == employee.id).update({Employee.manager_id: None})
    db.query(Department).filter(Department.head_id == employee.id).update({Department.head_id: None})
    db.query(Project).filter(Project.project_manager_id == employee.id).update({Project.project_manager_id: None})
    db.query(Task).filter(Task.assigned_to_id == employee.id).update({Task.assigned_to_id: None})
    db.query(EmployeeProject).filter(EmployeeProject.employee_id == employee.id).delete()
    for user in db.query(User).filter(User.employee_id == employee.id).all():
        db.query(AccountToken).filter(AccountToken.user_id == user.id).delete()
        db.delete(user)


def _delete_assignments(db: Session, project: Project) -> None:
    """Tasks go with the project (relationship cascade); assignments are removed here."""
    db.query(EmployeeProject).filter(EmployeeProject.project_id == project.id).delete()


def _invite(db: Session, employee: Employee) -> None:
    accounts.invite_employee(db, employee)


# --- Filter options ---


def _department_filters(db: Session) -> dict:
    return {"locations": _options(db.query(Location).order_by(Location.name).all(), lambda r: r.name)}


def _employee_filters(db: Session) -> dict:
    designations = sorted({row[0] for row in db.query(Employee.designation).distinct().all() if row[0]})
    return {
        "departments": _options(db.query(Department).order_by(Department.name).all(), lambda r: r.name),
        "locations": _options(db.query(Location).order_by(Location.name).all(), lambda r: r.name),
        "designations": _values(designations),
    }


def _location_filters(db: Session) -> dict:
    countries = sorted({row[0] for row in db.query(Location.country).distinct().all() if row[0]})
    return {"countries": _values(countries)}


def _project_filters(db: Session) -> dict:
    return {
        "departments": _options(db.query(Department).order_by(Department.name).all(), lambda r: r.name),
        "statuses": _values(PROJECT_STATUSES),
    }


def _task_filters(db: Session) -> dict:
    return {
        "projects": _options(db.query(Project).order_by(Project.name).all(), lambda r: r.name),
        "statuses": _values(TASK_STATUSES),
        "priorities": _values(TASK_PRIORITIES),
    }


RESOURCES = [
    ResourceDef(
        name="locations",
        model=Location,
        schema=LocationIn,
        label="Location",
        sort_fields={
            "name": Location.name,
            "city": Location.city,
            "state": Location.state,
            "country": Location.country,
            "postalCode": Location.postal_code,
            "createdAt": Location.created_at,
        },
        default_sort="name",
        filters=_location_filters,
        before_delete=_location_in_use,
    ),
    ResourceDef(
        name="departments",
        model=Department,
        schema=DepartmentIn,
        label="Department",
        sort_fields={
            "name": Department.name,
            "budget": Department.budget,
            "budgetUtilization": Department.budget_utilization,
            "performanceMetric": Department.performance_metric,
            "createdAt": Department.created_at,
        },
        default_sort="name",
        references={"location_id": Location, "head_id": Employee},
        unique=("name",),
        filters=_department_filters,
        before_delete=_department_in_use,
    ),
    ResourceDef(
        name="employees",
        model=Employee,
        schema=EmployeeIn,
        label="Employee",
        sort_fields={
            "firstName": Employee.first_name,
            "lastName": Employee.last_name,
            "email": Employee.email,
            "designation": Employee.designation,
            "salary": Employee.salary,
            "joiningDate": Employee.joining_date,
            "performanceRating": Employee.performance_rating,
            "experienceYears": Employee.experience_years,
            "createdAt": Employee.created_at,
        },
        default_sort="firstName",
        references={"location_id": Location, "department_id": Department, "manager_id": Employee},
        unique=("email",),
        filters=_employee_filters,
        after_create=_invite,
        before_delete=_detach_employee,
        scope=ownership.scope_employees,
    ),
    ResourceDef(
        name="projects",
        model=Project,
        schema=ProjectIn,
        label="Project",
        sort_fields={
            "name": Project.name,
            "startDate": Project.start_date,
            "endDate": Project.end_date,
            "status": Project.status,
            "budget": Project.budget,
            "createdAt": Project.created_at,
        },
        default_sort="name",
        references={"department_id": Department, "project_manager_id": Employee},
        filters=_project_filters,
        before_delete=_delete_assignments,
        scope=ownership.scope_projects,
    ),
    ResourceDef(
        name="tasks",
        model=Task,
        schema=TaskIn,
        label="Task",
        sort_fields={
            "name": Task.name,
            "status": Task.status,
            "priority": Task.priority,
            "startDate": Task.start_date,
            "dueDate": Task.due_date,
            "createdAt": Task.created_at,
        },
        default_sort="name",
        references={"project_id": Project, "assigned_to_id": Employee},
        filters=_task_filters,
        scope=ownership.scope_tasks,
    ),
]

routers = [build_router(rd) for rd in RESOURCES]
