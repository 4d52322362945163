"""
Ownership facts for conditional permissions. A department manager owns the
departments they head (and everything in them); an employee owns their own record
and the projects and tasks they are assigned to.
"""
from sqlalchemy import false, select
from sqlalchemy.orm import Query, Session

from ems_api.models import Department, Employee, EmployeeProject, Project, Task, User
from ems_client.models import ADMIN_ROLES, UserRole
from ems_client.permissions import Ownership


def headed_department_ids(db: Session, user: User) -> set[str]:
    if not user.employee_id:
        return set()
    rows = db.query(Department.id).filter(Department.head_id == user.employee_id).all()
    return {row[0] for row in rows}


def for_department(db: Session, user: User, department_id: str | None) -> Ownership:
    return Ownership(own_department=department_id in headed_department_ids(db, user))


def for_employee(db: Session, user: User, employee: Employee) -> Ownership:
    return Ownership(
        own_record=user.employee_id is not None and employee.id == user.employee_id,
        own_department=employee.department_id in headed_department_ids(db, user),
    )


def for_project(db: Session, user: User, department_id: str | None, project_id: str | None = None) -> Ownership:
    assigned = False
    if project_id and user.employee_id:
        assigned = db.get(EmployeeProject, (user.employee_id, project_id)) is not None
    return Ownership(
        own_department=department_id in headed_department_ids(db, user),
        assigned=assigned,
    )


def for_task(db: Session, user: User, project_id: str | None, assigned_to_id: str | None) -> Ownership:
    project = db.get(Project, project_id) if project_id else None
    return Ownership(
        own_department=project is not None and project.department_id in headed_department_ids(db, user),
        assigned=user.employee_id is not None and assigned_to_id == user.employee_id,
    )


def for_existing(db: Session, user: User, resource: str, entity) -> Ownership | None:
    """Ownership of a stored entity, by resource name."""
    if resource == "departments":
        return for_department(db, user, entity.id)
    if resource == "employees":
        return for_employee(db, user, entity)
    if resource == "projects":
        return for_project(db, user, entity.department_id, entity.id)
    if resource == "tasks":
        task: Task = entity
        return for_task(db, user, task.project_id, task.assigned_to_id)
    return None


def for_new(db: Session, user: User, resource: str, payload: dict) -> Ownership | None:
    """Ownership of an entity about to be created, from its snake_case fields."""
    if resource == "projects":
        return for_project(db, user, payload.get("department_id"))
    if resource == "tasks":
        return for_task(db, user, payload.get("project_id"), payload.get("assigned_to_id"))
    return None


def for_assignment(db: Session, user: User, employee_id: str | None, project_id: str | None) -> Ownership:
    """Own record is the user's own assignment; own department is a project in a headed department."""
    project = db.get(Project, project_id) if project_id else None
    return Ownership(
        own_record=user.employee_id is not None and employee_id == user.employee_id,
        own_department=project is not None and project.department_id in headed_department_ids(db, user),
    )


# --- List scoping ---
# System and HR administrators list everything. A department manager lists rows in the
# departments they head; an employee lists their own rows. Departments and locations
# are not scoped.


def _unrestricted(user: User) -> bool:
    return UserRole(user.role) in ADMIN_ROLES


def scope_employees(db: Session, user: User, query: Query) -> Query:
    if _unrestricted(user):
        return query
    if user.role == UserRole.DEPARTMENT_MANAGER.value:
        return query.filter(Employee.department_id.in_(headed_department_ids(db, user)))
    if not user.employee_id:
        return query.filter(false())
    return query.filter(Employee.id == user.employee_id)


def scope_projects(db: Session, user: User, query: Query) -> Query:
    if _unrestricted(user):
        return query
    if user.role == UserRole.DEPARTMENT_MANAGER.value:
        return query.filter(Project.department_id.in_(headed_department_ids(db, user)))
    if not user.employee_id:
        return query.filter(false())
    assigned = select(EmployeeProject.project_id).where(EmployeeProject.employee_id == user.employee_id)
    return query.filter(Project.id.in_(assigned))


def scope_tasks(db: Session, user: User, query: Query) -> Query:
    if _unrestricted(user):
        return query
    if user.role == UserRole.DEPARTMENT_MANAGER.value:
        in_headed = select(Project.id).where(Project.department_id.in_(headed_department_ids(db, user)))
        return query.filter(Task.project_id.in_(in_headed))
    if not user.employee_id:
        return query.filter(false())
    return query.filter(Task.assigned_to_id == user.employee_id)


def scope_assignments(db: Session, user: User, query: Query) -> Query:
    if _unrestricted(user):
        return query
    if user.role == UserRole.DEPARTMENT_MANAGER.value:
        in_headed = select(Project.id).where(Project.department_id.in_(headed_department_ids(db, user)))
        return query.filter(EmployeeProject.project_id.in_(in_headed))
    if not user.employee_id:
        return query.filter(false())
    return query.filter(EmployeeProject.employee_id == user.employee_id)
