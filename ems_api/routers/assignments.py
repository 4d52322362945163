"""
Employee-project assignments under /api/employee-projects, keyed by (employeeId, projectId).
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from ems_api import ownership
from ems_api.database import get_db
from ems_api.deps import CurrentUser, authorize
from ems_api.errors import FieldValidationError
from ems_api.models import Employee, EmployeeProject, Project
from ems_api.routers.resources import ResourceDef, paginate
from ems_api.schemas import AssignmentIn, QueryRequest
from ems_client.permissions import Action

logger = logging.getLogger(__name__)

RESOURCE = "employee-projects"

ASSIGNMENTS = ResourceDef(
    name=RESOURCE,
    model=EmployeeProject,
    schema=AssignmentIn,
    label="Assignment",
    sort_fields={
        "assignedDate": EmployeeProject.assigned_date,
        "role": EmployeeProject.role,
        "employeeId": EmployeeProject.employee_id,
        "projectId": EmployeeProject.project_id,
    },
    default_sort="assignedDate",
    scope=ownership.scope_assignments,
)

router = APIRouter(prefix=f"/{RESOURCE}", tags=[RESOURCE])


def _check_references(db: Session, body: AssignmentIn) -> None:
    if db.get(Employee, body.employee_id) is None:
        raise FieldValidationError("employeeId", "Employee not found", body.employee_id)
    if db.get(Project, body.project_id) is None:
        raise FieldValidationError("projectId", "Project not found", body.project_id)


def _load(db: Session, employee_id: str, project_id: str) -> EmployeeProject:
    assignment = db.get(EmployeeProject, (employee_id, project_id))
    if assignment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assignment not found")
    return assignment


@router.get("")
def list_page(
    user: CurrentUser,
    page: int = 0,
    size: int | None = None,
    sortBy: str | None = None,
    sortDir: str = "ASC",
    db: Session = Depends(get_db),
):
    authorize(user, RESOURCE, Action.LIST)
    return paginate(db, ASSIGNMENTS, user, page, size, sortBy, sortDir)


@router.post("")
def query(body: QueryRequest, user: CurrentUser, db: Session = Depends(get_db)):
    authorize(user, RESOURCE, Action.LIST)
    return paginate(db, ASSIGNMENTS, user, body.page, body.size, body.sort_by, body.sort_dir)


@router.get("/{employee_id}/{project_id}")
def get_one(employee_id: str, project_id: str, user: CurrentUser, db: Session = Depends(get_db)):
    """null when the pair is not assigned; callers use this as an existence check."""
    authorize(user, RESOURCE, Action.VIEW, ownership.for_assignment(db, user, employee_id, project_id))
    assignment = db.get(EmployeeProject, (employee_id, project_id))
    return assignment.to_dict() if assignment is not None else None


@router.post("/create", status_code=status.HTTP_201_CREATED)
def create(body: AssignmentIn, user: CurrentUser, db: Session = Depends(get_db)):
    authorize(user, RESOURCE, Action.CREATE, ownership.for_assignment(db, user, body.employee_id, body.project_id))
    _check_references(db, body)
    if db.get(EmployeeProject, (body.employee_id, body.project_id)) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Employee is already assigned to this project")
    assignment = EmployeeProject(**body.model_dump())
    db.add(assignment)
    db.commit()
    db.refresh(assignment)
    logger.info("%s assigned employee %s to project %s", user.username, body.employee_id, body.project_id)
    return assignment.to_dict()


@router.put("/{employee_id}/{project_id}")
def update(employee_id: str, project_id: str, body: AssignmentIn, user: CurrentUser, db: Session = Depends(get_db)):
    authorize(user, RESOURCE, Action.UPDATE, ownership.for_assignment(db, user, employee_id, project_id))
    assignment = _load(db, employee_id, project_id)
    if (body.employee_id, body.project_id) != (employee_id, project_id):
        raise FieldValidationError("projectId", "Assignment keys cannot be changed", body.project_id)
    assignment.role = body.role
    assignment.assigned_date = body.assigned_date
    db.commit()
    db.refresh(assignment)
    return assignment.to_dict()


@router.delete("/{employee_id}/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete(employee_id: str, project_id: str, user: CurrentUser, db: Session = Depends(get_db)):
    authorize(user, RESOURCE, Action.DELETE, ownership.for_assignment(db, user, employee_id, project_id))
    db.delete(_load(db, employee_id, project_id))
    db.commit()
    logger.info("%s removed employee %s from project %s", user.username, employee_id, project_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
