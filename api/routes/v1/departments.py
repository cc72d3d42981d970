"""
api/routes/v1/departments.py -- Department management routes.

Routes:
  POST   /departments                  -- create (admin)
  GET    /departments                  -- list (any authenticated user)
  GET    /departments/count            -- count (any authenticated user)
  GET    /departments/{department_id}  -- detail (any authenticated user)
  PUT    /departments/{department_id}  -- partial update (admin)
  DELETE /departments/{department_id}  -- delete; its assets are detached (admin)

A department's responsible_id is what gives a responsible user their asset
scope, so it must point at an existing user.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import IntegrityError

from api.models import CountResponse, DepartmentCreate, DepartmentResponse, DepartmentUpdate, SuccessResponse
from auth.dependencies import require_admin, require_user
from core.errors import ConflictError, NotFoundError, ValidationError
from inventory.models import Department
from inventory.store import InventoryStore

router = APIRouter(dependencies=[Depends(require_user)])


def _to_response(dept: Department) -> DepartmentResponse:
    return DepartmentResponse(
        id=dept.id,
        name=dept.name,
        code=dept.code,
        responsible_id=dept.responsible_id,
        created_at=dept.created_at,
        updated_at=dept.updated_at,
    )


def _check_responsible(request: Request, responsible_id: Optional[int]) -> None:
    if responsible_id is not None and request.app.state.user_store.get_by_id(responsible_id) is None:
        raise NotFoundError("Responsible user not found.")


@router.post("/departments", response_model=DepartmentResponse, status_code=201, dependencies=[Depends(require_admin)])
def create_department(request: Request, body: DepartmentCreate) -> DepartmentResponse:
    _check_responsible(request, body.responsible_id)
    inventory: InventoryStore = request.app.state.inventory
    try:
        dept_id = inventory.create_department(
            Department(name=body.name, code=body.code, responsible_id=body.responsible_id)
        )
    except IntegrityError as exc:
        raise ConflictError("Department code already exists.") from exc
    return _to_response(inventory.get_department(dept_id))


@router.get("/departments", response_model=list[DepartmentResponse])
def list_departments(request: Request) -> list[DepartmentResponse]:
    return [_to_response(d) for d in request.app.state.inventory.list_departments()]


@router.get("/departments/count", response_model=CountResponse)
def count_departments(request: Request) -> CountResponse:
    return CountResponse(total=request.app.state.inventory.count_departments())


@router.get("/departments/{department_id}", response_model=DepartmentResponse)
def get_department(request: Request, department_id: int) -> DepartmentResponse:
    dept = request.app.state.inventory.get_department(department_id)
    if dept is None:
        raise NotFoundError("Department not found.")
    return _to_response(dept)


@router.put("/departments/{department_id}", response_model=DepartmentResponse, dependencies=[Depends(require_admin)])
def update_department(request: Request, department_id: int, body: DepartmentUpdate) -> DepartmentResponse:
    fields = body.model_dump(exclude_unset=True)
    if not fields:
        raise ValidationError("No fields to update.")
    for required in ("name", "code"):
        if required in fields and fields[required] is None:
            raise ValidationError(f"{required} cannot be empty.")
    _check_responsible(request, fields.get("responsible_id"))

    inventory: InventoryStore = request.app.state.inventory
    try:
        updated = inventory.update_department(department_id, **fields)
    except IntegrityError as exc:
        raise ConflictError("Department code already exists.") from exc
    if not updated:
        raise NotFoundError("Department not found.")
    return _to_response(inventory.get_department(department_id))


@router.delete("/departments/{department_id}", response_model=SuccessResponse, dependencies=[Depends(require_admin)])
def delete_department(request: Request, department_id: int) -> SuccessResponse:
    if not request.app.state.inventory.delete_department(department_id):
        raise NotFoundError("Department not found.")
    return SuccessResponse(message="Department deleted.")
