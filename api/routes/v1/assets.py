"""
api/routes/v1/assets.py -- Asset inventory routes.

Routes (count before {asset_id} to avoid FastAPI path capture conflicts):
  POST   /assets              -- create asset (department-scoped)
  GET    /assets              -- list; responsible users see only their department
  GET    /assets/count        -- count, scoped the same way
  GET    /assets/{asset_id}   -- detail (department-scoped)
  PUT    /assets/{asset_id}   -- partial update (department-scoped, no moving out)
  DELETE /assets/{asset_id}   -- hard delete (department-scoped)

Roles: admin and responsible. admin bypasses department scoping; the rules
for responsible users live in auth/dependencies.py.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request

from api.models import AssetCreate, AssetDepartment, AssetResponse, AssetUpdate, CountResponse, SuccessResponse
from auth.dependencies import ensure_department_scope, require_asset_access, require_asset_roles
from auth.models import AuthContext
from core.errors import ForbiddenError, NotFoundError, ValidationError
from inventory.models import Asset, Department
from inventory.store import InventoryStore

router = APIRouter(dependencies=[Depends(require_asset_roles)])


def _summary(department: Optional[Department]) -> Optional[AssetDepartment]:
    if department is None:
        return None
    return AssetDepartment(id=department.id, name=department.name, code=department.code)


def _to_response(asset: Asset, department: Optional[Department]) -> AssetResponse:
    return AssetResponse(
        id=asset.id,
        name=asset.name,
        code=asset.code,
        label=asset.label,
        initial_value=asset.initial_value,
        residual_value=asset.residual_value,
        accumulated_depreciation=asset.accumulated_depreciation,
        department_id=asset.department_id,
        department=_summary(department),
        created_at=asset.created_at,
        updated_at=asset.updated_at,
    )


def _with_department(inventory: InventoryStore, asset: Asset) -> AssetResponse:
    department = inventory.get_department(asset.department_id) if asset.department_id is not None else None
    return _to_response(asset, department)


def _list_scope(ctx: AuthContext):
    """Department filter for list/count: None for admin, own department otherwise."""
    if ctx.is_admin:
        return None
    if ctx.department_id is None:
        raise ForbiddenError("No department assigned.")
    return ctx.department_id


# ---------------------------------------------------------------------------
# POST /assets
# ---------------------------------------------------------------------------


@router.post("/assets", response_model=AssetResponse, status_code=201)
def create_asset(
    request: Request,
    body: AssetCreate,
    ctx: AuthContext = Depends(require_asset_roles),
) -> AssetResponse:
    """Register a new asset. A responsible user may only create in their own department."""
    ensure_department_scope(ctx, body.department_id)
    inventory: InventoryStore = request.app.state.inventory
    if inventory.get_department(body.department_id) is None:
        raise ValidationError("Department does not exist.")
    asset_id = inventory.create_asset(
        Asset(
            name=body.name,
            code=body.code,
            label=body.label,
            initial_value=body.initial_value,
            residual_value=body.residual_value,
            accumulated_depreciation=body.accumulated_depreciation,
            department_id=body.department_id,
        )
    )
    return _with_department(inventory, inventory.get_asset(asset_id))


# ---------------------------------------------------------------------------
# GET /assets, GET /assets/count
# ---------------------------------------------------------------------------


@router.get("/assets", response_model=list[AssetResponse])
def list_assets(request: Request, ctx: AuthContext = Depends(require_asset_roles)) -> list[AssetResponse]:
    inventory: InventoryStore = request.app.state.inventory
    assets = inventory.list_assets(department_id=_list_scope(ctx))
    departments = {d.id: d for d in inventory.list_departments()}
    return [_to_response(a, departments.get(a.department_id)) for a in assets]


@router.get("/assets/count", response_model=CountResponse)
def count_assets(request: Request, ctx: AuthContext = Depends(require_asset_roles)) -> CountResponse:
    inventory: InventoryStore = request.app.state.inventory
    return CountResponse(total=inventory.count_assets(department_id=_list_scope(ctx)))


# ---------------------------------------------------------------------------
# /assets/{asset_id}
# ---------------------------------------------------------------------------


@router.get("/assets/{asset_id}", response_model=AssetResponse)
def get_asset(request: Request, asset: Asset = Depends(require_asset_access)) -> AssetResponse:
    return _with_department(request.app.state.inventory, asset)


@router.put("/assets/{asset_id}", response_model=AssetResponse)
def update_asset(
    request: Request,
    body: AssetUpdate,
    asset: Asset = Depends(require_asset_access),
    ctx: AuthContext = Depends(require_asset_roles),
) -> AssetResponse:
    """Update an asset. Moving it to another department is subject to the same scope rule."""
    fields = body.model_dump(exclude_unset=True)
    inventory: InventoryStore = request.app.state.inventory
    for name, value in fields.items():
        if value is None:
            raise ValidationError(f"{name} cannot be cleared.")
    if "department_id" in fields:
        ensure_department_scope(ctx, fields["department_id"])
        if inventory.get_department(fields["department_id"]) is None:
            raise ValidationError("Department does not exist.")
    if not fields:
        raise ValidationError("No fields to update.")
    if not inventory.update_asset(asset.id, **fields):
        raise NotFoundError("Asset not found.")
    return _with_department(inventory, inventory.get_asset(asset.id))


@router.delete("/assets/{asset_id}", response_model=SuccessResponse)
def delete_asset(request: Request, asset: Asset = Depends(require_asset_access)) -> SuccessResponse:
    inventory: InventoryStore = request.app.state.inventory
    if not inventory.delete_asset(asset.id):
        raise NotFoundError("Asset not found.")
    return SuccessResponse(message="Asset deleted.")
