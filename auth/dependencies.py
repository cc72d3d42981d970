"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication and authorization.

authenticate(*roles) builds the per-request guard used by every protected
route:
  1. Authorization: Bearer <token> must be present          -> else 401
  2. the access token must verify (signature, expiry, type) -> else 401
     ("Token expired." vs "Invalid token." -- same status)
  3. the user is re-loaded by id from the credential store  -> else 401
  4. if roles were given, the live role must be one of them -> else 403
  5. an AuthContext(user, role, department_id) is attached to
     request.state.auth and returned

Department scoping for assets sits on top of that:
  require_asset_access   -- path-id routes (GET/PUT/DELETE /assets/{asset_id})
  ensure_department_scope -- body-level check for create/move

admin bypasses department scoping entirely. A responsible user may only touch
assets whose department_id equals their own; a responsible user with no
department gets 403 for every asset operation.

Layer rule: no imports from api/ or inventory/. Stores and the token issuer
are reached through request.app.state.
"""

from __future__ import annotations

from typing import Callable, Optional

from fastapi import Depends, Request

from auth.errors import ExpiredTokenError, InvalidTokenError
from auth.models import AuthContext, Role
from core.errors import ForbiddenError, NotFoundError, UnauthenticatedError

_BEARER_PREFIX = "Bearer "


def _bearer_token(request: Request) -> str:
    header = request.headers.get("Authorization", "")
    if not header.startswith(_BEARER_PREFIX):
        raise UnauthenticatedError("Authentication token not provided.")
    token = header[len(_BEARER_PREFIX):].strip()
    if not token:
        raise UnauthenticatedError("Authentication token not provided.")
    return token


def authenticate(*roles: Role | str) -> Callable[[Request], AuthContext]:
    """Return a dependency that authenticates the request and enforces roles.

    An empty role list means "any authenticated user". Role comparison is
    case-insensitive.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(ctx: AuthContext = Depends(authenticate(Role.admin))): ...
    """
    allowed = {Role(r).value if isinstance(r, Role) else r.strip().lower() for r in roles}

    def dependency(request: Request) -> AuthContext:
        token = _bearer_token(request)
        try:
            claims = request.app.state.token_issuer.verify_access(token)
        except ExpiredTokenError as exc:
            raise UnauthenticatedError("Token expired.") from exc
        except InvalidTokenError as exc:
            raise UnauthenticatedError("Invalid token.") from exc

        user = request.app.state.user_store.get_by_id(claims.user_id)
        if user is None:
            raise UnauthenticatedError("User no longer exists.")

        if allowed and user.role.value.lower() not in allowed:
            raise ForbiddenError("Insufficient role for this action.")

        ctx = AuthContext(user=user, role=user.role, department_id=user.department_id)
        request.state.auth = ctx
        return ctx

    return dependency


# Shared instances so route modules do not rebuild the closure per route.
require_user = authenticate()
require_admin = authenticate(Role.admin)
require_asset_roles = authenticate(Role.admin, Role.responsible)


def ensure_department_scope(ctx: AuthContext, department_id: Optional[int]) -> None:
    """Raise ForbiddenError unless ctx may act on department_id.

    admin: always allowed. responsible: must have a department, and it must
    match.
    """
    if ctx.is_admin:
        return
    if ctx.department_id is None:
        raise ForbiddenError("No department assigned.")
    if department_id != ctx.department_id:
        raise ForbiddenError("You may only manage assets of your own department.")


def require_asset_access(asset_id: int, request: Request, ctx: AuthContext = Depends(require_asset_roles)):
    """Load the asset named in the path and apply department scoping.

    Returns the Asset for the handler. 404 if it does not exist, 403 if a
    responsible user reaches outside their department.
    """
    if not ctx.is_admin and ctx.department_id is None:
        raise ForbiddenError("No department assigned.")
    asset = request.app.state.inventory.get_asset(asset_id)
    if asset is None:
        raise NotFoundError("Asset not found.")
    ensure_department_scope(ctx, asset.department_id)
    return asset
