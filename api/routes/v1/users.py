"""
api/routes/v1/users.py -- User administration routes (admin only).

Routes:
  POST   /users             -- create a user (409 on duplicate username/email)
  GET    /users             -- list users, redacted
  GET    /users/count       -- count
  GET    /users/{user_id}   -- detail, redacted
  PUT    /users/{user_id}   -- partial update; a new password is re-hashed
  DELETE /users/{user_id}   -- delete; department responsibility is cleared

Password hashes and TOTP secrets never appear in a response: every payload
is built from PublicUser.
"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import IntegrityError

from api.models import CountResponse, SuccessResponse, UserCreate, UserOut, UserUpdate
from auth.dependencies import require_admin
from auth.models import AuthContext, PublicUser
from auth.store import UserStore
from core.errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger("assetapi.api")

router = APIRouter(dependencies=[Depends(require_admin)])


def _out(store: UserStore, user_id: int) -> UserOut:
    user = store.get_by_id(user_id)
    if user is None:
        raise NotFoundError("User not found.")
    return UserOut.from_public(PublicUser.from_user(user))


@router.post("/users", response_model=UserOut, status_code=201)
def create_user(request: Request, body: UserCreate, ctx: AuthContext = Depends(require_admin)) -> UserOut:
    store: UserStore = request.app.state.user_store
    try:
        user_id = store.create_user(
            username=body.username,
            email=str(body.email),
            password=body.password,
            role=body.role,
            profile_image=body.profile_image,
        )
    except IntegrityError as exc:
        raise ConflictError("Username or email already exists.") from exc
    logger.info("User created: id=%s role=%s by admin=%s", user_id, body.role.value, ctx.user.id)
    return _out(store, user_id)


@router.get("/users", response_model=list[UserOut])
def list_users(request: Request) -> list[UserOut]:
    return [UserOut.from_public(PublicUser.from_user(u)) for u in request.app.state.user_store.list_users()]


@router.get("/users/count", response_model=CountResponse)
def count_users(request: Request) -> CountResponse:
    return CountResponse(total=request.app.state.user_store.count_users())


@router.get("/users/{user_id}", response_model=UserOut)
def get_user(request: Request, user_id: int) -> UserOut:
    return _out(request.app.state.user_store, user_id)


@router.put("/users/{user_id}", response_model=UserOut)
def update_user(request: Request, user_id: int, body: UserUpdate) -> UserOut:
    fields = body.model_dump(exclude_unset=True)
    for required in ("username", "email", "password", "role"):
        if required in fields and fields[required] is None:
            raise ValidationError(f"{required} cannot be empty.")
    if not fields:
        raise ValidationError("No fields to update.")
    if "email" in fields:
        fields["email"] = str(fields["email"])

    store: UserStore = request.app.state.user_store
    try:
        updated = store.update_user(user_id, **fields)
    except IntegrityError as exc:
        raise ConflictError("Username or email already exists.") from exc
    if not updated:
        raise NotFoundError("User not found.")
    return _out(store, user_id)


@router.delete("/users/{user_id}", response_model=SuccessResponse)
def delete_user(request: Request, user_id: int, ctx: AuthContext = Depends(require_admin)) -> SuccessResponse:
    if user_id == ctx.user.id:
        raise ValidationError("You cannot delete your own account.")
    if not request.app.state.user_store.delete_user(user_id):
        raise NotFoundError("User not found.")
    request.app.state.inventory.clear_responsible(user_id)
    logger.info("User deleted: id=%s by admin=%s", user_id, ctx.user.id)
    return SuccessResponse(message="User deleted.")
