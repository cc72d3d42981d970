"""
API request and response models for the Assets REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py and
inventory/models.py, which own the internal domain representation. Route
handlers map between the two.

Auth and user payloads are camelCase on the wire (accessToken,
twoFactorCode, ...); inventory payloads are snake_case. Both accept either
spelling on input (populate_by_name=True).

User responses are built only from auth.models.PublicUser, which has no
password hash or TOTP secret to leak.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from auth.models import PublicUser, Role

# bcrypt truncates beyond 72 bytes; refuse longer input instead.
_PASSWORD_MAX = 72


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Errors / health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str


class SuccessResponse(BaseModel):
    success: bool = True
    message: str = ""


class CountResponse(BaseModel):
    total: int


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserOut(_CamelModel):
    """Redacted user representation."""

    id: int
    username: str
    email: str
    role: Role
    two_factor_enabled: bool
    department_id: Optional[int] = None
    profile_image: Optional[str] = None
    created_at: str
    updated_at: str

    @classmethod
    def from_public(cls, user: PublicUser) -> "UserOut":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            role=user.role,
            two_factor_enabled=user.two_factor_enabled,
            department_id=user.department_id,
            profile_image=user.profile_image,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class UserCreate(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    username: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(min_length=6, max_length=_PASSWORD_MAX)
    role: Role = Role.admin
    profile_image: Optional[str] = Field(default=None, max_length=500)


class UserUpdate(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    username: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=6, max_length=_PASSWORD_MAX)
    role: Optional[Role] = None
    profile_image: Optional[str] = Field(default=None, max_length=500)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(_CamelModel):
    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=_PASSWORD_MAX)
    two_factor_code: Optional[str] = Field(default=None, max_length=10)


class LoginResponse(_CamelModel):
    access_token: str
    refresh_token: str
    expires_in: int
    user: UserOut


class TwoFactorRequiredResponse(_CamelModel):
    requires_two_factor: bool = True
    message: str = "Two-factor authentication code required."


class RefreshRequest(_CamelModel):
    refresh_token: str = Field(min_length=1)


class TokenResponse(_CamelModel):
    access_token: str
    refresh_token: str
    expires_in: int


class TwoFactorSetupResponse(_CamelModel):
    secret: str
    enrollment_uri: str = Field(alias="enrollmentURI")
    qr_code: str


class TwoFactorVerifyRequest(BaseModel):
    token: str = Field(min_length=1, max_length=10)


class TwoFactorDisableRequest(BaseModel):
    password: str = Field(min_length=1, max_length=_PASSWORD_MAX)


# ---------------------------------------------------------------------------
# Departments
# ---------------------------------------------------------------------------


class DepartmentCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    code: str = Field(min_length=1, max_length=50)
    responsible_id: Optional[int] = None


class DepartmentUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    code: Optional[str] = Field(default=None, min_length=1, max_length=50)
    responsible_id: Optional[int] = None


class DepartmentResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    code: str
    responsible_id: Optional[int]
    created_at: str
    updated_at: str


# ---------------------------------------------------------------------------
# Assets
# ---------------------------------------------------------------------------


class AssetCreate(BaseModel):
    """Request body for POST /api/v1/assets. Every field is required."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    code: str = Field(min_length=1, max_length=50)
    label: str = Field(min_length=1, max_length=100)
    initial_value: float = Field(ge=0)
    residual_value: float = Field(ge=0)
    accumulated_depreciation: float = Field(ge=0)
    department_id: int


class AssetUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    code: Optional[str] = Field(default=None, min_length=1, max_length=50)
    label: Optional[str] = Field(default=None, min_length=1, max_length=100)
    initial_value: Optional[float] = Field(default=None, ge=0)
    residual_value: Optional[float] = Field(default=None, ge=0)
    accumulated_depreciation: Optional[float] = Field(default=None, ge=0)
    department_id: Optional[int] = None


class AssetDepartment(BaseModel):
    """Owning department summary embedded in asset reads."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    code: str


class AssetResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    code: str
    label: str
    initial_value: float
    residual_value: float
    accumulated_depreciation: float
    department_id: Optional[int]
    department: Optional[AssetDepartment] = None
    created_at: str
    updated_at: str
