"""
api/routes/v1/auth.py -- Authentication and two-factor REST endpoints.

Routes:
  POST /api/v1/auth/login        -- email + password (+ twoFactorCode); token pair
  POST /api/v1/auth/refresh      -- exchange refresh token for a new pair
  POST /api/v1/auth/logout       -- bookkeeping only (requires auth)
  GET  /api/v1/auth/me           -- current user, redacted (requires auth)
  POST /api/v1/auth/2fa/setup    -- new pending TOTP secret + QR (requires auth)
  POST /api/v1/auth/2fa/verify   -- confirm the pending secret, enables 2FA
  POST /api/v1/auth/2fa/disable  -- password re-check, disables 2FA

Security:
  Login returns the same "invalid_credentials" error for unknown email and
  wrong password. Login with 2FA enabled and no code answers 200
  {"requiresTwoFactor": true} and issues no tokens.
  Cache-Control: no-store on every response that carries tokens or secrets.
  Errors are raised as core.errors.AppError subclasses and rendered by the
  handler in api/main.py.
"""

from __future__ import annotations

from typing import Union

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import (
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    SuccessResponse,
    TokenResponse,
    TwoFactorDisableRequest,
    TwoFactorRequiredResponse,
    TwoFactorSetupResponse,
    TwoFactorVerifyRequest,
    UserOut,
)
from auth.dependencies import require_user
from auth.models import AuthContext, TwoFactorChallenge
from auth.service import AuthService

# Auth policy:
# - POST /auth/login, /auth/refresh: public
# - everything else: any authenticated user (require_user)
router = APIRouter()


def _service(request: Request) -> AuthService:
    return request.app.state.auth_service


def _no_store(payload: dict) -> JSONResponse:
    resp = JSONResponse(status_code=200, content=payload)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/auth/login",
    response_model=Union[LoginResponse, TwoFactorRequiredResponse],
    responses={401: {"description": "Invalid credentials or two-factor code"}},
)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password.

    When the account has 2FA enabled, call once without twoFactorCode to get
    {"requiresTwoFactor": true}, then again with the code.
    """
    result = _service(request).login(body.email, body.password, body.two_factor_code)
    if isinstance(result, TwoFactorChallenge):
        return _no_store(TwoFactorRequiredResponse().model_dump(by_alias=True))
    return _no_store(
        LoginResponse(
            access_token=result.tokens.access_token,
            refresh_token=result.tokens.refresh_token,
            expires_in=result.tokens.expires_in,
            user=UserOut.from_public(result.user),
        ).model_dump(mode="json", by_alias=True)
    )


@router.post("/auth/refresh", response_model=TokenResponse)
def refresh(request: Request, body: RefreshRequest) -> JSONResponse:
    """Exchange a refresh token for a fresh access + refresh pair.

    The previous refresh token is not revoked; it stays valid until expiry.
    """
    pair = _service(request).refresh(body.refresh_token)
    return _no_store(
        TokenResponse(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            expires_in=pair.expires_in,
        ).model_dump(by_alias=True)
    )


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout", response_model=SuccessResponse)
def logout(request: Request, ctx: AuthContext = Depends(require_user)) -> SuccessResponse:
    """End the session client-side. Tokens are not revoked server-side."""
    _service(request).logout(ctx.user.id)
    return SuccessResponse(message="Logged out.")


@router.get("/auth/me", response_model=UserOut)
def me(request: Request, ctx: AuthContext = Depends(require_user)) -> UserOut:
    """Return the currently authenticated user."""
    return UserOut.from_public(_service(request).get_session(ctx.user.id))


@router.post("/auth/2fa/setup", response_model=TwoFactorSetupResponse)
def setup_two_factor(request: Request, ctx: AuthContext = Depends(require_user)) -> JSONResponse:
    """Generate a pending TOTP secret. 2FA stays disabled until /2fa/verify succeeds."""
    enrollment = _service(request).setup_two_factor(ctx.user.id)
    return _no_store(
        TwoFactorSetupResponse(
            secret=enrollment.secret,
            enrollment_uri=enrollment.enrollment_uri,
            qr_code=enrollment.qr_code,
        ).model_dump(by_alias=True)
    )


@router.post("/auth/2fa/verify", response_model=SuccessResponse)
def verify_two_factor(
    request: Request,
    body: TwoFactorVerifyRequest,
    ctx: AuthContext = Depends(require_user),
) -> SuccessResponse:
    """Confirm the pending secret with a current code and enable 2FA."""
    _service(request).verify_and_enable_two_factor(ctx.user.id, body.token)
    return SuccessResponse(message="Two-factor authentication enabled.")


@router.post("/auth/2fa/disable", response_model=SuccessResponse)
def disable_two_factor(
    request: Request,
    body: TwoFactorDisableRequest,
    ctx: AuthContext = Depends(require_user),
) -> SuccessResponse:
    """Disable 2FA after re-confirming the account password."""
    _service(request).disable_two_factor(ctx.user.id, body.password)
    return SuccessResponse(message="Two-factor authentication disabled.")
