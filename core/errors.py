"""
core/errors.py -- Application error taxonomy.

Every user-facing failure is an AppError carrying a stable machine-readable
code, an HTTP status and a human message. api/main.py registers one exception
handler for AppError that renders the standard error envelope:

    {"error": {"code": "...", "message": "...", "detail": null}}

Stores and services raise these; route handlers let them propagate.

Layer rule: core/ is the kernel. No imports from api/, auth/, or inventory/.
"""

from __future__ import annotations

from typing import Optional


class AppError(Exception):
    """Base class for errors that map to an HTTP response."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        detail: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.detail = detail


class ValidationError(AppError):
    """Missing or malformed input (400)."""

    status_code = 400
    code = "validation_error"


class UnauthenticatedError(AppError):
    """Missing, invalid or expired credentials (401)."""

    status_code = 401
    code = "unauthenticated"


class ForbiddenError(AppError):
    """Authenticated but outside the caller's role or department scope (403)."""

    status_code = 403
    code = "forbidden"


class NotFoundError(AppError):
    """Referenced entity does not exist (404)."""

    status_code = 404
    code = "not_found"


class ConflictError(AppError):
    """Unique constraint violated, e.g. duplicate email (409)."""

    status_code = 409
    code = "conflict"


class InternalError(AppError):
    """Unexpected failure (500)."""

    status_code = 500
    code = "internal_error"
