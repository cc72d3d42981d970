"""
auth/errors.py -- Authentication failures, specialised from core.errors.

Messages stay deliberately vague where a precise one would leak information
(e.g. InvalidCredentialsError never says whether the email exists).
"""

from __future__ import annotations

from core.errors import NotFoundError, UnauthenticatedError, ValidationError

__all__ = [
    "ExpiredTokenError",
    "InvalidCredentialsError",
    "InvalidPasswordError",
    "InvalidTokenError",
    "InvalidTwoFactorCodeError",
    "NoPendingSecretError",
    "TwoFactorAlreadyEnabledError",
    "UserNotFoundError",
    "WrongTokenTypeError",
]


class InvalidCredentialsError(UnauthenticatedError):
    code = "invalid_credentials"

    def __init__(self, message: str = "Invalid credentials.") -> None:
        super().__init__(message)


class InvalidTwoFactorCodeError(UnauthenticatedError):
    """Wrong TOTP code at login (401). The enrollment path raises it as 400 ``invalid_code``."""

    code = "invalid_two_factor_code"

    def __init__(
        self,
        message: str = "Invalid two-factor code.",
        *,
        status_code: int | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message, status_code=status_code, code=code)


class InvalidTokenError(UnauthenticatedError):
    code = "invalid_token"

    def __init__(self, message: str = "Invalid token.") -> None:
        super().__init__(message)


class ExpiredTokenError(UnauthenticatedError):
    code = "token_expired"

    def __init__(self, message: str = "Token expired.") -> None:
        super().__init__(message)


class WrongTokenTypeError(InvalidTokenError):
    code = "wrong_token_type"

    def __init__(self, message: str = "Invalid token type.") -> None:
        super().__init__(message)


class InvalidPasswordError(UnauthenticatedError):
    code = "invalid_password"

    def __init__(self, message: str = "Invalid password.") -> None:
        super().__init__(message)


class UserNotFoundError(NotFoundError):
    """404 on direct lookups; the refresh path raises it with status_code=401."""

    code = "user_not_found"

    def __init__(self, message: str = "User not found.", *, status_code: int | None = None) -> None:
        super().__init__(message, status_code=status_code)


class NoPendingSecretError(ValidationError):
    code = "no_pending_secret"

    def __init__(self, message: str = "No pending two-factor setup for this user.") -> None:
        super().__init__(message)


class TwoFactorAlreadyEnabledError(ValidationError):
    code = "two_factor_already_enabled"

    def __init__(self, message: str = "Two-factor authentication is already enabled.") -> None:
        super().__init__(message)
