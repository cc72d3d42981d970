"""
auth/tokens.py -- Password hashing and access/refresh token issuance.

Security design decisions:
  Passwords: bcrypt directly (no passlib wrapper) at a fixed cost factor from
       Settings.bcrypt_rounds. The _DUMMY_HASH constant enables timing
       equalization in AuthService.login() so response time does not reveal
       whether an email exists.

  JWT: python-jose with HS256. Two token kinds, each signed with its own
       secret:
         access  -- {sub, user_id, username, email, role, department_id,
                     type="access", iat, exp, iss, aud}, lifetime 1 hour
         refresh -- {sub, user_id, type="refresh", iat, exp, iss}, 7 days
       Tokens are self-contained. There is no issuance log and no revocation
       list: validity is signature + expiry, nothing else.

  TokenConfig: secrets, issuer, audience and lifetimes are passed in
       explicitly. The app builds one TokenIssuer at startup from Settings;
       tests build their own with throwaway keys.

Layer rule: no imports from api/ or inventory/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Optional

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from auth.errors import ExpiredTokenError, InvalidTokenError, WrongTokenTypeError
from auth.models import AccessClaims, RefreshClaims, Role, TokenPair
from core.config import get_settings
from core.errors import ValidationError

if TYPE_CHECKING:
    from auth.models import User
    from core.config import Settings

logger = logging.getLogger("assetapi.auth")

MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_BYTES = 72  # bcrypt input limit

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def validate_password_length(plain: str) -> None:
    """Raise ValidationError if the plaintext is too short or too long for bcrypt.

    The upper bound counts UTF-8 bytes, not characters.
    """
    if len(plain) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    if len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Raises ValidationError for a password outside the accepted length range.
    """
    validate_password_length(plain)
    salt = bcrypt.gensalt(rounds=get_settings().bcrypt_rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash. Never raises."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (TypeError, ValueError):
        return False


# Timing equalization dummy hash. Computed once at module load so the first
# login attempt is not measurably slower than subsequent ones.
_DUMMY_HASH: str = hash_password("assetapi_timing_dummy")


def burn_dummy_check(plain: str) -> None:
    """Run one bcrypt verification against a throwaway hash.

    Called when the account does not exist so the failure takes as long as a
    wrong-password failure.
    """
    verify_password(plain, _DUMMY_HASH)


# ---------------------------------------------------------------------------
# Token configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TokenConfig:
    access_secret: str
    refresh_secret: str
    issuer: str = "assets-api"
    audience: str = "assets-client"
    access_ttl_seconds: int = 3600
    refresh_ttl_seconds: int = 7 * 24 * 3600
    algorithm: str = "HS256"

    def __post_init__(self) -> None:
        if not self.access_secret or not self.refresh_secret:
            raise ValueError("Both access and refresh signing secrets are required.")
        if self.access_secret == self.refresh_secret:
            raise ValueError("Access and refresh signing secrets must be distinct.")

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenConfig":
        return cls(
            access_secret=settings.jwt_secret,
            refresh_secret=settings.jwt_refresh_secret,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            access_ttl_seconds=settings.access_token_expire_seconds,
            refresh_ttl_seconds=settings.refresh_token_expire_seconds,
        )


# ---------------------------------------------------------------------------
# Issuer
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenIssuer:
    """Mints and verifies signed access and refresh tokens.

    Usage:
        issuer = TokenIssuer(TokenConfig.from_settings(get_settings()))
        pair = issuer.issue_pair(user)
        claims = issuer.verify_access(pair.access_token)
    """

    def __init__(self, config: TokenConfig) -> None:
        self.config = config

    @property
    def access_ttl_seconds(self) -> int:
        return self.config.access_ttl_seconds

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def issue_access_token(self, user: User, now: Optional[datetime] = None) -> str:
        """Sign an access token carrying the user's identity, role and department.

        now is only overridden by tests that need an already-expired token.
        """
        issued = now or _utcnow()
        payload = {
            "sub": str(user.id),
            "user_id": user.id,
            "username": user.username,
            "email": user.email,
            "role": Role(user.role).value,
            "department_id": user.department_id,
            "type": "access",
            "iat": int(issued.timestamp()),
            "exp": int((issued + timedelta(seconds=self.config.access_ttl_seconds)).timestamp()),
            "iss": self.config.issuer,
            "aud": self.config.audience,
        }
        return jwt.encode(payload, self.config.access_secret, algorithm=self.config.algorithm)

    def issue_refresh_token(self, user_id: int, now: Optional[datetime] = None) -> str:
        issued = now or _utcnow()
        payload = {
            "sub": str(user_id),
            "user_id": user_id,
            "type": "refresh",
            "iat": int(issued.timestamp()),
            "exp": int((issued + timedelta(seconds=self.config.refresh_ttl_seconds)).timestamp()),
            "iss": self.config.issuer,
        }
        return jwt.encode(payload, self.config.refresh_secret, algorithm=self.config.algorithm)

    def issue_pair(self, user: User) -> TokenPair:
        return TokenPair(
            access_token=self.issue_access_token(user),
            refresh_token=self.issue_refresh_token(user.id),
            expires_in=self.config.access_ttl_seconds,
        )

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def verify_access(self, token: str) -> AccessClaims:
        """Return typed access claims, or raise ExpiredTokenError / InvalidTokenError."""
        payload = self._decode(token, self.config.access_secret, audience=self.config.audience)
        if payload.get("type") != "access":
            raise InvalidTokenError()
        try:
            return AccessClaims(
                user_id=int(payload["user_id"]),
                username=str(payload["username"]),
                email=str(payload["email"]),
                role=Role.parse(payload["role"]),
                department_id=_optional_int(payload.get("department_id")),
                issued_at=int(payload["iat"]),
                expires_at=int(payload["exp"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidTokenError() from exc

    def verify_refresh(self, token: str) -> RefreshClaims:
        """Return typed refresh claims.

        Raises ExpiredTokenError, InvalidTokenError, or WrongTokenTypeError when
        a correctly signed token is not tagged type="refresh".
        """
        payload = self._decode(token, self.config.refresh_secret)
        if payload.get("type") != "refresh":
            raise WrongTokenTypeError()
        try:
            return RefreshClaims(
                user_id=int(payload["user_id"]),
                issued_at=int(payload["iat"]),
                expires_at=int(payload["exp"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidTokenError() from exc

    def _decode(self, token: str, secret: str, audience: Optional[str] = None) -> dict:
        options = {"verify_aud": audience is not None}
        try:
            return jwt.decode(
                token,
                secret,
                algorithms=[self.config.algorithm],
                audience=audience,
                issuer=self.config.issuer,
                options=options,
            )
        except ExpiredSignatureError as exc:
            raise ExpiredTokenError() from exc
        except JWTError as exc:
            raise InvalidTokenError() from exc


def _optional_int(value) -> Optional[int]:
    return None if value is None else int(value)
