"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Mirrors the
approach in inventory/models.py -- dataclasses own domain shape; stores and
services do the work.

Two views of a user exist on purpose:
  User       -- the full record, including hashed_password and
                two_factor_secret. Never serialized.
  PublicUser -- a redacted, frozen view that only has public fields. Every
                response path builds one of these; a sensitive field cannot
                leak because the type has nowhere to put it.

Token claims are tagged dataclasses (type="access" / type="refresh") rather
than free-form dicts, so a missing or unexpected claim fails at decode time.

Layer rule: no imports from api/, inventory/, or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Literal, Optional


class Role(str, Enum):
    admin = "admin"
    responsible = "responsible"

    @classmethod
    def parse(cls, value: str) -> "Role":
        """Case-insensitive lookup. Raises ValueError for unknown roles."""
        return cls(value.strip().lower())


@dataclass
class User:
    """A user record as stored in the credential store.

    department_id is derived, not stored on the users row: the store fills it
    from the department whose responsible_id points at this user. None means
    the user is not responsible for any department.

    Invariant: two_factor_enabled implies two_factor_secret is not None. A
    secret with two_factor_enabled=False is a pending enrollment.
    """

    username: str
    email: str
    role: Role
    id: Optional[int] = None
    hashed_password: Optional[str] = None
    two_factor_secret: Optional[str] = None  # base32
    two_factor_enabled: bool = False
    profile_image: Optional[str] = None
    department_id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass(frozen=True)
class PublicUser:
    """Redacted user view -- the only shape a user is ever serialized in."""

    id: int
    username: str
    email: str
    role: Role
    two_factor_enabled: bool
    department_id: Optional[int]
    profile_image: Optional[str]
    created_at: str
    updated_at: str

    @classmethod
    def from_user(cls, user: User) -> "PublicUser":
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


@dataclass(frozen=True)
class AuthContext:
    """What the authorization layer attaches to request.state.auth.

    Built from the live user record, not from token claims, so a role or
    department change is visible on the very next request.
    """

    user: User
    role: Role
    department_id: Optional[int]

    @property
    def is_admin(self) -> bool:
        return self.role is Role.admin


@dataclass(frozen=True)
class AccessClaims:
    user_id: int
    username: str
    email: str
    role: Role
    department_id: Optional[int]
    issued_at: int
    expires_at: int
    type: Literal["access"] = "access"


@dataclass(frozen=True)
class RefreshClaims:
    user_id: int
    issued_at: int
    expires_at: int
    type: Literal["refresh"] = "refresh"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int  # access token lifetime in seconds


@dataclass(frozen=True)
class LoginResult:
    """Terminal state of the login state machine: authenticated."""

    user: PublicUser
    tokens: TokenPair


@dataclass(frozen=True)
class TwoFactorChallenge:
    """Intermediate login state: password accepted, TOTP code still required.

    Not an error -- no tokens are issued and the client retries with a code.
    """

    requires_two_factor: bool = True


@dataclass(frozen=True)
class TotpEnrollment:
    secret: str
    enrollment_uri: str
    qr_code: str  # data:image/png;base64,...
