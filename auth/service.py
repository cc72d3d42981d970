"""
auth/service.py -- Authentication orchestration: login, refresh, 2FA lifecycle.

Login is a small state machine:

    AwaitingCredentials --(email+password ok)--> CredentialsValid
    CredentialsValid --(2FA off)--> Authenticated            -> LoginResult
    CredentialsValid --(2FA on, no code)--> TwoFactorRequired -> TwoFactorChallenge
    TwoFactorRequired --(valid code)--> Authenticated
    TwoFactorRequired --(bad code)--> InvalidTwoFactorCodeError (retry allowed)

Nothing here locks accounts or counts failures; every failure is recoverable
by retrying.

2FA state is written only by this service:
    setup_two_factor()            -- stores a *pending* secret, enabled stays False
    verify_and_enable_two_factor() -- the only path that sets enabled=True
    disable_two_factor()          -- password re-check, clears flag and secret

Tokens are stateless. refresh() rotates the refresh token but the previous one
remains valid until it expires; logout() only logs.

Layer rule: no imports from api/ or inventory/.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from auth import totp
from auth.errors import (
    InvalidCredentialsError,
    InvalidPasswordError,
    InvalidTwoFactorCodeError,
    NoPendingSecretError,
    TwoFactorAlreadyEnabledError,
    UserNotFoundError,
)
from auth.models import LoginResult, PublicUser, TokenPair, TotpEnrollment, TwoFactorChallenge, User
from auth.store import UserStore
from auth.tokens import TokenIssuer, burn_dummy_check, verify_password

logger = logging.getLogger("assetapi.auth")


class AuthService:
    """Coordinates the credential store, TOTP engine and token issuer."""

    def __init__(self, users: UserStore, tokens: TokenIssuer, totp_issuer: str = "Assets Management System") -> None:
        self.users = users
        self.tokens = tokens
        self.totp_issuer = totp_issuer

    # ------------------------------------------------------------------
    # Login / refresh / logout
    # ------------------------------------------------------------------

    def login(
        self,
        email: str,
        password: str,
        two_factor_code: Optional[str] = None,
    ) -> Union[LoginResult, TwoFactorChallenge]:
        """Authenticate with email + password and, when enabled, a TOTP code.

        Returns TwoFactorChallenge (no tokens issued) when 2FA is enabled and
        no code was supplied. Unknown email and wrong password raise the same
        InvalidCredentialsError after the same amount of bcrypt work.
        """
        user = self.users.get_by_email(email)
        if user is None:
            burn_dummy_check(password)
            logger.warning("Login failed: unknown email %s", email)
            raise InvalidCredentialsError()
        if not verify_password(password, user.hashed_password):
            logger.warning("Login failed: bad password for user %s", user.id)
            raise InvalidCredentialsError()

        if user.two_factor_enabled:
            if not two_factor_code:
                logger.info("Two-factor code required for user %s", user.id)
                return TwoFactorChallenge()
            if not totp.verify(user.two_factor_secret, two_factor_code, totp.LOGIN_WINDOW):
                logger.warning("Login failed: invalid two-factor code for user %s", user.id)
                raise InvalidTwoFactorCodeError()

        pair = self.tokens.issue_pair(user)
        self.users.touch(user.id)
        refreshed = self.users.get_by_id(user.id) or user
        logger.info("Login succeeded for user %s", user.id)
        return LoginResult(user=PublicUser.from_user(refreshed), tokens=pair)

    def refresh(self, refresh_token: str) -> TokenPair:
        """Exchange a refresh token for a new access + refresh pair.

        The user is re-loaded so a role or department change shows up in the
        new access token. A deleted user gets 401, not 404 -- from the
        client's point of view the session is simply gone.
        """
        claims = self.tokens.verify_refresh(refresh_token)
        user = self.users.get_by_id(claims.user_id)
        if user is None:
            logger.warning("Refresh rejected: user %s no longer exists", claims.user_id)
            raise UserNotFoundError(status_code=401)
        logger.info("Tokens refreshed for user %s", user.id)
        return self.tokens.issue_pair(user)

    def logout(self, user_id: int) -> None:
        """Bookkeeping only. Issued tokens stay valid until they expire."""
        logger.info("Logout for user %s", user_id)

    def get_session(self, user_id: int) -> PublicUser:
        return PublicUser.from_user(self._require_user(user_id))

    # ------------------------------------------------------------------
    # Two-factor lifecycle
    # ------------------------------------------------------------------

    def setup_two_factor(self, user_id: int) -> TotpEnrollment:
        """Generate a new pending secret, replacing any earlier pending one.

        Concurrent calls for the same user are last-write-wins. Raises
        TwoFactorAlreadyEnabledError rather than replacing an active secret;
        the user must disable 2FA first.
        """
        user = self._require_user(user_id)
        if user.two_factor_enabled:
            raise TwoFactorAlreadyEnabledError()
        enrollment = totp.generate_secret(label=user.email, issuer=self.totp_issuer)
        self.users.set_two_factor(user.id, secret=enrollment.secret, enabled=False)
        logger.info("Two-factor setup started for user %s", user.id)
        return enrollment

    def verify_and_enable_two_factor(self, user_id: int, code: str) -> None:
        user = self._require_user(user_id)
        if not user.two_factor_secret:
            raise NoPendingSecretError()
        if not totp.verify(user.two_factor_secret, code, totp.ENROLLMENT_WINDOW):
            logger.warning("Two-factor enrollment code rejected for user %s", user.id)
            raise InvalidTwoFactorCodeError("Invalid verification code.", status_code=400, code="invalid_code")
        self.users.set_two_factor(user.id, secret=user.two_factor_secret, enabled=True)
        logger.info("Two-factor enabled for user %s", user.id)

    def disable_two_factor(self, user_id: int, password: str) -> None:
        user = self._require_user(user_id)
        if not verify_password(password, user.hashed_password):
            logger.warning("Two-factor disable rejected: bad password for user %s", user.id)
            raise InvalidPasswordError()
        self.users.set_two_factor(user.id, secret=None, enabled=False)
        logger.info("Two-factor disabled for user %s", user.id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_user(self, user_id: int) -> User:
        user = self.users.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError()
        return user
