"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the Assets API happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_secret -> JWT_SECRET).

  @model_validator(mode="after"): cross-field validation of the two signing
      secrets. Dev mode generates both with a warning, production mode refuses
      to start without them.

Security notes:
  Signing secrets shorter than 32 chars are rejected outright.
  The access and refresh secrets must differ: a refresh token must never
  verify as an access token and vice versa.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or inventory/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("assetapi.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'assets.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file (with DEBUG=true).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    log_level: str = "INFO"
    database_url: str = _DEFAULT_DB_URL
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000"]
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    # Empty string is the "not configured" sentinel; the validator below
    # either generates a dev key or raises.
    jwt_secret: str = ""
    jwt_refresh_secret: str = ""
    jwt_issuer: str = "assets-api"
    jwt_audience: str = "assets-client"
    access_token_expire_seconds: int = 3600
    refresh_token_expire_seconds: int = 7 * 24 * 3600

    # ------------------------------------------------------------------
    # Credentials / 2FA
    # ------------------------------------------------------------------

    bcrypt_rounds: int = 12
    totp_issuer: str = "Assets Management System"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_signing_secrets(self) -> "Settings":
        """Enforce the signing-secret policy.

        Dev mode (DEBUG=true): auto-generate any missing secret with a warning.
            Tokens will not survive restart -- acceptable for local dev.

        Production mode: refuse to start if either secret is missing.

        Both modes: reject secrets shorter than 32 characters and identical
            access/refresh secrets.
        """
        for field_name in ("jwt_secret", "jwt_refresh_secret"):
            if getattr(self, field_name):
                continue
            if not self.debug:
                raise ValueError(
                    f"{field_name.upper()} is required in production mode. "
                    "Set it in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
            setattr(self, field_name, secrets.token_hex(32))
            logger.warning(
                "WARNING: Using auto-generated %s. Tokens will not persist across restarts.",
                field_name.upper(),
            )
        if len(self.jwt_secret) < 32 or len(self.jwt_refresh_secret) < 32:
            raise ValueError("JWT_SECRET and JWT_REFRESH_SECRET must be at least 32 characters.")
        if self.jwt_secret == self.jwt_refresh_secret:
            raise ValueError("JWT_SECRET and JWT_REFRESH_SECRET must be distinct.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
