"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Gridgate happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  Explicit injection: the values read here (signing secret, token lifetime,
      bcrypt work factor, database URL) are handed to the TokenService,
      PasswordHasher and RbacStore constructors in api/main.py lifespan. The
      services never call get_settings() themselves, so business logic has no
      ambient global lookups and tests can build services with any values.

  @model_validator(mode="after"): cross-field validation after all fields
      are resolved. Dev mode generates a signing key with a warning;
      production mode refuses to start without one.

Security notes:
  [M6] SECRET_KEY shorter than 32 chars is rejected outright. HS256 token
       signing relies on key entropy -- a short key weakens every session.

  [M7] In production mode (DEBUG not set or false), a missing SECRET_KEY is a
       hard startup failure.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/ or rbac/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("gridgate.config")

DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'rbac' / 'gridgate.db'}"

# Seven days, matching the session lifetime admins are used to.
_DEFAULT_TOKEN_EXPIRE_SECONDS = 7 * 24 * 3600


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file (given DEBUG=true). Field names map
    to upper-cased env vars: `bcrypt_rounds` reads BCRYPT_ROUNDS.
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
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    database_url: str = DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    token_expire_seconds: int = _DEFAULT_TOKEN_EXPIRE_SECONDS
    # bcrypt cost factor. 12 is ~250ms per hash on current hardware; tests
    # drop it to 4 (the bcrypt minimum) through BCRYPT_ROUNDS.
    bcrypt_rounds: int = 12

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["*"]
    cors_origins: list[str] = ["http://localhost:3000"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("bcrypt_rounds")
    @classmethod
    def validate_bcrypt_rounds(cls, value: int) -> int:
        """bcrypt accepts log2 cost factors between 4 and 31 inclusive."""
        if not 4 <= value <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")
        return value

    @field_validator("token_expire_seconds")
    @classmethod
    def validate_token_expiry(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("TOKEN_EXPIRE_SECONDS must be positive.")
        return value

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy [M7].

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Tokens will not survive restart -- acceptable for local dev.

        Production mode: refuse to start if SECRET_KEY is missing. A random
            per-process key would silently invalidate every issued token on
            restart and break multi-worker deployments.

        Both modes: reject keys shorter than 32 characters [M6].
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated SECRET_KEY. Sessions will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
