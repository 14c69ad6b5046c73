"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for FitApp happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Singleton via lru_cache: get_settings() instantiates Settings once at first
call and returns the cached instance afterwards. Field names map to env var
names (e.g. secret_key -> SECRET_KEY, database_url -> DATABASE_URL).

Security notes:
  SECRET_KEY signs both the session JWT and the Starlette session cookie used
  for OAuth state. Keys shorter than 32 chars are rejected. Outside DEBUG a
  missing key is a hard startup failure.

Layer rule: core/ is the kernel. This module may not import from api/, web/,
or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("fitapp.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'fitapp_users.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    Every field has a default so Settings() can be built in tests without a
    real .env file (DEBUG=true still has to be set for the secret key).
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
    # Empty string is the sentinel for "not configured". The validator
    # below either generates a dev key or raises.
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost", "testserver"]

    # ------------------------------------------------------------------
    # Sessions and passwords
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    token_expire_seconds: int = 30 * 24 * 3600
    bcrypt_rounds: int = 12
    password_min_length: int = 8

    # ------------------------------------------------------------------
    # OAuth providers (empty string means the provider is disabled)
    # ------------------------------------------------------------------

    google_client_id: str = ""
    google_client_secret: str = ""
    facebook_client_id: str = ""
    facebook_client_secret: str = ""

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    rate_limit_enabled: bool = True
    login_rate_limit: str = "10/minute"
    register_rate_limit: str = "5/minute"

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Generate a throwaway key in DEBUG, refuse to start without one otherwise."""
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
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() if you need to inject different
    environment variables.
    """
    return Settings()
