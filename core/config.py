"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for AuthGate happen here. No module should
call os.getenv() or os.environ.get() directly. The app factory and the CLI
build one Settings instance at startup and pass it down explicitly; nothing
reads configuration at import time.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. Only the
      process entry points (asgi.py, main.py) call it.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  @model_validator(mode="after"): Cross-field validation after all fields are
      resolved. Development generates a throwaway SECRET_KEY with a warning;
      every other environment refuses to start without one.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. JWT signing and the
  refresh-token HMAC both rely on key entropy.

  One TTL (refresh_token_expire_seconds) drives the refresh token's embedded
  expiry, the session row's expires_at and the refresh cookie max-age, so the
  three can never drift apart.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("authgate.config")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file (as long as ENVIRONMENT is
    development or SECRET_KEY is set).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    environment: str = "development"
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    database_url: str = "sqlite:///./authgate.db"
    # 0 disables the background sweep; expired sessions are then removed
    # only by `python main.py sweep-sessions`.
    session_sweep_interval_seconds: int = 0

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    jwt_algorithm: str = "HS256"
    access_token_expire_seconds: int = 15 * 60
    refresh_token_expire_seconds: int = 7 * 24 * 60 * 60
    bcrypt_rounds: int = 10
    rotate_refresh_tokens: bool = False
    assign_default_role: bool = True

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    cors_origins: list[str] = ["http://localhost:3000"]
    rate_limit_enabled: bool = True
    # Serves GET /metrics and counts requests in the access-log middleware.
    metrics_enabled: bool = True

    # ------------------------------------------------------------------
    # Derived
    # ------------------------------------------------------------------

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def secure_cookies(self) -> bool:
        """Cookies carry the Secure flag everywhere except local development."""
        return not self.is_development

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("access_token_expire_seconds", "refresh_token_expire_seconds")
    @classmethod
    def positive_ttl(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("token TTLs must be positive")
        return value

    @field_validator("bcrypt_rounds")
    @classmethod
    def bcrypt_rounds_in_range(cls, value: int) -> int:
        # bcrypt.gensalt() accepts 4..31
        if not 4 <= value <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31")
        return value

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Development: auto-generate a random key with a warning. Tokens and
            sessions will not survive a restart -- acceptable for local dev.

        Anything else: refuse to start if SECRET_KEY is missing. A random key
            in production would silently invalidate every session on restart.

        Both: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.is_development:
                self.secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated SECRET_KEY. Sessions will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required outside development. "
                    "Set SECRET_KEY in your environment or .env file, "
                    "or set ENVIRONMENT=development for local use."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings instance.

    In tests: construct Settings(...) directly and pass it to create_app(),
    or call get_settings.cache_clear() after changing environment variables.
    """
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger once for the whole process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
