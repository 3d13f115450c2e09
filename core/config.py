"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the auth service happen here. No module
should call os.getenv() or os.environ.get() directly -- construct the
dependencies from get_settings() at startup instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_secret -> JWT_SECRET). Type coercion and validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved. Used to normalise APP_ENV and to enforce the JWT_SECRET
      policy: non-production falls back to a fixed development secret with a
      warning, production refuses to start without a real one.

Security notes:
  JWT_SECRET shorter than 32 chars is rejected outright. HS256 signing
       relies on key entropy -- a short key weakens every issued token.

  In production a missing JWT_SECRET, or the development fallback, is a
       hard startup failure.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL

logger = logging.getLogger("authservice.config")

KNOWN_ENVIRONMENTS = ("development", "staging", "testing", "production")

# Non-production fallback. Tokens signed with it are only as secret as this file.
DEV_JWT_SECRET = "authservice-dev-only-jwt-secret-do-not-deploy"

_DEFAULT_SQLITE_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'authservice.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # App / HTTP
    # ------------------------------------------------------------------

    app_env: str = "development"
    service_name: str = "auth-service"
    log_level: str = "INFO"
    http_host: str = "0.0.0.0"  # nosec B104 -- container default
    http_port: int = 8080

    # ------------------------------------------------------------------
    # Database
    #
    # DATABASE_URL wins when set. Otherwise DB_HOST switches on a PostgreSQL
    # DSN assembled from the components; with neither, a local SQLite file.
    # ------------------------------------------------------------------

    database_url: str = ""
    db_host: str = ""
    db_port: int = 5432
    db_user: str = ""
    db_pass: str = ""
    db_name: str = ""
    db_ssl_mode: str = ""

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured".
    jwt_secret: str = ""

    # ------------------------------------------------------------------
    # Telemetry
    # ------------------------------------------------------------------

    otel_enabled: bool = False
    otel_endpoint: str = "http://localhost:4318"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_environment(self) -> "Settings":
        """Normalise APP_ENV and enforce the JWT_SECRET policy.

        Unknown or empty APP_ENV values fall back to "development"; unknown
        LOG_LEVEL names fall back to INFO.
        """
        env = self.app_env.strip().lower()
        self.app_env = env if env in KNOWN_ENVIRONMENTS else "development"

        level = self.log_level.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            logger.warning("WARNING: unknown LOG_LEVEL %r -- using INFO.", self.log_level)
            level = "INFO"
        self.log_level = level

        if not self.jwt_secret or self.jwt_secret == DEV_JWT_SECRET:
            if self.is_production:
                raise ValueError(
                    "JWT_SECRET is required in production. "
                    "Set JWT_SECRET in your environment or .env file."
                )
            if not self.jwt_secret:
                self.jwt_secret = DEV_JWT_SECRET
                logger.warning("WARNING: JWT_SECRET not set -- using the development fallback secret.")
        if len(self.jwt_secret) < 32:
            raise ValueError("JWT_SECRET must be at least 32 characters.")
        return self

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    def resolved_database_url(self) -> str:
        """Return the SQLAlchemy URL this process should connect to."""
        if self.database_url:
            return self.database_url
        if not self.db_host:
            return _DEFAULT_SQLITE_URL
        query = {"sslmode": self.db_ssl_mode} if self.db_ssl_mode else {}
        url = URL.create(
            "postgresql+psycopg",
            username=self.db_user or None,
            password=self.db_pass or None,
            host=self.db_host,
            port=self.db_port,
            database=self.db_name or None,
            query=query,
        )
        return url.render_as_string(hide_password=False)


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
