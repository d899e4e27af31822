"""
Name: Application Configuration (Settings)

Responsibilities:
  - Centralized, typed configuration using pydantic-settings
  - Validate environment variables at startup
  - Provide defaults that match the session protocol (300s access, 7d refresh)

Collaborators:
  - api/main.py: reads settings for CORS, middleware and lifespan
  - container.py: reads settings to pick the storage backend
  - identity/tokens.py: reads secrets and token lifetimes

Constraints:
  - No business logic, pure configuration
  - Production refuses weak or shared JWT secrets

Notes:
  - Uses pydantic-settings for env parsing and validation
  - Singleton via lru_cache for performance
"""

from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_SECRETS = frozenset({"", "dev-secret", "change-me", "secret"})
_STORE_BACKENDS = frozenset({"memory", "postgres"})


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        app_env: Application environment (local/development/test/production)
        database_url: PostgreSQL connection string (required for postgres backend)
        auth_store_backend: "postgres" or "memory"
        allowed_origins: Comma-separated CORS origins
        jwt_secret: Secret for signing access tokens
        jwt_refresh_secret: Secret for signing refresh tokens (defaults to jwt_secret)
        jwt_access_ttl_seconds: Access token lifetime (default: 300)
        jwt_refresh_ttl_days: Refresh token lifetime (default: 7)
        auto_refresh_threshold_seconds: Remaining lifetime that triggers X-New-Access-Token
        rate_limit_enabled: Enable auth rate limiting (default: production only)
        auth_rate_limit_*: General /auth limiter (100 requests / 15 minutes)
        refresh_rate_limit_*: Refresh limiter (10 requests / 5 minutes)
        enable_debug_routes: Expose /auth/debug/refresh-tokens to admins
        dev_seed_admin*: Local development admin seeding
    """

    app_env: str = "development"

    # Storage
    database_url: str = ""
    auth_store_backend: str = "postgres"

    # CORS configuration
    allowed_origins: str = "http://localhost:3000"
    cors_allow_credentials: bool = False

    # Security - Hardening
    max_body_bytes: int = 1024 * 1024  # 1MB
    metrics_require_auth: bool = False

    # Security - JWT
    jwt_secret: str = "dev-secret"
    jwt_refresh_secret: str = ""
    jwt_access_ttl_seconds: int = 300
    jwt_refresh_ttl_days: int = 7
    auto_refresh_threshold_seconds: int = 60

    # Security - Rate Limiting (None = enabled only in production)
    rate_limit_enabled: bool | None = None
    auth_rate_limit_requests: int = 100
    auth_rate_limit_window_seconds: int = 15 * 60
    refresh_rate_limit_requests: int = 10
    refresh_rate_limit_window_seconds: int = 5 * 60

    # Database - Connection Pool
    db_pool_min_size: int = 2
    db_pool_max_size: int = 10
    db_statement_timeout_ms: int = 30000  # 30 seconds

    # Admin tooling
    enable_debug_routes: bool = False

    # Dev seed (local only)
    dev_seed_admin: bool = False
    dev_seed_admin_email: str = "admin@example.com"
    dev_seed_admin_password: str = "Admin123"
    dev_seed_admin_name: str = "Admin User"
    dev_seed_admin_force_reset: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("auth_store_backend")
    @classmethod
    def store_backend_must_be_known(cls, v: str) -> str:
        value = (v or "").strip().lower()
        if value not in _STORE_BACKENDS:
            raise ValueError(
                f"auth_store_backend must be one of {sorted(_STORE_BACKENDS)}"
            )
        return value

    @field_validator(
        "jwt_access_ttl_seconds",
        "jwt_refresh_ttl_days",
        "auth_rate_limit_requests",
        "auth_rate_limit_window_seconds",
        "refresh_rate_limit_requests",
        "refresh_rate_limit_window_seconds",
    )
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("value must be greater than 0")
        return v

    @model_validator(mode="after")
    def validate_storage_requirements(self):
        if self.auth_store_backend == "postgres" and not self.database_url:
            raise ValueError("DATABASE_URL is required when AUTH_STORE_BACKEND=postgres")
        return self

    @model_validator(mode="after")
    def validate_security_requirements(self):
        if not self.is_production():
            return self

        jwt_secret = (self.jwt_secret or "").strip()
        if jwt_secret in _INSECURE_SECRETS:
            raise ValueError("JWT_SECRET must be set to a secure value in production")
        if len(jwt_secret) < 32:
            raise ValueError("JWT_SECRET must be at least 32 characters in production")

        refresh_secret = (self.jwt_refresh_secret or "").strip()
        if refresh_secret in _INSECURE_SECRETS or len(refresh_secret) < 32:
            raise ValueError(
                "JWT_REFRESH_SECRET must be set (>= 32 characters) in production"
            )
        if refresh_secret == jwt_secret:
            raise ValueError("JWT_REFRESH_SECRET must differ from JWT_SECRET")
        if self.auth_store_backend != "postgres":
            raise ValueError("AUTH_STORE_BACKEND=postgres is required in production")
        return self

    def get_allowed_origins_list(self) -> list[str]:
        """Parse comma-separated origins into a list."""
        return [
            origin.strip()
            for origin in self.allowed_origins.split(",")
            if origin.strip()
        ]

    def get_refresh_secret(self) -> str:
        """Refresh signing secret, falling back to the access secret outside production."""
        return self.jwt_refresh_secret or self.jwt_secret

    def is_rate_limiting_enabled(self) -> bool:
        if self.rate_limit_enabled is None:
            return self.is_production()
        return self.rate_limit_enabled

    def is_production(self) -> bool:
        return self.app_env.strip().lower() == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get singleton Settings instance.

    Raises:
        ValidationError: If required env vars are missing or invalid
    """
    return Settings()
