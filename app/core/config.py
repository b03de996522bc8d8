from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "Social Dashboard API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # development | staging | production
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Empty string = "not set". Validators below reject blank values so a
    # missing env var is caught at startup with a clear error message.
    DATABASE_URL: str = ""
    REDIS_URL: str = "redis://localhost:6379/0"

    # Comma-separated string of allowed CORS origins.
    # Kept as str to avoid pydantic-settings attempting JSON parsing on list fields.
    ALLOWED_ORIGINS: str = ""

    # ── Auth ────────────────────────────────────────────────────────────────
    # Shared secret for session tokens, SSO tokens and internal service tokens
    JWT_SECRET_KEY: str = ""
    JWT_ALGORITHM: str = "HS256"

    # Domain the `auth` cookie is written for. Empty = host-only cookie.
    AUTH_COOKIE_DOMAIN: str = ""

    # ── Upstream services ──────────────────────────────────────────────────
    # Not validated at startup: a missing URL fails on first use instead.
    SSO_AUTH_URL: str = ""
    # sha1 | md5 | "" (send password as typed)
    SSO_AUTH_PASSWORD_SALT: str = ""
    SSO_TIMEOUT_SECONDS: float = 10.0

    ANALYTICS_SERVICE_URL: str = ""
    ANALYTICS_TIMEOUT_SECONDS: float = 30.0

    RATE_LIMIT_ENABLED: bool = True

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def is_development(self) -> bool:
        return not self.ENVIRONMENT or self.ENVIRONMENT.lower() == "development"

    @property
    def cache_ttl(self) -> int:
        """Dashboard cache TTL in seconds. 1s in development keeps the cache out of the way."""
        return 1 if self.is_development else 3600

    @field_validator("ALLOWED_ORIGINS")
    @classmethod
    def allowed_origins_must_not_be_empty(cls, v: str) -> str:
        origins = [o.strip() for o in v.split(",") if o.strip()]
        if not origins:
            raise ValueError(
                "ALLOWED_ORIGINS is required. "
                "Set it in .env as a comma-separated list: "
                "ALLOWED_ORIGINS=https://app.example.com,http://localhost:4200"
            )
        return v

    @field_validator("DATABASE_URL")
    @classmethod
    def database_url_must_be_asyncpg(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("DATABASE_URL is required")
        if not v.startswith("postgresql+asyncpg://"):
            raise ValueError(
                "DATABASE_URL must use the 'postgresql+asyncpg://' scheme. "
                f"Got: '{v}'"
            )
        return v

    @field_validator("REDIS_URL")
    @classmethod
    def redis_url_must_be_redis_scheme(cls, v: str) -> str:
        if not v.startswith(("redis://", "rediss://")):
            raise ValueError(f"REDIS_URL must use the 'redis://' or 'rediss://' scheme. Got: '{v}'")
        return v

    @field_validator("JWT_SECRET_KEY")
    @classmethod
    def auth_fields_must_not_be_empty(cls, v: str, info) -> str:
        if not v.strip():
            raise ValueError(f"{info.field_name} is required and must not be empty")
        return v

    @field_validator("SSO_AUTH_PASSWORD_SALT")
    @classmethod
    def password_salt_must_be_known(cls, v: str) -> str:
        if v not in ("", "sha1", "md5"):
            raise ValueError(
                f"SSO_AUTH_PASSWORD_SALT must be one of 'sha1', 'md5' or empty. Got: '{v}'"
            )
        return v

    @field_validator("SSO_TIMEOUT_SECONDS", "ANALYTICS_TIMEOUT_SECONDS")
    @classmethod
    def timeout_must_be_positive(cls, v: float, info) -> float:
        if v <= 0:
            raise ValueError(f"{info.field_name} must be greater than 0. Got: {v}")
        return v


settings = Settings()
