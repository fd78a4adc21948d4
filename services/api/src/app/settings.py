"""Application settings loaded from environment variables."""

import functools

from pydantic_settings import BaseSettings

from app.constants import DEFAULT_USER_ROLE


class AppSettings(BaseSettings):
    """API service configuration."""

    # JWT Authentication
    JWT_SECRET: str = ""
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    JWT_REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # Password hashing
    BCRYPT_ROUNDS: int = 12

    # CORS
    CORS_ALLOWED_ORIGINS: str = "http://localhost:3000"  # comma-separated origins

    # Rate limiting
    RATE_LIMIT_AUTH_PER_MINUTE: int = 10

    # Logging
    LOG_LEVEL: str = "INFO"

    # Seeding
    SEED_ON_STARTUP: bool = False
    SEED_ADMIN_EMAIL: str = "admin@example.com"
    SEED_ADMIN_USERNAME: str = "admin"
    SEED_ADMIN_PASSWORD: str = ""  # Empty = no admin account is created

    # Role bound to users created without an explicit role list
    DEFAULT_USER_ROLE: str = DEFAULT_USER_ROLE

    model_config = {"env_prefix": ""}


@functools.lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Return cached application settings singleton."""
    return AppSettings()
