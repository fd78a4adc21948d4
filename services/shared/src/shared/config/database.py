"""Database configuration settings."""

from pydantic_settings import BaseSettings

from shared.config.constants import DEFAULT_DATABASE_URL


class DatabaseSettings(BaseSettings):
    """Database connection settings loaded from environment variables.

    ``DATABASE_URL`` must use an async driver (``postgresql+asyncpg://`` in
    production, ``sqlite+aiosqlite://`` in tests).
    """

    database_url: str = DEFAULT_DATABASE_URL
    echo: bool = False
    use_null_pool: bool = False
    pool_pre_ping: bool = True

    model_config = {"env_prefix": ""}
