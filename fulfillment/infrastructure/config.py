"""Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API
    api_version: str = "0.1.0"
    debug: bool = False

    # Database
    database_url: str = "postgresql+asyncpg://fulfillment:fulfillment_dev_password@db:5432/fulfillment"
    database_pool_timeout_seconds: float = 5.0
    database_command_timeout_seconds: float = 10.0
    database_create_tables: bool = False

    # Authentication
    api_key: str = "dev-api-key-change-in-production"

    # Orders
    order_number_prefix: str = "ORD"
    restock_on_cancel: bool = True

    # Logging
    log_level: str = "INFO"

    class Config:
        """Pydantic configuration."""

        env_prefix = "FULFILLMENT_"
        env_file = ".env"
        env_file_encoding = "utf-8"


def get_settings() -> Settings:
    """Build settings from the current environment.

    Returns:
        Fresh Settings instance.
    """
    return Settings()
