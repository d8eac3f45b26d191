"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
"""

from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # CATALOG SERVICE
    # ===================
    catalog_url: str = Field(
        default="http://localhost:8069/jsonrpc",
        description="Catalog service JSON-RPC endpoint"
    )
    catalog_db: str = Field(
        default="catalog",
        description="Catalog service database name"
    )
    catalog_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Timeout for a single catalog service call"
    )
    lookup_concurrency: int = Field(
        default=4,
        ge=1,
        le=16,
        description="Maximum parallel lookups while checking conflicts"
    )

    # ===================
    # SESSIONS
    # ===================
    session_ttl_minutes: int = Field(
        default=240,
        ge=5,
        le=1440,
        description="Minutes an untouched matching session is kept in memory"
    )
    supplier_profiles_path: Path = Field(
        default=Path(__file__).parent / "supplier_profiles.json",
        description="JSON file with per-supplier filename and variant rules"
    )
    default_supplier: str = Field(
        default="default",
        description="Supplier profile used when a session names none"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If env vars are invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
