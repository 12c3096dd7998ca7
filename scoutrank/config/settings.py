"""
Configuration settings using Pydantic Settings.

All configuration is loaded from environment variables (or a local .env).
Never hardcode credentials in the code.
"""

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Order: init kwargs > .env (dotenv) > env vars > file secrets
    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ):
        return (
            init_settings,
            dotenv_settings,
            env_settings,
            file_secret_settings,
        )

    # Database Configuration
    database_url: str = Field(
        "postgresql://localhost/scoutrank",
        validation_alias=AliasChoices("DATABASE_URL", "SUPABASE_DB_URL"),
    )
    database_pool_min_size: int = Field(2, alias="DATABASE_POOL_MIN_SIZE")
    database_pool_size: int = Field(10, alias="DATABASE_POOL_SIZE")
    database_pool_timeout: int = Field(30, alias="DATABASE_POOL_TIMEOUT")
    database_init_schema: bool = Field(True, alias="DATABASE_INIT_SCHEMA")

    # Redis Configuration
    redis_url: str = Field("redis://localhost:6379", alias="REDIS_URL")
    opr_cache_ttl: int = Field(3600, alias="OPR_CACHE_TTL", description="Seconds")

    # ELO Configuration
    elo_k_factor: float = Field(32.0, gt=0, alias="ELO_K_FACTOR")
    elo_default_rating: float = Field(1500.0, ge=0, alias="ELO_DEFAULT_RATING")
    elo_min_rating: float = Field(0.0, ge=0, alias="ELO_MIN_RATING")
    elo_max_rating: float = Field(3000.0, gt=0, alias="ELO_MAX_RATING")

    # Validation run Configuration
    validation_min_scouts: int = Field(3, ge=1, alias="VALIDATION_MIN_SCOUTS")
    validation_batch_size: int = Field(10, ge=1, alias="VALIDATION_BATCH_SIZE")

    # Celery Configuration
    celery_broker_url: str = Field("redis://localhost:6379/0", alias="CELERY_BROKER_URL")
    celery_result_backend: str = Field("redis://localhost:6379/1", alias="CELERY_RESULT_BACKEND")

    # Application Configuration
    app_env: str = Field("development", alias="APP_ENV")
    app_debug: bool = Field(False, alias="APP_DEBUG")
    app_log_level: str = Field("INFO", alias="APP_LOG_LEVEL")

    @model_validator(mode="after")
    def _check_rating_bounds(self) -> "Settings":
        if not self.elo_min_rating <= self.elo_default_rating <= self.elo_max_rating:
            raise ValueError("ELO_DEFAULT_RATING must lie within [ELO_MIN_RATING, ELO_MAX_RATING]")
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.app_env == "development"


# Global settings instance - will be loaded from environment
settings = Settings()  # type: ignore[call-arg]


def get_settings() -> Settings:
    """Get the global settings instance.

    This function provides dependency injection support for settings.
    """
    return settings
