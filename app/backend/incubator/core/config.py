"""Application configuration."""

from functools import lru_cache
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "Arts Incubator Workspace"
    app_env: str = "development"
    api_prefix: str = "/api/v1"

    # Durable local store for the six workspace slots.
    database_url: str = "sqlite+pysqlite:///./arts_incubator.db"

    # Interchange file tags. Both must match exactly on import.
    app_export_name: str = "ARTS_INCUBATOR"
    app_version: str = "1.1.0"

    log_level: str = "INFO"
    log_json: bool = False

    # Keep .env support for comma-separated values (non-JSON).
    allowed_origins: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def parse_origins(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @property
    def workspace_backup_type(self) -> str:
        return f"{self.app_export_name}_WORKSPACE_BACKUP"

    @property
    def project_export_type(self) -> str:
        return f"{self.app_export_name}_PROJECT_EXPORT"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""

    return Settings()
