"""
Configuration module for the Outcome Service API.
Uses Pydantic BaseSettings for validation - app fails fast if required config is missing.
"""
import logging
from pathlib import Path
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings with validation.
    Required fields will cause the app to fail fast if not provided.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database Configuration
    outcome_svc_db_dir: str = Field(default="data", description="Database directory")
    outcome_svc_db_file: str = Field(default="outcome_svc.db", description="Database filename")
    outcome_svc_db_busy_timeout: int = Field(default=5000, description="SQLite busy timeout in milliseconds")

    # API Configuration
    outcome_svc_host: str = Field(default="0.0.0.0", description="API host")
    outcome_svc_port: int = Field(default=8000, description="API port")
    outcome_svc_reload: bool = Field(default=False, description="Enable hot reload")

    # Measure library
    outcome_svc_measures_file: Optional[str] = Field(
        default=None,
        description="Path to an alternative measure library YAML (defaults to the bundled core/measures.yaml)",
    )

    # API Authentication Configuration
    outcome_svc_api_key: str = Field(
        ...,  # Required - no default means fail fast if missing
        description="API key for authenticating requests to the Outcome Service API",
        min_length=32,
    )

    @model_validator(mode="after")
    def validate_measures_file(self) -> "Settings":
        """Warn early when a custom measure library path does not exist."""
        if self.outcome_svc_measures_file and not Path(self.outcome_svc_measures_file).is_file():
            logger.warning(
                "OUTCOME_SVC_MEASURES_FILE does not point to a file - the measure library will fail to load",
                extra={"path": self.outcome_svc_measures_file},
            )
        return self

    @property
    def database_path(self) -> str:
        """Get the full database path."""
        return str(Path(self.outcome_svc_db_dir) / self.outcome_svc_db_file)

    def ensure_directories(self) -> None:
        """Ensure required directories exist."""
        Path(self.outcome_svc_db_dir).mkdir(parents=True, exist_ok=True)


# Create global settings instance - fails fast if required config is missing
settings = Settings()

# Ensure directories exist on import
settings.ensure_directories()

DATABASE_PATH = settings.database_path
DATABASE_BUSY_TIMEOUT = settings.outcome_svc_db_busy_timeout

API_HOST = settings.outcome_svc_host
API_PORT = settings.outcome_svc_port
API_RELOAD = settings.outcome_svc_reload

MEASURES_FILE = settings.outcome_svc_measures_file

API_KEY = settings.outcome_svc_api_key
