"""
Configuration management using Pydantic Settings
"""
import json
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env from project root
# config.py is at: lams/core/config.py
_current_file = Path(__file__).resolve()
_project_root = _current_file.parent.parent.parent
ENV_FILE = _project_root / ".env"
if ENV_FILE.exists():
    load_dotenv(ENV_FILE, override=True)


DEFAULT_SERVICE_REQUEST_SLA_DAYS: Dict[str, int] = {
    "address_change": 7,
    "duplicate_document": 15,
    "correction": 15,
    "noc_request": 21,
    "passbook_request": 7,
    "other": 30,
}


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "LAMS"
    app_env: str = Field(default="development", description="Application environment")
    log_level: str = Field(default="INFO", description="Logging level")
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, ge=1, le=65535, description="API port")
    allowed_origins: str = Field(
        default="http://localhost:8000",
        description="Allowed CORS origins (comma-separated)"
    )

    # Logging
    log_sqlalchemy: bool = Field(default=False, description="Enable SQLAlchemy query logging")
    log_uvicorn_access: bool = Field(default=False, description="Enable Uvicorn access logging")
    log_module_levels: Optional[str] = Field(
        default=None,
        description='Module-specific log levels (JSON string, e.g., {"lams.services": "DEBUG"})'
    )
    log_format: str = Field(
        default="json",
        description="Log format: 'json' for structured logging, 'text' for plain text"
    )
    log_file_enabled: bool = Field(default=False, description="Enable file logging")
    log_file_path: str = Field(
        default="logs/lams.log",
        description="Path to log file (relative to project root)"
    )
    log_file_retention: int = Field(default=30, ge=1, description="Number of days to keep log files")
    log_sensitive_data: bool = Field(
        default=False,
        description="Log Aadhaar numbers, phone numbers and tokens unmasked - NOT RECOMMENDED"
    )

    # Database
    database_url_override: Optional[str] = Field(
        default=None,
        alias="database_url",
        description="Full SQLAlchemy URL; takes precedence over POSTGRES_* settings"
    )
    postgres_host: str = Field(default="localhost", description="PostgreSQL host")
    postgres_db: str = Field(default="lams", description="PostgreSQL database name")
    postgres_user: str = Field(default="lams", description="PostgreSQL user")
    postgres_password: str = Field(default="", description="PostgreSQL password")
    postgres_port: int = Field(default=5432, ge=1, le=65535, description="PostgreSQL port")
    database_pool_size: int = Field(default=20, ge=1, description="Database pool size")
    database_max_overflow: int = Field(default=10, ge=0, description="Database max overflow")

    # Land acquisition workflow
    objection_window_days: int = Field(
        default=30,
        ge=1,
        description="Length of the Section 11 objection window, counted from the day it opens"
    )
    objection_resolution_days: int = Field(
        default=60,
        ge=1,
        description="Days staff have to resolve a filed objection before it is reported as an SLA breach"
    )
    max_objection_attachments: int = Field(default=3, ge=0, description="Attachments allowed per objection")
    max_possession_photos: int = Field(default=20, ge=1, description="Evidence photos accepted per possession upload")
    max_attachment_bytes: int = Field(
        default=25 * 1024 * 1024,
        ge=1,
        description="Maximum size of one objection attachment in bytes"
    )
    award_number_prefix: str = Field(default="AWARD", description="Prefix of issued award numbers")

    # Property schemes / service requests
    service_request_sla_days: Dict[str, int] = Field(
        default_factory=lambda: dict(DEFAULT_SERVICE_REQUEST_SLA_DAYS),
        description="SLA in days per service request type (JSON object)"
    )

    # Authorization
    permission_table_path: Optional[str] = Field(
        default=None,
        description="JSON file mapping role -> list of allowed actions; built-in table is used when unset"
    )

    # Domain event delivery
    event_retry_attempts: int = Field(default=3, ge=1, le=10, description="Delivery attempts per event subscriber")
    event_retry_base_delay_seconds: float = Field(
        default=0.0,
        ge=0.0,
        description="Base delay for exponential backoff between delivery attempts"
    )
    event_failure_log_size: int = Field(default=100, ge=1, description="Delivery failures kept in memory for inspection")

    @field_validator("service_request_sla_days", mode="before")
    @classmethod
    def parse_sla_days(cls, v):
        """Accept the SLA table as a JSON string and merge it over the defaults"""
        if isinstance(v, str):
            v = json.loads(v) if v.strip() else {}
        merged = dict(DEFAULT_SERVICE_REQUEST_SLA_DAYS)
        merged.update(v or {})
        return merged

    @property
    def database_url(self) -> str:
        """Construct database URL"""
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def allowed_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE) if ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
        populate_by_name=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
