# config/settings.py - certificate service settings

"""
Application settings loaded from environment variables or a .env file.
"""

import re
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


PREFIX_PATTERN = re.compile(r'^[A-Z]+$')


class Settings(BaseSettings):
    """Application settings."""

    # Database
    database_url: str = Field(
        default="sqlite:///./certificates.db",
        description="SQLAlchemy database URL"
    )

    # Certificates
    base_url: str = Field(
        default="http://localhost:3000",
        description="Public base URL embedded in QR codes ({base_url}/verify/{number})"
    )
    certificate_prefix: str = Field(default="HAL", description="Certificate number prefix")
    validity_years: int = Field(default=1, description="Certificate validity in calendar years")
    sequence_start: int = Field(default=1001, description="First sequence value of a new year")
    max_number_attempts: int = Field(default=5, description="Allocation attempts before giving up")
    authority_name: str = Field(
        default="Halal Certification Authority",
        description="Issuer name printed on certificates"
    )

    # API
    api_key: Optional[str] = Field(
        default=None,
        description="Bearer token for admin routes; admin routes are disabled while unset unless debug is on"
    )
    cors_origins: str = Field(default="*", description="Allowed CORS origins, comma separated")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: Path = Field(default=Path("./logs/api.log"), description="Log file path")

    debug: bool = Field(default=False, description="Debug mode")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Returns CORS origins as a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def verification_base_url(self) -> str:
        """Base URL without the trailing slash."""
        return self.base_url.rstrip("/")

    @field_validator('certificate_prefix')
    @classmethod
    def validate_prefix(cls, v):
        """Prefix must consist of upper-case latin letters."""
        if not PREFIX_PATTERN.match(v):
            raise ValueError(f"Certificate prefix must be upper-case letters: {v!r}")
        return v

    @field_validator('validity_years', 'sequence_start', 'max_number_attempts')
    @classmethod
    def validate_positive(cls, v):
        """Numeric settings must be positive."""
        if v < 1:
            raise ValueError("Value must be positive")
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    def create_directories(self):
        """Creates the log directory."""
        self.log_file.parent.mkdir(parents=True, exist_ok=True)


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Returns the settings object."""
    return settings


def load_settings_from_file(env_file: str = ".env") -> Settings:
    """
    Loads settings from the given env file.

    Args:
        env_file: Path to the env file

    Returns:
        Settings: Settings object
    """
    return Settings(_env_file=env_file)
