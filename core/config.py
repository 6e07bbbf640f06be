"""
Centralized configuration management.
All environment variables and settings are defined here.
"""
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = Field(default="Subscription Detection Service", alias="APP_NAME")
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Upload
    max_upload_bytes: int = Field(default=5 * 1024 * 1024, alias="MAX_UPLOAD_BYTES")

    # Detection
    cost_strategy: Literal["latest", "mean"] = Field(default="latest", alias="COST_STRATEGY")
    fuzzy_match_threshold: float = Field(default=0.88, alias="FUZZY_MATCH_THRESHOLD")
    service_name_max_length: int = Field(default=20, alias="SERVICE_NAME_MAX_LENGTH")
    known_services_path: Optional[str] = Field(default=None, alias="KNOWN_SERVICES_PATH")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level is one of the standard levels."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v_upper

    @field_validator("port")
    @classmethod
    def validate_port(cls, v):
        """Validate port is in valid range."""
        if not (1 <= v <= 65535):
            raise ValueError("Port must be between 1 and 65535")
        return v

    @field_validator("max_upload_bytes")
    @classmethod
    def validate_upload_limit(cls, v):
        if v < 1024:
            raise ValueError("Max upload size must be at least 1024 bytes")
        return v

    @field_validator("fuzzy_match_threshold")
    @classmethod
    def validate_threshold(cls, v):
        """Fuzzy threshold is a Levenshtein ratio."""
        if not (0.0 < v <= 1.0):
            raise ValueError("Fuzzy match threshold must be in (0, 1]")
        return v

    @field_validator("service_name_max_length")
    @classmethod
    def validate_name_length(cls, v):
        if v < 4:
            raise ValueError("Service name max length must be at least 4")
        return v


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get application settings singleton.

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings singleton (useful for testing)."""
    global _settings
    _settings = None
