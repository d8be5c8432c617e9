"""
Centralized configuration management for the student profile application.

Provides environment-specific configuration with validation, type safety,
and settings management using Pydantic.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from .exceptions import ConfigurationError


class StoreConfig(BaseSettings):
    """
    Persistence store settings.

    The student collection is persisted as one blob under ``storage_key``,
    either in a SQLite key-value table or in process memory.

    Example:
        >>> store_config = StoreConfig(backend="sqlite", sqlite_path="./profiles.db")
        >>> print(store_config.get_connection_url())
        >>> # sqlite:///./profiles.db
    """

    backend: Literal["sqlite", "memory"] = Field("sqlite", description="Store backend type")
    sqlite_path: str = Field("./student_profiles.db", description="SQLite database file path")
    storage_key: str = Field(
        "studentProfiles", min_length=1, max_length=128, description="Blob key"
    )
    echo: bool = Field(False, description="Enable SQL query logging")

    model_config = {"env_prefix": "STORE_", "case_sensitive": False}

    @field_validator("sqlite_path")
    def validate_sqlite_path(cls, v):
        """Ensure a .db extension on file paths; in-memory databases pass through."""
        if v and v != ":memory:":
            path = Path(v)
            if not path.suffix:
                v = str(path.with_suffix(".db"))
        return v

    def get_connection_url(self) -> str:
        """
        Generate the database connection URL for the sqlite backend.

        Raises:
            ValueError: If the backend has no connection URL
        """
        if self.backend == "sqlite":
            return f"sqlite:///{self.sqlite_path}"
        raise ValueError(f"Backend {self.backend!r} does not use a database connection")

    def get_engine_options(self) -> dict[str, Any]:
        """Get SQLAlchemy engine options."""
        return {
            "echo": self.echo,
            "future": True,
            "pool_pre_ping": True,
        }


class LoggingConfig(BaseSettings):
    """
    Logging configuration settings.

    Example:
        >>> log_config = LoggingConfig(level="DEBUG", file_path="./logs/app.log")
        >>> log_config.structured
        True
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        "INFO", description="Minimum logging level"
    )
    file_path: str | None = Field(None, description="Log file path")
    max_bytes: int = Field(10 * 1024 * 1024, ge=1024, description="Max log file size in bytes")
    backup_count: int = Field(5, ge=1, description="Number of backup log files")
    structured: bool = Field(True, description="Use structured JSON logging")
    console_enabled: bool = Field(True, description="Enable console output")

    model_config = {"env_prefix": "LOG_", "case_sensitive": False}


class ApplicationConfig(BaseSettings):
    """
    Main application configuration.

    ``calendar_timezone`` pins the timezone in which assessment dates are
    truncated to calendar days for the one-assessment-per-day rule.

    Example:
        >>> config = get_settings()
        >>> print(config.app.calendar_timezone)
    """

    environment: Literal["development", "testing", "production"] = Field(
        "development", description="Application environment"
    )
    debug: bool = Field(False, description="Enable debug mode")
    version: str = Field("0.1.0", description="Application version")
    title: str = Field("Student Profiles", description="Application title")

    calendar_timezone: str = Field("UTC", description="IANA timezone for calendar-day comparison")
    trend_window: int = Field(4, ge=1, le=52, description="Assessments shown in trend series")

    model_config = {"env_prefix": "APP_", "case_sensitive": False}

    @field_validator("calendar_timezone")
    def validate_calendar_timezone(cls, v):
        """Reject names zoneinfo cannot resolve."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {v}") from exc
        return v

    @model_validator(mode="after")
    def debug_implies_development(self):
        """Ensure debug mode is only enabled outside production."""
        if self.debug and self.environment == "production":
            raise ValueError("Debug mode cannot be enabled in production")
        return self

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.calendar_timezone)


class Settings:
    """
    Complete application settings container.

    Provides structured access to all configuration sections
    with lazy loading and caching.

    Example:
        >>> settings = get_settings()
        >>> print(settings.store.storage_key)
        >>> print(settings.logging.level)
        >>> print(settings.app.environment)
    """

    def __init__(self):
        self._app: ApplicationConfig | None = None
        self._store: StoreConfig | None = None
        self._logging: LoggingConfig | None = None

    @property
    def app(self) -> ApplicationConfig:
        """Get application configuration."""
        if self._app is None:
            self._app = ApplicationConfig()
        return self._app

    @property
    def store(self) -> StoreConfig:
        """Get store configuration."""
        if self._store is None:
            self._store = StoreConfig()
        return self._store

    @property
    def logging(self) -> LoggingConfig:
        """Get logging configuration."""
        if self._logging is None:
            # Environment default unless LOG_LEVEL is set explicitly
            overrides: dict[str, Any] = {}
            if "LOG_LEVEL" not in os.environ:
                level = "DEBUG" if self.app.debug else "INFO"
                if self.app.environment == "production":
                    level = "WARNING"
                overrides["level"] = level
            self._logging = LoggingConfig(**overrides)
        return self._logging

    def is_production(self) -> bool:
        return self.app.environment == "production"

    def get_environment_info(self) -> dict[str, Any]:
        """Get summary of current environment configuration."""
        return {
            "environment": self.app.environment,
            "version": self.app.version,
            "debug": self.app.debug,
            "store_backend": self.store.backend,
            "logging_level": self.logging.level,
            "calendar_timezone": self.app.calendar_timezone,
            "trend_window": self.app.trend_window,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get application settings instance (cached).

    Returns:
        Settings instance with all configuration loaded
    """
    return Settings()


def load_settings_from_file(file_path: str) -> Settings:
    """
    Load settings from a JSON configuration file.

    The file holds one object per section (``app``, ``store``, ``log``);
    each key is exported as ``<SECTION>_<KEY>`` before settings are rebuilt.

    Raises:
        FileNotFoundError: If configuration file doesn't exist
        ConfigurationError: If the file is not JSON or not valid JSON

    Example:
        >>> settings = load_settings_from_file("config/production.json")
    """
    config_path = Path(file_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")

    if config_path.suffix.lower() != ".json":
        raise ConfigurationError(
            f"Unsupported configuration file format: {config_path.suffix}", str(config_path)
        )

    with open(config_path, encoding="utf-8") as f:
        try:
            config_data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid configuration file: {e}", str(config_path)) from e

    for section, values in config_data.items():
        if isinstance(values, dict):
            for key, value in values.items():
                os.environ[f"{section.upper()}_{key.upper()}"] = str(value)

    get_settings.cache_clear()
    return get_settings()


def override_settings(**kwargs) -> Settings:
    """
    Override specific settings for testing or development.

    Example:
        >>> settings = override_settings(app_environment="testing", store_backend="memory")
    """
    for key, value in kwargs.items():
        os.environ[key.upper()] = str(value)

    get_settings.cache_clear()
    return get_settings()


def reset_settings() -> None:
    """Reset settings cache to reload from environment."""
    get_settings.cache_clear()
