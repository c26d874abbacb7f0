"""
Configuration system for influxsync using Pydantic.
"""

import os
from pathlib import Path
from typing import Any, Literal, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .database.connection import InfluxEndpoint
from .exceptions import ConfigurationError


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        "WARNING", description="Log level"
    )
    format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format for the log file",
    )
    file: Optional[str] = Field(None, description="Log file path")
    max_size: int = Field(10485760, description="Max log file size in bytes")  # 10MB
    backup_count: int = Field(5, description="Number of backup log files")

    @field_validator("level", mode="before")
    @classmethod
    def upper_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v


class InfluxSyncConfig(BaseSettings):
    """Main influxsync configuration."""

    # Schema files
    config_dir: Path = Field(
        Path("/etc/influxdb/schema"), description="Schema config directory"
    )
    databases_dir: str = Field(
        "db", description="Subdirectory with database and retention policy files"
    )
    continuous_queries_dir: str = Field(
        "cq", description="Subdirectory with continuous query files"
    )

    # Server
    url: str = Field("http://localhost:8086", description="InfluxDB URL")
    timeout: float = Field(30.0, description="Request timeout in seconds")

    # Safety flags
    force: bool = Field(False, description="Allow destructive operations")
    dry_run: bool = Field(False, description="Plan only, apply nothing")

    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="INFLUXSYNC_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("timeout")
    @classmethod
    def positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeout must be positive")
        return v

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "InfluxSyncConfig":
        """Load configuration from a YAML file."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}

            if not isinstance(data, dict):
                raise ConfigurationError(f"Settings file must contain a mapping: {path}")

            # Expand environment variables in the data
            data = cls._expand_env_vars(data)

            return cls(**data)
        except FileNotFoundError:
            raise ConfigurationError(f"Settings file not found: {path}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in settings file: {e}")
        except ValidationError as e:
            raise ConfigurationError(f"Invalid settings: {e}")

    @classmethod
    def _expand_env_vars(cls, data: Any) -> Any:
        """Recursively expand environment variables in configuration data."""
        if isinstance(data, dict):
            return {k: cls._expand_env_vars(v) for k, v in data.items()}
        elif isinstance(data, list):
            return [cls._expand_env_vars(item) for item in data]
        elif isinstance(data, str):
            return os.path.expandvars(data)
        else:
            return data

    def with_overrides(self, **overrides: Any) -> "InfluxSyncConfig":
        """Copy with the given fields replaced, ignoring ``None`` values."""
        values = {k: v for k, v in overrides.items() if v is not None}
        try:
            return self.__class__.model_validate({**self.model_dump(), **values})
        except ValidationError as e:
            raise ConfigurationError(f"Invalid settings: {e}")

    def get_endpoint(self) -> InfluxEndpoint:
        """Parse the configured URL into an endpoint."""
        return InfluxEndpoint.from_url(self.url)
