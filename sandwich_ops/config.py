"""
Configuration module for sandwich-ops.

Provides centralized configuration for the soft delete lifecycle, the
deletion audit ledger and the operator CLI.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union, get_args, get_origin

import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, Field, field_validator


class LogLevel(str, Enum):
    """Supported log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class OpsConfig(BaseModel):
    """Central configuration for sandwich-ops.

    Configuration Sources (in order of precedence):
        1. Programmatic settings (highest priority)
        2. Environment variables (SANDWICH_OPS_ prefix)
        3. Configuration files (JSON or YAML)
        4. Default values (lowest priority)

    Example:
        >>> config = OpsConfig(
        ...     database_url="postgresql://ops@localhost/sandwich",
        ...     history_page_size=25,
        ... )

        Loading from environment:

        >>> import os
        >>> os.environ['SANDWICH_OPS_DEFAULT_ACTOR_ID'] = 'scheduler'
        >>> config = OpsConfig.from_env()

    Note:
        The actor used when a caller does not pass one is ``default_actor_id``.
        It is only a fallback; every service operation accepts the acting user
        explicitly.
    """

    # General settings
    application_name: str = Field(
        "Sandwich Ops", description="Name of the application"
    )
    environment: str = Field(
        "production", description="Environment (development, staging, production)"
    )

    # Database settings
    database_url: str = Field(
        "sqlite:///./sandwich_ops.db", description="SQLAlchemy database URL"
    )
    echo_sql: bool = Field(False, description="Log every SQL statement")

    # Soft delete settings
    default_actor_id: str = Field(
        "system", description="Actor recorded when none is supplied", min_length=1
    )
    default_deletion_reason: str = Field(
        "Soft delete via application",
        description="Reason recorded when none is supplied",
        min_length=1,
    )
    bulk_deletion_reason: str = Field(
        "Bulk soft delete via application",
        description="Reason recorded for bulk deletes when none is supplied",
        min_length=1,
    )
    bulk_max_workers: int = Field(
        1, description="Worker threads used by bulk soft delete", ge=1, le=32
    )

    # Ledger settings
    history_page_size: int = Field(
        50, description="Default page size for deletion history", gt=0, le=500
    )

    # Logging
    log_level: LogLevel = Field(LogLevel.INFO, description="Root log level")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is valid."""
        valid_environments = {"development", "staging", "production", "test"}
        if v.lower() not in valid_environments:
            raise ValueError(
                f"Environment must be one of: {', '.join(sorted(valid_environments))}"
            )
        return v.lower()

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.upper()
        return v

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return self.model_dump(mode="json")

    @classmethod
    def from_env(cls, prefix: str = "SANDWICH_OPS_") -> "OpsConfig":
        """
        Load configuration from environment variables.

        Args:
            prefix: Prefix for environment variables

        Returns:
            Configuration instance
        """
        import os

        config_dict: Dict[str, Any] = {}

        for field_name, field_info in cls.model_fields.items():
            env_var = f"{prefix}{field_name.upper()}"
            if env_var not in os.environ:
                continue
            value = os.environ[env_var]

            field_type = field_info.annotation

            # Handle Optional types
            if get_origin(field_type) is Union:
                args = get_args(field_type)
                field_type = next((arg for arg in args if arg is not type(None)), str)

            try:
                if field_type == bool:
                    config_dict[field_name] = value.lower() in (
                        "true",
                        "1",
                        "yes",
                        "on",
                    )
                elif field_type == int:
                    config_dict[field_name] = int(value)
                elif isinstance(field_type, type) and issubclass(field_type, Enum):
                    config_dict[field_name] = field_type(value.upper())
                else:
                    config_dict[field_name] = value
            except (ValueError, TypeError):
                # Let model validation report the bad value
                config_dict[field_name] = value

        return cls.model_validate(config_dict)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "OpsConfig":
        """
        Load configuration from a JSON or YAML file.

        Args:
            path: Path to a ``.json``, ``.yaml`` or ``.yml`` file

        Returns:
            Configuration instance

        Raises:
            ValueError: If the file extension is not supported
        """
        path = Path(path)
        text = path.read_text(encoding="utf-8")

        if path.suffix == ".json":
            data = json.loads(text)
        elif path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(text) or {}
        else:
            raise ValueError(f"Unsupported configuration file type: {path.suffix}")

        return cls.model_validate(data)


# Global configuration instance
_config: Optional[OpsConfig] = None


def get_config() -> OpsConfig:
    """
    Get the global configuration instance.

    Returns:
        Global configuration
    """
    global _config

    if _config is None:
        _config = OpsConfig.from_env()

    return _config


def set_config(config: Optional[OpsConfig]) -> None:
    """
    Set the global configuration instance.

    Args:
        config: Configuration to set, or None to reload from the environment
    """
    global _config
    _config = config


def configure(**kwargs: Any) -> OpsConfig:
    """
    Configure sandwich-ops with keyword arguments.

    Args:
        **kwargs: Configuration parameters

    Returns:
        Updated configuration
    """
    global _config

    if _config is None:
        _config = OpsConfig(**kwargs)
    else:
        config_dict = _config.model_dump()
        config_dict.update(kwargs)
        _config = OpsConfig(**config_dict)

    return _config
