"""Configuration loading with environment variable substitution."""

import json
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from auth_state.exceptions import ConfigError

ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)\}")

# Table names are interpolated into SQL, so only plain identifiers are allowed
TABLE_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")


def substitute_env_vars(value: Any) -> Any:
    """Recursively substitute ${VAR_NAME} patterns with environment variables."""
    if isinstance(value, str):
        def replace(match: re.Match[str]) -> str:
            var_name = match.group(1)
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ConfigError(f"Environment variable {var_name} is not set")
            return env_value

        return ENV_VAR_PATTERN.sub(replace, value)
    elif isinstance(value, dict):
        return {k: substitute_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [substitute_env_vars(v) for v in value]
    return value


class DatabaseConfig(BaseModel):
    """Durable backend configuration."""

    backend: str = "sqlite"
    path: str | None = None  # For SQLite; ":memory:" for an in-process database
    table: str = "auth_state"

    @field_validator("table")
    @classmethod
    def _check_table(cls, value: str) -> str:
        if not TABLE_NAME_RE.match(value):
            raise ValueError(f"Invalid table name: {value!r}")
        return value


class CacheConfig(BaseModel):
    """In-memory cache configuration."""

    max_size: int | None = Field(default=None, gt=0)  # None = unbounded


class StoreConfig(BaseModel):
    """Main configuration for an auth state store."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    # Refuse to synthesize credentials when the stored ones cannot be read
    strict_bootstrap: bool = False

    @classmethod
    def from_file(cls, path: str | Path) -> "StoreConfig":
        """Load configuration from a YAML or JSON file."""
        path = Path(path)
        with path.open() as f:
            if path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)

        return cls.from_dict(data or {})

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StoreConfig":
        """Load configuration from a dictionary."""
        if not isinstance(data, dict):
            raise ConfigError("Invalid connection options.")
        data = substitute_env_vars(data)
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e
