#!/usr/bin/env python3
"""
config.py
-------------------
Configuration for the Marginalia data layer.

A single :class:`MarginaliaConfig` is built once (from defaults, a YAML
file, or CLI overrides) and passed explicitly to :class:`MarginaliaDB`,
which hands the pieces each component needs (domain to the identifier
codec, retention to the purge sweep) down to them.

Example YAML:
    database_url: postgresql+psycopg2://ink@localhost/ink
    domain: https://reader.example.org
    log_dir: ~/.marginalia/logs
    retention_hours: 24
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from dataclasses import dataclass, fields, replace
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Optional, Union

# --- Third party imports ---
import yaml

# --- Local imports ---
from .exceptions import ConfigError


DEFAULT_DATA_DIR = Path("~/.marginalia").expanduser()
DEFAULT_DATABASE_URL = f"sqlite:///{DEFAULT_DATA_DIR / 'marginalia.db'}"
DEFAULT_RETENTION_HOURS = 24.0


@dataclass(frozen=True)
class MarginaliaConfig:
    """
    Settings shared by the data-layer components.

    Attributes:
        database_url: SQLAlchemy URL of the store
        domain: Base URL prefixed to public ids (may be empty)
        log_dir: Directory for rotating log files; None disables file logging
        retention_hours: Age a soft-deleted row must reach before purge
        echo_sql: Echo emitted SQL (debugging)
    """

    database_url: str = DEFAULT_DATABASE_URL
    domain: str = ""
    log_dir: Optional[Path] = None
    retention_hours: float = DEFAULT_RETENTION_HOURS
    echo_sql: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.database_url, str) or not self.database_url:
            raise ConfigError("database_url must be a non-empty string")
        if not isinstance(self.domain, str):
            raise ConfigError("domain must be a string")
        try:
            hours = float(self.retention_hours)
        except (TypeError, ValueError) as e:
            raise ConfigError(
                f"retention_hours must be a number, got {self.retention_hours!r}"
            ) from e
        if hours < 0:
            raise ConfigError("retention_hours cannot be negative")

        # frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "retention_hours", hours)
        object.__setattr__(self, "domain", self.domain.rstrip("/"))
        if self.log_dir is not None:
            object.__setattr__(self, "log_dir", Path(self.log_dir).expanduser())

    @property
    def retention(self) -> timedelta:
        """Retention window as a timedelta."""
        return timedelta(hours=self.retention_hours)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MarginaliaConfig":
        """
        Build a configuration from a mapping, rejecting unknown keys.

        Raises:
            ConfigError: If the mapping has unknown keys or invalid values
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "MarginaliaConfig":
        """
        Load configuration from a YAML file.

        Args:
            path: Path to the YAML file

        Returns:
            Parsed configuration

        Raises:
            ConfigError: If the file is missing, unparsable or invalid
        """
        path = Path(path).expanduser()
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except FileNotFoundError as e:
            raise ConfigError(f"Configuration file not found: {path}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Configuration in {path} must be a mapping")
        return cls.from_dict(data)

    def with_overrides(self, **overrides: Any) -> "MarginaliaConfig":
        """Return a copy with the non-None overrides applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self
