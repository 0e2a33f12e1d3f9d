"""
Configuration management and loading.

Handles application settings from a YAML file.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

import yaml

DEFAULT_CONFIG_PATH = "gridbill.yaml"
CONFIG_ENV_VAR = "GRIDBILL_CONFIG"

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


@dataclass(frozen=True)
class DatabaseConfig:
    """Where the billing database lives."""
    path: str = "gridbill.db"

    def __post_init__(self):
        if not self.path or not str(self.path).strip():
            raise ValueError("database.path cannot be empty")


@dataclass(frozen=True)
class BillingConfig:
    """Invoice issuance settings."""
    default_due_days: int = 20

    def __post_init__(self):
        if self.default_due_days <= 0:
            raise ValueError("billing.default_due_days must be > 0")


@dataclass(frozen=True)
class LoggingConfig:
    """Log verbosity."""
    level: str = "INFO"

    def __post_init__(self):
        if self.level not in _LOG_LEVELS:
            raise ValueError(f"logging.level must be one of: {sorted(_LOG_LEVELS)}")

    @property
    def numeric_level(self) -> int:
        return getattr(logging, self.level)


@dataclass(frozen=True)
class ApiConfig:
    """HTTP server binding."""
    host: str = "127.0.0.1"
    port: int = 8000

    def __post_init__(self):
        if not 0 < self.port < 65536:
            raise ValueError("api.port must be between 1 and 65535")


@dataclass(frozen=True)
class AppConfig:
    """Complete application configuration."""
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    billing: BillingConfig = field(default_factory=BillingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    api: ApiConfig = field(default_factory=ApiConfig)


_SECTIONS = {
    "database": {"path": str},
    "billing": {"default_due_days": int},
    "logging": {"level": str},
    "api": {"host": str, "port": int},
}


def load_config(path: Optional[str] = None) -> AppConfig:
    """Load and validate application configuration from a YAML file.

    Without an explicit path, ``$GRIDBILL_CONFIG`` or ``gridbill.yaml`` is
    used, and a missing file yields the defaults. An explicit path must
    exist.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated AppConfig object

    Raises:
        FileNotFoundError: If an explicit config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    explicit = path is not None
    config_path = Path(path or os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH))
    if not config_path.exists():
        if explicit:
            raise FileNotFoundError(f"Config file not found: {path}")
        return AppConfig()

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {config_path}: {e}")

    if not raw_config:
        return AppConfig()
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a mapping")

    unknown_keys = set(raw_config.keys()) - set(_SECTIONS)
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    sections = {
        name: _parse_section(name, raw_config.get(name) or {})
        for name in _SECTIONS
    }
    return AppConfig(
        database=DatabaseConfig(**sections["database"]),
        billing=BillingConfig(**sections["billing"]),
        logging=LoggingConfig(**sections["logging"]),
        api=ApiConfig(**sections["api"])
    )


def _parse_section(name: str, data: Dict) -> Dict:
    """Validate one config section's keys and value types.

    Args:
        name: Section name, for error messages
        data: Raw section data

    Returns:
        Keyword arguments for the section dataclass

    Raises:
        ValueError: If the section is malformed
    """
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")

    allowed = _SECTIONS[name]
    unknown_keys = set(data.keys()) - set(allowed)
    if unknown_keys:
        raise ValueError(f"Unknown keys in {name}: {unknown_keys}")

    values = {}
    for key, value in data.items():
        expected = allowed[key]
        if expected is int and (isinstance(value, bool) or not isinstance(value, int)):
            raise ValueError(f"'{key}' in {name} must be an integer")
        if expected is str and not isinstance(value, str):
            raise ValueError(f"'{key}' in {name} must be a string")
        values[key] = value.upper() if (name, key) == ("logging", "level") else value
    return values
