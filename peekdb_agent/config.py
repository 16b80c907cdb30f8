"""
Configuration Management for PeekDB Agent

Loads configuration from an optional YAML file, environment variables
and command-line overrides.
"""

import os
import yaml
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional
from pathlib import Path

from .exceptions import ConfigError

DEFAULT_HUB_URL = "wss://connect.peekdb.com/agent"


@dataclass(frozen=True)
class ConnectionConfig:
    """Hub and local database settings, fixed for the process lifetime"""
    hub_url: str = DEFAULT_HUB_URL
    token: str = ""
    display_name: Optional[str] = None
    database_url: str = ""
    max_open_conns: int = 10
    max_idle_conns: int = 5
    ssl_verify: bool = True
    auth_timeout: float = 30


@dataclass
class LoggingConfig:
    """Logging settings"""
    level: str = "INFO"
    file: Optional[str] = None
    rotation: str = "10 MB"
    retention: int = 5


@dataclass
class AgentConfig:
    """Complete agent configuration"""
    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self):
        """
        Check the settings the agent cannot start without

        Raises:
            ConfigError: If the token or database URL is missing
        """
        if not self.connection.token:
            raise ConfigError("Token required: --token or PEEKDB_TOKEN env")
        if not self.connection.database_url:
            raise ConfigError("Database URL required: --db or DATABASE_URL env")


def _to_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


ENV_MAPPINGS = {
    # Connection
    "PEEKDB_HUB_URL": ("connection", "hub_url", str),
    "PEEKDB_TOKEN": ("connection", "token", str),
    "PEEKDB_NAME": ("connection", "display_name", str),
    "DATABASE_URL": ("connection", "database_url", str),
    "PEEKDB_MAX_OPEN_CONNS": ("connection", "max_open_conns", int),
    "PEEKDB_MAX_IDLE_CONNS": ("connection", "max_idle_conns", int),
    "PEEKDB_SSL_VERIFY": ("connection", "ssl_verify", _to_bool),
    "PEEKDB_AUTH_TIMEOUT": ("connection", "auth_timeout", float),
    # Logging
    "LOG_LEVEL": ("logging", "level", str),
    "LOG_FILE": ("logging", "file", str),
}


def _read_file(config_path: str) -> Dict[str, Any]:
    # utf-8-sig tolerates a BOM written by Windows editors
    with open(config_path, "r", encoding="utf-8-sig") as f:
        try:
            content = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
    if not isinstance(content, dict):
        raise ConfigError(f"Config file must contain a mapping: {config_path}")
    return content


def load_config(
    config_path: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
    environ: Optional[Dict[str, str]] = None,
) -> AgentConfig:
    """
    Load configuration from YAML file, environment variables and overrides

    Priority:
    1. Overrides (command-line flags, highest)
    2. Environment variables
    3. Config file
    4. Defaults (lowest)

    Args:
        config_path: Path to a YAML config file; missing files are ignored
        overrides: Connection settings keyed by field name; None values are skipped
        environ: Environment mapping (defaults to os.environ)

    Returns:
        AgentConfig instance
    """
    if environ is None:
        environ = os.environ
    if config_path is None:
        config_path = environ.get("PEEKDB_CONFIG_PATH")

    sections: Dict[str, Dict[str, Any]] = {"connection": {}, "logging": {}}
    known = {
        "connection": {f.name for f in fields(ConnectionConfig)},
        "logging": {f.name for f in fields(LoggingConfig)},
    }

    if config_path and Path(config_path).exists():
        file_config = _read_file(config_path)
        for section, keys in known.items():
            for key, value in (file_config.get(section) or {}).items():
                if key in keys:
                    sections[section][key] = value

    # Environment variables override the config file
    for env_var, (section, key, converter) in ENV_MAPPINGS.items():
        value = environ.get(env_var)
        if value:
            try:
                sections[section][key] = converter(value)
            except ValueError as e:
                raise ConfigError(f"Invalid value for {env_var}: {value!r}") from e

    for key, value in (overrides or {}).items():
        if value is not None and key in known["connection"]:
            sections["connection"][key] = value

    return AgentConfig(
        connection=ConnectionConfig(**sections["connection"]),
        logging=LoggingConfig(**sections["logging"]),
    )
