"""
MiniMax MCP Configuration - Configuration loading and validation.

This module provides the MiniMaxConfig record consumed by the MCP session
and the resolver that builds it from (highest precedence first):

- Explicit overrides (CLI flags, host extension flags)
- A config file (./.pi/extensions/minimax-mcp.json, then
  ~/.pi/agent/extensions/minimax-mcp.json)
- MINIMAX_* environment variables
- Built-in defaults
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_API_HOST = "https://api.minimax.io"
DEFAULT_TIMEOUT_MS = 60000
DEFAULT_MAX_BYTES = 51200
DEFAULT_MAX_LINES = 2000

API_KEY_URL = "https://platform.minimax.io/subscribe/coding-plan"

# field name -> environment variable
ENV_VARS = {
    "api_key": "MINIMAX_API_KEY",
    "api_host": "MINIMAX_API_HOST",
    "base_path": "MINIMAX_MCP_BASE_PATH",
    "resource_mode": "MINIMAX_API_RESOURCE_MODE",
    "timeout_ms": "MINIMAX_MCP_TIMEOUT_MS",
    "max_bytes": "MINIMAX_MCP_MAX_BYTES",
    "max_lines": "MINIMAX_MCP_MAX_LINES",
}

INT_FIELDS = ("timeout_ms", "max_bytes", "max_lines")


class ConfigError(Exception):
    """Raised when there's a configuration error."""

    pass


class MiniMaxConfig(BaseModel):
    """Immutable configuration snapshot for one MCP session."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    api_key: Optional[str] = Field(default=None, alias="apiKey")
    api_host: str = Field(default=DEFAULT_API_HOST, alias="apiHost")
    base_path: Optional[str] = Field(default=None, alias="basePath")
    resource_mode: Literal["url", "local"] = Field(default="url", alias="resourceMode")
    timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, alias="timeoutMs", gt=0)
    max_bytes: int = Field(default=DEFAULT_MAX_BYTES, alias="maxBytes", gt=0)
    max_lines: int = Field(default=DEFAULT_MAX_LINES, alias="maxLines", gt=0)


def config_paths() -> List[Path]:
    """Config file locations, searched in order."""
    return [
        Path.cwd() / ".pi" / "extensions" / "minimax-mcp.json",
        Path.home() / ".pi" / "agent" / "extensions" / "minimax-mcp.json",
    ]


def resolve_config_path(custom_path: Optional[Union[str, Path]]) -> Optional[Path]:
    """Expand ``~`` in a user-supplied config path."""
    if not custom_path:
        return None
    return Path(custom_path).expanduser()


def _normalize_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    """Map camelCase keys to field names, dropping unknown keys and nulls."""
    aliases = {
        field.alias: name
        for name, field in MiniMaxConfig.model_fields.items()
        if field.alias
    }
    normalized: Dict[str, Any] = {}
    for key, value in data.items():
        name = aliases.get(key, key)
        if name in MiniMaxConfig.model_fields and value is not None:
            normalized[name] = value
    return normalized


def _load_file(path: Path) -> Optional[Dict[str, Any]]:
    """Load a JSON/YAML config file. Returns None if missing or unreadable."""
    if not path.exists():
        return None

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Failed to load config from %s: %s", path, e)
        return None

    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring config at %s: expected a mapping", path)
        return None
    return data


def _env_values() -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for name, env_var in ENV_VARS.items():
        raw = os.environ.get(env_var)
        if not raw:
            continue
        if name in INT_FIELDS:
            try:
                values[name] = int(raw, 10)
            except ValueError:
                logger.debug("Ignoring non-integer %s=%r", env_var, raw)
            continue
        values[name] = raw
    return values


def merge_config(overrides: Optional[Dict[str, Any]] = None) -> MiniMaxConfig:
    """
    Build a config from overrides layered over environment and defaults.

    Args:
        overrides: Field values (snake_case or camelCase). ``None`` values
            are ignored so they never mask the environment.

    Raises:
        ConfigError: If the merged values fail validation.
    """
    merged = _env_values()
    merged.update(_normalize_keys(overrides or {}))

    try:
        return MiniMaxConfig(**merged)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}")


def load_config(
    custom_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> MiniMaxConfig:
    """
    Load configuration from the first readable config file.

    Args:
        custom_path: Explicit config file; replaces the default search list.
        overrides: Values taking precedence over the file (e.g. CLI flags).

    Returns:
        The resolved MiniMaxConfig.
    """
    explicit = resolve_config_path(custom_path)
    paths = [explicit] if explicit else config_paths()

    file_values: Dict[str, Any] = {}
    for path in paths:
        data = _load_file(path)
        if data is not None:
            file_values = _normalize_keys(data)
            break

    file_values.update(_normalize_keys(overrides or {}))
    return merge_config(file_values)


def ensure_default_config(path: Optional[Path] = None) -> Path:
    """
    Create the global default config file if it does not exist yet.

    Existing files are never overwritten.
    """
    config_file = path or config_paths()[1]
    if config_file.exists():
        return config_file

    default_config = {
        "apiKey": None,  # Set via MINIMAX_API_KEY env var
        "apiHost": DEFAULT_API_HOST,
        "basePath": None,
        "resourceMode": "url",
        "timeoutMs": DEFAULT_TIMEOUT_MS,
        "maxBytes": DEFAULT_MAX_BYTES,
        "maxLines": DEFAULT_MAX_LINES,
    }

    try:
        config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(config_file, "w", encoding="utf-8") as f:
            f.write(json.dumps(default_config, indent=2) + "\n")
        logger.info("Created default config at %s", config_file)
    except OSError as e:
        logger.warning("Failed to create default config: %s", e)

    return config_file


def validate_config(config: MiniMaxConfig) -> None:
    """Raise ConfigError if the config cannot be used to start a session."""
    if not config.api_key:
        raise ConfigError(
            "MiniMax API key is required. Set MINIMAX_API_KEY environment variable "
            "or add to config file.\n"
            f"Get your key at: {API_KEY_URL}"
        )


def redact_sensitive_data(config: MiniMaxConfig) -> Dict[str, Any]:
    """Config as a camelCase dict with the API key masked."""
    data = config.model_dump(by_alias=True)
    data["apiKey"] = "***REDACTED***" if config.api_key else None
    return data
