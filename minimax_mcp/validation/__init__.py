"""
MiniMax MCP validation module.

This module provides configuration loading, merging and validation.
"""

from minimax_mcp.validation.config import (
    ConfigError,
    MiniMaxConfig,
    ensure_default_config,
    load_config,
    merge_config,
    redact_sensitive_data,
    validate_config,
)

__all__ = [
    "ConfigError",
    "MiniMaxConfig",
    "ensure_default_config",
    "load_config",
    "merge_config",
    "redact_sensitive_data",
    "validate_config",
]
