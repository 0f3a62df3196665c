"""
minimax-mcp - MiniMax web search and image understanding for coding agents.

Spawns the MiniMax MCP server (``uvx minimax-coding-plan-mcp``), talks
JSON-RPC 2.0 to it over stdio, and exposes two of its tools:

- web_search: real-time web search
- understand_image: image analysis and description

Front-ends:
- Host agent extension (minimax_mcp.extension.register)
- CLI (``minimax-mcp search ...``, ``minimax-mcp understand ...``)

Example:
    >>> from minimax_mcp import MiniMaxSession, load_config
    >>> with MiniMaxSession(load_config()) as session:
    ...     result = session.web_search("quantum computing breakthroughs")
"""

__version__ = "1.0.0"
__license__ = "MIT"

from minimax_mcp.mcp.formatter import FormattedOutput, format_tool_output
from minimax_mcp.mcp.session import MCPTransportError, MiniMaxSession
from minimax_mcp.validation.config import ConfigError, MiniMaxConfig, load_config

__all__ = [
    "ConfigError",
    "FormattedOutput",
    "MCPTransportError",
    "MiniMaxConfig",
    "MiniMaxSession",
    "format_tool_output",
    "load_config",
    "__version__",
]
