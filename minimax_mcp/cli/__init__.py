"""MiniMax MCP command-line interface."""

from minimax_mcp.cli.main import cli, main

__all__ = ["cli", "main"]
