"""
MiniMax MCP extension module.

This module registers the MiniMax tools with a host coding agent.
"""

from minimax_mcp.extension.tools import ExtensionAPI, MiniMaxTools, ToolSpec, register

__all__ = ["ExtensionAPI", "MiniMaxTools", "ToolSpec", "register"]
