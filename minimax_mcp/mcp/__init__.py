"""
MiniMax MCP client: a JSON-RPC session with the ``minimax-coding-plan-mcp``
server over stdio, plus output bounding for agent consumption.

    caller --> MiniMaxSession --stdin--> uvx minimax-coding-plan-mcp
           <-- tool result   <-stdout--
           --> format_tool_output --> bounded text (+ full output on disk)
"""

from minimax_mcp.mcp.formatter import (
    FormattedOutput,
    OutputDetails,
    TruncationResult,
    format_bytes,
    format_tool_output,
    truncate_text,
)
from minimax_mcp.mcp.schema import UnderstandImageParams, WebSearchParams
from minimax_mcp.mcp.session import (
    MCPInitializeError,
    MCPProcessError,
    MCPProtocolError,
    MCPStartupError,
    MCPTimeoutError,
    MCPToolCallError,
    MCPTransportError,
    MiniMaxSession,
)

__all__ = [
    "FormattedOutput",
    "OutputDetails",
    "TruncationResult",
    "format_bytes",
    "format_tool_output",
    "truncate_text",
    "UnderstandImageParams",
    "WebSearchParams",
    "MCPInitializeError",
    "MCPProcessError",
    "MCPProtocolError",
    "MCPStartupError",
    "MCPTimeoutError",
    "MCPToolCallError",
    "MCPTransportError",
    "MiniMaxSession",
]
