"""Tool output formatting: bounded text for the agent, full output on disk."""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass
from typing import Any, Dict, Optional

from pydantic import BaseModel

DEFAULT_MAX_BYTES = 51200
DEFAULT_MAX_LINES = 2000


class OutputDetails(BaseModel):
    """Metrics describing how a tool result was bounded."""

    truncated: bool = False
    total_lines: int = 0
    total_bytes: int = 0
    output_lines: int = 0
    output_bytes: int = 0
    first_line_exceeds_limit: bool = False
    temp_file: Optional[str] = None


class FormattedOutput(BaseModel):
    """Display text for a tool result plus its truncation metrics."""

    text: str
    details: OutputDetails


@dataclass
class TruncationResult:
    content: str
    truncated: bool
    total_lines: int
    total_bytes: int
    output_lines: int
    output_bytes: int
    first_line_exceeds_limit: bool = False


def _byte_len(text: str) -> int:
    return len(text.encode("utf-8"))


def _line_count(text: str) -> int:
    return text.count("\n") + 1


def format_bytes(num_bytes: int) -> str:
    if num_bytes < 1024:
        return f"{num_bytes}B"
    if num_bytes < 1024 * 1024:
        return f"{num_bytes / 1024:.1f}KB"
    return f"{num_bytes / (1024 * 1024):.1f}MB"


def extract_text(result: Dict[str, Any]) -> str:
    """
    Text of a tool result: all text blocks joined by a blank line, or an
    indented JSON dump when the result carries no text.
    """
    content = result.get("content")
    blocks = content if isinstance(content, list) else []
    texts = [
        b["text"]
        for b in blocks
        if isinstance(b, dict) and b.get("type") == "text" and isinstance(b.get("text"), str)
    ]
    text = "\n\n".join(texts)
    return text or json.dumps(result, indent=2, default=str)


def _tail_bytes(text: str, max_bytes: int) -> tuple[str, bool]:
    """
    Keep the trailing ``max_bytes`` bytes of ``text`` starting on a line
    boundary. Returns ``(content, first_line_exceeds_limit)``.
    """
    raw = text.encode("utf-8")
    window = raw[-max_bytes:]
    # A partial UTF-8 sequence at the cut is dropped by the decoder.
    content = window.decode("utf-8", errors="ignore")

    if raw[-max_bytes - 1 : -max_bytes] == b"\n":
        return content, False

    # A trailing newline ends the last line; it is not a boundary before it.
    body = content[:-1] if content.endswith("\n") else content
    newline = body.find("\n")
    if newline == -1:
        # The last line alone is larger than the budget.
        return content, True
    return content[newline + 1 :], False


def truncate_text(
    text: str,
    max_bytes: int = DEFAULT_MAX_BYTES,
    max_lines: int = DEFAULT_MAX_LINES,
) -> TruncationResult:
    """
    Bound ``text`` to ``max_bytes`` and ``max_lines``, keeping the tail.

    The byte budget is applied first (the leading partial line of the kept
    window is dropped), then the line budget on what remains.
    """
    total_bytes = _byte_len(text)
    total_lines = _line_count(text)

    if total_lines <= max_lines and total_bytes <= max_bytes:
        return TruncationResult(
            content=text,
            truncated=False,
            total_lines=total_lines,
            total_bytes=total_bytes,
            output_lines=total_lines,
            output_bytes=total_bytes,
        )

    content = text
    first_line_exceeds_limit = False

    if total_bytes > max_bytes:
        content, first_line_exceeds_limit = _tail_bytes(content, max_bytes)

    lines = content.split("\n")
    if len(lines) > max_lines:
        content = "\n".join(lines[-max_lines:])

    return TruncationResult(
        content=content,
        truncated=True,
        total_lines=total_lines,
        total_bytes=total_bytes,
        output_lines=_line_count(content),
        output_bytes=_byte_len(content),
        first_line_exceeds_limit=first_line_exceeds_limit,
    )


def write_temp_file(content: str, directory: Optional[str] = None) -> str:
    """Write ``content`` to a new uniquely named file and return its path."""
    fd, path = tempfile.mkstemp(prefix="minimax-mcp-", suffix=".txt", dir=directory)
    with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
        f.write(content)
    return path


def _truncation_notice(result: TruncationResult, temp_file: str, max_bytes: int) -> str:
    if result.first_line_exceeds_limit:
        return (
            f"\n\n[Output truncated: line exceeds {format_bytes(max_bytes)} limit, "
            f"showing last {format_bytes(result.output_bytes)} of {format_bytes(result.total_bytes)}. "
            f"Full output: {temp_file}]"
        )
    return (
        f"\n\n[Output truncated: {result.output_lines} of {result.total_lines} lines "
        f"({format_bytes(result.output_bytes)} of {format_bytes(result.total_bytes)}). "
        f"Full output: {temp_file}]"
    )


def format_tool_output(
    result: Dict[str, Any],
    max_bytes: int = DEFAULT_MAX_BYTES,
    max_lines: int = DEFAULT_MAX_LINES,
    temp_dir: Optional[str] = None,
) -> FormattedOutput:
    """
    Format a ``tools/call`` result for display.

    When the text exceeds either budget the untruncated text is written to a
    temp file and a notice pointing at it is appended to the kept tail.
    """
    raw_text = extract_text(result)
    bounded = truncate_text(raw_text, max_bytes=max_bytes, max_lines=max_lines)

    text = bounded.content
    temp_file: Optional[str] = None
    if bounded.truncated:
        temp_file = write_temp_file(raw_text, directory=temp_dir)
        text += _truncation_notice(bounded, temp_file, max_bytes)

    return FormattedOutput(
        text=text,
        details=OutputDetails(
            truncated=bounded.truncated,
            total_lines=bounded.total_lines,
            total_bytes=bounded.total_bytes,
            output_lines=_line_count(text),
            output_bytes=_byte_len(text),
            first_line_exceeds_limit=bounded.first_line_exceeds_limit,
            temp_file=temp_file,
        ),
    )
