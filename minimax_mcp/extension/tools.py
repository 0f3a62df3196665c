"""
Host agent extension - registers MiniMax tools with a coding agent.

Provides two tools through the host's extension API:
- web_search: Real-time web search
- understand_image: Image analysis and description

Setup:
1. Get an API key: https://platform.minimax.io/subscribe/coding-plan
2. Export it: MINIMAX_API_KEY=your-key
   (or put it in ~/.pi/agent/extensions/minimax-mcp.json)

Each tool invocation runs in its own MiniMaxSession that is disconnected
before the tool returns.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol

from pydantic import BaseModel, ValidationError

from minimax_mcp.mcp.formatter import format_tool_output
from minimax_mcp.mcp.schema import UnderstandImageParams, WebSearchParams
from minimax_mcp.mcp.session import MCPTransportError, MiniMaxSession
from minimax_mcp.validation.config import (
    ConfigError,
    MiniMaxConfig,
    ensure_default_config,
    load_config,
    redact_sensitive_data,
    validate_config,
)

logger = logging.getLogger(__name__)

FLAGS = {
    "--minimax-api-key": "MiniMax API key (overrides env/config)",
    "--minimax-api-host": "MiniMax API host (default: https://api.minimax.io)",
    "--minimax-mcp-config": "Path to JSON config file",
    "--minimax-mcp-max-bytes": "Max bytes to keep from tool output (default: 51200)",
    "--minimax-mcp-max-lines": "Max lines to keep from tool output (default: 2000)",
}

ToolResponse = Dict[str, Any]
UpdateCallback = Callable[[ToolResponse], None]


class ExtensionAPI(Protocol):
    """The subset of the host agent's extension API this package uses."""

    def register_flag(self, name: str, description: str, type: str = "string") -> None: ...

    def get_flag(self, name: str) -> Any: ...

    def register_tool(self, tool: "ToolSpec") -> None: ...


@dataclass
class ToolSpec:
    """A tool as registered with the host agent."""

    name: str
    label: str
    description: str
    parameters: Dict[str, Any]
    execute: Callable[..., ToolResponse]


def _text_response(text: str, is_error: bool = False, details: Optional[Dict[str, Any]] = None) -> ToolResponse:
    response: ToolResponse = {"content": [{"type": "text", "text": text}]}
    if is_error:
        response["isError"] = True
    if details is not None:
        response["details"] = details
    return response


def _str_flag(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _int_flag(value: Any) -> Optional[int]:
    if not isinstance(value, str):
        return None
    try:
        return int(value, 10)
    except ValueError:
        logger.warning("Ignoring non-integer flag value %r", value)
        return None


class MiniMaxTools:
    """Tool implementations bound to one host extension API."""

    def __init__(
        self,
        api: ExtensionAPI,
        session_factory: Callable[[MiniMaxConfig], MiniMaxSession] = MiniMaxSession,
    ):
        self.api = api
        self.session_factory = session_factory

    def get_config(self) -> MiniMaxConfig:
        """Resolve config: host flags > config file > environment > defaults."""
        return load_config(
            _str_flag(self.api.get_flag("--minimax-mcp-config")),
            overrides={
                "api_key": _str_flag(self.api.get_flag("--minimax-api-key")),
                "api_host": _str_flag(self.api.get_flag("--minimax-api-host")),
                "max_bytes": _int_flag(self.api.get_flag("--minimax-mcp-max-bytes")),
                "max_lines": _int_flag(self.api.get_flag("--minimax-mcp-max-lines")),
            },
        )

    def web_search(
        self,
        tool_call_id: str,
        params: Dict[str, Any],
        on_update: Optional[UpdateCallback] = None,
        ctx: Any = None,
        signal: Optional[threading.Event] = None,
    ) -> ToolResponse:
        try:
            search = WebSearchParams.model_validate(params)
        except ValidationError as e:
            return _text_response(f"Invalid web_search parameters: {e}", is_error=True)

        return self._execute(
            pending_text=f'Searching: "{search.query}"...',
            invoke=lambda session: session.web_search(
                search.query, num_results=search.num_results, recency_days=search.recency_days
            ),
            on_update=on_update,
            signal=signal,
        )

    def understand_image(
        self,
        tool_call_id: str,
        params: Dict[str, Any],
        on_update: Optional[UpdateCallback] = None,
        ctx: Any = None,
        signal: Optional[threading.Event] = None,
    ) -> ToolResponse:
        try:
            image = UnderstandImageParams.model_validate(params)
        except ValidationError as e:
            return _text_response(f"Invalid understand_image parameters: {e}", is_error=True)

        return self._execute(
            pending_text="Analyzing image...",
            invoke=lambda session: session.understand_image(image.image_path, prompt=image.prompt),
            on_update=on_update,
            signal=signal,
        )

    def _execute(
        self,
        pending_text: str,
        invoke: Callable[[MiniMaxSession], Dict[str, Any]],
        on_update: Optional[UpdateCallback],
        signal: Optional[threading.Event],
    ) -> ToolResponse:
        try:
            config = self.get_config()
            validate_config(config)
        except ConfigError as e:
            return _text_response(str(e) or "MiniMax configuration error", is_error=True)

        if signal is not None and signal.is_set():
            return _text_response("Cancelled")

        if on_update:
            on_update(_text_response(pending_text, details={"status": "pending"}))

        session = self.session_factory(config)
        try:
            result = invoke(session)

            if signal is not None and signal.is_set():
                return _text_response("Cancelled")

            formatted = format_tool_output(result, max_bytes=config.max_bytes, max_lines=config.max_lines)
            return {
                "content": [{"type": "text", "text": formatted.text}],
                "details": {**formatted.details.model_dump(), "config": redact_sensitive_data(config)},
                "isError": bool(result.get("isError", False)),
            }
        except (MCPTransportError, ConfigError, ValueError) as e:
            logger.debug("MiniMax tool call failed: %s", e)
            return _text_response(
                f"MiniMax MCP error: {e}",
                is_error=True,
                details={"error": str(e), "config": redact_sensitive_data(config)},
            )
        finally:
            session.disconnect()


def _schema(model: type[BaseModel]) -> Dict[str, Any]:
    return model.model_json_schema(by_alias=True)


def register(
    api: ExtensionAPI,
    session_factory: Callable[[MiniMaxConfig], MiniMaxSession] = MiniMaxSession,
) -> MiniMaxTools:
    """Register flags and the web_search / understand_image tools with the host."""
    for name, description in FLAGS.items():
        api.register_flag(name, description, type="string")

    ensure_default_config()

    tools = MiniMaxTools(api, session_factory=session_factory)

    api.register_tool(ToolSpec(
        name="web_search",
        label="MiniMax Web Search",
        description=(
            "Real-time web search via MiniMax. Best for current information, news, "
            "documentation, and facts."
        ),
        parameters=_schema(WebSearchParams),
        execute=tools.web_search,
    ))
    api.register_tool(ToolSpec(
        name="understand_image",
        label="MiniMax Image Understanding",
        description=(
            "Analyze and describe image content via MiniMax. Best for screenshots, "
            "diagrams, photos, and visual analysis."
        ),
        parameters=_schema(UnderstandImageParams),
        execute=tools.understand_image,
    ))
    return tools
