"""Data models for JSON-RPC messages and MiniMax tool parameters."""

from __future__ import annotations

from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

JSONRPC_VERSION = "2.0"
PROTOCOL_VERSION = "2024-11-05"

DEFAULT_IMAGE_PROMPT = "Describe this image in detail"

RequestId = Union[int, str]


def make_request(request_id: RequestId, method: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "method": method, "params": params or {}}


def make_notification(method: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """A request without ``id``: the server sends nothing back."""
    return {"jsonrpc": JSONRPC_VERSION, "method": method, "params": params or {}}


class WebSearchParams(BaseModel):
    """Parameters for the ``web_search`` tool."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    query: str = Field(min_length=1, description="Search query")
    num_results: Optional[int] = Field(
        default=None,
        alias="numResults",
        ge=1,
        le=10,
        description="Number of results to return (default: 5)",
    )
    recency_days: Optional[int] = Field(
        default=None,
        alias="recencyDays",
        ge=1,
        description="Limit results to recent days",
    )

    def to_arguments(self) -> Dict[str, Any]:
        """Wire arguments; unset options are left for the server to default."""
        args: Dict[str, Any] = {"query": self.query}
        if self.num_results:
            args["num_results"] = self.num_results
        if self.recency_days:
            args["recency_days"] = self.recency_days
        return args


class UnderstandImageParams(BaseModel):
    """Parameters for the ``understand_image`` tool."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    image_path: str = Field(
        min_length=1,
        alias="imagePath",
        description="Path to image file (relative or absolute)",
    )
    prompt: Optional[str] = Field(
        default=None,
        description="Optional prompt to guide image understanding",
    )

    def to_arguments(self) -> Dict[str, Any]:
        return {
            "image_source": self.image_path,
            "prompt": self.prompt or DEFAULT_IMAGE_PROMPT,
        }
