"""
Tool Call Schema - Requests and correlated results exchanged through state.

A node (typically an LLM-backed agent node) writes requests under
``TOOL_CALLS_KEY``; the tool dispatch node executes every pending request and
appends one result per request under ``TOOL_RESULTS_KEY``. Both are stored
in state as plain dicts so they stay inside the serializable value model.
"""

from typing import Any

from pydantic import BaseModel, Field

TOOL_CALLS_KEY = "tool_calls"
TOOL_RESULTS_KEY = "tool_results"


class ToolCallRequest(BaseModel):
    """A request to invoke a named tool with arguments."""

    id: str = Field(description="Opaque id correlating this request with its result")
    tool_name: str
    arguments: dict[str, Any] = Field(default_factory=dict)

    model_config = {"extra": "allow"}


class ToolCallResult(BaseModel):
    """Outcome of one tool call. Exactly one of content / error is meaningful."""

    id: str = Field(description="Id of the originating ToolCallRequest")
    tool_name: str
    content: Any = None
    error: str | None = None
    error_type: str | None = Field(
        default=None,
        description="ToolNotFound, ToolExecutionError or Timeout",
    )

    model_config = {"extra": "allow"}

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @classmethod
    def success(cls, request: ToolCallRequest, content: Any) -> "ToolCallResult":
        return cls(id=request.id, tool_name=request.tool_name, content=content)

    @classmethod
    def failure(
        cls,
        request: ToolCallRequest,
        error: str,
        error_type: str,
    ) -> "ToolCallResult":
        return cls(id=request.id, tool_name=request.tool_name, error=error, error_type=error_type)
