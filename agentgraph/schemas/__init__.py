"""Pydantic schemas for checkpoints and tool calls."""

from agentgraph.schemas.checkpoint import Checkpoint, CheckpointIndex, CheckpointSummary
from agentgraph.schemas.tool_call import (
    TOOL_CALLS_KEY,
    TOOL_RESULTS_KEY,
    ToolCallRequest,
    ToolCallResult,
)

__all__ = [
    "Checkpoint",
    "CheckpointIndex",
    "CheckpointSummary",
    "ToolCallRequest",
    "ToolCallResult",
    "TOOL_CALLS_KEY",
    "TOOL_RESULTS_KEY",
]
