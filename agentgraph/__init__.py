"""
agentgraph - stateful graph execution for agentic workflows.

Nodes read a versioned State snapshot and return partial updates; the
executor runs each step's frontier in parallel, merges the updates with
per-key reducers, routes to the next frontier and checkpoints between steps.
"""

from agentgraph.builder import GraphBuilder, ValidationResult
from agentgraph.config import CancellationPolicy, ExecutorConfig
from agentgraph.graph import (
    END,
    CheckpointConfig,
    ExecutionResult,
    GraphError,
    GraphExecutor,
    GraphSpec,
    NodeProtocol,
    Reducer,
    ReflectionNode,
    RunStatus,
    State,
    ToolDispatchNode,
)
from agentgraph.runner import ToolRegistry, tool
from agentgraph.serialization import Blob, StateSerializer
from agentgraph.storage import CheckpointStore, FileCheckpointStore, InMemoryCheckpointStore

__version__ = "0.1.0"

__all__ = [
    "END",
    "Blob",
    "CancellationPolicy",
    "CheckpointConfig",
    "CheckpointStore",
    "ExecutionResult",
    "ExecutorConfig",
    "FileCheckpointStore",
    "GraphBuilder",
    "GraphError",
    "GraphExecutor",
    "GraphSpec",
    "InMemoryCheckpointStore",
    "NodeProtocol",
    "Reducer",
    "ReflectionNode",
    "RunStatus",
    "State",
    "StateSerializer",
    "ToolDispatchNode",
    "ToolRegistry",
    "ValidationResult",
    "tool",
]
