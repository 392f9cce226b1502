"""Graph structures: state, nodes, edges, routing and execution."""

from agentgraph.graph.checkpoint_config import (
    DEFAULT_CHECKPOINT_CONFIG,
    DISABLED_CHECKPOINT_CONFIG,
    MINIMAL_CHECKPOINT_CONFIG,
    CheckpointConfig,
)
from agentgraph.graph.edge import END, CompiledGraph, EdgeCondition, EdgeSpec, GraphSpec
from agentgraph.graph.errors import (
    GraphError,
    GraphValidationError,
    NodeError,
    ReducerMismatch,
    RoutingError,
    StateSchemaError,
    StateSerializationError,
    StepLimitExceeded,
    ToolExecutionError,
    ToolNotFound,
)
from agentgraph.graph.executor import (
    NODE_ERROR_KEY,
    ExecutionResult,
    GraphExecutor,
    RunContext,
    RunStatus,
    StepRecord,
)
from agentgraph.graph.node import FunctionNode, NodeProtocol, NodeSpec, as_node
from agentgraph.graph.reflection_node import REFLECTION_COMPLETED, ReflectionNode
from agentgraph.graph.router import EdgeRouter, RouteDecision
from agentgraph.graph.state import (
    MergeStrategy,
    Reducer,
    State,
    StateStore,
    StateUpdate,
)
from agentgraph.graph.tool_node import ToolDispatchNode

__all__ = [
    # State
    "State",
    "StateStore",
    "StateUpdate",
    "Reducer",
    "MergeStrategy",
    # Node
    "NodeSpec",
    "NodeProtocol",
    "FunctionNode",
    "ToolDispatchNode",
    "ReflectionNode",
    "REFLECTION_COMPLETED",
    "as_node",
    # Edge
    "END",
    "EdgeSpec",
    "EdgeCondition",
    "GraphSpec",
    "CompiledGraph",
    "EdgeRouter",
    "RouteDecision",
    # Executor
    "GraphExecutor",
    "ExecutionResult",
    "RunContext",
    "RunStatus",
    "StepRecord",
    "NODE_ERROR_KEY",
    # Checkpoints
    "CheckpointConfig",
    "DEFAULT_CHECKPOINT_CONFIG",
    "MINIMAL_CHECKPOINT_CONFIG",
    "DISABLED_CHECKPOINT_CONFIG",
    # Errors
    "GraphError",
    "GraphValidationError",
    "NodeError",
    "ReducerMismatch",
    "RoutingError",
    "StateSchemaError",
    "StateSerializationError",
    "StepLimitExceeded",
    "ToolExecutionError",
    "ToolNotFound",
]
