"""
Node Protocol - The building block of agent graphs.

A node is a unit of work with a single contract:

    apply(state) -> partial update

``state`` is a read-only snapshot; the returned mapping is merged into the
store by the executor using each key's reducer. A node must not keep a
reference to ``state`` past its own invocation.

Node variants are chosen when the graph is built:
- FunctionNode: wraps a plain (sync or async) function
- ToolDispatchNode: executes pending tool calls (see tool_node.py)
- ReflectionNode: delegates to a scoring collaborator (see reflection_node.py)
"""

import inspect
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import BaseModel, Field

from agentgraph.graph.state import Reducer, State


class NodeProtocol(ABC):
    """
    Interface all node implementations must satisfy.

    Example:
        class Summarize(NodeProtocol):
            async def apply(self, state: State) -> dict[str, Any]:
                text = " ".join(state.get("messages", []))
                return {"summary": text[:200]}
    """

    node_type: str = "custom"

    @abstractmethod
    async def apply(self, state: State) -> Mapping[str, Any]:
        """
        Run the node against a state snapshot.

        Returns:
            Partial update mapping state keys to new values

        Raises:
            Any exception; the executor wraps it in a NodeError.
        """
        pass

    def state_reducers(self) -> dict[str, Reducer]:
        """Reducers this node requires for the keys it writes."""
        return {}


class FunctionNode(NodeProtocol):
    """A node backed by a function of the state.

    The function may be sync or async and may return None for "no update".
    Sync functions run inline, so they should not block on I/O.
    """

    node_type = "function"

    def __init__(self, func: Callable[[State], Any]):
        self.func = func

    async def apply(self, state: State) -> Mapping[str, Any]:
        result = self.func(state)
        if inspect.isawaitable(result):
            result = await result
        return result if result is not None else {}

    def __repr__(self) -> str:
        name = getattr(self.func, "__name__", repr(self.func))
        return f"FunctionNode({name})"


def as_node(action: NodeProtocol | Callable[[State], Any]) -> NodeProtocol:
    """Coerce a callable into a FunctionNode; pass node instances through."""
    if isinstance(action, NodeProtocol):
        return action
    if callable(action):
        return FunctionNode(action)
    raise TypeError(f"Node action must be a NodeProtocol or callable, got {type(action)!r}")


class NodeSpec(BaseModel):
    """
    Specification for a single node in the graph.

    Example:
        NodeSpec(
            id="agent",
            name="Agent",
            description="Decides whether to call tools or answer",
            action=call_model,
            timeout_seconds=30,
        )
    """

    id: str = Field(description="Unique name of the node within its graph")
    name: str = ""
    description: str = ""

    action: Any = Field(
        default=None,
        exclude=True,
        description="NodeProtocol implementation (or callable) run for this node",
    )

    # Execution limits
    timeout_seconds: float | None = Field(
        default=None,
        description="Per-invocation timeout; falls back to the executor default",
    )
    max_retries: int = Field(
        default=0,
        description="Extra attempts after a failure, within the same step",
    )

    model_config = {"extra": "allow"}

    def model_post_init(self, __context: Any) -> None:
        if not self.name:
            self.name = self.id
        if self.action is not None:
            self.action = as_node(self.action)

    @property
    def node_type(self) -> str:
        return getattr(self.action, "node_type", "unbound")

