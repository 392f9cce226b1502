"""
Error taxonomy for graph definition and execution.

Failures are contained at the smallest scope that can meaningfully continue:

- NodeError: a node's logic failed (or timed out). May be caught by an
  on_failure edge defined for that node.
- ReducerMismatch: a custom merge strategy raised. Treated as a failure of
  the node whose update triggered it.
- RoutingError: a conditional edge returned an undeclared target. Always fatal.
- StepLimitExceeded: the configured step ceiling was hit. Always fatal.
- ToolNotFound / ToolExecutionError: a single tool call failed. Contained by
  the tool dispatch node and surfaced as a result payload.
"""

from __future__ import annotations

from typing import Any


class GraphError(Exception):
    """Base exception for all graph errors.

    Attributes:
        message: Human-readable error description
        recoverable: Whether a graph-defined edge may recover from the error
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        *,
        recoverable: bool = False,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class GraphValidationError(GraphError):
    """Raised when a graph definition fails compilation."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(
            "Invalid graph: " + "; ".join(self.errors),
            details={"errors": self.errors},
        )


class StateSchemaError(GraphError):
    """Raised when a key's reducer would change after it was fixed."""


class NodeError(GraphError):
    """A node invocation failed.

    Args:
        node_name: Name of the failing node
        cause: Underlying exception (a TimeoutError for timeouts)
    """

    def __init__(self, node_name: str, cause: BaseException | str):
        self.node_name = node_name
        self.cause = cause
        if isinstance(cause, TimeoutError):
            reason = "timed out"
        else:
            reason = str(cause) or type(cause).__name__
        super().__init__(
            f"Node '{node_name}' failed: {reason}",
            recoverable=True,
            details={"node_name": node_name, "cause": reason},
        )

    @property
    def is_timeout(self) -> bool:
        return isinstance(self.cause, TimeoutError)


class ReducerMismatch(GraphError):
    """A custom reducer raised while merging an update."""

    def __init__(self, key: str, cause: BaseException, source: str | None = None):
        self.key = key
        self.cause = cause
        self.source = source
        origin = f" from '{source}'" if source else ""
        super().__init__(
            f"Reducer for key '{key}' failed on update{origin}: {cause}",
            recoverable=True,
            details={"key": key, "source": source},
        )


class RoutingError(GraphError):
    """A conditional edge selected a target outside its declared set."""

    def __init__(
        self,
        source: str,
        target: Any,
        allowed: list[str] | None = None,
        cause: BaseException | None = None,
    ):
        self.source = source
        self.target = target
        self.allowed = sorted(allowed or [])
        self.cause = cause
        if cause is not None:
            message = f"Routing function for '{source}' raised: {cause}"
        else:
            message = (
                f"Routing from '{source}' returned undeclared target {target!r}. "
                f"Allowed: {self.allowed}"
            )
        super().__init__(
            message,
            details={"source": source, "target": repr(target), "allowed": self.allowed},
        )


class StepLimitExceeded(GraphError):
    """The run attempted more steps than the configured ceiling."""

    def __init__(self, max_steps: int, frontier: list[str] | None = None):
        self.max_steps = max_steps
        self.step = max_steps + 1
        self.frontier = list(frontier or [])
        super().__init__(
            f"Step limit of {max_steps} exceeded; pending nodes: {self.frontier}",
            details={"max_steps": max_steps, "frontier": self.frontier},
        )


class ToolNotFound(GraphError):
    """No tool with the requested name is registered."""

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"unknown tool: {tool_name}", details={"tool_name": tool_name})


class ToolExecutionError(GraphError):
    """A registered tool raised or timed out."""

    def __init__(self, tool_name: str, cause: BaseException | str):
        self.tool_name = tool_name
        self.cause = cause
        if isinstance(cause, TimeoutError):
            reason = "timed out"
        else:
            reason = str(cause) or type(cause).__name__
        super().__init__(
            f"Tool '{tool_name}' failed: {reason}",
            recoverable=True,
            details={"tool_name": tool_name, "cause": reason},
        )


class StateSerializationError(GraphError):
    """A state value is outside the serializable value model, or bytes are corrupt."""
