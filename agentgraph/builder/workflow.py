"""
GraphBuilder Workflow - Incremental graph authoring.

The build process:
1. Add nodes (functions or NodeProtocol instances)
2. Add static, conditional and error edges
3. Declare reducers for shared state keys
4. Set the entry point and terminal nodes
5. validate() → build() a GraphSpec, or compile() straight to a CompiledGraph

Each add_* call validates the piece it adds; validate() checks the whole
graph the same way compilation does, plus non-fatal warnings.
"""

from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, Field

from agentgraph.graph.edge import END, CompiledGraph, EdgeCondition, EdgeSpec, GraphSpec
from agentgraph.graph.node import NodeProtocol, NodeSpec
from agentgraph.graph.state import Reducer, State


class ValidationResult(BaseModel):
    """Result of a validation check."""

    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)


class GraphBuilder:
    """
    Builds a GraphSpec one piece at a time.

    Usage:
        builder = GraphBuilder("react-agent")
        builder.declare_state("messages", Reducer.append())

        builder.add_node("agent", call_model)
        builder.add_node("tools", ToolDispatchNode(registry))
        builder.set_entry_point("agent")

        builder.add_conditional_edges(
            "agent",
            lambda s: "tools" if s.get("tool_calls") else END,
            targets=["tools", END],
        )
        builder.add_edge("tools", "agent")

        graph = builder.compile()
    """

    def __init__(self, graph_id: str, description: str = "", max_steps: int | None = None):
        self.graph_id = graph_id
        self.description = description
        self.max_steps = max_steps

        self.nodes: list[NodeSpec] = []
        self.edges: list[EdgeSpec] = []
        self.state_schema: dict[str, Reducer] = {}
        self.entry_node: str | None = None
        self.terminal_nodes: list[str] = []

    # =========================================================================
    # NODES
    # =========================================================================

    def add_node(
        self,
        name: str,
        action: NodeProtocol | Callable[[State], Any],
        description: str = "",
        timeout_seconds: float | None = None,
        max_retries: int = 0,
    ) -> ValidationResult:
        """Add a node. The first node added becomes the entry point by default."""
        if any(n.id == name for n in self.nodes):
            return ValidationResult(valid=False, errors=[f"Node with id '{name}' already exists"])
        if name == END:
            return ValidationResult(valid=False, errors=[f"'{END}' is reserved"])
        if max_retries < 0:
            return ValidationResult(valid=False, errors=["max_retries must be >= 0"])

        node = NodeSpec(
            id=name,
            description=description,
            action=action,
            timeout_seconds=timeout_seconds,
            max_retries=max_retries,
        )
        self.nodes.append(node)
        if self.entry_node is None:
            self.entry_node = name

        suggestions = []
        if not description:
            suggestions.append(f"Consider adding a description for '{name}'")
        return ValidationResult(valid=True, suggestions=suggestions)

    # =========================================================================
    # EDGES
    # =========================================================================

    def add_edge(self, source: str, target: str, priority: int = 0) -> ValidationResult:
        """Add a static edge; ``target`` may be END."""
        return self._add(EdgeSpec(source=source, target=target, priority=priority))

    def add_conditional_edges(
        self,
        source: str,
        router: Callable[[State], Any],
        targets: list[str] | None = None,
        path_map: dict[str, str] | None = None,
        priority: int = 0,
    ) -> ValidationResult:
        """
        Add a conditional edge.

        Args:
            source: Node whose completion triggers the routing function
            router: ``State -> name | list of names`` (labels when path_map is set)
            targets: Names the router may return (may include END)
            path_map: Label -> node name (or END)
        """
        if targets and path_map:
            return ValidationResult(
                valid=False, errors=["Pass either targets or path_map, not both"]
            )
        return self._add(
            EdgeSpec(
                source=source,
                condition=EdgeCondition.CONDITIONAL,
                router=router,
                targets=list(targets or []),
                path_map=dict(path_map or {}),
                priority=priority,
            )
        )

    def add_error_edge(self, source: str, target: str) -> ValidationResult:
        """Route failures of ``source`` to ``target`` instead of failing the run."""
        return self._add(
            EdgeSpec(source=source, target=target, condition=EdgeCondition.ON_FAILURE)
        )

    def _add(self, edge: EdgeSpec) -> ValidationResult:
        if any(e.id == edge.id for e in self.edges):
            return ValidationResult(
                valid=False,
                errors=[f"Edge with id '{edge.id}' already exists"],
            )
        validation = self._validate_edge(edge)
        if validation.valid:
            self.edges.append(edge)
        return validation

    def _validate_edge(self, edge: EdgeSpec) -> ValidationResult:
        """Validate an edge definition against the nodes added so far."""
        errors = []
        warnings = []
        known = {n.id for n in self.nodes}

        if edge.source not in known:
            errors.append(f"Edge source '{edge.source}' not found in nodes")

        if edge.is_conditional and not callable(edge.router):
            errors.append(f"Conditional edge '{edge.id}' needs a callable router")

        declared = edge.declared_targets()
        if declared is None:
            warnings.append(
                f"Conditional edge '{edge.id}' declares no targets; "
                "decisions are only checked at run time"
            )
        for target in declared or []:
            if target != END and target not in known:
                # Targets may be added later; compile() catches what's still missing
                warnings.append(f"Edge target '{target}' not found in nodes (yet)")

        return ValidationResult(valid=len(errors) == 0, errors=errors, warnings=warnings)

    # =========================================================================
    # STATE & TOPOLOGY
    # =========================================================================

    def declare_state(self, key: str, reducer: Reducer) -> None:
        """Fix the reducer for a state key."""
        existing = self.state_schema.get(key)
        if existing is not None and existing != reducer:
            raise ValueError(f"State key '{key}' already declared with {existing.strategy}")
        self.state_schema[key] = reducer

    def set_entry_point(self, name: str) -> None:
        self.entry_node = name

    def set_terminal(self, *names: str) -> None:
        """Mark nodes that may end a branch without an outgoing edge."""
        for name in names:
            if name not in self.terminal_nodes:
                self.terminal_nodes.append(name)

    # =========================================================================
    # VALIDATION & OUTPUT
    # =========================================================================

    def validate(self) -> ValidationResult:
        """Validate the entire current graph."""
        if not self.nodes:
            return ValidationResult(valid=False, errors=["No nodes defined"])

        errors = self.build().validate()
        warnings = []
        for edge in self.edges:
            if edge.declared_targets() is None:
                warnings.append(f"Conditional edge '{edge.id}' declares no targets")
        if not self.terminal_nodes and not any(
            END in (e.declared_targets() or []) for e in self.edges
        ):
            warnings.append("No edge leads to END and no terminal nodes are set")

        return ValidationResult(valid=len(errors) == 0, errors=errors, warnings=warnings)

    def build(self) -> GraphSpec:
        """Assemble the GraphSpec without validating it."""
        return GraphSpec(
            id=self.graph_id,
            entry_node=self.entry_node or "",
            terminal_nodes=list(self.terminal_nodes),
            nodes=list(self.nodes),
            edges=list(self.edges),
            state_schema=dict(self.state_schema),
            max_steps=self.max_steps,
            description=self.description,
        )

    def compile(self) -> CompiledGraph:
        """
        Build and compile the graph.

        Raises:
            GraphValidationError: if the graph is invalid
        """
        return self.build().compile()
