"""
Edge Protocol - How nodes connect in a graph.

Edges define:
1. Source and target nodes
2. Conditions for traversal
3. For conditional edges, the set of targets the routing function may pick

Edge Types:
- always: Traverse to ``target`` after the source succeeds (static edge)
- conditional: Call ``router(state)`` after the source succeeds; it returns
  one or more target names (or labels, when ``path_map`` is given), or END
- on_failure: Traverse to ``target`` when the source fails (error edge)

A node with several traversable edges fans out: all selected targets run
in parallel in the next step.

Conditional routing functions are the seam for routing-decision sources such
as an LLM client: the engine treats them as opaque ``State -> decision``
functions and only checks that the decision names a declared target.
"""

from collections.abc import Collection
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, Field

from agentgraph.graph.errors import GraphValidationError, RoutingError
from agentgraph.graph.node import NodeSpec
from agentgraph.graph.state import Reducer, State, StateStore

# Terminal marker: routing to END resolves the branch
END = "__end__"


class EdgeCondition(StrEnum):
    """When an edge should be traversed."""

    ALWAYS = "always"  # After the source succeeds
    CONDITIONAL = "conditional"  # Routing function decides
    ON_FAILURE = "on_failure"  # Only if the source fails


class EdgeSpec(BaseModel):
    """
    Specification for an edge between nodes.

    Examples:
        # Static edge
        EdgeSpec(source="plan", target="act")

        # Conditional routing with declared targets
        EdgeSpec(
            source="agent",
            condition=EdgeCondition.CONDITIONAL,
            router=lambda s: "tools" if s.get("tool_calls") else END,
            targets=["tools", END],
        )

        # Conditional routing through labels
        EdgeSpec(
            source="review",
            condition=EdgeCondition.CONDITIONAL,
            router=should_retry,
            path_map={"retry": "plan", "done": END},
        )

        # Error edge
        EdgeSpec(source="fetch", target="fallback", condition=EdgeCondition.ON_FAILURE)
    """

    id: str = ""
    source: str = Field(description="Source node ID")
    target: str | None = Field(
        default=None, description="Target node ID (or END) for always/on_failure edges"
    )

    # When to traverse
    condition: EdgeCondition = EdgeCondition.ALWAYS
    router: Any = Field(
        default=None,
        exclude=True,
        description="Routing function State -> name | list of names, for CONDITIONAL edges",
    )
    targets: list[str] = Field(
        default_factory=list,
        description="Names the routing function may return (may include END)",
    )
    path_map: dict[str, str] = Field(
        default_factory=dict,
        description="Map routing labels to node IDs (or END)",
    )

    # Priority for multiple outgoing edges
    priority: int = Field(default=0, description="Higher priority edges are evaluated first")

    # Metadata
    description: str = ""

    model_config = {"extra": "allow"}

    def model_post_init(self, __context: Any) -> None:
        if not self.id:
            self.id = f"{self.source}->{self.target or self.condition.value}"

    @property
    def is_conditional(self) -> bool:
        return self.condition == EdgeCondition.CONDITIONAL

    def declared_targets(self) -> list[str] | None:
        """All names this edge can lead to, or None when undeclared."""
        if not self.is_conditional:
            return [self.target] if self.target else []
        if self.path_map:
            return list(dict.fromkeys(self.path_map.values()))
        if self.targets:
            return list(self.targets)
        return None

    def resolve(self, state: State, known_nodes: Collection[str]) -> list[str]:
        """
        Determine the targets selected by this edge for ``state``.

        Args:
            state: Fully merged state after the source completed
            known_nodes: Node names of the graph, used when targets are undeclared

        Returns:
            Selected target names, possibly including END

        Raises:
            RoutingError: if the decision is outside the declared target set
        """
        if not self.is_conditional:
            return [self.target] if self.target else []

        try:
            decision = self.router(state)
        except Exception as e:
            raise RoutingError(self.source, None, self.declared_targets(), cause=e) from e

        if isinstance(decision, str):
            picked = [decision]
        elif isinstance(decision, list | tuple | set | frozenset):
            picked = list(decision)
        else:
            raise RoutingError(self.source, decision, self.declared_targets())

        # Names and path-map labels are strings; anything else is undeclared
        for name in picked:
            if not isinstance(name, str):
                raise RoutingError(self.source, name, self.declared_targets())
        if isinstance(decision, set | frozenset):
            picked.sort()

        if self.path_map:
            resolved = []
            for label in picked:
                if label not in self.path_map:
                    raise RoutingError(self.source, label, list(self.path_map))
                resolved.append(self.path_map[label])
            return resolved

        allowed = set(self.targets) if self.targets else {*known_nodes, END}
        for name in picked:
            if name not in allowed:
                raise RoutingError(self.source, name, list(allowed))
        return picked


@dataclass(frozen=True)
class CompiledGraph:
    """
    Executable form of a GraphSpec.

    Topology is an index keyed by node name (name -> outgoing edges) so the
    executor walks cycles by lookup rather than by object references.
    """

    graph_id: str
    entry_node: str
    nodes: MappingProxyType
    edges_by_source: MappingProxyType
    terminal_nodes: frozenset[str]
    state_schema: MappingProxyType
    max_steps: int | None = None
    spec: Any = field(default=None, compare=False, repr=False)

    def node(self, node_id: str) -> NodeSpec:
        return self.nodes[node_id]

    def outgoing(self, node_id: str) -> tuple[EdgeSpec, ...]:
        return self.edges_by_source.get(node_id, ())

    def has_error_edge(self, node_id: str) -> bool:
        return any(e.condition == EdgeCondition.ON_FAILURE for e in self.outgoing(node_id))

    def new_store(self, initial: dict[str, Any] | None = None, version: int = 0) -> StateStore:
        """Create a StateStore with this graph's reducer schema."""
        return StateStore(schema=dict(self.state_schema), initial=initial, version=version)


class GraphSpec(BaseModel):
    """
    Complete, immutable description of an agent graph.

    Contains all nodes, edges, and the reducer schema needed to execute:

        GraphSpec(
            id="react-agent",
            entry_node="agent",
            terminal_nodes=["answer"],
            nodes=[...],
            edges=[...],
            state_schema={"messages": Reducer.append()},
        )

    ``compile()`` validates the definition and returns a CompiledGraph.
    """

    id: str
    version: str = "1.0.0"

    # Graph structure
    entry_node: str = Field(description="ID of the first node to execute")
    terminal_nodes: list[str] = Field(
        default_factory=list,
        description="IDs of nodes that may end a branch without an outgoing edge",
    )

    # Components
    nodes: list[NodeSpec] = Field(default_factory=list, description="All node specifications")
    edges: list[EdgeSpec] = Field(default_factory=list, description="All edge specifications")

    # Per-key reducers, fixed for the graph's lifetime
    state_schema: dict[str, Any] = Field(default_factory=dict, exclude=True)

    # Execution limits
    max_steps: int | None = Field(
        default=None, description="Step ceiling; falls back to the executor config"
    )

    # Metadata
    description: str = ""

    model_config = {"extra": "allow", "frozen": True}

    def get_node(self, node_id: str) -> NodeSpec | None:
        """Get a node by ID."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def get_outgoing_edges(self, node_id: str) -> list[EdgeSpec]:
        """Get all edges leaving a node, sorted by priority."""
        edges = [e for e in self.edges if e.source == node_id]
        return sorted(edges, key=lambda e: -e.priority)

    def _merged_schema(self, errors: list[str]) -> dict[str, Reducer]:
        schema: dict[str, Reducer] = {}
        for key, reducer in self.state_schema.items():
            if not isinstance(reducer, Reducer):
                errors.append(f"State key '{key}' has invalid reducer {reducer!r}")
                continue
            schema[key] = reducer

        for node in self.nodes:
            if node.action is None:
                continue
            for key, reducer in node.action.state_reducers().items():
                existing = schema.get(key)
                if existing is not None and existing != reducer:
                    errors.append(
                        f"Node '{node.id}' requires {reducer.strategy} reducer for "
                        f"'{key}' but the graph declares {existing.strategy}"
                    )
                else:
                    schema[key] = reducer
        return schema

    def validate(self) -> list[str]:
        """Validate the graph structure."""
        errors: list[str] = []
        node_ids = [n.id for n in self.nodes]
        known = set(node_ids)

        # Check name uniqueness
        seen: set[str] = set()
        for node_id in node_ids:
            if node_id in seen:
                errors.append(f"Duplicate node ID: '{node_id}'")
            seen.add(node_id)
            if node_id == END:
                errors.append(f"'{END}' is reserved for the terminal marker")

        for node in self.nodes:
            if node.action is None:
                errors.append(f"Node '{node.id}' has no action")

        # Check entry node exists
        if self.entry_node not in known:
            errors.append(f"Entry node '{self.entry_node}' not found")

        # Check terminal nodes exist
        for term in self.terminal_nodes:
            if term not in known:
                errors.append(f"Terminal node '{term}' not found")

        # Check edge references
        for edge in self.edges:
            if edge.source not in known:
                errors.append(f"Edge '{edge.id}' references missing source '{edge.source}'")
            if edge.is_conditional:
                if not callable(edge.router):
                    errors.append(f"Conditional edge '{edge.id}' has no routing function")
                if edge.target is not None:
                    errors.append(
                        f"Conditional edge '{edge.id}' must declare targets, not a fixed target"
                    )
            elif not edge.target:
                errors.append(f"Edge '{edge.id}' has no target")
            for target in edge.declared_targets() or []:
                if target != END and target not in known:
                    errors.append(f"Edge '{edge.id}' references missing target '{target}'")

        # Check for unreachable nodes
        reachable: set[str] = set()
        to_visit = [self.entry_node]
        while to_visit:
            current = to_visit.pop()
            if current in reachable or current not in known:
                continue
            reachable.add(current)
            for edge in self.get_outgoing_edges(current):
                declared = edge.declared_targets()
                to_visit.extend(node_ids if declared is None else declared)

        for node_id in node_ids:
            if node_id not in reachable:
                errors.append(f"Node '{node_id}' is unreachable from entry")

        # Every reachable node needs a way forward, or must be terminal
        terminal = set(self.terminal_nodes)
        for node_id in sorted(reachable):
            forward = [
                e
                for e in self.get_outgoing_edges(node_id)
                if e.condition != EdgeCondition.ON_FAILURE
            ]
            if not forward and node_id not in terminal:
                errors.append(
                    f"Node '{node_id}' has no outgoing edge and is not marked terminal"
                )

        self._merged_schema(errors)
        return errors

    def compile(self) -> CompiledGraph:
        """
        Validate and freeze the graph into its executable form.

        Raises:
            GraphValidationError: if the definition is invalid
        """
        errors = self.validate()
        if errors:
            raise GraphValidationError(errors)

        edges_by_source = {
            node.id: tuple(self.get_outgoing_edges(node.id)) for node in self.nodes
        }
        return CompiledGraph(
            graph_id=self.id,
            entry_node=self.entry_node,
            nodes=MappingProxyType({n.id: n for n in self.nodes}),
            edges_by_source=MappingProxyType(edges_by_source),
            terminal_nodes=frozenset(self.terminal_nodes),
            state_schema=MappingProxyType(self._merged_schema([])),
            max_steps=self.max_steps,
            spec=self,
        )
