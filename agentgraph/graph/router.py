"""
Edge Router - Resolves the next frontier from completed nodes.

Routing never performs I/O of its own: static edges are table lookups and
conditional edges call the graph author's routing function with the merged
state of the step that just finished.
"""

import logging
from collections.abc import Collection, Sequence
from dataclasses import dataclass

from agentgraph.graph.edge import END, CompiledGraph, EdgeCondition
from agentgraph.graph.state import State

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RouteDecision:
    """Successors chosen for one completed node. No targets means TERMINAL."""

    source: str
    targets: tuple[str, ...] = ()

    @property
    def terminal(self) -> bool:
        return not self.targets


class EdgeRouter:
    """Routes completed nodes to their successors within one compiled graph."""

    def __init__(self, graph: CompiledGraph):
        self.graph = graph

    def next(self, from_node: str, state: State, failed: bool = False) -> RouteDecision:
        """
        Resolve successors of ``from_node``.

        On success, static and conditional edges are traversed in priority
        order; on failure only on_failure edges are. END targets resolve the
        branch and are dropped from the result.

        Raises:
            RoutingError: if a conditional edge selects an undeclared target
        """
        selected: list[str] = []
        for edge in self.graph.outgoing(from_node):
            is_error_edge = edge.condition == EdgeCondition.ON_FAILURE
            if is_error_edge != failed:
                continue
            for target in edge.resolve(state, self.graph.nodes.keys()):
                if target != END and target not in selected:
                    selected.append(target)

        decision = RouteDecision(source=from_node, targets=tuple(selected))
        if decision.terminal:
            logger.info(f"   → {from_node}: branch resolved to END")
        else:
            logger.info(f"   → {from_node}: next {list(decision.targets)}")
        return decision

    def frontier(
        self,
        completed: Sequence[str],
        state: State,
        failed: Collection[str] = (),
    ) -> list[str]:
        """
        Union of successors for every completed node, in completion order.

        This is also how a resumed run recomputes its frontier from a
        checkpoint's last completed nodes and restored state.
        """
        next_frontier: list[str] = []
        for node_id in completed:
            decision = self.next(node_id, state, failed=node_id in failed)
            for target in decision.targets:
                if target not in next_frontier:
                    next_frontier.append(target)
        return next_frontier
