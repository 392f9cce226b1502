"""Self-reflection step whose scoring logic is supplied by a collaborator."""

import inspect
import logging
from collections.abc import Callable, Mapping
from typing import Any

from agentgraph.graph.node import NodeProtocol
from agentgraph.graph.state import State

logger = logging.getLogger(__name__)

REFLECTION_COMPLETED = {"status": "completed", "message": "self-reflection completed"}


class ReflectionNode(NodeProtocol):
    """
    Evaluates the current state and records the verdict under ``output_key``.

    The scorer (e.g. a quality-scoring or optimization-suggestion client) is
    any sync or async callable ``State -> mapping``. Without one, the node
    records a plain completion marker and leaves routing to other edges.
    """

    node_type = "reflection"

    def __init__(
        self,
        scorer: Callable[[State], Any] | None = None,
        output_key: str = "reflection",
    ):
        self.scorer = scorer
        self.output_key = output_key

    async def apply(self, state: State) -> dict[str, Any]:
        if self.scorer is None:
            logger.info("No scorer configured; recording completion only")
            return {self.output_key: dict(REFLECTION_COMPLETED)}

        verdict = self.scorer(state)
        if inspect.isawaitable(verdict):
            verdict = await verdict
        if not isinstance(verdict, Mapping):
            raise TypeError(f"Scorer must return a mapping, got {type(verdict).__name__}")
        return {self.output_key: dict(verdict)}
