"""ToolDispatchNode: executes pending tool calls from state, in parallel.

Each round:
1. Reads requests under ``requests_key`` and drops those that already have a
   correlated result under ``results_key`` (so cyclic agent/tool loops only
   run each request once)
2. Looks every tool up in the injected ToolRegistry
3. Executes all calls concurrently and waits for every one of them
4. Returns one result per request, in request order, appended to
   ``results_key``

A failing, unknown or timed-out tool produces an error result for that
request only; sibling calls are unaffected and the node itself succeeds.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from agentgraph.graph.errors import ToolExecutionError, ToolNotFound
from agentgraph.graph.node import NodeProtocol
from agentgraph.graph.state import Reducer, State
from agentgraph.runner.tool_registry import ToolRegistry
from agentgraph.schemas.tool_call import (
    TOOL_CALLS_KEY,
    TOOL_RESULTS_KEY,
    ToolCallRequest,
    ToolCallResult,
)

logger = logging.getLogger(__name__)


class ToolDispatchNode(NodeProtocol):
    """Fan-out / fan-in executor for one round of tool calls."""

    node_type = "tool_dispatch"

    def __init__(
        self,
        registry: ToolRegistry,
        requests_key: str = TOOL_CALLS_KEY,
        results_key: str = TOOL_RESULTS_KEY,
        tool_timeout_seconds: float | None = None,
    ):
        self.registry = registry
        self.requests_key = requests_key
        self.results_key = results_key
        self.tool_timeout_seconds = tool_timeout_seconds

    def state_reducers(self) -> dict[str, Reducer]:
        return {self.results_key: Reducer.append()}

    def pending_requests(self, state: State) -> list[ToolCallRequest]:
        """Requests in state that have no correlated result yet."""
        raw = state.get(self.requests_key) or []
        if isinstance(raw, Mapping):
            raw = [raw]

        answered = {
            r.get("id") for r in (state.get(self.results_key) or []) if isinstance(r, Mapping)
        }
        pending: list[ToolCallRequest] = []
        seen: set[str] = set()
        for item in raw:
            if isinstance(item, ToolCallRequest):
                request = item
            else:
                request = ToolCallRequest.model_validate(item)
            if request.id in answered or request.id in seen:
                continue
            seen.add(request.id)
            pending.append(request)
        return pending

    async def apply(self, state: State) -> dict[str, Any]:
        try:
            requests = self.pending_requests(state)
        except ValidationError as e:
            raise ValueError(f"Malformed tool call under '{self.requests_key}': {e}") from e

        if not requests:
            logger.info("No pending tool calls")
            return {}

        logger.info(f"⑂ Dispatching {len(requests)} tool call(s)")
        results = await asyncio.gather(*(self._dispatch(r) for r in requests))

        failed = sum(1 for r in results if r.is_error)
        logger.info(f"⑃ Tool round complete: {len(results) - failed}/{len(results)} succeeded")
        return {self.results_key: [r.model_dump() for r in results]}

    async def _dispatch(self, request: ToolCallRequest) -> ToolCallResult:
        """Execute one call, containing any failure as an error result."""
        registered = self.registry.lookup(request.tool_name)
        if registered is None:
            err = ToolNotFound(request.tool_name)
            logger.warning(f"   ✗ {request.id}: {err}")
            return ToolCallResult.failure(request, str(err), "ToolNotFound")

        logger.info(f"   • {request.id}: {request.tool_name}")
        try:
            if self.tool_timeout_seconds is not None:
                content = await asyncio.wait_for(
                    registered.execute(request.arguments), self.tool_timeout_seconds
                )
            else:
                content = await registered.execute(request.arguments)
        except TimeoutError as e:
            err = ToolExecutionError(request.tool_name, e)
            logger.warning(f"   ✗ {request.id}: {err}")
            return ToolCallResult.failure(request, str(err), "Timeout")
        except Exception as e:
            err = ToolExecutionError(request.tool_name, e)
            logger.warning(f"   ✗ {request.id}: {err}")
            return ToolCallResult.failure(request, str(err), "ToolExecutionError")

        return ToolCallResult.success(request, content)
