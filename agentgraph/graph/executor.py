"""
Graph Executor - Runs compiled agent graphs step by step.

The executor:
1. Compiles the GraphSpec (or takes a CompiledGraph) and seeds the state
2. Runs every node of the current frontier concurrently against one snapshot
3. Merges all partial updates of the step as a single batch, in frontier order
4. Routes the completed nodes to the next frontier
5. Checkpoints at the step boundary and repeats until the frontier is empty

Failure containment:
- A node failure with an on_failure edge is routed through that edge; the
  failure is recorded under NODE_ERROR_KEY and the run continues.
- A node failure without one cancels the rest of the step and fails the run.
- Routing errors and the step limit always fail the run.
"""

import asyncio
import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from agentgraph.config import CancellationPolicy, ExecutorConfig
from agentgraph.graph.checkpoint_config import DEFAULT_CHECKPOINT_CONFIG, CheckpointConfig
from agentgraph.graph.edge import CompiledGraph, GraphSpec
from agentgraph.graph.errors import (
    GraphError,
    NodeError,
    ReducerMismatch,
    RoutingError,
    StateSerializationError,
    StepLimitExceeded,
)
from agentgraph.graph.node import NodeSpec
from agentgraph.graph.router import EdgeRouter
from agentgraph.graph.state import State, StateStore, StateUpdate
from agentgraph.observability import reset_trace_context, set_trace_context
from agentgraph.schemas.checkpoint import Checkpoint
from agentgraph.serialization.state_serializer import StateSerializer
from agentgraph.storage.checkpoint_store import CheckpointStore

# State key holding the most recent contained node failure
NODE_ERROR_KEY = "node_error"


class RunStatus(StrEnum):
    """Lifecycle of a run."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class StepRecord:
    """What happened in one step."""

    step: int
    nodes: list[str]
    failed_nodes: list[str] = field(default_factory=list)
    state_version: int = 0
    next_frontier: list[str] = field(default_factory=list)


@dataclass
class RunContext:
    """Mutable bookkeeping for a single run."""

    run_id: str
    graph_id: str
    status: RunStatus = RunStatus.PENDING
    step: int = 0  # Steps completed so far
    frontier: list[str] = field(default_factory=list)
    path: list[str] = field(default_factory=list)  # Node IDs in execution order
    node_visit_counts: dict[str, int] = field(default_factory=dict)
    history: list[StepRecord] = field(default_factory=list)


@dataclass
class ExecutionResult:
    """Result of executing (or resuming) a graph."""

    status: RunStatus
    run_id: str
    state: State
    error: GraphError | None = None
    error_step: int | None = None  # Step in which the terminal error occurred
    steps_executed: int = 0
    path: list[str] = field(default_factory=list)
    node_visit_counts: dict[str, int] = field(default_factory=dict)
    history: list[StepRecord] = field(default_factory=list)
    pending_frontier: list[str] = field(default_factory=list)  # Set when cancelled or failed

    @property
    def success(self) -> bool:
        return self.status == RunStatus.COMPLETED

    def raise_for_error(self) -> None:
        """Re-raise the terminal error, if the run failed."""
        if self.error is not None:
            raise self.error


@dataclass
class _NodeOutcome:
    node_id: str
    update: dict[str, Any] | None = None
    error: NodeError | None = None
    attempts: int = 1


class GraphExecutor:
    """
    Executes compiled graphs.

    Collaborators are injected; the executor holds no global state. One
    executor runs one run at a time.

    Example:
        executor = GraphExecutor(
            graph_spec,
            config=ExecutorConfig(max_steps=25),
            checkpoint_store=FileCheckpointStore("/tmp/checkpoints"),
        )

        result = await executor.execute({"messages": ["What is 2 + 3?"]})
        if not result.success:
            result.raise_for_error()

        # Later, after a crash or cancellation:
        result = await executor.resume(result.run_id)
    """

    def __init__(
        self,
        graph: GraphSpec | CompiledGraph,
        config: ExecutorConfig | None = None,
        checkpoint_store: CheckpointStore | None = None,
        checkpoint_config: CheckpointConfig | None = None,
        serializer: StateSerializer | None = None,
    ):
        """
        Initialize the executor.

        Args:
            graph: Graph to run; a GraphSpec is compiled here
            config: Step limit, timeouts, retry backoff and cancellation policy
            checkpoint_store: Where step-boundary checkpoints go (None disables them)
            checkpoint_config: When to checkpoint and prune
            serializer: State byte codec for checkpoints

        Raises:
            GraphValidationError: if a GraphSpec fails compilation
        """
        self.graph = graph.compile() if isinstance(graph, GraphSpec) else graph
        self.config = config or ExecutorConfig()
        self.checkpoint_store = checkpoint_store
        self.checkpoint_config = checkpoint_config or DEFAULT_CHECKPOINT_CONFIG
        self.serializer = serializer or StateSerializer()
        self.router = EdgeRouter(self.graph)
        self.logger = logging.getLogger(__name__)

        self._cancel_requested = asyncio.Event()

    @property
    def max_steps(self) -> int:
        return self.graph.max_steps or self.config.max_steps

    async def execute(
        self,
        input_data: Mapping[str, Any] | None = None,
        run_id: str | None = None,
    ) -> ExecutionResult:
        """
        Run the graph from its entry node.

        Args:
            input_data: Initial state (version 0)
            run_id: Identifier for checkpoints and logs; generated if omitted

        Returns:
            ExecutionResult; run-level failures are reported, not raised

        Raises:
            GraphError: if the checkpoint store cannot key checkpoints by ``run_id``
        """
        run_id = run_id or uuid.uuid4().hex
        self._check_run_id(run_id)
        store = self.graph.new_store(initial=dict(input_data or {}))
        ctx = RunContext(
            run_id=run_id,
            graph_id=self.graph.graph_id,
            frontier=[self.graph.entry_node],
        )

        token = set_trace_context(run_id=run_id, graph_id=self.graph.graph_id)
        try:
            self.logger.info(f"🚀 Starting run {run_id} of graph '{self.graph.graph_id}'")
            self.logger.info(f"   Entry node: {self.graph.entry_node}")
            return await self._run(ctx, store)
        finally:
            reset_trace_context(token)

    async def resume(self, run_id: str, step: int | None = None) -> ExecutionResult:
        """
        Continue a run from a checkpoint.

        The next frontier is recomputed by routing the checkpoint's completed
        nodes against the restored state, so it matches what the original
        run would have scheduled.

        Args:
            run_id: Run to resume
            step: Checkpointed step to resume from (latest if None)

        Raises:
            GraphError: if there is no store, the run id is invalid for it,
                there is no such checkpoint, or it belongs to another graph
        """
        if self.checkpoint_store is None:
            raise GraphError("Cannot resume without a checkpoint store")
        self._check_run_id(run_id)

        data = await self.checkpoint_store.load(run_id, step)
        if data is None:
            raise GraphError(
                f"No checkpoint found for run '{run_id}'"
                + (f" at step {step}" if step is not None else ""),
                details={"run_id": run_id, "step": step},
            )

        checkpoint = Checkpoint.from_bytes(data)
        if checkpoint.graph_id != self.graph.graph_id:
            raise GraphError(
                f"Checkpoint belongs to graph '{checkpoint.graph_id}', "
                f"not '{self.graph.graph_id}'",
                details={"run_id": run_id, "graph_id": checkpoint.graph_id},
            )

        restored = self.serializer.deserialize(checkpoint.state_bytes)
        store = self.graph.new_store(initial=restored.to_dict(), version=restored.version)
        ctx = RunContext(
            run_id=run_id,
            graph_id=self.graph.graph_id,
            step=checkpoint.step,
            path=list(checkpoint.execution_path),
            node_visit_counts=dict(checkpoint.node_visit_counts),
        )

        token = set_trace_context(run_id=run_id, graph_id=self.graph.graph_id)
        try:
            self.logger.info(
                f"🔄 Resuming run {run_id} after step {checkpoint.step} "
                f"(state v{restored.version}, last completed: {checkpoint.completed_nodes})"
            )
            try:
                ctx.frontier = self.router.frontier(
                    checkpoint.completed_nodes, restored, failed=set(checkpoint.failed_nodes)
                )
            except RoutingError as e:
                return self._fail(ctx, store, e, checkpoint.step)
            return await self._run(ctx, store)
        finally:
            reset_trace_context(token)

    def request_cancel(self) -> None:
        """
        Request cancellation of the current run.

        The run stops at the next step boundary. In-flight nodes either
        finish (and their step is merged) or are abandoned, according to
        ``config.cancellation_policy``. The last checkpoint stays resumable.
        """
        self._cancel_requested.set()
        self.logger.info("⏸ Cancel requested - will stop at next step boundary")

    def _check_run_id(self, run_id: str) -> None:
        if self.checkpoint_store is None:
            return
        try:
            self.checkpoint_store.validate_run_id(run_id)
        except ValueError as e:
            raise GraphError(str(e), details={"run_id": run_id}) from e

    async def _run(self, ctx: RunContext, store: StateStore) -> ExecutionResult:
        self._cancel_requested.clear()
        ctx.status = RunStatus.RUNNING

        while ctx.frontier:
            if self._cancel_requested.is_set():
                return self._cancel(ctx, store)

            step = ctx.step + 1
            if step > self.max_steps:
                error = StepLimitExceeded(self.max_steps, ctx.frontier)
                self.logger.error(f"✗ {error}")
                return self._fail(ctx, store, error, step)

            frontier = list(ctx.frontier)
            if len(frontier) > 1:
                self.logger.info(f"\n▶ Step {step}: ⑂ {len(frontier)} nodes in parallel")
                for node_id in frontier:
                    self.logger.info(f"      • {node_id}")
            else:
                self.logger.info(f"\n▶ Step {step}: {frontier[0]}")

            snapshot = store.snapshot()
            try:
                outcomes = await self._run_step(frontier, snapshot)
            except NodeError as e:
                return self._fail(ctx, store, e, step)

            if outcomes is None:
                self.logger.info(f"⏹ Step {step} abandoned; its updates were discarded")
                return self._cancel(ctx, store)

            try:
                state, failed = self._merge_step(store, frontier, outcomes)
            except GraphError as e:
                return self._fail(ctx, store, e, step)

            ctx.step = step
            ctx.path.extend(frontier)
            for node_id in frontier:
                ctx.node_visit_counts[node_id] = ctx.node_visit_counts.get(node_id, 0) + 1

            try:
                next_frontier = self.router.frontier(frontier, state, failed=set(failed))
            except RoutingError as e:
                self.logger.error(f"✗ {e}")
                return self._fail(ctx, store, e, step)

            ctx.history.append(
                StepRecord(
                    step=step,
                    nodes=frontier,
                    failed_nodes=failed,
                    state_version=state.version,
                    next_frontier=next_frontier,
                )
            )
            ctx.frontier = next_frontier
            if len(frontier) > 1:
                self.logger.info(f"   ⑃ Merged {len(frontier)} updates -> v{state.version}")

            try:
                await self._checkpoint(ctx, state, frontier, failed)
            except StateSerializationError as e:
                self.logger.error(f"✗ Cannot checkpoint step {step}: {e}")
                return self._fail(ctx, store, e, step)

        ctx.status = RunStatus.COMPLETED
        self.logger.info(f"\n✓ Execution complete after {ctx.step} steps")
        self.logger.info(f"   Path: {' → '.join(ctx.path)}")
        return self._result(ctx, store)

    async def _run_step(
        self, frontier: list[str], snapshot: State
    ) -> dict[str, _NodeOutcome] | None:
        """
        Run all frontier nodes concurrently against the same snapshot.

        Returns:
            Outcomes by node ID, or None if the step was abandoned on cancel

        Raises:
            NodeError: for a failure with no on_failure edge; siblings are cancelled
        """
        tasks = {
            node_id: asyncio.create_task(
                self._run_node(self.graph.node(node_id), snapshot),
                name=f"node:{node_id}",
            )
            for node_id in frontier
        }
        cancel_waiter = asyncio.create_task(self._cancel_requested.wait())
        outcomes: dict[str, _NodeOutcome] = {}
        pending = set(tasks.values())

        try:
            while pending:
                waiting = pending if cancel_waiter.done() else pending | {cancel_waiter}
                done, _ = await asyncio.wait(waiting, return_when=asyncio.FIRST_COMPLETED)

                if cancel_waiter in done:
                    if self.config.cancellation_policy == CancellationPolicy.ABANDON:
                        self.logger.info(f"⏹ Abandoning {len(pending)} in-flight nodes")
                        return None
                    self.logger.info(f"⏸ Letting {len(pending)} in-flight nodes finish")

                for node_id, task in tasks.items():
                    if task in done:
                        pending.discard(task)
                        outcomes[node_id] = task.result()

                for node_id in frontier:
                    outcome = outcomes.get(node_id)
                    if outcome and outcome.error and not self.graph.has_error_edge(node_id):
                        if pending:
                            self.logger.info(f"   Cancelling {len(pending)} sibling nodes")
                        raise outcome.error
        finally:
            cancel_waiter.cancel()
            unfinished = [t for t in tasks.values() if not t.done()]
            for task in unfinished:
                task.cancel()
            if unfinished:
                await asyncio.gather(*unfinished, return_exceptions=True)

        return outcomes

    async def _run_node(self, node_spec: NodeSpec, snapshot: State) -> _NodeOutcome:
        """Invoke one node with its timeout and retries. Never raises NodeError."""
        set_trace_context(node_id=node_spec.id)
        timeout = (
            node_spec.timeout_seconds
            if node_spec.timeout_seconds is not None
            else self.config.node_timeout_seconds
        )
        attempt = 0

        while True:
            try:
                if timeout is not None:
                    update = await asyncio.wait_for(node_spec.action.apply(snapshot), timeout)
                else:
                    update = await node_spec.action.apply(snapshot)
                if not isinstance(update, Mapping):
                    raise TypeError(
                        f"Node returned {type(update).__name__}, expected a mapping"
                    )
                bad_keys = [k for k in update if not isinstance(k, str)]
                if bad_keys:
                    raise TypeError(f"State keys must be strings, got {bad_keys!r}")
            except Exception as e:
                error = NodeError(node_spec.id, e)
                if attempt < node_spec.max_retries and not self._cancel_requested.is_set():
                    delay = self.config.retry_backoff_seconds * 2**attempt
                    self.logger.warning(
                        f"   ↻ {node_spec.id}: {error.details['cause']} - "
                        f"retry {attempt + 1}/{node_spec.max_retries} in {delay}s"
                    )
                    await asyncio.sleep(delay)
                    if not self._cancel_requested.is_set():
                        attempt += 1
                        continue
                if attempt < node_spec.max_retries:
                    # No new invocation once cancellation has been requested
                    self.logger.info(f"   ⏹ {node_spec.id}: cancel requested, not retrying")
                if error.is_timeout:
                    self.logger.error(f"   ✗ {node_spec.id}: timed out after {timeout}s")
                else:
                    self.logger.error(f"   ✗ {node_spec.id}: {error.details['cause']}")
                return _NodeOutcome(node_spec.id, error=error, attempts=attempt + 1)

            self.logger.info(f"   ✓ {node_spec.id} ({len(update)} keys)")
            return _NodeOutcome(node_spec.id, update=dict(update), attempts=attempt + 1)

    def _merge_step(
        self,
        store: StateStore,
        frontier: list[str],
        outcomes: dict[str, _NodeOutcome],
    ) -> tuple[State, list[str]]:
        """
        Merge the step's updates as one batch, in frontier order.

        A ReducerMismatch is attributed to the node whose update triggered
        it: with an on_failure edge that node's updates are dropped and the
        merge is retried; otherwise the error fails the run.

        Returns:
            The new state and the nodes that failed in this step
        """
        failed = [node_id for node_id in frontier if outcomes[node_id].error is not None]
        errors: dict[str, GraphError] = {
            node_id: outcomes[node_id].error for node_id in failed
        }

        while True:
            updates: list[StateUpdate] = []
            for node_id in frontier:
                if node_id in errors:
                    signal = self._error_signal(node_id, errors[node_id])
                    updates.append(StateUpdate(NODE_ERROR_KEY, signal, node_id))
                    continue
                for key, value in outcomes[node_id].update.items():
                    updates.append(StateUpdate(key, value, node_id))

            try:
                return store.merge(updates), failed
            except ReducerMismatch as e:
                source = e.source
                if source is None or source in errors or not self.graph.has_error_edge(source):
                    raise
                self.logger.warning(f"   ✗ {source}: {e}; routing through error edge")
                errors[source] = e
                failed = [node_id for node_id in frontier if node_id in errors]

    @staticmethod
    def _error_signal(node_id: str, error: GraphError) -> dict[str, Any]:
        cause = getattr(error, "cause", error)
        return {
            "node": node_id,
            "error": str(error),
            "type": "Timeout" if isinstance(cause, TimeoutError) else type(cause).__name__,
        }

    async def _checkpoint(
        self,
        ctx: RunContext,
        state: State,
        completed: list[str],
        failed: list[str],
    ) -> None:
        if self.checkpoint_store is None or not self.checkpoint_config.should_checkpoint_step():
            return

        checkpoint = Checkpoint.create(
            run_id=ctx.run_id,
            graph_id=ctx.graph_id,
            step=ctx.step,
            state_bytes=self.serializer.serialize(state),
            completed_nodes=completed,
            failed_nodes=failed,
            execution_path=ctx.path,
            node_visit_counts=ctx.node_visit_counts,
        )
        try:
            await self.checkpoint_store.save(ctx.run_id, ctx.step, checkpoint.to_bytes())
        except OSError as e:
            self.logger.warning(f"⚠ Failed to save checkpoint for step {ctx.step}: {e}")
            return
        self.logger.debug(f"💾 Saved checkpoint {checkpoint.checkpoint_id}")

        if self.checkpoint_config.should_prune_checkpoints(ctx.step):
            try:
                await self.checkpoint_store.prune_checkpoints(
                    ctx.run_id, self.checkpoint_config.checkpoint_max_age_days
                )
            except OSError as e:
                self.logger.warning(f"⚠ Checkpoint pruning failed: {e}")

    def _fail(
        self, ctx: RunContext, store: StateStore, error: GraphError, step: int
    ) -> ExecutionResult:
        ctx.status = RunStatus.FAILED
        self.logger.error(f"✗ Run {ctx.run_id} failed at step {step}: {error}")
        return self._result(ctx, store, error=error, error_step=step)

    def _cancel(self, ctx: RunContext, store: StateStore) -> ExecutionResult:
        ctx.status = RunStatus.CANCELLED
        self.logger.info(f"⏸ Run {ctx.run_id} cancelled after step {ctx.step}")
        return self._result(ctx, store)

    def _result(
        self,
        ctx: RunContext,
        store: StateStore,
        error: GraphError | None = None,
        error_step: int | None = None,
    ) -> ExecutionResult:
        return ExecutionResult(
            status=ctx.status,
            run_id=ctx.run_id,
            state=store.snapshot(),
            error=error,
            error_step=error_step,
            steps_executed=ctx.step,
            path=list(ctx.path),
            node_visit_counts=dict(ctx.node_visit_counts),
            history=list(ctx.history),
            pending_frontier=list(ctx.frontier) if ctx.status != RunStatus.COMPLETED else [],
        )
