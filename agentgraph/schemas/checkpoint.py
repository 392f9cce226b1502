"""
Checkpoint Schema - Step-boundary snapshots for resumability.

A checkpoint is written only after a step's updates are fully merged, so a
resumed run always starts from a consistent state with a known step counter.
The state itself is stored as the StateSerializer's bytes (base64 encoded);
the envelope adds what the executor needs to recompute the next frontier.
"""

import base64
from datetime import datetime

from pydantic import BaseModel, Field


class Checkpoint(BaseModel):
    """
    Single checkpoint in a run's timeline.

    ``completed_nodes`` / ``failed_nodes`` are the nodes finished in ``step``;
    re-routing them against the restored state yields the next frontier.
    """

    # Identity
    checkpoint_id: str  # Format: cp_{run_id}_{step:06d}
    run_id: str
    graph_id: str
    step: int

    # Timestamps
    created_at: str  # ISO 8601 format

    # Execution state
    completed_nodes: list[str] = Field(default_factory=list)
    failed_nodes: list[str] = Field(default_factory=list)
    execution_path: list[str] = Field(default_factory=list)  # Nodes executed so far
    node_visit_counts: dict[str, int] = Field(default_factory=dict)

    # Serialized state (StateSerializer bytes, base64)
    state_data: str = ""

    # Metadata
    description: str = ""

    model_config = {"extra": "allow"}

    @classmethod
    def create(
        cls,
        run_id: str,
        graph_id: str,
        step: int,
        state_bytes: bytes,
        completed_nodes: list[str],
        failed_nodes: list[str] | None = None,
        execution_path: list[str] | None = None,
        node_visit_counts: dict[str, int] | None = None,
        description: str = "",
    ) -> "Checkpoint":
        """
        Create a new checkpoint with generated ID and timestamp.

        Args:
            run_id: Run this checkpoint belongs to
            graph_id: Graph being executed
            step: Step number just completed
            state_bytes: StateSerializer output for the merged state
            completed_nodes: Nodes completed in this step, in frontier order
            failed_nodes: Subset of completed_nodes routed through error edges
            execution_path: List of node IDs executed so far
            node_visit_counts: Visit counts per node so far
            description: Human-readable description

        Returns:
            New Checkpoint instance
        """
        if not description:
            description = f"Step {step}: {', '.join(completed_nodes) or 'start'}"

        return cls(
            checkpoint_id=f"cp_{run_id}_{step:06d}",
            run_id=run_id,
            graph_id=graph_id,
            step=step,
            created_at=datetime.now().isoformat(),
            completed_nodes=list(completed_nodes),
            failed_nodes=list(failed_nodes or []),
            execution_path=list(execution_path or []),
            node_visit_counts=dict(node_visit_counts or {}),
            state_data=base64.b64encode(state_bytes).decode("ascii"),
            description=description,
        )

    @property
    def state_bytes(self) -> bytes:
        return base64.b64decode(self.state_data.encode("ascii"))

    def to_bytes(self) -> bytes:
        return self.model_dump_json().encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> "Checkpoint":
        return cls.model_validate_json(data)


class CheckpointSummary(BaseModel):
    """
    Lightweight checkpoint metadata for index listings.

    Stores only need the byte payload, so the summary records where and
    when it was written rather than anything from inside the envelope.
    """

    step: int
    created_at: str
    size_bytes: int = 0

    model_config = {"extra": "allow"}


class CheckpointIndex(BaseModel):
    """
    Manifest of all checkpoints for a run.

    Provides fast lookup and pruning without reading checkpoint files.
    """

    run_id: str
    checkpoints: list[CheckpointSummary] = Field(default_factory=list)
    latest_step: int | None = None
    total_checkpoints: int = 0

    model_config = {"extra": "allow"}

    def add(self, summary: CheckpointSummary) -> None:
        """Add (or replace) the entry for a step."""
        self.checkpoints = [cp for cp in self.checkpoints if cp.step != summary.step]
        self.checkpoints.append(summary)
        self.checkpoints.sort(key=lambda cp: cp.step)
        self._refresh()

    def remove(self, step: int) -> None:
        """Drop the entry for a step."""
        self.checkpoints = [cp for cp in self.checkpoints if cp.step != step]
        self._refresh()

    def get(self, step: int) -> CheckpointSummary | None:
        """Get checkpoint summary by step."""
        for summary in self.checkpoints:
            if summary.step == step:
                return summary
        return None

    def _refresh(self) -> None:
        self.total_checkpoints = len(self.checkpoints)
        self.latest_step = self.checkpoints[-1].step if self.checkpoints else None
