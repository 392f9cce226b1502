"""Checkpoint storage backends."""

from agentgraph.storage.checkpoint_store import (
    CheckpointStore,
    FileCheckpointStore,
    InMemoryCheckpointStore,
)

__all__ = ["CheckpointStore", "FileCheckpointStore", "InMemoryCheckpointStore"]
