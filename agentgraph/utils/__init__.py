"""Shared file utilities."""

from agentgraph.utils.io import atomic_write

__all__ = ["atomic_write"]
