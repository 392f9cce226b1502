"""Graph authoring helpers."""

from agentgraph.builder.workflow import GraphBuilder, ValidationResult

__all__ = ["GraphBuilder", "ValidationResult"]
