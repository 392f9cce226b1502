"""
Observability module for run-scoped structured logging.

- Trace context propagation via ContextVar (run_id, graph_id, node_id)
- Structured JSON logging for production
- Human-readable logging for development
"""

from agentgraph.observability.logging import (
    HumanReadableFormatter,
    StructuredFormatter,
    clear_trace_context,
    configure_logging,
    get_trace_context,
    reset_trace_context,
    set_trace_context,
)

__all__ = [
    "configure_logging",
    "get_trace_context",
    "set_trace_context",
    "reset_trace_context",
    "clear_trace_context",
    "StructuredFormatter",
    "HumanReadableFormatter",
]
