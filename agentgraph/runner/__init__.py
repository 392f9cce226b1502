"""Tool registration and lookup."""

from agentgraph.runner.tool_registry import RegisteredTool, Tool, ToolRegistry, tool

__all__ = ["Tool", "RegisteredTool", "ToolRegistry", "tool"]
