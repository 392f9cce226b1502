"""Tool discovery and registration for the tool dispatch node."""

import asyncio
import functools
import importlib.util
import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class Tool:
    """A tool a model may request by name."""

    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=dict)


@dataclass
class RegisteredTool:
    """A tool with its executor function."""

    tool: Tool
    executor: Callable[[dict], Any]

    async def execute(self, arguments: dict[str, Any]) -> Any:
        """
        Run the executor with the call's arguments.

        Coroutine functions are awaited directly. Plain functions run in a
        worker thread so that blocking I/O in one tool does not hold up its
        siblings.
        """
        if inspect.iscoroutinefunction(self.executor):
            return await self.executor(arguments)
        result = await asyncio.to_thread(self.executor, arguments)
        if inspect.isawaitable(result):
            result = await result
        return result


class ToolRegistry:
    """
    Name -> executable lookup used by ToolDispatchNode.

    Tools come from explicit register/register_function calls or from
    discover_from_module(); a later registration of a name replaces the
    earlier one.

    The registry is handed to ToolDispatchNode at graph-build time; it is not
    a global.
    """

    def __init__(self):
        self._tools: dict[str, RegisteredTool] = {}

    def register(
        self,
        name: str,
        tool: Tool,
        executor: Callable[[dict], Any],
    ) -> None:
        """
        Register a single tool with its executor.

        Args:
            name: Tool name (must match tool.name)
            tool: Tool definition
            executor: Function that takes tool input dict and returns result
        """
        if name in self._tools:
            logger.warning(f"Tool '{name}' re-registered; previous executor replaced")
        self._tools[name] = RegisteredTool(tool=tool, executor=executor)

    def register_function(
        self,
        func: Callable,
        name: str | None = None,
        description: str | None = None,
    ) -> None:
        """
        Register a plain or async function; its keyword arguments are the call's arguments.

        Parameter types come from the annotations (unannotated means string).
        """
        tool_name = name or func.__name__
        definition = Tool(
            name=tool_name,
            description=description or func.__doc__ or f"Execute {tool_name}",
            parameters=_parameters_schema(func),
        )

        if inspect.iscoroutinefunction(func):

            async def executor(inputs: dict) -> Any:
                return await func(**inputs)

        else:

            def executor(inputs: dict) -> Any:
                return func(**inputs)

        self.register(tool_name, definition, executor)

    def discover_from_module(self, module_path: Path) -> int:
        """
        Register the tools defined in a Python file and return how many were found.

        A module may export ``TOOLS`` (name -> Tool) served by a single
        ``tool_executor(name, inputs)``, and any number of ``@tool`` functions.
        """
        module = _load_module(Path(module_path))
        if module is None:
            return 0

        found = 0
        shared = getattr(module, "tool_executor", None)
        declared = getattr(module, "TOOLS", {})
        if declared and shared is None:
            logger.warning(f"{module_path} defines TOOLS without tool_executor; skipping")
        elif declared:
            for tool_name, definition in declared.items():
                self.register(tool_name, definition, functools.partial(shared, tool_name))
                found += 1

        for attr in vars(module).values():
            metadata = getattr(attr, "_tool_metadata", None)
            if metadata is None or not callable(attr):
                continue
            self.register_function(attr, metadata["name"], metadata["description"])
            found += 1

        logger.info(f"Discovered {found} tools from {module_path}")
        return found

    def lookup(self, name: str) -> RegisteredTool | None:
        """Find a tool by name; None when it is not registered."""
        return self._tools.get(name)

    def get_tools(self) -> dict[str, Tool]:
        """Get all registered Tool objects."""
        return {name: rt.tool for name, rt in self._tools.items()}

    def get_registered_names(self) -> list[str]:
        """Get list of registered tool names."""
        return list(self._tools.keys())

    def has_tool(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self._tools


def tool(
    description: str | None = None,
    name: str | None = None,
) -> Callable:
    """
    Decorator to mark a function as a tool.

    Usage:
        @tool(description="Look up the weather for a city")
        def get_weather(city: str) -> dict:
            return {"city": city, "forecast": "sunny"}
    """

    def decorator(func: Callable) -> Callable:
        func._tool_metadata = {
            "name": name or func.__name__,
            "description": description or func.__doc__,
        }
        return func

    return decorator


_JSON_TYPES = {int: "integer", float: "number", bool: "boolean", dict: "object", list: "array"}


def _parameters_schema(func: Callable) -> dict[str, Any]:
    properties: dict[str, Any] = {}
    required: list[str] = []
    for param in inspect.signature(func).parameters.values():
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        properties[param.name] = {"type": _JSON_TYPES.get(param.annotation, "string")}
        if param.default is param.empty:
            required.append(param.name)
    return {"type": "object", "properties": properties, "required": required}


def _load_module(path: Path) -> ModuleType | None:
    if not path.exists():
        return None
    spec = importlib.util.spec_from_file_location(f"agentgraph_tools_{path.stem}", path)
    if spec is None or spec.loader is None:
        return None
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module
