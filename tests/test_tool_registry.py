"""Tests for ToolRegistry registration and discovery."""

import textwrap

import pytest

from agentgraph.runner.tool_registry import Tool, ToolRegistry, tool


def test_register_function_builds_schema_from_signature():
    registry = ToolRegistry()

    def search(query: str, limit: int = 5, exact: bool = False) -> list:
        """Search the index."""
        return []

    registry.register_function(search)

    definition = registry.get_tools()["search"]
    assert definition.description == "Search the index."
    assert definition.parameters["properties"] == {
        "query": {"type": "string"},
        "limit": {"type": "integer"},
        "exact": {"type": "boolean"},
    }
    assert definition.parameters["required"] == ["query"]


def test_lookup_and_has_tool():
    registry = ToolRegistry()
    registry.register("ping", Tool(name="ping", description="Ping"), lambda inputs: "pong")

    assert registry.has_tool("ping")
    assert registry.lookup("ping").tool.name == "ping"
    assert registry.lookup("nope") is None
    assert registry.get_registered_names() == ["ping"]


@pytest.mark.asyncio
async def test_execute_awaits_async_and_threads_sync():
    registry = ToolRegistry()

    async def double(x: int) -> int:
        return x * 2

    def triple(x: int) -> int:
        return x * 3

    registry.register_function(double)
    registry.register_function(triple, name="times_three", description="x3")

    assert await registry.lookup("double").execute({"x": 4}) == 8
    assert await registry.lookup("times_three").execute({"x": 4}) == 12
    assert registry.get_tools()["times_three"].description == "x3"


def test_reregistering_replaces_executor():
    registry = ToolRegistry()
    registry.register("t", Tool(name="t", description=""), lambda inputs: 1)
    registry.register("t", Tool(name="t", description=""), lambda inputs: 2)

    assert registry.lookup("t").executor({}) == 2


def test_tool_decorator_sets_metadata():
    @tool(description="Say hello")
    def hello(name: str) -> str:
        return f"hello {name}"

    assert hello._tool_metadata == {"name": "hello", "description": "Say hello"}
    assert hello("x") == "hello x"


@pytest.mark.asyncio
async def test_discover_from_module(tmp_path):
    module = tmp_path / "tools.py"
    module.write_text(
        textwrap.dedent(
            '''
            from agentgraph.runner.tool_registry import Tool, tool

            TOOLS = {"lookup": Tool(name="lookup", description="Look up a key")}


            def tool_executor(name, inputs):
                return {"tool": name, "key": inputs["key"]}


            @tool(description="Add one")
            def increment(n: int) -> int:
                return n + 1
            '''
        )
    )
    registry = ToolRegistry()

    count = registry.discover_from_module(module)

    assert count == 2
    assert await registry.lookup("lookup").execute({"key": "k"}) == {"tool": "lookup", "key": "k"}
    assert await registry.lookup("increment").execute({"n": 1}) == 2


def test_discover_missing_module_returns_zero(tmp_path):
    assert ToolRegistry().discover_from_module(tmp_path / "absent.py") == 0


def test_schema_skips_variadic_parameters():
    registry = ToolRegistry()

    def fetch(url, *args, timeout: float = 1.0, **kwargs):
        return url

    registry.register_function(fetch)

    parameters = registry.get_tools()["fetch"].parameters
    assert parameters["properties"] == {"url": {"type": "string"}, "timeout": {"type": "number"}}
    assert parameters["required"] == ["url"]


def test_discover_skips_tools_without_shared_executor(tmp_path):
    module = tmp_path / "orphan_tools.py"
    module.write_text(
        "from agentgraph.runner.tool_registry import Tool\n"
        'TOOLS = {"lookup": Tool(name="lookup", description="Look up a key")}\n'
    )
    registry = ToolRegistry()

    assert registry.discover_from_module(module) == 0
    assert not registry.has_tool("lookup")
