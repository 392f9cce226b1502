"""Tests for the GraphBuilder authoring API."""

import pytest

from agentgraph.builder import GraphBuilder
from agentgraph.config import ExecutorConfig
from agentgraph.graph.edge import END, CompiledGraph, EdgeCondition
from agentgraph.graph.errors import GraphValidationError
from agentgraph.graph.executor import GraphExecutor
from agentgraph.graph.state import Reducer


def step(name):
    def action(state):
        return {"visited": name}

    return action


def test_build_and_run_simple_graph():
    builder = GraphBuilder("simple", description="two steps")
    builder.add_node("plan", step("plan"), description="Plan the work")
    builder.add_node("act", step("act"))
    builder.add_edge("plan", "act")
    builder.add_edge("act", END)

    validation = builder.validate()
    graph = builder.compile()

    assert validation.valid, validation.errors
    assert isinstance(graph, CompiledGraph)
    assert graph.entry_node == "plan"


def test_first_node_is_default_entry_point():
    builder = GraphBuilder("g")
    builder.add_node("first", step("first"))
    builder.add_node("second", step("second"))
    builder.set_entry_point("second")
    builder.add_edge("second", "first")
    builder.add_edge("first", END)

    assert builder.build().entry_node == "second"


def test_duplicate_node_rejected():
    builder = GraphBuilder("g")
    builder.add_node("a", step("a"))

    result = builder.add_node("a", step("a"))

    assert not result.valid
    assert "already exists" in result.errors[0]
    assert len(builder.nodes) == 1


def test_edge_from_unknown_source_rejected():
    builder = GraphBuilder("g")
    builder.add_node("a", step("a"))

    result = builder.add_edge("ghost", "a")

    assert not result.valid
    assert builder.edges == []


def test_forward_reference_is_a_warning_until_compile():
    builder = GraphBuilder("g")
    builder.add_node("a", step("a"))

    result = builder.add_edge("a", "later")

    assert result.valid
    assert result.warnings
    with pytest.raises(GraphValidationError):
        builder.compile()


def test_conditional_edges_with_path_map():
    builder = GraphBuilder("g")
    builder.add_node("review", step("review"))
    builder.add_node("revise", step("revise"))
    builder.add_conditional_edges(
        "review",
        lambda s: "retry" if s.get("visited") == "revise" else "done",
        path_map={"retry": "revise", "done": END},
    )
    builder.add_edge("revise", "review")

    graph = builder.build()

    edge = graph.get_outgoing_edges("review")[0]
    assert edge.condition == EdgeCondition.CONDITIONAL
    assert edge.declared_targets() == ["revise", END]
    assert builder.validate().valid


def test_targets_and_path_map_are_exclusive():
    builder = GraphBuilder("g")
    builder.add_node("a", step("a"))

    result = builder.add_conditional_edges("a", lambda s: END, targets=[END], path_map={"x": END})

    assert not result.valid


def test_undeclared_targets_warn():
    builder = GraphBuilder("g")
    builder.add_node("a", step("a"))
    builder.add_conditional_edges("a", lambda s: END)

    validation = builder.validate()

    assert validation.valid
    assert any("declares no targets" in w for w in validation.warnings)


def test_validate_reports_missing_way_forward():
    builder = GraphBuilder("g")
    builder.add_node("a", step("a"))
    builder.add_node("b", step("b"))
    builder.add_edge("a", "b")

    validation = builder.validate()

    assert not validation.valid
    assert any("'b' has no outgoing edge" in e for e in validation.errors)

    builder.set_terminal("b")
    assert builder.validate().valid


def test_empty_builder_is_invalid():
    assert GraphBuilder("g").validate().errors == ["No nodes defined"]


def test_declare_state_is_fixed():
    builder = GraphBuilder("g")
    builder.declare_state("messages", Reducer.append())
    builder.declare_state("messages", Reducer.append())

    with pytest.raises(ValueError):
        builder.declare_state("messages", Reducer.replace())


@pytest.mark.asyncio
async def test_error_edge_and_retries_through_builder():
    attempts = []

    def flaky(state):
        attempts.append(1)
        raise RuntimeError("down")

    builder = GraphBuilder("g", max_steps=10)
    builder.declare_state("log", Reducer.append())
    builder.add_node("call", flaky, max_retries=1)
    builder.add_node("done", step("done"))
    builder.add_node("recover", lambda s: {"log": "recovered"})
    builder.add_edge("call", "done")
    builder.add_error_edge("call", "recover")
    builder.set_terminal("done", "recover")

    config = ExecutorConfig(max_steps=50, node_timeout_seconds=None, retry_backoff_seconds=0)
    result = await GraphExecutor(builder.build(), config=config).execute()

    assert result.success
    assert len(attempts) == 2
    assert result.state["log"] == ["recovered"]
    assert result.path == ["call", "recover"]
