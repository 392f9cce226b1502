"""Tests for ReflectionNode."""

import pytest

from agentgraph.graph.reflection_node import REFLECTION_COMPLETED, ReflectionNode
from agentgraph.graph.state import State


@pytest.mark.asyncio
async def test_without_scorer_records_completion():
    node = ReflectionNode()

    update = await node.apply(State({"answer": "42"}))

    assert update == {"reflection": REFLECTION_COMPLETED}


@pytest.mark.asyncio
async def test_sync_scorer():
    node = ReflectionNode(lambda s: {"score": len(s["answer"])}, output_key="review")

    update = await node.apply(State({"answer": "four"}))

    assert update == {"review": {"score": 4}}


@pytest.mark.asyncio
async def test_async_scorer():
    async def scorer(state):
        return {"score": 0.9, "suggestions": ["cite sources"]}

    update = await ReflectionNode(scorer).apply(State())

    assert update["reflection"]["suggestions"] == ["cite sources"]


@pytest.mark.asyncio
async def test_scorer_must_return_mapping():
    node = ReflectionNode(lambda s: 0.5)

    with pytest.raises(TypeError):
        await node.apply(State())
