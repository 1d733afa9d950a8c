"""Tests for the discovery loop graph."""
from typing import List, Optional
from unittest.mock import AsyncMock, Mock

import pytest
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage
from langchain_core.outputs import ChatGeneration, ChatResult

from bigtool.common.types import ConfigurationError, SearchResult, ToolNotFoundError
from bigtool.core.orchestrator import NodeConfig, build_discovery_graph, create_initial_state
from bigtool.tools import SEARCH_TOOL_NAME, create_search_tool

from conftest import FakeCatalog, add, explode, get_weather, make_metadata, scripted_model, tool_call_message

TOOLS = {"local:calculator": add, "local:weather": get_weather, "local:explode": explode}


class NoToolsModel(BaseChatModel):
    """Chat model without tool binding support."""

    @property
    def _llm_type(self) -> str:
        return "no-tools"

    def _generate(self, messages, stop=None, run_manager=None, **kwargs):
        return ChatResult(generations=[ChatGeneration(message=AIMessage(content="hi"))])


def fake_index(results_by_query):
    index = Mock()

    async def search(query, options=None):
        return [
            SearchResult(tool_id=tool_id, score=1.0, match_type="keyword")
            for tool_id in results_by_query.get(query, [])
        ]

    index.search = AsyncMock(side_effect=search)
    return index


def fake_loader(tools=None):
    tools = TOOLS if tools is None else tools
    loader = Mock()

    async def load(tool_id):
        if tool_id not in tools:
            raise ToolNotFoundError(tool_id)
        return tools[tool_id]

    loader.load = AsyncMock(side_effect=load)
    return loader


@pytest.fixture
def catalog():
    return FakeCatalog([
        make_metadata("local:calculator", "Add two integers", categories=["math"]),
        make_metadata("local:weather", "Current weather for a city", categories=["weather"]),
        make_metadata("local:explode", "Always fails"),
    ])


def build(llm, catalog, index=None, loader=None, pinned_tools=None, config: Optional[NodeConfig] = None):
    index = index or fake_index({})
    return build_discovery_graph(
        llm,
        create_search_tool(index, catalog),
        index,
        catalog,
        loader or fake_loader(),
        pinned_tools=pinned_tools,
        config=config or NodeConfig(enable_metrics=False),
    )


def tool_messages(messages) -> List[ToolMessage]:
    return [m for m in messages if isinstance(m, ToolMessage)]


@pytest.mark.asyncio
async def test_searches_accumulate_selected_tools(catalog):
    index = fake_index({"math": ["local:calculator"], "weather": ["local:weather"]})
    llm = scripted_model(
        tool_call_message(SEARCH_TOOL_NAME, {"query": "math"}, "call_1"),
        tool_call_message(SEARCH_TOOL_NAME, {"query": "weather"}, "call_2"),
        AIMessage(content="Both tools are ready."),
    )
    graph = build(llm, catalog, index=index)

    result = await graph.ainvoke(create_initial_state([HumanMessage(content="add and check weather")]))

    assert result["selected_tool_ids"] == ["local:calculator", "local:weather"]
    assert [record.query for record in result["search_history"]] == ["math", "weather"]
    assert result["search_history"][0].results == ["local:calculator"]
    assert result["messages"][-1].content == "Both tools are ready."

    first, second = tool_messages(result["messages"])
    assert first.content == "Found 1 tool:\n- **calculator**: Add two integers\n\nYou can now use these tools."
    assert first.tool_call_id == "call_1"
    assert second.tool_call_id == "call_2"

    # The second decide saw the calculator; the last one saw both
    assert llm.bound[0] == [SEARCH_TOOL_NAME]
    assert llm.bound[1] == [SEARCH_TOOL_NAME, "add"]
    assert llm.bound[2] == [SEARCH_TOOL_NAME, "add", "get_weather"]


@pytest.mark.asyncio
async def test_searches_in_one_reply_run_in_order(catalog):
    index = fake_index({"weather": ["local:weather"], "math": ["local:calculator"]})
    llm = scripted_model(
        AIMessage(
            content="",
            tool_calls=[
                {"name": SEARCH_TOOL_NAME, "args": {"query": "weather"}, "id": "call_a"},
                {"name": SEARCH_TOOL_NAME, "args": {"query": "math"}, "id": "call_b"},
            ],
        ),
        AIMessage(content="Ready."),
    )
    graph = build(llm, catalog, index=index)

    result = await graph.ainvoke(create_initial_state([HumanMessage(content="weather and math")]))

    assert [record.query for record in result["search_history"]] == ["weather", "math"]
    assert [record.results for record in result["search_history"]] == [["local:weather"], ["local:calculator"]]
    assert [call.args[0] for call in index.search.await_args_list] == ["weather", "math"]

    first, second = tool_messages(result["messages"])
    assert first.tool_call_id == "call_a"
    assert "**weather**" in first.content
    assert second.tool_call_id == "call_b"
    assert "**calculator**" in second.content
    assert result["selected_tool_ids"] == ["local:weather", "local:calculator"]


@pytest.mark.asyncio
async def test_plain_answer_ends_immediately(catalog):
    llm = scripted_model(AIMessage(content="Hello!"))
    graph = build(llm, catalog)

    result = await graph.ainvoke(create_initial_state([HumanMessage(content="hi")]))

    assert len(result["messages"]) == 2
    assert result["selected_tool_ids"] == []
    assert result["search_history"] == []


@pytest.mark.asyncio
async def test_empty_search_result(catalog):
    llm = scripted_model(
        tool_call_message(SEARCH_TOOL_NAME, {"query": "teleport"}, "call_1"),
        AIMessage(content="Sorry."),
    )
    graph = build(llm, catalog)

    result = await graph.ainvoke(create_initial_state([HumanMessage(content="teleport me")]))

    [message] = tool_messages(result["messages"])
    assert message.content == 'No tools found matching "teleport". Try a different search query.'
    assert result["selected_tool_ids"] == []
    assert len(result["search_history"]) == 1


@pytest.mark.asyncio
async def test_search_then_act(catalog):
    index = fake_index({"math": ["local:calculator"]})
    llm = scripted_model(
        tool_call_message(SEARCH_TOOL_NAME, {"query": "math"}, "call_1"),
        tool_call_message("add", {"a": 2, "b": 3}, "call_2"),
        AIMessage(content="2 + 3 = 5"),
    )
    graph = build(llm, catalog, index=index)

    result = await graph.ainvoke(create_initial_state([HumanMessage(content="what is 2 + 3")]))

    answer = tool_messages(result["messages"])[-1]
    assert answer.name == "add"
    assert answer.content == "5"
    assert result["messages"][-1].content == "2 + 3 = 5"


@pytest.mark.asyncio
async def test_pinned_tools_need_no_search(catalog):
    llm = scripted_model(
        tool_call_message("get_weather", {"city": "Paris"}, "call_1"),
        AIMessage(content="It is sunny."),
    )
    graph = build(llm, catalog, pinned_tools=[get_weather])

    result = await graph.ainvoke(create_initial_state([HumanMessage(content="weather in Paris")]))

    [message] = tool_messages(result["messages"])
    assert message.content == "Sunny in Paris"
    assert llm.bound[0] == [SEARCH_TOOL_NAME, "get_weather"]
    assert result["search_history"] == []


@pytest.mark.asyncio
async def test_tool_errors_become_messages(catalog):
    index = fake_index({"fail": ["local:explode"]})
    llm = scripted_model(
        tool_call_message(SEARCH_TOOL_NAME, {"query": "fail"}, "call_1"),
        tool_call_message("explode", {"reason": "test"}, "call_2"),
        AIMessage(content="That failed."),
    )
    graph = build(llm, catalog, index=index)

    result = await graph.ainvoke(create_initial_state([HumanMessage(content="break")]))

    error = tool_messages(result["messages"])[-1]
    assert error.status == "error"
    assert "boom: test" in error.content
    assert result["messages"][-1].content == "That failed."


@pytest.mark.asyncio
async def test_search_failure_becomes_error_message(catalog):
    index = Mock()
    index.search = AsyncMock(side_effect=RuntimeError("index offline"))
    llm = scripted_model(
        tool_call_message(SEARCH_TOOL_NAME, {"query": "math"}, "call_1"),
        AIMessage(content="Search is unavailable."),
    )
    graph = build(llm, catalog, index=index)

    result = await graph.ainvoke(create_initial_state([HumanMessage(content="add")]))

    [message] = tool_messages(result["messages"])
    assert message.status == "error"
    assert message.content == "Error: search failed: index offline"
    assert result["selected_tool_ids"] == []


@pytest.mark.asyncio
async def test_unloadable_tools_are_skipped(catalog):
    index = fake_index({"math": ["local:calculator", "local:gone"]})
    llm = scripted_model(
        tool_call_message(SEARCH_TOOL_NAME, {"query": "math"}, "call_1"),
        AIMessage(content="ok"),
    )
    graph = build(llm, catalog, index=index)

    result = await graph.ainvoke(create_initial_state([HumanMessage(content="add")]))

    assert result["selected_tool_ids"] == ["local:calculator", "local:gone"]
    assert llm.bound[-1] == [SEARCH_TOOL_NAME, "add"]


@pytest.mark.asyncio
async def test_system_prompt_is_prepended(catalog):
    llm = scripted_model(AIMessage(content="Hello!"))
    graph = build(llm, catalog, config=NodeConfig(system_prompt="Search before acting.", enable_metrics=False))

    result = await graph.ainvoke(create_initial_state([HumanMessage(content="hi")]))

    sent = llm.received[0]
    assert isinstance(sent[0], SystemMessage)
    assert sent[0].content == "Search before acting."
    # Not stored in the conversation
    assert not any(isinstance(m, SystemMessage) for m in result["messages"])


def test_model_without_tool_binding_is_rejected(catalog):
    with pytest.raises(ConfigurationError):
        build(NoToolsModel(), catalog)
