"""Tests for routing and the search meta-tool."""
import pytest
from langchain_core.messages import AIMessage, HumanMessage, ToolMessage

from bigtool.core.orchestrator import merge_tool_ids, should_continue
from bigtool.search import create_bm25_search
from bigtool.tools import SEARCH_TOOL_NAME, create_search_tool, format_search_results

from conftest import FakeCatalog, make_metadata


def calls(*names):
    return AIMessage(
        content="",
        tool_calls=[{"name": name, "args": {}, "id": f"call_{i}"} for i, name in enumerate(names)],
    )


@pytest.mark.parametrize("messages,expected", [
    ([], "end"),
    ([HumanMessage(content="hi")], "end"),
    ([AIMessage(content="All done")], "end"),
    ([ToolMessage(content="4", tool_call_id="call_0")], "end"),
    ([calls(SEARCH_TOOL_NAME)], "search"),
    ([calls("add")], "act"),
    ([calls("add", "get_weather")], "act"),
])
def test_should_continue(messages, expected):
    assert should_continue({"messages": messages}) == expected


def test_search_wins_over_concrete_calls():
    """A reply mixing search and real tool calls goes to search first."""
    state = {"messages": [HumanMessage(content="add 2 and 2"), calls("add", SEARCH_TOOL_NAME)]}
    assert should_continue(state) == "search"


def test_merge_tool_ids():
    assert merge_tool_ids(["a", "b"], ["b", "c", "a"]) == ["a", "b", "c"]
    assert merge_tool_ids(None, ["x", "x"]) == ["x"]
    assert merge_tool_ids(["a"], None) == ["a"]


def test_format_search_results():
    catalog = FakeCatalog([
        make_metadata("local:add", "Add two numbers"),
        make_metadata("local:get_weather", "Current weather"),
    ])

    assert format_search_results("math", [], catalog) == (
        'No tools found matching "math". Try a different search query.'
    )
    assert format_search_results("math", ["local:add"], catalog) == (
        "Found 1 tool:\n- **add**: Add two numbers\n\nYou can now use these tools."
    )
    text = format_search_results("stuff", ["local:add", "local:get_weather"], catalog)
    assert text.startswith("Found 2 tools:\n")
    assert "- **get_weather**: Current weather" in text


@pytest.mark.asyncio
async def test_search_tool_direct_invocation(sample_metadata):
    index = create_bm25_search()
    await index.index(sample_metadata)
    search_tool = create_search_tool(index, FakeCatalog(sample_metadata), limit=2)

    assert search_tool.name == SEARCH_TOOL_NAME
    text = await search_tool.ainvoke({"query": "weather forecast"})
    assert text.startswith("Found 1 tool:")
    assert "**get_weather**" in text

