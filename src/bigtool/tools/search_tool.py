"""The ``search_tools`` meta-tool offered to the model on every turn."""
from typing import List, Optional

from langchain_core.tools import BaseTool, StructuredTool
from pydantic import BaseModel, Field

from ..common.types import SearchIndex, SearchOptions, ToolCatalog

SEARCH_TOOL_NAME = "search_tools"

SEARCH_TOOL_DESCRIPTION = (
    "Search for available tools by describing what you want to do. "
    "Returns a list of relevant tools that you can then use. "
    "Always search before attempting to use a tool you have not used yet."
)


class SearchToolInput(BaseModel):
    """Arguments of the search meta-tool."""
    query: str = Field(description="Natural language description of the capability you need")


def format_search_results(query: str, tool_ids: List[str], catalog: ToolCatalog) -> str:
    """Text returned to the model for one search.

    Ids the catalog no longer knows are counted but not described.
    """
    if not tool_ids:
        return f'No tools found matching "{query}". Try a different search query.'

    lines = []
    for tool_id in tool_ids:
        meta = catalog.get_metadata(tool_id)
        if meta is not None:
            lines.append(f"- **{meta.name}**: {meta.description}")

    noun = "tool" if len(tool_ids) == 1 else "tools"
    return f"Found {len(tool_ids)} {noun}:\n" + "\n".join(lines) + "\n\nYou can now use these tools."


async def search_tool_ids(index: SearchIndex, query: str, limit: int = 5) -> List[str]:
    results = await index.search(query, SearchOptions(limit=limit))
    return [result.tool_id for result in results]


def create_search_tool(
    index: SearchIndex,
    catalog: ToolCatalog,
    limit: int = 5,
    description: Optional[str] = None,
) -> BaseTool:
    """Build the search meta-tool bound to ``index``.

    Inside the discovery loop the search node intercepts calls to this tool;
    invoking it directly just returns the formatted results.
    """

    async def search_tools(query: str) -> str:
        tool_ids = await search_tool_ids(index, query, limit)
        return format_search_results(query, tool_ids, catalog)

    return StructuredTool.from_function(
        coroutine=search_tools,
        name=SEARCH_TOOL_NAME,
        description=description or SEARCH_TOOL_DESCRIPTION,
        args_schema=SearchToolInput,
    )
