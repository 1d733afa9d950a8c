"""Assemble catalog, search index, loader and discovery loop into one agent."""
import logging
from typing import Any, Dict, Optional, Sequence

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage
from langchain_core.runnables import RunnableConfig
from langchain_core.tools import BaseTool

from .catalog import DefaultToolCatalog
from .common.types import CatalogChange, SearchIndex, ToolSource
from .core.logging_config import run_context
from .core.orchestrator import NodeConfig, build_discovery_graph, create_initial_state
from .core.settings import settings
from .loader import DefaultToolLoader, LoaderConfig
from .search import create_bm25_search
from .sources import LocalSource
from .tools import create_search_tool

logger = logging.getLogger(__name__)


class BigToolAgent:
    """Compiled discovery graph together with the components it runs on."""

    def __init__(self, graph: Any, catalog: DefaultToolCatalog, loader: DefaultToolLoader, index: SearchIndex):
        self.graph = graph
        self.catalog = catalog
        self.loader = loader
        self.index = index
        self._unsubscribe = catalog.on_change.subscribe(self._reindex_on_change)

    async def _reindex_on_change(self, change: CatalogChange) -> None:
        logger.info(f"Catalog changed (+{len(change.added)} -{len(change.removed)}), reindexing")
        await self.index.index(self.catalog.get_all_metadata())

    async def refresh(self) -> None:
        """Rebuild the search index from the current catalog."""
        await self.index.index(self.catalog.get_all_metadata())

    async def ainvoke(self, input: Any, config: Optional[RunnableConfig] = None) -> Dict[str, Any]:
        """Run the loop. ``input`` may be a state dict or a list of messages."""
        if isinstance(input, (list, tuple)):
            input = create_initial_state(input)
        thread_id = ((config or {}).get("configurable") or {}).get("thread_id")
        with run_context(thread_id) as run_id:
            logger.debug(f"Starting run {run_id}")
            return await self.graph.ainvoke(input, config)

    async def ask(self, messages: Sequence[BaseMessage], config: Optional[RunnableConfig] = None) -> BaseMessage:
        """Run the loop and return the final message."""
        result = await self.ainvoke(list(messages), config)
        return result["messages"][-1]

    def dispose(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.loader.dispose()


async def create_agent(
    llm: BaseChatModel,
    *,
    tools: Optional[Sequence[BaseTool]] = None,
    sources: Optional[Sequence[ToolSource]] = None,
    pinned_tools: Optional[Sequence[BaseTool]] = None,
    search: Optional[SearchIndex] = None,
    search_limit: Optional[int] = None,
    system_prompt: Optional[str] = None,
    loader_config: Optional[LoaderConfig] = None,
    checkpointer: Any = None,
) -> BigToolAgent:
    """Create a tool discovery agent.

    Args:
        llm: Chat model that supports ``bind_tools``.
        tools: Plain tools, registered together under a ``LocalSource``.
        sources: Additional tool sources (MCP servers, dynamic loaders, ...).
        pinned_tools: Tools always offered to the model without searching.
        search: Search index; defaults to a BM25 keyword index.
        search_limit: Results per search call.
        system_prompt: Prepended to the messages unless one is already first.
        loader_config: Cache size and TTL for the tool loader.
        checkpointer: Optional LangGraph checkpointer.

    Returns:
        A :class:`BigToolAgent` wrapping the compiled graph.
    """
    search_limit = search_limit or settings.search_limit
    catalog = DefaultToolCatalog()

    all_sources = list(sources or [])
    if tools:
        all_sources.append(LocalSource(list(tools)))
    for source in all_sources:
        await catalog.register(source)

    index = search or create_bm25_search()
    await index.index(catalog.get_all_metadata())

    loader = DefaultToolLoader(catalog, config=loader_config)
    search_tool = create_search_tool(index, catalog, limit=search_limit)

    graph = build_discovery_graph(
        llm,
        search_tool,
        index,
        catalog,
        loader,
        pinned_tools=pinned_tools,
        config=NodeConfig(search_limit=search_limit, system_prompt=system_prompt),
        checkpointer=checkpointer,
    )
    logger.info(f"Created agent with {len(catalog.get_all_metadata())} tools from {len(all_sources)} sources")
    return BigToolAgent(graph, catalog, loader, index)
