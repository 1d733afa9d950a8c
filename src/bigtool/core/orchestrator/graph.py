"""Graph construction for the decide / search / act discovery loop."""
import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, SystemMessage, ToolMessage
from langchain_core.runnables import RunnableConfig
from langchain_core.tools import BaseTool
from langgraph.graph import END, START, StateGraph
from langgraph.prebuilt import ToolNode
from pydantic import BaseModel

from ...common.types import ConfigurationError, SearchIndex, SearchRecord, ToolCatalog, ToolLoader
from ...tools.search_tool import SEARCH_TOOL_NAME, format_search_results, search_tool_ids
from ..metrics import metrics
from .router import should_continue
from .state import DiscoveryState

logger = logging.getLogger(__name__)


class NodeConfig(BaseModel):
    """Configuration for graph nodes."""
    search_limit: int = 5
    system_prompt: Optional[str] = None
    enable_metrics: bool = True


class GraphNode(ABC):
    """Base class for loop nodes; records metrics and logs failures."""
    name: str = "node"

    def __init__(self, config: NodeConfig):
        self.config = config
        self.node_metrics = metrics.start_node(self.name) if config.enable_metrics else None

    async def execute(self, state: DiscoveryState, config: RunnableConfig) -> Dict[str, Any]:
        """Execute node, recording success or failure."""
        # Timed locally; concurrent runs share the node's metrics record
        start = time.perf_counter()
        try:
            result = await self._execute(state, config)
        except Exception as e:
            if self.node_metrics:
                self.node_metrics.complete(time.perf_counter() - start, success=False)
            logger.error(f"Error in {self.name} node: {e}")
            raise
        if self.node_metrics:
            self.node_metrics.complete(time.perf_counter() - start, success=True)
        return result

    @abstractmethod
    async def _execute(self, state: DiscoveryState, config: RunnableConfig) -> Dict[str, Any]:
        """Implement actual node logic."""
        pass


def unique_by_name(tools: Sequence[BaseTool]) -> List[BaseTool]:
    """Drop later tools whose name is already taken."""
    seen = set()
    unique = []
    for tool in tools:
        if tool.name not in seen:
            seen.add(tool.name)
            unique.append(tool)
    return unique


async def load_selected_tools(loader: ToolLoader, tool_ids: Sequence[str]) -> List[BaseTool]:
    """Load every selected id, skipping the ones that fail."""
    results = await asyncio.gather(*(loader.load(tool_id) for tool_id in tool_ids), return_exceptions=True)
    tools = []
    for tool_id, result in zip(tool_ids, results):
        if isinstance(result, Exception):
            logger.warning(f"Skipping tool {tool_id}: {result}")
            continue
        tools.append(result)
    return tools


class DecideNode(GraphNode):
    """Asks the model what to do next with every available tool bound."""
    name = "decide"

    def __init__(
        self,
        llm: BaseChatModel,
        search_tool: BaseTool,
        loader: ToolLoader,
        pinned_tools: Sequence[BaseTool],
        config: NodeConfig,
    ):
        super().__init__(config)
        self.llm = llm
        self.search_tool = search_tool
        self.loader = loader
        self.pinned_tools = list(pinned_tools)

    async def _execute(self, state: DiscoveryState, config: RunnableConfig) -> Dict[str, Any]:
        selected = await load_selected_tools(self.loader, state.get("selected_tool_ids") or [])
        tools = unique_by_name([self.search_tool, *self.pinned_tools, *selected])
        logger.debug(f"Binding tools to model: {[t.name for t in tools]}")
        model = self.llm.bind_tools(tools)

        messages = list(state["messages"])
        system_prompt = self.config.system_prompt
        if system_prompt and not (messages and isinstance(messages[0], SystemMessage)):
            messages = [SystemMessage(content=system_prompt), *messages]

        response = await model.ainvoke(messages, config)
        return {"messages": [response]}


class SearchNode(GraphNode):
    """Runs every search_tools call on the last message, in order."""
    name = "search"

    def __init__(self, index: SearchIndex, catalog: ToolCatalog, config: NodeConfig):
        super().__init__(config)
        self.index = index
        self.catalog = catalog

    async def _execute(self, state: DiscoveryState, config: RunnableConfig) -> Dict[str, Any]:
        last = state["messages"][-1] if state["messages"] else None
        if not isinstance(last, AIMessage) or not last.tool_calls:
            return {}

        tool_messages = []
        found_ids: List[str] = []
        history: List[SearchRecord] = []

        for call in last.tool_calls:
            if call["name"] != SEARCH_TOOL_NAME:
                continue
            query = str(call["args"].get("query", ""))
            try:
                tool_ids = await search_tool_ids(self.index, query, self.config.search_limit)
                content = format_search_results(query, tool_ids, self.catalog)
                status = "success"
            except Exception as e:
                logger.error(f"Search for {query!r} failed: {e}")
                tool_ids = []
                content = f"Error: search failed: {e}"
                status = "error"

            logger.info(f"Search {query!r} found {len(tool_ids)} tools")
            found_ids.extend(tool_ids)
            history.append(SearchRecord(query=query, results=tool_ids))
            tool_messages.append(
                ToolMessage(content=content, tool_call_id=call["id"] or "", name=SEARCH_TOOL_NAME, status=status)
            )

        return {
            "messages": tool_messages,
            "selected_tool_ids": found_ids,
            "search_history": history,
        }


class ActNode(GraphNode):
    """Executes the tool calls on the last message against pinned and selected tools."""
    name = "act"

    def __init__(self, loader: ToolLoader, pinned_tools: Sequence[BaseTool], config: NodeConfig):
        super().__init__(config)
        self.loader = loader
        self.pinned_tools = list(pinned_tools)

    async def _execute(self, state: DiscoveryState, config: RunnableConfig) -> Dict[str, Any]:
        selected = await load_selected_tools(self.loader, state.get("selected_tool_ids") or [])
        tools = unique_by_name([*self.pinned_tools, *selected])
        # Tool exceptions come back as error ToolMessages instead of failing the loop
        tool_node = ToolNode(tools, handle_tool_errors=True)
        return await tool_node.ainvoke({"messages": state["messages"]}, config)


def check_tool_binding(llm: BaseChatModel) -> None:
    """Fail early if the model cannot bind tools."""
    bind_tools = getattr(type(llm), "bind_tools", None)
    if bind_tools is None or bind_tools is BaseChatModel.bind_tools:
        raise ConfigurationError(f"Model {type(llm).__name__} does not support tool binding")


class DiscoveryGraph:
    """Builder for the discovery loop graph."""
    def __init__(self, config: NodeConfig):
        self.config = config
        self.graph = StateGraph(DiscoveryState)
        self.graph.add_edge(START, "decide")

    def add_decide(self, llm: BaseChatModel, search_tool: BaseTool, loader: ToolLoader, pinned_tools: Sequence[BaseTool]) -> None:
        """Add the decide node."""
        check_tool_binding(llm)
        node = DecideNode(llm, search_tool, loader, pinned_tools, self.config)
        self.graph.add_node("decide", node.execute)

    def add_search(self, index: SearchIndex, catalog: ToolCatalog) -> None:
        """Add the search node."""
        node = SearchNode(index, catalog, self.config)
        self.graph.add_node("search", node.execute)

    def add_act(self, loader: ToolLoader, pinned_tools: Sequence[BaseTool]) -> None:
        """Add the act node."""
        node = ActNode(loader, pinned_tools, self.config)
        self.graph.add_node("act", node.execute)

    def add_edges(self) -> None:
        """Add graph edges."""
        self.graph.add_conditional_edges(
            "decide",
            should_continue,
            {
                "search": "search",
                "act": "act",
                "end": END,
            }
        )
        self.graph.add_edge("search", "decide")
        self.graph.add_edge("act", "decide")

    def build(self, checkpointer: Any = None):
        """Compile the graph."""
        compiled = self.graph.compile(checkpointer=checkpointer)
        logger.info("Discovery graph built successfully")
        return compiled


def build_discovery_graph(
    llm: BaseChatModel,
    search_tool: BaseTool,
    index: SearchIndex,
    catalog: ToolCatalog,
    loader: ToolLoader,
    pinned_tools: Optional[Sequence[BaseTool]] = None,
    config: Optional[NodeConfig] = None,
    checkpointer: Any = None,
):
    """Create the compiled discovery loop."""
    config = config or NodeConfig()
    pinned_tools = list(pinned_tools or [])

    builder = DiscoveryGraph(config)
    builder.add_decide(llm, search_tool, loader, pinned_tools)
    builder.add_search(index, catalog)
    builder.add_act(loader, pinned_tools)
    builder.add_edges()

    return builder.build(checkpointer)
