"""State management for the discovery loop."""
import logging
import operator
from typing import Annotated, List, Optional, Sequence

from langchain_core.messages import BaseMessage
from langgraph.graph import MessagesState

from ...common.types import SearchRecord

logger = logging.getLogger(__name__)


def merge_tool_ids(existing: Optional[List[str]], new: Optional[List[str]]) -> List[str]:
    """Set union of tool ids; duplicates collapse, first appearance wins."""
    return list(dict.fromkeys([*(existing or []), *(new or [])]))


class DiscoveryState(MessagesState):
    """Messages plus the tools discovered so far and the searches that found them.

    ``messages`` uses LangGraph's ``add_messages`` reducer (append, replace by
    id). Both other fields only ever grow during one invocation.
    """

    selected_tool_ids: Annotated[List[str], merge_tool_ids]
    search_history: Annotated[List[SearchRecord], operator.add]


def create_initial_state(messages: Sequence[BaseMessage]) -> DiscoveryState:
    """Create a fresh loop state for ``messages``."""
    return DiscoveryState(messages=list(messages), selected_tool_ids=[], search_history=[])
