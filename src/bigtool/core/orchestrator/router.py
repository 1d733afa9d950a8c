"""Routing after the decide node."""
import logging
from typing import Any, Literal, Mapping

from langchain_core.messages import AIMessage

from ...tools.search_tool import SEARCH_TOOL_NAME

logger = logging.getLogger(__name__)

Route = Literal["search", "act", "end"]


def should_continue(state: Mapping[str, Any]) -> Route:
    """Pick the next node from the last message alone.

    A search request wins over concrete tool calls in the same reply; those
    calls are not executed this turn.
    """
    messages = state.get("messages") or []
    if not messages:
        return "end"

    last = messages[-1]
    if not isinstance(last, AIMessage) or not last.tool_calls:
        return "end"

    if any(call["name"] == SEARCH_TOOL_NAME for call in last.tool_calls):
        deferred = [call["name"] for call in last.tool_calls if call["name"] != SEARCH_TOOL_NAME]
        if deferred:
            logger.debug(f"Search requested alongside {deferred}; deferring those calls")
        return "search"

    return "act"
