"""Meta-tools exposed to the model."""
from .search_tool import SEARCH_TOOL_NAME, create_search_tool, format_search_results

__all__ = ["SEARCH_TOOL_NAME", "create_search_tool", "format_search_results"]
