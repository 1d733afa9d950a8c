"""Discovery loop that alternates between deciding, searching for tools and acting."""
from .graph import (
    ActNode,
    DecideNode,
    DiscoveryGraph,
    NodeConfig,
    SearchNode,
    build_discovery_graph,
    check_tool_binding,
)
from .router import should_continue
from .state import DiscoveryState, create_initial_state, merge_tool_ids

__all__ = [
    "ActNode",
    "DecideNode",
    "DiscoveryGraph",
    "DiscoveryState",
    "NodeConfig",
    "SearchNode",
    "build_discovery_graph",
    "check_tool_binding",
    "create_initial_state",
    "merge_tool_ids",
    "should_continue",
]
