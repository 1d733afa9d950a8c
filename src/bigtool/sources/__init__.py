"""Tool sources: local tools, lazily loaded tools and MCP servers."""
from .dynamic import DynamicSource, DynamicSourceError
from .local import LocalSource, with_metadata
from .mcp import MCPSource, MCPSourceError, MCPToolError

__all__ = [
    "DynamicSource",
    "DynamicSourceError",
    "LocalSource",
    "MCPSource",
    "MCPSourceError",
    "MCPToolError",
    "with_metadata",
]
