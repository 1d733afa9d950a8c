"""Core types for the tool discovery system using Pydantic models."""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Protocol, runtime_checkable

from langchain_core.tools import BaseTool
from pydantic import BaseModel, Field


class BigToolError(Exception):
    """Base class for tool discovery errors."""
    pass


class ConfigurationError(BigToolError):
    """Raised when a component is constructed with an unusable configuration."""
    pass


class IndexNotInitializedError(BigToolError):
    """Raised when a search index is queried before index() was called."""

    def __init__(self, message: str = "Search index not initialized. Call index() first."):
        super().__init__(message)


class NothingToReindexError(BigToolError):
    """Raised when reindex() is called before any index() call."""

    def __init__(self, message: str = "Nothing to reindex. Call index() first."):
        super().__init__(message)


class ToolNotFoundError(BigToolError):
    """Raised when a tool cannot be resolved.

    ``reason`` tells the two cases apart: ``"catalog"`` means the id is not
    in the catalog, ``"source"`` means the catalog lists the id but its source
    returned nothing for it.
    """

    def __init__(self, tool_id: str, reason: Literal["catalog", "source"] = "catalog"):
        self.tool_id = tool_id
        self.reason = reason
        if reason == "source":
            message = f"Tool not found in source: {tool_id}"
        else:
            message = f"Tool not found: {tool_id}"
        super().__init__(message)


class SourceNotFoundError(BigToolError):
    """Raised when a tool's metadata names a source that is not registered."""

    def __init__(self, source_id: str, tool_id: Optional[str] = None):
        self.source_id = source_id
        self.tool_id = tool_id
        message = f"Source not found: {source_id}"
        if tool_id:
            message += f" (for tool {tool_id})"
        super().__init__(message)


class SourceAlreadyRegisteredError(BigToolError):
    """Raised when a source id is registered twice."""

    def __init__(self, source_id: str):
        self.source_id = source_id
        super().__init__(f"Source already registered: {source_id}")


SourceKind = Literal["local", "mcp", "dynamic"]
MatchType = Literal["keyword", "vector", "hybrid"]
SearchMode = Literal["keyword", "vector", "hybrid"]


class ToolMetadata(BaseModel):
    """Describes one discoverable tool, independent of its implementation."""
    id: str
    name: str
    description: str
    parameters: Optional[Dict[str, Any]] = None
    categories: Optional[List[str]] = None
    keywords: Optional[List[str]] = None
    source: SourceKind = "local"
    source_id: str = "local"


class SearchResult(BaseModel):
    """A single ranked hit from a search index."""
    tool_id: str
    score: float = Field(ge=0.0, le=1.0)
    match_type: MatchType


class SearchOptions(BaseModel):
    """Per-call search options."""
    limit: int = Field(default=5, ge=1)
    threshold: Optional[float] = None
    categories: Optional[List[str]] = None
    mode: Optional[SearchMode] = None


class CatalogChange(BaseModel):
    """Diff emitted by a catalog whenever its tool set changes."""
    added: List[str] = Field(default_factory=list)
    removed: List[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.added and not self.removed


class SearchRecord(BaseModel):
    """One entry of the discovery loop's search history."""
    query: str
    results: List[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=datetime.now)


@runtime_checkable
class ToolSource(Protocol):
    """Protocol for anything that can report tools and materialize them."""

    @property
    def id(self) -> str: ...

    @property
    def kind(self) -> SourceKind: ...

    async def get_metadata(self) -> List[ToolMetadata]: ...

    async def get_tool(self, tool_id: str) -> Optional[BaseTool]: ...


@runtime_checkable
class ToolCatalog(Protocol):
    """Read side of the catalog as seen by the loader and the search index."""

    def get_all_metadata(self) -> List[ToolMetadata]: ...

    def get_metadata(self, tool_id: str) -> Optional[ToolMetadata]: ...


@runtime_checkable
class EmbeddingCache(Protocol):
    """Key-value store from tool id to embedding vector."""

    async def get(self, tool_id: str) -> Optional[List[float]]: ...

    async def set(self, tool_id: str, vector: List[float]) -> None: ...

    async def get_many(self, tool_ids: List[str]) -> Dict[str, List[float]]: ...

    async def set_many(self, vectors: Dict[str, List[float]]) -> None: ...

    async def invalidate(self, tool_id: str) -> None: ...

    async def clear(self) -> None: ...


@runtime_checkable
class SearchIndex(Protocol):
    """Protocol for a queryable tool index."""

    async def index(self, tools: List[ToolMetadata]) -> None: ...

    async def search(self, query: str, options: Optional[SearchOptions] = None) -> List[SearchResult]: ...

    async def reindex(self) -> None: ...

    def count(self) -> int: ...


@runtime_checkable
class ToolLoader(Protocol):
    """Protocol for turning tool ids into invocable handles."""

    async def load(self, tool_id: str) -> BaseTool: ...

    async def warmup(self, tool_ids: List[str]) -> None: ...

    def evict(self, tool_id: str) -> None: ...

    def clear(self) -> None: ...
