"""Dynamic tool discovery for LangGraph agents."""
from .agent import BigToolAgent, create_agent
from .catalog import DefaultToolCatalog
from .common.types import (
    BigToolError,
    CatalogChange,
    ConfigurationError,
    IndexNotInitializedError,
    NothingToReindexError,
    SearchOptions,
    SearchResult,
    SourceAlreadyRegisteredError,
    SourceNotFoundError,
    ToolMetadata,
    ToolNotFoundError,
)
from .core.events import EventEmitter
from .loader import DefaultToolLoader, LoaderConfig
from .search import (
    DefaultSearchIndex,
    LRUEmbeddingCache,
    MemoryEmbeddingCache,
    RedisEmbeddingCache,
    SearchConfig,
    create_bm25_search,
    create_hybrid_search,
    create_vector_search,
)
from .sources import DynamicSource, LocalSource, MCPSource, with_metadata

__all__ = [
    "BigToolAgent",
    "BigToolError",
    "CatalogChange",
    "ConfigurationError",
    "DefaultSearchIndex",
    "DefaultToolCatalog",
    "DefaultToolLoader",
    "DynamicSource",
    "EventEmitter",
    "IndexNotInitializedError",
    "LRUEmbeddingCache",
    "LoaderConfig",
    "LocalSource",
    "MCPSource",
    "MemoryEmbeddingCache",
    "NothingToReindexError",
    "RedisEmbeddingCache",
    "SearchConfig",
    "SearchOptions",
    "SearchResult",
    "SourceAlreadyRegisteredError",
    "SourceNotFoundError",
    "ToolMetadata",
    "ToolNotFoundError",
    "create_agent",
    "create_bm25_search",
    "create_hybrid_search",
    "create_vector_search",
    "with_metadata",
]
