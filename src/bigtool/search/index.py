"""Search index over tool metadata with keyword, vector and hybrid modes."""
import asyncio
import logging
import time
from typing import Dict, List, Optional

from langchain_core.embeddings import Embeddings
from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..common.types import (
    ConfigurationError,
    EmbeddingCache,
    IndexNotInitializedError,
    NothingToReindexError,
    SearchMode,
    SearchOptions,
    SearchResult,
    ToolMetadata,
)
from ..core.metrics import metrics
from ..core.settings import settings
from .keyword import BM25Index, FieldBoost
from .normalize import clamp_vector_score, merge_and_rank, normalize_keyword_scores
from .vector import VectorStore

logger = logging.getLogger(__name__)


class HybridWeights(BaseModel):
    """Fusion weights; they need not sum to 1."""
    keyword: float = Field(default_factory=lambda: settings.keyword_weight, ge=0.0)
    vector: float = Field(default_factory=lambda: settings.vector_weight, ge=0.0)


class SearchConfig(BaseModel):
    """Configuration for :class:`DefaultSearchIndex`."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    mode: SearchMode = Field(default_factory=lambda: settings.search_mode)
    embeddings: Optional[Embeddings] = None
    cache: Optional[EmbeddingCache] = None
    boost: FieldBoost = Field(default_factory=FieldBoost)
    weights: HybridWeights = Field(default_factory=HybridWeights)
    vector_size: int = Field(default_factory=lambda: settings.vector_size, ge=1)
    vector_similarity: float = Field(default_factory=lambda: settings.vector_similarity)

    @model_validator(mode="after")
    def check_embeddings(self) -> "SearchConfig":
        if self.mode in ("vector", "hybrid") and self.embeddings is None:
            raise ConfigurationError(f"Search mode '{self.mode}' requires an embeddings provider")
        return self


def embedding_text(tool: ToolMetadata) -> str:
    """Text embedded for a tool."""
    text = f"{tool.name}: {tool.description}"
    if tool.keywords:
        text += f" ({', '.join(tool.keywords)})"
    return text


class DefaultSearchIndex:
    """Index a snapshot of tool metadata and answer relevance queries.

    ``index()`` must run before ``search()``; ``reindex()`` re-runs the last
    ``index()`` call on the stored tool list.
    """

    def __init__(self, config: Optional[SearchConfig] = None, **kwargs):
        # Keyword arguments are a shorthand for building a SearchConfig
        self.config = config or SearchConfig(**kwargs)
        self._bm25 = BM25Index(self.config.boost)
        self._vectors = VectorStore(self.config.vector_size)
        self._tools: Dict[str, ToolMetadata] = {}
        self._tool_list: Optional[List[ToolMetadata]] = None
        self._initialized = False

    @property
    def mode(self) -> SearchMode:
        return self.config.mode

    @property
    def initialized(self) -> bool:
        return self._initialized

    def _needs_vectors(self) -> bool:
        return self.config.mode in ("vector", "hybrid")

    async def index(self, tools: List[ToolMetadata]) -> None:
        """Replace the index with ``tools``.

        The new keyword and vector structures are built aside and swapped in
        together once embedding succeeds. Until then searches keep answering
        from the previous snapshot, and a failed call leaves it in place.
        """
        tools = list(tools)
        bm25 = BM25Index(self.config.boost)
        bm25.build(tools)

        vectors = VectorStore(self.config.vector_size)
        if self._needs_vectors():
            vectors.build(await self._compute_embeddings(tools))

        self._bm25 = bm25
        self._vectors = vectors
        self._tools = {tool.id: tool for tool in tools}
        self._tool_list = tools
        self._initialized = True
        logger.info(f"Indexed {len(tools)} tools (mode={self.config.mode})")

    async def _compute_embeddings(self, tools: List[ToolMetadata]) -> Dict[str, List[float]]:
        """Cache first, then a single batch call for every miss."""
        cache = self.config.cache
        vectors: Dict[str, List[float]] = {}
        if cache is not None:
            vectors = await cache.get_many([tool.id for tool in tools])

        missing = [tool for tool in tools if tool.id not in vectors]
        if missing:
            embedded = await self.config.embeddings.aembed_documents([embedding_text(t) for t in missing])
            computed = {tool.id: list(vector) for tool, vector in zip(missing, embedded)}
            if cache is not None:
                await cache.set_many(computed)
            vectors.update(computed)

        logger.debug(f"Embeddings: {len(tools) - len(missing)} cached, {len(missing)} computed")
        return {tool.id: vectors[tool.id] for tool in tools}

    async def search(self, query: str, options: Optional[SearchOptions] = None) -> List[SearchResult]:
        """Search the index; ``options.mode`` overrides the configured mode."""
        if not self._initialized:
            raise IndexNotInitializedError()

        options = options or SearchOptions()
        mode = options.mode or self.config.mode
        if mode in ("vector", "hybrid") and self.config.embeddings is None:
            raise ConfigurationError(f"Search mode '{mode}' requires an embeddings provider")

        # Category filtering happens after scoring, so widen the candidate set first
        fetch = max(options.limit, len(self._tools)) if options.categories else options.limit

        start = time.perf_counter()
        if mode == "keyword":
            results = await self._keyword_search(query, fetch)
        elif mode == "vector":
            results = await self._vector_search(query, fetch)
        else:
            results = await self._hybrid_search(query, fetch)

        if options.categories:
            wanted = set(options.categories)
            results = [r for r in results if wanted.intersection(self._categories_of(r.tool_id))]

        if options.threshold is not None:
            results = [r for r in results if r.score >= options.threshold]

        results = results[:options.limit]
        metrics.add_search(mode, len(results), time.perf_counter() - start)
        return results

    def _categories_of(self, tool_id: str) -> List[str]:
        tool = self._tools.get(tool_id)
        return (tool.categories or []) if tool else []

    async def _keyword_search(self, query: str, limit: int) -> List[SearchResult]:
        hits = self._bm25.search(query, limit)
        scores = normalize_keyword_scores([score for _, score in hits])
        return [
            SearchResult(tool_id=tool_id, score=score, match_type="keyword")
            for (tool_id, _), score in zip(hits, scores)
        ]

    async def _vector_search(self, query: str, limit: int) -> List[SearchResult]:
        vector = await self.config.embeddings.aembed_query(query)
        hits = self._vectors.search(vector, limit, similarity=self.config.vector_similarity)
        return [
            SearchResult(tool_id=tool_id, score=clamp_vector_score(score), match_type="vector")
            for tool_id, score in hits
        ]

    async def _hybrid_search(self, query: str, limit: int) -> List[SearchResult]:
        # Each mode gets twice the limit so fusion can surface a tool ranked low in one mode
        breadth = limit * 2
        keyword_results, vector_results = await asyncio.gather(
            self._keyword_search(query, breadth),
            self._vector_search(query, breadth),
        )
        return merge_and_rank(
            keyword_results,
            vector_results,
            strategy="weighted",
            weights=self.config.weights.model_dump(),
        )

    async def reindex(self) -> None:
        """Rebuild from the tool list passed to the last ``index()`` call."""
        if self._tool_list is None:
            raise NothingToReindexError()
        await self.index(self._tool_list)

    def count(self) -> int:
        return len(self._tools) if self._initialized else 0

    def get_tool(self, tool_id: str) -> Optional[ToolMetadata]:
        return self._tools.get(tool_id)


def create_bm25_search(**kwargs) -> DefaultSearchIndex:
    """Keyword-only index."""
    return DefaultSearchIndex(SearchConfig(mode="keyword", **kwargs))


def create_vector_search(embeddings: Embeddings, **kwargs) -> DefaultSearchIndex:
    """Vector-only index."""
    return DefaultSearchIndex(SearchConfig(mode="vector", embeddings=embeddings, **kwargs))


def create_hybrid_search(embeddings: Embeddings, **kwargs) -> DefaultSearchIndex:
    """Keyword and vector index with weighted fusion."""
    return DefaultSearchIndex(SearchConfig(mode="hybrid", embeddings=embeddings, **kwargs))
