"""Lazy tool loader with a bounded cache and coalesced concurrent loads."""
import asyncio
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from langchain_core.tools import BaseTool
from pydantic import BaseModel, Field

from ..common.types import CatalogChange, SourceNotFoundError, ToolCatalog, ToolNotFoundError, ToolSource
from ..core.metrics import LoaderMetrics
from ..core.settings import settings
from .lru import LRUCache

logger = logging.getLogger(__name__)


class LoaderConfig(BaseModel):
    """Cache bounds for :class:`DefaultToolLoader`."""
    max_size: int = Field(default_factory=lambda: settings.loader_max_size, ge=1)
    ttl: Optional[float] = Field(default_factory=lambda: settings.loader_ttl_seconds)


class DefaultToolLoader:
    """Turns tool ids into invocable tools.

    On a miss the owning source is resolved through the catalog and asked
    for the tool. At most one load per id is in flight; concurrent callers
    share it. Ids the catalog reports as removed are evicted immediately.
    """

    def __init__(
        self,
        catalog: ToolCatalog,
        sources: Optional[Mapping[str, ToolSource]] = None,
        config: Optional[LoaderConfig] = None,
    ):
        self.catalog = catalog
        self.config = config or LoaderConfig()
        self._sources = dict(sources) if sources is not None else None
        self._stats = LoaderMetrics()
        self._cache: LRUCache[str, BaseTool] = LRUCache(
            max_size=self.config.max_size,
            ttl=self.config.ttl,
            on_evict=self._count_eviction,
        )
        self._pending: Dict[str, asyncio.Task] = {}
        self._unsubscribe: Optional[Callable[[], None]] = None

        on_change = getattr(catalog, "on_change", None)
        if on_change is not None:
            self._unsubscribe = on_change.subscribe(self._handle_catalog_change)

    def _count_eviction(self, tool_id: str) -> None:
        self._stats.evictions += 1

    def _handle_catalog_change(self, change: CatalogChange) -> None:
        for tool_id in change.removed:
            self.evict(tool_id)

    def _get_source(self, source_id: str) -> Optional[ToolSource]:
        if self._sources is not None:
            return self._sources.get(source_id)
        get_source = getattr(self.catalog, "get_source", None)
        return get_source(source_id) if get_source else None

    async def load(self, tool_id: str) -> BaseTool:
        """Return the tool for ``tool_id``, loading it if needed.

        Raises:
            ToolNotFoundError: the id is not in the catalog, or its source
                returned nothing for it.
            SourceNotFoundError: the catalog names an unregistered source.
        """
        cached = self._cache.get(tool_id)
        if cached is not None:
            self._stats.hits += 1
            return cached

        task = self._pending.get(tool_id)
        if task is None:
            self._stats.misses += 1
            # Registered before any await so concurrent callers find it
            task = asyncio.ensure_future(self._load_and_cache(tool_id))
            self._pending[tool_id] = task
        else:
            self._stats.coalesced += 1
            logger.debug(f"Joining in-flight load for {tool_id}")

        # Shielded so one cancelled caller does not cancel the shared load
        return await asyncio.shield(task)

    async def _load_and_cache(self, tool_id: str) -> BaseTool:
        current = asyncio.current_task()
        try:
            tool = await self._resolve(tool_id)
            # Skip caching if the id was evicted while this load was running
            if self._pending.get(tool_id) is current:
                self._cache.set(tool_id, tool)
            return tool
        except Exception:
            self._stats.failures += 1
            raise
        finally:
            if self._pending.get(tool_id) is current:
                del self._pending[tool_id]

    async def _resolve(self, tool_id: str) -> BaseTool:
        metadata = self.catalog.get_metadata(tool_id)
        if metadata is None:
            raise ToolNotFoundError(tool_id, reason="catalog")

        source = self._get_source(metadata.source_id)
        if source is None:
            raise SourceNotFoundError(metadata.source_id, tool_id)

        tool = await source.get_tool(tool_id)
        if tool is None:
            raise ToolNotFoundError(tool_id, reason="source")

        logger.debug(f"Loaded {tool_id} from {metadata.source_id}")
        return tool

    async def warmup(self, tool_ids: List[str]) -> None:
        """Load ``tool_ids`` in parallel, ignoring failures."""
        results = await asyncio.gather(*(self.load(tool_id) for tool_id in tool_ids), return_exceptions=True)
        for tool_id, result in zip(tool_ids, results):
            if isinstance(result, Exception):
                logger.debug(f"Warmup skipped {tool_id}: {result}")

    def evict(self, tool_id: str) -> None:
        """Drop a cached tool and forget any in-flight load for it."""
        if self._cache.delete(tool_id):
            self._stats.evictions += 1
        self._pending.pop(tool_id, None)

    def clear(self) -> None:
        self._cache.clear()
        self._pending.clear()

    def is_cached(self, tool_id: str) -> bool:
        return tool_id in self._cache

    @property
    def size(self) -> int:
        return len(self._cache)

    def stats(self) -> Dict[str, Any]:
        return {
            "size": len(self._cache),
            "max_size": self.config.max_size,
            "in_flight": len(self._pending),
            "hits": self._stats.hits,
            "misses": self._stats.misses,
            "coalesced": self._stats.coalesced,
            "failures": self._stats.failures,
            "evictions": self._stats.evictions,
            "hit_rate": self._stats.hit_rate,
        }

    def dispose(self) -> None:
        """Unsubscribe from the catalog and clear the cache. Safe to call twice."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.clear()
