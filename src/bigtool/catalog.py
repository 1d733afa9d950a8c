"""Tool catalog aggregating metadata from registered sources."""
import logging
from typing import Callable, Dict, List, Optional, Set

from pydantic import BaseModel, PrivateAttr

from .common.types import CatalogChange, SourceAlreadyRegisteredError, ToolMetadata, ToolSource
from .core.events import EventEmitter

logger = logging.getLogger(__name__)


class DefaultToolCatalog(BaseModel):
    """Registry of tool metadata keyed by namespaced tool id.

    Every mutation is announced on ``on_change`` as a ``CatalogChange`` diff.
    """
    metadata: Dict[str, ToolMetadata] = {}
    _instances: Dict[str, ToolSource] = PrivateAttr(default_factory=dict)
    _tool_ids: Dict[str, Set[str]] = PrivateAttr(default_factory=dict)
    _categories: Dict[str, Set[str]] = PrivateAttr(default_factory=dict)
    _unsubscribers: Dict[str, Callable[[], None]] = PrivateAttr(default_factory=dict)
    _on_change: EventEmitter[CatalogChange] = PrivateAttr(default_factory=lambda: EventEmitter("catalog change"))

    @property
    def on_change(self) -> EventEmitter[CatalogChange]:
        return self._on_change

    def _store(self, source_id: str, tools: List[ToolMetadata]) -> None:
        """Replace a source's entries wholesale."""
        self._drop(source_id)
        ids = set()
        for tool in tools:
            self.metadata[tool.id] = tool
            ids.add(tool.id)
            for category in tool.categories or []:
                self._categories.setdefault(category, set()).add(tool.id)
        self._tool_ids[source_id] = ids

    def _drop(self, source_id: str) -> List[str]:
        removed = sorted(self._tool_ids.pop(source_id, set()))
        for tool_id in removed:
            self.metadata.pop(tool_id, None)
            for members in self._categories.values():
                members.discard(tool_id)
        return removed

    async def register(self, source: ToolSource) -> None:
        """Register a source, load its metadata and announce the new ids."""
        if source.id in self._instances:
            raise SourceAlreadyRegisteredError(source.id)

        tools = await source.get_metadata()
        self._instances[source.id] = source
        self._store(source.id, tools)

        on_refresh: Optional[EventEmitter] = getattr(source, "on_refresh", None)
        if on_refresh is not None:
            async def handle_refresh(refreshed: List[ToolMetadata], source_id: str = source.id) -> None:
                await self._refresh(source_id, refreshed)

            self._unsubscribers[source.id] = on_refresh.subscribe(handle_refresh)

        added = [tool.id for tool in tools]
        logger.info(f"Registered source {source.id} with {len(added)} tools")
        await self._on_change.emit(CatalogChange(added=added, removed=[]))

    async def unregister(self, source_id: str) -> None:
        """Remove a source and its tools. Unknown ids are ignored."""
        if source_id not in self._instances:
            return

        unsubscribe = self._unsubscribers.pop(source_id, None)
        if unsubscribe:
            unsubscribe()
        del self._instances[source_id]
        removed = self._drop(source_id)

        logger.info(f"Unregistered source {source_id}, removed {len(removed)} tools")
        await self._on_change.emit(CatalogChange(added=[], removed=removed))

    async def _refresh(self, source_id: str, tools: List[ToolMetadata]) -> None:
        if source_id not in self._instances:
            return
        old_ids = self._tool_ids.get(source_id, set())
        new_ids = {tool.id for tool in tools}
        self._store(source_id, tools)

        change = CatalogChange(added=sorted(new_ids - old_ids), removed=sorted(old_ids - new_ids))
        if change.is_empty:
            return
        logger.info(f"Source {source_id} refreshed: +{len(change.added)} -{len(change.removed)}")
        await self._on_change.emit(change)

    def get_all_metadata(self) -> List[ToolMetadata]:
        return list(self.metadata.values())

    def get_metadata(self, tool_id: str) -> Optional[ToolMetadata]:
        return self.metadata.get(tool_id)

    def get_source(self, source_id: str) -> Optional[ToolSource]:
        return self._instances.get(source_id)

    def get_sources(self) -> Dict[str, ToolSource]:
        return dict(self._instances)

    def get_by_category(self, category: str) -> List[ToolMetadata]:
        """Tools carrying ``category``."""
        ids = self._categories.get(category, set())
        return [self.metadata[tool_id] for tool_id in sorted(ids)]

    def list_tools(self) -> List[str]:
        return list(self.metadata.keys())

    def has_tool(self, tool_id: str) -> bool:
        return tool_id in self.metadata
