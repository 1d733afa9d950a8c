"""Source whose tools are produced on demand by a loader callable."""
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from langchain_core.tools import BaseTool

from ..common.types import BigToolError, SourceKind, ToolMetadata

logger = logging.getLogger(__name__)

PREFIX = "dynamic:"

ToolFactory = Callable[[str], Awaitable[BaseTool]]


class DynamicSourceError(BigToolError):
    """Raised when the loader callable of a DynamicSource fails."""
    pass


class DynamicSource:
    """Metadata known up front, tool handles built lazily by ``loader(name)``."""

    id = "dynamic"
    kind: SourceKind = "dynamic"

    def __init__(self, metadata: Sequence[ToolMetadata], loader: ToolFactory):
        self._metadata = [
            meta.model_copy(update={
                "id": meta.id if meta.id.startswith(PREFIX) else f"{PREFIX}{meta.id}",
                "source": "dynamic",
                "source_id": self.id,
            })
            for meta in metadata
        ]
        self._by_name: Dict[str, ToolMetadata] = {self._extract_name(m.id): m for m in self._metadata}
        self._loader = loader

    @staticmethod
    def _extract_name(tool_id: str) -> str:
        return tool_id[len(PREFIX):] if tool_id.startswith(PREFIX) else tool_id

    async def get_metadata(self) -> List[ToolMetadata]:
        return list(self._metadata)

    async def get_tool(self, tool_id: str) -> Optional[BaseTool]:
        name = self._extract_name(tool_id)
        if name not in self._by_name:
            return None
        try:
            return await self._loader(name)
        except Exception as e:
            raise DynamicSourceError(f'Failed to load dynamic tool "{name}": {e}') from e
