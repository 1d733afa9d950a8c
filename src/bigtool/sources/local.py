"""Source backed by in-memory LangChain tools."""
import logging
from typing import Any, Dict, List, Optional, Sequence

from langchain_core.tools import BaseTool
from langchain_core.utils.function_calling import convert_to_openai_tool

from ..common.types import SourceKind, ToolMetadata

logger = logging.getLogger(__name__)

METADATA_KEY = "bigtool"


def with_metadata(
    tool: BaseTool,
    categories: Optional[Sequence[str]] = None,
    keywords: Optional[Sequence[str]] = None,
) -> BaseTool:
    """Attach search categories and keywords to a tool and return it.

    The values live under ``tool.metadata["bigtool"]`` and are picked up by
    :class:`LocalSource` when it builds the tool's catalog entry.
    """
    enhancement: Dict[str, List[str]] = {}
    if categories:
        enhancement["categories"] = list(categories)
    if keywords:
        enhancement["keywords"] = list(keywords)
    tool.metadata = {**(tool.metadata or {}), METADATA_KEY: enhancement}
    return tool


def tool_parameters(tool: BaseTool) -> Optional[Dict[str, Any]]:
    """JSON schema of a tool's arguments, if it can be derived."""
    try:
        return convert_to_openai_tool(tool)["function"].get("parameters")
    except Exception as e:
        logger.debug(f"Could not derive parameters for {tool.name}: {e}")
        return None


class LocalSource:
    """Exposes a fixed list of tools; ids are namespaced ``{id}:{tool.name}``."""

    kind: SourceKind = "local"

    def __init__(self, tools: Sequence[BaseTool], id: str = "local"):
        self._id = id
        self._tools: Dict[str, BaseTool] = {}
        self._metadata: List[ToolMetadata] = []
        for tool in tools:
            self._tools[tool.name] = tool
            self._metadata.append(self._extract_metadata(tool))

    @property
    def id(self) -> str:
        return self._id

    def _extract_metadata(self, tool: BaseTool) -> ToolMetadata:
        enhancement = (tool.metadata or {}).get(METADATA_KEY, {})
        return ToolMetadata(
            id=f"{self._id}:{tool.name}",
            name=tool.name,
            description=tool.description,
            parameters=tool_parameters(tool),
            categories=enhancement.get("categories"),
            keywords=enhancement.get("keywords"),
            source="local",
            source_id=self._id,
        )

    async def get_metadata(self) -> List[ToolMetadata]:
        return list(self._metadata)

    async def get_tool(self, tool_id: str) -> Optional[BaseTool]:
        """Accepts ``"{id}:name"`` or a bare ``"name"``."""
        prefix = f"{self._id}:"
        name = tool_id[len(prefix):] if tool_id.startswith(prefix) else tool_id
        return self._tools.get(name)
