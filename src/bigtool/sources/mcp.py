"""Source exposing the tools of an MCP server session."""
import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from langchain_core.tools import BaseTool, StructuredTool

from ..common.types import BigToolError, SourceKind, ToolMetadata
from ..core.events import EventEmitter

logger = logging.getLogger(__name__)


class MCPSourceError(BigToolError):
    """Raised when the tool list cannot be fetched from an MCP server."""
    pass


class MCPToolError(BigToolError):
    """Raised when an MCP tool call fails or reports an error."""
    pass


def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read ``name`` from an SDK result object or a plain dict."""
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _text_content(result: Any) -> Optional[str]:
    content = _field(result, "content") or []
    texts = [_field(c, "text") or "" for c in content if _field(c, "type") == "text"]
    return "\n".join(texts) if texts else None


class MCPSource:
    """Tool source over an MCP client session.

    ``client`` is anything with async ``list_tools()`` and
    ``call_tool(name, arguments)`` in the shape of ``mcp.ClientSession``.
    The tool list is fetched lazily on first use and can be refreshed with
    ``refresh()`` or periodically with ``start_auto_refresh()``.
    """

    kind: SourceKind = "mcp"

    def __init__(self, client: Any, namespace: Optional[str] = None, refresh_interval: Optional[float] = None):
        self.client = client
        self._id = f"mcp:{namespace or getattr(client, 'name', None) or 'default'}"
        self.refresh_interval = refresh_interval
        self.on_refresh: EventEmitter[List[ToolMetadata]] = EventEmitter(f"{self._id} refresh")
        self._metadata: List[ToolMetadata] = []
        self._wrappers: Dict[str, BaseTool] = {}
        self._initialized = False
        self._refresh_task: Optional[asyncio.Task] = None

    @property
    def id(self) -> str:
        return self._id

    async def get_metadata(self) -> List[ToolMetadata]:
        if not self._initialized:
            await self.refresh()
        return list(self._metadata)

    async def get_tool(self, tool_id: str) -> Optional[BaseTool]:
        """Accepts ``"mcp:namespace:name"`` or a bare name."""
        if not self._initialized:
            await self.refresh()

        name = tool_id.split(":")[-1]
        meta = next((m for m in self._metadata if m.name == name), None)
        if meta is None:
            return None
        if name not in self._wrappers:
            self._wrappers[name] = self._create_wrapper(meta)
        return self._wrappers[name]

    async def refresh(self) -> None:
        """Re-list tools from the server and announce the new list."""
        try:
            listing = await self.client.list_tools()
        except Exception as e:
            raise MCPSourceError(f"Failed to fetch tools from MCP server: {e}") from e

        self._metadata = [
            ToolMetadata(
                id=f"{self._id}:{_field(t, 'name')}",
                name=_field(t, "name"),
                description=_field(t, "description") or "",
                parameters=_field(t, "inputSchema"),
                source="mcp",
                source_id=self._id,
            )
            for t in _field(listing, "tools") or []
        ]
        self._initialized = True
        # Schemas may have changed
        self._wrappers.clear()
        logger.debug(f"{self._id} listed {len(self._metadata)} tools")
        await self.on_refresh.emit(list(self._metadata))

    def _create_wrapper(self, meta: ToolMetadata) -> BaseTool:
        client = self.client
        source_id = self._id
        name = meta.name

        async def call(**arguments: Any) -> str:
            try:
                result = await client.call_tool(name, arguments)
            except Exception as e:
                raise MCPToolError(f'Failed to execute MCP tool "{name}" on {source_id}: {e}') from e

            text = _text_content(result)
            if _field(result, "isError", False):
                raise MCPToolError(f'MCP tool "{name}" returned error: {text or "Unknown error"}')
            if text is not None:
                return text
            if hasattr(result, "model_dump_json"):
                return result.model_dump_json()
            return json.dumps(result, default=str)

        return StructuredTool.from_function(
            coroutine=call,
            name=name,
            description=meta.description or name,
            args_schema=meta.parameters or {"type": "object", "properties": {}},
        )

    def start_auto_refresh(self) -> None:
        """Refresh every ``refresh_interval`` seconds until disposed."""
        if not self.refresh_interval or self._refresh_task is not None:
            return

        async def loop() -> None:
            while True:
                await asyncio.sleep(self.refresh_interval)
                try:
                    await self.refresh()
                except MCPSourceError as e:
                    logger.error(f"[{self._id}] Refresh failed: {e}")

        self._refresh_task = asyncio.create_task(loop())

    def dispose(self) -> None:
        """Stop auto refresh and drop refresh subscribers."""
        if self._refresh_task is not None:
            self._refresh_task.cancel()
            self._refresh_task = None
        self.on_refresh.clear()
