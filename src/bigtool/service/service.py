"""REST service exposing tool listing, search and execution."""
import json
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Annotated, Any, AsyncGenerator, Awaitable, Callable, Dict, Generic, List, Literal, Optional, TypeVar

from fastapi import APIRouter, Depends, FastAPI, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field, SecretStr

from ..common.types import BigToolError, SearchIndex, SearchMode, SearchOptions, ToolCatalog, ToolLoader, ToolMetadata
from ..core.logging_config import run_context, setup_logging
from ..core.settings import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Wraps a named unit of work, e.g. a durable workflow step
StepRunner = Callable[[str, Callable[[], Awaitable[Any]]], Awaitable[Any]]


class RestTool(BaseModel):
    """Tool as exposed over REST."""
    id: str
    name: str
    description: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    score: Optional[float] = None


class ToolExecution(BaseModel):
    tool_call_id: str
    output: str


class RestError(BaseModel):
    code: Literal["TOOL_NOT_FOUND", "EXECUTION_ERROR"]
    message: str


class RestResponse(BaseModel, Generic[T]):
    """Envelope for every REST response."""
    success: bool
    data: Optional[T] = None
    error: Optional[RestError] = None


class SearchRequest(BaseModel):
    query: str
    limit: int = Field(default=5, ge=1)
    mode: Optional[SearchMode] = None
    categories: Optional[List[str]] = None
    threshold: Optional[float] = None


class ExecuteRequest(BaseModel):
    args: Dict[str, Any] = Field(default_factory=dict)


def to_rest_tool(metadata: ToolMetadata, score: Optional[float] = None) -> RestTool:
    return RestTool(
        id=metadata.id,
        name=metadata.name,
        description=metadata.description,
        parameters=metadata.parameters or {},
        score=score,
    )


def generate_tool_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:12]}"


def stringify_output(result: Any) -> str:
    if isinstance(result, str):
        return result
    content = getattr(result, "content", None)
    if isinstance(content, str):
        return content
    return json.dumps(result, default=str)


async def _run_directly(name: str, fn: Callable[[], Awaitable[Any]]) -> Any:
    return await fn()


class ToolRestHandler:
    """Framework independent list / search / execute operations."""

    def __init__(
        self,
        catalog: ToolCatalog,
        loader: ToolLoader,
        index: SearchIndex,
        step: Optional[StepRunner] = None,
    ):
        self.catalog = catalog
        self.loader = loader
        self.index = index
        self.step = step or _run_directly

    async def list_tools(self) -> List[RestTool]:
        return [to_rest_tool(meta) for meta in self.catalog.get_all_metadata()]

    async def search_tools(self, query: str, options: Optional[SearchOptions] = None) -> List[RestTool]:
        results = await self.index.search(query, options or SearchOptions())
        tools = []
        for result in results:
            meta = self.catalog.get_metadata(result.tool_id)
            if meta is not None:
                tools.append(to_rest_tool(meta, score=result.score))
        return tools

    def _find(self, name: str) -> Optional[ToolMetadata]:
        """Look a tool up by full id first, then by bare name."""
        meta = self.catalog.get_metadata(name)
        if meta is not None:
            return meta
        return next((m for m in self.catalog.get_all_metadata() if m.name == name), None)

    async def execute_tool(self, name: str, args: Dict[str, Any]) -> RestResponse[ToolExecution]:
        """Run a tool; failures come back as error envelopes, never as exceptions."""
        meta = self._find(name)
        if meta is None:
            return RestResponse(success=False, error=RestError(code="TOOL_NOT_FOUND", message=f"Tool not found: {name}"))

        try:
            tool = await self.loader.load(meta.id)
        except BigToolError as e:
            return RestResponse(success=False, error=RestError(code="TOOL_NOT_FOUND", message=str(e)))

        tool_call_id = generate_tool_call_id()
        with run_context(tool_call_id):
            try:
                result = await self.step(f"execute:{meta.id}", lambda: tool.ainvoke(args))
            except Exception as e:
                logger.error(f"Tool {meta.id} failed: {e}")
                return RestResponse(success=False, error=RestError(code="EXECUTION_ERROR", message=str(e) or "Unknown execution error"))

        return RestResponse(success=True, data=ToolExecution(tool_call_id=tool_call_id, output=stringify_output(result)))


def bearer_verifier(auth_secret: Optional[SecretStr]):
    """Dependency rejecting requests without the configured bearer token."""
    def verify_bearer(
        http_auth: Annotated[
            HTTPAuthorizationCredentials | None,
            Depends(HTTPBearer(description="Please provide AUTH_SECRET api key.", auto_error=False)),
        ],
    ) -> None:
        if not auth_secret or not auth_secret.get_secret_value():
            return
        if not http_auth or http_auth.credentials != auth_secret.get_secret_value():
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)

    return verify_bearer


def create_router(handler: ToolRestHandler, auth_secret: Optional[SecretStr] = None) -> APIRouter:
    """Routes for ``handler``."""
    router = APIRouter(dependencies=[Depends(bearer_verifier(auth_secret))])

    @router.get("/tools")
    async def list_tools() -> RestResponse[List[RestTool]]:
        """List every tool in the catalog."""
        return RestResponse(success=True, data=await handler.list_tools())

    @router.post("/tools/search")
    async def search_tools(request: SearchRequest) -> RestResponse[List[RestTool]]:
        """Search the catalog."""
        options = SearchOptions(
            limit=request.limit,
            mode=request.mode,
            categories=request.categories,
            threshold=request.threshold,
        )
        try:
            tools = await handler.search_tools(request.query, options)
        except BigToolError as e:
            logger.error(f"Search failed: {e}")
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
        return RestResponse(success=True, data=tools)

    @router.post("/tools/{name}/execute")
    async def execute_tool(name: str, request: ExecuteRequest) -> RestResponse[ToolExecution]:
        """Execute a tool by id or name."""
        return await handler.execute_tool(name, request.args)

    return router


def create_app(handler: ToolRestHandler, auth_secret: Optional[SecretStr] = None) -> FastAPI:
    """FastAPI application serving ``handler``."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        setup_logging(settings.log_level)
        yield

    app = FastAPI(lifespan=lifespan)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "ok", "tools": len(handler.catalog.get_all_metadata())}

    app.include_router(create_router(handler, auth_secret if auth_secret is not None else settings.auth_secret))
    return app
