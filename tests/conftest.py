"""Shared fixtures and fakes for tests."""
import asyncio
import hashlib
import re
from typing import Any, Dict, List, Optional

import pytest
from langchain_core.embeddings import Embeddings
from langchain_core.language_models.fake_chat_models import GenericFakeChatModel
from langchain_core.messages import AIMessage
from langchain_core.tools import tool
from pydantic import Field

from bigtool.common.types import CatalogChange, ToolMetadata
from bigtool.core.events import EventEmitter

DIMENSIONS = 32


class HashEmbeddings(Embeddings):
    """Deterministic bag-of-words embeddings that count batch calls."""

    def __init__(self, dimensions: int = DIMENSIONS):
        self.dimensions = dimensions
        self.document_calls: List[List[str]] = []
        self.query_calls: List[str] = []

    def _embed(self, text: str) -> List[float]:
        vector = [0.0] * self.dimensions
        for word in re.findall(r"[a-z]+", text.lower()):
            bucket = hashlib.md5(word.encode()).digest()[0] % self.dimensions
            vector[bucket] += 1.0
        return vector

    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        self.document_calls.append(list(texts))
        return [self._embed(t) for t in texts]

    def embed_query(self, text: str) -> List[float]:
        self.query_calls.append(text)
        return self._embed(text)


class ToolCallingFakeModel(GenericFakeChatModel):
    """Scripted chat model that accepts bind_tools and records what it saw."""
    bound: List[List[str]] = Field(default_factory=list)
    received: List[List[Any]] = Field(default_factory=list)

    def bind_tools(self, tools, **kwargs):
        self.bound.append([t.name for t in tools])
        return self

    def _generate(self, messages, stop=None, run_manager=None, **kwargs):
        self.received.append(list(messages))
        return super()._generate(messages, stop=stop, run_manager=run_manager, **kwargs)


def scripted_model(*replies: Any) -> ToolCallingFakeModel:
    return ToolCallingFakeModel(messages=iter(replies))


def tool_call_message(name: str, args: Dict[str, Any], call_id: str) -> AIMessage:
    return AIMessage(content="", tool_calls=[{"name": name, "args": args, "id": call_id}])


@tool
def add(a: int, b: int) -> int:
    """Add two integers and return the sum."""
    return a + b


@tool
def get_weather(city: str) -> str:
    """Get the current weather forecast for a city."""
    return f"Sunny in {city}"


@tool
def send_email(to: str, body: str) -> str:
    """Send an email message to a recipient."""
    return f"sent to {to}"


@tool
def explode(reason: str) -> str:
    """Always fails; used to test error handling."""
    raise ValueError(f"boom: {reason}")


class FakeCatalog:
    """Minimal catalog: metadata map plus a change emitter."""

    def __init__(self, tools: Optional[List[ToolMetadata]] = None):
        self.metadata = {t.id: t for t in tools or []}
        self.on_change: EventEmitter[CatalogChange] = EventEmitter("fake catalog")

    def get_metadata(self, tool_id: str) -> Optional[ToolMetadata]:
        return self.metadata.get(tool_id)

    def get_all_metadata(self) -> List[ToolMetadata]:
        return list(self.metadata.values())


class CountingSource:
    """Source that counts get_tool calls and yields to the loop before answering."""
    kind = "local"

    def __init__(self, tools: Dict[str, Any], id: str = "test", delay: float = 0.01):
        self.id = id
        self.tools = tools
        self.delay = delay
        self.calls = 0

    async def get_metadata(self) -> List[ToolMetadata]:
        return [
            ToolMetadata(id=tool_id, name=tool_id.split(":")[-1], description=f"{tool_id} tool", source_id=self.id)
            for tool_id in self.tools
        ]

    async def get_tool(self, tool_id: str):
        self.calls += 1
        await asyncio.sleep(self.delay)
        return self.tools.get(tool_id)


def make_metadata(
    tool_id: str,
    description: str,
    source_id: str = "local",
    categories: Optional[List[str]] = None,
    keywords: Optional[List[str]] = None,
) -> ToolMetadata:
    return ToolMetadata(
        id=tool_id,
        name=tool_id.split(":")[-1],
        description=description,
        categories=categories,
        keywords=keywords,
        source_id=source_id,
    )


@pytest.fixture
def sample_metadata() -> List[ToolMetadata]:
    return [
        make_metadata("local:calculator", "Evaluate math expressions and arithmetic", categories=["math"], keywords=["calculate", "sum"]),
        make_metadata("local:get_weather", "Get the current weather forecast for a city", categories=["weather"], keywords=["forecast", "temperature"]),
        make_metadata("local:send_email", "Send an email message to a recipient", categories=["communication"], keywords=["mail", "notify"]),
        make_metadata("local:create_issue", "Create a new issue in the GitHub repository", categories=["github"], keywords=["bug", "ticket"]),
        make_metadata("local:list_files", "List files in a directory on disk", categories=["filesystem"], keywords=["ls", "folder"]),
    ]


@pytest.fixture
def embeddings() -> HashEmbeddings:
    return HashEmbeddings()
