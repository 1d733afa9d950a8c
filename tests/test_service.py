"""Tests for the REST service."""
import asyncio

import pytest
from fastapi.testclient import TestClient
from pydantic import SecretStr

from bigtool.catalog import DefaultToolCatalog
from bigtool.loader import DefaultToolLoader, LoaderConfig
from bigtool.search import create_bm25_search
from bigtool.service import ToolRestHandler, create_app
from bigtool.sources import LocalSource

from conftest import add, explode, get_weather


@pytest.fixture
def handler():
    catalog = DefaultToolCatalog()
    index = create_bm25_search()

    async def setup():
        await catalog.register(LocalSource([add, get_weather, explode]))
        await index.index(catalog.get_all_metadata())

    asyncio.run(setup())
    loader = DefaultToolLoader(catalog, config=LoaderConfig(max_size=10, ttl=None))
    return ToolRestHandler(catalog, loader, index)


@pytest.fixture
def client(handler):
    return TestClient(create_app(handler, auth_secret=SecretStr("")))


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "tools": 3}


def test_list_tools(client):
    body = client.get("/tools").json()

    assert body["success"] is True
    assert [tool["id"] for tool in body["data"]] == ["local:add", "local:get_weather", "local:explode"]
    assert "a" in body["data"][0]["parameters"]["properties"]


def test_search_tools(client):
    body = client.post("/tools/search", json={"query": "weather forecast", "limit": 3}).json()

    assert body["success"] is True
    assert body["data"][0]["id"] == "local:get_weather"
    assert body["data"][0]["score"] == 1.0


def test_search_with_unavailable_mode(client):
    response = client.post("/tools/search", json={"query": "weather", "mode": "vector"})
    assert response.status_code == 400


def test_execute_by_name(client):
    body = client.post("/tools/add/execute", json={"args": {"a": 2, "b": 5}}).json()

    assert body["success"] is True
    assert body["data"]["output"] == "7"
    assert body["data"]["tool_call_id"].startswith("call_")


def test_execute_by_id(client):
    body = client.post("/tools/local:get_weather/execute", json={"args": {"city": "Oslo"}}).json()

    assert body["success"] is True
    assert body["data"]["output"] == "Sunny in Oslo"


def test_execute_unknown_tool(client):
    body = client.post("/tools/teleport/execute", json={"args": {}}).json()

    assert body["success"] is False
    assert body["error"]["code"] == "TOOL_NOT_FOUND"
    assert body["data"] is None


def test_execute_failure(client):
    body = client.post("/tools/explode/execute", json={"args": {"reason": "test"}}).json()

    assert body["success"] is False
    assert body["error"]["code"] == "EXECUTION_ERROR"
    assert "boom: test" in body["error"]["message"]


def test_bearer_auth(handler):
    client = TestClient(create_app(handler, auth_secret=SecretStr("s3cret")))

    assert client.get("/tools").status_code == 401
    assert client.get("/tools", headers={"Authorization": "Bearer wrong"}).status_code == 401
    assert client.get("/tools", headers={"Authorization": "Bearer s3cret"}).status_code == 200
    # Health stays open for liveness checks
    assert client.get("/health").status_code == 200


@pytest.mark.asyncio
async def test_handler_uses_step_runner(handler):
    steps = []

    async def step(name, fn):
        steps.append(name)
        return await fn()

    handler.step = step
    response = await handler.execute_tool("add", {"a": 1, "b": 1})

    assert response.success is True
    assert response.data.output == "2"
    assert steps == ["execute:local:add"]
