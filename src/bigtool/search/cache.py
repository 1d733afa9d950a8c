"""Embedding caches keyed by tool id.

Cached vectors are assumed valid until invalidated; callers must call
``invalidate`` when a tool's description changes.
"""
import logging
from typing import Any, Dict, List, Optional

import numpy as np

from ..loader.lru import LRUCache

logger = logging.getLogger(__name__)


class MemoryEmbeddingCache:
    """Unbounded in-process cache."""

    def __init__(self):
        self._vectors: Dict[str, List[float]] = {}

    async def get(self, tool_id: str) -> Optional[List[float]]:
        return self._vectors.get(tool_id)

    async def set(self, tool_id: str, vector: List[float]) -> None:
        self._vectors[tool_id] = list(vector)

    async def get_many(self, tool_ids: List[str]) -> Dict[str, List[float]]:
        return {tool_id: self._vectors[tool_id] for tool_id in tool_ids if tool_id in self._vectors}

    async def set_many(self, vectors: Dict[str, List[float]]) -> None:
        for tool_id, vector in vectors.items():
            self._vectors[tool_id] = list(vector)

    async def invalidate(self, tool_id: str) -> None:
        self._vectors.pop(tool_id, None)

    async def clear(self) -> None:
        self._vectors.clear()

    def __len__(self) -> int:
        return len(self._vectors)


class LRUEmbeddingCache:
    """Bounded in-process cache evicting the least recently used vector."""

    def __init__(self, max_size: int = 1000):
        self._lru: LRUCache[str, List[float]] = LRUCache(max_size=max_size)

    async def get(self, tool_id: str) -> Optional[List[float]]:
        return self._lru.get(tool_id)

    async def set(self, tool_id: str, vector: List[float]) -> None:
        self._lru.set(tool_id, list(vector))

    async def get_many(self, tool_ids: List[str]) -> Dict[str, List[float]]:
        found = {}
        for tool_id in tool_ids:
            vector = self._lru.get(tool_id)
            if vector is not None:
                found[tool_id] = vector
        return found

    async def set_many(self, vectors: Dict[str, List[float]]) -> None:
        for tool_id, vector in vectors.items():
            self._lru.set(tool_id, list(vector))

    async def invalidate(self, tool_id: str) -> None:
        self._lru.delete(tool_id)

    async def clear(self) -> None:
        self._lru.clear()

    def __len__(self) -> int:
        return len(self._lru)


class RedisEmbeddingCache:
    """Remote cache over an async Redis compatible client.

    The client is injected (``redis.asyncio.Redis``, a Valkey client, or a
    test double) and must expose ``get``, ``set``, ``mget``, ``delete`` and
    ``scan_iter``. Vectors are stored as raw float32 bytes.
    """

    def __init__(self, client: Any, prefix: str = "bigtool:emb:", ttl: Optional[int] = None):
        self.client = client
        self.prefix = prefix
        self.ttl = ttl

    def _key(self, tool_id: str) -> str:
        return f"{self.prefix}{tool_id}"

    @staticmethod
    def _encode(vector: List[float]) -> bytes:
        return np.asarray(vector, dtype=np.float32).tobytes()

    @staticmethod
    def _decode(data: bytes) -> List[float]:
        return np.frombuffer(data, dtype=np.float32).tolist()

    async def get(self, tool_id: str) -> Optional[List[float]]:
        data = await self.client.get(self._key(tool_id))
        return self._decode(data) if data else None

    async def set(self, tool_id: str, vector: List[float]) -> None:
        await self.client.set(self._key(tool_id), self._encode(vector), ex=self.ttl)

    async def get_many(self, tool_ids: List[str]) -> Dict[str, List[float]]:
        if not tool_ids:
            return {}
        values = await self.client.mget([self._key(tool_id) for tool_id in tool_ids])
        return {tool_id: self._decode(data) for tool_id, data in zip(tool_ids, values) if data}

    async def set_many(self, vectors: Dict[str, List[float]]) -> None:
        for tool_id, vector in vectors.items():
            await self.set(tool_id, vector)

    async def invalidate(self, tool_id: str) -> None:
        await self.client.delete(self._key(tool_id))

    async def clear(self) -> None:
        keys = [key async for key in self.client.scan_iter(match=f"{self.prefix}*")]
        if keys:
            await self.client.delete(*keys)
        logger.info(f"Cleared {len(keys)} cached embeddings under prefix {self.prefix}")
