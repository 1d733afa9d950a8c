"""Bounded LRU map with optional per-entry time-to-live."""
import time
from collections import OrderedDict
from typing import Callable, Generic, Iterator, Optional, Tuple, TypeVar

K = TypeVar("K")
V = TypeVar("V")


class LRUCache(Generic[K, V]):
    """Ordered map evicting by recency and, when ``ttl`` is set, by age.

    Expiry is checked lazily on ``get``/``set``; there is no background timer.
    ``on_evict`` is called with the key of every entry dropped by capacity or
    expiry, not for explicit ``delete``/``clear``.
    """

    def __init__(
        self,
        max_size: int,
        ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        on_evict: Optional[Callable[[K], None]] = None,
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.ttl = ttl
        self._clock = clock
        self._on_evict = on_evict
        self._entries: "OrderedDict[K, Tuple[V, Optional[float]]]" = OrderedDict()

    def _expired(self, expires_at: Optional[float], now: float) -> bool:
        return expires_at is not None and now >= expires_at

    def _drop(self, key: K) -> None:
        del self._entries[key]
        if self._on_evict:
            self._on_evict(key)

    def purge_expired(self) -> int:
        """Remove every expired entry and return how many were removed."""
        if self.ttl is None:
            return 0
        now = self._clock()
        expired = [key for key, (_, expires_at) in self._entries.items() if self._expired(expires_at, now)]
        for key in expired:
            self._drop(key)
        return len(expired)

    def get(self, key: K) -> Optional[V]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._expired(expires_at, self._clock()):
            self._drop(key)
            return None
        self._entries.move_to_end(key)
        return value

    def set(self, key: K, value: V) -> None:
        expires_at = self._clock() + self.ttl if self.ttl is not None else None
        if key in self._entries:
            self._entries.move_to_end(key)
            self._entries[key] = (value, expires_at)
            return

        self.purge_expired()
        while len(self._entries) >= self.max_size:
            oldest = next(iter(self._entries))
            self._drop(oldest)
        self._entries[key] = (value, expires_at)

    def delete(self, key: K) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def keys(self) -> Iterator[K]:
        return iter(list(self._entries.keys()))

    def __contains__(self, key: object) -> bool:
        entry = self._entries.get(key)  # type: ignore[arg-type]
        return entry is not None and not self._expired(entry[1], self._clock())

    def __len__(self) -> int:
        return len(self._entries)
