"""Observer registry used for catalog and source change notifications."""
import inspect
import logging
from typing import Any, Awaitable, Callable, Generic, List, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")

Handler = Callable[[T], Union[Awaitable[None], None]]


class EventEmitter(Generic[T]):
    """Ordered list of callbacks plus an emit routine.

    Handlers may be plain functions or coroutine functions. ``emit`` awaits
    them one at a time in subscription order; a failing handler is logged
    and skipped so the rest still run.
    """

    def __init__(self, name: str = "event"):
        self.name = name
        self._handlers: List[Handler] = []

    def subscribe(self, handler: Handler) -> Callable[[], None]:
        """Register a handler and return a function that removes it."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            # Identity check so an unsubscribe never removes an equal but different handler
            for i, existing in enumerate(self._handlers):
                if existing is handler:
                    del self._handlers[i]
                    return

        return unsubscribe

    on = subscribe

    async def emit(self, value: T) -> None:
        """Deliver a value to every handler in order."""
        for handler in list(self._handlers):
            try:
                result: Any = handler(value)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Error in {self.name} handler {getattr(handler, '__name__', handler)!r}: {e}")

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    def clear(self) -> None:
        """Remove all handlers."""
        self._handlers.clear()
