"""Observable single-value cell with subscriber notification."""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[T], None]


class ObservableValue(Generic[T]):
    """Holds one value and notifies listeners whenever it is set.

    Listeners are plain callables invoked synchronously on ``set``. ``values()``
    adapts the cell into an async iterator: it yields the present value first,
    then every subsequent assignment in order.
    """

    def __init__(self, initial: T):
        self._value = initial
        self._listeners: list[Listener[T]] = []

    @property
    def value(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        self._value = value
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception:
                logger.exception("Observable listener %r failed", listener)

    def subscribe(self, listener: Listener[T]) -> Callable[[], None]:
        """Register a listener. Returns a callable that unregisters it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._listeners)

    async def changed(self) -> T:
        """Wait for the next assignment and return the assigned value."""
        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()

        def _resolve(value: T) -> None:
            if not future.done():
                future.set_result(value)

        unsubscribe = self.subscribe(_resolve)
        try:
            return await future
        finally:
            unsubscribe()

    async def values(self) -> AsyncIterator[T]:
        queue: asyncio.Queue[T] = asyncio.Queue()
        unsubscribe = self.subscribe(queue.put_nowait)
        try:
            yield self._value
            while True:
                yield await queue.get()
        finally:
            unsubscribe()
