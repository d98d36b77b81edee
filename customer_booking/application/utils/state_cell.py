from __future__ import annotations

import asyncio
import logging
from typing import Callable, Generic, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


class StateCell(Generic[T]):
    """
    Single-writer holder of an immutable state value.

    Each `set` replaces the whole value, so observers never see a half-applied
    transition. Listeners run synchronously in registration order; slow
    observers only ever read the latest value.
    """

    def __init__(self, initial: T) -> None:
        self._value = initial
        self._listeners: list[Callable[[T], None]] = []

    @property
    def value(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        self._value = value
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception:
                logger.exception("State listener failed")

    def update(self, fn: Callable[[T], T]) -> T:
        self.set(fn(self._value))
        return self._value

    def subscribe(self, listener: Callable[[T], None], emit_current: bool = True) -> Callable[[], None]:
        """Register `listener`. Returns a callable that unregisters it (safe to call twice)."""
        self._listeners.append(listener)
        if emit_current:
            listener(self._value)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def wait_for(self, predicate: Callable[[T], bool], timeout: float | None = None) -> T:
        """Wait until a value satisfying `predicate` is published (or is current)."""
        if predicate(self._value):
            return self._value

        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()

        def _listener(value: T) -> None:
            if not future.done() and predicate(value):
                future.set_result(value)

        unsubscribe = self.subscribe(_listener, emit_current=False)
        try:
            return await asyncio.wait_for(future, timeout)
        finally:
            unsubscribe()
