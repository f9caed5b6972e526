"""Values computed once on first use."""

import asyncio
from typing import Awaitable, Callable, Generic, Optional, TypeVar


T = TypeVar("T")


class Lazy(Generic[T]):
    """An async value computed exactly once.

    Concurrent callers share the same in-flight computation. A failed
    computation is not cached, so the next ``get()`` tries again.
    ``invalidate()`` forces the next ``get()`` to recompute.
    """

    def __init__(self, factory: Callable[[], Awaitable[T]]):
        self._factory = factory
        self._done = False
        self._value: Optional[T] = None
        self._pending: Optional[asyncio.Future] = None

    @property
    def done(self) -> bool:
        return self._done

    async def get(self) -> T:
        if self._done:
            return self._value  # type: ignore[return-value]

        if self._pending is None:
            self._pending = asyncio.ensure_future(self._factory())

        pending = self._pending
        try:
            value = await pending
        except BaseException:
            if self._pending is pending:
                self._pending = None
            raise

        if self._pending is pending:
            self._value = value
            self._done = True
            self._pending = None
        return value

    def invalidate(self) -> None:
        self._done = False
        self._value = None
        self._pending = None
