"""
Lazy task values.

A Deferred wraps a zero-argument coroutine function. Building one does no
work; the computation starts the first time a caller forces it, either with
`await deferred` or `await deferred.force()`.

Forcing can block on network calls and can fail. The outcome, value or
exception, is memoized, so forcing again returns the same result without
re-running the computation. This layer does not retry, and it offers no
cancellation: a caller that stops waiting simply discards the result while
any in-flight blocking call runs to completion on its own.
"""

import asyncio
from typing import Any, Awaitable, Callable, Generator, Generic, Optional, TypeVar

T = TypeVar("T")


class Deferred(Generic[T]):

    def __init__(self, thunk: Callable[[], Awaitable[T]], name: Optional[str] = None):
        self._thunk = thunk
        self._name = name or getattr(thunk, "__qualname__", "deferred")
        self._future: Optional[asyncio.Future] = None

    @property
    def forced(self) -> bool:
        return self._future is not None

    async def force(self) -> T:
        # No await between the check and the assignment, so racing tasks
        # on the same loop share one future.
        if self._future is None:
            self._future = asyncio.ensure_future(self._thunk())
        return await asyncio.shield(self._future)

    def __await__(self) -> Generator[Any, None, T]:
        return self.force().__await__()

    def __repr__(self) -> str:
        if self._future is None:
            state = "pending"
        elif not self._future.done():
            state = "running"
        elif self._future.cancelled():
            state = "cancelled"
        elif self._future.exception() is not None:
            state = "failed"
        else:
            state = "done"
        return f"<Deferred {self._name} {state}>"
