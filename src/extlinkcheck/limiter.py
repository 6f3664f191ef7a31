"""FIFO counting semaphore for bounding in-flight checks."""

from __future__ import annotations

import asyncio
from collections import deque
from contextlib import suppress
from typing import TYPE_CHECKING, Self, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")


class ConcurrencyLimiter:
    """Bound the number of tasks running at once.

    Waiters are woken strictly in arrival order, and a released slot is handed
    directly to the next waiter, so a newcomer can never overtake the queue.
    """

    def __init__(self, limit: int) -> None:
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")
        self._limit = limit
        self._active = 0
        self._waiters: deque[asyncio.Future[None]] = deque()

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def active(self) -> int:
        return self._active

    @property
    def waiting(self) -> int:
        return len(self._waiters)

    async def acquire(self) -> None:
        if self._active < self._limit and not self._waiters:
            self._active += 1
            return

        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # The slot was handed over just before we were cancelled; pass it on.
                self.release()
            else:
                with suppress(ValueError):
                    self._waiters.remove(waiter)
            raise

    def release(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                # Slot transfers to the waiter; the active count is unchanged.
                waiter.set_result(None)
                return
        self._active = max(0, self._active - 1)

    async def run(self, task: Callable[[], Awaitable[T]]) -> T:
        """Run ``task`` once a slot is free, releasing the slot however it ends."""
        await self.acquire()
        try:
            return await task()
        finally:
            self.release()

    async def __aenter__(self) -> Self:
        await self.acquire()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.release()
