"""Outbound request queue: FIFO batches with a dispatch rate limit."""

import asyncio
import time
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

T = TypeVar("T")

RequestFactory = Callable[[], Awaitable[Any]]


class RequestQueue:
    """Runs queued requests in batches of ``batch_size``.

    Requests inside a batch run concurrently and settle independently: a
    failing request rejects only its own caller. Dispatches are spaced at
    least ``1 / rate_limit`` seconds apart, and ``batch_delay`` seconds pass
    between batches while more work is waiting.
    """

    def __init__(
        self,
        batch_size: int = 10,
        batch_delay: float = 0.1,
        rate_limit: float = 50.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if rate_limit <= 0:
            raise ValueError("rate_limit must be positive")
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.min_interval = 1.0 / rate_limit
        self._clock = clock
        self._pending: deque[tuple[RequestFactory, asyncio.Future]] = deque()
        self._worker: asyncio.Task | None = None
        self._next_slot = 0.0

    def __len__(self) -> int:
        return len(self._pending)

    async def enqueue(self, request: Callable[[], Awaitable[T]]) -> T:
        """Queue ``request`` (a zero-arg coroutine factory) and await its result."""
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending.append((request, future))
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._process())
        return await future

    def clear(self) -> int:
        """Drop everything not yet dispatched. Dropped callers see CancelledError."""
        dropped = 0
        while self._pending:
            _, future = self._pending.popleft()
            if not future.done():
                future.cancel()
            dropped += 1
        return dropped

    async def _process(self) -> None:
        while self._pending:
            batch = []
            while self._pending and len(batch) < self.batch_size:
                batch.append(self._pending.popleft())
            await asyncio.gather(*(self._run(request, future) for request, future in batch))
            if self._pending:
                await asyncio.sleep(self.batch_delay)

    async def _run(self, request: RequestFactory, future: asyncio.Future) -> None:
        if future.done():
            return
        await self._wait_for_slot()
        try:
            result = await request()
        except Exception as exc:  # noqa: BLE001 - delivered to the caller
            if not future.done():
                future.set_exception(exc)
            return
        if not future.done():
            future.set_result(result)

    async def _wait_for_slot(self) -> None:
        # Reserve the slot before sleeping so concurrent dispatches get distinct slots.
        now = self._clock()
        slot = max(now, self._next_slot)
        self._next_slot = slot + self.min_interval
        delay = slot - now
        if delay > 0:
            await asyncio.sleep(delay)
