"""Tests for the outbound request queue."""

import asyncio

import pytest

from mew_mcp.client import RequestQueue, TTLCache


@pytest.mark.asyncio
async def test_results_are_delivered_to_each_caller():
    queue = RequestQueue(batch_size=2, batch_delay=0, rate_limit=10_000)

    async def value(n):
        await asyncio.sleep(0)
        return n * 10

    results = await asyncio.gather(*(queue.enqueue(lambda n=n: value(n)) for n in range(5)))
    assert results == [0, 10, 20, 30, 40]
    assert len(queue) == 0


@pytest.mark.asyncio
async def test_failure_does_not_abort_batch_mates():
    queue = RequestQueue(batch_size=10, batch_delay=0, rate_limit=10_000)

    async def ok():
        return "ok"

    async def boom():
        raise RuntimeError("boom")

    results = await asyncio.gather(
        queue.enqueue(ok), queue.enqueue(boom), queue.enqueue(ok), return_exceptions=True
    )
    assert results[0] == "ok"
    assert isinstance(results[1], RuntimeError)
    assert results[2] == "ok"


@pytest.mark.asyncio
async def test_batches_never_exceed_batch_size():
    queue = RequestQueue(batch_size=3, batch_delay=0, rate_limit=10_000)
    in_flight = 0
    peak = 0

    async def track():
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.001)
        in_flight -= 1

    await asyncio.gather(*(queue.enqueue(track) for _ in range(10)))
    assert peak <= 3


@pytest.mark.asyncio
async def test_batches_run_in_fifo_order():
    queue = RequestQueue(batch_size=1, batch_delay=0, rate_limit=10_000)
    order: list[int] = []

    async def record(n):
        order.append(n)

    await asyncio.gather(*(queue.enqueue(lambda n=n: record(n)) for n in range(6)))
    assert order == list(range(6))


@pytest.mark.asyncio
async def test_clear_cancels_undispatched_requests():
    queue = RequestQueue(batch_size=1, batch_delay=0.05, rate_limit=10_000)
    release = asyncio.Event()

    async def blocker():
        await release.wait()
        return "first"

    async def never():
        return "never"

    first = asyncio.ensure_future(queue.enqueue(blocker))
    second = asyncio.ensure_future(queue.enqueue(never))
    await asyncio.sleep(0.01)

    assert len(queue) == 1
    assert queue.clear() == 1
    release.set()

    assert await first == "first"
    with pytest.raises(asyncio.CancelledError):
        await second


def test_invalid_settings_rejected():
    with pytest.raises(ValueError):
        RequestQueue(batch_size=0)
    with pytest.raises(ValueError):
        RequestQueue(rate_limit=0)


def test_ttl_cache_expires_entries():
    now = [100.0]
    cache: TTLCache[str] = TTLCache(ttl=10, clock=lambda: now[0])
    cache.set("k", "v")
    assert cache.get("k") == "v"
    assert cache.has("k")
    now[0] = 111.0
    assert cache.get("k") is None
    assert not cache.has("k")


@pytest.mark.asyncio
async def test_rate_limit_and_batch_delay_space_dispatches():
    queue = RequestQueue(batch_size=2, batch_delay=0.2, rate_limit=10)
    loop = asyncio.get_running_loop()
    dispatched: list[float] = []

    async def stamp():
        dispatched.append(loop.time())

    await asyncio.gather(*(queue.enqueue(stamp) for _ in range(4)))

    gaps = [later - earlier for earlier, later in zip(dispatched, dispatched[1:])]
    # within a batch: 1 / rate_limit apart; across batches: batch_delay apart
    assert gaps[0] >= 0.09
    assert gaps[1] >= 0.19
    assert gaps[2] >= 0.09


@pytest.mark.asyncio
async def test_dispatch_slots_are_reserved_from_the_clock():
    queue = RequestQueue(batch_size=3, batch_delay=0, rate_limit=1000, clock=lambda: 100.0)

    async def noop():
        return None

    await asyncio.gather(*(queue.enqueue(noop) for _ in range(3)))

    assert queue._next_slot == pytest.approx(100.003)
