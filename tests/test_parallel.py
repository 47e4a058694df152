from __future__ import annotations

import asyncio
import time

import pytest

from deep_research.config import ProviderTimeouts
from deep_research.exceptions import ProviderError, ProviderTimeoutError
from deep_research.services.parallel import batch_process, chunk, run_parallel, with_timeout

FAST = ProviderTimeouts(exa=0.2, firecrawl=0.2, perplexity=0.2)


def returning(value, delay: float = 0.0):
    async def call():
        if delay:
            await asyncio.sleep(delay)
        return value

    return call


def failing(message: str, delay: float = 0.0):
    async def call():
        if delay:
            await asyncio.sleep(delay)
        raise ProviderError(message)

    return call


@pytest.mark.asyncio
async def test_run_parallel_degrades_when_one_provider_fails():
    result = await run_parallel(
        exa=returning(["a"]),
        firecrawl=failing("boom"),
        perplexity=returning(["c"]),
        timeouts=FAST,
    )

    assert result.exa == ["a"]
    assert result.firecrawl is None
    assert result.perplexity == ["c"]
    assert result.errors == ["[Firecrawl] boom"]
    assert result.status() == {"exa": True, "firecrawl": False, "perplexity": True}
    assert result.succeeded == 2


@pytest.mark.asyncio
async def test_run_parallel_bounds_a_hanging_provider_by_its_timeout():
    start = time.monotonic()
    result = await run_parallel(
        exa=returning("ok"),
        firecrawl=returning("never", delay=5),
        perplexity=returning("ok"),
        timeouts=FAST,
    )
    elapsed = time.monotonic() - start

    assert elapsed < 1.0
    assert result.firecrawl is None
    assert result.errors == ["[Firecrawl] Timeout after 200ms"]


@pytest.mark.asyncio
async def test_run_parallel_total_failure_lists_every_provider():
    result = await run_parallel(
        exa=failing("exa down", delay=0.01),
        firecrawl=failing("firecrawl down", delay=0.05),
        perplexity=failing("perplexity down"),
        timeouts=FAST,
    )

    assert result.succeeded == 0
    # errors follow settlement order
    assert result.errors == [
        "[Perplexity] perplexity down",
        "[Exa] exa down",
        "[Firecrawl] firecrawl down",
    ]


@pytest.mark.asyncio
async def test_run_parallel_does_not_wait_for_slow_failure_when_others_fail_fast():
    start = time.monotonic()
    await run_parallel(
        exa=returning(1, delay=0.01),
        firecrawl=failing("fast"),
        perplexity=returning(3, delay=0.02),
        timeouts=ProviderTimeouts(exa=5, firecrawl=5, perplexity=5),
    )

    assert time.monotonic() - start < 1.0


@pytest.mark.asyncio
async def test_with_timeout_returns_value_within_bound():
    assert await with_timeout(returning(42), 0.5) == 42


@pytest.mark.asyncio
async def test_with_timeout_raises_and_abandons_operation():
    with pytest.raises(ProviderTimeoutError, match="Timeout after 50ms"):
        await with_timeout(returning("late", delay=5), 0.05)


@pytest.mark.asyncio
async def test_batch_process_preserves_order_and_marks_failures():
    async def process(n: int) -> int:
        if n == 3:
            raise ValueError("three is bad")
        return n * 10

    result = await batch_process([1, 2, 3, 4, 5], 2, process)

    assert result.results == [10, 20, None, 40, 50]
    assert result.errors == ["Batch item 2: three is bad"]


@pytest.mark.asyncio
async def test_batch_process_runs_batches_sequentially():
    running = 0
    peak = 0

    async def process(n: int) -> int:
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.01)
        running -= 1
        return n

    await batch_process(list(range(7)), 3, process)

    assert peak == 3


@pytest.mark.asyncio
async def test_batch_process_empty_input():
    result = await batch_process([], 3, returning(None))

    assert result.results == []
    assert result.errors == []


def test_chunk_splits_with_remainder():
    assert chunk([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
    assert chunk([], 4) == []
