from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Sequence, TypeVar

from loguru import logger

from deep_research.config import ProviderTimeouts
from deep_research.exceptions import ProviderTimeoutError
from deep_research.models.results import PROVIDER_NAMES, BatchResult, ParallelResult, Source

T = TypeVar("T")
R = TypeVar("R")

AsyncCall = Callable[[], Awaitable[T]]


@dataclass(frozen=True, slots=True)
class _Settled:
    source: Source
    value: Any
    error: BaseException | None
    settled_at: float


def _describe(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


def _discard_outcome(task: asyncio.Task) -> None:
    if not task.cancelled():
        task.exception()


async def with_timeout(fn: AsyncCall[T], timeout_s: float) -> T:
    """Await ``fn()`` for at most ``timeout_s`` seconds.

    On timeout the operation is abandoned: cancellation is requested but not
    awaited, so the caller is never held past the bound.
    """
    task = asyncio.ensure_future(fn())
    done, _ = await asyncio.wait({task}, timeout=timeout_s)
    if task in done:
        return task.result()

    task.add_done_callback(_discard_outcome)
    task.cancel()
    raise ProviderTimeoutError(f"Timeout after {int(timeout_s * 1000)}ms")


async def _settle(source: Source, fn: AsyncCall[Any], timeout_s: float) -> _Settled:
    try:
        value = await with_timeout(fn, timeout_s)
    except Exception as e:
        return _Settled(source, None, e, time.monotonic())
    return _Settled(source, value, None, time.monotonic())


async def run_parallel(
    *,
    exa: AsyncCall[Any],
    firecrawl: AsyncCall[Any],
    perplexity: AsyncCall[Any],
    timeouts: ProviderTimeouts | None = None,
) -> ParallelResult:
    """Run one call per provider concurrently with graceful degradation.

    A failing or timed-out provider leaves ``None`` in its slot and one
    ``"[Provider] detail"`` line in ``errors``; this function never raises.
    """
    timeouts = timeouts or ProviderTimeouts()
    logger.debug("[parallel] Starting 3 services in parallel...")

    settled = await asyncio.gather(
        _settle("exa", exa, timeouts.exa),
        _settle("firecrawl", firecrawl, timeouts.firecrawl),
        _settle("perplexity", perplexity, timeouts.perplexity),
    )

    values: dict[Source, Any] = {}
    errors: list[str] = []
    for item in sorted(settled, key=lambda s: s.settled_at):
        if item.error is None:
            values[item.source] = item.value
            continue
        msg = f"[{PROVIDER_NAMES[item.source]}] {_describe(item.error)}"
        errors.append(msg)
        logger.error(f"[parallel] {msg}")

    result = ParallelResult(
        exa=values.get("exa"),
        firecrawl=values.get("firecrawl"),
        perplexity=values.get("perplexity"),
        errors=errors,
    )
    failed = f", {len(errors)} failed" if errors else ""
    logger.info(f"[parallel] Done - {result.succeeded}/3 services succeeded{failed}")
    return result


async def batch_process(
    items: Sequence[T],
    batch_size: int,
    processor: Callable[[T], Awaitable[R]],
) -> BatchResult[R]:
    """Process items in sequential batches, concurrently within each batch.

    Failed items yield ``None`` at their index and an error line.
    """
    batch_size = max(int(batch_size), 1)
    out: BatchResult[R] = BatchResult()

    for start, batch in zip(range(0, len(items), batch_size), chunk(items, batch_size)):
        logger.debug(f"[batch] Processing batch {start // batch_size + 1} ({len(batch)} items)")
        settled = await asyncio.gather(
            *(processor(item) for item in batch),
            return_exceptions=True,
        )
        for offset, value in enumerate(settled):
            if isinstance(value, Exception):
                msg = f"Batch item {start + offset}: {_describe(value)}"
                out.errors.append(msg)
                logger.warning(f"[batch] {msg}")
                out.results.append(None)
            elif isinstance(value, BaseException):
                raise value
            else:
                out.results.append(value)

    return out


def chunk(items: Sequence[T], size: int) -> list[list[T]]:
    size = max(int(size), 1)
    return [list(items[i : i + size]) for i in range(0, len(items), size)]
