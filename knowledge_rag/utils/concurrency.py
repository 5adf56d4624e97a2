"""Bounded-concurrency helpers for embedding fan-out.

:func:`throttled_gather` is a drop-in replacement for ``asyncio.gather``
that wraps each awaitable in a semaphore acquire/release, so ingestion can
embed many chunks at once without exceeding a provider's rate limit.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

_T = TypeVar("_T")

DEFAULT_MAX_CONCURRENCY = 5


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore | None = None,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """Run awaitables concurrently with semaphore throttling.

    Parameters
    ----------
    coros:
        Awaitable objects to execute concurrently.
    semaphore:
        Semaphore bounding how many awaitables run at once.  A fresh
        semaphore of ``DEFAULT_MAX_CONCURRENCY`` is created when omitted.
    return_exceptions:
        If ``True``, exceptions are returned in the results list rather
        than being raised.  Mirrors ``asyncio.gather`` semantics.

    Returns
    -------
    list[_T | BaseException]
        Results in the same order as the input awaitables.
    """
    if semaphore is None:
        semaphore = asyncio.Semaphore(DEFAULT_MAX_CONCURRENCY)

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    tasks = [_wrapped(c) for c in coros]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)


async def sequential_gather(
    coros: list[Awaitable[_T]],
) -> list[_T | BaseException]:
    """Await each awaitable in order, capturing exceptions like gather does.

    ``CancelledError`` is not an ``Exception`` subclass and therefore still
    propagates to the caller.
    """
    results: list[_T | BaseException] = []
    for coro in coros:
        try:
            results.append(await coro)
        except Exception as exc:
            results.append(exc)
    return results
