"""Bounded fan-out for embedding and vision calls.

Record enrichment and PDF image extraction both fan out one external call
per item.  :func:`throttled_gather` keeps that fan-out bounded by a
semaphore sized to the request's batch size so a large batch cannot open
hundreds of simultaneous connections to the inference server.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

_T = TypeVar("_T")


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore | None = None,
) -> list[_T]:
    """Run awaitables concurrently with optional semaphore throttling.

    The first failure cancels every sibling still queued or running and the
    failure is re-raised once they have all settled.

    Parameters
    ----------
    coros:
        Awaitable objects to execute concurrently.
    semaphore:
        Optional semaphore for concurrency control.  When ``None`` the
        awaitables run unbounded.

    Returns
    -------
    list
        Results in the same order as the input coroutines.
    """

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        if semaphore is None:
            return await coro
        async with semaphore:
            return await coro

    tasks = [asyncio.ensure_future(_wrapped(c)) for c in coros]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
