"""Bounded-concurrency runner for lazily produced asyncio operations."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Iterable, Optional, Set


# Page downloads hit the platform's rate limits, fixups are cheaper
FETCH_CONCURRENCY = 8
FIXUP_CONCURRENCY = 16

logger = logging.getLogger(__name__)


async def limit_concurrency(operations: Iterable[Awaitable], limit: int) -> int:
    """
    Run the awaitables produced by ``operations`` with at most ``limit`` of
    them in flight.

    The iterable is consumed lazily: the next item is pulled only when a
    slot is free, so a generator feeding this function runs its side effects
    right before the corresponding operation starts. After the first failure
    no new operations are pulled; in-flight ones are allowed to settle and
    the failure is re-raised.

    Returns the number of operations that completed.
    """
    if limit < 1:
        raise ValueError(f"Concurrency limit must be >= 1, got {limit}")

    iterator = iter(operations)
    in_flight: Set[asyncio.Future] = set()
    first_error: Optional[BaseException] = None
    exhausted = False
    completed = 0

    while True:
        while not exhausted and first_error is None and len(in_flight) < limit:
            try:
                operation = next(iterator)
            except StopIteration:
                exhausted = True
                break
            in_flight.add(asyncio.ensure_future(operation))

        if not in_flight:
            break

        done, in_flight = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            error = task.exception()
            if error is None:
                completed += 1
            elif first_error is None:
                first_error = error
            else:
                logger.debug(f"Suppressed additional failure after the first one: {error!r}")

    if first_error is not None:
        raise first_error
    return completed
