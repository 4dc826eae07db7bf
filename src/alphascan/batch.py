"""Bounded-concurrency batch runner.

Dispatches a worker coroutine per item in input order with at most
`limit` of them in flight, and returns the non-None results in input
order. A worker that raises only loses its own item.
"""

import asyncio
from typing import Any, Awaitable, Callable, Iterable, Protocol, TypeVar

import sentry_sdk

from alphascan.logging import logger

T = TypeVar("T")
R = TypeVar("R")


class BatchObserver(Protocol):
    """
    👀 Protocol for batch progress observers.

    `item_completed` is called exactly once per item when its worker
    finishes, with the worker's result (None when it failed). Completion
    order is arbitrary.
    """

    def item_completed(self, item: Any, result: Any | None) -> None: ...


class ProgressCounter:
    """Counts completed items, optionally capping the reported progress."""

    def __init__(self, cap: int | None = None) -> None:
        self.cap = cap
        self.completed = 0
        self.succeeded = 0

    def item_completed(self, item: Any, result: Any | None) -> None:
        self.completed += 1
        if result is not None:
            self.succeeded += 1

    @property
    def progress(self) -> int:
        if self.cap is None:
            return self.completed
        return min(self.completed, self.cap)


async def run_batch(
    items: Iterable[T],
    limit: int,
    worker: Callable[[T], Awaitable[R | None]],
    observer: BatchObserver | None = None,
) -> list[R]:
    """
    🚦 Run `worker` over `items` with at most `limit` calls in flight.

    Args:
        items: Items to process, dispatched in this order
        limit: Maximum concurrent worker calls (>= 1)
        worker: Coroutine function returning a result or None
        observer: Optional progress observer

    Returns:
        Non-None results, in the order of their items

    Raises:
        ValueError: If limit is less than 1
    """
    if limit < 1:
        raise ValueError(f"limit must be at least 1, got {limit}")

    pending_items = list(items)
    if not pending_items:
        return []

    results: list[R | None] = [None] * len(pending_items)
    positions: dict[asyncio.Task, tuple[int, T]] = {}
    in_flight: set[asyncio.Task] = set()

    def _on_done(task: asyncio.Task) -> None:
        index, item = positions[task]
        result = None
        if not task.cancelled():
            error = task.exception()
            if error is None:
                result = task.result()
            else:
                logger.warning(
                    "Batch item failed item={item} error={error}",
                    item=item,
                    error=str(error),
                )
        results[index] = result
        if observer is not None:
            observer.item_completed(item, result)

    sentry_sdk.add_breadcrumb(
        category="batch",
        message=f"Running batch of {len(pending_items)} items",
        level="info",
        data={"limit": limit},
    )

    for index, item in enumerate(pending_items):
        if len(in_flight) >= limit:
            _, in_flight = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)

        task = asyncio.ensure_future(worker(item))
        positions[task] = (index, item)
        task.add_done_callback(_on_done)
        in_flight.add(task)

    # _on_done was registered before asyncio.wait added its own callback,
    # so every finished item is recorded by the time wait returns
    if in_flight:
        await asyncio.wait(in_flight)

    output = [r for r in results if r is not None]
    logger.debug(
        "Batch finished submitted={submitted} succeeded={succeeded}",
        submitted=len(pending_items),
        succeeded=len(output),
    )
    return output
