"""
Batch-then-fallback push algorithm shared by every channel adapter

Adapters hand over a "push one item" coroutine and, when the partner has a
bulk endpoint, a "push batch" coroutine. Batches go first; a batch that
fails is retried item by item with bounded concurrency so that one bad row
never blocks the rest.
"""

import asyncio
from typing import Any, Awaitable, Callable, Iterator, List, Optional, Sequence

from ..contracts import ChannelError, ConfigurationError, SyncError, SyncResult

CANCELLED_ERROR_TYPE = "SyncCancelled"


def chunked(items: Sequence[Any], size: Optional[int]) -> Iterator[Sequence[Any]]:
    """Split items into chunks of at most `size` (one chunk when size is None)"""
    if not items:
        return
    if not size or size >= len(items):
        yield items
        return
    for start in range(0, len(items), size):
        yield items[start : start + size]


async def push_with_fallback(
    items: Sequence[Any],
    push_one: Callable[[Any], Awaitable[None]],
    push_batch: Optional[Callable[[Sequence[Any]], Awaitable[None]]] = None,
    batch_size: Optional[int] = None,
    max_concurrency: int = 4,
    cancel_event: Optional[asyncio.Event] = None,
    deadline: Optional[float] = None,
    logger=None,
) -> SyncResult:
    """
    Push `items` to a partner and aggregate per-item outcomes

    Args:
        items: Snapshot to push, reported back in input order on failure
        push_one: Coroutine pushing a single item
        push_batch: Coroutine pushing a chunk, or None when the partner has no bulk API
        batch_size: Maximum chunk size for push_batch (None means one chunk)
        max_concurrency: Upper bound on in-flight per-item pushes
        cancel_event: When set, no further pushes are started
        deadline: Seconds after which no further pushes are started

    Returns:
        SyncResult whose errors hold one SyncError per item that was not pushed

    Raises:
        ConfigurationError: a push cannot be attempted at all (e.g. unsigned)
    """
    loop = asyncio.get_running_loop()
    deadline_at = loop.time() + deadline if deadline else None
    semaphore = asyncio.Semaphore(max(1, max_concurrency))

    result = SyncResult(success=True, synced=0)

    def stopped() -> bool:
        if cancel_event is not None and cancel_event.is_set():
            return True
        return deadline_at is not None and loop.time() >= deadline_at

    def cancelled_error(item: Any) -> SyncError:
        return SyncError(
            item=item,
            cause="sync stopped before this item was pushed",
            error_type=CANCELLED_ERROR_TYPE,
        )

    async def push_single(item: Any) -> Optional[SyncError]:
        async with semaphore:
            if stopped():
                return cancelled_error(item)
            try:
                await push_one(item)
            except ConfigurationError:
                raise
            except ChannelError as e:
                return SyncError.from_exception(item, e)
            return None

    async def push_individually(chunk: Sequence[Any]) -> List[Optional[SyncError]]:
        return await asyncio.gather(*(push_single(item) for item in chunk))

    chunks = list(chunked(items, batch_size)) if push_batch else [items]

    for chunk in chunks:
        if not chunk:
            continue
        if stopped():
            result.errors.extend(cancelled_error(item) for item in chunk)
            continue

        if push_batch is not None:
            try:
                await push_batch(chunk)
                result.synced += len(chunk)
                continue
            except ConfigurationError:
                raise
            except ChannelError as e:
                # Partners report batch failures in aggregate, so every item is retried
                result.batch_failures += 1
                if logger is not None:
                    logger.warning(
                        "Batch push failed, falling back to per-item pushes",
                        batch_size=len(chunk),
                        error=str(e),
                        error_type=type(e).__name__,
                    )

        for error in await push_individually(chunk):
            if error is None:
                result.synced += 1
            else:
                result.errors.append(error)

    result.cancelled = any(
        error.error_type == CANCELLED_ERROR_TYPE for error in result.errors
    )
    result.success = not result.errors
    return result
