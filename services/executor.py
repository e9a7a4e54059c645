"""
Bounded Concurrency Executor

Runs a homogeneous batch of async operations with a cap on how many are
in flight at once and returns their results in submission order.
"""

import asyncio
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple


async def run_all(tasks: Sequence[Callable[[], Awaitable[Any]]],
                  max_concurrent: Optional[int] = None) -> List[Any]:
    """
    Run zero-argument coroutine factories with bounded concurrency.

    Every task carries its submission index; results are sorted back into
    submission order regardless of completion order. The first failure
    cancels the tasks still running and is re-raised, so callers never see
    a partial result list.

    Args:
        tasks: Zero-argument callables returning awaitables.
        max_concurrent: Maximum tasks in flight, or None to start all at once.

    Returns:
        List[Any]: One result per task, in the order the tasks were given.

    Raises:
        ValueError: If max_concurrent is less than 1.
    """
    if max_concurrent is not None and max_concurrent < 1:
        raise ValueError(f"max_concurrent must be at least 1, got {max_concurrent}")
    if not tasks:
        return []

    semaphore = asyncio.Semaphore(max_concurrent) if max_concurrent else None

    async def _run(index: int, task: Callable[[], Awaitable[Any]]) -> Tuple[int, Any]:
        if semaphore is None:
            return index, await task()
        async with semaphore:
            return index, await task()

    futures = [asyncio.ensure_future(_run(i, task)) for i, task in enumerate(tasks)]
    completed = []
    try:
        for next_done in asyncio.as_completed(futures):
            completed.append(await next_done)
    except BaseException:
        for future in futures:
            future.cancel()
        await asyncio.gather(*futures, return_exceptions=True)
        raise

    completed.sort(key=lambda pair: pair[0])
    return [result for _, result in completed]
