"""
Rate Limit Governor Module

Spreads a batch of per-tweet calls over the endpoint's rate-limit windows.
One probe call learns how many calls remain in the current window, that
many calls are issued concurrently, and the governor then waits for the
window to reset before probing again.
"""

import asyncio
import math
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from config import settings
from data.models import RateLimitWindow
from services.executor import run_all
from services.protocols import Reporter
from utils.exceptions import RateLimited
from utils.logger import get_logger

logger = get_logger(__name__)

# A governed call returns its result and the window reported with it.
GovernedCall = Callable[[Any], Awaitable[Tuple[Any, RateLimitWindow]]]


class _Requeue:
    """Marker returned by a burst call that hit the rate limit."""

    def __init__(self, reset_at: Optional[int]):
        self.reset_at = reset_at


class RateLimitGovernor:
    """Issues rate-limited calls in window-sized bursts."""

    def __init__(self, max_concurrent: Optional[int] = None,
                 safety_margin: Optional[float] = None,
                 tick: Optional[float] = None,
                 reporter: Optional[Reporter] = None,
                 clock: Callable[[], float] = time.time,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        """
        Initialize the governor.

        Args:
            max_concurrent: Cap on calls in flight within one burst.
            safety_margin: Seconds added to the reported reset time.
            tick: Seconds between progress reports while waiting.
            reporter: Optional console reporter.
            clock: Wall clock returning epoch seconds (injectable for tests).
            sleep: Coroutine used to wait (injectable for tests).
        """
        self.max_concurrent = max_concurrent
        self.safety_margin = settings.RATE_LIMIT_SAFETY_MARGIN if safety_margin is None else safety_margin
        self.tick = settings.RATE_LIMIT_TICK if tick is None else tick
        self.reporter = reporter
        self.clock = clock
        self.sleep = sleep
        self.calls_issued = 0
        self.waits = 0

    def wait_seconds(self, reset_at: Optional[float]) -> float:
        """Seconds to wait for a window resetting at reset_at, safety margin included."""
        if reset_at is None:
            return float(self.safety_margin)
        return max(reset_at - self.clock(), 0) + self.safety_margin

    async def wait_for_reset(self, reset_at: Optional[float]) -> None:
        """
        Suspend until the window has reset, reporting the remaining time each tick.

        Args:
            reset_at: Epoch second the window resets, or None if unknown.
        """
        wait = self.wait_seconds(reset_at)
        deadline = self.clock() + wait
        self.waits += 1
        logger.info(f"Rate limit reached, waiting {math.ceil(wait)}s for the window to reset")

        while True:
            left = deadline - self.clock()
            if left <= 0:
                break
            if self.reporter:
                self.reporter.status(f"Rate limit reached. Resuming in {math.ceil(left)}s...")
            await self.sleep(min(self.tick, left))

    async def run(self, items: Sequence[Any], call: GovernedCall) -> List[Any]:
        """
        Call `call` once per item, respecting the endpoint's rate-limit windows.

        Args:
            items: Inputs of the calls, e.g. tweet IDs.
            call: Coroutine function returning (result, RateLimitWindow).

        Returns:
            List[Any]: One result per item, in input order.

        Raises:
            Any non-RateLimited error raised by a call (fail fast).
        """
        pending: List[Tuple[int, Any]] = list(enumerate(items))
        results: Dict[int, Any] = {}

        while pending:
            index, item = pending.pop(0)
            try:
                result, window = await self._issue(call, item)
            except RateLimited as e:
                logger.warning(f"Probe call was rate limited: {e}")
                pending.insert(0, (index, item))
                await self.wait_for_reset(e.reset_at)
                continue
            results[index] = result

            burst = pending[:max(window.remaining, 0)]
            pending = pending[len(burst):]
            if burst:
                outcomes = await run_all(
                    [self._burst_task(call, item) for _, item in burst],
                    self.max_concurrent,
                )
                requeue = []
                reset_at = window.reset_at
                for (burst_index, burst_item), outcome in zip(burst, outcomes):
                    if isinstance(outcome, _Requeue):
                        requeue.append((burst_index, burst_item))
                        if outcome.reset_at is not None:
                            reset_at = max(reset_at, outcome.reset_at)
                    else:
                        results[burst_index] = outcome
                if requeue:
                    logger.warning(f"{len(requeue)} calls were rate limited and will be retried")
                    pending = requeue + pending
                if pending:
                    await self.wait_for_reset(reset_at)
            elif pending:
                await self.wait_for_reset(window.reset_at)

        return [results[i] for i in range(len(items))]

    async def _issue(self, call: GovernedCall, item: Any) -> Tuple[Any, RateLimitWindow]:
        self.calls_issued += 1
        return await call(item)

    def _burst_task(self, call: GovernedCall, item: Any) -> Callable[[], Awaitable[Any]]:
        async def task():
            try:
                result, _ = await self._issue(call, item)
                return result
            except RateLimited as e:
                return _Requeue(e.reset_at)
        return task
