"""
Bounded batch execution and progress reporting.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

ProgressCallback = Callable[[int], None]


class ProgressReporter:
    """
    Progress sink bound to a sub-range of its parent's 0-100 range.

    Callers always report in local 0-100 terms; the reporter maps the value
    linearly into [lo, hi] of the root range. All reporters created through
    scoped() share one high-water mark, so the root callback only ever sees
    non-decreasing integers.
    """

    def __init__(
        self,
        callback: Optional[ProgressCallback] = None,
        lo: float = 0.0,
        hi: float = 100.0,
        _shared: Optional[dict] = None,
    ):
        self._callback = callback
        self.lo = lo
        self.hi = hi
        self._shared = _shared if _shared is not None else {"current": 0, "started": False}

    @property
    def current(self) -> int:
        """Last value delivered on the root scale."""
        return self._shared["current"]

    def scoped(self, lo: float, hi: float) -> "ProgressReporter":
        """
        Create a child reporter covering [lo, hi] of this reporter's range.

        Args:
            lo: Start of the child's slice, in this reporter's local terms
            hi: End of the child's slice, in this reporter's local terms
        """
        return ProgressReporter(
            self._callback,
            lo=self._to_root(lo),
            hi=self._to_root(hi),
            _shared=self._shared,
        )

    def _to_root(self, percent: float) -> float:
        percent = min(max(percent, 0.0), 100.0)
        return self.lo + (self.hi - self.lo) * percent / 100.0

    def report(self, percent: float) -> None:
        """Report local progress; values below the high-water mark are dropped."""
        value = int(round(self._to_root(percent)))
        if self._shared["started"] and value <= self._shared["current"]:
            return
        self._shared["current"] = value
        self._shared["started"] = True

        if self._callback is None:
            return
        try:
            self._callback(value)
        except Exception as e:
            # Progress sinks must never break the operation they observe
            logger.warning(f"Progress callback failed at {value}%: {e}")

    def complete(self) -> None:
        self.report(100)

    __call__ = report


def as_reporter(progress: Union[ProgressReporter, ProgressCallback, None]) -> ProgressReporter:
    """Wrap a bare callback (or nothing) in a root ProgressReporter."""
    if isinstance(progress, ProgressReporter):
        return progress
    return ProgressReporter(progress)


def chunk(items: Sequence[T], size: int) -> List[List[T]]:
    """Split items into ordered groups of at most `size`."""
    if size < 1:
        raise ValueError("Batch size must be at least 1")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


async def run_batches(
    items: Sequence[T],
    batch_size: int,
    delay_seconds: float,
    unit_of_work: Callable[[List[T]], Awaitable[List[R]]],
    on_progress: Union[ProgressReporter, ProgressCallback, None] = None,
) -> List[R]:
    """
    Run an async unit of work over fixed-size groups, one group at a time.

    Args:
        items: Items to process
        batch_size: Maximum items per group
        delay_seconds: Pause between groups (not after the last one)
        unit_of_work: Coroutine taking a group and returning its results
        on_progress: Receives round(100 * groups_done / total_groups)

    Returns:
        Concatenated results in group order

    Errors raised by unit_of_work propagate; there are no retries here.
    """
    reporter = as_reporter(on_progress)
    batches = chunk(items, batch_size)
    total = len(batches)
    results: List[R] = []

    if total == 0:
        reporter.complete()
        return results

    for index, batch in enumerate(batches):
        results.extend(await unit_of_work(batch))

        reporter.report(round(100 * (index + 1) / total))
        logger.debug(f"Batch {index + 1}/{total} done ({len(batch)} items)")

        if index < total - 1 and delay_seconds > 0:
            await asyncio.sleep(delay_seconds)

    return results
