"""
Per-dispatch timing statistics.

An interpreter created with ``statistics=True`` records one sample per
dispatch under the command type (``"get"``) and one per chain link under the
command type and the link's position in its backend group (``"get.0"``,
``"get.1"``). Samples are taken by a sampler, an async callable
``sampler(fn, entry)`` that awaits ``fn()`` and adds a sample to ``entry``.

Two samplers are built in: ``"noop"`` records nothing and ``"diff"`` records
the wall-clock time until ``fn()`` resolves. A sampler that also counts time
spent in continuations that are not awaited (callbacks scheduled by the
handler) needs async-context instrumentation; pass it as a callable:
``CommandInterpreter(statistics=True, sampler=my_sampler)``.
"""

from __future__ import annotations

import math
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, TypeAlias, TypeVar

from loguru import logger

T = TypeVar("T")

NOOP = "noop"
DIFF = "diff"


class StatisticEntry:
    """Running count, sum, min, max and variance of duration samples (ms)."""

    __slots__ = ("count", "sum", "min", "max", "_square_sum")

    def __init__(self) -> None:
        self.count = 0
        self.sum = 0.0
        self.min = math.nan
        self.max = math.nan
        self._square_sum = 0.0

    @property
    def avg(self) -> float:
        if not self.count:
            return math.nan
        return self.sum / self.count

    @property
    def variance(self) -> float:
        if not self.count:
            return math.nan
        return self._square_sum / self.count - (self.sum / self.count) ** 2

    def add_sample(self, sample: float) -> None:
        self.count += 1
        self.sum += sample
        self.min = sample if math.isnan(self.min) else min(self.min, sample)
        self.max = sample if math.isnan(self.max) else max(self.max, sample)
        self._square_sum += sample**2

    async def add_call(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Await ``fn()`` and record its wall-clock duration."""
        return await diff_sampler(fn, self)

    def __repr__(self) -> str:
        return (
            f"StatisticEntry(count={self.count}, sum={self.sum:.3f}, "
            f"min={self.min:.3f}, max={self.max:.3f}, avg={self.avg:.3f})"
        )


Sampler: TypeAlias = Callable[[Callable[[], Awaitable[Any]], StatisticEntry], Awaitable[Any]]


async def noop_sampler(fn: Callable[[], Awaitable[T]], entry: StatisticEntry) -> T:
    return await fn()


async def diff_sampler(fn: Callable[[], Awaitable[T]], entry: StatisticEntry) -> T:
    start = time.perf_counter()
    try:
        return await fn()
    finally:
        entry.add_sample((time.perf_counter() - start) * 1000.0)


_SAMPLERS: dict[str, Sampler] = {
    NOOP: noop_sampler,
    DIFF: diff_sampler,
}


def get_sampler(sampler: str | Sampler) -> Sampler:
    """Return the sampler registered under ``sampler``, or ``sampler`` itself if callable."""
    if callable(sampler):
        return sampler
    try:
        return _SAMPLERS[sampler]
    except KeyError:
        raise ValueError(
            f"Sampler {sampler!r} is unknown; expected one of {sorted(_SAMPLERS)}"
        ) from None


def report_statistics(statistics: Mapping[str, StatisticEntry], *, title: str = "docmd statistics") -> None:
    """Log one line per statistic entry, slowest total first."""
    entries = sorted(statistics.items(), key=lambda item: item[1].sum, reverse=True)
    logger.info("{}: {} entries", title, len(entries))
    for key, entry in entries:
        if not entry.count:
            logger.info("  {:<24} count=0", key)
            continue
        logger.info(
            "  {:<24} count={} sum={:.3f}ms avg={:.3f}ms min={:.3f}ms max={:.3f}ms",
            key,
            entry.count,
            entry.sum,
            entry.avg,
            entry.min,
            entry.max,
        )


__all__ = [
    "DIFF",
    "NOOP",
    "Sampler",
    "StatisticEntry",
    "diff_sampler",
    "get_sampler",
    "noop_sampler",
    "report_statistics",
]
