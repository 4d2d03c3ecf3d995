"""
Bounded-concurrency, order-preserving async sequences.

:func:`to_bounded_sequence` turns a pull sequence of immediate values and
awaitables into an async iterator. Up to ``concurrency`` items are kept
running ahead of the consumer and up to ``read_ahead`` results are buffered,
while results are always emitted in source order.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import deque
from collections.abc import AsyncIterable, AsyncIterator, Callable, Iterable, Iterator
from types import TracebackType
from typing import Any, Generic, TypeVar

from docmd import utils

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _settle(item: Any) -> Any:
    if inspect.isawaitable(item):
        return await item
    return item


def _observe(slot: asyncio.Future[Any]) -> None:
    # Retrieves the failure; awaiting the slot still raises it.
    if not slot.cancelled() and slot.exception() is not None:
        logger.debug("sequence slot failed: %r", slot.exception())


def _log_discarded(slot: asyncio.Future[Any]) -> None:
    if slot.cancelled():
        return
    error = slot.exception()
    if error is not None:
        logger.warning("discarded failure of closed sequence: %r", error)


class BoundedSequence(AsyncIterator[T], Generic[T]):
    """
    Prefetching async iterator over a sync or async source.

    Every pulled item becomes a slot task that counts as in flight until it
    settles. Before and after taking a slot for the consumer the sequence pulls
    more items while fewer than ``concurrency`` slots are in flight, fewer than
    ``read_ahead`` slots are buffered and the source is not exhausted.

    A failed slot raises when it is consumed; failures of slots the consumer
    never reaches are logged instead of surfacing as unretrieved task
    exceptions. Closing the sequence stops pulling, closes the source and lets
    in-flight slots settle unobserved.
    """

    def __init__(
        self,
        source: Iterable[Any] | AsyncIterable[Any],
        concurrency: int | None = None,
        read_ahead: int | None = None,
    ) -> None:
        if concurrency is None:
            concurrency = utils.DEFAULT_CONCURRENCY
        if read_ahead is None:
            read_ahead = concurrency * 4
        self.concurrency = max(1, concurrency)
        self.read_ahead = max(1, read_ahead)
        self._source: Iterator[Any] | AsyncIterator[Any]
        if isinstance(source, AsyncIterable):
            self._source = aiter(source)
            self._is_async = True
        else:
            self._source = iter(source)
            self._is_async = False
        self._buffer: deque[asyncio.Future[Any]] = deque()
        # Includes the slot the consumer is currently awaiting.
        self._pending: set[asyncio.Future[Any]] = set()
        self._exhausted = False
        self._closed = False
        self.pulled = 0

    @property
    def in_flight(self) -> int:
        return sum(1 for slot in self._pending if not slot.done())

    def _can_pull(self) -> bool:
        return (
            not self._exhausted
            and not self._closed
            and self.in_flight < self.concurrency
            and len(self._buffer) < self.read_ahead
        )

    def _push_failure(self, error: BaseException) -> None:
        slot: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        slot.set_exception(error)
        slot.add_done_callback(_observe)
        self._buffer.append(slot)

    async def _fill(self) -> None:
        while self._can_pull():
            try:
                if self._is_async:
                    item = await anext(self._source)  # type: ignore[arg-type]
                else:
                    item = next(self._source)  # type: ignore[arg-type]
            except (StopIteration, StopAsyncIteration):
                self._exhausted = True
                return
            except Exception as exc:
                self._exhausted = True
                self._push_failure(exc)
                return
            if self._closed:
                # Closed while the pull was suspended.
                asyncio.ensure_future(_settle(item)).add_done_callback(_log_discarded)
                return
            self.pulled += 1
            slot = asyncio.ensure_future(_settle(item))
            self._pending.add(slot)
            slot.add_done_callback(self._pending.discard)
            slot.add_done_callback(_observe)
            self._buffer.append(slot)

    def __aiter__(self) -> BoundedSequence[T]:
        return self

    async def __anext__(self) -> T:
        if self._closed:
            raise StopAsyncIteration
        await self._fill()
        if not self._buffer:
            raise StopAsyncIteration
        slot = self._buffer.popleft()
        await self._fill()
        return await slot

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        while self._buffer:
            self._buffer.popleft().add_done_callback(_log_discarded)
        source = self._source
        if self._is_async:
            close = getattr(source, "aclose", None)
            if close is not None:
                await close()
        else:
            close = getattr(source, "close", None)
            if close is not None:
                close()

    async def athrow(self, error: BaseException) -> T:
        await self.aclose()
        raise error

    async def __aenter__(self) -> BoundedSequence[T]:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def collect(self) -> list[T]:
        """Consume the whole sequence into a list."""
        return [item async for item in self]


def to_bounded_sequence(
    source: Iterable[Any] | AsyncIterable[Any],
    concurrency: int | None = None,
    read_ahead: int | None = None,
) -> BoundedSequence[Any]:
    """
    Adapt ``source`` into an order-preserving prefetching async iterator.

    Args:
        source: Sync or async iterable of values or awaitables.
        concurrency: Maximum number of unsettled items (default from
            ``DOCMD_CONCURRENCY``, clamped to at least 1).
        read_ahead: Maximum number of buffered items (default
            ``concurrency * 4``, clamped to at least 1).
    """
    return BoundedSequence(source, concurrency, read_ahead)


async def _map_async(collection: AsyncIterable[Any], fn: Callable[[Any], Any]) -> AsyncIterator[Any]:
    async for item in collection:
        yield fn(item)


def map_source(
    collection: Iterable[Any] | AsyncIterable[Any], fn: Callable[[Any], Any]
) -> Iterator[Any] | AsyncIterator[Any]:
    """Lazily apply ``fn`` to each item of a sync or async collection."""
    if isinstance(collection, AsyncIterable):
        return _map_async(collection, fn)
    return (fn(item) for item in collection)


__all__ = ["BoundedSequence", "map_source", "to_bounded_sequence"]
