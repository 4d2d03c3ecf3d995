"""
Standard command vocabulary.

These command types are bound on every interpreter and cannot be registered
by user backends:

- ``PARALLEL``: run a list of commands or services concurrently.
- ``ITERATE``: drive a service lazily and stream its literal yields.
- ``MAP``: lazily map a collection through an effect-producing function.
- ``AWAIT``: await an awaitable.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from docmd import utils
from docmd._validators import (
    ensure_awaitable,
    ensure_callable,
    ensure_int,
    ensure_iterable,
    ensure_optional_int,
    ensure_service,
)
from docmd.stack_frame import command_with_frame
from docmd.types import BackendRef, Command, MapPayload, Service

PARALLEL = "PARALLEL"
ITERATE = "ITERATE"
MAP = "MAP"
AWAIT = "AWAIT"

STANDARD_COMMANDS = (AWAIT, ITERATE, MAP, PARALLEL)


@command_with_frame
def command(type: str, payload: Any = None, backend: BackendRef | None = None) -> Command:
    """Build a command of any type."""
    return Command(type, payload, backend=backend)


@command_with_frame
def parallel(values: Iterable[Any]) -> Command:
    """Run commands or services concurrently; the result lists them positionally."""
    ensure_iterable(values, name="values")
    return Command(PARALLEL, list(values))


@command_with_frame
def iterate(service: Service) -> Command:
    """Stream the literal values a service yields as a bounded sequence."""
    ensure_service(service, name="service")
    return Command(ITERATE, service)


@command_with_frame
def map_(
    collection: Iterable[Any],
    iteratee: Callable[[Any], Any],
    concurrency: int | None = None,
    read_ahead: int | None = None,
) -> Command:
    """
    Lazily execute ``iteratee(item)`` for each item of ``collection``.

    Args:
        collection: Sync or async iterable of items.
        iteratee: Returns a command or service for one item.
        concurrency: Maximum number of items executing at once.
        read_ahead: Maximum number of buffered results (default ``concurrency * 4``).
    """
    ensure_iterable(collection, name="collection", allow_async=True)
    ensure_callable(iteratee, name="iteratee")
    if concurrency is None:
        concurrency = utils.DEFAULT_CONCURRENCY
    ensure_int(concurrency, name="concurrency")
    ensure_optional_int(read_ahead, name="read_ahead")
    return Command(MAP, MapPayload(collection, iteratee, concurrency, read_ahead))


@command_with_frame
def await_(awaitable: Awaitable[Any]) -> Command:
    """Await a coroutine, task or future."""
    ensure_awaitable(awaitable, name="awaitable")
    return Command(AWAIT, awaitable)


# CamelCase aliases
Parallel = parallel
Iterate = iterate
Map = map_
Await = await_


__all__ = [
    "AWAIT",
    "Await",
    "ITERATE",
    "Iterate",
    "MAP",
    "Map",
    "PARALLEL",
    "Parallel",
    "STANDARD_COMMANDS",
    "await_",
    "command",
    "iterate",
    "map_",
    "parallel",
]
