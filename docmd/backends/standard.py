"""Handlers for the standard command vocabulary."""

from __future__ import annotations

import asyncio
from typing import Any

from docmd.backend import Backend, handler
from docmd.commands import AWAIT, ITERATE, MAP, PARALLEL
from docmd.dispatch import DispatchContext
from docmd.sequence import BoundedSequence, map_source, to_bounded_sequence
from docmd.types import MapPayload, Service


class StandardBackend(Backend):
    """Bound on every interpreter before any user backend."""

    @handler(PARALLEL)
    async def parallel(self, values: list[Any], ctx: DispatchContext) -> list[Any]:
        """
        Execute every value concurrently and wait for all of them to settle.

        Results are positional. If any value fails, the first failure to
        complete is raised once all values have settled.
        """
        tasks = [asyncio.ensure_future(ctx.execute(value)) for value in values]
        if not tasks:
            return []
        failures: list[BaseException] = []

        def record(task: asyncio.Future[Any]) -> None:
            if task.cancelled():
                return
            error = task.exception()
            if error is not None:
                failures.append(error)

        for task in tasks:
            task.add_done_callback(record)
        try:
            await asyncio.wait(tasks)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            raise
        if failures:
            raise failures[0]
        return [task.result() for task in tasks]

    @handler(ITERATE)
    def iterate(self, service: Service, ctx: DispatchContext) -> BoundedSequence[Any]:
        return to_bounded_sequence(ctx.iterate(service))

    @handler(MAP)
    def map(self, payload: MapPayload, ctx: DispatchContext) -> BoundedSequence[Any]:
        iteratee = payload.iteratee
        source = map_source(payload.collection, lambda item: ctx.execute(iteratee(item)))
        return to_bounded_sequence(source, payload.concurrency, payload.read_ahead)

    @handler(AWAIT)
    async def await_(self, awaitable: Any) -> Any:
        return await awaitable


__all__ = ["StandardBackend"]
