"""
Command interpreter for the docmd system.

This module contains the CommandInterpreter that drives services (generators
yielding commands) by dispatching each command through the registered
handler chain and resuming the service with the result.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import AsyncGenerator, Generator
from typing import Any

from docmd import stack_frame
from docmd._validators import ensure_service, is_service
from docmd.backends.standard import StandardBackend
from docmd.dispatch import DispatchContext
from docmd.errors import LiteralYieldError, UnsupportedValueError
from docmd.execution import Scope
from docmd.registry import Chain, HandlerRegistry, Link
from docmd.statistics import Sampler, StatisticEntry, get_sampler
from docmd.types import Command, Service
from docmd.utils import yield_to_event_loop

logger = logging.getLogger(__name__)

# Sentinel for "the service finished", distinct from a service yielding None
_DONE = object()


class _GeneratorDriver:
    """Uniform async access to a generator service."""

    __slots__ = ("_service", "result")

    def __init__(self, service: Generator[Any, Any, Any]) -> None:
        self._service = service
        self.result: Any = None

    async def send(self, value: Any) -> Any:
        try:
            return self._service.send(value)
        except StopIteration as stop:
            self.result = stop.value
            return _DONE

    async def throw(self, error: BaseException) -> Any:
        try:
            return self._service.throw(error)
        except StopIteration as stop:
            self.result = stop.value
            return _DONE

    async def close(self) -> None:
        self._service.close()


class _AsyncGeneratorDriver:
    """Uniform async access to an async generator service.

    Async generators cannot return a value, so their result is always ``None``.
    """

    __slots__ = ("_service", "result")

    def __init__(self, service: AsyncGenerator[Any, Any]) -> None:
        self._service = service
        self.result: Any = None

    async def send(self, value: Any) -> Any:
        try:
            return await self._service.asend(value)
        except StopAsyncIteration:
            return _DONE

    async def throw(self, error: BaseException) -> Any:
        try:
            return await self._service.athrow(error)
        except StopAsyncIteration:
            return _DONE

    async def close(self) -> None:
        await self._service.aclose()


_Driver = _GeneratorDriver | _AsyncGeneratorDriver


def _driver_for(service: Service) -> _Driver:
    if inspect.isasyncgen(service):
        return _AsyncGeneratorDriver(service)
    return _GeneratorDriver(service)


class CommandInterpreter:
    """
    Drives services by dispatching the commands they yield.

    Every interpreter handles the standard commands (``PARALLEL``, ``ITERATE``,
    ``MAP`` and ``AWAIT``); other commands are bound with :meth:`use`.

    Example:
        >>> store = {}
        >>> interpreter = CommandInterpreter().use({
        ...     "get": lambda key: store.get(key),
        ...     "put": lambda item: store.__setitem__(item["id"], item["value"]),
        ... })
        >>> def service():
        ...     yield Command("put", {"id": 1, "value": "x"})
        ...     return (yield Command("get", 1))
        >>> interpreter.run(service())
        'x'
    """

    def __init__(self, *, statistics: bool = False, sampler: str | Sampler = "diff") -> None:
        """Initialize the interpreter.

        Args:
            statistics: Record per-dispatch duration statistics.
            sampler: Name of a sampler (``"diff"`` or ``"noop"``) or an async
                callable ``sampler(fn, entry)``.
        """
        self._registry = HandlerRegistry()
        self._statistics: dict[str, StatisticEntry] | None = {} if statistics else None
        self._sampler = get_sampler(sampler)
        # Selected once; DOCMD_DEBUG is read when docmd.stack_frame is imported.
        self._frame_dispatch = stack_frame.dispatch_with_frame
        self._track(self._registry.use(StandardBackend()))

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def use(self, *backends: Any) -> CommandInterpreter:
        """
        Bind a group of backends.

        Backends given together are chained: the first one's commands are
        bound, and each of its handlers can reach the next backend with
        ``ctx.next()``.

        Raises:
            HandlerRegistryError: If no backend is given or one of the first
                backend's commands is already bound.
        """
        self._track(self._registry.use(*backends))
        return self

    def commands(self) -> list[str]:
        return self._registry.commands()

    def _track(self, chain: Chain) -> None:
        if self._statistics is None:
            return
        for command_type, first in chain.items():
            self._entry(command_type)
            for link in first.links():
                self._entry(link.statistic_key)

    def _entry(self, key: str) -> StatisticEntry:
        assert self._statistics is not None
        entry = self._statistics.get(key)
        if entry is None:
            entry = self._statistics[key] = StatisticEntry()
        return entry

    def statistics(self) -> dict[str, StatisticEntry]:
        """Return the statistic entries by key (empty unless enabled)."""
        if self._statistics is None:
            return {}
        return dict(self._statistics)

    # ------------------------------------------------------------------
    # Execution API
    # ------------------------------------------------------------------

    async def execute(self, value: Any) -> Any:
        """
        Execute a command or drive a service to completion.

        Returns:
            The command's result, or the service's return value.

        Raises:
            UnsupportedValueError: If ``value`` is neither a command nor a service.
            LiteralYieldError: If the service yields a value that is not a
                command or awaitable.
        """
        return await self._execute(value, Scope.root())

    def iterate(self, service: Service) -> AsyncGenerator[Any, Any]:
        """
        Drive a service, emitting the literal values it yields.

        Commands and awaitables yielded by the service are resolved in between.
        Values sent with ``asend`` are passed back into the service.
        """
        ensure_service(service, name="service")
        return self._steps(service, Scope.root())

    def run(self, value: Any) -> Any:
        """
        Execute ``value`` on a new event loop (synchronous interface).

        For async contexts (e.g. pytest async tests), use execute() instead.
        """
        return asyncio.run(self.execute(value))

    # ------------------------------------------------------------------
    # Internals used by DispatchContext
    # ------------------------------------------------------------------

    async def _execute(self, value: Any, scope: Scope) -> Any:
        if isinstance(value, Command):
            return await self._dispatch(value, scope)
        if is_service(value):
            return await self._run(value, scope)
        raise UnsupportedValueError(
            f"cannot execute value of unsupported shape: {type(value).__name__}"
        )

    async def _dispatch(self, command: Command, scope: Scope) -> Any:
        return await self._frame_dispatch(command.frame, self._dispatch_command(command, scope))

    async def _dispatch_command(self, command: Command, scope: Scope) -> Any:
        chain = None
        if command.backend is not None:
            chain = await self._registry.resolve(command.backend)
        link = self._registry.lookup(command.type, chain)
        logger.debug("dispatch %s (execution %d)", command.type, scope.record.id)
        if self._statistics is None:
            return await self._invoke(link, command, scope)
        return await self._sampler(
            lambda: self._invoke(link, command, scope), self._entry(command.type)
        )

    async def _invoke(self, link: Link, command: Command, scope: Scope) -> Any:
        if self._statistics is None:
            return await self._call(link, command, scope)
        return await self._sampler(
            lambda: self._call(link, command, scope), self._entry(link.statistic_key)
        )

    async def _call(self, link: Link, command: Command, scope: Scope) -> Any:
        args: tuple[Any, ...]
        if link.arity == 0:
            args = ()
        elif link.arity == 1:
            args = (command.payload,)
        else:
            args = (command.payload, DispatchContext(self, link, command, scope))
        if link.rebindable:
            result = link.function(scope.instance_for(link.slot, link.backend), *args)
        else:
            result = link.function(*args)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _run(self, service: Service, scope: Scope) -> Any:
        driver = _driver_for(service)
        steps = self._drive(driver, scope)
        try:
            async for literal in steps:
                raise LiteralYieldError(literal)
        finally:
            await steps.aclose()
        return driver.result

    def _steps(self, service: Service, scope: Scope) -> AsyncGenerator[Any, Any]:
        return self._drive(_driver_for(service), scope)

    async def _drive(self, driver: _Driver, scope: Scope) -> AsyncGenerator[Any, Any]:
        try:
            item = await driver.send(None)
            while item is not _DONE:
                try:
                    if isinstance(item, Command):
                        value = await self._dispatch(item, scope)
                    elif inspect.isawaitable(item):
                        value = await item
                    else:
                        value = yield item
                except Exception as exc:
                    await yield_to_event_loop()
                    item = await driver.throw(exc)
                    continue
                await yield_to_event_loop()
                item = await driver.send(value)
        finally:
            await driver.close()


__all__ = ["CommandInterpreter"]
