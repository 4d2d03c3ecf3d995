"""
Handler registry and chain composition.

Backends registered together form a group. For each command type a group is
connected into a linked list of :class:`Link` objects, right to left, so that
a handler's ``ctx.next()`` runs the same command on the following backend of
its group. Each connected backend gets its own slot id; scopes may override
the instance bound to a slot (see :mod:`docmd.execution`).
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import itertools
import logging
import weakref
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from docmd._vendor import FrozenDict
from docmd.backend import HandlerSpec, handler_table, is_backend
from docmd.errors import ConfigurationError, HandlerRegistryError, UnhandledCommandError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class Link:
    """One backend's handler for a command type, and the link after it."""

    command_type: str
    slot: int
    backend: Any
    function: Callable[..., Any]
    arity: int
    rebindable: bool
    index: int
    next: Link | None = None

    @property
    def statistic_key(self) -> str:
        return f"{self.command_type}.{self.index}"

    def links(self) -> Iterator[Link]:
        link: Link | None = self
        while link is not None:
            yield link
            link = link.next


class Chain(Mapping[str, Link]):
    """Immutable mapping of command type to the first link handling it."""

    __slots__ = ("_links",)

    def __init__(self, links: Mapping[str, Link] | None = None) -> None:
        self._links: FrozenDict[str, Link] = FrozenDict(links or {})

    def __getitem__(self, command_type: str) -> Link:
        return self._links[command_type]

    def __iter__(self) -> Iterator[str]:
        return iter(self._links)

    def __len__(self) -> int:
        return len(self._links)

    def commands(self) -> list[str]:
        return sorted(self._links)

    def merge(self, other: Chain) -> Chain:
        return Chain({**self._links, **other._links})

    def __repr__(self) -> str:
        return f"Chain({self.commands()!r})"


class HandlerRegistry:
    """Holds the registered chain of an interpreter and resolves backend references."""

    def __init__(self) -> None:
        self._slots = itertools.count()
        self._chain = Chain()
        # id(reference) -> (finalizer, chain or in-flight connection)
        self._forks: dict[int, tuple[weakref.finalize, Chain | asyncio.Future[Chain]]] = {}

    @property
    def chain(self) -> Chain:
        return self._chain

    def commands(self) -> list[str]:
        return self._chain.commands()

    def connect(self, *backends: Any) -> Chain:
        """
        Connect backends into a chain exposing the commands of the first one.

        Args:
            *backends: Backends in chain order; the first handles each command
                first and reaches the others through ``ctx.next()``.

        Raises:
            HandlerRegistryError: If no backend is given, a backend declares no
                commands or a handler takes more than two arguments.
        """
        if not backends:
            raise HandlerRegistryError("Must provide at least one backend")

        tables: list[dict[str, HandlerSpec]] = []
        for backend in backends:
            table = handler_table(backend)
            if not table:
                raise HandlerRegistryError(f"{type(backend).__name__} declares no commands")
            tables.append(table)

        following: dict[str, Link] = {}
        for index in range(len(backends) - 1, -1, -1):
            backend = backends[index]
            slot = next(self._slots)
            links: dict[str, Link] = {}
            for command_type, spec in tables[index].items():
                links[command_type] = Link(
                    command_type=command_type,
                    slot=slot,
                    backend=backend,
                    function=spec.function,
                    arity=spec.arity,
                    rebindable=spec.rebindable,
                    index=index,
                    next=following.get(command_type),
                )
            following = links
        return Chain(following)

    def use(self, *backends: Any) -> Chain:
        """Connect a backend group and bind its commands."""
        if not backends:
            raise HandlerRegistryError("Must provide at least one backend")
        commands = sorted(handler_table(backends[0]))
        bound = [command_type for command_type in commands if command_type in self._chain]
        if bound:
            raise HandlerRegistryError(f"Commands already bound: {', '.join(bound)}")

        chain = self.connect(*backends)
        self._chain = self._chain.merge(chain)
        logger.debug(
            "bound commands %s to %s",
            chain.commands(),
            [type(backend).__name__ for backend in backends],
        )
        return chain

    def lookup(self, command_type: str, chain: Chain | None = None) -> Link:
        links = self._chain if chain is None else chain
        link = links.get(command_type)
        if link is None:
            raise UnhandledCommandError(command_type)
        return link

    async def resolve(self, reference: Any) -> Chain:
        """
        Resolve a command's backend reference to a connected chain.

        Backend objects and connectors are memoized by identity for as long as
        they are alive, so a long-lived reference is connected once however
        often it is dispatched. Connectors are called with :meth:`connect`;
        concurrent first dispatches share the in-flight connection. A failed
        connection is not memoized. Lists and tuples of backends are connected
        on every dispatch; use :func:`connector_for` for a reusable group.
        """
        if inspect.isawaitable(reference):
            reference = await reference
        if isinstance(reference, Chain):
            return reference
        if isinstance(reference, (list, tuple)):
            return self.connect(*reference)

        key = id(reference)
        cached = self._forks.get(key)
        if cached is not None:
            resolved = cached[1]
            if isinstance(resolved, Chain):
                return resolved
            return await asyncio.shield(resolved)

        if is_backend(reference):
            chain = self.connect(reference)
            self._remember(key, reference, chain)
            return chain
        if callable(reference):
            connection = asyncio.ensure_future(self._run_connector(reference))
            if self._remember(key, reference, connection):
                connection.add_done_callback(functools.partial(self._settle_fork, key))
            return await asyncio.shield(connection)
        raise ConfigurationError(
            f"command.backend must be a backend, a list of backends or a connector, "
            f"got {type(reference).__name__}"
        )

    def _remember(self, key: int, reference: Any, resolved: Chain | asyncio.Future[Chain]) -> bool:
        try:
            # Evicted when the reference is collected, before its id can be reused.
            finalizer = weakref.finalize(reference, self._forks.pop, key, None)
        except TypeError:
            return False
        finalizer.atexit = False
        self._forks[key] = (finalizer, resolved)
        return True

    async def _run_connector(self, connector: Callable[..., Any]) -> Chain:
        result = connector(self.connect)
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, Chain):
            return result
        if isinstance(result, (list, tuple)):
            return self.connect(*result)
        if is_backend(result):
            return self.connect(result)
        raise ConfigurationError(
            f"connector {getattr(connector, '__qualname__', connector)!r} must return a chain "
            f"or backends, got {type(result).__name__}"
        )

    def _settle_fork(self, key: int, connection: asyncio.Future[Chain]) -> None:
        cached = self._forks.get(key)
        if cached is None or cached[1] is not connection:
            return
        finalizer = cached[0]
        if connection.cancelled() or connection.exception() is not None:
            finalizer.detach()
            del self._forks[key]
            logger.debug("evicted failed connection for reference %#x", key)
        else:
            self._forks[key] = (finalizer, connection.result())


def _connect_group(backends: tuple[Any, ...], connect: Callable[..., Chain]) -> Chain:
    return connect(*backends)


def connector_for(backends: Iterable[Any]) -> Callable[[Callable[..., Chain]], Chain]:
    """
    Return a connector for a group of backends.

    Unlike a list, the returned connector is a stable reference: keep it and
    pass it as ``Command.backend`` to have the group connected once per
    interpreter.
    """
    return functools.partial(_connect_group, tuple(backends))


__all__ = ["Chain", "HandlerRegistry", "Link", "connector_for"]
