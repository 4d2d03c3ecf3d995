"""
Backends that route each dispatch to one of several lazily created backends.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
from collections.abc import Callable, Hashable, Iterable, Mapping
from typing import Any

from docmd._validators import ensure_callable, ensure_command_type
from docmd.backend import get_commands
from docmd.dispatch import DispatchContext
from docmd.errors import ConfigurationError, HandlerRegistryError
from docmd.registry import connector_for
from docmd.types import Command

logger = logging.getLogger(__name__)


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class MultiplexBackend:
    """
    Route each dispatch to a backend selected by key.

    ``select_backend(payload, command_type)`` returns the key of a dispatch.
    ``create_backend(key)`` returns the backend (or list of chained backends)
    for a key; it is called at most once per key, even when the first
    dispatches for a key run concurrently. Both may be sync or async.

    Example:
        >>> tenants = MultiplexBackend(
        ...     lambda payload, command_type: payload["tenant"],
        ...     lambda tenant: TenantStore(tenant),
        ...     ["get", "put"],
        ... )
    """

    def __init__(
        self,
        select_backend: Callable[[Any, str], Any],
        create_backend: Callable[[Any], Any],
        supported_commands: Iterable[str],
    ) -> None:
        ensure_callable(select_backend, name="select_backend")
        ensure_callable(create_backend, name="create_backend")
        self._select_backend = select_backend
        self._create_backend = create_backend
        self._commands = sorted(set(supported_commands))
        for command_type in self._commands:
            ensure_command_type(command_type, name="supported command")
        self._backends: dict[Hashable, asyncio.Future[Any]] = {}

    def command_handlers(self) -> Mapping[str, Callable[..., Any]]:
        return {
            command_type: functools.partial(self._forward, command_type)
            for command_type in self._commands
        }

    async def _forward(self, command_type: str, payload: Any, ctx: DispatchContext) -> Any:
        key = await _resolve(self._select_backend(payload, command_type))
        if key is None:
            raise ConfigurationError(f"No backend was selected for command {command_type!r}")
        backend = await self._backend_for(key)
        return await ctx.execute(Command(command_type, payload, backend=backend))

    async def _backend_for(self, key: Hashable) -> Any:
        creation = self._backends.get(key)
        if creation is None:
            creation = asyncio.ensure_future(self._create(key))
            self._backends[key] = creation
            creation.add_done_callback(functools.partial(self._evict_failed, key))
        return await asyncio.shield(creation)

    async def _create(self, key: Hashable) -> Any:
        created = await _resolve(self._create_backend(key))
        if not created:
            raise ConfigurationError(f"No backend was created for {key!r}")
        logger.debug("created backend %r for key %r", created, key)
        if not isinstance(created, (list, tuple)):
            created = [created]
        # One connector per key, so the interpreter connects each key once.
        return connector_for(created)

    def _evict_failed(self, key: Hashable, creation: asyncio.Future[Any]) -> None:
        if creation.cancelled() or creation.exception() is not None:
            if self._backends.get(key) is creation:
                del self._backends[key]

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._commands!r})"


class CommandMultiplexBackend(MultiplexBackend):
    """Route each command type to the backend that declares it."""

    def __init__(self, *backends: Any) -> None:
        if not backends:
            raise HandlerRegistryError("CommandMultiplexBackend needs at least one backend")
        routes: dict[str, int] = {}
        for index, backend in enumerate(backends):
            for command_type in get_commands(backend):
                routes[command_type] = index
        self._routes = routes
        self._targets = tuple(backends)
        super().__init__(self._select, self._targets.__getitem__, routes)

    def _select(self, payload: Any, command_type: str) -> int:
        return self._routes[command_type]


__all__ = ["CommandMultiplexBackend", "MultiplexBackend"]
