from __future__ import annotations

import functools
from collections.abc import Callable, Mapping
from typing import Any

from docmd.backend import get_commands
from docmd.dispatch import DispatchContext
from docmd.errors import HandlerRegistryError
from docmd.registry import connector_for
from docmd.types import Command


class ChainBackend:
    """
    Several backends used as one.

    Declares the commands of the first backend. Each dispatch re-executes the
    command against the chain of all backends, which the interpreter connects
    the first time and reuses afterwards.
    """

    def __init__(self, *backends: Any) -> None:
        if not backends:
            raise HandlerRegistryError("ChainBackend needs at least one backend")
        # Chains are memoized by the identity of the connector.
        self._backends = tuple(backends)
        self._connector = connector_for(self._backends)
        self._commands = get_commands(backends[0])

    @property
    def backends(self) -> tuple[Any, ...]:
        return self._backends

    def command_handlers(self) -> Mapping[str, Callable[..., Any]]:
        return {
            command_type: functools.partial(self._forward, command_type)
            for command_type in self._commands
        }

    async def _forward(self, command_type: str, payload: Any, ctx: DispatchContext) -> Any:
        return await ctx.execute(Command(command_type, payload, backend=self._connector))

    def __repr__(self) -> str:
        names = ", ".join(type(backend).__name__ for backend in self._backends)
        return f"ChainBackend({names})"


__all__ = ["ChainBackend"]
