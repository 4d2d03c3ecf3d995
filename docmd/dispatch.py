"""Context handed to two-argument handlers."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import TYPE_CHECKING, Any

from docmd._validators import ensure_service, is_service
from docmd.errors import UnsupportedValueError
from docmd.execution import ExecutionRecord, Scope
from docmd.types import Command

if TYPE_CHECKING:
    from docmd.interpreter import CommandInterpreter
    from docmd.registry import Link


class DispatchContext:
    """
    Capabilities of one handler invocation.

    ``execute`` and ``iterate`` re-enter the interpreter in a child scope. Given
    a ``subcontext``, the child scope binds that object as this handler's
    backend instance for the nested interpretation only. ``next`` runs the same
    command on the following backend of the group, or is ``None`` for the last
    one.
    """

    __slots__ = ("_interpreter", "_link", "_command", "_scope")

    def __init__(
        self,
        interpreter: CommandInterpreter,
        link: Link,
        command: Command,
        scope: Scope,
    ) -> None:
        self._interpreter = interpreter
        self._link = link
        self._command = command
        self._scope = scope

    @property
    def command(self) -> Command:
        return self._command

    @property
    def payload(self) -> Any:
        return self._command.payload

    @property
    def backend(self) -> Any:
        """The backend instance this handler is bound to in the current scope."""
        return self._scope.instance_for(self._link.slot, self._link.backend)

    @property
    def execution(self) -> ExecutionRecord:
        return self._scope.record

    @property
    def next(self) -> Callable[[], Awaitable[Any]] | None:
        following = self._link.next
        if following is None:
            return None
        interpreter = self._interpreter
        command = self._command
        scope = self._scope

        def call_next() -> Awaitable[Any]:
            return interpreter._invoke(following, command, scope)

        return call_next

    def _child_scope(self, subcontext: Any) -> Scope:
        if subcontext is None:
            return self._scope.nested()
        return self._scope.fork(self._link.slot, subcontext)

    async def execute(self, value: Any, subcontext: Any = None) -> Any:
        """Execute a command or service from inside this handler."""
        scope = self._child_scope(subcontext)
        interpreter = self._interpreter
        if isinstance(value, Command):
            return await interpreter._dispatch(value, scope)
        if is_service(value):
            return await interpreter._frame_dispatch(self._command.frame, interpreter._run(value, scope))
        raise UnsupportedValueError(
            f"cannot execute value of unsupported shape: {type(value).__name__}"
        )

    def iterate(self, service: Any, subcontext: Any = None) -> AsyncGenerator[Any, Any]:
        """Drive a service from inside this handler, streaming its literal yields."""
        ensure_service(service, name="service")
        return self._interpreter._steps(service, self._child_scope(subcontext))

    def __repr__(self) -> str:
        return (
            f"DispatchContext(command={self._command.type!r}, "
            f"index={self._link.index}, execution={self._scope.record.id})"
        )


__all__ = ["DispatchContext"]
