"""
Core data shapes for docmd.

This module has no internal dependencies beyond the validators: commands,
diagnostic frames and the payload of the standard ``MAP`` command.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable, Generator, Iterable
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, TypeAlias

from docmd._validators import RESERVED_PREFIX, ensure_command_type

if TYPE_CHECKING:
    from docmd.registry import Chain

# A service is a generator (or async generator) yielding commands.
Service: TypeAlias = Generator[Any, Any, Any] | AsyncGenerator[Any, Any]

# Handlers take (payload) or (payload, ctx).
Handler: TypeAlias = Callable[..., Any]

# The `connect` primitive handed to connectors.
Connect: TypeAlias = "Callable[..., Chain]"
Connector: TypeAlias = "Callable[[Connect], Chain | Awaitable[Chain]]"

# What a command may carry to override the registered chain for one dispatch.
BackendRef: TypeAlias = Any


# ============================================
# Diagnostic frames
# ============================================


@dataclass(frozen=True)
class FrameEntry:
    """One line of a captured call stack."""

    filename: str
    line: int
    function: str
    code: str | None = None

    def format(self) -> str:
        text = f'  File "{self.filename}", line {self.line}, in {self.function}'
        if self.code:
            text += f"\n    {self.code}"
        return text


@dataclass(frozen=True)
class Frame:
    """Synthetic call-site marker captured when a command is created."""

    filename: str
    line: int
    function: str
    code: str | None = None
    stack: tuple[FrameEntry, ...] = ()

    def format(self) -> str:
        """Render the frame like a traceback, most recent call last."""
        entries = [*reversed(self.stack), FrameEntry(self.filename, self.line, self.function, self.code)]
        return "\n".join(entry.format() for entry in entries)


# ============================================
# Commands
# ============================================


@dataclass(frozen=True)
class Command:
    """Self-describing request for a side effect.

    ``backend`` optionally names an alternate backend (or backends, or a
    connector) to resolve this one dispatch against. ``frame`` is only set
    when diagnostics are enabled.
    """

    type: str
    payload: Any = None
    backend: BackendRef | None = field(default=None, compare=False)
    frame: Frame | None = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        ensure_command_type(self.type, name="command.type")

    def with_frame(self, frame: Frame | None) -> Command:
        if frame is self.frame:
            return self
        return replace(self, frame=frame)


@dataclass(frozen=True)
class MapPayload:
    """Payload of the standard ``MAP`` command."""

    collection: Iterable[Any] | Any
    iteratee: Callable[[Any], Any]
    concurrency: int
    read_ahead: int | None = None


def is_command(value: object) -> bool:
    return isinstance(value, Command)


__all__ = [
    "RESERVED_PREFIX",
    "BackendRef",
    "Command",
    "Connect",
    "Connector",
    "Frame",
    "FrameEntry",
    "Handler",
    "MapPayload",
    "Service",
    "is_command",
]
