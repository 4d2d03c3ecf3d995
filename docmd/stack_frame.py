"""
Diagnostic call-site stitching for commands.

When ``DOCMD_DEBUG`` is set, every command built by a framed constructor
records the user frame that created it. If dispatching that command fails, the
frame is appended to the error as a ``From previous event:`` note, so the
displayed traceback shows both where the error was raised and where the
command was created. The error object, its type and its ``__traceback__`` are
left unchanged.

The implementations are chosen once at import time. With diagnostics off,
``command_with_frame`` returns the constructor itself and
``dispatch_with_frame`` simply returns the awaitable it was given.
"""

from __future__ import annotations

import functools
from collections.abc import Awaitable, Callable
from types import TracebackType
from typing import ParamSpec, TypeVar

from docmd import utils
from docmd.types import Command, Frame

P = ParamSpec("P")
T = TypeVar("T")

_ORIGINAL_TRACEBACK = "__docmd_original_traceback__"
_ATTACHED_FRAMES = "__docmd_attached_frames__"
_NOTE_HEADER = "From previous event:"


def original_traceback(error: BaseException) -> TracebackType | None:
    """Return the traceback the error carried before any frame was attached."""
    return getattr(error, _ORIGINAL_TRACEBACK, error.__traceback__)


def attach_frame(frame: Frame | None, error: BaseException) -> BaseException:
    """
    Append ``frame`` to the displayed trace of ``error``.

    The first call saves the error's traceback under a private attribute.
    Attaching the same frame to the same error again does nothing.
    """
    if frame is None:
        return error
    try:
        if not hasattr(error, _ORIGINAL_TRACEBACK):
            setattr(error, _ORIGINAL_TRACEBACK, error.__traceback__)
            setattr(error, _ATTACHED_FRAMES, [])
        attached: list[Frame] = getattr(error, _ATTACHED_FRAMES)
    except AttributeError:
        # Exceptions with __slots__ cannot carry extra attributes.
        return error
    if any(existing is frame for existing in attached):
        return error
    attached.append(frame)
    error.add_note(f"{_NOTE_HEADER}\n{frame.format()}")
    return error


def _framed_constructor(constructor: Callable[P, Command]) -> Callable[P, Command]:
    @functools.wraps(constructor)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> Command:
        command = constructor(*args, **kwargs)
        return command.with_frame(utils.capture_frame(skip_frames=2))

    return wrapper


def _plain_constructor(constructor: Callable[P, Command]) -> Callable[P, Command]:
    return constructor


async def _framed_dispatch(frame: Frame | None, awaitable: Awaitable[T]) -> T:
    try:
        return await awaitable
    except Exception as exc:
        attach_frame(frame, exc)
        raise


def _plain_dispatch(frame: Frame | None, awaitable: Awaitable[T]) -> Awaitable[T]:
    return awaitable


if utils.DIAGNOSTICS_ENABLED:
    command_with_frame = _framed_constructor
    dispatch_with_frame = _framed_dispatch
else:
    command_with_frame = _plain_constructor
    dispatch_with_frame = _plain_dispatch


__all__ = [
    "attach_frame",
    "command_with_frame",
    "dispatch_with_frame",
    "original_traceback",
]
