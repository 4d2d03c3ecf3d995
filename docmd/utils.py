"""
Utility functions and environment configuration for the docmd library.
"""

from __future__ import annotations

import asyncio
import linecache
import os
import sys

from docmd.types import Frame, FrameEntry


def _is_site_package(path: str) -> bool:
    normalized = path.replace("\\", "/").lower()
    return "/site-packages/" in normalized


def _is_stdlib(path: str) -> bool:
    normalized = path.replace("\\", "/").lower()
    if normalized.startswith("<"):
        return False
    return (
        "/lib/python" in normalized
        or "/frameworks/python.framework" in normalized
        or "/.local/share/uv/python" in normalized
    )


_PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__)) + os.sep


def _is_docmd_internal(path: str) -> bool:
    return os.path.abspath(path).startswith(_PACKAGE_DIR)


def _is_user_frame(path: str) -> bool:
    if path.startswith("<"):
        return True
    return not (_is_site_package(path) or _is_stdlib(path) or _is_docmd_internal(path))


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").lower() in ("1", "true", "yes")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


# Environment variable to enable diagnostic frames on commands. Read once at
# import; modules select their implementations from it at import time.
DIAGNOSTICS_ENABLED = _env_flag("DOCMD_DEBUG")

# Default number of simultaneously pending operations in a bounded sequence.
DEFAULT_CONCURRENCY = _env_int("DOCMD_CONCURRENCY", 8)

# Maximum number of caller frames kept in a captured frame.
MAX_FRAME_DEPTH = 8


def capture_frame(skip_frames: int = 2) -> Frame | None:
    """
    Capture the call site that created a command.

    Args:
        skip_frames: Number of frames to skip (default 2 to skip this function and
            the command-constructor wrapper)

    Returns:
        Frame with the creation location and the user frames above it, or ``None``
        when the interpreter does not expose ``sys._getframe``.
    """
    getframe = getattr(sys, "_getframe", None)
    if getframe is None:
        return None

    try:
        frame = getframe(skip_frames)
    except ValueError:
        return None

    # Skip frames inside the library so the marker points at user code.
    while frame is not None and _is_docmd_internal(frame.f_code.co_filename):
        frame = frame.f_back
    if frame is None:
        return None

    filename = frame.f_code.co_filename
    line = frame.f_lineno
    stack: list[FrameEntry] = []
    current = frame.f_back
    while current is not None and len(stack) < MAX_FRAME_DEPTH:
        current_filename = current.f_code.co_filename
        if _is_user_frame(current_filename):
            stack.append(
                FrameEntry(
                    filename=current_filename,
                    line=current.f_lineno,
                    function=current.f_code.co_name,
                    code=linecache.getline(current_filename, current.f_lineno).strip() or None,
                )
            )
        current = current.f_back

    return Frame(
        filename=filename,
        line=line,
        function=frame.f_code.co_name,
        code=linecache.getline(filename, line).strip() or None,
        stack=tuple(stack),
    )


async def yield_to_event_loop() -> None:
    """Give every other ready task on the loop a chance to run.

    Awaiting an already-resolved value does not suspend, so a chain of purely
    synchronous handlers would otherwise never let sibling tasks progress.
    """
    await asyncio.sleep(0)


__all__ = [
    "DEFAULT_CONCURRENCY",
    "DIAGNOSTICS_ENABLED",
    "MAX_FRAME_DEPTH",
    "capture_frame",
    "yield_to_event_loop",
]
