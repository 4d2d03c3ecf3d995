"""Runtime validators for command construction and registration arguments."""

from __future__ import annotations

import inspect
from collections.abc import AsyncIterable, Awaitable, Hashable, Iterable

from docmd.errors import InvalidCommandError, UnsupportedValueError

# Prefix reserved for internal routing keys; user command types may not use it.
RESERVED_PREFIX = "_"


def _type_name(value: object) -> str:
    return type(value).__name__


def is_service(value: object) -> bool:
    """Check if value is a generator or async generator object."""
    return inspect.isgenerator(value) or inspect.isasyncgen(value)


def ensure_str(value: object, *, name: str) -> None:
    if not isinstance(value, str):
        raise TypeError(f"{name} must be str, got {_type_name(value)}")


def ensure_command_type(value: object, *, name: str) -> None:
    ensure_str(value, name=name)
    if not value:
        raise InvalidCommandError(f"{name} must not be empty")
    if value.startswith(RESERVED_PREFIX):
        raise InvalidCommandError(
            f'{name} "{value}" must not start with {RESERVED_PREFIX}'
        )


def ensure_hashable(value: object, *, name: str) -> None:
    if not isinstance(value, Hashable):
        raise TypeError(f"{name} must be hashable, got {_type_name(value)}")
    try:
        hash(value)
    except TypeError as exc:
        raise TypeError(f"{name} must be hashable, got {_type_name(value)}") from exc


def ensure_callable(value: object, *, name: str) -> None:
    if not callable(value):
        raise TypeError(f"{name} must be callable, got {_type_name(value)}")


def ensure_service(value: object, *, name: str) -> None:
    if is_service(value):
        return
    hint = ""
    if inspect.isgeneratorfunction(value) or inspect.isasyncgenfunction(value):
        hint = " (call the generator function to create the service)"
    raise UnsupportedValueError(
        f"{name} must be a generator or async generator, got {_type_name(value)}{hint}"
    )


def ensure_iterable(value: object, *, name: str, allow_async: bool = False) -> None:
    accepted = (Iterable, AsyncIterable) if allow_async else Iterable
    if not isinstance(value, accepted):
        raise TypeError(f"{name} must be iterable, got {_type_name(value)}")


def ensure_awaitable(value: object, *, name: str) -> None:
    if not isinstance(value, Awaitable):
        raise TypeError(f"{name} must be Awaitable, got {_type_name(value)}")


def ensure_int(value: object, *, name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be int, got {_type_name(value)}={value!r}")


def ensure_optional_int(value: object | None, *, name: str) -> None:
    if value is not None:
        ensure_int(value, name=name)


__all__ = [
    "RESERVED_PREFIX",
    "ensure_awaitable",
    "ensure_callable",
    "ensure_command_type",
    "ensure_hashable",
    "ensure_int",
    "ensure_iterable",
    "ensure_optional_int",
    "ensure_service",
    "ensure_str",
    "is_service",
]
