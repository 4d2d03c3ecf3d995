"""
Backend declaration.

A backend is the set of handlers implementing some command types. It can take
one of three shapes:

- an instance of a :class:`Backend` subclass whose handler methods are marked
  with :func:`handler`;
- a mapping of command type to handler function;
- any object with a ``command_handlers()`` method returning such a mapping.

Handlers take ``(payload)`` or ``(payload, ctx)``.

Example:
    >>> class Store(Backend):
    ...     def __init__(self):
    ...         self.items = {}
    ...
    ...     @handler
    ...     def get(self, key):
    ...         return self.items.get(key)
    ...
    ...     @handler("put")
    ...     def put_item(self, payload):
    ...         self.items[payload["id"]] = payload["value"]
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, TypeVar, overload

from docmd._validators import ensure_callable, ensure_command_type
from docmd.errors import HandlerRegistryError

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

_COMMAND_MARK = "__docmd_command__"

# Handlers never take more than (payload, ctx).
MAX_ARITY = 2


@overload
def handler(command_type: F) -> F: ...


@overload
def handler(command_type: str | None = None) -> Callable[[F], F]: ...


def handler(command_type: Any = None) -> Any:
    """
    Mark a :class:`Backend` method as the handler of a command type.

    Used bare, the command type is the method name. Called with a string, that
    string is the command type.
    """
    if callable(command_type):
        function = command_type
        ensure_command_type(function.__name__, name="handler name")
        setattr(_unwrap(function), _COMMAND_MARK, function.__name__)
        return function

    def decorate(function: F) -> F:
        name = command_type if command_type is not None else function.__name__
        ensure_command_type(name, name="command type")
        setattr(_unwrap(function), _COMMAND_MARK, name)
        return function

    return decorate


def _unwrap(function: Any) -> Any:
    if isinstance(function, (staticmethod, classmethod)):
        return function.__func__
    return function


def _declared_command(attribute: Any) -> str | None:
    return getattr(_unwrap(attribute), _COMMAND_MARK, None)


class Backend:
    """
    Base class for backends declared with :func:`handler` methods.

    Declarations are collected per class when it is defined and are inherited.
    Overriding a handler method in a subclass keeps its command type.
    """

    __handlers__: Mapping[str, str] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        declared: dict[str, str] = {}
        for klass in reversed(cls.__mro__):
            for name, attribute in vars(klass).items():
                command_type = _declared_command(attribute)
                if command_type is None:
                    continue
                for existing_type, existing_name in list(declared.items()):
                    if existing_name == name:
                        del declared[existing_type]
                declared[command_type] = name
        cls.__handlers__ = declared


@dataclass(frozen=True)
class HandlerSpec:
    """
    Handler for one command type of a backend.

    ``rebindable`` handlers are plain functions declared on a :class:`Backend`
    subclass and are called with the scope's backend instance as ``self``.
    """

    function: Callable[..., Any]
    rebindable: bool
    arity: int


def handler_arity(function: Callable[..., Any], *, rebindable: bool = False) -> int:
    """Return how many of (payload, ctx) a handler accepts."""
    try:
        signature = inspect.signature(function)
    except (TypeError, ValueError):
        # Builtins without a signature get the payload only.
        return 1
    positional = 0
    for parameter in signature.parameters.values():
        if parameter.kind is inspect.Parameter.VAR_POSITIONAL:
            positional = MAX_ARITY + (1 if rebindable else 0)
            break
        if parameter.kind in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
        ):
            positional += 1
    if rebindable:
        positional -= 1
    if positional > MAX_ARITY:
        raise HandlerRegistryError(
            f"handler {getattr(function, '__qualname__', function)!r} takes {positional} "
            f"arguments; handlers take (payload) or (payload, ctx)"
        )
    return max(positional, 0)


def _backend_handlers(backend: Backend) -> dict[str, HandlerSpec]:
    table: dict[str, HandlerSpec] = {}
    cls = type(backend)
    for command_type, name in cls.__handlers__.items():
        static = inspect.getattr_static(cls, name)
        if isinstance(static, (staticmethod, classmethod)):
            function = getattr(backend, name)
            table[command_type] = HandlerSpec(function, False, handler_arity(function))
        else:
            function = getattr(cls, name)
            ensure_callable(function, name=f"{cls.__name__}.{name}")
            table[command_type] = HandlerSpec(
                function, True, handler_arity(function, rebindable=True)
            )
    return table


def _mapping_handlers(handlers: Mapping[str, Any], owner: object) -> dict[str, HandlerSpec]:
    table: dict[str, HandlerSpec] = {}
    for command_type, function in handlers.items():
        ensure_command_type(command_type, name="command type")
        if not callable(function):
            raise HandlerRegistryError(
                f"handler for {command_type!r} on {type(owner).__name__} must be callable, "
                f"got {type(function).__name__}"
            )
        table[command_type] = HandlerSpec(function, False, handler_arity(function))
    return table


def handler_table(backend: Any) -> dict[str, HandlerSpec]:
    """Return the handlers a backend declares, keyed by command type."""
    if isinstance(backend, Backend):
        return _backend_handlers(backend)
    if isinstance(backend, Mapping):
        return _mapping_handlers(backend, backend)
    command_handlers = getattr(backend, "command_handlers", None)
    if callable(command_handlers):
        return _mapping_handlers(command_handlers(), backend)
    raise HandlerRegistryError(
        f"{type(backend).__name__} is not a backend: expected a Backend subclass instance, "
        f"a mapping of command handlers or an object with command_handlers()"
    )


def is_backend(value: object) -> bool:
    return (
        isinstance(value, (Backend, Mapping))
        or callable(getattr(value, "command_handlers", None))
    )


def get_commands(backend: Any) -> list[str]:
    """Return the sorted command types a backend handles."""
    return sorted(handler_table(backend))


__all__ = [
    "Backend",
    "HandlerSpec",
    "MAX_ARITY",
    "get_commands",
    "handler",
    "handler_arity",
    "handler_table",
    "is_backend",
]
