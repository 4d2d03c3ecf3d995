from __future__ import annotations

from typing import Any


class DocmdError(Exception):
    """Base class for errors raised by docmd itself (not by handlers)."""


class ConfigurationError(DocmdError):
    """Raised when the interpreter or its backends are used incorrectly.

    Configuration errors are fatal and never retried.
    """


class HandlerRegistryError(ConfigurationError):
    """Raised when there's a conflict or invalid handler registration."""


class InvalidCommandError(ConfigurationError, ValueError):
    """Raised when a command type is empty or uses the reserved prefix."""


class UnhandledCommandError(ConfigurationError, LookupError):
    """Raised when no handler exists for a command type."""

    def __init__(self, command_type: Any) -> None:
        self.command_type = command_type
        super().__init__(
            f"No handler for command.type {command_type!r}\n"
            f"Hint: register a backend declaring {command_type!r} with `interpreter.use(...)`"
        )


class UnsupportedValueError(ConfigurationError, TypeError):
    """Raised when a value of unsupported shape is handed to the interpreter."""


class LiteralYieldError(UnsupportedValueError):
    """Raised when a service yields a literal value while driven by ``execute``."""

    def __init__(self, value: Any) -> None:
        self.value = value
        super().__init__(
            f"yielding literal values outside of iteration is not allowed: {value!r}\n"
            f"Hint: drive the service with `interpreter.iterate(...)` or yield `iterate(...)`"
        )


__all__ = [
    "ConfigurationError",
    "DocmdError",
    "HandlerRegistryError",
    "InvalidCommandError",
    "LiteralYieldError",
    "UnhandledCommandError",
    "UnsupportedValueError",
]
