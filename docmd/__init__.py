"""
docmd - Command interpreter for generator-based services.

Services describe side effects by yielding commands; an interpreter dispatches
each command to pluggable backends and resumes the service with the result.

Example:
    >>> from docmd import Backend, Command, CommandInterpreter, handler
    >>>
    >>> class Store(Backend):
    ...     def __init__(self):
    ...         self.items = {}
    ...
    ...     @handler
    ...     def get(self, key):
    ...         return self.items.get(key)
    ...
    ...     @handler
    ...     def put(self, payload):
    ...         self.items[payload["id"]] = payload["value"]
    >>>
    >>> def service():
    ...     yield Command("get", 1)
    ...     yield Command("put", {"id": 1, "value": "x"})
    ...     return (yield Command("get", 1))
    >>>
    >>> CommandInterpreter().use(Store()).run(service())
    'x'
"""

# Core types
from docmd.types import (
    Command,
    Frame,
    FrameEntry,
    MapPayload,
    Service,
    is_command,
)
from docmd._vendor import FrozenDict

# Errors
from docmd.errors import (
    ConfigurationError,
    DocmdError,
    HandlerRegistryError,
    InvalidCommandError,
    LiteralYieldError,
    UnhandledCommandError,
    UnsupportedValueError,
)

# Standard commands
from docmd.commands import (
    AWAIT,
    ITERATE,
    MAP,
    PARALLEL,
    Await,
    Iterate,
    Map,
    Parallel,
    await_,
    command,
    iterate,
    map_,
    parallel,
)

# Backends
from docmd.backend import Backend, get_commands, handler
from docmd.backends import (
    ChainBackend,
    CommandMultiplexBackend,
    MultiplexBackend,
    StandardBackend,
)

# Interpreter
from docmd.dispatch import DispatchContext
from docmd.execution import ExecutionRecord, Scope
from docmd.interpreter import CommandInterpreter
from docmd.registry import Chain, HandlerRegistry, Link, connector_for
from docmd.sequence import BoundedSequence, map_source, to_bounded_sequence
from docmd.stack_frame import attach_frame, original_traceback
from docmd.statistics import StatisticEntry, get_sampler, report_statistics

__version__ = "0.1.0"

__all__ = [
    "AWAIT",
    "Await",
    "Backend",
    "BoundedSequence",
    "Chain",
    "ChainBackend",
    "Command",
    "CommandInterpreter",
    "CommandMultiplexBackend",
    "ConfigurationError",
    "DispatchContext",
    "DocmdError",
    "ExecutionRecord",
    "Frame",
    "FrameEntry",
    "FrozenDict",
    "HandlerRegistry",
    "HandlerRegistryError",
    "ITERATE",
    "InvalidCommandError",
    "Iterate",
    "Link",
    "LiteralYieldError",
    "MAP",
    "Map",
    "MapPayload",
    "MultiplexBackend",
    "PARALLEL",
    "Parallel",
    "Scope",
    "Service",
    "StandardBackend",
    "StatisticEntry",
    "UnhandledCommandError",
    "UnsupportedValueError",
    "attach_frame",
    "await_",
    "command",
    "connector_for",
    "get_commands",
    "get_sampler",
    "handler",
    "is_command",
    "iterate",
    "map_",
    "map_source",
    "original_traceback",
    "parallel",
    "report_statistics",
    "to_bounded_sequence",
]
