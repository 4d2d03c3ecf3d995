"""
Pytest configuration for docmd tests.

Provides an echo backend and interpreters with and without statistics.
"""

from typing import Any

import pytest

from docmd import Backend, CommandInterpreter, handler


class EchoBackend(Backend):
    """Returns every payload unchanged."""

    def __init__(self) -> None:
        self.calls: list[Any] = []

    @handler
    def echo(self, payload: Any) -> Any:
        self.calls.append(payload)
        return payload


@pytest.fixture
def echo_backend() -> EchoBackend:
    return EchoBackend()


@pytest.fixture
def interpreter(echo_backend: EchoBackend) -> CommandInterpreter:
    """Interpreter with the echo backend bound."""
    return CommandInterpreter().use(echo_backend)


@pytest.fixture
def stats_interpreter() -> CommandInterpreter:
    return CommandInterpreter(statistics=True)
