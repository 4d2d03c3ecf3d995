"""Regression tests ensuring command constructors play nicely with beartype."""

from __future__ import annotations

import pytest
from beartype import beartype
from beartype.roar import BeartypeCallHintParamViolation

from docmd import Command, MapPayload
from docmd.commands import MAP, command, map_


def test_map_constructor_is_beartype_decoratable() -> None:
    """Applying ``@beartype`` to ``map_`` should succeed and keep its behavior."""

    checked = beartype(map_)

    result = checked([1, 2], str, concurrency=2)

    assert isinstance(result, Command)
    assert result.type == MAP
    assert isinstance(result.payload, MapPayload)
    assert result.payload.concurrency == 2


def test_beartype_rejects_wrong_argument_types() -> None:
    checked = beartype(map_)

    with pytest.raises(BeartypeCallHintParamViolation):
        checked([1], str, concurrency="many")


def test_generic_command_constructor_is_decoratable() -> None:
    checked = beartype(command)

    assert checked("get", {"id": 1}) == Command("get", {"id": 1})
