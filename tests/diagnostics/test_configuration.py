"""Environment configuration read at import time."""

import importlib

import pytest

import docmd.utils
from docmd.sequence import to_bounded_sequence


@pytest.fixture
def restore_utils(monkeypatch: pytest.MonkeyPatch):
    try:
        yield monkeypatch
    finally:
        monkeypatch.delenv("DOCMD_CONCURRENCY", raising=False)
        monkeypatch.delenv("DOCMD_DEBUG", raising=False)
        importlib.reload(docmd.utils)


def test_default_concurrency_from_environment(restore_utils: pytest.MonkeyPatch) -> None:
    restore_utils.setenv("DOCMD_CONCURRENCY", "3")
    importlib.reload(docmd.utils)

    assert docmd.utils.DEFAULT_CONCURRENCY == 3
    sequence = to_bounded_sequence([])
    assert (sequence.concurrency, sequence.read_ahead) == (3, 12)


def test_invalid_concurrency_is_rejected(restore_utils: pytest.MonkeyPatch) -> None:
    restore_utils.setenv("DOCMD_CONCURRENCY", "lots")
    with pytest.raises(ValueError, match="DOCMD_CONCURRENCY must be an integer"):
        importlib.reload(docmd.utils)


@pytest.mark.parametrize(("value", "expected"), [("1", True), ("TRUE", True), ("yes", True), ("0", False), ("", False)])
def test_debug_flag_values(restore_utils: pytest.MonkeyPatch, value: str, expected: bool) -> None:
    restore_utils.setenv("DOCMD_DEBUG", value)
    importlib.reload(docmd.utils)
    assert docmd.utils.DIAGNOSTICS_ENABLED is expected


def test_defaults() -> None:
    assert docmd.utils.DEFAULT_CONCURRENCY == 8
    assert docmd.utils.DIAGNOSTICS_ENABLED is False
