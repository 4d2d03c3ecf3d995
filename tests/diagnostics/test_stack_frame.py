"""Test diagnostic frames attached to commands when DOCMD_DEBUG is set."""

import importlib
import traceback

import pytest

import docmd.commands
import docmd.stack_frame
import docmd.utils
from docmd import Command, CommandInterpreter, Frame, attach_frame, original_traceback


def _reload_diagnostics() -> None:
    importlib.reload(docmd.utils)
    importlib.reload(docmd.stack_frame)
    importlib.reload(docmd.commands)


@pytest.fixture
def diagnostics(monkeypatch: pytest.MonkeyPatch):
    """Reload the frame machinery with DOCMD_DEBUG enabled, restoring it afterwards."""
    monkeypatch.setenv("DOCMD_DEBUG", "1")
    _reload_diagnostics()
    try:
        yield
    finally:
        monkeypatch.delenv("DOCMD_DEBUG", raising=False)
        _reload_diagnostics()


def explode(payload):
    raise ValueError(f"exploded: {payload}")


@pytest.mark.asyncio
async def test_handler_error_shows_creation_site(diagnostics) -> None:
    interpreter = CommandInterpreter().use({"explode": explode})

    def service_creating_command():
        yield docmd.commands.command("explode", 1)

    with pytest.raises(ValueError) as info:
        await interpreter.execute(service_creating_command())

    error = info.value
    displayed = "".join(traceback.format_exception(error))
    assert "From previous event:" in displayed
    assert "service_creating_command" in displayed
    assert __file__ in displayed
    # The original raise site is still part of the displayed trace.
    assert "in explode" in displayed
    assert original_traceback(error) is not None


@pytest.mark.asyncio
async def test_frame_points_at_caller(diagnostics) -> None:
    def build():
        return docmd.commands.parallel([])

    command = build()
    assert isinstance(command.frame, Frame)
    assert command.frame.filename == __file__
    assert command.frame.function == "build"
    assert "docmd.commands.parallel" in (command.frame.code or "")


@pytest.mark.asyncio
async def test_nested_service_error_is_annotated_once(diagnostics) -> None:
    def inner():
        yield Command("explode", "inner")

    async def run_inner(payload, ctx):
        return await ctx.execute(inner())

    interpreter = CommandInterpreter().use({"explode": explode, "run_inner": run_inner})

    def outer_service():
        yield docmd.commands.command("run_inner")

    with pytest.raises(ValueError, match="exploded: inner") as info:
        await interpreter.execute(outer_service())

    notes = getattr(info.value, "__notes__", [])
    assert len(notes) == 1
    assert "outer_service" in notes[0]


@pytest.mark.asyncio
async def test_disabled_diagnostics_leave_errors_untouched() -> None:
    assert not docmd.utils.DIAGNOSTICS_ENABLED
    interpreter = CommandInterpreter().use({"explode": explode})

    command = docmd.commands.command("explode", 2)
    assert command.frame is None

    def service():
        yield command

    with pytest.raises(ValueError) as info:
        await interpreter.execute(service())
    assert getattr(info.value, "__notes__", None) is None


def test_attach_frame_is_idempotent_per_frame() -> None:
    frame = Frame(filename="app.py", line=3, function="handler", code="yield get(1)")
    other = Frame(filename="app.py", line=9, function="caller")
    try:
        raise KeyError("missing")
    except KeyError as caught:
        error = caught
    first_traceback = error.__traceback__

    assert attach_frame(frame, error) is error
    attach_frame(frame, error)
    assert error.__notes__ == [
        'From previous event:\n  File "app.py", line 3, in handler\n    yield get(1)'
    ]

    attach_frame(other, error)
    assert len(error.__notes__) == 2
    assert original_traceback(error) is first_traceback
    assert error.__traceback__ is first_traceback


def test_attach_without_frame_is_noop() -> None:
    error = RuntimeError("x")
    assert attach_frame(None, error) is error
    assert getattr(error, "__notes__", None) is None
