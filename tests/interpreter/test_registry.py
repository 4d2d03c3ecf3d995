"""Tests for backend registration and handler chains."""

import pytest

from docmd import (
    PARALLEL,
    Backend,
    Command,
    CommandInterpreter,
    HandlerRegistry,
    HandlerRegistryError,
    InvalidCommandError,
    get_commands,
    handler,
)


class First(Backend):
    @handler
    def a(self, payload):
        return ("first", payload)


class Second(Backend):
    @handler
    def b(self, payload):
        return ("second", payload)


class Logging(Backend):
    def __init__(self, log: list) -> None:
        self.log = log

    @handler
    async def a(self, payload, ctx):
        self.log.append(("before", payload))
        result = await ctx.next()
        self.log.append(("after", result))
        return result


class Inherited(First):
    @handler("c")
    def handle_c(self, payload):
        return "c"


def test_get_commands_is_sorted_and_declared() -> None:
    class Declared(Backend):
        @handler("zeta")
        def z(self, payload):
            return payload

        @handler
        def alpha(self, payload):
            return payload

        def helper(self, payload):
            return payload

    assert get_commands(Declared()) == ["alpha", "zeta"]
    assert get_commands(Inherited()) == ["a", "c"]
    assert get_commands({"y": print, "x": print}) == ["x", "y"]


def test_overriding_a_handler_keeps_its_command() -> None:
    class Override(First):
        def a(self, payload):
            return "overridden"

    assert get_commands(Override()) == ["a"]


@pytest.mark.asyncio
async def test_disjoint_backends_are_all_dispatchable() -> None:
    interpreter = CommandInterpreter().use(First()).use(Second())
    assert await interpreter.execute(Command("a", 1)) == ("first", 1)
    assert await interpreter.execute(Command("b", 2)) == ("second", 2)


def test_colliding_command_raises() -> None:
    interpreter = CommandInterpreter().use(First())
    with pytest.raises(HandlerRegistryError, match="Commands already bound: a"):
        interpreter.use(Inherited())


def test_standard_commands_cannot_be_rebound() -> None:
    with pytest.raises(HandlerRegistryError, match=PARALLEL):
        CommandInterpreter().use({PARALLEL: lambda payload: payload})


def test_empty_use_raises() -> None:
    with pytest.raises(HandlerRegistryError, match="at least one backend"):
        CommandInterpreter().use()


def test_handler_with_too_many_arguments_raises() -> None:
    with pytest.raises(HandlerRegistryError, match="takes 3 arguments"):
        CommandInterpreter().use({"bad": lambda payload, ctx, extra: None})


def test_backend_without_commands_raises() -> None:
    class Empty(Backend):
        pass

    with pytest.raises(HandlerRegistryError, match="declares no commands"):
        CommandInterpreter().use(Empty())


def test_invalid_command_types() -> None:
    with pytest.raises(InvalidCommandError):
        Command("")
    with pytest.raises(InvalidCommandError, match="must not start with _"):
        Command("_private")
    with pytest.raises(TypeError):
        Command(42)  # type: ignore[arg-type]
    with pytest.raises(InvalidCommandError):

        class Reserved(Backend):
            @handler
            def _hidden(self, payload):
                return payload


@pytest.mark.asyncio
async def test_next_runs_same_command_on_following_backend() -> None:
    log: list = []
    interpreter = CommandInterpreter().use(Logging(log), First())

    assert await interpreter.execute(Command("a", 3)) == ("first", 3)
    assert log == [("before", 3), ("after", ("first", 3))]


@pytest.mark.asyncio
async def test_next_is_none_for_last_link() -> None:
    seen = []

    def last(payload, ctx):
        seen.append(ctx.next)
        return payload

    interpreter = CommandInterpreter().use({"a": last})
    await interpreter.execute(Command("a", 1))
    assert seen == [None]


@pytest.mark.asyncio
async def test_chain_exposes_only_first_backend_commands() -> None:
    interpreter = CommandInterpreter().use(First(), Second())
    assert "a" in interpreter.commands()
    assert "b" not in interpreter.commands()


def test_connect_links_right_to_left() -> None:
    registry = HandlerRegistry()
    chain = registry.connect(Logging([]), First())

    link = chain["a"]
    assert link.index == 0
    assert link.next is not None
    assert link.next.index == 1
    assert link.next.next is None
    assert link.slot != link.next.slot
    assert [item.statistic_key for item in link.links()] == ["a.0", "a.1"]
