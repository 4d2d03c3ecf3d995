"""Tests for the ITERATE, MAP and AWAIT commands."""

import asyncio

import pytest

from docmd import (
    AWAIT,
    Await,
    BoundedSequence,
    Command,
    CommandInterpreter,
    MapPayload,
    await_,
    iterate,
    map_,
)


@pytest.mark.asyncio
async def test_iterate_streams_literals(interpreter: CommandInterpreter) -> None:
    def numbers():
        for i in range(3):
            yield (yield Command("echo", i * 10))

    sequence = await interpreter.execute(iterate(numbers()))
    assert isinstance(sequence, BoundedSequence)
    assert [item async for item in sequence] == [0, 10, 20]


@pytest.mark.asyncio
async def test_iterate_consumed_inside_async_service(interpreter: CommandInterpreter) -> None:
    collected: list[str] = []

    def letters():
        yield "a"
        yield (yield Command("echo", "b"))

    async def service():
        sequence = yield iterate(letters())
        async for letter in sequence:
            collected.append(letter)

    await interpreter.execute(service())
    assert collected == ["a", "b"]


@pytest.mark.asyncio
async def test_iterate_propagates_service_error(interpreter: CommandInterpreter) -> None:
    def broken():
        yield 1
        raise KeyError("broken")

    sequence = await interpreter.execute(iterate(broken()))
    assert await anext(sequence) == 1
    with pytest.raises(KeyError):
        await anext(sequence)


@pytest.mark.asyncio
async def test_iterate_close_closes_service(interpreter: CommandInterpreter) -> None:
    closed = []

    def endless():
        try:
            i = 0
            while True:
                yield i
                i += 1
        finally:
            closed.append(True)

    sequence = await interpreter.execute(iterate(endless()))
    assert await anext(sequence) == 0
    await sequence.aclose()
    assert closed == [True]


@pytest.mark.asyncio
async def test_map_executes_iteratee_per_item(interpreter: CommandInterpreter) -> None:
    sequence = await interpreter.execute(map_([1, 2, 3], lambda item: Command("echo", item * 2)))
    assert [item async for item in sequence] == [2, 4, 6]


@pytest.mark.asyncio
async def test_map_with_services(interpreter: CommandInterpreter) -> None:
    def double(item):
        value = yield Command("echo", item)
        return value * 2

    sequence = await interpreter.execute(map_(range(4), double, concurrency=2))
    assert await sequence.collect() == [0, 2, 4, 6]


@pytest.mark.asyncio
async def test_map_stops_calling_iteratee_when_consumer_stops(interpreter: CommandInterpreter) -> None:
    called: list[int] = []

    def iteratee(item):
        called.append(item)
        return Command("echo", item)

    sequence = await interpreter.execute(map_(range(100), iteratee, concurrency=1, read_ahead=10))
    taken = []
    async for item in sequence:
        taken.append(item)
        if len(taken) == 10:
            break
    await sequence.aclose()

    assert taken == list(range(10))
    assert len(called) <= 11


@pytest.mark.asyncio
async def test_map_over_async_collection(interpreter: CommandInterpreter) -> None:
    async def source():
        for i in range(3):
            await asyncio.sleep(0)
            yield i

    sequence = await interpreter.execute(map_(source(), lambda item: Command("echo", item)))
    assert await sequence.collect() == [0, 1, 2]


@pytest.mark.asyncio
async def test_map_runs_items_concurrently() -> None:
    active = 0
    peak = 0

    async def work(item):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1
        return item

    interpreter = CommandInterpreter().use({"work": work})
    sequence = await interpreter.execute(map_(range(12), lambda i: Command("work", i), concurrency=3))

    assert await sequence.collect() == list(range(12))
    assert 1 < peak <= 3


def test_map_payload_defaults() -> None:
    command = map_([1], str)
    assert isinstance(command.payload, MapPayload)
    assert command.payload.read_ahead is None
    assert command.payload.concurrency >= 1


@pytest.mark.asyncio
async def test_await_command(interpreter: CommandInterpreter) -> None:
    async def compute():
        await asyncio.sleep(0)
        return "done"

    def service():
        return (yield await_(compute()))

    assert await interpreter.execute(service()) == "done"


def test_await_rejects_non_awaitable() -> None:
    with pytest.raises(TypeError, match="awaitable must be Awaitable"):
        Await(42)  # type: ignore[arg-type]


def test_await_alias() -> None:
    async def nothing():
        return None

    coroutine = nothing()
    try:
        assert Await(coroutine).type == AWAIT
    finally:
        coroutine.close()
