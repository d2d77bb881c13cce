import asyncio
from collections.abc import AsyncGenerator

import pytest

from healthcoach.stream import ResponseStream
from healthcoach.transcript import Segment, Structure, Text


def _stream(segments: list[Segment], closes: list[str]) -> ResponseStream:
    async def _increments() -> AsyncGenerator[Segment, None]:
        for segment in segments:
            yield segment

    return ResponseStream(_increments(), on_close=lambda: closes.append("closed"))


@pytest.mark.asyncio
async def test_collect_joins_text_increments() -> None:
    closes: list[str] = []
    stream = _stream([Text("Hello"), Structure({"a": 1}), Text(" world")], closes)

    assert await stream.collect() == "Hello world"
    assert stream.done
    assert closes == ["closed"]


@pytest.mark.asyncio
async def test_close_before_iteration_runs_close_hook_once() -> None:
    closes: list[str] = []
    stream = _stream([Text("never")], closes)

    await stream.aclose()
    await stream.aclose()

    assert closes == ["closed"]
    assert [segment async for segment in stream] == []


@pytest.mark.asyncio
async def test_abandon_finalizes_and_closes_in_background() -> None:
    closes: list[str] = []
    exits: list[str] = []

    async def _increments() -> AsyncGenerator[Segment, None]:
        try:
            yield Text("a")
            yield Text("b")
        finally:
            exits.append("exit")

    stream = ResponseStream(_increments(), on_close=lambda: closes.append("closed"))
    assert not stream.suspended

    assert await anext(stream) == Text("a")
    assert stream.suspended

    stream.abandon()
    stream.abandon()

    assert closes == ["closed"]
    assert stream.done
    assert not stream.suspended
    for _ in range(5):
        await asyncio.sleep(0)
    assert exits == ["exit"]


@pytest.mark.asyncio
async def test_errors_from_the_cycle_propagate() -> None:
    closes: list[str] = []

    async def _failing() -> AsyncGenerator[Segment, None]:
        yield Text("a")
        raise RuntimeError("model went away")

    stream = ResponseStream(_failing(), on_close=lambda: closes.append("closed"))

    with pytest.raises(RuntimeError):
        async for _segment in stream:
            pass

    assert stream.done
    assert closes == ["closed"]
