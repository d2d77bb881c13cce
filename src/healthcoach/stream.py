"""Streaming response channel for one generation cycle."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator, Callable
from types import TracebackType

from loguru import logger

from healthcoach.transcript import Segment, Text

_closing: set[asyncio.Task[None]] = set()


class ResponseStream:
    """Lazy, finite, non-restartable sequence of response increments.

    Stop consuming at any point with ``aclose()`` (or by leaving an
    ``async with`` block); the session then finalizes the partial response.
    A stream that is dropped, or left suspended after a ``break``, is
    finalized by the session as well.
    """

    def __init__(self, increments: AsyncGenerator[Segment, None], *, on_close: Callable[[], None]) -> None:
        self._increments = increments
        self._on_close = on_close
        self._done = False
        self._started = False
        self._pulling = False

    @property
    def done(self) -> bool:
        return self._done

    @property
    def suspended(self) -> bool:
        """Consumption started and nobody is waiting on the next increment."""
        return self._started and not self._pulling and not self._done

    def __aiter__(self) -> ResponseStream:
        return self

    async def __anext__(self) -> Segment:
        if self._done:
            raise StopAsyncIteration
        self._started = True
        self._pulling = True
        try:
            return await self._increments.__anext__()
        except BaseException:
            self._done = True
            self._on_close()
            raise
        finally:
            self._pulling = False

    async def aclose(self) -> None:
        if self._done:
            return
        self._done = True
        try:
            await self._increments.aclose()
        finally:
            self._on_close()

    def abandon(self) -> None:
        """Finalize now; the increments are closed in the background."""
        if self._done:
            return
        self._done = True
        self._on_close()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self._close_increments())
        _closing.add(task)
        task.add_done_callback(_closing.discard)

    async def _close_increments(self) -> None:
        try:
            await self._increments.aclose()
        except Exception as exc:
            logger.warning("stream.close.error error={!r}", exc)

    async def collect(self) -> str:
        parts: list[str] = []
        async with self:
            async for segment in self:
                if isinstance(segment, Text):
                    parts.append(segment.content)
        return "".join(parts)

    async def __aenter__(self) -> ResponseStream:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
