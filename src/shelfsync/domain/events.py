"""Async event channel used to stream progress and inventory updates."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


class _Closed:
    pass


_CLOSED = _Closed()


class EventChannel[T]:
    """Single-consumer stream of events.

    ``publish`` never blocks, so producers can publish from synchronous
    callbacks. Events published after ``close`` are dropped. Every accepted
    event is also kept in ``published`` for callers that only inspect the
    outcome.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[T | _Closed] = asyncio.Queue()
        self._closed = False
        self.published: list[T] = []

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, event: T) -> bool:
        if self._closed:
            return False
        self.published.append(event)
        self._queue.put_nowait(event)
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    async def __aiter__(self) -> AsyncIterator[T]:
        while True:
            item = await self._queue.get()
            if isinstance(item, _Closed):
                return
            yield item


@dataclass(slots=True, frozen=True)
class ProgressEvent:
    percent: int | None
    message: str
