"""Single-producer/single-consumer async channel."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class _End:
    pass


@dataclass(slots=True)
class _Failure:
    error: BaseException


_END = _End()


class EventChannel(Generic[T]):
    """Unbounded FIFO between a synchronous producer and an async consumer.

    The producer calls :meth:`push` (never blocks); the consumer awaits
    :meth:`next`, which suspends until an item, a failure or the end marker
    arrives. :meth:`close` discards anything still buffered and wakes a
    suspended consumer with ``StopAsyncIteration``. :meth:`fail` lets the
    consumer drain what was buffered first and then raises the error.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._accepting = True
        self._ended = False
        self._finished = False

    @property
    def closed(self) -> bool:
        return not self._accepting

    def __len__(self) -> int:
        return self._queue.qsize()

    def push(self, item: T) -> bool:
        """Buffer ``item``; returns False when the channel no longer accepts items."""
        if not self._accepting:
            return False
        self._queue.put_nowait(item)
        return True

    def fail(self, error: BaseException) -> None:
        if not self._accepting:
            return
        self._accepting = False
        self._queue.put_nowait(_Failure(error))

    def close(self) -> None:
        self._accepting = False
        if self._ended:
            return
        self._ended = True
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_END)

    async def next(self) -> T:
        if self._finished:
            raise StopAsyncIteration
        item = await self._queue.get()
        if isinstance(item, _End):
            self._finished = True
            raise StopAsyncIteration
        if isinstance(item, _Failure):
            self._finished = True
            raise item.error
        return item

    def __aiter__(self) -> EventChannel[T]:
        return self

    async def __anext__(self) -> T:
        return await self.next()
