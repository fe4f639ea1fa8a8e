# crane/worker/channel.py
from __future__ import annotations
import asyncio
from typing import Any, Generic, TypeVar

from crane.core.errors import CraneError

__all__ = ["ChannelClosed", "Sender", "Receiver", "channel"]

T = TypeVar("T")

# Marks the end of the stream; never handed to callers
_CLOSED: Any = object()



class ChannelClosed(CraneError):
    """send() on a channel that was already closed."""
    pass



class _ChannelState(Generic[T]):
    __slots__ = ("queue", "closed")

    def __init__(self, capacity: int) -> None:
        # capacity <= 0 means unbounded
        self.queue: asyncio.Queue[T] = asyncio.Queue(maxsize=max(0, capacity))
        self.closed = False



class Sender(Generic[T]):
    """
    Send side of a channel. Every holder of a Sender (or a clone) feeds the
    same FIFO queue, so many producers may send concurrently; each producer's
    own items keep their relative order.
    """
    __slots__ = ("_state",)

    def __init__(self, state: _ChannelState[T]) -> None:
        self._state = state

    @property
    def isClosed(self) -> bool:
        return self._state.closed

    def clone(self) -> Sender[T]:
        return Sender(self._state)

    async def send(self, item: T) -> None:
        """Suspends while a bounded channel is full."""
        if self._state.closed:
            raise ChannelClosed("send on closed channel")
        await self._state.queue.put(item)

    def trySend(self, item: T) -> bool:
        """Non-blocking send; False when a bounded channel is full."""
        if self._state.closed:
            raise ChannelClosed("send on closed channel")
        try:
            self._state.queue.put_nowait(item)
        except asyncio.QueueFull:
            return False
        return True

    async def close(self) -> None:
        """
        Close the channel for every clone. Items sent before close() are
        still delivered; the receiver then sees end-of-stream.
        """
        if self._state.closed:
            return
        self._state.closed = True
        await self._state.queue.put(_CLOSED)

    def __repr__(self) -> str:
        return f"Sender(qsize={self._state.queue.qsize()}, closed={self._state.closed})"



class Receiver(Generic[T]):
    """Receive side of a channel; at most one reader is expected."""
    __slots__ = ("_state", "_exhausted")

    def __init__(self, state: _ChannelState[T]) -> None:
        self._state = state
        self._exhausted = False

    async def recv(self, timeout: float | None = None) -> T | None:
        """
        Next item, or None once the channel is closed and drained.
        Raises asyncio.TimeoutError if `timeout` elapses first.
        """
        if self._exhausted:
            return None
        if timeout is None:
            item = await self._state.queue.get()
        else:
            item = await asyncio.wait_for(self._state.queue.get(), timeout)
        if item is _CLOSED:
            self._exhausted = True
            return None
        return item

    def __aiter__(self) -> Receiver[T]:
        return self

    async def __anext__(self) -> T:
        item = await self.recv()
        if item is None:
            raise StopAsyncIteration
        return item



def channel(capacity: int = 0) -> tuple[Sender[T], Receiver[T]]:
    """Create a (sender, receiver) pair. capacity <= 0 means unbounded."""
    state: _ChannelState[T] = _ChannelState(capacity)
    return Sender(state), Receiver(state)
