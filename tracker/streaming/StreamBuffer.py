"""Bounded byte pipe between the forwarder and the outbound request."""

import asyncio
from collections import deque
from typing import AsyncIterator

from shared.exceptions.TrackerExceptions import BufferClosed, TransportInterrupted

DEFAULT_CAPACITY = 64 * 1024


class StreamBuffer:
    """Single-producer/single-consumer byte channel.

    The writer blocks while the buffer holds capacity bytes, the reader blocks
    while it is empty. close() signals end-of-data, read() then returns b""
    once everything written has been consumed. A chunk larger than the
    capacity is accepted when the buffer is empty so a single large record
    can never stall the pipe.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError(f"Stream buffer capacity must be positive, got {capacity}.")
        self.capacity = capacity
        self._chunks: deque[bytes] = deque()
        self._size = 0
        self._closed = False
        self._error: BaseException | None = None
        self._cond = asyncio.Condition()

        # Stats
        self.bytes_written = 0

    @property
    def size(self) -> int:
        """Bytes written and not yet read."""
        return self._size

    @property
    def closed(self) -> bool:
        return self._closed

    async def write(self, data: bytes) -> None:
        """Append data, waiting for the reader while the buffer is full.

        Raises:
            BufferClosed: If the buffer was closed for writing.
            TransportInterrupted: If the reader aborted the pipe.
        """
        if not data:
            return
        async with self._cond:
            if self._closed:
                raise BufferClosed("write on a closed stream buffer")
            await self._cond.wait_for(
                lambda: self._error is not None or self._size == 0 or self._size + len(data) <= self.capacity
            )
            if self._error is not None:
                raise TransportInterrupted(f"outbound stream aborted: {self._error}") from self._error
            self._chunks.append(data)
            self._size += len(data)
            self.bytes_written += len(data)
            self._cond.notify_all()

    async def read(self) -> bytes:
        """Return the next chunk, waiting while the buffer is empty. Returns b"" at end-of-stream."""
        async with self._cond:
            await self._cond.wait_for(lambda: self._chunks or self._closed or self._error is not None)
            if self._chunks and self._error is None:
                chunk = self._chunks.popleft()
                self._size -= len(chunk)
                self._cond.notify_all()
                return chunk
            return b""

    async def close(self) -> None:
        """Signal end-of-data to the reader. Idempotent."""
        async with self._cond:
            self._closed = True
            self._cond.notify_all()

    async def abort(self, error: BaseException) -> None:
        """Tear the pipe down from the reader side, a blocked or later write raises TransportInterrupted."""
        async with self._cond:
            self._error = error
            self._chunks.clear()
            self._size = 0
            self._cond.notify_all()

    async def __aiter__(self) -> AsyncIterator[bytes]:
        while True:
            chunk = await self.read()
            if not chunk:
                return
            yield chunk
