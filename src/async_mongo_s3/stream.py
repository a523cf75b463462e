"""
Bounded in-memory byte stream between a shard writer and its uploader.

The writer blocks once ``max_chunks`` chunks are waiting, which is the only
backpressure between compression and upload. Either side can abort the
stream with an error that the other side then raises.
"""

import asyncio
from collections import deque
from typing import AsyncIterator, Deque, Optional


class StreamClosedError(RuntimeError):
    """Raised when writing to a stream whose write end is closed."""


class ByteStream:
    """
    Single-writer, single-reader async pipe of byte chunks.

    Chunks are delivered in write order. Reading after ``close()`` drains the
    remaining chunks and then returns ``b""``.
    """

    def __init__(self, max_chunks: int = 4) -> None:
        if max_chunks < 1:
            raise ValueError("max_chunks must be >= 1")
        self.max_chunks = max_chunks
        self._chunks: Deque[bytes] = deque()
        self._condition = asyncio.Condition()
        self._closed = False
        self._error: Optional[BaseException] = None
        self.bytes_written = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    async def write(self, data: bytes) -> None:
        """
        Append a chunk, waiting while the buffer is full.

        Raises:
            StreamClosedError: If the write end was closed
            Exception: The error the stream was aborted with
        """
        if not data:
            return
        async with self._condition:
            while len(self._chunks) >= self.max_chunks and self._error is None:
                await self._condition.wait()
            if self._error is not None:
                raise self._error
            if self._closed:
                raise StreamClosedError("write to closed stream")
            self._chunks.append(bytes(data))
            self.bytes_written += len(data)
            self._condition.notify_all()

    async def read(self) -> bytes:
        """
        Take the next chunk, waiting until one is available.

        Returns:
            The next chunk, or b"" once the stream is closed and drained
        """
        async with self._condition:
            while not self._chunks and not self._closed and self._error is None:
                await self._condition.wait()
            if self._error is not None:
                raise self._error
            if self._chunks:
                chunk = self._chunks.popleft()
                self._condition.notify_all()
                return chunk
            return b""

    async def close(self) -> None:
        """Close the write end; readers drain what is left."""
        async with self._condition:
            self._closed = True
            self._condition.notify_all()

    async def abort(self, error: BaseException) -> None:
        """Fail the stream; pending and future reads and writes raise ``error``."""
        async with self._condition:
            if self._error is None:
                self._error = error
            self._chunks.clear()
            self._condition.notify_all()

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[bytes]:
        while True:
            chunk = await self.read()
            if not chunk:
                return
            yield chunk
