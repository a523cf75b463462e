"""
Shard sink: encode, gzip and stream one shard's rows.

Rows are encoded by an exporter into a streaming gzip compressor. Once
enough compressed bytes accumulate they are written to the shard's
ByteStream, where the uploader picks them up. Closing flushes the
compressor before closing the stream's write end; the reverse order would
drop the gzip trailer and truncate the object.
"""

import logging
import zlib
from typing import Any, Dict

from .exceptions import CompressError, ExportError
from .exporters.base import BaseExporter
from .stream import ByteStream
from .utils.stats import ShardDescriptor

logger = logging.getLogger(__name__)

# 16 + MAX_WBITS selects the gzip container instead of raw zlib.
GZIP_WBITS = 16 + zlib.MAX_WBITS


class GzipChunkWriter:
    """
    File-like gzip compressor that collects its output in memory.

    Exporters write uncompressed bytes to it; the sink takes the compressed
    bytes out in chunks.
    """

    def __init__(self, level: int = 1) -> None:
        try:
            self._compressor = zlib.compressobj(level, zlib.DEFLATED, GZIP_WBITS)
        except (ValueError, zlib.error) as e:
            raise CompressError(f"invalid compression level: {level}") from e
        self._pending = bytearray()
        self._finished = False
        self.bytes_in = 0

    @property
    def pending(self) -> int:
        """Compressed bytes not yet taken."""
        return len(self._pending)

    def write(self, data: bytes) -> int:
        if self._finished:
            raise CompressError("write to finished gzip stream")
        try:
            self._pending.extend(self._compressor.compress(data))
        except zlib.error as e:
            raise CompressError(f"gzip compression failed: {e}") from e
        self.bytes_in += len(data)
        return len(data)

    def take(self) -> bytes:
        """Remove and return all pending compressed bytes."""
        data = bytes(self._pending)
        self._pending.clear()
        return data

    def finish(self) -> bytes:
        """Flush the compressor, write the gzip trailer and return what is pending."""
        if not self._finished:
            try:
                self._pending.extend(self._compressor.flush(zlib.Z_FINISH))
            except zlib.error as e:
                raise CompressError(f"gzip flush failed: {e}") from e
            self._finished = True
        return self.take()


class ShardSink:
    """
    Writer side of one shard.

    Owns the shard descriptor while rows are written: every row written is
    counted on the descriptor, and the count is frozen when the sink closes.
    """

    def __init__(
        self,
        shard: ShardDescriptor,
        exporter: BaseExporter,
        stream: ByteStream,
        compress_level: int = 1,
        chunk_size: int = 1024 * 1024,
    ) -> None:
        self.shard = shard
        self.exporter = exporter
        self.stream = stream
        self.chunk_size = chunk_size
        self._gzip = GzipChunkWriter(compress_level)
        self.exporter.bind(self._gzip)
        self._opened = False

    async def open(self) -> None:
        self.exporter.write_header()
        self._opened = True

    async def write_row(self, row: Dict[str, Any]) -> None:
        """Encode and compress one row, handing off a chunk when enough is pending."""
        if not self._opened:
            await self.open()
        self.exporter.write_row(row)
        self.shard.record_row()
        if self._gzip.pending >= self.chunk_size:
            await self._drain()

    async def close(self) -> None:
        """
        Finish the shard.

        Writes the footer, flushes the compressor and hands the final
        bytes over, then closes the stream's write end.
        """
        if not self._opened:
            await self.open()
        self.exporter.write_footer()
        tail = self._gzip.finish()
        if tail:
            await self.stream.write(tail)
        self.shard.bytes_written = self.stream.bytes_written
        self.shard.mark_closed()
        await self.stream.close()
        logger.debug(
            f"Closed shard {self.shard.index}: {self.shard.row_count} rows, "
            f"{self._gzip.bytes_in} bytes in, {self.shard.bytes_written} bytes compressed"
        )

    async def abort(self, error: BaseException) -> None:
        """Fail the shard and wake its uploader with the error."""
        if not isinstance(error, ExportError):
            error = ExportError(f"shard {self.shard.index} failed: {error}", self.shard.index)
        self.shard.mark_failed(error)
        await self.stream.abort(error)

    async def _drain(self) -> None:
        data = self._gzip.take()
        if data:
            await self.stream.write(data)
