"""
Parallel sharded export.

Fans one transformed row sequence out to N shard workers. A single
producer task pulls source documents through the transform pipeline into
a bounded queue; each worker claims rows from the queue, compresses them
through its ShardSink and streams the bytes to its own uploader task.

All producer, writer and upload tasks run in one task group: the group is
the join barrier, and the first failure cancels every other task.
"""

import asyncio
import logging
from typing import Any, AsyncIterable, Callable, List, Sequence

from .config import ExportSettings
from .exceptions import ExportError, UploadError
from .exporters.base import BaseExporter
from .sink import ShardSink
from .stream import ByteStream
from .transforms.pipeline import TransformPipeline
from .uploaders.base import BaseUploader
from .utils.stats import ShardDescriptor, ShardStatus

logger = logging.getLogger(__name__)

# Marks the end of the row sequence; one is queued per worker.
_END = object()


def first_export_error(group: BaseExceptionGroup) -> BaseException:
    """
    Pick the error to report from a failed task group.

    Export errors are preferred over anything else; cancellations raised
    by the group itself are never chosen when a real failure exists.
    """
    flat: List[BaseException] = []

    def collect(error: BaseException) -> None:
        if isinstance(error, BaseExceptionGroup):
            for inner in error.exceptions:
                collect(inner)
        else:
            flat.append(error)

    collect(group)
    for error in flat:
        if isinstance(error, ExportError):
            return error
    for error in flat:
        if not isinstance(error, asyncio.CancelledError):
            return error
    return flat[0] if flat else group


class ShardFanout:
    """
    Export one row sequence into N concurrently written shards.

    Each row is claimed by exactly one worker; there is no ordering
    across shards. Within a shard, bytes reach the uploader in claim order.
    """

    def __init__(
        self,
        pipeline: TransformPipeline,
        shards: Sequence[ShardDescriptor],
        uploader: BaseUploader,
        exporter_factory: Callable[[], BaseExporter],
        settings: ExportSettings,
    ) -> None:
        if not shards:
            raise ValueError("at least one shard is required")
        self.pipeline = pipeline
        self.shards = list(shards)
        self.uploader = uploader
        self.exporter_factory = exporter_factory
        self.settings = settings

    async def run(self, documents: AsyncIterable[Any]) -> List[ShardDescriptor]:
        """
        Run the export until every shard is uploaded.

        Returns:
            Shard descriptors in index order, all uploaded

        Raises:
            ExportError: The first failure of any producer, writer or uploader
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.settings.queue_size)
        try:
            async with asyncio.TaskGroup() as group:
                group.create_task(self._produce(documents, queue), name="export-producer")
                for shard in self.shards:
                    stream = ByteStream(self.settings.stream_buffer_chunks)
                    sink = ShardSink(
                        shard,
                        self.exporter_factory(),
                        stream,
                        compress_level=self.settings.compress_level,
                        chunk_size=self.settings.chunk_size,
                    )
                    group.create_task(self._work(sink, queue), name=f"shard-{shard.index}-writer")
                    group.create_task(
                        self._upload(shard, stream), name=f"shard-{shard.index}-upload"
                    )
        except BaseExceptionGroup as group_error:
            error = first_export_error(group_error)
            self._fail_remaining(error)
            logger.error(f"Export failed: {error}")
            raise error from None

        return sorted(self.shards, key=lambda shard: shard.index)

    async def _produce(self, documents: AsyncIterable[Any], queue: asyncio.Queue) -> None:
        async for document in documents:
            row = self.pipeline.apply(document)
            await queue.put(row)
        for _ in self.shards:
            await queue.put(_END)

    async def _work(self, sink: ShardSink, queue: asyncio.Queue) -> None:
        shard = sink.shard
        try:
            await sink.open()
            while True:
                row = await queue.get()
                if row is _END:
                    break
                await sink.write_row(row)
            await sink.close()
        except ExportError as e:
            if e.shard_index is None:
                e.shard_index = shard.index
            await sink.abort(e)
            raise
        except Exception as e:
            await sink.abort(e)
            raise ExportError(f"shard {shard.index} failed: {e}", shard.index) from e

        logger.info(
            f"Output destination file: {shard.output_path}, count: {shard.row_count}, "
            f"fileIndex: {shard.index}"
        )

    async def _upload(self, shard: ShardDescriptor, stream: ByteStream) -> None:
        try:
            await self.uploader.upload(shard.output_path, stream)
        except ExportError as e:
            if stream.error is e:
                # Writer-side failure already reported by the writer task
                raise
            error = self._upload_error(shard, e)
            shard.mark_failed(error)
            await stream.abort(error)
            if error is e:
                raise
            raise error from e
        except Exception as e:
            error = self._upload_error(shard, e)
            shard.mark_failed(error)
            await stream.abort(error)
            raise error from e
        shard.mark_uploaded()

    @staticmethod
    def _upload_error(shard: ShardDescriptor, error: BaseException) -> UploadError:
        if isinstance(error, UploadError):
            if error.shard_index is None:
                error.shard_index = shard.index
            return error
        return UploadError(
            f"upload of shard {shard.index} failed: {error}", shard.output_path, shard.index
        )

    def _fail_remaining(self, error: BaseException) -> None:
        for shard in self.shards:
            if shard.status is not ShardStatus.FAILED and not shard.is_uploaded:
                shard.mark_failed(error)


def plan_shards(paths: Sequence[str]) -> List[ShardDescriptor]:
    """Create one pending descriptor per output path, indexed in order."""
    return [ShardDescriptor(index=index, output_path=path) for index, path in enumerate(paths)]

