"""
Source document iteration.

Wraps a MongoDB cursor (Motor/async PyMongo, or a plain synchronous
PyMongo cursor) as an async iterator that counts every document fetched
and logs progress on large collections.
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Dict, Iterator, List, Mapping, Optional

from .config import TableSpec
from .exceptions import SourceError
from .utils.stats import RowCounter

logger = logging.getLogger(__name__)

PROGRESS_LOG_INTERVAL = 1_000_000

Document = Mapping[str, Any]


def find_documents(database: Any, table: TableSpec, batch_size: int = 1000) -> Any:
    """
    Open a cursor over the table's source collection.

    Only the configured fields are fetched when the table enables
    projection optimization.

    Args:
        database: Motor or PyMongo database handle
        table: Table definition
        batch_size: Documents per server round trip
    """
    projection: Optional[Dict[str, int]] = table.projection()
    if projection:
        logger.info(f"Using projection with {len(projection)} fields for {table.source}")
    collection = database[table.source]
    return collection.find({}, projection=projection, batch_size=batch_size)


class CountingRowSource:
    """
    Async iterator over source documents with a fetch counter.

    Synchronous cursors are drained in batches on a worker thread so the
    event loop keeps servicing shard writers and uploads. The wrapper is
    meant for a single reader.
    """

    def __init__(
        self,
        documents: Any,
        counter: Optional[RowCounter] = None,
        batch_size: int = 1000,
        log_interval: int = PROGRESS_LOG_INTERVAL,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.documents = documents
        self.counter = counter or RowCounter()
        self.batch_size = batch_size
        self.log_interval = log_interval

    def __aiter__(self) -> AsyncIterator[Document]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Document]:
        if hasattr(self.documents, "__aiter__"):
            inner = self._iterate_async()
        else:
            inner = self._iterate_sync()
        async for document in inner:
            fetched = self.counter.increment()
            if self.log_interval and fetched % self.log_interval == 0:
                logger.info(f"Processing source row: {fetched}")
            yield document

    async def _iterate_async(self) -> AsyncIterator[Document]:
        iterator = self.documents.__aiter__()
        while True:
            try:
                document = await iterator.__anext__()
            except StopAsyncIteration:
                return
            except Exception as e:
                raise SourceError(f"Error reading from source: {e}") from e
            yield document

    async def _iterate_sync(self) -> AsyncIterator[Document]:
        iterator = iter(self.documents)
        while True:
            try:
                batch = await asyncio.to_thread(_next_batch, iterator, self.batch_size)
            except Exception as e:
                raise SourceError(f"Error reading from source: {e}") from e
            for document in batch:
                yield document
            if len(batch) < self.batch_size:
                return


def _next_batch(iterator: Iterator[Document], size: int) -> List[Document]:
    batch: List[Document] = []
    for document in iterator:
        batch.append(document)
        if len(batch) >= size:
            break
    return batch

