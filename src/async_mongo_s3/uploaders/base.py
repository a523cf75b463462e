"""
Base uploader abstract class.

An uploader durably stores one object from an async stream of byte
chunks. Shards, the manifest and the config copy all go through it.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterable, AsyncIterator


class BaseUploader(ABC):
    """Abstract base class for object uploaders."""

    @abstractmethod
    async def upload(self, key: str, chunks: AsyncIterable[bytes]) -> str:
        """
        Store an object from a stream of chunks.

        The stream is consumed to its end before returning.

        Args:
            key: Object key relative to the uploader's root
            chunks: Async iterable of byte chunks, in order

        Returns:
            Location of the stored object

        Raises:
            UploadError: If the object could not be stored
        """
        pass

    @abstractmethod
    def url_for(self, key: str) -> str:
        """Return the location an object with this key is stored at."""
        pass

    async def upload_bytes(self, key: str, data: bytes) -> str:
        """Store a small object held in memory."""
        return await self.upload(key, _single_chunk(data))


async def _single_chunk(data: bytes) -> AsyncIterator[bytes]:
    yield data
