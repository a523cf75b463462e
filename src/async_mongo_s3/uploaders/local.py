"""
Local filesystem uploader.

Writes objects below a root directory using async file I/O. Used for dry
runs and tests; keys map directly to relative paths.
"""

import logging
from pathlib import Path
from typing import AsyncIterable, Union

import aiofiles

from ..exceptions import ExportError, UploadError
from .base import BaseUploader

logger = logging.getLogger(__name__)


class LocalUploader(BaseUploader):
    """Store objects as files under ``root``."""

    def __init__(self, root: Union[str, Path]) -> None:
        if not root:
            raise ValueError("root cannot be empty")
        self.root = Path(root)

    def path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        root = self.root.resolve()
        if root != path and root not in path.parents:
            raise UploadError(f"key escapes upload root: {key}", key)
        return path

    def url_for(self, key: str) -> str:
        return self.path_for(key).as_uri()

    async def upload(self, key: str, chunks: AsyncIterable[bytes]) -> str:
        path = self.path_for(key)
        logger.info(f"writing file: {key} to path: {path}")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, mode="wb") as f:
                async for chunk in chunks:
                    await f.write(chunk)
        except ExportError:
            raise
        except OSError as e:
            raise UploadError(f"err writing to path: {path}, err: {e}", key) from e
        return path.as_uri()
