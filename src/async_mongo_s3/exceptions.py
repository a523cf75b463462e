"""
Exception hierarchy for sharded exports.

Every failure kind is terminal for the run. Errors raised inside a shard
carry the shard index so the operator can report which shard failed.
"""

from typing import Optional


class ExportError(Exception):
    """Base error for all export failures."""

    def __init__(self, message: str, shard_index: Optional[int] = None) -> None:
        super().__init__(message)
        self.shard_index = shard_index


class ConfigError(ExportError):
    """Invalid table configuration or export settings."""


class SourceError(ExportError):
    """Failure while fetching documents from the source collection."""


class TransformError(ExportError):
    """A pipeline stage rejected a row."""

    def __init__(self, message: str, stage: str) -> None:
        super().__init__(f"{stage}: {message}")
        self.stage = stage


class EncodeError(ExportError):
    """A row could not be encoded as JSON."""


class CompressError(EncodeError):
    """The gzip stream for a shard failed."""


class UploadError(ExportError):
    """The uploader failed to persist an object."""

    def __init__(self, message: str, key: str, shard_index: Optional[int] = None) -> None:
        super().__init__(message, shard_index=shard_index)
        self.key = key


class ConsistencyError(ExportError):
    """Rows read from the source do not match rows written to shards."""

    def __init__(self, rows_read: int, rows_written: int) -> None:
        super().__init__(
            f"number of rows written to shards: {rows_written} does not match "
            f"the number of rows read from source: {rows_read}"
        )
        self.rows_read = rows_read
        self.rows_written = rows_written


class ManifestError(ExportError):
    """The manifest could not be built or uploaded."""
