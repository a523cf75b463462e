"""
Base exporter abstract class.

Defines the interface for row encoders that write into a shard's
compressed output. Subclasses implement format-specific logic.
"""

from abc import ABC, abstractmethod
from typing import Any, BinaryIO, Dict, Optional


class BaseExporter(ABC):
    """
    Abstract base class for row encoders.

    An exporter is bound to one binary output (a shard's gzip stream) and
    writes a header, each row, then a footer. Writes are synchronous; the
    shard sink hands the produced bytes to its uploader asynchronously.
    """

    def __init__(self, options: Optional[Dict[str, Any]] = None) -> None:
        """
        Initialize exporter with format options.

        Args:
            options: Format-specific options
        """
        self.options = options or {}
        self._file: Optional[BinaryIO] = None

    def bind(self, output: BinaryIO) -> None:
        """Attach the binary output all subsequent writes go to."""
        self._file = output

    def _write(self, data: bytes) -> int:
        if self._file is None:
            raise RuntimeError(f"{self.__class__.__name__} is not bound to an output")
        self._file.write(data)
        return len(data)

    @abstractmethod
    def write_header(self) -> None:
        """Write anything the format needs before the first row."""
        pass

    @abstractmethod
    def write_row(self, row: Dict[str, Any]) -> int:
        """
        Write a single row.

        Args:
            row: Flat mapping of column name to value

        Returns:
            Number of uncompressed bytes written
        """
        pass

    @abstractmethod
    def write_footer(self) -> None:
        """Write anything the format needs after the last row."""
        pass
