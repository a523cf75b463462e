"""
Statistics tracking for sharded exports.

Provides the shared row counter used for consistency checks, per-shard
descriptors and run-level metrics such as throughput and duration.
"""

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class RowCounter:
    """
    Thread-safe monotonically increasing counter.

    Shared between the transform pipeline and the verifier, so increments
    go through a lock even though most callers run on one event loop.
    """

    def __init__(self, start: int = 0) -> None:
        self._value = start
        self._lock = threading.Lock()

    def increment(self, amount: int = 1) -> int:
        """Add to the counter and return the new value."""
        with self._lock:
            self._value += amount
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    def __repr__(self) -> str:
        return f"RowCounter({self.value})"


class ShardStatus(str, Enum):
    """Lifecycle of one output shard."""

    PENDING = "pending"
    WRITING = "writing"
    CLOSED = "closed"
    UPLOADED = "uploaded"
    FAILED = "failed"


@dataclass
class ShardDescriptor:
    """
    One output partition of an export.

    The output path is fixed at creation. Only the owning worker mutates the
    descriptor, and its row count is frozen once the shard's stream closes.
    """

    index: int
    output_path: str
    row_count: int = 0
    bytes_written: int = 0
    status: ShardStatus = ShardStatus.PENDING
    error: Optional[BaseException] = None

    def record_row(self) -> None:
        """Count one row claimed and written by this shard."""
        if self.status not in (ShardStatus.PENDING, ShardStatus.WRITING):
            raise RuntimeError(f"Shard {self.index} is {self.status.value}; cannot record rows")
        self.status = ShardStatus.WRITING
        self.row_count += 1

    def mark_closed(self) -> None:
        if self.status in (ShardStatus.PENDING, ShardStatus.WRITING):
            self.status = ShardStatus.CLOSED

    def mark_uploaded(self) -> None:
        if self.status is not ShardStatus.CLOSED:
            raise RuntimeError(
                f"Shard {self.index} cannot be marked uploaded while {self.status.value}"
            )
        self.status = ShardStatus.UPLOADED

    def mark_failed(self, error: BaseException) -> None:
        self.status = ShardStatus.FAILED
        self.error = error

    @property
    def is_uploaded(self) -> bool:
        return self.status is ShardStatus.UPLOADED


@dataclass
class ExportStats:
    """
    Run-level statistics for an export.

    Tracks rows fetched from the source, rows that passed the transform
    pipeline, per-shard descriptors and errors.
    """

    rows_read: RowCounter = field(default_factory=RowCounter)
    rows_fetched: RowCounter = field(default_factory=RowCounter)
    shards: List[ShardDescriptor] = field(default_factory=list)
    start_time: float = field(default_factory=time.time)
    end_time: Optional[float] = None
    errors: List[BaseException] = field(default_factory=list)

    @property
    def rows_written(self) -> int:
        """Sum of rows written across all shards."""
        return sum(shard.row_count for shard in self.shards)

    @property
    def bytes_written(self) -> int:
        return sum(shard.bytes_written for shard in self.shards)

    @property
    def duration_seconds(self) -> float:
        """
        Calculate export duration in seconds.

        Uses end_time if the export is finished, otherwise current time.
        """
        if self.end_time:
            return self.end_time - self.start_time
        return time.time() - self.start_time

    @property
    def rows_per_second(self) -> float:
        duration = self.duration_seconds
        if duration > 0:
            return self.rows_read.value / duration
        return 0

    @property
    def shards_uploaded(self) -> int:
        return sum(1 for shard in self.shards if shard.is_uploaded)

    @property
    def is_complete(self) -> bool:
        """All shards uploaded and no errors recorded."""
        return not self.errors and all(shard.is_uploaded for shard in self.shards)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def summary(self) -> str:
        """
        Generate human-readable summary of statistics.

        Returns:
            Formatted string with key metrics
        """
        parts = [
            f"Read {self.rows_read.value} rows",
            f"Wrote {self.rows_written} rows to {len(self.shards)} shards",
            f"Uploaded: {self.shards_uploaded}/{len(self.shards)}",
            f"Rate: {self.rows_per_second:.1f} rows/sec",
            f"Duration: {self.duration_seconds:.1f} seconds",
        ]

        if self.error_count > 0:
            parts.append(f"Errors: {self.error_count}")

        return " | ".join(parts)

    def as_dict(self) -> Dict[str, Any]:
        """Export statistics as a dictionary for logging or reporting."""
        return {
            "rows_fetched": self.rows_fetched.value,
            "rows_read": self.rows_read.value,
            "rows_written": self.rows_written,
            "bytes_written": self.bytes_written,
            "shards": [
                {
                    "index": shard.index,
                    "output_path": shard.output_path,
                    "row_count": shard.row_count,
                    "status": shard.status.value,
                }
                for shard in self.shards
            ],
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration_seconds": self.duration_seconds,
            "rows_per_second": self.rows_per_second,
            "error_count": self.error_count,
            "is_complete": self.is_complete,
        }
