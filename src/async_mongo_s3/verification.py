"""
Row count reconciliation between the source and the written shards.

Runs once after every shard writer and uploader has finished. A mismatch
means rows were lost or duplicated, and the manifest must not be published.
"""

import logging
from typing import Sequence

from .exceptions import ConsistencyError
from .utils.stats import ShardDescriptor

logger = logging.getLogger(__name__)


def verify_row_counts(rows_read: int, shards: Sequence[ShardDescriptor]) -> int:
    """
    Check that every row read was written to exactly one shard.

    Args:
        rows_read: Rows that passed the transform pipeline
        shards: All shard descriptors of the run

    Returns:
        Total rows written

    Raises:
        ConsistencyError: If the totals differ
    """
    rows_written = sum(shard.row_count for shard in shards)
    logger.info(f"Output {rows_written} total rows in {len(shards)} files")
    if rows_written != rows_read:
        error = ConsistencyError(rows_read=rows_read, rows_written=rows_written)
        logger.error(str(error))
        raise error
    return rows_written
