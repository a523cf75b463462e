"""
Fixed per-row transform chain.

Applies flatten, PII masking, field remapping, date stamping and row
counting, in that order. Any stage failure surfaces as a TransformError
naming the stage; there is no skip-and-continue.
"""

from functools import partial
from typing import Any, Callable, Dict, List, Mapping, Tuple

from async_mongo_s3.config import TableSpec
from async_mongo_s3.exceptions import TransformError
from async_mongo_s3.transforms.flatten import flatten
from async_mongo_s3.transforms.stages import count_row, mask_pii, remap_fields, stamp_date
from async_mongo_s3.utils.stats import RowCounter

Row = Dict[str, Any]
Stage = Callable[[Row], Row]


class TransformPipeline:
    """
    Ordered chain of row transforms.

    Build one per run with ``for_table``; ``apply`` is called once per
    source document by the single producer feeding the shard workers.
    """

    def __init__(self, stages: List[Tuple[str, Stage]], rows_read: RowCounter) -> None:
        self.stages = stages
        self.rows_read = rows_read

    @classmethod
    def for_table(
        cls, table: TableSpec, timestamp: str, rows_read: RowCounter
    ) -> "TransformPipeline":
        """
        Build the standard pipeline for a table.

        Args:
            table: Table definition providing PII fields, field map and date column
            timestamp: Run timestamp written into every row
            rows_read: Shared counter incremented once per transformed row
        """
        stages: List[Tuple[str, Stage]] = [
            ("flatten", partial(flatten, legacy_arrays=table.meta.legacy_array_flatten)),
            ("pii_mask", partial(mask_pii, pii_fields=table.pii_fields())),
            ("field_remap", partial(remap_fields, field_map=table.field_map())),
            (
                "date_stamp",
                partial(stamp_date, column=table.meta.date_column, timestamp=timestamp),
            ),
            ("count", partial(count_row, counter=rows_read)),
        ]
        return cls(stages, rows_read)

    def apply(self, document: Mapping[str, Any]) -> Row:
        """
        Run one document through every stage.

        Raises:
            TransformError: If any stage fails
        """
        row: Any = document
        for name, stage in self.stages:
            try:
                row = stage(row)
            except TransformError:
                raise
            except Exception as e:
                raise TransformError(str(e), name) from e
        return row

    def __repr__(self) -> str:
        return f"TransformPipeline({' -> '.join(name for name, _ in self.stages)})"
