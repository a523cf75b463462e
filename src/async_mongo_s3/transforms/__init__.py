"""
Row transforms applied between the source and the shard writers.
"""

from .flatten import flatten
from .pipeline import TransformPipeline
from .stages import count_row, is_default_value, mask_pii, remap_fields, stamp_date

__all__ = [
    "TransformPipeline",
    "flatten",
    "mask_pii",
    "remap_fields",
    "stamp_date",
    "count_row",
    "is_default_value",
]
