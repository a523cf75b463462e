"""
Flattening of nested documents into dot-path keyed rows.

Nested mappings become ``parent.child`` keys. Arrays are kept as a compact
JSON string under the array's own key, and mapping elements inside an
array are flattened as well, under ``key.<index>.child`` by default.

Tables exported before indexed keys existed can set
``legacy_array_flatten``: mapping elements are then flattened under the
array's own prefix (``key.child``), so later elements overwrite earlier
ones and insertion order decides which value survives.
"""

from collections.abc import Mapping
from typing import Any, Dict

from async_mongo_s3.exceptions import TransformError
from async_mongo_s3.exporters.json import dumps_compact


def flatten(row: Mapping, legacy_arrays: bool = False) -> Dict[str, Any]:
    """
    Flatten a nested document.

    Flattening an already flat row returns an equal row.

    Args:
        row: Source document
        legacy_arrays: Flatten array elements without an index segment

    Returns:
        New flat row

    Raises:
        TransformError: If an array cannot be serialized
    """
    flattened: Dict[str, Any] = {}
    _flatten_into(row, "", flattened, legacy_arrays)
    return flattened


def _flatten_into(
    document: Mapping, prefix: str, flattened: Dict[str, Any], legacy_arrays: bool
) -> None:
    for raw_key, value in document.items():
        key = prefix + str(raw_key)
        if isinstance(value, Mapping):
            _flatten_into(value, key + ".", flattened, legacy_arrays)
        elif isinstance(value, (list, tuple)):
            try:
                flattened[key] = dumps_compact(list(value))
            except (TypeError, ValueError) as e:
                raise TransformError(f"could not serialize array '{key}': {e}", "flatten") from e
            for index, element in enumerate(value):
                if isinstance(element, Mapping):
                    element_prefix = f"{key}." if legacy_arrays else f"{key}.{index}."
                    _flatten_into(element, element_prefix, flattened, legacy_arrays)
        else:
            flattened[key] = value
