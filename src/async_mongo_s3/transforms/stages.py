"""
Per-row transform stages applied after flattening.

Each stage takes a flat row and returns the row to hand to the next
stage. PII masking mutates its input in place; remapping builds a new row.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping

from async_mongo_s3.exceptions import TransformError
from async_mongo_s3.utils.stats import RowCounter

# Values equal to the empty value of their own type count as "not set".
_DEFAULT_COMPARABLE_TYPES = (bool, int, float, complex, Decimal, str, bytes, bytearray)


def is_default_value(value: Any) -> bool:
    """
    Check whether a value is the default for its kind.

    None, False, zero, empty strings and empty containers are defaults;
    datetimes and other opaque values never are.
    """
    if value is None:
        return True
    if isinstance(value, (datetime, date)):
        return False
    if isinstance(value, _DEFAULT_COMPARABLE_TYPES):
        return value == type(value)()
    if isinstance(value, (list, tuple, dict, set, frozenset)):
        return len(value) == 0
    return False


def mask_pii(row: Dict[str, Any], pii_fields: Iterable[str]) -> Dict[str, Any]:
    """
    Replace sensitive values with whether they were set.

    Each listed source path becomes True when present with a non-default
    value and False when present-but-default or absent.
    """
    for source in pii_fields:
        if source in row:
            row[source] = not is_default_value(row[source])
        else:
            row[source] = False
    return row


def remap_fields(row: Mapping[str, Any], field_map: Mapping[str, List[str]]) -> Dict[str, Any]:
    """
    Build a row containing only destination columns.

    Every source path is copied into each of its destinations. Sources
    missing from the row are skipped; everything unmapped is dropped.
    """
    remapped: Dict[str, Any] = {}
    for source, destinations in field_map.items():
        if source not in row:
            continue
        value = row[source]
        for dest in destinations:
            remapped[dest] = value
    return remapped


def stamp_date(row: Dict[str, Any], column: str, timestamp: str) -> Dict[str, Any]:
    """Set the data date column to the run timestamp, overwriting any value."""
    if not column:
        raise TransformError("no date column configured", "date_stamp")
    row[column] = timestamp
    return row


def count_row(row: Dict[str, Any], counter: RowCounter) -> Dict[str, Any]:
    """Pass the row through, counting it as read."""
    counter.increment()
    return row
