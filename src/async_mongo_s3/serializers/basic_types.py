"""
Serializers for document value types.

Covers the values a MongoDB driver hands back that JSON has no native
representation for: timestamps, decimals, UUIDs, binary data, sets and
BSON-specific scalars such as ObjectId.
"""

import base64
import math
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from .base import SerializationContext, TypeSerializer


class FloatSerializer(TypeSerializer):
    """Serializer for floats; JSON has no NaN or Infinity."""

    def serialize(self, value: Any, context: SerializationContext) -> Any:
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        return value

    def can_handle(self, value: Any) -> bool:
        return isinstance(value, float) and not math.isfinite(value)


class DecimalSerializer(TypeSerializer):
    """Serializer for Decimal values, kept as strings to preserve precision."""

    def serialize(self, value: Any, context: SerializationContext) -> Any:
        if context.get_option("decimal_as_float", False):
            return float(value)
        return str(value)

    def can_handle(self, value: Any) -> bool:
        return isinstance(value, Decimal)


class BinarySerializer(TypeSerializer):
    """Serializer for binary data, encoded as base64."""

    def serialize(self, value: Any, context: SerializationContext) -> Any:
        return base64.b64encode(bytes(value)).decode("ascii")

    def can_handle(self, value: Any) -> bool:
        return isinstance(value, (bytes, bytearray, memoryview))


class UUIDSerializer(TypeSerializer):
    def serialize(self, value: Any, context: SerializationContext) -> Any:
        return str(value)

    def can_handle(self, value: Any) -> bool:
        return isinstance(value, UUID)


class TimestampSerializer(TypeSerializer):
    """
    Serializer for datetimes, ISO 8601 by default or epoch millis.

    Naive values are UTC, which is how PyMongo decodes BSON dates. UTC
    values are written with a Z suffix to match the run timestamp.
    """

    def serialize(self, value: Any, context: SerializationContext) -> Any:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        if context.get_option("timestamp_format") == "unix_millis":
            return int(value.timestamp() * 1000)
        if value.utcoffset() == timedelta(0):
            return value.replace(tzinfo=None).isoformat() + "Z"
        return value.isoformat()

    def can_handle(self, value: Any) -> bool:
        return isinstance(value, datetime)


class DateSerializer(TypeSerializer):
    def serialize(self, value: Any, context: SerializationContext) -> Any:
        return value.isoformat()

    def can_handle(self, value: Any) -> bool:
        return isinstance(value, (date, time)) and not isinstance(value, datetime)


class SetSerializer(TypeSerializer):
    """Serializer for sets; sorted when possible for stable output."""

    def serialize(self, value: Any, context: SerializationContext) -> Any:
        try:
            return sorted(value)
        except TypeError:
            return list(value)

    def can_handle(self, value: Any) -> bool:
        return isinstance(value, (set, frozenset))


class BsonScalarSerializer(TypeSerializer):
    """
    Serializer for BSON scalar types (ObjectId, Decimal128, Regex, ...).

    Matched by module so the bson package is not a hard dependency; each of
    these types renders its canonical form through str().
    """

    def serialize(self, value: Any, context: SerializationContext) -> Any:
        return str(value)

    def can_handle(self, value: Any) -> bool:
        # Int64 subclasses int and must stay a JSON number
        if isinstance(value, (int, float)):
            return False
        module = type(value).__module__ or ""
        return module == "bson" or module.startswith("bson.")
