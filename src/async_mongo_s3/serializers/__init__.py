"""
Value serializers for JSON output.

Converts BSON and Python values that JSON cannot represent natively.
"""

from .base import SerializationContext, TypeSerializer
from .registry import (
    SerializerRegistry,
    get_default_registry,
    get_global_registry,
    reset_global_registry,
)

__all__ = [
    "TypeSerializer",
    "SerializationContext",
    "SerializerRegistry",
    "get_default_registry",
    "get_global_registry",
    "reset_global_registry",
]
