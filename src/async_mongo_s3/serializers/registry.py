"""
Serializer registry for managing value serializers.

Provides a central registry for looking up the serializer for a value
type and dispatching serialization to it.
"""

from typing import Any, Dict, List, Optional, Type

from .base import SerializationContext, TypeSerializer
from .basic_types import (
    BinarySerializer,
    BsonScalarSerializer,
    DateSerializer,
    DecimalSerializer,
    FloatSerializer,
    SetSerializer,
    TimestampSerializer,
    UUIDSerializer,
)


class SerializerRegistry:
    """
    Registry for value serializers.

    Serializers are tried in registration order; the first one that can
    handle a value wins.
    """

    def __init__(self) -> None:
        self._serializers: List[TypeSerializer] = []
        self._type_cache: Dict[Type, Optional[TypeSerializer]] = {}

    def register(self, serializer: TypeSerializer) -> None:
        """Register a serializer."""
        self._serializers.append(serializer)
        # Clear cache when registry changes
        self._type_cache.clear()

    def find_serializer(self, value: Any) -> Optional[TypeSerializer]:
        """
        Find the serializer for a value.

        Args:
            value: The value to find a serializer for

        Returns:
            Matching serializer or None if the value needs no conversion
        """
        value_type = type(value)
        if value_type is float:
            # Finite floats pass through; only NaN/Infinity need converting
            return next((s for s in self._serializers if s.can_handle(value)), None)
        if value_type in self._type_cache:
            return self._type_cache[value_type]

        found = next((s for s in self._serializers if s.can_handle(value)), None)
        self._type_cache[value_type] = found
        return found

    def serialize(self, value: Any, context: SerializationContext) -> Any:
        """
        Serialize a value using the appropriate serializer.

        Values no serializer claims are returned unchanged for the JSON
        encoder to handle natively.
        """
        serializer = self.find_serializer(value)
        if serializer is None:
            return value
        return serializer.serialize(value, context)


def get_default_registry() -> SerializerRegistry:
    """Get a registry with all built-in serializers registered."""
    registry = SerializerRegistry()
    registry.register(FloatSerializer())
    registry.register(DecimalSerializer())
    registry.register(BinarySerializer())
    registry.register(UUIDSerializer())
    registry.register(TimestampSerializer())
    registry.register(DateSerializer())
    registry.register(SetSerializer())
    registry.register(BsonScalarSerializer())
    return registry


_default_registry: Optional[SerializerRegistry] = None


def get_global_registry() -> SerializerRegistry:
    """Get the global default registry (singleton)."""
    global _default_registry
    if _default_registry is None:
        _default_registry = get_default_registry()
    return _default_registry


def reset_global_registry() -> None:
    """Reset the global registry (mainly for testing)."""
    global _default_registry
    _default_registry = None
