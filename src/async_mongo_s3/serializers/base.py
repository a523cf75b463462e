"""
Base serializer interface and context.

Defines the contract for value serializers that turn BSON and Python
values into JSON-compatible values.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class SerializationContext:
    """Serialization options shared by every serializer in a run."""

    options: Dict[str, Any] = field(default_factory=dict)

    def get_option(self, key: str, default: Any = None) -> Any:
        """Get a serialization option with default."""
        return self.options.get(key, default)


class TypeSerializer(ABC):
    """
    Abstract base class for value serializers.

    Each serializer recognises a family of values and converts them to a
    representation the JSON encoder can write.
    """

    @abstractmethod
    def serialize(self, value: Any, context: SerializationContext) -> Any:
        """
        Serialize a value.

        Args:
            value: The value to serialize
            context: Serialization options

        Returns:
            JSON-compatible value
        """
        pass

    @abstractmethod
    def can_handle(self, value: Any) -> bool:
        """Check if this serializer can handle the given value."""
        pass

    def __repr__(self) -> str:
        """String representation of the serializer."""
        return f"{self.__class__.__name__}()"
