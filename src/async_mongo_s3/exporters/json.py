"""
JSON exporter implementation.

Encodes rows as newline-delimited JSON objects (the default, what
``COPY ... FORMAT JSON`` loaders consume) or as a single JSON array.
"""

import json
from typing import Any, Dict, Optional

from async_mongo_s3.exceptions import EncodeError
from async_mongo_s3.exporters.base import BaseExporter
from async_mongo_s3.serializers import SerializationContext, get_global_registry


class DocumentJSONEncoder(json.JSONEncoder):
    """
    JSON encoder for document values.

    Uses the serialization registry for values JSON cannot represent,
    including NaN/Infinity floats, which are rewritten before encoding.
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        self.serialization_options = kwargs.pop("serialization_options", {})
        self._context = SerializationContext(options=self.serialization_options)
        kwargs.setdefault("allow_nan", False)
        super().__init__(*args, **kwargs)

    def encode(self, o: Any) -> str:
        return super().encode(self._pre_process(o))

    def _pre_process(self, obj: Any) -> Any:
        if isinstance(obj, dict):
            return {k: self._pre_process(v) for k, v in obj.items()}
        if isinstance(obj, (list, tuple)):
            return [self._pre_process(item) for item in obj]
        return get_global_registry().serialize(obj, self._context)

    def default(self, obj: Any) -> Any:
        result = get_global_registry().serialize(obj, self._context)
        if result is obj:
            return super().default(obj)
        return result


_compact_encoder = DocumentJSONEncoder(separators=(",", ":"), sort_keys=True, ensure_ascii=False)


def dumps_compact(value: Any) -> str:
    """Serialize a value as compact JSON with sorted keys."""
    return _compact_encoder.encode(value)


class JSONExporter(BaseExporter):
    """
    JSON format exporter.

    Supports two modes:
    - objects: Newline-delimited JSON objects (default)
    - array: Single JSON array containing all rows
    """

    def __init__(self, options: Optional[Dict[str, Any]] = None) -> None:
        """
        Initialize JSON exporter with formatting options.

        Args:
            options: JSON-specific options:
                - mode: 'objects' or 'array' (default: 'objects')
                - decimal_as_float / timestamp_format: serializer options
        """
        super().__init__(options)
        self.mode = self.options.get("mode", "objects")
        if self.mode not in ("objects", "array"):
            raise ValueError(f"Unsupported JSON mode '{self.mode}'")

        self._first_row = True
        self._encoder = DocumentJSONEncoder(
            separators=(",", ":"),
            ensure_ascii=False,
            serialization_options=self.options,
        )

    def write_header(self) -> None:
        self._first_row = True
        if self.mode == "array":
            self._write(b"[")

    def write_row(self, row: Dict[str, Any]) -> int:
        try:
            encoded = self._encoder.encode(row).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise EncodeError(f"Could not encode row as JSON: {e}") from e

        if self.mode == "array":
            if self._first_row:
                self._first_row = False
                return self._write(encoded)
            return self._write(b"," + encoded)
        return self._write(encoded + b"\n")

    def write_footer(self) -> None:
        if self.mode == "array":
            self._write(b"]\n")
