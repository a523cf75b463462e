"""
Row encoders for shard output.

Provides the JSON exporter used to encode transformed rows before they
are compressed and uploaded.
"""

from .base import BaseExporter
from .json import JSONExporter

__all__ = ["BaseExporter", "JSONExporter"]
