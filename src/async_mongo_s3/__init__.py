"""async-mongo-s3 - Concurrent sharded export of MongoDB collections to S3."""

from importlib.metadata import PackageNotFoundError, version

from .config import (
    ExportSettings,
    FieldSpec,
    TableMeta,
    TableSpec,
    get_table,
    load_config,
    parse_config,
)
from .exceptions import (
    CompressError,
    ConfigError,
    ConsistencyError,
    EncodeError,
    ExportError,
    ManifestError,
    SourceError,
    TransformError,
    UploadError,
)
from .exporters import BaseExporter, JSONExporter
from .manifest import Manifest, ManifestEntry, build_manifest, publish_manifest
from .operators import ExportOperator, ExportSummary
from .parallel_export import ShardFanout
from .sink import ShardSink
from .source import CountingRowSource, find_documents
from .stream import ByteStream
from .transforms import TransformPipeline, flatten
from .uploaders import BaseUploader, LocalUploader, S3Uploader
from .utils.stats import ExportStats, RowCounter, ShardDescriptor, ShardStatus
from .verification import verify_row_counts

try:
    __version__ = version("async-mongo-s3")
except PackageNotFoundError:
    # Package is not installed
    __version__ = "0.0.0+unknown"


__all__ = [
    "ExportOperator",
    "ExportSummary",
    "ExportSettings",
    "FieldSpec",
    "TableMeta",
    "TableSpec",
    "parse_config",
    "load_config",
    "get_table",
    "TransformPipeline",
    "flatten",
    "ShardFanout",
    "ShardSink",
    "ByteStream",
    "CountingRowSource",
    "find_documents",
    "BaseExporter",
    "JSONExporter",
    "BaseUploader",
    "LocalUploader",
    "S3Uploader",
    "Manifest",
    "ManifestEntry",
    "build_manifest",
    "publish_manifest",
    "verify_row_counts",
    "ExportStats",
    "RowCounter",
    "ShardDescriptor",
    "ShardStatus",
    "ExportError",
    "ConfigError",
    "SourceError",
    "TransformError",
    "EncodeError",
    "CompressError",
    "UploadError",
    "ConsistencyError",
    "ManifestError",
    "__version__",
]
