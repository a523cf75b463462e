"""
Table configuration and export settings.

Table configs are YAML documents mapping a table name to its source
collection, destination name, column mappings and metadata:

    students:
      source: students
      dest: students
      columns:
        - {source: _id, dest: id}
        - {source: name.first, dest: first_name, pii: true}
      meta:
        datadatecolumn: _data_timestamp
        projection_optimization: true

Settings control how an export runs (bucket, shard count, buffer sizes) and
can be read from ``MONGO_S3_*`` environment variables.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import yaml

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

JSON_MODES = ("objects", "array")


@dataclass(frozen=True)
class FieldSpec:
    """Mapping of one source field path to a destination column."""

    source: str
    dest: str = ""
    pii: bool = False


@dataclass(frozen=True)
class TableMeta:
    """Per-table export metadata."""

    date_column: str = "_data_timestamp"
    database: str = ""
    # Projecting only listed fields drops parents of reused nested fields
    # (e.g. data.name alongside data.name.first), so it is opt-in per table.
    use_projection: bool = False
    legacy_array_flatten: bool = False


@dataclass(frozen=True)
class TableSpec:
    """Fully resolved export definition for one collection."""

    source: str
    dest: str
    fields: Tuple[FieldSpec, ...] = ()
    meta: TableMeta = field(default_factory=TableMeta)

    def field_map(self) -> Dict[str, List[str]]:
        """
        Map each source path to all of its destination columns.

        Fields with an empty destination are left out.
        """
        mappings: Dict[str, List[str]] = {}
        for spec in self.fields:
            if spec.dest:
                mappings.setdefault(spec.source, []).append(spec.dest)
        return mappings

    def pii_fields(self) -> List[str]:
        """Source paths that must be masked before remapping."""
        return [spec.source for spec in self.fields if spec.pii]

    def projection(self) -> Optional[Dict[str, int]]:
        """Return a find() projection for the listed source fields, if enabled."""
        if not self.meta.use_projection:
            return None
        return {spec.source: 1 for spec in self.fields}


def _parse_field(raw: Any, table_name: str) -> FieldSpec:
    if not isinstance(raw, Mapping) or not raw.get("source"):
        raise ConfigError(f"Table '{table_name}' has a column without a source: {raw!r}")
    return FieldSpec(
        source=str(raw["source"]),
        dest=str(raw.get("dest") or ""),
        pii=bool(raw.get("pii", False)),
    )


def _parse_table(name: str, raw: Any) -> TableSpec:
    if not isinstance(raw, Mapping):
        raise ConfigError(f"Table '{name}' must be a mapping, got {type(raw).__name__}")

    meta_raw = raw.get("meta") or {}
    if not isinstance(meta_raw, Mapping):
        raise ConfigError(f"Table '{name}' meta must be a mapping")

    meta = TableMeta(
        date_column=str(meta_raw.get("datadatecolumn") or "_data_timestamp"),
        database=str(meta_raw.get("database") or ""),
        use_projection=bool(meta_raw.get("projection_optimization", False)),
        legacy_array_flatten=bool(meta_raw.get("legacy_array_flatten", False)),
    )
    columns = raw.get("columns") or []
    if not isinstance(columns, list):
        raise ConfigError(f"Table '{name}' columns must be a list")

    return TableSpec(
        source=str(raw.get("source") or ""),
        dest=str(raw.get("dest") or ""),
        fields=tuple(_parse_field(column, name) for column in columns),
        meta=meta,
    )


def parse_config(text: Union[str, bytes]) -> Dict[str, TableSpec]:
    """
    Parse a YAML table configuration.

    Args:
        text: YAML document mapping table names to table definitions

    Returns:
        Mapping of table name to TableSpec

    Raises:
        ConfigError: If the document is not valid YAML or has the wrong shape
    """
    try:
        payload = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"err parsing config file: {e}") from e

    if not isinstance(payload, Mapping):
        raise ConfigError("Config must be a mapping of table name to table definition")

    return {str(name): _parse_table(str(name), raw) for name, raw in payload.items()}


def load_config(path: Union[str, Path]) -> Dict[str, TableSpec]:
    """Read and parse a YAML table configuration file."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Could not read config file {path}: {e}") from e
    return parse_config(text)


def get_table(config: Mapping[str, TableSpec], source: str) -> TableSpec:
    """
    Find the table whose source collection matches.

    Raises:
        ConfigError: If no source is given or it is not in the config
    """
    if not source:
        raise ConfigError("No collection specified")

    logger.info(f"fetching collection specified: {source}")
    found: Optional[TableSpec] = None
    for table in config.values():
        if table.source == source:
            found = table

    if found is None or not found.dest:
        raise ConfigError(f"Could not find source table: {source} in config")
    return found


@dataclass(frozen=True)
class ExportSettings:
    """
    Runtime settings for one export run.

    Attributes:
        bucket: Destination bucket; manifest URLs are qualified with it
        num_shards: Number of output files written in parallel
        prefix: Leading key segment for every object
        compress_level: gzip level (1 favours speed)
        queue_size: Transformed rows buffered between producer and workers
        stream_buffer_chunks: Compressed chunks buffered per shard before
            the encoder blocks on its uploader
        chunk_size: Compressed bytes collected before handing a chunk over
        json_mode: 'objects' (newline-delimited) or 'array'
    """

    bucket: str
    num_shards: int = 1
    prefix: str = "mongo"
    compress_level: int = 1
    queue_size: int = 1000
    stream_buffer_chunks: int = 4
    chunk_size: int = 1024 * 1024
    json_mode: str = "objects"

    def __post_init__(self) -> None:
        if self.num_shards < 1:
            raise ConfigError("Must specify a number of output file parts >= 1")
        if not 0 <= self.compress_level <= 9:
            raise ConfigError(f"invalid compression level: {self.compress_level}")
        if self.queue_size < 1 or self.stream_buffer_chunks < 1 or self.chunk_size < 1:
            raise ConfigError("queue_size, stream_buffer_chunks and chunk_size must be >= 1")
        if self.json_mode not in JSON_MODES:
            raise ConfigError(
                f"Unsupported json_mode '{self.json_mode}'. Supported modes: {', '.join(JSON_MODES)}"
            )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ExportSettings":
        """
        Build settings from MONGO_S3_* environment variables.

        MONGO_S3_BUCKET is required; MONGO_S3_NUM_FILES, MONGO_S3_PREFIX,
        MONGO_S3_COMPRESS_LEVEL and MONGO_S3_JSON_MODE are optional.
        """
        env = os.environ if environ is None else environ
        bucket = env.get("MONGO_S3_BUCKET", "")
        if not bucket:
            raise ConfigError("Must specify env variable MONGO_S3_BUCKET")

        return cls(
            bucket=bucket,
            num_shards=_parse_int(env, "MONGO_S3_NUM_FILES", 1),
            prefix=env.get("MONGO_S3_PREFIX", "mongo"),
            compress_level=_parse_int(env, "MONGO_S3_COMPRESS_LEVEL", 1),
            json_mode=env.get("MONGO_S3_JSON_MODE", "objects"),
        )


def _parse_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"Invalid {name} value: expected integer, got '{raw}'") from e
