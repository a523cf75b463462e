"""
ExportOperator: the single entry point for a sharded collection export.

Runs the whole export and decides whether it succeeded:
- Optionally copies the table config next to the data
- Fans the transformed documents out to N compressed, uploaded shards
- Verifies that row counts match
- Publishes the load manifest
- Returns a summary for the downstream pipeline step

No manifest is published unless every shard uploaded and the counts
match. Shard objects from a failed run can remain in storage, but without
a manifest no loader picks them up.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..config import ExportSettings, TableSpec
from ..exceptions import ConfigError, ExportError, UploadError
from ..exporters.base import BaseExporter
from ..exporters.json import JSONExporter
from ..manifest import manifest_for_shards, publish_manifest
from ..parallel_export import ShardFanout, plan_shards
from ..paths import config_filename, manifest_filename, reference_timestamp, shard_filename
from ..source import CountingRowSource, find_documents
from ..transforms.pipeline import TransformPipeline
from ..uploaders.base import BaseUploader
from ..utils.stats import ExportStats
from ..verification import verify_row_counts

logger = logging.getLogger(__name__)


@dataclass
class ExportSummary:
    """Completion summary of a successful export."""

    destination: str
    total_rows: int
    shard_count: int
    manifest_key: str
    date: str
    config_key: Optional[str] = None
    stats: ExportStats = field(default_factory=ExportStats, repr=False)

    def to_payload(self) -> Dict[str, Any]:
        """Payload for the next step of the analytics pipeline."""
        payload: Dict[str, Any] = {"tables": self.destination, "date": self.date}
        if self.config_key:
            payload["config"] = self.config_key
        return payload


class ExportOperator:
    """
    Export MongoDB collections into sharded, gzip-compressed JSON objects.

    Args:
        uploader: Where shard, manifest and config objects are stored
        settings: Bucket, shard count and buffering settings
    """

    def __init__(self, uploader: BaseUploader, settings: ExportSettings) -> None:
        if not hasattr(uploader, "upload"):
            raise ValueError("uploader must provide an 'upload' coroutine")
        self.uploader = uploader
        self.settings = settings
        self.stats: Optional[ExportStats] = None

    def _create_exporter(self) -> BaseExporter:
        return JSONExporter({"mode": self.settings.json_mode})

    async def copy_config(self, config_text: str, config_name: str, timestamp: str) -> str:
        """
        Store the raw table config next to the exported data.

        Returns:
            Key of the stored config copy
        """
        if not config_name:
            raise ConfigError("config_name is required to copy the config file")
        key = config_filename(timestamp, config_name, self.settings.prefix)
        logger.info(f"uploading conf file to: {self.uploader.url_for(key)}")
        try:
            await self.uploader.upload_bytes(key, config_text.encode("utf-8"))
        except ExportError:
            raise
        except Exception as e:
            raise UploadError(f"error writing config file: {e}", key) from e
        return key

    async def export_collection(
        self,
        database: Any,
        table: TableSpec,
        timestamp: Optional[str] = None,
        batch_size: int = 1000,
        **kwargs: Any,
    ) -> ExportSummary:
        """Export a table straight from a Motor or PyMongo database handle."""
        documents = find_documents(database, table, batch_size=batch_size)
        return await self.export(table, documents, timestamp=timestamp, **kwargs)

    async def export(
        self,
        table: TableSpec,
        documents: Any,
        timestamp: Optional[str] = None,
        config_text: Optional[str] = None,
        config_name: Optional[str] = None,
    ) -> ExportSummary:
        """
        Export documents for one table.

        Args:
            table: Resolved table definition
            documents: Async or sync iterable of source documents
            timestamp: Run timestamp; defaults to the current hour
            config_text: Raw config to copy alongside the data
            config_name: Name used in the config copy's key

        Returns:
            Summary of the completed export

        Raises:
            ExportError: If any stage fails; no manifest is written
        """
        if not table.dest:
            raise ConfigError(f"Table for source '{table.source}' has no destination")

        timestamp = timestamp or reference_timestamp()
        stats = ExportStats()
        self.stats = stats

        try:
            config_key = None
            if config_text is not None:
                config_key = await self.copy_config(config_text, config_name or "", timestamp)

            paths = [
                shard_filename(timestamp, table.dest, index, self.settings.prefix)
                for index in range(self.settings.num_shards)
            ]
            stats.shards = plan_shards(paths)
            logger.info(
                f"Exporting {table.source} to {table.dest} in {len(paths)} files "
                f"at {timestamp}"
            )
            for shard in stats.shards:
                logger.info(
                    f"Outputting file number: {shard.index} to location: {shard.output_path}"
                )

            if isinstance(documents, CountingRowSource):
                source = documents
                stats.rows_fetched = source.counter
            else:
                source = CountingRowSource(documents, stats.rows_fetched)

            pipeline = TransformPipeline.for_table(table, timestamp, stats.rows_read)
            fanout = ShardFanout(
                pipeline,
                stats.shards,
                self.uploader,
                self._create_exporter,
                self.settings,
            )
            await fanout.run(source)

            total_rows = verify_row_counts(stats.rows_read.value, stats.shards)

            manifest_key = manifest_filename(timestamp, table.dest, self.settings.prefix)
            manifest = manifest_for_shards(self.settings.bucket, stats.shards)
            await publish_manifest(self.uploader, manifest_key, manifest)
        except ExportError as e:
            stats.errors.append(e)
            stats.end_time = time.time()
            logger.error(f"Export of {table.source} failed: {e}")
            raise

        stats.end_time = time.time()
        logger.info(f"Export completed: {stats.summary()}")

        return ExportSummary(
            destination=table.dest,
            total_rows=total_rows,
            shard_count=len(stats.shards),
            manifest_key=manifest_key,
            date=timestamp,
            config_key=config_key,
            stats=stats,
        )
