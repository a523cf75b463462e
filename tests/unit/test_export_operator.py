"""
Test ExportOperator end to end against an in-memory uploader.

What this tests:
---------------
1. A clean run writes N shards and a manifest listing all of them
2. Exported rows are transformed per the table definition
3. Any failure leaves no manifest behind
4. Config copy and completion payload

Why this matters:
----------------
- This is the public entry point of the library
- The manifest must only ever describe complete, verified exports
"""

import json
import logging
from unittest.mock import MagicMock, patch

import pytest

from async_mongo_s3 import ExportOperator, ExportSettings
from async_mongo_s3.config import TableSpec
from async_mongo_s3.exceptions import (
    ConfigError,
    ConsistencyError,
    ManifestError,
    TransformError,
    UploadError,
)
from async_mongo_s3.paths import config_filename, manifest_filename, shard_filename
from async_mongo_s3.source import CountingRowSource
from async_mongo_s3.transforms import TransformPipeline, count_row

TS = "2024-01-01T10:00:00Z"


def students(count):
    return [
        {
            "_id": i,
            "name": {"first": f"student-{i}", "last": "x"},
            "email": "" if i % 2 else f"s{i}@example.com",
            "internal": "secret",
        }
        for i in range(count)
    ]


def manifests(uploader):
    return {k: v for k, v in uploader.objects.items() if k.endswith(".manifest")}


class TestExportOperatorSuccess:
    """Test successful exports."""

    @pytest.mark.asyncio
    async def test_three_shards_ten_rows(self, memory_uploader, sample_table, settings, read_rows):
        """
        Test the reference run of 10 rows into 3 shards.

        What this tests:
        ---------------
        1. Three shard objects are written
        2. One manifest with exactly three entries, in shard order
        3. Shard counts sum to 10
        4. Summary reports totals and the manifest key

        Why this matters:
        ----------------
        - This is the contract downstream loaders rely on
        """
        operator = ExportOperator(memory_uploader, settings)

        summary = await operator.export(sample_table, students(10), timestamp=TS)

        shard_keys = [shard_filename(TS, "students", i) for i in range(3)]
        for key in shard_keys:
            assert key in memory_uploader.objects
        manifest_key = manifest_filename(TS, "students")
        manifest = json.loads(memory_uploader.objects[manifest_key])
        assert [entry["url"] for entry in manifest["entries"]] == [
            f"s3://analytics/{key}" for key in shard_keys
        ]
        assert all(entry["mandatory"] is True for entry in manifest["entries"])

        total = sum(len(read_rows(memory_uploader.objects[key])) for key in shard_keys)
        assert total == 10
        assert summary.total_rows == 10
        assert summary.shard_count == 3
        assert summary.manifest_key == manifest_key
        assert summary.stats.is_complete
        assert summary.stats.rows_fetched.value == 10
        assert summary.to_payload() == {"tables": "students", "date": TS}

    @pytest.mark.asyncio
    async def test_rows_transformed(self, memory_uploader, sample_table, read_rows):
        """
        Test the content of exported rows.

        What this tests:
        ---------------
        1. Only destination columns are present
        2. One source fans out to two columns
        3. PII is reduced to a boolean
        4. Every row carries the run timestamp

        Why this matters:
        ----------------
        - Unmapped fields like "internal" must never be exported
        """
        operator = ExportOperator(memory_uploader, ExportSettings(bucket="analytics"))

        await operator.export(sample_table, students(2), timestamp=TS)

        rows = read_rows(memory_uploader.objects[shard_filename(TS, "students", 0)])
        assert rows == [
            {
                "id": 0,
                "first_name": "student-0",
                "given_name": "student-0",
                "has_email": True,
                "_data_timestamp": TS,
            },
            {
                "id": 1,
                "first_name": "student-1",
                "given_name": "student-1",
                "has_email": False,
                "_data_timestamp": TS,
            },
        ]

    @pytest.mark.asyncio
    async def test_async_source_and_default_timestamp(self, memory_uploader, sample_table):
        async def cursor():
            for document in students(5):
                yield document

        operator = ExportOperator(memory_uploader, ExportSettings(bucket="analytics", num_shards=2))

        summary = await operator.export(sample_table, cursor())

        assert summary.total_rows == 5
        assert summary.date.endswith(":00:00Z")
        assert summary.manifest_key in memory_uploader.objects

    @pytest.mark.asyncio
    async def test_existing_counting_source_reused(self, memory_uploader, sample_table):
        source = CountingRowSource(students(3))
        operator = ExportOperator(memory_uploader, ExportSettings(bucket="analytics"))

        summary = await operator.export(sample_table, source, timestamp=TS)

        assert summary.stats.rows_fetched is source.counter
        assert source.counter.value == 3

    @pytest.mark.asyncio
    async def test_config_copied_next_to_data(self, memory_uploader, sample_table):
        """
        Test the config copy.

        What this tests:
        ---------------
        1. The raw config is stored under the run's partition
        2. The completion payload points at it

        Why this matters:
        ----------------
        - Loaders need the exact config the export ran with
        """
        operator = ExportOperator(memory_uploader, ExportSettings(bucket="analytics"))
        config_text = "students:\n  source: students\n  dest: students\n"

        summary = await operator.export(
            sample_table, students(1), timestamp=TS, config_text=config_text, config_name="tables"
        )

        key = config_filename(TS, "tables")
        assert memory_uploader.objects[key] == config_text.encode("utf-8")
        assert summary.config_key == key
        assert summary.to_payload() == {"tables": "students", "date": TS, "config": key}

    @pytest.mark.asyncio
    async def test_export_collection_uses_database_cursor(self, memory_uploader, sample_table):
        database = MagicMock()
        database.__getitem__.return_value.find.return_value = iter(students(4))
        operator = ExportOperator(memory_uploader, ExportSettings(bucket="analytics"))

        summary = await operator.export_collection(database, sample_table, timestamp=TS)

        assert summary.total_rows == 4
        database.__getitem__.assert_called_with("students")

    @pytest.mark.asyncio
    async def test_completion_logged(self, memory_uploader, sample_table, caplog):
        operator = ExportOperator(memory_uploader, ExportSettings(bucket="analytics"))

        with caplog.at_level(logging.INFO):
            await operator.export(sample_table, students(3), timestamp=TS)

        assert "Outputting file number: 0 to location:" in caplog.text
        assert "Output 3 total rows in 1 files" in caplog.text
        assert "Manifest file contents:" in caplog.text
        assert "Export completed:" in caplog.text


class TestExportOperatorFailures:
    """Test that failed runs never publish a manifest."""

    @pytest.mark.asyncio
    async def test_shard_upload_failure(self, make_uploader, sample_table, settings):
        """
        Test a failed shard upload.

        What this tests:
        ---------------
        1. The run raises UploadError
        2. No manifest is written
        3. The error is recorded on the run stats

        Why this matters:
        ----------------
        - Other shards may exist but must stay orphaned
        """
        uploader = make_uploader(fail_when=lambda key: key.endswith("_1.json.gz"))
        operator = ExportOperator(uploader, settings)

        with pytest.raises(UploadError):
            await operator.export(sample_table, students(10), timestamp=TS)

        assert manifests(uploader) == {}
        assert operator.stats.error_count == 1
        assert not operator.stats.is_complete

    @pytest.mark.asyncio
    async def test_transform_failure(self, memory_uploader, sample_table, settings):
        docs = students(5)
        docs[3]["tags"] = [object()]
        operator = ExportOperator(memory_uploader, settings)

        with pytest.raises(TransformError) as exc_info:
            await operator.export(sample_table, docs, timestamp=TS)

        assert exc_info.value.stage == "flatten"
        assert manifests(memory_uploader) == {}

    @pytest.mark.asyncio
    async def test_row_count_mismatch(self, memory_uploader, sample_table, settings):
        """
        Test the consistency check.

        What this tests:
        ---------------
        1. Rows counted twice make read and written totals differ
        2. ConsistencyError is raised after all shards uploaded
        3. No manifest is written

        Why this matters:
        ----------------
        - Uploaded shards alone do not prove a complete export
        """
        real_for_table = TransformPipeline.for_table

        def double_counting(table, timestamp, rows_read):
            pipeline = real_for_table(table, timestamp, rows_read)
            pipeline.stages.append(("recount", lambda row: count_row(row, rows_read)))
            return pipeline

        operator = ExportOperator(memory_uploader, settings)

        with patch.object(TransformPipeline, "for_table", side_effect=double_counting):
            with pytest.raises(ConsistencyError) as exc_info:
                await operator.export(sample_table, students(10), timestamp=TS)

        assert exc_info.value.rows_read == 20
        assert exc_info.value.rows_written == 10
        assert manifests(memory_uploader) == {}
        assert operator.stats.shards_uploaded == 3

    @pytest.mark.asyncio
    async def test_manifest_upload_failure(self, make_uploader, sample_table, settings):
        uploader = make_uploader(fail_when=lambda key: key.endswith(".manifest"))
        operator = ExportOperator(uploader, settings)

        with pytest.raises(ManifestError):
            await operator.export(sample_table, students(10), timestamp=TS)

        assert manifests(uploader) == {}
        assert operator.stats.shards_uploaded == 3

    @pytest.mark.asyncio
    async def test_config_copy_failure_stops_before_export(self, make_uploader, sample_table):
        uploader = make_uploader(fail_when=lambda key: key.endswith(".yml"))
        operator = ExportOperator(uploader, ExportSettings(bucket="analytics"))

        with pytest.raises(UploadError, match="error writing config file"):
            await operator.export(
                sample_table, students(1), timestamp=TS, config_text="x: 1", config_name="tables"
            )

        assert uploader.started == [config_filename(TS, "tables")]

    @pytest.mark.asyncio
    async def test_missing_destination(self, memory_uploader):
        operator = ExportOperator(memory_uploader, ExportSettings(bucket="analytics"))

        with pytest.raises(ConfigError, match="has no destination"):
            await operator.export(TableSpec(source="s", dest=""), [], timestamp=TS)

    def test_uploader_required(self):
        with pytest.raises(ValueError, match="upload"):
            ExportOperator(object(), ExportSettings(bucket="analytics"))
