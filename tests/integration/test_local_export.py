"""
Integration test: full export from a YAML config to the local filesystem.

What this tests:
---------------
1. Config file loading and table lookup
2. Export through LocalUploader with real async file I/O
3. Shard files, manifest and config copy on disk

Why this matters:
----------------
- Exercises every component together without MongoDB or S3
- Dry runs use exactly this path
"""

import gzip
import json

import pytest

from async_mongo_s3 import ExportOperator, ExportSettings, LocalUploader, get_table, load_config

CONFIG = """
people:
  source: people
  dest: people
  columns:
    - {source: _id, dest: id}
    - {source: profile.city, dest: city}
    - {source: phone, dest: has_phone, pii: true}
    - {source: orders, dest: orders}
    - {source: orders.0.total, dest: first_order_total}
"""


@pytest.mark.integration
class TestLocalExport:
    @pytest.mark.asyncio
    async def test_export_to_directory(self, tmp_path):
        """
        Test a four-shard export of 1000 documents to disk.

        What this tests:
        ---------------
        1. Four gzip shards holding 1000 rows in total
        2. Manifest lists the four shards in order
        3. Config copy matches the source file
        4. Array fields are serialized and indexed

        Why this matters:
        ----------------
        - Catches integration issues unit tests with fakes cannot
        """
        config_path = tmp_path / "tables.yml"
        config_path.write_text(CONFIG)
        table = get_table(load_config(config_path), "people")
        documents = [
            {
                "_id": i,
                "profile": {"city": f"city-{i % 7}"},
                "phone": "" if i % 3 == 0 else "555-0100",
                "orders": [{"total": i}, {"total": i + 1}],
            }
            for i in range(1000)
        ]
        out = tmp_path / "out"
        operator = ExportOperator(
            LocalUploader(out), ExportSettings(bucket="analytics", num_shards=4, chunk_size=256)
        )

        summary = await operator.export(
            table,
            documents,
            timestamp="2024-06-01T08:00:00Z",
            config_text=CONFIG,
            config_name="tables",
        )

        manifest = json.loads((out / summary.manifest_key).read_text())
        assert len(manifest["entries"]) == 4

        rows = []
        for shard in summary.stats.shards:
            with gzip.open(out / shard.output_path, "rt", encoding="utf-8") as f:
                rows.extend(json.loads(line) for line in f)
        assert len(rows) == 1000
        assert sorted(row["id"] for row in rows) == list(range(1000))

        row = next(r for r in rows if r["id"] == 3)
        assert row == {
            "id": 3,
            "city": "city-3",
            "has_phone": False,
            "orders": '[{"total":3},{"total":4}]',
            "first_order_total": 3,
            "_data_timestamp": "2024-06-01T08:00:00Z",
        }
        assert (out / summary.config_key).read_text() == CONFIG
