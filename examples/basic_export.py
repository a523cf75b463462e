#!/usr/bin/env python3
"""
Basic export example.

This example shows how to:
1. Load a table config
2. Export a MongoDB collection into sharded gzip JSON files
3. Publish a load manifest
4. Read the completion summary

With MONGO_S3_BUCKET set the export goes to S3; otherwise it is written
to ./export_output. Set MONGO_URL to read from MongoDB (requires motor);
without it a small generated collection is exported.
"""

import asyncio
import logging
import os
from pathlib import Path

from async_mongo_s3 import (
    ExportOperator,
    ExportSettings,
    LocalUploader,
    S3Uploader,
    get_table,
    parse_config,
)

CONFIG = """
users:
  source: users
  dest: users
  columns:
    - {source: _id, dest: id}
    - {source: username, dest: username}
    - {source: profile.age, dest: age}
    - {source: email, dest: has_email, pii: true}
  meta:
    projection_optimization: true
"""


def sample_documents(count=1000):
    """Generate documents shaped like the users collection."""
    return [
        {
            "_id": i,
            "username": f"user{i}",
            "profile": {"age": 20 + i % 40},
            "email": f"user{i}@example.com" if i % 3 else "",
        }
        for i in range(count)
    ]


async def basic_export_example():
    """Demonstrate a sharded export."""
    table = get_table(parse_config(CONFIG), "users")

    if os.environ.get("MONGO_S3_BUCKET"):
        settings = ExportSettings.from_env()
        uploader = S3Uploader(settings.bucket)
    else:
        settings = ExportSettings(bucket="example-bucket", num_shards=4)
        output_dir = Path("export_output")
        output_dir.mkdir(exist_ok=True)
        uploader = LocalUploader(output_dir)

    operator = ExportOperator(uploader, settings)

    mongo_url = os.environ.get("MONGO_URL")
    if mongo_url:
        from motor.motor_asyncio import AsyncIOMotorClient

        client = AsyncIOMotorClient(mongo_url)
        database = client[table.meta.database or "test"]
        summary = await operator.export_collection(
            database, table, config_text=CONFIG, config_name="users"
        )
    else:
        summary = await operator.export(
            table, sample_documents(), config_text=CONFIG, config_name="users"
        )

    print("\nExport Complete:")
    print(f"  - Rows exported: {summary.total_rows}")
    print(f"  - Shards: {summary.shard_count}")
    print(f"  - Manifest: {uploader.url_for(summary.manifest_key)}")
    print(f"  - Duration: {summary.stats.duration_seconds:.2f} seconds")
    print(f"  - Rate: {summary.stats.rows_per_second:.0f} rows/second")
    print(f"  - Payload: {summary.to_payload()}")


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s"
    )
    asyncio.run(basic_export_example())
