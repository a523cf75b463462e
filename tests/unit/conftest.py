"""
Shared fixtures for unit tests.

Provides an in-memory uploader and a sample table definition so export
tests run without MongoDB or S3.
"""

import gzip
import json
from typing import AsyncIterable, Callable, Dict, List, Optional

import pytest

from async_mongo_s3.config import ExportSettings, FieldSpec, TableMeta, TableSpec
from async_mongo_s3.uploaders.base import BaseUploader


class MemoryUploader(BaseUploader):
    """Uploader that keeps objects in a dict, optionally failing some keys."""

    def __init__(self, fail_when: Optional[Callable[[str], bool]] = None) -> None:
        self.objects: Dict[str, bytes] = {}
        self.started: List[str] = []
        self.fail_when = fail_when

    def url_for(self, key: str) -> str:
        return f"memory://{key}"

    async def upload(self, key: str, chunks: AsyncIterable[bytes]) -> str:
        self.started.append(key)
        data = bytearray()
        async for chunk in chunks:
            data.extend(chunk)
            if self.fail_when and self.fail_when(key):
                raise RuntimeError(f"simulated upload failure for {key}")
        if self.fail_when and self.fail_when(key):
            raise RuntimeError(f"simulated upload failure for {key}")
        self.objects[key] = bytes(data)
        return self.url_for(key)


def read_json_lines(data: bytes) -> List[dict]:
    """Decompress a gzip shard and parse its newline-delimited rows."""
    text = gzip.decompress(data).decode("utf-8")
    return [json.loads(line) for line in text.splitlines() if line]


@pytest.fixture
def memory_uploader():
    return MemoryUploader()


@pytest.fixture
def make_uploader():
    """Factory for uploaders that fail on matching keys."""
    return MemoryUploader


@pytest.fixture
def read_rows():
    return read_json_lines


@pytest.fixture
def sample_table():
    """Table with one plain, one PII and one fanned-out column."""
    return TableSpec(
        source="students",
        dest="students",
        fields=(
            FieldSpec(source="_id", dest="id"),
            FieldSpec(source="name.first", dest="first_name"),
            FieldSpec(source="name.first", dest="given_name"),
            FieldSpec(source="email", dest="has_email", pii=True),
            FieldSpec(source="internal", dest=""),
        ),
        meta=TableMeta(date_column="_data_timestamp"),
    )


@pytest.fixture
def settings():
    return ExportSettings(bucket="analytics", num_shards=3, chunk_size=64)
