"""
Load manifest for the exported shards.

The manifest lists every shard object for a bulk loader such as Redshift
``COPY ... MANIFEST``:

    {"entries": [
        {"url": "s3://bucket/mongo/students/.../mongo_students_<ts>_0.json.gz", "mandatory": true},
        {"url": "s3://bucket/mongo/students/.../mongo_students_<ts>_1.json.gz", "mandatory": true}
    ]}
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Sequence, Tuple

from .exceptions import ManifestError
from .uploaders.base import BaseUploader
from .utils.stats import ShardDescriptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ManifestEntry:
    url: str
    mandatory: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {"url": self.url, "mandatory": self.mandatory}


@dataclass(frozen=True)
class Manifest:
    """Ordered list of shard locations, written once per run."""

    entries: Tuple[ManifestEntry, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {"entries": [entry.to_dict() for entry in self.entries]}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @property
    def urls(self) -> Tuple[str, ...]:
        return tuple(entry.url for entry in self.entries)


def build_manifest(bucket: str, keys: Sequence[str]) -> Manifest:
    """
    Build a manifest of bucket-qualified URLs, preserving key order.

    Raises:
        ManifestError: If there is no bucket or no key
    """
    if not bucket:
        raise ManifestError("Cannot build manifest without a bucket")
    if not keys:
        raise ManifestError("Cannot build manifest without any data files")
    return Manifest(entries=tuple(ManifestEntry(url=f"s3://{bucket}/{key}") for key in keys))


def manifest_for_shards(bucket: str, shards: Sequence[ShardDescriptor]) -> Manifest:
    """
    Build the manifest for a run's shards in shard-index order.

    Raises:
        ManifestError: If any shard has not been uploaded
    """
    pending = [shard.index for shard in shards if not shard.is_uploaded]
    if pending:
        raise ManifestError(f"Shards not uploaded, refusing to build manifest: {pending}")
    ordered = sorted(shards, key=lambda shard: shard.index)
    return build_manifest(bucket, [shard.output_path for shard in ordered])


async def publish_manifest(uploader: BaseUploader, key: str, manifest: Manifest) -> str:
    """
    Upload the manifest.

    Returns:
        Location of the uploaded manifest

    Raises:
        ManifestError: If the upload fails
    """
    body = manifest.to_json()
    logger.info(f"Manifest file contents: {body}")
    try:
        return await uploader.upload_bytes(key, body.encode("utf-8"))
    except Exception as e:
        raise ManifestError(f"Error uploading manifest {key}: {e}") from e
