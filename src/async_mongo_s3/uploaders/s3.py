"""
S3 uploader.

Streams objects into S3 without staging them on disk: chunks are
collected into parts and sent with the multipart API, or with a single
PutObject when the whole object fits in one part. boto3 calls are blocking
and run on worker threads so compression keeps going while parts upload.
"""

import asyncio
import logging
from typing import Any, AsyncIterable, Dict, List, Optional

import boto3
from botocore.config import Config

from ..exceptions import ExportError, UploadError
from .base import BaseUploader

logger = logging.getLogger(__name__)

MIN_PART_SIZE = 5 * 1024 * 1024
DEFAULT_PART_SIZE = 8 * 1024 * 1024


def get_region_for_bucket(bucket: str, client: Any = None) -> str:
    """
    Look up the region a bucket lives in.

    Any region works for the lookup, but the request must use path-style
    addressing. Buckets in US Standard report no location constraint.

    Raises:
        UploadError: If the bucket location cannot be read
    """
    if client is None:
        client = boto3.client(
            "s3", region_name="us-west-1", config=Config(s3={"addressing_style": "path"})
        )
    try:
        response = client.get_bucket_location(Bucket=bucket)
    except Exception as e:
        raise UploadError(f"Failed to get location for bucket '{bucket}', {e}", key="") from e
    return response.get("LocationConstraint") or "us-east-1"


class S3Uploader(BaseUploader):
    """
    Upload objects to one S3 bucket.

    Args:
        bucket: Destination bucket
        client: Preconfigured boto3 S3 client; created lazily when omitted
        region: Bucket region; looked up with GetBucketLocation when omitted
        part_size: Multipart part size in bytes (at least 5 MiB)
        server_side_encryption: SSE algorithm applied to every object
    """

    def __init__(
        self,
        bucket: str,
        client: Any = None,
        region: Optional[str] = None,
        part_size: int = DEFAULT_PART_SIZE,
        server_side_encryption: Optional[str] = "AES256",
    ) -> None:
        if not bucket:
            raise ValueError("bucket cannot be empty")
        if part_size < MIN_PART_SIZE:
            raise ValueError(f"part_size must be at least {MIN_PART_SIZE} bytes")

        self.bucket = bucket
        self.region = region
        self.part_size = part_size
        self.server_side_encryption = server_side_encryption
        self._client = client
        self._client_lock = asyncio.Lock()

    def url_for(self, key: str) -> str:
        return f"s3://{self.bucket}/{key}"

    async def _get_client(self) -> Any:
        async with self._client_lock:
            if self._client is None:
                if self.region is None:
                    self.region = await asyncio.to_thread(get_region_for_bucket, self.bucket)
                    logger.info(f"found bucket region: {self.region}")
                self._client = boto3.session.Session().client("s3", region_name=self.region)
            return self._client

    def _extra_args(self) -> Dict[str, str]:
        if self.server_side_encryption:
            return {"ServerSideEncryption": self.server_side_encryption}
        return {}

    async def upload(self, key: str, chunks: AsyncIterable[bytes]) -> str:
        url = self.url_for(key)
        logger.info(f"uploading file: {key} to path: {url}")
        client = await self._get_client()

        buffer = bytearray()
        upload_id: Optional[str] = None
        parts: List[Dict[str, Any]] = []
        try:
            async for chunk in chunks:
                buffer.extend(chunk)
                while len(buffer) >= self.part_size:
                    if upload_id is None:
                        upload_id = await self._create_multipart_upload(client, key)
                    part = bytes(buffer[: self.part_size])
                    del buffer[: self.part_size]
                    parts.append(await self._upload_part(client, key, upload_id, len(parts) + 1, part))

            if upload_id is None:
                await asyncio.to_thread(
                    client.put_object,
                    Bucket=self.bucket,
                    Key=key,
                    Body=bytes(buffer),
                    **self._extra_args(),
                )
            else:
                if buffer:
                    parts.append(
                        await self._upload_part(client, key, upload_id, len(parts) + 1, bytes(buffer))
                    )
                await asyncio.to_thread(
                    client.complete_multipart_upload,
                    Bucket=self.bucket,
                    Key=key,
                    UploadId=upload_id,
                    MultipartUpload={"Parts": parts},
                )
        except asyncio.CancelledError:
            # A peer shard failed; the abort must finish even if cancelled again
            await asyncio.shield(self._abort(client, key, upload_id))
            raise
        except ExportError:
            # The writer side failed; its error is the one to report
            await self._abort(client, key, upload_id)
            raise
        except Exception as e:
            await self._abort(client, key, upload_id)
            raise UploadError(f"err uploading to s3 path: {url}, err: {e}", key) from e

        logger.info(f"uploaded {url} in {max(len(parts), 1)} part(s)")
        return url

    async def _create_multipart_upload(self, client: Any, key: str) -> str:
        response = await asyncio.to_thread(
            client.create_multipart_upload, Bucket=self.bucket, Key=key, **self._extra_args()
        )
        return response["UploadId"]

    async def _upload_part(
        self, client: Any, key: str, upload_id: str, part_number: int, body: bytes
    ) -> Dict[str, Any]:
        response = await asyncio.to_thread(
            client.upload_part,
            Bucket=self.bucket,
            Key=key,
            UploadId=upload_id,
            PartNumber=part_number,
            Body=body,
        )
        return {"ETag": response["ETag"], "PartNumber": part_number}

    async def _abort(self, client: Any, key: str, upload_id: Optional[str]) -> None:
        if upload_id is None:
            return
        try:
            await asyncio.to_thread(
                client.abort_multipart_upload, Bucket=self.bucket, Key=key, UploadId=upload_id
            )
        except Exception as e:
            logger.warning(f"Could not abort multipart upload {upload_id} for {key}: {e}")
