"""
Object uploaders for shard, manifest and config output.
"""

from .base import BaseUploader
from .local import LocalUploader
from .s3 import S3Uploader, get_region_for_bucket

__all__ = ["BaseUploader", "LocalUploader", "S3Uploader", "get_region_for_bucket"]
