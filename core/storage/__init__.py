"""Blob storage backends."""

from core.config import settings
from core.storage.base import BlobStorage
from core.storage.local import LocalBlobStorage
from core.storage.s3 import S3BlobStorage


def create_blob_storage(bucket: str | None = None) -> BlobStorage:
    """Build the configured backend for ``bucket`` (defaults to the resume bucket)."""
    bucket = bucket or settings.resume_bucket
    if settings.storage_backend == "s3":
        return S3BlobStorage(bucket)
    return LocalBlobStorage(
        settings.storage_path,
        bucket,
        settings.storage_public_base_url,
    )


__all__ = ["BlobStorage", "LocalBlobStorage", "S3BlobStorage", "create_blob_storage"]
