"""S3 blob storage (aioboto3)."""

import aioboto3
from typing import Optional
import logging

from botocore.exceptions import ClientError

from core.config import settings
from core.storage.base import BlobStorage

logger = logging.getLogger(__name__)


def _get_credentials() -> dict:
    """Credentials from settings; missing keys fall back to the default AWS chain."""
    credentials = {"region_name": settings.aws_region}
    if settings.aws_access_key_id and settings.aws_secret_access_key:
        credentials["aws_access_key_id"] = settings.aws_access_key_id
        credentials["aws_secret_access_key"] = settings.aws_secret_access_key
    return credentials


class S3BlobStorage(BlobStorage):
    """S3 storage handler for async operations."""

    def __init__(self, bucket: str, public_base_url: Optional[str] = None):
        """
        Initialize S3 storage.

        Args:
            bucket: S3 bucket name
            public_base_url: URL prefix for objects (defaults to the bucket's
                virtual-hosted endpoint)
        """
        if not bucket:
            raise ValueError("S3 bucket name not provided")
        self.credentials = _get_credentials()
        default_base = f"https://{bucket}.s3.{self.credentials['region_name']}.amazonaws.com"
        super().__init__(bucket, public_base_url or default_base)

    def public_url(self, path: str) -> str:
        # Virtual-hosted URLs already name the bucket
        return f"{self.public_base_url}/{path.lstrip('/')}"

    def path_from_url(self, url: str) -> Optional[str]:
        prefix = f"{self.public_base_url}/"
        if url and url.startswith(prefix):
            return url[len(prefix):]
        return None

    async def upload(self, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        session = aioboto3.Session(**self.credentials)
        async with session.client("s3") as client:
            upload_args = {
                "Bucket": self.bucket,
                "Key": path,
                "Body": data,
            }
            if content_type:
                upload_args["ContentType"] = content_type

            await client.put_object(**upload_args)

        logger.info(f"Uploaded file to S3: {self.bucket}/{path}")
        return path

    async def delete(self, path: str) -> bool:
        session = aioboto3.Session(**self.credentials)
        async with session.client("s3") as client:
            try:
                await client.head_object(Bucket=self.bucket, Key=path)
            except ClientError as e:
                if e.response.get("Error", {}).get("Code") in ("404", "NoSuchKey", "NotFound"):
                    return False
                raise
            await client.delete_object(Bucket=self.bucket, Key=path)

        logger.info(f"Deleted file from S3: {self.bucket}/{path}")
        return True
