"""Blob storage interface shared by the local and S3 backends."""

from abc import ABC, abstractmethod
from typing import Optional


class BlobStorage(ABC):
    """Upload-by-path and public URL lookup within one bucket."""

    def __init__(self, bucket: str, public_base_url: str):
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")

    @abstractmethod
    async def upload(self, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        """
        Store ``data`` at ``path`` (replacing any existing object).

        Returns:
            The stored path
        """

    @abstractmethod
    async def delete(self, path: str) -> bool:
        """Remove the object at ``path``. Returns False if nothing was there."""

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{self.bucket}/{path.lstrip('/')}"

    def path_from_url(self, url: str) -> Optional[str]:
        """Inverse of ``public_url``; None for URLs this store did not issue."""
        prefix = f"{self.public_base_url}/{self.bucket}/"
        if url and url.startswith(prefix):
            return url[len(prefix):]
        return None

    async def close(self) -> None:
        return None
