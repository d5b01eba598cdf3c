"""Local file storage for development and tests."""

import asyncio
from pathlib import Path
from typing import Optional
import logging

from core.storage.base import BlobStorage

logger = logging.getLogger(__name__)


class LocalBlobStorage(BlobStorage):
    """Files under ``base_path/<bucket>/``, served under ``public_base_url``."""

    def __init__(self, base_path: str, bucket: str, public_base_url: str):
        """
        Initialize local storage.

        Args:
            base_path: Base directory for file storage
            bucket: Subdirectory acting as the bucket
            public_base_url: URL prefix the files are served from
        """
        super().__init__(bucket, public_base_url)
        self.base_path = Path(base_path)
        self.bucket_path = self.base_path / bucket
        self.bucket_path.mkdir(parents=True, exist_ok=True)

    def _resolve(self, path: str) -> Path:
        file_path = (self.bucket_path / path).resolve()
        if not file_path.is_relative_to(self.bucket_path.resolve()):
            raise ValueError(f"Path escapes storage bucket: {path}")
        return file_path

    async def upload(self, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        file_path = self._resolve(path)

        def write() -> None:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_bytes(data)

        await asyncio.to_thread(write)
        logger.info(f"Saved file to {file_path}")
        return path

    async def delete(self, path: str) -> bool:
        file_path = self._resolve(path)
        if not file_path.exists():
            return False
        await asyncio.to_thread(file_path.unlink)
        logger.info(f"Deleted file: {file_path}")
        return True

    def read(self, path: str) -> bytes:
        """Read a stored file (used by tests and the local file route)."""
        file_path = self._resolve(path)
        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")
        return file_path.read_bytes()
