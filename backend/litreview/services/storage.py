import uuid
import aiofiles
import aiofiles.os
from pathlib import Path
from typing import Any
from litreview.core.config import get_settings


class UploadRejected(ValueError):
    """An upload failed the size or format checks."""


class StorageService:
    """Stores PDF blobs on local disk under ``upload_dir/papers/<paper_id>/``."""

    def __init__(self, upload_dir: str | None = None):
        self.upload_dir = Path(upload_dir or get_settings().upload_dir)
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    def _get_file_path(self, key: str) -> Path:
        """Resolve a storage key, refusing anything outside upload_dir."""
        if not key or ".." in key or key.startswith("/") or key.startswith("\\"):
            raise ValueError(f"Invalid storage key: {key}")

        file_path = (self.upload_dir / key).resolve()
        if not file_path.is_relative_to(self.upload_dir.resolve()):
            raise ValueError(f"Path traversal attempt detected: {key}")
        return file_path

    async def save_pdf_upload(self, upload_file: Any, paper_id: int, max_size: int) -> tuple[str, int]:
        """Stream a PDF upload to disk. Returns (storage key, size in bytes)."""
        magic_header = b"%PDF-"
        key = f"papers/{paper_id}/{uuid.uuid4()}.pdf"
        file_path = self._get_file_path(key)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        bytes_read = 0
        header = bytearray()
        try:
            async with aiofiles.open(file_path, "wb") as f:
                while chunk := await upload_file.read(8192):
                    bytes_read += len(chunk)
                    if bytes_read > max_size:
                        raise UploadRejected("File size exceeds limit")
                    if len(header) < len(magic_header):
                        header.extend(chunk[: len(magic_header) - len(header)])
                    await f.write(chunk)

            if bytes(header) != magic_header:
                raise UploadRejected("Invalid PDF file format")
        except Exception:
            if await aiofiles.os.path.exists(file_path):
                await aiofiles.os.remove(file_path)
            raise

        return key, bytes_read

    async def get_file_path(self, key: str) -> Path:
        file_path = self._get_file_path(key)
        if not await aiofiles.os.path.exists(file_path):
            raise FileNotFoundError(f"File not found: {key}")
        return file_path

    async def read_file(self, key: str) -> bytes:
        file_path = await self.get_file_path(key)
        async with aiofiles.open(file_path, "rb") as f:
            return await f.read()

    async def delete_file(self, key: str) -> None:
        file_path = self._get_file_path(key)
        if await aiofiles.os.path.exists(file_path):
            await aiofiles.os.remove(file_path)


def get_storage() -> StorageService:
    return StorageService()
