"""
NatJus Backend — Local File Storage Service
=============================================

What:  Default storage provider ("base44"): PDF validation, storage under
       STORAGE_ROOT, and serving paths back to the API.
How:   Async file I/O with aiofiles; date-organized directories with UUID
       filenames; durable URLs of the form
       <PUBLIC_BASE_URL>/api/files/<YYYY/MM/DD/uuid.pdf>.
Who:   StorageRouter (default and fallback store), the extraction adapter
       (resolve_path), and the /api/files route.

Directory Structure:
    storage/
    └── 2024/
        └── 03/
            └── 15/
                ├── a1b2c3d4-....pdf
                └── e5f6g7h8-....pdf
"""

import logging
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple

import aiofiles

from natjus.config import settings
from natjus.exceptions import FileStorageError, NotFoundError, ValidationError
from natjus.services.storage_base import FileStore, StoredFile

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"
PDF_EXTENSION = ".pdf"
FILES_ROUTE = "/api/files/"


class FileService(FileStore):
    """
    Manages validation, storage and lookup of uploaded PDFs on local disk.

    Lifecycle of an uploaded file:
        1. is_pdf() and validate_size() during batch validation
        2. upload_file() writes the bytes with a UUID name
        3. resolve_path() maps the stored URL back to disk for extraction
        4. cleanup_file() removes the file if nothing ever referenced it
    """

    provider = "base44"

    def __init__(self, storage_root: Optional[str] = None, public_base_url: Optional[str] = None):
        self.storage_root = Path(storage_root or settings.storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True)
        self.public_base_url = (public_base_url or settings.public_base_url).rstrip("/")
        logger.info("FileService initialized with storage_root=%s", self.storage_root)

    # ── Validation ────────────────────────────────────────────────────────

    @staticmethod
    def is_pdf(mime_type: Optional[str]) -> bool:
        return (mime_type or "").split(";")[0].strip().lower() == PDF_MIME_TYPE

    def validate_size(self, size: int, filename: str) -> None:
        max_mb = settings.max_file_size / (1024 * 1024)
        if size == 0:
            raise ValidationError(
                message=f"O arquivo {filename} está vazio.",
                field="files",
                context={"filename": filename},
            )
        if size > settings.max_file_size:
            raise ValidationError(
                message=(
                    f"O arquivo {filename} ({size / (1024 * 1024):.1f}MB) "
                    f"excede o limite de {max_mb:.0f}MB."
                ),
                field="files",
                context={"filename": filename, "max_size_mb": max_mb, "actual_size": size},
            )

    # ── Storage ───────────────────────────────────────────────────────────

    def _generate_storage_path(self) -> Tuple[Path, str]:
        """YYYY/MM/DD/<uuid>.pdf. No user input ever reaches the path."""
        date_dir = datetime.now(timezone.utc).strftime("%Y/%m/%d")
        relative_path = f"{date_dir}/{uuid.uuid4()}{PDF_EXTENSION}"
        return self.storage_root / relative_path, relative_path

    def url_for(self, relative_path: str) -> str:
        return f"{self.public_base_url}{FILES_ROUTE}{relative_path}"

    async def upload_file(self, filename: str, content: bytes, mime_type: str) -> StoredFile:
        absolute_path, relative_path = self._generate_storage_path()
        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(absolute_path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store %s at %s: %s", filename, absolute_path, e)
            raise FileStorageError(
                message=f"Falha ao salvar o arquivo {filename}.",
                context={"path": str(absolute_path), "os_error": str(e)},
            ) from e

        logger.info("File stored: %s -> %s (%d bytes)", filename, relative_path, len(content))
        return StoredFile(file_url=self.url_for(relative_path), storage_provider=self.provider)

    # ── Lookup ────────────────────────────────────────────────────────────

    def safe_path(self, relative_path: str) -> Path:
        """
        Resolve a path under the storage root.

        Raises ValidationError on traversal (../) and NotFoundError when the
        file does not exist.
        """
        full_path = (self.storage_root / relative_path).resolve()
        if not full_path.is_relative_to(self.storage_root):
            raise ValidationError(message="Invalid file path", field="path")
        if not full_path.is_file():
            raise NotFoundError(resource="file", resource_id=relative_path)
        return full_path

    def resolve_path(self, file_url: str) -> Optional[Path]:
        """Disk path for a URL this service issued; None for foreign URLs."""
        marker = file_url.find(FILES_ROUTE)
        if marker == -1:
            return None
        return self.safe_path(file_url[marker + len(FILES_ROUTE):])

    async def cleanup_file(self, file_url: str) -> None:
        """Best-effort removal; missing files and OS errors are only logged."""
        try:
            path = self.resolve_path(file_url)
        except (ValidationError, NotFoundError):
            logger.debug("Cleanup: file already gone: %s", file_url)
            return
        if path is None:
            return
        try:
            os.remove(path)
            logger.info("Cleaned up file: %s", path.name)
        except OSError as e:
            logger.warning("Failed to clean up file %s: %s", path, e)


_file_service: Optional[FileService] = None


def get_file_service() -> FileService:
    """Process-wide FileService, created on first use so tests can set STORAGE_ROOT first."""
    global _file_service
    if _file_service is None:
        _file_service = FileService()
    return _file_service
