"""
NatJus Backend — Storage Provider Router
==========================================

What:  Picks the FileStore for one RuntimeConfig and applies the storage
       fallback policy.

Fallback Policy:
    google_drive, Drive client initialized  → Drive; on any error → default
    google_drive, Drive not initialized     → default
    aws_s3 (declared, not implemented)      → default
    base44                                  → default

A fallback never fails the file: the upload simply lands in local storage
and StorageResult.used_fallback records it.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from natjus.services.file_service import FileService
from natjus.services.google_drive_service import GoogleDriveService, get_drive_service
from natjus.services.runtime_config import RuntimeConfig
from natjus.services.storage_base import FileStore, StoredFile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageResult:
    stored: StoredFile
    used_fallback: bool = False


class StorageRouter:
    def __init__(self, provider: str, default: FileService, primary: Optional[FileStore] = None):
        self.provider = provider
        self.default = default
        self.primary = primary

    @classmethod
    def from_config(
        cls,
        config: RuntimeConfig,
        default: FileService,
        drive: Optional[GoogleDriveService] = None,
    ) -> "StorageRouter":
        provider = config.storage_provider
        if provider == "google_drive":
            drive = drive or get_drive_service(
                config.google_drive_credentials, config.google_drive_folder_id
            )
            return cls(provider, default, primary=drive)
        if provider == "aws_s3":
            logger.info("AWS S3 storage is not implemented; using default storage")
        return cls(provider, default, primary=default)

    async def upload(self, filename: str, content: bytes, mime_type: str) -> StorageResult:
        if self.primary is None:
            logger.warning(
                "Google Drive selected but not initialized; storing %s in default storage",
                filename,
            )
            return StorageResult(await self.default.upload_file(filename, content, mime_type), True)

        if self.primary is self.default:
            stored = await self.default.upload_file(filename, content, mime_type)
            return StorageResult(stored, used_fallback=self.provider == "aws_s3")

        try:
            return StorageResult(await self.primary.upload_file(filename, content, mime_type))
        except Exception as e:
            logger.error("Upload of %s to %s failed, falling back: %s", filename, self.provider, e)
            return StorageResult(await self.default.upload_file(filename, content, mime_type), True)

    async def discard(self, stored: StoredFile) -> None:
        """Remove an orphaned upload from default storage; remote files are kept."""
        if stored.storage_provider == self.default.provider:
            await self.default.cleanup_file(stored.file_url)
