"""
NatJus Backend — Abstract Storage Interface
=============================================

What:  Interface every file-storage provider implements.
Who:   FileService (default, local storage root) and GoogleDriveService
       implement it; StorageRouter picks one per RuntimeConfig.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class StoredFile:
    """
    Where a file ended up.

    file_url:          Durable, fetchable URL for the original PDF
    storage_provider:  Provider that actually holds the bytes
    file_id:           Provider-side identifier (Drive file id); None locally
    """

    file_url: str
    storage_provider: str
    file_id: Optional[str] = None


class FileStore(ABC):
    provider: str = ""

    @abstractmethod
    async def upload_file(self, filename: str, content: bytes, mime_type: str) -> StoredFile:
        """
        Persist one file and return its durable URL.

        Raises:
            FileStorageError / ProviderError on failure
        """
        ...
