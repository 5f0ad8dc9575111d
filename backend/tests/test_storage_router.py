"""
NatJus Backend — Storage Router Tests
=======================================

Fallback policy: a Drive failure or a missing Drive client never fails the
upload, it lands in default storage with used_fallback set.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from natjus.exceptions import ProviderError
from natjus.services.runtime_config import RuntimeConfig
from natjus.services.storage_base import StoredFile
from natjus.services.storage_router import StorageRouter


@pytest.fixture
def drive():
    client = MagicMock()
    client.provider = "google_drive"
    client.upload_file = AsyncMock(
        return_value=StoredFile(
            file_url="https://drive.google.com/file/d/abc/view",
            storage_provider="google_drive",
            file_id="abc",
        )
    )
    return client


async def test_base44_uses_default_store(file_service, sample_pdf_bytes):
    router = StorageRouter.from_config(RuntimeConfig(storage_provider="base44"), file_service)

    result = await router.upload("nota.pdf", sample_pdf_bytes, "application/pdf")

    assert result.used_fallback is False
    assert result.stored.storage_provider == "base44"
    assert file_service.resolve_path(result.stored.file_url).exists()


async def test_drive_success(file_service, drive, sample_pdf_bytes):
    router = StorageRouter.from_config(RuntimeConfig(storage_provider="google_drive"), file_service, drive=drive)

    result = await router.upload("nota.pdf", sample_pdf_bytes, "application/pdf")

    assert result.used_fallback is False
    assert result.stored.file_id == "abc"
    drive.upload_file.assert_awaited_once_with("nota.pdf", sample_pdf_bytes, "application/pdf")


async def test_drive_error_falls_back_to_default(file_service, drive, sample_pdf_bytes):
    drive.upload_file.side_effect = ProviderError(message="Google Drive API Error (403)")
    router = StorageRouter.from_config(RuntimeConfig(storage_provider="google_drive"), file_service, drive=drive)

    result = await router.upload("nota.pdf", sample_pdf_bytes, "application/pdf")

    assert result.used_fallback is True
    assert result.stored.storage_provider == "base44"
    assert result.stored.file_id is None


async def test_drive_not_configured_falls_back(file_service, sample_pdf_bytes):
    with patch("natjus.services.storage_router.get_drive_service", return_value=None):
        router = StorageRouter.from_config(RuntimeConfig(storage_provider="google_drive"), file_service)

    result = await router.upload("nota.pdf", sample_pdf_bytes, "application/pdf")

    assert router.primary is None
    assert result.used_fallback is True
    assert result.stored.storage_provider == "base44"


async def test_aws_s3_falls_back_to_default(file_service, sample_pdf_bytes):
    router = StorageRouter.from_config(RuntimeConfig(storage_provider="aws_s3"), file_service)

    result = await router.upload("nota.pdf", sample_pdf_bytes, "application/pdf")

    assert result.used_fallback is True
    assert result.stored.storage_provider == "base44"


async def test_discard_only_touches_default_storage(file_service, drive, sample_pdf_bytes):
    router = StorageRouter.from_config(RuntimeConfig(), file_service)
    local = (await router.upload("nota.pdf", sample_pdf_bytes, "application/pdf")).stored
    path = file_service.resolve_path(local.file_url)

    await router.discard(local)
    await router.discard(drive.upload_file.return_value)

    assert not path.exists()
