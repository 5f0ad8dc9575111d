"""
NatJus Backend — Google Drive Admin Routes
============================================

What:  List and delete files in the configured Drive folder.
How:   Uses the same service account as the upload pipeline; 400 when
       Google Drive is not configured.
"""

import logging

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from natjus.database import get_db_session
from natjus.exceptions import ConfigurationError
from natjus.schemas.drive import DriveFile, DriveFileListResponse
from natjus.schemas.nota import ErrorResponse
from natjus.services.configuracao_service import configuracao_service
from natjus.services.google_drive_service import GoogleDriveService, get_drive_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/drive", tags=["Google Drive"])

_ERRORS = {
    400: {"description": "Google Drive not configured", "model": ErrorResponse},
    502: {"description": "Google Drive API error", "model": ErrorResponse},
}


async def _drive(db: AsyncSession) -> GoogleDriveService:
    runtime = await configuracao_service.snapshot(db)
    drive = get_drive_service(runtime.google_drive_credentials, runtime.google_drive_folder_id)
    if drive is None:
        raise ConfigurationError(
            message="Google Drive não configurado. Verifique as credenciais e a pasta.",
            provider="google_drive",
        )
    return drive


@router.get("/files", response_model=DriveFileListResponse, responses=_ERRORS, summary="List Drive files")
async def list_drive_files(
    page_size: int = Query(default=10, ge=1, le=100),
    db: AsyncSession = Depends(get_db_session),
) -> DriveFileListResponse:
    drive = await _drive(db)
    items = await drive.list_files(page_size=page_size)
    return DriveFileListResponse(
        folder_id=drive.folder_id,
        files=[DriveFile.from_api(item) for item in items],
    )


@router.delete(
    "/files/{file_id}",
    status_code=204,
    responses=_ERRORS,
    summary="Delete a Drive file",
)
async def delete_drive_file(file_id: str, db: AsyncSession = Depends(get_db_session)) -> Response:
    drive = await _drive(db)
    await drive.delete_file(file_id)
    logger.info("Drive file %s deleted via admin API", file_id)
    return Response(status_code=204)
