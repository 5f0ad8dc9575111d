"""
NatJus Backend — Upload Route Handlers
========================================

What:  POST /api/uploads accepts a batch of PDFs and starts a queue run;
       GET /api/uploads/{job_id} reports its progress.
How:   The batch is read and validated up front (one non-PDF rejects the
       whole batch, nothing is enqueued). The configuration snapshot is
       taken here, then the queue runs as a FastAPI background task so the
       client can poll progress instead of holding the request open.

Request Flow:
    1. Read every multipart "files" part into memory (size-bounded)
    2. validate_batch() → 400 on any non-PDF, empty or oversized file
    3. Snapshot Configuracao + secrets into a RuntimeConfig
    4. Register an UploadJob and schedule run_upload_job()
    5. Return 202 with the job for polling
"""

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from natjus.database import get_db_session
from natjus.exceptions import NotFoundError
from natjus.schemas.nota import ErrorResponse
from natjus.schemas.upload import UploadJobResponse
from natjus.services.configuracao_service import configuracao_service
from natjus.services.pipeline_service import (
    QueuedFile,
    run_upload_job,
    upload_jobs,
    validate_batch,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Uploads"])


@router.post(
    "/uploads",
    status_code=202,
    response_model=UploadJobResponse,
    responses={
        400: {"description": "A file is not a PDF, is empty or too large", "model": ErrorResponse},
        429: {"description": "Rate limit exceeded", "model": ErrorResponse},
    },
    summary="Upload technical-note PDFs for processing",
)
async def upload_notas(
    background_tasks: BackgroundTasks,
    files: List[UploadFile] = File(..., description="PDF files, processed in the order sent"),
    db: AsyncSession = Depends(get_db_session),
) -> UploadJobResponse:
    queued: List[QueuedFile] = []
    try:
        for upload in files:
            queued.append(
                QueuedFile(
                    name=upload.filename or "nota.pdf",
                    content=await upload.read(),
                    mime_type=upload.content_type or "",
                )
            )
    finally:
        for upload in files:
            await upload.close()

    validate_batch(queued)

    config = await configuracao_service.snapshot(db)
    job = upload_jobs.create(total=len(queued), storage_provider=config.storage_provider)
    logger.info(
        "Upload job %s accepted: %d file(s), storage=%s, llm=%s",
        job.job_id,
        len(queued),
        config.storage_provider,
        config.llm_provider,
    )
    background_tasks.add_task(run_upload_job, job, queued, config)
    return job.to_response()


@router.get(
    "/uploads/{job_id}",
    response_model=UploadJobResponse,
    responses={404: {"description": "Unknown or expired job", "model": ErrorResponse}},
    summary="Progress of an upload queue run",
)
async def get_upload_job(job_id: UUID) -> UploadJobResponse:
    job = upload_jobs.get(job_id)
    if job is None:
        raise NotFoundError(resource="upload_job", resource_id=str(job_id))
    return job.to_response()
