"""
NatJus Backend — Upload Queue Schemas
=======================================

Progress and per-file outcomes of an upload queue run, as exposed by
POST /api/uploads and GET /api/uploads/{job_id}.
"""

import uuid
from typing import List, Optional

from pydantic import BaseModel, Field


class FileOutcomeSchema(BaseModel):
    """
    Result of one file's pass through the pipeline.

    status: stored | store_failed | extract_failed | structure_failed | persisted | persist_failed
    """

    nome_arquivo: str
    status: str
    storage_provider: Optional[str] = None
    storage_fallback: bool = False
    llm_fallback: bool = False
    nota_id: Optional[uuid.UUID] = None
    error: Optional[str] = None


class UploadJobResponse(BaseModel):
    """
    What:  Snapshot of a queue run.
    When:  Returned with 202 when the queue is accepted, then polled.

    processed advances after every file, success or failure; message is set
    once the whole queue has been walked.
    """

    job_id: uuid.UUID
    status: str = Field(description="queued | processing | completed")
    total: int
    processed: int = 0
    current_file: Optional[str] = None
    storage_provider: str
    message: Optional[str] = None
    errors: List[str] = Field(default_factory=list)
    outcomes: List[FileOutcomeSchema] = Field(default_factory=list)
