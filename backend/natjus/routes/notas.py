"""
NatJus Backend — Nota Técnica Route Handlers
==============================================

What:  Library listing, search, tag inventory, single-note read and edit,
       plus serving the PDFs kept in default storage.
Who:   The Biblioteca, Buscar and review screens of the frontend.

Route order matters: /notas/search and /notas/tags are declared before
/notas/{nota_id} so they are not parsed as ids.
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from natjus.database import get_db_session
from natjus.schemas.nota import (
    ErrorResponse,
    NotaListResponse,
    NotaResponse,
    NotaUpdate,
    TagsResponse,
)
from natjus.services.file_service import PDF_MIME_TYPE, get_file_service
from natjus.services.nota_service import nota_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Notas"])


def _list_response(notas, total: int) -> NotaListResponse:
    return NotaListResponse(
        notas=[NotaResponse.model_validate(n) for n in notas],
        total_count=total,
    )


@router.get(
    "/notas",
    response_model=NotaListResponse,
    responses={400: {"description": "Invalid order or tipo", "model": ErrorResponse}},
    summary="Library listing",
)
async def list_notas(
    order: str = Query(default="-data_emissao", description="-data_emissao, numero, titulo, ..."),
    tipo: Optional[str] = Query(default=None, description="processual, pre-processual or todos"),
    search: Optional[str] = Query(default=None, description="Matches titulo, numero, procedimento"),
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db_session),
) -> NotaListResponse:
    notas, total = await nota_service.list_notas(
        db, order=order, tipo=tipo, search=search, limit=limit, offset=offset
    )
    return _list_response(notas, total)


@router.get(
    "/notas/search",
    response_model=NotaListResponse,
    responses={400: {"description": "Invalid tipo", "model": ErrorResponse}},
    summary="Full-text search with tipo and tag filters",
)
async def search_notas(
    q: Optional[str] = Query(default=None, description="Term searched in titulo, numero, procedimento, conteúdo and resumo"),
    tipo: Optional[str] = Query(default=None),
    tags: List[str] = Query(default=[], description="Any-match tag filter; repeat the parameter"),
    db: AsyncSession = Depends(get_db_session),
) -> NotaListResponse:
    notas = await nota_service.search(db, term=q, tipo=tipo, tags=tags)
    return _list_response(notas, len(notas))


@router.get("/notas/tags", response_model=TagsResponse, summary="Every tag in use, sorted")
async def list_tags(db: AsyncSession = Depends(get_db_session)) -> TagsResponse:
    return TagsResponse(tags=await nota_service.all_tags(db))


@router.get(
    "/notas/{nota_id}",
    response_model=NotaResponse,
    responses={404: {"description": "Note not found", "model": ErrorResponse}},
    summary="Get one note",
)
async def get_nota(nota_id: UUID, db: AsyncSession = Depends(get_db_session)) -> NotaResponse:
    return NotaResponse.model_validate(await nota_service.get(db, nota_id))


@router.patch(
    "/notas/{nota_id}",
    response_model=NotaResponse,
    responses={404: {"description": "Note not found", "model": ErrorResponse}},
    summary="Edit a note",
    description="Only the fields sent are changed. Tag lists are deduplicated.",
)
async def update_nota(
    nota_id: UUID,
    changes: NotaUpdate,
    db: AsyncSession = Depends(get_db_session),
) -> NotaResponse:
    return NotaResponse.model_validate(await nota_service.update(db, nota_id, changes))


@router.get(
    "/files/{file_path:path}",
    responses={
        200: {"description": "The stored PDF", "content": {PDF_MIME_TYPE: {}}},
        400: {"description": "Invalid path", "model": ErrorResponse},
        404: {"description": "File not found", "model": ErrorResponse},
    },
    summary="Serve a PDF from default storage",
)
async def serve_file(file_path: str) -> FileResponse:
    full_path = get_file_service().safe_path(file_path)
    return FileResponse(
        path=str(full_path),
        media_type=PDF_MIME_TYPE,
        headers={"Cache-Control": "private, max-age=86400"},
    )
