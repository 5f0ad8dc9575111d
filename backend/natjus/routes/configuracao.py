"""
NatJus Backend — Configuration Route Handlers
===============================================

What:  Read and save the deployment configuration, and run the admin
       connection tests for Gemini and Google Drive.

Secrets are never accepted or returned here: API keys and the Drive
service account come from the environment, and the response only says
whether each one is configured.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from natjus.database import get_db_session
from natjus.schemas.configuracao import (
    ConfiguracaoResponse,
    ConfiguracaoUpdate,
    ConnectionTestResponse,
)
from natjus.schemas.nota import ErrorResponse
from natjus.services.configuracao_service import configuracao_service

router = APIRouter(prefix="/api/configuracao", tags=["Configuração"])


@router.get("", response_model=ConfiguracaoResponse, summary="Current configuration")
async def get_configuracao(db: AsyncSession = Depends(get_db_session)) -> ConfiguracaoResponse:
    return configuracao_service.to_response(await configuracao_service.get(db))


@router.put(
    "",
    response_model=ConfiguracaoResponse,
    responses={422: {"description": "Invalid provider or color", "model": ErrorResponse}},
    summary="Save the configuration",
    description="Creates the configuration on first save and updates it in place afterwards.",
)
async def save_configuracao(
    changes: ConfiguracaoUpdate,
    db: AsyncSession = Depends(get_db_session),
) -> ConfiguracaoResponse:
    return configuracao_service.to_response(await configuracao_service.save(db, changes))


@router.post("/test/gemini", response_model=ConnectionTestResponse, summary="Test the Gemini key")
async def test_gemini(db: AsyncSession = Depends(get_db_session)) -> ConnectionTestResponse:
    return await configuracao_service.test_gemini(db)


@router.post(
    "/test/google-drive",
    response_model=ConnectionTestResponse,
    summary="Test the Google Drive service account",
)
async def test_google_drive(db: AsyncSession = Depends(get_db_session)) -> ConnectionTestResponse:
    return await configuracao_service.test_google_drive(db)
