"""
NatJus Backend — Chat Route Handlers
======================================

What:  Greeting for the chat window and question answering over the notes.
How:   Each request snapshots the configuration, so a provider change in
       Configurações applies to the next question.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from natjus.database import get_db_session
from natjus.schemas.chat import ChatRequest, ChatResponse, GreetingResponse
from natjus.schemas.nota import ErrorResponse
from natjus.services.chat_service import chat_service
from natjus.services.configuracao_service import configuracao_service

router = APIRouter(prefix="/api/chat", tags=["Chat"])


@router.get("/greeting", response_model=GreetingResponse, summary="Chat greeting")
async def get_greeting(db: AsyncSession = Depends(get_db_session)) -> GreetingResponse:
    return chat_service.greeting(await configuracao_service.snapshot(db))


@router.post(
    "",
    response_model=ChatResponse,
    responses={429: {"description": "Rate limit exceeded", "model": ErrorResponse}},
    summary="Ask a question about the technical notes",
)
async def ask(request: ChatRequest, db: AsyncSession = Depends(get_db_session)) -> ChatResponse:
    config = await configuracao_service.snapshot(db)
    return await chat_service.answer(db, request.message, config=config)
