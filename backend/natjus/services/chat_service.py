"""
NatJus Backend — Chat Service
===============================

What:  Answers free-text questions about the stored notes.
How:   Every question carries the most recent notes (by data_emissao) as a
       plain-text context block; the configured LLM answers from it.
       After the answer comes back, the download-link convention is
       enforced: if the user asked for a PDF and the answer names a note
       that has a file, the answer ends with a markdown download link.
"""

import logging
import re
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from natjus.config import settings
from natjus.exceptions import NatJusError
from natjus.models.nota import NotaTecnica
from natjus.schemas.chat import ChatResponse, GreetingResponse
from natjus.services.configuracao_service import configuracao_service
from natjus.services.llm_base import TextGenerator
from natjus.services.llm_router import LLMRouter, chat_error_message
from natjus.services.nota_service import nota_service
from natjus.services.prompts import default_greeting
from natjus.services.runtime_config import RuntimeConfig

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"
CONTEXT_SEPARATOR = "\n---\n"

_ASKS_FOR_FILE = re.compile(r"\b(pdf|arquivo|documento|link)s?\b", re.IGNORECASE)


def _or_na(value) -> str:
    if value is None or value == "":
        return NOT_AVAILABLE
    return str(value)


def build_context(notas: Sequence[NotaTecnica]) -> str:
    blocks = []
    for n in notas:
        blocks.append("\n".join([
            f"Nota Número: {_or_na(n.numero)}",
            f"Título: {_or_na(n.titulo)}",
            f"Tipo: {_or_na(n.tipo)}",
            f"Data: {_or_na(n.data_emissao.isoformat() if n.data_emissao else None)}",
            f"Demanda: {_or_na(n.demanda)}",
            f"Procedimento: {_or_na(n.procedimento)}",
            f"Representante: {_or_na(n.representante_comarca)}",
            f"Resumo: {_or_na(n.resumo)}",
            f"Tags: {', '.join(n.tags) if n.tags else NOT_AVAILABLE}",
            f"URL_DO_PDF: {_or_na(n.arquivo_url)}",
            f"Nome_do_Arquivo: {_or_na(n.nome_arquivo)}",
        ]))
    return CONTEXT_SEPARATOR.join(blocks)


def download_link(url: str) -> str:
    return f"🔗 [Baixar PDF]({url})"


def mentions_numero(answer: str, numero: str) -> bool:
    """Whole-number match: "1/2024" does not match inside "11/2024" or "1/20245"."""
    return re.search(rf"(?<![\w./]){re.escape(numero)}(?![\w/])", answer) is not None


def ensure_pdf_link(message: str, answer: str, notas: Sequence[NotaTecnica]) -> str:
    """
    Make the answer end with the download line of the first note it
    mentions by number, when the user asked for a file.

    A URL quoted inline does not count; only a closing
    "🔗 [Baixar PDF](<url>)" line does.
    """
    if not _ASKS_FOR_FILE.search(message):
        return answer
    for nota in notas:
        if not nota.numero or not nota.arquivo_url or not mentions_numero(answer, nota.numero):
            continue
        link = download_link(nota.arquivo_url)
        if answer.rstrip().endswith(link):
            return answer
        return f"{answer.rstrip()}\n\n{link}"
    return answer


class ChatService:
    def __init__(self, default_llm: Optional[TextGenerator] = None, context_limit: Optional[int] = None):
        self.default_llm = default_llm
        self.context_limit = context_limit or settings.chat_context_limit

    def greeting(self, config: RuntimeConfig) -> GreetingResponse:
        text = config.chat_greeting or default_greeting(config.llm_provider_name)
        return GreetingResponse(greeting=text, provider=config.llm_provider)

    async def answer(
        self,
        db: AsyncSession,
        message: str,
        config: Optional[RuntimeConfig] = None,
    ) -> ChatResponse:
        """
        Answer one question.

        Provider failures (after any Gemini fallback) come back as the
        apology text rather than an HTTP error, the same way the chat window
        shows them.
        """
        config = config or await configuracao_service.snapshot(db)
        notas = await nota_service.context_notas(db, limit=self.context_limit)
        router = LLMRouter.from_config(config, default=self.default_llm)

        try:
            result = await router.chat(message, build_context(notas))
        except NatJusError as e:
            logger.error("Chat failed with provider %s: %s", config.llm_provider, e.message)
            return ChatResponse(
                response=chat_error_message(config.llm_provider),
                provider=config.llm_provider,
            )

        logger.info(
            "Chat answered by %s over %d note(s)%s",
            result.provider,
            len(notas),
            " (fallback)" if result.used_fallback else "",
        )
        return ChatResponse(
            response=ensure_pdf_link(message, result.text, notas),
            provider=result.provider,
            used_fallback=result.used_fallback,
        )


chat_service = ChatService()
