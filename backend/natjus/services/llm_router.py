"""
NatJus Backend — LLM Provider Router
======================================

What:  Resolves the configured LLM provider once per RuntimeConfig and
       applies the provider policy for structuring and chat.
How:   A registry of TextGenerator instances keyed by provider, built in
       from_config(). Call sites never branch on provider strings.

Dispatch Policy:
    provider    | key? | behaviour
    ------------|------|---------------------------------------------------
    google      | yes  | Gemini; any failure → default gateway (used_fallback)
    google      | no   | ConfigurationError, nothing called
    openai      | yes  | default gateway, prompt prefixed "[Usando <model>] "
    anthropic   | yes  | same as openai
    openai/anth.| no   | ConfigurationError, nothing called
    base44      |  -   | default gateway
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from pydantic import ValidationError as PydanticValidationError

from natjus.exceptions import ConfigurationError, ProviderError
from natjus.schemas.configuracao import llm_provider_name
from natjus.schemas.nota import NotaStructured
from natjus.services.default_llm import DefaultLLMService
from natjus.services.gemini_service import GeminiService, get_gemini_service
from natjus.services.llm_base import TextGenerator
from natjus.services.prompts import NOTA_TECNICA_FALLBACK_SCHEMA, analysis_prompt, chat_prompt
from natjus.services.runtime_config import RuntimeConfig

logger = logging.getLogger(__name__)


def missing_key_message(provider: str) -> str:
    return (
        f"Erro: Chave API do {llm_provider_name(provider)} não configurada. "
        "Verifique as configurações."
    )


def chat_error_message(provider: str) -> str:
    return (
        f"Desculpe, ocorreu um erro ao processar sua pergunta usando {llm_provider_name(provider)}. "
        "Tente novamente ou verifique as configurações."
    )


@dataclass(frozen=True)
class StructuringResult:
    data: NotaStructured
    provider: str
    used_fallback: bool = False


@dataclass(frozen=True)
class ChatResult:
    text: str
    provider: str
    used_fallback: bool = False


class LLMRouter:
    """
    Provider registry for one configuration snapshot.

    Attributes:
        provider:       Configured provider key
        primary:        Generator for the configured provider, or None when
                        it lacks credentials
        default:        Default gateway; always present
        model_tag:      Prompt prefix for declared-but-proxied providers
    """

    def __init__(
        self,
        provider: str,
        default: TextGenerator,
        primary: Optional[TextGenerator] = None,
        model_tag: str = "",
    ):
        self.provider = provider
        self.default = default
        self.primary = primary
        self.model_tag = model_tag

    @classmethod
    def from_config(
        cls,
        config: RuntimeConfig,
        default: Optional[TextGenerator] = None,
        gemini_factory: Callable[[str, str], GeminiService] = get_gemini_service,
    ) -> "LLMRouter":
        default = default or DefaultLLMService()
        provider = config.llm_provider
        key = config.api_key_for(provider)

        if provider == "google":
            primary = gemini_factory(key, config.google_model) if key else None
            return cls(provider, default, primary=primary)
        if provider in ("openai", "anthropic"):
            # Declared providers are proxied through the default gateway
            tag = f"[Usando {config.model_for(provider)}] " if key else ""
            return cls(provider, default, primary=default if key else None, model_tag=tag)
        return cls("base44", default, primary=default)

    def _require_configured(self) -> None:
        if self.primary is None:
            raise ConfigurationError(
                message=missing_key_message(self.provider), provider=self.provider
            )

    async def structure(self, extracted: Any) -> StructuringResult:
        """
        Turn extraction output into NotaStructured.

        Raises:
            ConfigurationError: Selected provider has no key
            ProviderError: Default gateway failed, or returned no JSON object
        """
        self._require_configured()

        if self.primary is not self.default:
            try:
                raw = await self.primary.analyze_nota_tecnica(extracted)
                return StructuringResult(self._validate(raw), provider="google")
            except Exception as e:
                logger.warning("Gemini structuring failed, falling back to default gateway: %s", e)
                raw = await self.default.generate_content(
                    analysis_prompt(extracted, strict=False),
                    response_schema=NOTA_TECNICA_FALLBACK_SCHEMA,
                )
                return StructuringResult(self._validate(raw), provider="base44", used_fallback=True)

        raw = await self.default.generate_content(
            self.model_tag + analysis_prompt(extracted, strict=False),
            response_schema=NOTA_TECNICA_FALLBACK_SCHEMA,
        )
        return StructuringResult(self._validate(raw), provider=self.provider)

    @staticmethod
    def _validate(raw: Any) -> NotaStructured:
        if not isinstance(raw, dict):
            raise ProviderError(message="A IA não retornou um JSON estruturado para a nota")
        try:
            return NotaStructured.model_validate(raw)
        except PydanticValidationError as e:
            raise ProviderError(message=f"Resposta da IA inválida: {e.error_count()} campo(s)") from e

    async def chat(self, message: str, context: str) -> ChatResult:
        """
        Answer a chat question.

        Configuration errors come back as the response text; provider errors
        after fallback propagate to ChatService.
        """
        if self.primary is None:
            return ChatResult(missing_key_message(self.provider), provider=self.provider)

        prompt = chat_prompt(message, context)
        if self.primary is not self.default:
            try:
                text = await self.primary.chat_response(message, context)
                return ChatResult(str(text), provider="google")
            except Exception as e:
                logger.warning("Gemini chat failed, falling back to default gateway: %s", e)
                text = await self.default.generate_content(prompt)
                return ChatResult(str(text), provider="base44", used_fallback=True)

        text = await self.default.generate_content(self.model_tag + prompt)
        return ChatResult(str(text), provider=self.provider)
