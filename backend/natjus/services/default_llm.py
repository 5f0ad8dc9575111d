"""
NatJus Backend — Default LLM Gateway
======================================

What:  LLM provider "base44", the default and fallback provider. Sends
       prompts to any OpenAI-compatible chat-completions endpoint
       (LLM_GATEWAY_BASE_URL) through the openai SDK.
Who:   LLMRouter for provider "base44", for the declared "openai" and
       "anthropic" providers (prompt prefixed with a model tag), and as the
       fallback whenever Gemini fails.

No retry layer here: a failed default call is already the last resort and
surfaces as a file-scoped structuring error.
"""

import json
import logging
from typing import Any, Dict, Optional

from openai import APIConnectionError, APIStatusError, AsyncOpenAI, OpenAIError

from natjus.config import settings
from natjus.exceptions import ConfigurationError, ProviderError
from natjus.services.llm_base import LLMOutput, TextGenerator

logger = logging.getLogger(__name__)


class DefaultLLMService(TextGenerator):
    provider = "base44"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.llm_gateway_api_key
        self.base_url = base_url or settings.llm_gateway_base_url
        self.model = model or settings.llm_gateway_model
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.api_key:
                raise ConfigurationError(
                    message="Gateway LLM padrão não configurado. Defina LLM_GATEWAY_API_KEY.",
                    provider=self.provider,
                )
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=settings.llm_timeout,
            )
        return self._client

    async def generate_content(
        self,
        prompt: str,
        *,
        response_schema: Optional[Dict[str, Any]] = None,
        temperature: float = 0.7,
        max_output_tokens: int = 8192,
    ) -> LLMOutput:
        request: Dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
            "max_tokens": max_output_tokens,
        }
        if response_schema:
            request["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": "nota_tecnica", "schema": response_schema},
            }

        try:
            completion = await self.client.chat.completions.create(**request)
        except APIStatusError as e:
            raise ProviderError(
                message=f"LLM gateway error ({e.status_code}): {e.message}",
                provider=self.provider,
                status=e.status_code,
            ) from e
        except APIConnectionError as e:
            raise ProviderError(
                message=f"LLM gateway unreachable: {e}",
                provider=self.provider,
            ) from e
        except OpenAIError as e:
            raise ProviderError(message=f"LLM gateway error: {e}", provider=self.provider) from e

        if not completion.choices:
            raise ProviderError(message="LLM gateway returned no choices", provider=self.provider)
        content = completion.choices[0].message.content or ""
        logger.info("Default LLM call completed (model=%s, %d chars)", self.model, len(content))

        if response_schema:
            try:
                return json.loads(content)
            except json.JSONDecodeError:
                logger.warning("Default LLM response is not valid JSON, returning text")
                return content
        return content

    async def health_check(self) -> bool:
        try:
            await self.client.models.list()
        except (ConfigurationError, OpenAIError) as e:
            logger.warning("Default LLM health check failed: %s", e)
            return False
        return True
