"""
NatJus Backend — Google Gemini Service
========================================

What:  LLM provider "google": structures technical notes and answers chat
       questions through the Gemini SDK (google-generativeai).
How:   generate_content() sends one prompt with a generation config (JSON
       mode + response schema when requested). analyze_nota_tecnica() and
       chat_response() wrap it with the fixed NatJus prompts.
Who:   Built by LLMRouter when the configuration selects "google" and a
       Gemini key exists; also used by the admin connection test and /health.

Resilience Strategy:
    1. Tenacity retry with exponential backoff + jitter, only for transient
       upstream errors (5xx, 429, timeouts). A rejected key fails at once.
    2. Circuit breaker: after N consecutive failed calls every call fails
       fast with CircuitBreakerOpenError until the recovery timeout passes.
    3. LLMRouter catches any failure here and falls back to the default
       gateway, so a Gemini outage never loses a file.
"""

import asyncio
import json
import logging
import time
import uuid
from functools import lru_cache
from typing import Any, Dict, Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from natjus.config import settings
from natjus.exceptions import CircuitBreakerOpenError, ProviderError
from natjus.services.llm_base import LLMOutput, TextGenerator

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 40
DEFAULT_TOP_P = 0.95

TRANSIENT_ERRORS = (
    google_exceptions.ServerError,
    google_exceptions.TooManyRequests,
    ConnectionError,
    TimeoutError,
)


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    Consecutive-failure circuit breaker.

    CLOSED    → calls pass; failures are counted
    OPEN      → calls raise CircuitBreakerOpenError until recovery_timeout
    HALF_OPEN → one trial call; success closes, failure re-opens

    Not thread-safe. uvicorn's async workers share one process, and each
    GeminiService instance owns its breaker.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.opened_at: Optional[float] = None

    def before_call(self) -> None:
        """Raise CircuitBreakerOpenError if the circuit is still cooling down."""
        if self.state != self.OPEN:
            return
        elapsed = time.monotonic() - (self.opened_at or 0.0)
        if elapsed < self.recovery_timeout:
            raise CircuitBreakerOpenError(recovery_time=int(self.recovery_timeout - elapsed))
        logger.info("Gemini circuit breaker HALF_OPEN after %.1fs", elapsed)
        self.state = self.HALF_OPEN

    def record_success(self) -> None:
        if self.state != self.CLOSED:
            logger.info("Gemini circuit breaker CLOSED (service recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.opened_at = None

    def record_failure(self) -> None:
        self.failure_count += 1
        if self.state == self.HALF_OPEN or self.failure_count >= self.failure_threshold:
            if self.state != self.OPEN:
                logger.warning(
                    "Gemini circuit breaker OPEN after %d consecutive failures",
                    self.failure_count,
                )
            self.state = self.OPEN
            self.opened_at = time.monotonic()


# ══════════════════════════════════════════════════════════════════════════
# Gemini Service
# ══════════════════════════════════════════════════════════════════════════

def _to_gemini_schema(schema: Dict[str, Any]) -> Dict[str, Any]:
    """
    Translate a JSON-schema dict into the subset the Gemini SDK accepts.

    The SDK maps dict keys onto its Schema proto, which spells array limits
    as max_items/min_items and has no description on enums.
    """
    renamed = {"maxItems": "max_items", "minItems": "min_items"}
    converted: Dict[str, Any] = {}
    for key, value in schema.items():
        key = renamed.get(key, key)
        if key == "properties":
            value = {name: _to_gemini_schema(prop) for name, prop in value.items()}
        elif key == "items":
            value = _to_gemini_schema(value)
        converted[key] = value
    return converted


class GeminiService(TextGenerator):
    """
    Gemini-backed TextGenerator.

    Error Handling Chain:
        SDK call fails transiently → tenacity retries (settings.retry_max_attempts)
        → still failing → circuit breaker failure recorded → ProviderError
        → threshold reached → later calls rejected instantly
    """

    provider = "google"

    def __init__(self, api_key: str, model: str = "gemini-1.5-pro"):
        if not api_key:
            raise ValueError("GeminiService requires an API key")
        genai.configure(api_key=api_key)
        self.model_name = model
        self.model = genai.GenerativeModel(model)
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )
        logger.info(
            "GeminiService initialized with model=%s, circuit_breaker(threshold=%d, recovery=%ds)",
            model,
            settings.cb_failure_threshold,
            settings.cb_recovery_timeout,
        )

    async def generate_content(
        self,
        prompt: str,
        *,
        response_schema: Optional[Dict[str, Any]] = None,
        temperature: float = 0.7,
        max_output_tokens: int = 8192,
    ) -> LLMOutput:
        """
        Run one Gemini completion.

        Flow:
            1. Circuit breaker check (may raise CircuitBreakerOpenError)
            2. SDK call with retry
            3. Empty candidate list → ProviderError
            4. Schema requested → json.loads, raw text on parse failure
        """
        call_id = str(uuid.uuid4())[:8]
        self.circuit_breaker.before_call()

        generation_config: Dict[str, Any] = {
            "temperature": temperature,
            "top_k": DEFAULT_TOP_K,
            "top_p": DEFAULT_TOP_P,
            "max_output_tokens": max_output_tokens,
        }
        if response_schema:
            generation_config["response_mime_type"] = "application/json"
            generation_config["response_schema"] = _to_gemini_schema(response_schema)

        logger.info(
            "[%s] Calling Gemini model=%s prompt=%r",
            call_id,
            self.model_name,
            prompt[:100] + "...",
        )

        try:
            response = await self._call_gemini_with_retry(prompt, generation_config, call_id)
            text = self._response_text(response)
        except google_exceptions.GoogleAPICallError as e:
            self.circuit_breaker.record_failure()
            status = getattr(e, "code", None)
            raise ProviderError(
                message=f"Gemini API Error ({status}): {getattr(e, 'message', str(e))}",
                provider=self.provider,
                status=status,
                context={"call_id": call_id},
            ) from e
        except ProviderError:
            self.circuit_breaker.record_failure()
            raise
        except Exception as e:
            self.circuit_breaker.record_failure()
            logger.error("[%s] Unexpected Gemini error: %s", call_id, e, exc_info=True)
            raise ProviderError(
                message=f"Erro ao processar com Gemini: {e}",
                provider=self.provider,
                context={"call_id": call_id, "error_type": type(e).__name__},
            ) from e

        self.circuit_breaker.record_success()

        if response_schema:
            try:
                return json.loads(text)
            except json.JSONDecodeError:
                logger.warning("[%s] Gemini response is not valid JSON, returning text", call_id)
                return text
        return text

    @staticmethod
    def _response_text(response: Any) -> str:
        if not getattr(response, "candidates", None):
            raise ProviderError(message="Nenhuma resposta gerada pelo Gemini", provider="google")
        try:
            return response.text
        except ValueError as e:
            # Raised by the SDK when the candidate carries no text part (e.g. safety block)
            raise ProviderError(
                message=f"Resposta do Gemini sem conteúdo: {e}", provider="google"
            ) from e

    @retry(
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _call_gemini_with_retry(
        self, prompt: str, generation_config: Dict[str, Any], call_id: str
    ) -> Any:
        """The retried unit is only the SDK call; the breaker check stays outside."""
        start_time = time.time()
        try:
            response = await self.model.generate_content_async(
                prompt,
                generation_config=generation_config,
                request_options={"timeout": settings.llm_timeout},
            )
        except Exception as e:
            logger.warning(
                "[%s] Gemini API call failed after %.0fms: %s",
                call_id,
                (time.time() - start_time) * 1000,
                e,
            )
            raise
        logger.info(
            "[%s] Gemini call completed in %.0fms", call_id, (time.time() - start_time) * 1000
        )
        return response

    async def health_check(self) -> bool:
        """
        Lists models to verify the key and connectivity. No token cost.

        list_models() is a blocking generator, so it runs in a worker thread.
        """
        try:
            models = await asyncio.to_thread(lambda: [m.name for m in genai.list_models()])
        except Exception as e:
            logger.warning("Gemini health check failed: %s", e)
            return False
        if f"models/{self.model_name}" not in models:
            logger.warning("Configured Gemini model %s not in available models", self.model_name)
        return True


@lru_cache(maxsize=8)
def get_gemini_service(api_key: str, model: str) -> GeminiService:
    """
    One GeminiService per (key, model).

    The instance owns the circuit breaker, so it must outlive a single
    request or queue run.
    """
    return GeminiService(api_key=api_key, model=model)
