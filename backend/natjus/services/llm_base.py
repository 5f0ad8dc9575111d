"""
NatJus Backend — Abstract LLM Interface
=========================================

What:  Interface every LLM provider implements.
How:   Abstract base class with generate_content() and health_check();
       analyze_nota_tecnica() and chat_response() are built on top of
       generate_content() with fixed prompts and temperatures.
Who:   GeminiService and DefaultLLMService implement it; LLMRouter holds
       one instance per configured provider and dispatches to them.

Contract of generate_content():
    - response_schema given: the provider is asked for JSON constrained to
      that schema; parsed JSON is returned when it parses, otherwise the
      raw text is returned and a warning logged
    - no schema: free text
    - upstream non-success or empty output: ProviderError
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Union

from natjus.services.prompts import NOTA_TECNICA_SCHEMA, analysis_prompt, chat_prompt

# Parsed JSON (dict/list) or raw text
LLMOutput = Union[Dict[str, Any], list, str]


class TextGenerator(ABC):
    """
    Abstract base class for LLM text/JSON generation providers.

    Subclasses set `provider` to their key in the LLM provider enum.
    """

    provider: str = ""

    @abstractmethod
    async def generate_content(
        self,
        prompt: str,
        *,
        response_schema: Optional[Dict[str, Any]] = None,
        temperature: float = 0.7,
        max_output_tokens: int = 8192,
    ) -> LLMOutput:
        """
        Run one completion.

        Raises:
            ProviderError: Upstream failure or empty output
            CircuitBreakerOpenError: Provider is in cool-down (Gemini only)
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Cheap connectivity/credential probe; never raises."""
        ...

    async def analyze_nota_tecnica(self, extracted: Any) -> LLMOutput:
        """Structure one note's extracted text. Low temperature for stable fields."""
        return await self.generate_content(
            analysis_prompt(extracted, strict=True),
            response_schema=NOTA_TECNICA_SCHEMA,
            temperature=0.3,
        )

    async def chat_response(self, user_message: str, context: str = "") -> LLMOutput:
        """Conversational answer grounded in the notes context block."""
        return await self.generate_content(
            chat_prompt(user_message, context),
            temperature=0.7,
            max_output_tokens=2048,
        )
