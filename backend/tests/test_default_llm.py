"""
NatJus Backend — Default LLM Gateway Tests
============================================

The openai client is replaced by a MagicMock; no request leaves the process.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from openai import APIConnectionError

from natjus.exceptions import ConfigurationError, ProviderError
from natjus.services.default_llm import DefaultLLMService


def _client(content):
    client = MagicMock()
    message = SimpleNamespace(content=content)
    client.chat.completions.create = AsyncMock(
        return_value=SimpleNamespace(choices=[SimpleNamespace(message=message)])
    )
    return client


async def test_structured_call_sends_json_schema_and_parses():
    client = _client('{"numero": "10/2024"}')
    service = DefaultLLMService(client=client, model="gateway-model")

    result = await service.generate_content("prompt", response_schema={"type": "object"})

    assert result == {"numero": "10/2024"}
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gateway-model"
    assert kwargs["response_format"]["type"] == "json_schema"
    assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]


async def test_plain_call_returns_text():
    service = DefaultLLMService(client=_client("Olá"))
    assert await service.generate_content("oi") == "Olá"


async def test_missing_key_is_a_configuration_error():
    service = DefaultLLMService(api_key="")
    with pytest.raises(ConfigurationError):
        await service.generate_content("oi")


async def test_no_choices_raise_provider_error():
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=SimpleNamespace(choices=[]))
    with pytest.raises(ProviderError):
        await DefaultLLMService(client=client).generate_content("oi")


async def test_connection_error_mapped():
    client = MagicMock()
    request = httpx.Request("POST", "https://gateway.test/v1/chat/completions")
    client.chat.completions.create = AsyncMock(side_effect=APIConnectionError(request=request))

    with pytest.raises(ProviderError, match="unreachable") as exc_info:
        await DefaultLLMService(client=client).generate_content("oi")
    assert exc_info.value.provider == "base44"


async def test_inherited_analysis_uses_strict_schema_and_low_temperature():
    client = _client('{"numero": "10/2024", "tipo": "processual", "titulo": "t", "resumo": "r"}')
    service = DefaultLLMService(client=client)

    result = await service.analyze_nota_tecnica({"texto": "Nota Técnica 10/2024"})

    assert result["numero"] == "10/2024"
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["temperature"] == 0.3
    schema = kwargs["response_format"]["json_schema"]["schema"]
    assert schema["required"] == ["numero", "tipo", "titulo", "resumo"]


async def test_inherited_chat_response_is_plain_text():
    client = _client("Há uma nota sobre canabidiol.")
    service = DefaultLLMService(client=client)

    result = await service.chat_response("tem nota de canabidiol?", "Nota Número: 1/2024")

    assert result == "Há uma nota sobre canabidiol."
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["max_tokens"] == 2048
    assert "response_format" not in kwargs
    assert "Nota Número: 1/2024" in kwargs["messages"][0]["content"]
