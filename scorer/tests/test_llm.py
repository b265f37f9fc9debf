import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from scorer.config import LLMConfig, LLMProvider
from scorer.llm import OllamaGenerationClient, OpenAIGenerationClient, get_generation_client


def test_factory_selects_client():
    assert isinstance(get_generation_client(LLMConfig()), OllamaGenerationClient)
    assert isinstance(
        get_generation_client(LLMConfig(provider=LLMProvider.OPENAI, api_key="sk-test")),
        OpenAIGenerationClient,
    )
    custom = get_generation_client(
        LLMConfig(provider=LLMProvider.CUSTOM, base_url="http://localhost:8080/v1")
    )
    assert isinstance(custom, OpenAIGenerationClient)


@pytest.mark.asyncio
async def test_ollama_request_payload():
    requests = []

    def handler(request):
        requests.append(json.loads(request.content))
        return httpx.Response(200, json={"response": '{"index": {}}'})

    client = OllamaGenerationClient(LLMConfig(base_url="http://ollama:11434/", model_name="qwen2.5"))
    await client.close()
    client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

    text = await client.generate("article", system_prompt="score it")
    await client.close()

    assert text == '{"index": {}}'
    payload = requests[0]
    assert payload["model"] == "qwen2.5"
    assert payload["system"] == "score it"
    assert payload["format"] == "json"
    assert payload["stream"] is False
    assert payload["options"]["temperature"] == 0.0


@pytest.mark.asyncio
async def test_ollama_single_attempt_propagates_transport_error():
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    client = OllamaGenerationClient(LLMConfig())
    await client.close()
    client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

    with pytest.raises(httpx.ConnectError):
        await client.generate("article")
    await client.close()
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_openai_request_uses_json_mode():
    client = OpenAIGenerationClient(LLMConfig(provider=LLMProvider.OPENAI, api_key="sk-test",
                                              model_name="gpt-4o-mini"))
    message = MagicMock()
    message.content = '{"index": {}}'
    response = MagicMock()
    response.choices = [MagicMock(message=message)]
    client.client = MagicMock()
    client.client.chat.completions.create = AsyncMock(return_value=response)

    text = await client.generate("article", system_prompt="score it")

    assert text == '{"index": {}}'
    kwargs = client.client.chat.completions.create.await_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["messages"] == [
        {"role": "system", "content": "score it"},
        {"role": "user", "content": "article"},
    ]
    assert kwargs["response_format"] == {"type": "json_object"}
