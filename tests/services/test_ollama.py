"""
Unit tests for OllamaClient.
"""

import json

import httpx
import pytest

from bookmark_hub.services.llm import prompts
from bookmark_hub.services.llm.ollama import (
    OllamaClient,
    OllamaProtocolError,
    OllamaUnavailableError,
    TagsResponse,
)


# ========================================
# Fixtures
# ========================================

class RecordingHandler:
    """MockTransport handler that answers with a canned response and keeps requests."""

    def __init__(self, response: httpx.Response):
        self.response = response
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.response

    @property
    def last_payload(self):
        return json.loads(self.requests[-1].content)


def make_client(response: httpx.Response, **kwargs):
    handler = RecordingHandler(response)
    client = OllamaClient(
        base_url="http://ollama:11434/",
        text_model=kwargs.get("text_model", "llama3"),
        embedding_model="nomic-embed-text",
        http=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    return client, handler


def generate_response(text: str) -> httpx.Response:
    return httpx.Response(200, json={"model": "llama3", "response": text, "done": True})


# ========================================
# Generate
# ========================================

@pytest.mark.asyncio
async def test_generate_payload():
    client, handler = make_client(generate_response("hello"))

    result = await client.generate("Say hello", system="Be brief")

    assert result == "hello"
    assert str(handler.requests[0].url) == "http://ollama:11434/api/generate"
    assert handler.last_payload == {
        "model": "llama3",
        "prompt": "Say hello",
        "stream": False,
        "system": "Be brief",
    }


@pytest.mark.asyncio
async def test_structured_generation_sends_schema():
    client, handler = make_client(generate_response('{"tags": ["python", "asyncio"]}'))

    tags = await client.tags("an article about asyncio")

    assert tags == ["python", "asyncio"]
    payload = handler.last_payload
    assert payload["format"] == TagsResponse.model_json_schema()
    assert payload["system"] == prompts.SYSTEM_PROMPT
    assert "an article about asyncio" in payload["prompt"]


@pytest.mark.asyncio
async def test_summary_has_no_system_prompt():
    client, handler = make_client(generate_response('{"summary": "Short."}'))

    assert await client.summary("text") == "Short."
    assert "system" not in handler.last_payload


@pytest.mark.asyncio
async def test_structured_output_not_matching_schema_raises_protocol_error():
    client, _ = make_client(generate_response("tags: python, asyncio"))

    with pytest.raises(OllamaProtocolError):
        await client.tags("text")


@pytest.mark.asyncio
async def test_missing_response_text_raises_protocol_error():
    client, _ = make_client(httpx.Response(200, json={"done": True}))

    with pytest.raises(OllamaProtocolError):
        await client.generate("prompt")


@pytest.mark.asyncio
async def test_non_json_body_raises_protocol_error():
    client, _ = make_client(httpx.Response(200, text="<html>proxy</html>"))

    with pytest.raises(OllamaProtocolError):
        await client.generate("prompt")


@pytest.mark.asyncio
async def test_error_status_raises_unavailable():
    client, _ = make_client(httpx.Response(500, text="model crashed"))

    with pytest.raises(OllamaUnavailableError):
        await client.generate("prompt")


@pytest.mark.asyncio
async def test_no_text_model_raises_unavailable():
    client, handler = make_client(generate_response("x"), text_model=None)
    client.text_model = ""

    with pytest.raises(OllamaUnavailableError):
        await client.generate("prompt")
    assert handler.requests == []


@pytest.mark.asyncio
async def test_relevance_and_answer():
    client, handler = make_client(
        generate_response('{"relevant": true, "explanation": "mentions B-trees"}')
    )

    verdict = await client.assess_relevance("What is a B-tree?", "B-trees are balanced.")

    assert verdict.relevant is True
    assert verdict.explanation == "mentions B-trees"
    assert "B-trees are balanced." in handler.last_payload["prompt"]

    handler.response = generate_response("A balanced tree.")
    answer = await client.answer_with_context("What is a B-tree?", ["one", "two"])

    assert answer == "A balanced tree."
    assert "one\n\ntwo" in handler.last_payload["prompt"]


# ========================================
# Embed
# ========================================

@pytest.mark.asyncio
async def test_embed_returns_single_vector():
    client, handler = make_client(httpx.Response(200, json={"embeddings": [[0.1, 0.2, 3]]}))

    vector = await client.embed("query")

    assert vector == [0.1, 0.2, 3.0]
    assert str(handler.requests[0].url) == "http://ollama:11434/api/embed"
    assert handler.last_payload == {"model": "nomic-embed-text", "input": "query"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"embeddings": []},
        {"embeddings": [[0.1], [0.2]]},
        {},
    ],
)
async def test_embed_wrong_count_raises_protocol_error(body):
    client, _ = make_client(httpx.Response(200, json=body))

    with pytest.raises(OllamaProtocolError):
        await client.embed("query")
