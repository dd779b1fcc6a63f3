"""
Ollama Client

Thin async client over the Ollama HTTP API used for every AI feature:

- POST /api/generate  (structured output via a JSON schema `format`)
- POST /api/embed     (exactly one embedding per input)

Errors:
-------
- OllamaUnavailableError: transport failure or non-2xx status
- OllamaProtocolError: the model answered something that does not match the
  requested schema, or the wrong number of embeddings

Callers decide what a failure means: enrichment workers skip the bookmark
until their next poll, RAG falls back to degraded behaviour where it can.
"""

import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from bookmark_hub.core.config import settings
from bookmark_hub.services.llm import prompts

logger = logging.getLogger(__name__)


# ========================================
# Custom Exceptions
# ========================================


class OllamaError(Exception):
    """Base exception for Ollama errors."""
    pass


class OllamaUnavailableError(OllamaError):
    """Raised when Ollama cannot be reached or answers with an error status."""
    pass


class OllamaProtocolError(OllamaError):
    """Raised when Ollama's answer does not follow the expected shape."""
    pass


# ========================================
# Structured Responses
# ========================================


class TagsResponse(BaseModel):
    tags: List[str]


class SummaryResponse(BaseModel):
    summary: str


class QuestionsResponse(BaseModel):
    questions: List[str]


class RelevanceResponse(BaseModel):
    relevant: bool
    explanation: str


ResponseModel = TypeVar("ResponseModel", bound=BaseModel)


# ========================================
# Client
# ========================================


class OllamaClient:
    """
    Ollama HTTP client.

    Usage:
    ------
    client = OllamaClient()
    tags = await client.tags("slice of article text")
    vector = await client.embed("What is a B-tree?")
    await client.close()
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        text_model: Optional[str] = None,
        embedding_model: Optional[str] = None,
        http: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = (base_url or settings.OLLAMA_URL).rstrip("/")
        self.text_model = text_model or settings.OLLAMA_TEXT_MODEL
        self.embedding_model = embedding_model or settings.OLLAMA_EMBEDDING_MODEL
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(
            timeout=timeout or settings.OLLAMA_TIMEOUT_SECONDS
        )

        logger.info(
            f"OllamaClient initialized: url={self.base_url}, "
            f"text_model={self.text_model}, embedding_model={self.embedding_model}"
        )

    async def close(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    # ========================================
    # Raw API
    # ========================================

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self.http.post(f"{self.base_url}{path}", json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise OllamaUnavailableError(f"Ollama request to {path} failed: {e}") from e

        try:
            return response.json()
        except ValueError as e:
            raise OllamaProtocolError(f"Ollama returned non-JSON body from {path}") from e

    async def generate(
        self,
        prompt: str,
        system: Optional[str] = None,
        schema: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Run one non-streaming completion and return the raw response text.

        Args:
            prompt: User prompt
            system: Optional system prompt
            schema: Optional JSON schema the output must follow
        """
        if not self.text_model:
            raise OllamaUnavailableError("No text model configured (OLLAMA_TEXT_MODEL)")

        payload: Dict[str, Any] = {
            "model": self.text_model,
            "prompt": prompt,
            "stream": False,
        }
        if system:
            payload["system"] = system
        if schema:
            payload["format"] = schema

        body = await self._post("/api/generate", payload)
        text = body.get("response")
        if not isinstance(text, str):
            raise OllamaProtocolError("Ollama generate response has no text")
        return text

    async def generate_structured(
        self,
        prompt: str,
        response_model: Type[ResponseModel],
        system: Optional[str] = None,
    ) -> ResponseModel:
        """
        Completion constrained to response_model's JSON schema.

        Raises:
            OllamaProtocolError: The output does not validate against the model
        """
        text = await self.generate(
            prompt,
            system=system,
            schema=response_model.model_json_schema(),
        )
        try:
            return response_model.model_validate_json(text)
        except ValidationError as e:
            raise OllamaProtocolError(
                f"Ollama output does not match {response_model.__name__}: {text[:200]!r}"
            ) from e

    async def embed(self, text: str) -> List[float]:
        """
        Embed one text.

        Raises:
            OllamaProtocolError: Anything but exactly one embedding came back
        """
        body = await self._post(
            "/api/embed",
            {"model": self.embedding_model, "input": text},
        )
        embeddings = body.get("embeddings")
        if not isinstance(embeddings, list) or len(embeddings) != 1:
            count = len(embeddings) if isinstance(embeddings, list) else 0
            raise OllamaProtocolError(f"Expected exactly one embedding, got {count}")
        return [float(value) for value in embeddings[0]]

    # ========================================
    # Enrichment
    # ========================================

    async def tags(self, text: str) -> List[str]:
        response = await self.generate_structured(
            prompts.TAGS_PROMPT.format(text=text),
            TagsResponse,
            system=prompts.SYSTEM_PROMPT,
        )
        return response.tags

    async def consolidate_tags(self, tags: List[str]) -> List[str]:
        response = await self.generate_structured(
            prompts.CONSOLIDATE_TAGS_PROMPT.format(
                max_tags=settings.MAX_CONSOLIDATED_TAGS,
                tags=", ".join(tags),
            ),
            TagsResponse,
            system=prompts.SYSTEM_PROMPT,
        )
        return response.tags

    async def summary(self, text: str) -> str:
        response = await self.generate_structured(
            prompts.SUMMARY_PROMPT.format(text=text),
            SummaryResponse,
        )
        return response.summary

    async def consolidate_summary(self, summaries: List[str]) -> str:
        response = await self.generate_structured(
            prompts.CONSOLIDATE_SUMMARY_PROMPT.format(summaries="\n".join(summaries)),
            SummaryResponse,
        )
        return response.summary

    # ========================================
    # RAG
    # ========================================

    async def similar_questions(self, question: str, count: Optional[int] = None) -> List[str]:
        response = await self.generate_structured(
            prompts.SIMILAR_QUESTIONS_PROMPT.format(
                count=count or settings.RAG_QUERY_VARIATIONS,
                question=question,
            ),
            QuestionsResponse,
            system=prompts.SYSTEM_PROMPT,
        )
        return response.questions

    async def assess_relevance(self, question: str, chunk_text: str) -> RelevanceResponse:
        return await self.generate_structured(
            prompts.RELEVANCE_PROMPT.format(question=question, chunk=chunk_text),
            RelevanceResponse,
            system=prompts.SYSTEM_PROMPT,
        )

    async def answer_with_context(self, question: str, context_chunks: List[str]) -> str:
        return await self.generate(
            prompts.ANSWER_PROMPT.format(
                context="\n\n".join(context_chunks),
                question=question,
            ),
            system=prompts.SYSTEM_PROMPT,
        )


# Global client instance
_client: Optional[OllamaClient] = None


def get_ollama_client() -> OllamaClient:
    """Get or create the process-wide Ollama client."""
    global _client

    if _client is None:
        _client = OllamaClient()
        logger.info("Created global OllamaClient instance")

    return _client


async def close_ollama_client() -> None:
    global _client

    if _client is not None:
        await _client.close()
        _client = None
