"""
LLM backend (Ollama over HTTP).
"""

from bookmark_hub.services.llm.ollama import (
    OllamaClient,
    OllamaError,
    OllamaProtocolError,
    OllamaUnavailableError,
    RelevanceResponse,
    close_ollama_client,
    get_ollama_client,
)

__all__ = [
    "OllamaClient",
    "OllamaError",
    "OllamaProtocolError",
    "OllamaUnavailableError",
    "RelevanceResponse",
    "close_ollama_client",
    "get_ollama_client",
]
