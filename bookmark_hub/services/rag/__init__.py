"""
Retrieval-augmented question answering.
"""

from bookmark_hub.services.rag.engine import (
    NO_RELEVANT_INFORMATION_ANSWER,
    RELEVANCE_UNKNOWN,
    RagEngine,
    merge_candidates,
)

__all__ = [
    "NO_RELEVANT_INFORMATION_ANSWER",
    "RELEVANCE_UNKNOWN",
    "RagEngine",
    "merge_candidates",
]
