"""
Token windows for the enrichment workers.

Text is encoded with tiktoken and cut into windows of `size` tokens, each
starting `size - overlap` tokens after the previous one, so consecutive
windows share `overlap` tokens at their edges. The last window may be shorter
and ends exactly at the end of the text. Text shorter than one window yields a
single window; empty text yields none.
"""

from functools import lru_cache
from typing import List, Optional

import tiktoken

from bookmark_hub.core.config import settings


@lru_cache(maxsize=4)
def get_encoding(name: str) -> tiktoken.Encoding:
    return tiktoken.get_encoding(name)


def windowed_chunks(
    text: str,
    size: Optional[int] = None,
    overlap: Optional[int] = None,
    encoding_name: Optional[str] = None,
) -> List[str]:
    """
    Split text into overlapping token windows.

    Args:
        text: Text to split
        size: Tokens per window (default: settings.CHUNK_SIZE_TOKENS)
        overlap: Tokens shared by consecutive windows (default: settings.CHUNK_OVERLAP_TOKENS)
        encoding_name: tiktoken encoding (default: settings.TOKENIZER_ENCODING)

    Returns:
        Decoded window texts, in document order

    Raises:
        ValueError: If overlap is not smaller than size
    """
    size = size or settings.CHUNK_SIZE_TOKENS
    overlap = settings.CHUNK_OVERLAP_TOKENS if overlap is None else overlap
    if size <= 0 or overlap < 0 or overlap >= size:
        raise ValueError(f"Invalid window: size={size}, overlap={overlap}")

    encoding = get_encoding(encoding_name or settings.TOKENIZER_ENCODING)
    tokens = encoding.encode(text, disallowed_special=())
    if not tokens:
        return []

    step = size - overlap
    windows = []
    start = 0
    while True:
        windows.append(encoding.decode(tokens[start:start + size]))
        if start + size >= len(tokens):
            break
        start += step
    return windows


def count_tokens(text: str, encoding_name: Optional[str] = None) -> int:
    encoding = get_encoding(encoding_name or settings.TOKENIZER_ENCODING)
    return len(encoding.encode(text, disallowed_special=()))
