"""
Document chunking for embedding comparison.

This module splits documents into chunks that fit the input-length
ceilings of embedding backends. The strategy is a fixed sliding window
over the whitespace-separated word stream:

Strategy:
1. Split the document on whitespace runs into words
2. Take windows of `size` words, advancing `size - overlap` words per step
3. Stop once a window reaches the end of the word stream
4. Drop windows that are empty after stripping

Overlap preserves context across chunk boundaries. Because words are
counted before any normalization, punctuation stays attached to its word
and chunk text is the original words re-joined by single spaces.

Design Decisions:
- Word windows, not sentence grouping (predictable upper bound per chunk)
- Overlap must be strictly smaller than size, otherwise the window never
  advances; this is a configuration error, not a runtime fallback
"""

import math
from dataclasses import dataclass
from typing import List

from docsim.core.models import Chunk


# Default window size in words.
DEFAULT_CHUNK_SIZE = 1000

# Default number of words shared by consecutive windows.
DEFAULT_CHUNK_OVERLAP = 200


class ChunkingError(Exception):
    """Raised when chunking parameters are invalid."""
    pass


def _validate(size: int, overlap: int) -> None:
    if size < 1:
        raise ChunkingError(f"Chunk size must be at least 1 word, got {size}")
    if overlap < 0:
        raise ChunkingError(f"Chunk overlap cannot be negative, got {overlap}")
    if overlap >= size:
        raise ChunkingError(
            f"Chunk overlap ({overlap}) must be smaller than chunk size ({size})"
        )


@dataclass(frozen=True)
class ChunkingConfig:
    """
    Configuration for sliding-window chunking.

    Attributes:
        size: Window size in words (default: 1000)
        overlap: Words shared between consecutive windows (default: 200)
    """
    size: int = DEFAULT_CHUNK_SIZE
    overlap: int = DEFAULT_CHUNK_OVERLAP

    def __post_init__(self):
        _validate(self.size, self.overlap)

    @property
    def step(self) -> int:
        """Words advanced between window starts."""
        return self.size - self.overlap


# Default configuration
DEFAULT_CHUNKING_CONFIG = ChunkingConfig()


def chunk_document(
    document: str,
    size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> List[Chunk]:
    """
    Split a document into overlapping word windows.

    Args:
        document: The document text to chunk
        size: Window size in words
        overlap: Words shared by consecutive windows

    Returns:
        List of Chunk objects in document order; empty for an empty
        or whitespace-only document

    Raises:
        ChunkingError: If size/overlap are invalid

    Example:
        >>> chunks = chunk_document(text, size=100, overlap=20)
        >>> [c.word_start for c in chunks][:3]
        [0, 80, 160]
    """
    _validate(size, overlap)

    words = (document or "").split()
    step = size - overlap

    chunks: List[Chunk] = []
    for start in range(0, len(words), step):
        window = words[start:start + size]
        text = " ".join(window)
        if text.strip():
            chunks.append(Chunk(
                index=len(chunks),
                text=text,
                word_start=start,
                word_end=start + len(window),
            ))
        if start + size >= len(words):
            break

    return chunks


def chunk_with_config(document: str, config: ChunkingConfig = DEFAULT_CHUNKING_CONFIG) -> List[Chunk]:
    """chunk_document() driven by a ChunkingConfig."""
    return chunk_document(document, size=config.size, overlap=config.overlap)


def expected_chunk_count(
    word_count: int,
    size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> int:
    """
    Number of chunks chunk_document() produces for a given word count.

    Equals ceil((N - overlap) / (size - overlap)) with a floor of one
    chunk for any non-empty document.
    """
    _validate(size, overlap)
    if word_count <= 0:
        return 0
    return max(1, math.ceil((word_count - overlap) / (size - overlap)))
