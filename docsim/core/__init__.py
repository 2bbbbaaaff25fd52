"""
Core document comparison engine.

This module provides the foundational logic for:
- Tokenization and lexical similarity (Jaccard, TF-IDF cosine, n-gram)
- Document chunking
- Embedding generation behind a provider interface
- Semantic similarity strategies (embedding, retrieval, narrative, combined)
- Dispatch and result normalization
"""

from docsim.core.tokenizer import tokenize
from docsim.core.lexical import (
    jaccard_similarity,
    cosine_similarity_tfidf,
    ngram_similarity,
)
from docsim.core.chunker import chunk_document
from docsim.core.similarity import cosine_similarity
from docsim.core.engine import compare, list_algorithms
from docsim.core.models import SimilarityResult

__all__ = [
    "tokenize",
    "jaccard_similarity",
    "cosine_similarity_tfidf",
    "ngram_similarity",
    "chunk_document",
    "cosine_similarity",
    "compare",
    "list_algorithms",
    "SimilarityResult",
]
