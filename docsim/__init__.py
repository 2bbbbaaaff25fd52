"""
DocSim - Pairwise Document Similarity

Compares two documents and reports a normalized similarity score using
lexical (Jaccard, TF-IDF cosine, n-gram) or embedding-based semantic
algorithms.
"""

from docsim.core.engine import (
    compare,
    compare_lexical,
    list_algorithms,
    SimilarityService,
    ComparisonError,
)
from docsim.core.models import SimilarityResult, Chunk
from docsim.core.chunker import chunk_document, ChunkingConfig, ChunkingError
from docsim.core.embeddings import (
    EmbeddingProvider,
    EmbeddingError,
    LocalEmbeddingProvider,
    HostedInferenceProvider,
    BedrockEmbeddingProvider,
    OpenAIEmbeddingProvider,
)
from docsim.core.semantic import SemanticEngine

__version__ = "1.0.0"
__all__ = [
    # Dispatcher
    "compare",
    "compare_lexical",
    "list_algorithms",
    "SimilarityService",
    "SimilarityResult",
    "ComparisonError",
    # Chunking
    "chunk_document",
    "Chunk",
    "ChunkingConfig",
    "ChunkingError",
    # Embedding backends
    "EmbeddingProvider",
    "EmbeddingError",
    "LocalEmbeddingProvider",
    "HostedInferenceProvider",
    "BedrockEmbeddingProvider",
    "OpenAIEmbeddingProvider",
    # Semantic strategies
    "SemanticEngine",
]
