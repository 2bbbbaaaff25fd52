"""
Comparison dispatcher and result normalizer.

This module provides the high-level API for comparing two documents. It:
1. Looks the algorithm identifier up in a static catalog
2. Routes lexical ids to the synchronous lexical engine and semantic ids
   to a SemanticEngine bound to the right embedding backend
3. Flattens each engine's native result into one SimilarityResult

Routing Rules:
- Identifiers are matched case-insensitively
- Ids starting with "semantic" are semantic; unknown semantic ids run the
  default combined comparison ("semantic")
- Everything else is lexical; unknown lexical ids run Jaccard

Design Principles:
- Normalization happens here only; engines keep their own result types
- Providers are built lazily, so lexical comparisons never touch
  credentials or models
- Provider failures surface as ComparisonError, chained to the cause
"""

import logging
import threading
from typing import Any, Dict, List, Mapping, Optional

from docsim.config import Settings, get_settings
from docsim.core.chunker import ChunkingConfig, ChunkingError
from docsim.core.embeddings import EmbeddingError, EmbeddingProvider, create_embedding_provider
from docsim.core.lexical import score_lexical
from docsim.core.llm import ChatCompletionClient, ChatCompletionError
from docsim.core.models import (
    AlgorithmInfo,
    CombinedScore,
    EmbeddingScore,
    LexicalScore,
    NarrativeScore,
    RetrievalScore,
    SimilarityResult,
)
from docsim.core.semantic import SemanticEngine

logger = logging.getLogger(__name__)


class ComparisonError(Exception):
    """Raised when a comparison fails (provider, parsing or configuration error)."""
    pass


SEMANTIC_PREFIX = "semantic"
DEFAULT_LEXICAL_ID = "jaccard"
DEFAULT_SEMANTIC_ID = "semantic"

# Ordered public catalog. family/strategy/backend are routing data.
ALGORITHMS: List[AlgorithmInfo] = [
    AlgorithmInfo(
        "jaccard", "Jaccard Similarity",
        "Set-based similarity using word overlap",
    ),
    AlgorithmInfo(
        "cosine", "Cosine Similarity (TF-IDF)",
        "Vector-based similarity using term frequency",
    ),
    AlgorithmInfo(
        "ngram", "N-gram Similarity",
        "Phrase-based similarity using 3-word sequences",
    ),
    AlgorithmInfo(
        "semantic", "Semantic Similarity (Combined)",
        "AI-powered similarity using embeddings, retrieval, and LLM analysis",
        family="semantic", strategy="combined", backend="openai",
        result_name="Semantic Similarity (Embeddings + FAISS + LLM)",
    ),
    AlgorithmInfo(
        "semantic-embedding", "Semantic Embedding Similarity",
        "Similarity using OpenAI embeddings only",
        family="semantic", strategy="embedding", backend="openai",
    ),
    AlgorithmInfo(
        "semantic-rag", "Semantic RAG Similarity",
        "Similarity using vector search and retrieval",
        family="semantic", strategy="retrieval", backend="openai",
    ),
    AlgorithmInfo(
        "semantic-llm", "Semantic LLM Similarity",
        "Similarity using LLM analysis and reasoning",
        family="semantic", strategy="narrative", backend="openai",
    ),
    AlgorithmInfo(
        "semantic-hf", "Semantic Similarity (Hugging Face)",
        "Similarity using Hugging Face MiniLM-L6-v2 embeddings",
        family="semantic", strategy="embedding", backend="huggingface",
    ),
    AlgorithmInfo(
        "semantic-bedrock", "Semantic Similarity (Amazon Bedrock)",
        "Similarity using Amazon Bedrock Titan Embeddings",
        family="semantic", strategy="embedding", backend="bedrock",
    ),
    AlgorithmInfo(
        "semantic-local", "Semantic Similarity (Local)",
        "Similarity using local MiniLM-L6-v2 model (no API calls, no cost)",
        family="semantic", strategy="embedding", backend="local",
    ),
    AlgorithmInfo(
        "semantic-local-embedding", "Semantic Embedding Similarity (Local)",
        "Local embeddings-based similarity (no API calls, no cost)",
        family="semantic", strategy="embedding", backend="local",
    ),
    AlgorithmInfo(
        "semantic-local-rag", "Semantic RAG Similarity (Local)",
        "RAG-based similarity using local embeddings and vector search (no API calls, no cost)",
        family="semantic", strategy="retrieval", backend="local",
    ),
    AlgorithmInfo(
        "semantic-local-llm", "Semantic LLM Similarity (Local)",
        "LLM-like analysis using local embeddings (no API calls, no cost)",
        family="semantic", strategy="narrative", backend="local",
    ),
    AlgorithmInfo(
        "semantic-local-combined", "Semantic Combined Similarity (Local)",
        "Combined local analysis using embeddings, RAG, and LLM-like methods (no API calls, no cost)",
        family="semantic", strategy="combined", backend="local",
        result_name="Local Semantic Similarity (Embeddings + RAG + LLM-like)",
    ),
]

_ALGORITHMS_BY_ID: Dict[str, AlgorithmInfo] = {a.id: a for a in ALGORITHMS}

# Backends whose narrative strategy asks a chat model instead of the policy table
_CHAT_BACKENDS = {"openai"}

_BACKEND_LABELS = {
    "openai": "OpenAI",
    "huggingface": "Hugging Face",
    "bedrock": "Amazon Bedrock",
    "local": "Local",
}


def list_algorithms() -> List[Dict[str, str]]:
    """Static catalog of {id, name, description}, in display order."""
    return [a.to_dict() for a in ALGORITHMS]


def resolve_algorithm(algorithm_id: Optional[str]) -> AlgorithmInfo:
    """
    Map an identifier to its catalog entry, applying the family defaults.

    Args:
        algorithm_id: Requested id (case-insensitive, None allowed)

    Returns:
        The matching AlgorithmInfo, or the family default
    """
    key = (algorithm_id or "").strip().lower()
    if key in _ALGORITHMS_BY_ID:
        return _ALGORITHMS_BY_ID[key]
    if key.startswith(SEMANTIC_PREFIX):
        return _ALGORITHMS_BY_ID[DEFAULT_SEMANTIC_ID]
    return _ALGORITHMS_BY_ID[DEFAULT_LEXICAL_ID]


# =============================================================================
# Normalization
# =============================================================================

def _embedding_details(result: EmbeddingScore) -> Dict[str, Any]:
    return {
        "method": result.method,
        "model": result.model_name,
        "doc1Chunks": result.doc1_chunks,
        "doc2Chunks": result.doc2_chunks,
        "totalComparisons": result.total_comparisons,
        "chunkSize": result.chunk_size,
        "chunkOverlap": result.chunk_overlap,
        "embeddingSize": result.embedding_dim,
    }


def _retrieval_details(result: RetrievalScore) -> Dict[str, Any]:
    return {
        "method": result.method,
        "model": result.model_name,
        "doc1Chunks": result.doc1_chunks,
        "doc2Chunks": result.doc2_chunks,
        "topK": result.top_k,
        "retrievedResults": len(result.matches),
        "averageRetrievalScore": result.score,
        "embeddingSize": result.embedding_dim,
        "retrievalResults": [
            {
                "queryChunk": m.query_index,
                "matchedChunks": m.matched_indices,
                "scores": m.scores,
            }
            for m in result.matches
        ],
    }


def _narrative_details(result: NarrativeScore) -> Dict[str, Any]:
    details: Dict[str, Any] = {
        "method": result.method,
        "model": result.model_name,
        "reasoning": result.reasoning,
        "keySimilarities": result.key_similarities,
        "keyDifferences": result.key_differences,
    }
    if result.doc1_chunks is not None:
        details["doc1Chunks"] = result.doc1_chunks
        details["doc2Chunks"] = result.doc2_chunks
        details["embeddingSize"] = result.embedding_dim
    return details


def _combined_details(result: CombinedScore) -> Dict[str, Any]:
    return {
        "method": result.method,
        "model": result.model_name,
        "doc1Chunks": result.embedding.doc1_chunks,
        "doc2Chunks": result.embedding.doc2_chunks,
        "embeddingScore": result.embedding.score,
        "ragScore": result.retrieval.score,
        "llmScore": result.narrative.score,
        "weights": dict(result.weights),
        "embeddingDetails": _embedding_details(result.embedding),
        "ragDetails": _retrieval_details(result.retrieval),
        "llmDetails": _narrative_details(result.narrative),
    }


def normalize_result(result: Any, algorithm: AlgorithmInfo) -> SimilarityResult:
    """
    Flatten a native engine result into the common output contract.

    Raises:
        TypeError: If the result type is not one the engines produce
    """
    if isinstance(result, LexicalScore):
        details = {"doc1Words": result.doc1_words, "doc2Words": result.doc2_words}
    elif isinstance(result, EmbeddingScore):
        details = _embedding_details(result)
    elif isinstance(result, RetrievalScore):
        details = _retrieval_details(result)
    elif isinstance(result, NarrativeScore):
        details = _narrative_details(result)
    elif isinstance(result, CombinedScore):
        details = _combined_details(result)
    else:
        raise TypeError(f"Cannot normalize result of type {type(result).__name__}")

    return SimilarityResult(
        score=float(result.score),
        algorithm_name=algorithm.reported_name,
        details=details,
    )


# =============================================================================
# Service
# =============================================================================

def compare_lexical(doc1: str, doc2: str, algorithm_id: str = DEFAULT_LEXICAL_ID) -> SimilarityResult:
    """
    Synchronous lexical comparison (never suspends, never calls a provider).

    Unknown ids, including semantic ones, fall back to Jaccard.
    """
    algorithm = resolve_algorithm(algorithm_id)
    if algorithm.family != "lexical":
        algorithm = _ALGORITHMS_BY_ID[DEFAULT_LEXICAL_ID]
    return normalize_result(score_lexical(doc1, doc2, algorithm.id), algorithm)


class SimilarityService:
    """
    Owns embedding providers and semantic engines for the comparison API.

    Providers and the chat client are created on first use from settings,
    unless injected. The service keeps no per-request state, so one
    instance can serve concurrent comparisons.

    Args:
        settings: Configuration (defaults to get_settings())
        providers: Pre-built providers keyed by backend name
        chat_client: Pre-built chat client for narrative scoring
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        providers: Optional[Mapping[str, EmbeddingProvider]] = None,
        chat_client: Optional[ChatCompletionClient] = None,
    ):
        self.settings = settings or get_settings()
        self._providers: Dict[str, EmbeddingProvider] = dict(providers or {})
        self._chat_client = chat_client
        self._lock = threading.Lock()

    def _provider(self, backend: str) -> EmbeddingProvider:
        with self._lock:
            if backend not in self._providers:
                self._providers[backend] = create_embedding_provider(backend, self.settings)
            return self._providers[backend]

    def _chat(self) -> ChatCompletionClient:
        with self._lock:
            if self._chat_client is None:
                self._chat_client = ChatCompletionClient(
                    api_key=self.settings.openai_api_key,
                    model=self.settings.openai_chat_model,
                    base_url=self.settings.openai_base_url,
                    timeout=self.settings.request_timeout,
                )
            return self._chat_client

    def engine_for(self, algorithm: AlgorithmInfo) -> SemanticEngine:
        """Build the semantic engine for a semantic catalog entry."""
        backend = algorithm.backend
        chat = self._chat() if backend in _CHAT_BACKENDS else None
        try:
            config = ChunkingConfig(
                size=self.settings.chunk_size,
                overlap=self.settings.chunk_overlap,
            )
        except ChunkingError as e:
            raise ComparisonError(f"Invalid chunking configuration: {e}") from e

        provider = self._provider(backend)
        try:
            return SemanticEngine(
                provider,
                chat_client=chat,
                config=config,
                top_k=self.settings.rag_top_k,
                label=_BACKEND_LABELS.get(backend, backend),
            )
        except ValueError as e:
            raise ComparisonError(f"Invalid retrieval configuration: {e}") from e

    async def compare(self, doc1: str, doc2: str, algorithm_id: str = DEFAULT_LEXICAL_ID) -> SimilarityResult:
        """
        Compare two documents with the requested algorithm.

        Args:
            doc1: First document
            doc2: Second document
            algorithm_id: Catalog id (see list_algorithms())

        Returns:
            SimilarityResult with score, algorithm name and details

        Raises:
            ComparisonError: If an embedding provider or chat model fails

        Example:
            >>> service = SimilarityService()
            >>> result = await service.compare(a, b, "semantic-local")
            >>> result.to_dict()["similarity"]
        """
        algorithm = resolve_algorithm(algorithm_id)
        if algorithm.family == "lexical":
            return compare_lexical(doc1, doc2, algorithm.id)

        engine = self.engine_for(algorithm)
        strategies = {
            "embedding": engine.embedding_similarity,
            "retrieval": engine.retrieval_similarity,
            "narrative": engine.narrative_similarity,
            "combined": engine.combined_similarity,
        }

        logger.info(f"Running {algorithm.id} ({algorithm.strategy} via {algorithm.backend})")
        try:
            native = await strategies[algorithm.strategy](doc1, doc2)
        except (EmbeddingError, ChatCompletionError) as e:
            logger.error(f"{algorithm.id} failed: {e}")
            raise ComparisonError(f"{algorithm.name} failed: {e}") from e

        return normalize_result(native, algorithm)


_default_service: Optional[SimilarityService] = None
_default_service_lock = threading.Lock()


def get_default_service() -> SimilarityService:
    """Process-wide service built from get_settings()."""
    global _default_service
    with _default_service_lock:
        if _default_service is None:
            _default_service = SimilarityService()
        return _default_service


async def compare(doc1: str, doc2: str, algorithm_id: str = DEFAULT_LEXICAL_ID) -> SimilarityResult:
    """Compare two documents using the default service."""
    return await get_default_service().compare(doc1, doc2, algorithm_id)
