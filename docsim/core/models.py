"""
Data models for the document similarity engine.

These dataclasses define the structured return types used throughout
the comparison pipeline. Each engine returns its own native score type;
the dispatcher flattens them into a SimilarityResult at the boundary.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import numpy as np
from numpy.typing import NDArray


# Type alias for embedding vectors
Vector = NDArray[np.float32]


@dataclass(frozen=True)
class Chunk:
    """
    A contiguous window of a document's word stream.

    Attributes:
        index: Position of this chunk in the document (0-indexed)
        text: The chunk's words joined by single spaces
        word_start: Index of the first word in the document's word stream
        word_end: Index one past the last word (exclusive)
    """
    index: int
    text: str
    word_start: int
    word_end: int

    @property
    def word_count(self) -> int:
        """Number of words in this chunk."""
        return self.word_end - self.word_start


@dataclass
class SimilarityResult:
    """
    Normalized output of every algorithm.

    This is the primary return type from compare(). The score is expected
    to fall in [0, 1] but is not clamped.

    Attributes:
        score: Similarity score
        algorithm_name: Human-readable algorithm name
        details: Diagnostic fields specific to the algorithm family
    """
    score: float
    algorithm_name: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape consumed by the HTTP layer."""
        return {
            "similarity": self.score,
            "algorithm": self.algorithm_name,
            "details": self.details,
        }


@dataclass(frozen=True)
class AlgorithmInfo:
    """
    Catalog entry for one algorithm.

    Only id, name and description are public; family, strategy and
    backend drive routing inside the dispatcher. result_name, when set,
    replaces name in comparison results.
    """
    id: str
    name: str
    description: str
    family: str = "lexical"
    strategy: Optional[str] = None
    backend: Optional[str] = None
    result_name: Optional[str] = None

    @property
    def reported_name(self) -> str:
        """Name carried in comparison results (may differ from the catalog name)."""
        return self.result_name or self.name

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "name": self.name, "description": self.description}


# =============================================================================
# Native engine results
# =============================================================================

@dataclass
class LexicalScore:
    """Result of a lexical algorithm, with tokenized document lengths."""
    score: float
    algorithm_id: str
    doc1_words: int
    doc2_words: int


@dataclass
class EmbeddingScore:
    """Mean pairwise cosine similarity over doc1 x doc2 chunk embeddings."""
    score: float
    method: str
    model_name: str
    doc1_chunks: int
    doc2_chunks: int
    total_comparisons: int
    chunk_size: int
    chunk_overlap: int
    embedding_dim: int


@dataclass
class RetrievalMatch:
    """Top-K doc1 chunks retrieved for one doc2 query chunk."""
    query_index: int
    matched_indices: List[int]
    scores: List[float]


@dataclass
class RetrievalScore:
    """Average of the top-K retrieval scores across all doc2 query chunks."""
    score: float
    method: str
    model_name: str
    doc1_chunks: int
    doc2_chunks: int
    top_k: int
    embedding_dim: int
    matches: List[RetrievalMatch] = field(default_factory=list)


@dataclass
class NarrativeScore:
    """Qualitative judgment of two documents, from an LLM or the policy table."""
    score: float
    method: str
    model_name: str
    reasoning: str
    key_similarities: List[str] = field(default_factory=list)
    key_differences: List[str] = field(default_factory=list)
    doc1_chunks: Optional[int] = None
    doc2_chunks: Optional[int] = None
    embedding_dim: Optional[int] = None


@dataclass
class CombinedScore:
    """Weighted sum of the embedding, retrieval and narrative scores."""
    score: float
    method: str
    model_name: str
    embedding: EmbeddingScore
    retrieval: RetrievalScore
    narrative: NarrativeScore
    weights: Dict[str, float]


# =============================================================================
# Narrative policy table
# =============================================================================

# Thresholds mapping a document-level cosine similarity to canned phrases.
# These are heuristics, not derived from evaluation data. A score must be
# strictly greater than the threshold to land in a band.
NARRATIVE_BANDS = (
    (
        0.8,
        "Documents are highly similar in content and meaning",
        ["High semantic overlap", "Similar topics", "Related concepts"],
        ["Minor variations in expression"],
    ),
    (
        0.6,
        "Documents have moderate similarity with some shared concepts",
        ["Some shared topics", "Partial conceptual overlap"],
        ["Different focus areas", "Varying depth of coverage"],
    ),
    (
        0.4,
        "Documents have low similarity with minimal shared content",
        ["Limited shared concepts"],
        ["Different topics", "Distinct content focus"],
    ),
)

NARRATIVE_FALLBACK = (
    "Documents are largely dissimilar with minimal overlap",
    ["Very limited shared content"],
    ["Different subject matter", "Unrelated topics"],
)


def interpret_similarity(score: float) -> tuple:
    """
    Map a similarity score to (reasoning, key_similarities, key_differences).

    Args:
        score: Cosine similarity between two document embeddings

    Returns:
        Tuple of reasoning string and two phrase lists (fresh copies)
    """
    for threshold, reasoning, similarities, differences in NARRATIVE_BANDS:
        if score > threshold:
            return reasoning, list(similarities), list(differences)
    reasoning, similarities, differences = NARRATIVE_FALLBACK
    return reasoning, list(similarities), list(differences)
