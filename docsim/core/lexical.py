"""
Lexical similarity algorithms.

Three stateless scoring functions over raw document text:
- Jaccard: overlap of the two token sets
- Cosine (TF-IDF): angle between term-weight vectors
- N-gram: Jaccard overlap of contiguous n-token phrases

IDF Variant:
The cosine score uses a two-document IDF,
    idf = ln(2 / (df + 1)) + 1
where df is 1 or 2 depending on whether the term occurs in one or both
documents. It is not a general corpus IDF; it is kept exactly as is so
that scores stay comparable with earlier results.

Degenerate inputs (no tokens, fewer tokens than n) score 0.
"""

import math
from collections import Counter
from typing import Dict, List, Set

from docsim.core.models import LexicalScore
from docsim.core.tokenizer import tokenize


DEFAULT_NGRAM_SIZE = 3


def _jaccard_index(set_a: Set, set_b: Set) -> float:
    union = set_a | set_b
    if not union:
        return 0.0
    return len(set_a & set_b) / len(union)


def jaccard_similarity(text_a: str, text_b: str) -> float:
    """
    Jaccard index of the two documents' token sets.

    Args:
        text_a: First document
        text_b: Second document

    Returns:
        |intersection| / |union|, or 0.0 if both documents have no tokens
    """
    return _jaccard_index(set(tokenize(text_a)), set(tokenize(text_b)))


def _term_frequencies(tokens: List[str]) -> Dict[str, float]:
    if not tokens:
        return {}
    total = len(tokens)
    return {term: count / total for term, count in Counter(tokens).items()}


def cosine_similarity_tfidf(text_a: str, text_b: str) -> float:
    """
    Cosine similarity of two-document TF-IDF vectors.

    Term frequency is count / document token count. The vocabulary is the
    union of both documents' terms, doc1 terms first in order of first
    appearance.

    Args:
        text_a: First document
        text_b: Second document

    Returns:
        Cosine similarity in [0, 1]; 0.0 if either vector has zero magnitude
    """
    tf_a = _term_frequencies(tokenize(text_a))
    tf_b = _term_frequencies(tokenize(text_b))

    # dicts keep insertion order, so this is deterministic
    vocabulary = list(dict.fromkeys([*tf_a, *tf_b]))

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for term in vocabulary:
        doc_freq = (term in tf_a) + (term in tf_b)
        idf = math.log(2 / (doc_freq + 1)) + 1
        weight_a = tf_a.get(term, 0.0) * idf
        weight_b = tf_b.get(term, 0.0) * idf
        dot += weight_a * weight_b
        norm_a += weight_a * weight_a
        norm_b += weight_b * weight_b

    if norm_a == 0 or norm_b == 0:
        return 0.0
    # sqrt(x * x) == x, so identical documents give exactly 1.0
    return min(1.0, dot / math.sqrt(norm_a * norm_b))


def build_ngrams(tokens: List[str], n: int = DEFAULT_NGRAM_SIZE) -> Set[str]:
    """Set of space-joined contiguous n-token phrases (empty if len < n)."""
    if n < 1:
        raise ValueError(f"n-gram size must be positive, got {n}")
    return {" ".join(tokens[i:i + n]) for i in range(len(tokens) - n + 1)}


def ngram_similarity(text_a: str, text_b: str, n: int = DEFAULT_NGRAM_SIZE) -> float:
    """
    Jaccard index over the two documents' n-gram sets.

    Args:
        text_a: First document
        text_b: Second document
        n: Phrase length in tokens (default 3)

    Returns:
        Jaccard index of the n-gram sets; 0.0 if both sets are empty
    """
    return _jaccard_index(
        build_ngrams(tokenize(text_a), n),
        build_ngrams(tokenize(text_b), n),
    )


_SCORERS = {
    "jaccard": jaccard_similarity,
    "cosine": cosine_similarity_tfidf,
    "ngram": ngram_similarity,
}


def score_lexical(text_a: str, text_b: str, algorithm_id: str = "jaccard") -> LexicalScore:
    """
    Run one lexical algorithm and record the documents' token counts.

    Unrecognized identifiers fall back to Jaccard.

    Args:
        text_a: First document
        text_b: Second document
        algorithm_id: "jaccard", "cosine" or "ngram" (case-insensitive)

    Returns:
        LexicalScore with the resolved algorithm id
    """
    resolved = (algorithm_id or "").lower()
    if resolved not in _SCORERS:
        resolved = "jaccard"

    return LexicalScore(
        score=_SCORERS[resolved](text_a, text_b),
        algorithm_id=resolved,
        doc1_words=len(tokenize(text_a)),
        doc2_words=len(tokenize(text_b)),
    )
