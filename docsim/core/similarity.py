"""
Cosine similarity calculations over embedding vectors.

Mathematical Background:
Cosine similarity measures the angle between two vectors:
    cos(theta) = (A . B) / (||A|| * ||B||)

Unlike a retrieval index, document comparison must never fail on a
degenerate vector: a zero-magnitude vector (for example the zero vector
substituted for a chunk the local model could not embed) scores 0.0
against everything.
"""

from typing import List, Sequence, Tuple
import numpy as np

from docsim.core.models import Vector


def cosine_similarity(vec_a: Vector, vec_b: Vector) -> float:
    """
    Compute cosine similarity between two vectors.

    Args:
        vec_a: First embedding vector
        vec_b: Second embedding vector

    Returns:
        Cosine similarity score (-1.0 to 1.0); 0.0 if either vector is
        zero-magnitude or empty

    Raises:
        ValueError: If vectors have different dimensions
    """
    vec_a = np.asarray(vec_a, dtype=np.float32)
    vec_b = np.asarray(vec_b, dtype=np.float32)

    if vec_a.shape != vec_b.shape:
        raise ValueError(
            f"Vector dimension mismatch: {vec_a.shape} vs {vec_b.shape}"
        )

    norm_a = np.linalg.norm(vec_a)
    norm_b = np.linalg.norm(vec_b)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    similarity = np.dot(vec_a, vec_b) / (norm_a * norm_b)

    # Clamp to [-1, 1] to handle floating point errors
    return float(np.clip(similarity, -1.0, 1.0))


def _unit_rows(vectors: Sequence[Vector]) -> np.ndarray:
    """Stack vectors into a matrix with L2-normalized rows (zero rows stay zero)."""
    matrix = np.vstack([np.asarray(v, dtype=np.float32) for v in vectors])
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    safe = np.where(norms == 0, 1.0, norms)
    return matrix / safe


def similarity_matrix(
    vectors_a: Sequence[Vector],
    vectors_b: Sequence[Vector],
) -> np.ndarray:
    """
    Pairwise cosine similarities between two lists of vectors.

    Args:
        vectors_a: Row vectors (e.g. doc1 chunk embeddings)
        vectors_b: Column vectors (e.g. doc2 chunk embeddings)

    Returns:
        Matrix of shape (len(vectors_a), len(vectors_b)); empty if either
        list is empty

    Raises:
        ValueError: If the two lists have different vector dimensions
    """
    if len(vectors_a) == 0 or len(vectors_b) == 0:
        return np.zeros((len(vectors_a), len(vectors_b)), dtype=np.float32)

    left = _unit_rows(vectors_a)
    right = _unit_rows(vectors_b)
    if left.shape[1] != right.shape[1]:
        raise ValueError(
            f"Vector dimension mismatch: {left.shape[1]} vs {right.shape[1]}"
        )
    return np.clip(left @ right.T, -1.0, 1.0)


def mean_pairwise_similarity(
    vectors_a: Sequence[Vector],
    vectors_b: Sequence[Vector],
) -> Tuple[float, int]:
    """
    Mean cosine similarity over the full cross product of two vector lists.

    Returns:
        Tuple of (mean similarity, number of pairs); (0.0, 0) with no pairs
    """
    matrix = similarity_matrix(vectors_a, vectors_b)
    if matrix.size == 0:
        return 0.0, 0
    return float(matrix.mean()), int(matrix.size)


def mean_vector(vectors: Sequence[Vector]) -> Vector:
    """
    Element-wise average of a list of vectors.

    Returns:
        Mean vector, or an empty vector if the list is empty
    """
    if len(vectors) == 0:
        return np.zeros(0, dtype=np.float32)
    matrix = np.vstack([np.asarray(v, dtype=np.float32) for v in vectors])
    return matrix.mean(axis=0).astype(np.float32)


def top_k_similar(
    query_vec: Vector,
    index_vecs: Sequence[Vector],
    k: int,
) -> List[Tuple[int, float]]:
    """
    Find the k index vectors most similar to a query vector.

    Args:
        query_vec: Query embedding
        index_vecs: Searchable embeddings
        k: Maximum number of results

    Returns:
        (index, similarity) pairs sorted by similarity descending; ties keep
        index order
    """
    if k < 1 or len(index_vecs) == 0:
        return []
    scores = similarity_matrix([query_vec], index_vecs)[0]
    order = np.argsort(-scores, kind="stable")[:k]
    return [(int(i), float(scores[i])) for i in order]
