"""
Semantic similarity strategies built on an embedding provider.

Four strategies, all document-vs-document:
1. Embedding: mean cosine similarity over every doc1-chunk x doc2-chunk pair
2. Retrieval (RAG): doc1 chunks form an index; each doc2 chunk retrieves
   its top-K doc1 chunks; the retrieved scores are averaged
3. Narrative: a qualitative judgment, either from a chat model returning
   JSON or, without one, from a fixed policy table over the cosine
   similarity of the two mean document embeddings
4. Combined: the three above run concurrently, then 0.4 / 0.3 / 0.3

The engine depends only on the EmbeddingProvider interface. Chunks are
embedded once per strategy call; nothing is cached between calls.
"""

import asyncio
import json
import logging
import math
import re
from typing import List, Optional, Tuple

from docsim.core.chunker import DEFAULT_CHUNKING_CONFIG, ChunkingConfig, chunk_with_config
from docsim.core.embeddings import EmbeddingProvider
from docsim.core.llm import ChatCompletionClient
from docsim.core.models import (
    Chunk,
    CombinedScore,
    EmbeddingScore,
    NarrativeScore,
    RetrievalMatch,
    RetrievalScore,
    Vector,
    interpret_similarity,
)
from docsim.core.similarity import (
    cosine_similarity,
    mean_pairwise_similarity,
    mean_vector,
    top_k_similar,
)

logger = logging.getLogger(__name__)


DEFAULT_TOP_K = 3

COMBINED_WEIGHTS = {"embedding": 0.4, "rag": 0.3, "llm": 0.3}

# Each document is cut to this many characters before it is sent to the chat model.
NARRATIVE_CHAR_BUDGET = 2000

# Score used when the chat model's answer cannot be parsed.
NEUTRAL_NARRATIVE_SCORE = 0.5

NARRATIVE_PROMPT = """Analyze the semantic similarity between these two documents and provide a similarity score between 0 and 1.

Document 1:
{doc1}

Document 2:
{doc2}

Consider the following aspects:
1. Topic similarity
2. Conceptual overlap
3. Semantic meaning
4. Contextual relevance

Provide your response in this exact JSON format:
{{
  "similarity_score": <number between 0 and 1>,
  "reasoning": "<brief explanation of your assessment>",
  "key_similarities": ["<list of main similarities>"],
  "key_differences": ["<list of main differences>"]
}}

Only return the JSON, no additional text."""

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def build_narrative_prompt(doc1: str, doc2: str) -> str:
    """Fill the prompt template with both documents cut to the character budget."""
    return NARRATIVE_PROMPT.format(
        doc1=doc1[:NARRATIVE_CHAR_BUDGET],
        doc2=doc2[:NARRATIVE_CHAR_BUDGET],
    )


def parse_narrative_response(text: str) -> Tuple[float, str, List[str], List[str]]:
    """
    Parse the chat model's JSON judgment.

    Returns:
        (similarity_score, reasoning, key_similarities, key_differences)

    Raises:
        ValueError: If the text is not a JSON object with a finite numeric
            similarity_score
    """
    cleaned = _CODE_FENCE.sub("", text.strip())
    data = json.loads(cleaned)
    if not isinstance(data, dict):
        raise ValueError("Narrative response is not a JSON object")
    if "similarity_score" not in data:
        raise ValueError("Narrative response has no similarity_score")

    raw_score = data["similarity_score"]
    if isinstance(raw_score, bool) or not isinstance(raw_score, (int, float)):
        raise ValueError(f"similarity_score is not a number: {raw_score!r}")
    try:
        score = float(raw_score)
    except OverflowError as e:
        raise ValueError("similarity_score is too large") from e
    if not math.isfinite(score):
        raise ValueError(f"similarity_score is not finite: {score!r}")

    similarities = data.get("key_similarities") or []
    differences = data.get("key_differences") or []
    return (
        score,
        str(data.get("reasoning", "")),
        [str(s) for s in similarities] if isinstance(similarities, list) else [str(similarities)],
        [str(d) for d in differences] if isinstance(differences, list) else [str(differences)],
    )


class SemanticEngine:
    """
    Semantic comparison over one embedding provider.

    Args:
        provider: Any EmbeddingProvider
        chat_client: Chat model for narrative scoring; None selects the
            local policy-table narrative
        config: Chunk window size and overlap
        top_k: Doc1 chunks retrieved per doc2 chunk in retrieval mode
        label: Prefix for the method names reported in details
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        chat_client: Optional[ChatCompletionClient] = None,
        config: ChunkingConfig = DEFAULT_CHUNKING_CONFIG,
        top_k: int = DEFAULT_TOP_K,
        label: str = "Semantic",
    ):
        if top_k < 1:
            raise ValueError(f"top_k must be at least 1, got {top_k}")
        self.provider = provider
        self.chat_client = chat_client
        self.config = config
        self.top_k = top_k
        self.label = label

    @property
    def model_name(self) -> str:
        return self.provider.model_name

    async def _embed_document(self, document: str) -> Tuple[List[Chunk], List[Vector]]:
        chunks = chunk_with_config(document, self.config)
        if not chunks:
            return chunks, []
        vectors = await self.provider.embed_documents([c.text for c in chunks])
        return chunks, vectors

    async def _embed_pair(self, doc1: str, doc2: str):
        (chunks1, vectors1), (chunks2, vectors2) = await asyncio.gather(
            self._embed_document(doc1),
            self._embed_document(doc2),
        )
        logger.info(
            f"{self.label}: {len(chunks1)} chunks for doc1, {len(chunks2)} chunks for doc2 "
            f"(model {self.model_name})"
        )
        return chunks1, vectors1, chunks2, vectors2

    async def embedding_similarity(self, doc1: str, doc2: str) -> EmbeddingScore:
        """Mean pairwise cosine similarity across all chunk pairs."""
        chunks1, vectors1, chunks2, vectors2 = await self._embed_pair(doc1, doc2)
        score, pairs = mean_pairwise_similarity(vectors1, vectors2)

        return EmbeddingScore(
            score=score,
            method=f"{self.label} Embeddings",
            model_name=self.model_name,
            doc1_chunks=len(chunks1),
            doc2_chunks=len(chunks2),
            total_comparisons=pairs,
            chunk_size=self.config.size,
            chunk_overlap=self.config.overlap,
            embedding_dim=len(vectors1[0]) if vectors1 else 0,
        )

    async def retrieval_similarity(self, doc1: str, doc2: str) -> RetrievalScore:
        """
        Average top-K retrieval score of doc2 chunks against a doc1 index.

        Asymmetric: doc2 queries doc1.
        """
        chunks1, vectors1, chunks2, vectors2 = await self._embed_pair(doc1, doc2)

        matches: List[RetrievalMatch] = []
        for chunk, query_vec in zip(chunks2, vectors2):
            hits = top_k_similar(query_vec, vectors1, self.top_k)
            matches.append(RetrievalMatch(
                query_index=chunk.index,
                matched_indices=[i for i, _ in hits],
                scores=[s for _, s in hits],
            ))

        scores = [s for match in matches for s in match.scores]
        average = sum(scores) / len(scores) if scores else 0.0

        return RetrievalScore(
            score=average,
            method=f"{self.label} RAG",
            model_name=self.model_name,
            doc1_chunks=len(chunks1),
            doc2_chunks=len(chunks2),
            top_k=self.top_k,
            embedding_dim=len(vectors1[0]) if vectors1 else 0,
            matches=matches,
        )

    async def narrative_similarity(self, doc1: str, doc2: str) -> NarrativeScore:
        """Qualitative judgment from the chat model, or from the policy table."""
        if self.chat_client is not None:
            return await self._llm_narrative(doc1, doc2)
        return await self._embedding_narrative(doc1, doc2)

    async def _llm_narrative(self, doc1: str, doc2: str) -> NarrativeScore:
        response = await self.chat_client.complete(build_narrative_prompt(doc1, doc2))
        try:
            score, reasoning, similarities, differences = parse_narrative_response(response)
        except ValueError as e:
            logger.warning(f"Could not parse LLM narrative response ({e}); using neutral score")
            return NarrativeScore(
                score=NEUTRAL_NARRATIVE_SCORE,
                method="LLM Analysis (Error)",
                model_name=self.chat_client.model_name,
                reasoning="Error parsing LLM response",
            )

        return NarrativeScore(
            score=score,
            method="LLM Analysis",
            model_name=self.chat_client.model_name,
            reasoning=reasoning,
            key_similarities=similarities,
            key_differences=differences,
        )

    async def _embedding_narrative(self, doc1: str, doc2: str) -> NarrativeScore:
        chunks1, vectors1, chunks2, vectors2 = await self._embed_pair(doc1, doc2)

        if vectors1 and vectors2:
            doc1_vec = mean_vector(vectors1)
            similarity = cosine_similarity(doc1_vec, mean_vector(vectors2))
            dim = len(doc1_vec)
        else:
            similarity, dim = 0.0, 0

        reasoning, similarities, differences = interpret_similarity(similarity)
        return NarrativeScore(
            score=similarity,
            method=f"{self.label} LLM-like Analysis",
            model_name=self.model_name,
            reasoning=reasoning,
            key_similarities=similarities,
            key_differences=differences,
            doc1_chunks=len(chunks1),
            doc2_chunks=len(chunks2),
            embedding_dim=dim,
        )

    async def combined_similarity(self, doc1: str, doc2: str) -> CombinedScore:
        """
        Weighted sum of embedding, retrieval and narrative scores.

        The three strategies run concurrently; if any of them fails the
        combined call fails.
        """
        embedding, retrieval, narrative = await asyncio.gather(
            self.embedding_similarity(doc1, doc2),
            self.retrieval_similarity(doc1, doc2),
            self.narrative_similarity(doc1, doc2),
        )

        weights = dict(COMBINED_WEIGHTS)
        score = (
            weights["embedding"] * embedding.score
            + weights["rag"] * retrieval.score
            + weights["llm"] * narrative.score
        )

        return CombinedScore(
            score=score,
            method=f"{self.label} Combined Analysis",
            model_name=self.model_name,
            embedding=embedding,
            retrieval=retrieval,
            narrative=narrative,
            weights=weights,
        )
