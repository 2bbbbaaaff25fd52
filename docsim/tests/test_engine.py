"""Tests for the comparison dispatcher.

Semantic routes run against injected fake providers and chat clients, so
no network or model download is needed.
"""

import pytest

from docsim.config import Settings
from docsim.core.embeddings import EmbeddingError
from docsim.core.engine import (
    ALGORITHMS,
    ComparisonError,
    SimilarityService,
    compare,
    compare_lexical,
    list_algorithms,
    normalize_result,
    resolve_algorithm,
)
from docsim.core.llm import ChatCompletionError
from docsim.core.models import SimilarityResult


DOC_A = "The cat sat on the mat while the dog slept by the door all afternoon long"
DOC_B = "The cat sat on the rug while the dog barked at the door all morning long"

EXPECTED_IDS = [
    "jaccard",
    "cosine",
    "ngram",
    "semantic",
    "semantic-embedding",
    "semantic-rag",
    "semantic-llm",
    "semantic-hf",
    "semantic-bedrock",
    "semantic-local",
    "semantic-local-embedding",
    "semantic-local-rag",
    "semantic-local-llm",
    "semantic-local-combined",
]

EMBEDDING_KEYS = {
    "method", "model", "doc1Chunks", "doc2Chunks", "totalComparisons",
    "chunkSize", "chunkOverlap", "embeddingSize",
}


@pytest.fixture
def service(small_settings, fake_provider, valid_chat):
    providers = {name: fake_provider for name in ("local", "openai", "huggingface", "bedrock")}
    return SimilarityService(settings=small_settings, providers=providers, chat_client=valid_chat)


class TestListAlgorithms:
    """Tests for the algorithm catalog."""

    def test_catalog_order(self):
        """All fourteen ids in display order."""
        assert [a["id"] for a in list_algorithms()] == EXPECTED_IDS

    def test_public_fields_only(self):
        """Entries expose id, name and description."""
        for entry in list_algorithms():
            assert set(entry) == {"id", "name", "description"}

    def test_names(self):
        """Display names for the lexical family."""
        names = {a["id"]: a["name"] for a in list_algorithms()}
        assert names["jaccard"] == "Jaccard Similarity"
        assert names["cosine"] == "Cosine Similarity (TF-IDF)"
        assert names["ngram"] == "N-gram Similarity"

    def test_semantic_entries_routed(self):
        """Every semantic entry has a strategy and backend."""
        for info in ALGORITHMS:
            if info.id.startswith("semantic"):
                assert info.family == "semantic"
                assert info.strategy in {"embedding", "retrieval", "narrative", "combined"}
                assert info.backend in {"openai", "huggingface", "bedrock", "local"}


class TestResolveAlgorithm:
    """Tests for identifier routing."""

    @pytest.mark.parametrize("raw,expected", [
        ("jaccard", "jaccard"),
        ("NGRAM", "ngram"),
        (" cosine ", "cosine"),
        ("Semantic-Local", "semantic-local"),
        ("semantic-local-combined", "semantic-local-combined"),
    ])
    def test_known_ids(self, raw, expected):
        """Known ids match case-insensitively."""
        assert resolve_algorithm(raw).id == expected

    @pytest.mark.parametrize("raw", ["levenshtein", "", None, "sem"])
    def test_unknown_lexical_defaults_to_jaccard(self, raw):
        """Anything not starting with 'semantic' runs Jaccard."""
        assert resolve_algorithm(raw).id == "jaccard"

    @pytest.mark.parametrize("raw", ["semantic-xyz", "SEMANTIC-gpt4", "semanticish"])
    def test_unknown_semantic_defaults_to_combined(self, raw):
        """Unknown semantic ids run the default combined comparison."""
        assert resolve_algorithm(raw).id == "semantic"

    @pytest.mark.parametrize("algorithm_id,strategy,backend", [
        ("semantic", "combined", "openai"),
        ("semantic-rag", "retrieval", "openai"),
        ("semantic-hf", "embedding", "huggingface"),
        ("semantic-bedrock", "embedding", "bedrock"),
        ("semantic-local", "embedding", "local"),
        ("semantic-local-llm", "narrative", "local"),
    ])
    def test_routing_table(self, algorithm_id, strategy, backend):
        """Ids map to their strategy and backend."""
        info = resolve_algorithm(algorithm_id)
        assert (info.strategy, info.backend) == (strategy, backend)


class TestCompareLexical:
    """Tests for the synchronous lexical path."""

    def test_details(self):
        """Lexical details carry tokenized word counts."""
        result = compare_lexical("Hello, world!", "the cat sat", "jaccard")
        assert result.details == {"doc1Words": 2, "doc2Words": 3}
        assert result.algorithm_name == "Jaccard Similarity"

    def test_unknown_id_reports_jaccard(self):
        """Fallback is visible in the algorithm name."""
        result = compare_lexical(DOC_A, DOC_B, "levenshtein")
        assert result.algorithm_name == "Jaccard Similarity"

    def test_semantic_id_falls_back(self):
        """The synchronous path never runs a semantic algorithm."""
        assert compare_lexical(DOC_A, DOC_B, "semantic-local").algorithm_name == "Jaccard Similarity"

    def test_identical_documents(self):
        """Identical documents score 1."""
        assert compare_lexical(DOC_A, DOC_A, "ngram").score == 1.0

    def test_wire_shape(self):
        """to_dict gives similarity, algorithm and details."""
        wire = compare_lexical(DOC_A, DOC_B, "cosine").to_dict()
        assert set(wire) == {"similarity", "algorithm", "details"}
        assert wire["algorithm"] == "Cosine Similarity (TF-IDF)"


class TestSimilarityServiceLexical:
    """Lexical requests through the async service."""

    @pytest.mark.asyncio
    async def test_no_providers_built(self, small_settings):
        """Lexical comparisons never create a provider."""
        service = SimilarityService(settings=small_settings)
        result = await service.compare(DOC_A, DOC_B, "cosine")
        assert result.algorithm_name == "Cosine Similarity (TF-IDF)"
        assert service._providers == {}

    @pytest.mark.asyncio
    async def test_matches_sync_path(self, service):
        """Async and sync lexical results agree."""
        result = await service.compare(DOC_A, DOC_B, "ngram")
        assert result == compare_lexical(DOC_A, DOC_B, "ngram")


class TestSimilarityServiceSemantic:
    """Semantic requests routed through the service."""

    @pytest.mark.asyncio
    async def test_local_embedding(self, service):
        """semantic-local returns embedding details."""
        result = await service.compare(DOC_A, DOC_B, "semantic-local")
        assert result.algorithm_name == "Semantic Similarity (Local)"
        assert set(result.details) == EMBEDDING_KEYS
        assert result.details["method"] == "Local Embeddings"
        assert result.details["model"] == "fake-embedder"
        assert result.details["chunkSize"] == 10
        assert result.details["doc1Chunks"] == 2
        assert result.details["totalComparisons"] == 4

    @pytest.mark.asyncio
    async def test_hosted_embedding_label(self, service):
        """Backend label prefixes the method."""
        result = await service.compare(DOC_A, DOC_B, "semantic-hf")
        assert result.details["method"] == "Hugging Face Embeddings"

    @pytest.mark.asyncio
    async def test_bedrock_embedding_label(self, service):
        """Bedrock route reports its label."""
        result = await service.compare(DOC_A, DOC_B, "semantic-bedrock")
        assert result.algorithm_name == "Semantic Similarity (Amazon Bedrock)"
        assert result.details["method"] == "Amazon Bedrock Embeddings"

    @pytest.mark.asyncio
    async def test_local_retrieval(self, service):
        """semantic-local-rag returns per-query retrieval results."""
        result = await service.compare(DOC_A, DOC_B, "semantic-local-rag")
        details = result.details
        assert details["method"] == "Local RAG"
        assert details["topK"] == 3
        assert details["retrievedResults"] == details["doc2Chunks"]
        assert details["averageRetrievalScore"] == result.score
        first = details["retrievalResults"][0]
        assert set(first) == {"queryChunk", "matchedChunks", "scores"}

    @pytest.mark.asyncio
    async def test_local_narrative(self, service):
        """semantic-local-llm uses the policy table, not the chat model."""
        result = await service.compare(DOC_A, DOC_B, "semantic-local-llm")
        assert result.details["method"] == "Local LLM-like Analysis"
        assert "doc1Chunks" in result.details
        assert isinstance(result.details["keySimilarities"], list)

    @pytest.mark.asyncio
    async def test_openai_narrative(self, service, valid_chat):
        """semantic-llm asks the chat model."""
        result = await service.compare(DOC_A, DOC_B, "semantic-llm")
        assert result.score == pytest.approx(0.72)
        assert result.details["method"] == "LLM Analysis"
        assert result.details["reasoning"] == "Both discuss cats"
        assert "doc1Chunks" not in result.details
        assert len(valid_chat.prompts) == 1

    @pytest.mark.asyncio
    async def test_local_combined(self, service, valid_chat):
        """semantic-local-combined nests all three strategies."""
        result = await service.compare(DOC_A, DOC_B, "semantic-local-combined")
        details = result.details
        assert result.algorithm_name == "Local Semantic Similarity (Embeddings + RAG + LLM-like)"
        assert details["method"] == "Local Combined Analysis"
        assert details["weights"] == {"embedding": 0.4, "rag": 0.3, "llm": 0.3}
        assert result.score == pytest.approx(
            0.4 * details["embeddingScore"] + 0.3 * details["ragScore"] + 0.3 * details["llmScore"]
        )
        assert details["llmDetails"]["method"] == "Local LLM-like Analysis"
        assert set(details["embeddingDetails"]) == EMBEDDING_KEYS
        assert valid_chat.prompts == []

    @pytest.mark.asyncio
    async def test_default_semantic_combined(self, service):
        """semantic runs the OpenAI-backed combination with the chat model."""
        result = await service.compare(DOC_A, DOC_B, "semantic")
        assert result.algorithm_name == "Semantic Similarity (Embeddings + FAISS + LLM)"
        assert result.details["llmScore"] == pytest.approx(0.72)
        assert result.details["method"] == "OpenAI Combined Analysis"

    @pytest.mark.asyncio
    async def test_unknown_semantic_id(self, service):
        """Unknown semantic ids run the default combination."""
        result = await service.compare(DOC_A, DOC_B, "semantic-unknown")
        assert result.algorithm_name == "Semantic Similarity (Embeddings + FAISS + LLM)"

    @pytest.mark.asyncio
    async def test_identical_short_documents(self, service):
        """A one-chunk document compared with itself scores ~1."""
        result = await service.compare("the cat sat", "the cat sat", "semantic-local")
        assert result.score == pytest.approx(1.0, abs=1e-5)


class TestSimilarityServiceErrors:
    """Failures surface as ComparisonError."""

    @pytest.mark.asyncio
    async def test_provider_failure(self, small_settings, failing_provider):
        """Embedding failures are wrapped and chained."""
        service = SimilarityService(settings=small_settings, providers={"local": failing_provider})
        with pytest.raises(ComparisonError, match="Semantic Similarity \\(Local\\) failed") as exc_info:
            await service.compare(DOC_A, DOC_B, "semantic-local")
        assert isinstance(exc_info.value.__cause__, EmbeddingError)

    @pytest.mark.asyncio
    async def test_chat_failure(self, small_settings, fake_provider, broken_chat):
        """Chat transport failures are wrapped."""
        service = SimilarityService(
            settings=small_settings,
            providers={"openai": fake_provider},
            chat_client=broken_chat,
        )
        with pytest.raises(ComparisonError) as exc_info:
            await service.compare(DOC_A, DOC_B, "semantic-llm")
        assert isinstance(exc_info.value.__cause__, ChatCompletionError)

    @pytest.mark.asyncio
    async def test_combined_fails_if_one_strategy_fails(self, small_settings, fake_provider, broken_chat):
        """The combination has no partial result."""
        service = SimilarityService(
            settings=small_settings,
            providers={"openai": fake_provider},
            chat_client=broken_chat,
        )
        with pytest.raises(ComparisonError):
            await service.compare(DOC_A, DOC_B, "semantic")

    @pytest.mark.asyncio
    async def test_invalid_chunk_settings(self, fake_provider):
        """Overlap not smaller than size is a configuration error."""
        settings = Settings(chunk_size=10, chunk_overlap=10)
        service = SimilarityService(settings=settings, providers={"local": fake_provider})
        with pytest.raises(ComparisonError, match="chunking"):
            await service.compare(DOC_A, DOC_B, "semantic-local")

    @pytest.mark.asyncio
    async def test_missing_credentials(self, small_settings):
        """A remote backend without a key fails cleanly."""
        settings = small_settings.model_copy(update={"huggingface_api_key": None})
        service = SimilarityService(settings=settings)
        with pytest.raises(ComparisonError, match="not configured"):
            await service.compare(DOC_A, DOC_B, "semantic-hf")


    @pytest.mark.asyncio
    async def test_invalid_top_k_setting(self, fake_provider):
        """A non-positive retrieval depth is a configuration error."""
        settings = Settings(chunk_size=10, chunk_overlap=2, rag_top_k=0)
        service = SimilarityService(settings=settings, providers={"local": fake_provider})
        with pytest.raises(ComparisonError, match="retrieval configuration"):
            await service.compare(DOC_A, DOC_B, "semantic-local-rag")


class TestNormalizeResult:
    """Tests for result normalization."""

    def test_unknown_type(self):
        """Foreign result types are rejected."""
        with pytest.raises(TypeError):
            normalize_result(object(), resolve_algorithm("jaccard"))


class TestModuleCompare:
    """Tests for the module-level convenience function."""

    @pytest.mark.asyncio
    async def test_lexical(self):
        """compare() runs through the default service."""
        result = await compare(DOC_A, DOC_A, "jaccard")
        assert isinstance(result, SimilarityResult)
        assert result.score == 1.0
