"""
Embedding providers.

Every backend implements the same small capability, "given text, return a
fixed-length vector", so the semantic engine never depends on a concrete
provider:

- LocalEmbeddingProvider: sentence-transformers model loaded in-process
- HostedInferenceProvider: Hugging Face Inference API (bearer token)
- BedrockEmbeddingProvider: Amazon Bedrock embedding models via boto3
- OpenAIEmbeddingProvider: OpenAI-compatible /embeddings endpoint

Model Selection:
The local default (all-MiniLM-L6-v2) is small and fast:
- 384-dimensional embeddings
- ~90MB download on first use
- Good enough for document-level comparison

Blocking work (model inference, HTTP, boto3) runs in a worker thread so
the event loop is free while a provider call is in flight. Providers do
not retry; a failed call raises EmbeddingError. The one exception is the
local backend's batch path, which substitutes a zero vector for a single
chunk that fails to embed so one bad chunk does not abort a comparison.
"""

import asyncio
import json
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence

import boto3
import numpy as np
import requests
from botocore.exceptions import BotoCoreError, ClientError
from sentence_transformers import SentenceTransformer

from docsim.config import Settings
from docsim.core.models import Vector

logger = logging.getLogger(__name__)


DEFAULT_LOCAL_MODEL = "sentence-transformers/all-MiniLM-L6-v2"
DEFAULT_HF_MODEL_URL = (
    "https://api-inference.huggingface.co/models/sentence-transformers/all-MiniLM-L6-v2"
)
DEFAULT_BEDROCK_MODEL = "amazon.titan-embed-text-v1"
DEFAULT_OPENAI_EMBEDDING_MODEL = "text-embedding-ada-002"
DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"

# Local input ceiling: first 256 words, then first 1000 characters of those.
MAX_LOCAL_INPUT_WORDS = 256
MAX_LOCAL_INPUT_CHARS = 1000

# MiniLM-L6-v2 dimensionality, used when the model cannot report its own.
FALLBACK_EMBEDDING_DIM = 384


class EmbeddingError(Exception):
    """Raised when embedding generation fails."""
    pass


def _as_vector(raw: Any) -> Vector:
    """
    Convert a provider payload into a single float32 vector.

    Multi-row outputs (one row per token) are column-averaged until one
    row remains.
    """
    try:
        array = np.asarray(raw, dtype=np.float32)
    except (TypeError, ValueError) as e:
        raise EmbeddingError(f"Embedding payload is not numeric: {e}") from e

    if array.ndim == 0 or array.size == 0:
        raise EmbeddingError("Empty embedding returned from model")

    while array.ndim > 1:
        array = array.mean(axis=0)
    return array.astype(np.float32)


class EmbeddingProvider(ABC):
    """Capability interface: text in, fixed-length vector out."""

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Identifier of the underlying embedding model."""

    @abstractmethod
    async def embed(self, text: str) -> Vector:
        """
        Embed a single text.

        Raises:
            EmbeddingError: If the backend fails or returns a malformed payload
        """

    async def embed_documents(self, texts: Sequence[str]) -> List[Vector]:
        """
        Embed several texts, same order as input.

        The default issues one embed() call per text. Backends with a batch
        endpoint override this.
        """
        return [await self.embed(text) for text in texts]


# =============================================================================
# Local sentence-transformers backend
# =============================================================================

class SharedModelCache:
    """
    Process-wide holder of loaded sentence-transformer models.

    A model is loaded on first use and reused read-only afterwards. Loading
    is guarded by a lock so concurrent first requests load it once.
    """

    def __init__(self, loader: Callable[[str], Any] = SentenceTransformer):
        self._loader = loader
        self._models: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def get(self, model_name: str) -> Any:
        """
        Return the loaded model, loading it if needed.

        Raises:
            EmbeddingError: If the model cannot be loaded
        """
        model = self._models.get(model_name)
        if model is not None:
            return model

        with self._lock:
            model = self._models.get(model_name)
            if model is None:
                logger.info(f"Loading local embedding model '{model_name}'")
                try:
                    model = self._loader(model_name)
                except Exception as e:
                    raise EmbeddingError(f"Failed to load model '{model_name}': {e}") from e
                self._models[model_name] = model
                logger.info(f"Local embedding model '{model_name}' loaded")
        return model

    def is_loaded(self, model_name: str) -> bool:
        return model_name in self._models

    def clear(self) -> None:
        with self._lock:
            self._models.clear()


# Module-level cache shared by every LocalEmbeddingProvider
_model_cache = SharedModelCache()


def clear_model_cache() -> None:
    """
    Clear the model cache to free memory.

    Call this if you need to release GPU/CPU memory used by loaded models.
    """
    _model_cache.clear()


def truncate_for_local_model(text: str) -> str:
    """Keep the first 256 words, then the first 1000 characters of those."""
    words = text.split()[:MAX_LOCAL_INPUT_WORDS]
    return " ".join(words)[:MAX_LOCAL_INPUT_CHARS]


class LocalEmbeddingProvider(EmbeddingProvider):
    """
    In-process sentence-transformers backend.

    No API calls and no cost. Inputs are truncated before encoding, so a
    chunk is represented by its opening words only.
    """

    def __init__(
        self,
        model_name: str = DEFAULT_LOCAL_MODEL,
        cache: Optional[SharedModelCache] = None,
    ):
        self._model_name = model_name
        self._cache = cache or _model_cache

    @property
    def model_name(self) -> str:
        return self._model_name

    def _dimension(self, model: Any) -> int:
        getter = getattr(model, "get_sentence_embedding_dimension", None)
        dim = getter() if getter else None
        return int(dim) if dim else FALLBACK_EMBEDDING_DIM

    def _encode(self, text: str) -> Vector:
        if not text or not text.strip():
            raise EmbeddingError("Cannot embed empty text")

        model = self._cache.get(self._model_name)
        try:
            output = model.encode(
                truncate_for_local_model(text),
                convert_to_numpy=True,
                normalize_embeddings=True,  # L2 normalize for cosine similarity
                show_progress_bar=False,
            )
        except Exception as e:
            raise EmbeddingError(f"Failed to generate embedding: {e}") from e
        return _as_vector(output)

    def _encode_all(self, texts: List[str]) -> List[Vector]:
        # Load failures are not per-chunk failures; let them propagate
        model = self._cache.get(self._model_name)
        dim = self._dimension(model)

        vectors: List[Vector] = []
        for i, text in enumerate(texts):
            try:
                vectors.append(self._encode(text))
            except EmbeddingError as e:
                logger.warning(
                    f"Chunk {i} could not be embedded ({e}); "
                    f"substituting a zero vector of size {dim}"
                )
                vectors.append(np.zeros(dim, dtype=np.float32))
        return vectors

    async def embed(self, text: str) -> Vector:
        return await asyncio.to_thread(self._encode, text)

    async def embed_documents(self, texts: Sequence[str]) -> List[Vector]:
        return await asyncio.to_thread(self._encode_all, list(texts))


# =============================================================================
# Remote backends
# =============================================================================

class HostedInferenceProvider(EmbeddingProvider):
    """
    Hugging Face Inference API backend.

    One HTTP call per text. The free tier is rate limited, so long
    documents (many chunks) are slow on this backend.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model_url: str = DEFAULT_HF_MODEL_URL,
        timeout: float = 60.0,
        session: Optional[requests.Session] = None,
    ):
        self._api_key = api_key
        self._model_url = model_url
        self._timeout = timeout
        self._session = session or requests.Session()

    @property
    def model_name(self) -> str:
        return self._model_url.split("/models/")[-1]

    def _request(self, text: str) -> Vector:
        if not self._api_key:
            raise EmbeddingError("Hugging Face API key is not configured")

        try:
            response = self._session.post(
                self._model_url,
                json={"inputs": [text]},
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self._timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            raise EmbeddingError(f"Hugging Face inference request failed: {e}") from e
        except ValueError as e:
            raise EmbeddingError(f"Hugging Face returned invalid JSON: {e}") from e

        # The API answers a list of inputs with a list of embeddings
        if not isinstance(payload, list) or not payload:
            raise EmbeddingError(f"Unexpected Hugging Face response: {str(payload)[:200]}")
        return _as_vector(payload[0])

    async def embed(self, text: str) -> Vector:
        return await asyncio.to_thread(self._request, text)


class BedrockEmbeddingProvider(EmbeddingProvider):
    """
    Amazon Bedrock backend (Titan text embeddings by default).

    Region and credentials come from configuration; when they are None,
    boto3 falls back to its usual credential chain.
    """

    def __init__(
        self,
        model_id: str = DEFAULT_BEDROCK_MODEL,
        region: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        client: Any = None,
    ):
        self._model_id = model_id
        self._region = region
        self._access_key_id = access_key_id
        self._secret_access_key = secret_access_key
        self._client = client
        self._client_lock = threading.Lock()

    @property
    def model_name(self) -> str:
        return self._model_id

    def _get_client(self) -> Any:
        with self._client_lock:
            if self._client is None:
                try:
                    self._client = boto3.client(
                        "bedrock-runtime",
                        region_name=self._region,
                        aws_access_key_id=self._access_key_id,
                        aws_secret_access_key=self._secret_access_key,
                    )
                except BotoCoreError as e:
                    raise EmbeddingError(f"Could not create Bedrock client: {e}") from e
            return self._client

    def _invoke(self, text: str) -> Vector:
        client = self._get_client()
        try:
            response = client.invoke_model(
                modelId=self._model_id,
                contentType="application/json",
                accept="application/json",
                body=json.dumps({"inputText": text}),
            )
            body = json.loads(response["body"].read())
        except (BotoCoreError, ClientError) as e:
            raise EmbeddingError(f"Bedrock invoke_model failed: {e}") from e
        except (KeyError, ValueError) as e:
            raise EmbeddingError(f"Malformed Bedrock response: {e}") from e

        if "embedding" not in body:
            raise EmbeddingError(f"Bedrock response has no embedding: {str(body)[:200]}")
        return _as_vector(body["embedding"])

    async def embed(self, text: str) -> Vector:
        return await asyncio.to_thread(self._invoke, text)


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """
    OpenAI-compatible /embeddings backend.

    All chunks of a document are sent in a single batched request.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = DEFAULT_OPENAI_EMBEDDING_MODEL,
        base_url: str = DEFAULT_OPENAI_BASE_URL,
        timeout: float = 60.0,
        session: Optional[requests.Session] = None,
    ):
        self._api_key = api_key
        self._model = model
        self._url = base_url.rstrip("/") + "/embeddings"
        self._timeout = timeout
        self._session = session or requests.Session()

    @property
    def model_name(self) -> str:
        return self._model

    def _request(self, texts: List[str]) -> List[Vector]:
        if not texts:
            return []
        if not self._api_key:
            raise EmbeddingError("OpenAI API key is not configured")

        try:
            response = self._session.post(
                self._url,
                json={"model": self._model, "input": texts},
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self._timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            raise EmbeddingError(f"OpenAI embeddings request failed: {e}") from e
        except ValueError as e:
            raise EmbeddingError(f"OpenAI returned invalid JSON: {e}") from e

        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list) or len(data) != len(texts):
            raise EmbeddingError(f"Unexpected OpenAI embeddings response: {str(payload)[:200]}")

        try:
            ordered = sorted(data, key=lambda item: item.get("index", 0))
            return [_as_vector(item["embedding"]) for item in ordered]
        except (AttributeError, KeyError, TypeError) as e:
            raise EmbeddingError(f"Malformed OpenAI embeddings item: {e}") from e

    async def embed(self, text: str) -> Vector:
        vectors = await asyncio.to_thread(self._request, [text])
        return vectors[0]

    async def embed_documents(self, texts: Sequence[str]) -> List[Vector]:
        return await asyncio.to_thread(self._request, list(texts))


# =============================================================================
# Factory
# =============================================================================

EMBEDDING_BACKENDS = ("local", "huggingface", "bedrock", "openai")


def create_embedding_provider(backend: str, settings: Settings) -> EmbeddingProvider:
    """
    Build the provider for a backend name.

    Args:
        backend: One of "local", "huggingface", "bedrock", "openai"
        settings: Configuration holding model ids and credentials

    Returns:
        A configured EmbeddingProvider

    Raises:
        ValueError: If the backend name is unknown
    """
    if backend == "local":
        return LocalEmbeddingProvider(model_name=settings.local_model_name)
    if backend == "huggingface":
        return HostedInferenceProvider(
            api_key=settings.huggingface_api_key,
            model_url=settings.huggingface_model_url,
            timeout=settings.request_timeout,
        )
    if backend == "bedrock":
        return BedrockEmbeddingProvider(
            model_id=settings.bedrock_model_id,
            region=settings.aws_region,
            access_key_id=settings.aws_access_key_id,
            secret_access_key=settings.aws_secret_access_key,
        )
    if backend == "openai":
        return OpenAIEmbeddingProvider(
            api_key=settings.openai_api_key,
            model=settings.openai_embedding_model,
            base_url=settings.openai_base_url,
            timeout=settings.request_timeout,
        )
    raise ValueError(
        f"Unknown embedding backend: {backend} (expected one of {', '.join(EMBEDDING_BACKENDS)})"
    )
