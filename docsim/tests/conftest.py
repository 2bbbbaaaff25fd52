"""
Shared test fixtures.

Provides in-memory embedding providers and chat clients so semantic tests
run without network access or model downloads.
"""

import zlib
from typing import List, Optional

import numpy as np
import pytest

from docsim.config import Settings
from docsim.core.embeddings import EmbeddingError, EmbeddingProvider
from docsim.core.llm import ChatCompletionError
from docsim.core.tokenizer import tokenize


class FakeEmbeddingProvider(EmbeddingProvider):
    """
    Deterministic bag-of-words embedder.

    Each token adds 1.0 to a crc32-selected dimension, so texts sharing
    words point in similar directions and identical texts are identical.
    """

    def __init__(self, dim: int = 32, model_name: str = "fake-embedder"):
        self.dim = dim
        self._model_name = model_name
        self.calls: List[str] = []

    @property
    def model_name(self) -> str:
        return self._model_name

    async def embed(self, text: str):
        self.calls.append(text)
        vec = np.zeros(self.dim, dtype=np.float32)
        for token in tokenize(text):
            vec[zlib.crc32(token.encode("utf-8")) % self.dim] += 1.0
        return vec


class FailingEmbeddingProvider(EmbeddingProvider):
    """Provider whose every call fails, like an unreachable remote API."""

    @property
    def model_name(self) -> str:
        return "broken-embedder"

    async def embed(self, text: str):
        raise EmbeddingError("connection refused")


class FakeChatClient:
    """Chat client returning a canned response and recording prompts."""

    def __init__(self, response: str = "", error: Optional[Exception] = None):
        self.response = response
        self.error = error
        self.prompts: List[str] = []

    @property
    def model_name(self) -> str:
        return "fake-chat"

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def fake_provider():
    return FakeEmbeddingProvider()


@pytest.fixture
def failing_provider():
    return FailingEmbeddingProvider()


@pytest.fixture
def valid_chat():
    return FakeChatClient(
        '{"similarity_score": 0.72, "reasoning": "Both discuss cats", '
        '"key_similarities": ["cats"], "key_differences": ["mat vs rug"]}'
    )


@pytest.fixture
def broken_chat():
    return FakeChatClient(error=ChatCompletionError("401: invalid api key"))


@pytest.fixture
def small_settings():
    """Settings with small chunks so short test documents span several chunks."""
    return Settings(chunk_size=10, chunk_overlap=2, rag_top_k=3)


@pytest.fixture
def make_chat():
    """Factory for chat clients with a custom canned response."""
    return FakeChatClient
