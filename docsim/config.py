"""
Configuration settings.

Reads project options (prefixed DOCSIM_) and provider credentials (under
their conventional unprefixed names) from the environment and a .env file.

Dependencies: pydantic, pydantic_settings
System role: Single source of tunables for the comparison core
"""

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """DocSim configuration."""

    model_config = SettingsConfigDict(
        env_prefix="DOCSIM_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    # Chunking and retrieval
    chunk_size: int = Field(default=1000, description="Chunk window size in words")
    chunk_overlap: int = Field(default=200, description="Words shared by consecutive chunks")
    rag_top_k: int = Field(default=3, description="Doc1 chunks retrieved per doc2 chunk")

    # Local sentence-transformers backend
    local_model_name: str = Field(
        default="sentence-transformers/all-MiniLM-L6-v2",
        description="sentence-transformers model loaded in-process",
    )

    # OpenAI-compatible embeddings + chat completions
    openai_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("OPENAI_API_KEY", "DOCSIM_OPENAI_API_KEY"),
    )
    openai_base_url: str = Field(default="https://api.openai.com/v1")
    openai_embedding_model: str = Field(default="text-embedding-ada-002")
    openai_chat_model: str = Field(default="gpt-3.5-turbo")

    # Hugging Face Inference API
    huggingface_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("HUGGINGFACE_API_KEY", "DOCSIM_HUGGINGFACE_API_KEY"),
    )
    huggingface_model_url: str = Field(
        default="https://api-inference.huggingface.co/models/sentence-transformers/all-MiniLM-L6-v2",
    )

    # Amazon Bedrock
    aws_region: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("AWS_REGION", "DOCSIM_AWS_REGION"),
    )
    aws_access_key_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("AWS_ACCESS_KEY_ID", "DOCSIM_AWS_ACCESS_KEY_ID"),
    )
    aws_secret_access_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("AWS_SECRET_ACCESS_KEY", "DOCSIM_AWS_SECRET_ACCESS_KEY"),
    )
    bedrock_model_id: str = Field(default="amazon.titan-embed-text-v1")

    request_timeout: float = Field(
        default=60.0,
        description="Per-request HTTP timeout in seconds for remote providers",
    )


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings, loaded once."""
    return Settings()
