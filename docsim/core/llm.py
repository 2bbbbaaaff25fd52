"""
Chat-completion backend for narrative comparison.

This backend is not an embedder: it sends a prompt to an OpenAI-compatible
/chat/completions endpoint and returns the assistant's text. Parsing that
text is the semantic engine's job.

Dependencies: requests
"""

import asyncio
import logging
from typing import Any, Optional

import requests

logger = logging.getLogger(__name__)


DEFAULT_CHAT_MODEL = "gpt-3.5-turbo"
DEFAULT_CHAT_BASE_URL = "https://api.openai.com/v1"


class ChatCompletionError(Exception):
    """Raised when a chat completion call fails or returns no content."""
    pass


def extract_message_text(data: Any) -> str:
    """
    Pull the assistant text out of a chat completion payload.

    Handles both plain-string content and the list-of-parts form some
    providers return. Any other shape yields an empty string.
    """
    if not isinstance(data, dict):
        return ""
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    message = choices[0].get("message")
    if not isinstance(message, dict):
        return ""
    content = message.get("content")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for item in content:
            if isinstance(item, dict) and item.get("type") == "text":
                parts.append(item.get("text", ""))
        return "\n".join(parts)
    return ""


class ChatCompletionClient:
    """Minimal OpenAI-compatible chat client (temperature 0, no retries)."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = DEFAULT_CHAT_MODEL,
        base_url: str = DEFAULT_CHAT_BASE_URL,
        temperature: float = 0.0,
        timeout: float = 60.0,
        session: Optional[requests.Session] = None,
    ):
        self._api_key = api_key
        self._model = model
        self._url = base_url.rstrip("/") + "/chat/completions"
        self._temperature = temperature
        self._timeout = timeout
        self._session = session or requests.Session()

    @property
    def model_name(self) -> str:
        return self._model

    def _request(self, prompt: str) -> str:
        if not self._api_key:
            raise ChatCompletionError("OpenAI API key is not configured")

        payload = {
            "model": self._model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self._temperature,
        }
        try:
            response = self._session.post(
                self._url,
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self._timeout,
            )
            if response.status_code >= 400:
                raise ChatCompletionError(f"{response.status_code}: {response.text[:300]}")
            data = response.json()
        except requests.RequestException as e:
            raise ChatCompletionError(f"Chat completion request failed: {e}") from e
        except ValueError as e:
            raise ChatCompletionError(f"Chat completion returned invalid JSON: {e}") from e

        text = extract_message_text(data)
        if not text:
            raise ChatCompletionError("Chat completion returned no content")
        logger.debug(f"Chat completion from {self._model}: {len(text)} characters")
        return text

    async def complete(self, prompt: str) -> str:
        """
        Send a single-message prompt and return the assistant's text.

        Raises:
            ChatCompletionError: On transport, HTTP or payload errors
        """
        return await asyncio.to_thread(self._request, prompt)
