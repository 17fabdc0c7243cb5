"""Chat completions HTTP client (transport only)."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from triager.config import OpenAIConfig

LOG = logging.getLogger("triager.llm.client")


class ModelError(Exception):
    """Error from the model API or an unusable response."""

    pass


class ChatModel(ABC):
    """A model that answers one system + user message pair with JSON text."""

    @abstractmethod
    async def complete(self, system: str, user: str) -> str:
        """Return the assistant's raw response content."""
        ...


class OpenAIChatClient(ChatModel):
    """Async client for the OpenAI chat completions API.

    Responsibilities:
    - Request JSON-object output
    - Error normalization (HTTP and transport errors -> ModelError)

    Not responsible for:
    - Retries (the plan generator owns the retry policy)
    - Parsing or validating the returned JSON
    """

    def __init__(self, config: OpenAIConfig, api_key: str) -> None:
        if not api_key:
            raise ValueError("OpenAI api key is required")
        self._api_key = api_key
        self._api_url = config.api_url
        self._model = config.model
        self._temperature = config.temperature
        self._timeout = config.timeout
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def complete(self, system: str, user: str) -> str:
        """Make a chat completion request.

        Raises:
            ModelError: On HTTP errors, transport errors or empty content
        """
        payload = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "response_format": {"type": "json_object"},
            "temperature": self._temperature,
        }
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        try:
            response = await self._get_client().post(self._api_url, headers=headers, json=payload)
        except httpx.RequestError as e:
            raise ModelError(f"Request failed: {e}") from e

        if response.status_code != 200:
            raise ModelError(f"HTTP {response.status_code}: {response.text}")

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ModelError(f"Unexpected response shape: {e}") from e
        if not content:
            raise ModelError("Model response was empty")
        LOG.debug("Model %s returned %d chars", self._model, len(content))
        return content
