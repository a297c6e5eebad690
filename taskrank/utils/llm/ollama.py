"""Ollama provider talking to the local HTTP API with httpx."""

import logging
from typing import Any, Optional

import httpx

from .constants import (
    DEFAULT_MODELS,
    DEFAULT_OLLAMA_URL,
    HTTP_KEEPALIVE_TIMEOUT,
    HTTP_MAX_CONNECTIONS,
    OLLAMA_TIMEOUT,
)
from .provider import LLMProvider, LLMResponseError

logger = logging.getLogger(__name__)


class OllamaProvider(LLMProvider):
    """Local models served by Ollama (``POST /api/generate``)."""

    def __init__(
        self,
        base_url: str = DEFAULT_OLLAMA_URL,
        default_model: str = DEFAULT_MODELS["ollama"],
        timeout: float = OLLAMA_TIMEOUT,
    ) -> None:
        self._url = f"{base_url.rstrip('/')}/api/generate"
        self._default_model = default_model
        self._timeout = timeout
        # Reused across async calls for connection pooling
        self._async_client: Optional[httpx.AsyncClient] = None

    @property
    def name(self) -> str:
        return "ollama"

    @property
    def default_model(self) -> str:
        return self._default_model

    def _get_async_client(self) -> httpx.AsyncClient:
        if self._async_client is None:
            self._async_client = httpx.AsyncClient(
                timeout=self._timeout,
                limits=httpx.Limits(
                    max_connections=HTTP_MAX_CONNECTIONS,
                    max_keepalive_connections=HTTP_MAX_CONNECTIONS,
                    keepalive_expiry=HTTP_KEEPALIVE_TIMEOUT,
                ),
            )
        return self._async_client

    async def close(self) -> None:
        """Close the pooled async client."""
        if self._async_client is not None:
            await self._async_client.aclose()
            self._async_client = None

    @staticmethod
    def _payload(text: str, model: str, json_mode: bool) -> dict[str, Any]:
        payload: dict[str, Any] = {"model": model, "prompt": text, "stream": False}
        if json_mode:
            payload["format"] = "json"
        return payload

    def _reply(self, response: httpx.Response) -> str:
        response.raise_for_status()
        data = response.json()
        reply = data.get("response") if isinstance(data, dict) else None
        if not reply:
            raise LLMResponseError(self.name, "empty reply")
        return reply

    def _request(self, text: str, model: str, json_mode: bool) -> str:
        try:
            response = httpx.post(
                self._url, json=self._payload(text, model, json_mode), timeout=self._timeout
            )
            return self._reply(response)
        except (httpx.HTTPError, ValueError) as e:
            logger.debug("Ollama request failed: %s: %s", type(e).__name__, e)
            raise LLMResponseError(self.name, f"{type(e).__name__}: {e}") from e

    async def _request_async(self, text: str, model: str, json_mode: bool) -> str:
        try:
            response = await self._get_async_client().post(
                self._url, json=self._payload(text, model, json_mode)
            )
            return self._reply(response)
        except (httpx.HTTPError, ValueError) as e:
            logger.debug("Ollama async request failed: %s: %s", type(e).__name__, e)
            raise LLMResponseError(self.name, f"{type(e).__name__}: {e}") from e
