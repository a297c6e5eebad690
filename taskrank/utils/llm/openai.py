"""OpenAI provider (also Azure and other OpenAI-compatible endpoints)."""

import logging
from typing import Any, Optional

import openai
from openai import AsyncOpenAI, OpenAI

from .constants import DEFAULT_API_TIMEOUT, DEFAULT_MODELS
from .provider import LLMProvider, LLMResponseError

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """Chat-completions backend using the openai SDK.

    JSON requests use ``response_format={"type": "json_object"}``; models
    that reject it are retried once without it.
    """

    def __init__(
        self,
        api_key: str,
        default_model: str = DEFAULT_MODELS["openai"],
        base_url: Optional[str] = None,
        timeout: float = DEFAULT_API_TIMEOUT,
    ) -> None:
        self._client_kwargs: dict[str, Any] = {"api_key": api_key, "timeout": timeout}
        if base_url:
            self._client_kwargs["base_url"] = base_url
        self._default_model = default_model
        self._client: Optional[OpenAI] = None
        self._async_client: Optional[AsyncOpenAI] = None

    @property
    def name(self) -> str:
        return "openai"

    @property
    def default_model(self) -> str:
        return self._default_model

    def _get_client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(**self._client_kwargs)
        return self._client

    def _get_async_client(self) -> AsyncOpenAI:
        if self._async_client is None:
            self._async_client = AsyncOpenAI(**self._client_kwargs)
        return self._async_client

    @staticmethod
    def _request_kwargs(text: str, model: str, json_mode: bool) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": [{"role": "user", "content": text}],
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        return kwargs

    def _content(self, response: Any) -> str:
        if response.choices and response.choices[0].message.content:
            return response.choices[0].message.content
        raise LLMResponseError(self.name, "empty reply")

    def _request(self, text: str, model: str, json_mode: bool) -> str:
        client = self._get_client()
        try:
            try:
                response = client.chat.completions.create(
                    **self._request_kwargs(text, model, json_mode)
                )
            except openai.BadRequestError as e:
                if not json_mode:
                    raise
                logger.debug("OpenAI JSON mode rejected, retrying without: %s", e)
                response = client.chat.completions.create(
                    **self._request_kwargs(text, model, json_mode=False)
                )
        except openai.APIError as e:
            logger.debug("OpenAI request failed: %s: %s", type(e).__name__, e)
            raise LLMResponseError(self.name, f"{type(e).__name__}: {e}") from e
        return self._content(response)

    async def _request_async(self, text: str, model: str, json_mode: bool) -> str:
        client = self._get_async_client()
        try:
            try:
                response = await client.chat.completions.create(
                    **self._request_kwargs(text, model, json_mode)
                )
            except openai.BadRequestError as e:
                if not json_mode:
                    raise
                logger.debug("OpenAI JSON mode rejected, retrying without: %s", e)
                response = await client.chat.completions.create(
                    **self._request_kwargs(text, model, json_mode=False)
                )
        except openai.APIError as e:
            logger.debug("OpenAI async request failed: %s: %s", type(e).__name__, e)
            raise LLMResponseError(self.name, f"{type(e).__name__}: {e}") from e
        return self._content(response)
