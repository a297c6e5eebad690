"""Gemini provider using the google-genai SDK."""

import logging
from typing import Any, Optional

import httpx
from google import genai
from google.genai import errors, types

from .constants import DEFAULT_API_TIMEOUT, DEFAULT_MODELS
from .provider import LLMProvider, LLMResponseError

logger = logging.getLogger(__name__)


class GeminiProvider(LLMProvider):
    """Google Gemini backend.

    JSON requests set ``response_mime_type="application/json"``. The async
    path uses the SDK's native ``client.aio`` surface.
    """

    def __init__(
        self,
        api_key: str,
        default_model: str = DEFAULT_MODELS["gemini"],
        timeout: float = DEFAULT_API_TIMEOUT,
    ) -> None:
        self._api_key = api_key
        self._default_model = default_model
        self._timeout = timeout
        self._client: Optional[genai.Client] = None

    @property
    def name(self) -> str:
        return "gemini"

    @property
    def default_model(self) -> str:
        return self._default_model

    def _get_client(self) -> genai.Client:
        if self._client is None:
            # HttpOptions.timeout is in milliseconds
            self._client = genai.Client(
                api_key=self._api_key,
                http_options=types.HttpOptions(timeout=int(self._timeout * 1000)),
            )
        return self._client

    @staticmethod
    def _generation_config(json_mode: bool) -> Optional[types.GenerateContentConfig]:
        if not json_mode:
            return None
        return types.GenerateContentConfig(response_mime_type="application/json")

    def _text(self, response: Any) -> str:
        if response is not None and response.text:
            return response.text
        raise LLMResponseError(self.name, "empty reply")

    def _request(self, text: str, model: str, json_mode: bool) -> str:
        try:
            response = self._get_client().models.generate_content(
                model=model,
                contents=text,
                config=self._generation_config(json_mode),
            )
        except (errors.APIError, httpx.HTTPError) as e:
            logger.debug("Gemini request failed: %s: %s", type(e).__name__, e)
            raise LLMResponseError(self.name, f"{type(e).__name__}: {e}") from e
        return self._text(response)

    async def _request_async(self, text: str, model: str, json_mode: bool) -> str:
        try:
            response = await self._get_client().aio.models.generate_content(
                model=model,
                contents=text,
                config=self._generation_config(json_mode),
            )
        except (errors.APIError, httpx.HTTPError) as e:
            logger.debug("Gemini async request failed: %s: %s", type(e).__name__, e)
            raise LLMResponseError(self.name, f"{type(e).__name__}: {e}") from e
        return self._text(response)
