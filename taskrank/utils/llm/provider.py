"""Abstract base class for LLM providers."""

import logging
from abc import ABC, abstractmethod
from typing import Any

from .constants import JSON_INSTRUCTION, MAX_PROMPT_LENGTH
from .json_parser import parse_json_response

logger = logging.getLogger(__name__)


class LLMResponseError(RuntimeError):
    """The provider could not produce a usable response.

    Raised for transport failures (network, HTTP status, SDK errors) and for
    replies that are empty or not parseable as JSON.
    """

    def __init__(self, provider: str, reason: str) -> None:
        super().__init__(f"{provider}: {reason}")
        self.provider = provider
        self.reason = reason


class LLMProvider(ABC):
    """Common interface for Gemini, OpenAI and Ollama backends.

    Subclasses implement one raw request in sync and async form; prompt
    sanitizing and JSON handling live here so every backend behaves alike.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name ('gemini', 'openai', 'ollama')."""
        ...

    @property
    @abstractmethod
    def default_model(self) -> str:
        ...

    @abstractmethod
    def _request(self, text: str, model: str, json_mode: bool) -> str:
        """Send one prompt and return the raw reply text.

        Raises:
            LLMResponseError: On transport failure or an empty reply.
        """
        ...

    @abstractmethod
    async def _request_async(self, text: str, model: str, json_mode: bool) -> str:
        ...

    # =========================================================================
    # Public API
    # =========================================================================

    def generate_text(self, prompt: str, model: str | None = None, sanitize: bool = True) -> str:
        """Generate a text completion.

        Args:
            prompt: The input prompt.
            model: Model to use (defaults to the provider's default_model).
            sanitize: If True, truncate the prompt to MAX_PROMPT_LENGTH.

        Returns:
            Reply text.

        Raises:
            LLMResponseError: If the call fails.
        """
        text = self._sanitize_prompt(prompt) if sanitize else prompt
        return self._request(text, model or self.default_model, json_mode=False)

    def generate_json(
        self, prompt: str, model: str | None = None, sanitize: bool = True
    ) -> dict[str, Any]:
        """Generate a JSON object completion.

        Raises:
            LLMResponseError: If the call fails or the reply holds no JSON object.
        """
        text = self._json_prompt(prompt, sanitize)
        raw = self._request(text, model or self.default_model, json_mode=True)
        return self._parse(raw)

    async def generate_text_async(
        self, prompt: str, model: str | None = None, sanitize: bool = True
    ) -> str:
        text = self._sanitize_prompt(prompt) if sanitize else prompt
        return await self._request_async(text, model or self.default_model, json_mode=False)

    async def generate_json_async(
        self, prompt: str, model: str | None = None, sanitize: bool = True
    ) -> dict[str, Any]:
        text = self._json_prompt(prompt, sanitize)
        raw = await self._request_async(text, model or self.default_model, json_mode=True)
        return self._parse(raw)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _sanitize_prompt(self, prompt: str, max_length: int = MAX_PROMPT_LENGTH) -> str:
        """Truncate a prompt to max_length characters."""
        return prompt[:max_length] if len(prompt) > max_length else prompt

    def _json_prompt(self, prompt: str, sanitize: bool) -> str:
        text = self._sanitize_prompt(prompt) if sanitize else prompt
        return f"{text}\n\n{JSON_INSTRUCTION}"

    def _parse(self, raw: str) -> dict[str, Any]:
        result = parse_json_response(raw)
        if result is None:
            logger.debug("%s reply is not JSON: %.200s", self.name, raw)
            raise LLMResponseError(self.name, "reply is not valid JSON")
        return result
