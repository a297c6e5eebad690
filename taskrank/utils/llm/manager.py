"""LLM manager: provider factory and the module-level completion API.

The completion functions return None when no provider is configured (no API
key, SDK missing). Calls that reach a provider raise LLMResponseError on
failure so callers can report why.
"""

import logging
import threading
from typing import Any, Optional

from .config import LLMConfig, load_config
from .provider import LLMProvider

logger = logging.getLogger(__name__)


class LLMManager:
    """Creates the configured provider lazily, on first use."""

    def __init__(self, config: Optional[LLMConfig] = None) -> None:
        self._config = config
        self._provider: Optional[LLMProvider] = None

    @property
    def config(self) -> LLMConfig:
        if self._config is None:
            self._config = load_config()
        return self._config

    def get_provider(self) -> Optional[LLMProvider]:
        """Return the configured provider, or None if it cannot be built."""
        if self._provider is not None:
            return self._provider

        cfg = self.config
        try:
            if cfg.provider == "gemini":
                if not cfg.gemini.api_key:
                    logger.info("Gemini selected but no API key configured")
                    return None
                from .gemini import GeminiProvider

                self._provider = GeminiProvider(
                    api_key=cfg.gemini.api_key,
                    default_model=cfg.gemini.default_model,
                    timeout=cfg.gemini.timeout,
                )
            elif cfg.provider == "openai":
                if not cfg.openai.api_key:
                    logger.info("OpenAI selected but no API key configured")
                    return None
                from .openai import OpenAIProvider

                self._provider = OpenAIProvider(
                    api_key=cfg.openai.api_key,
                    default_model=cfg.openai.default_model,
                    base_url=cfg.openai.base_url or None,
                    timeout=cfg.openai.timeout,
                )
            elif cfg.provider == "ollama":
                from .ollama import OllamaProvider

                self._provider = OllamaProvider(
                    base_url=cfg.ollama.base_url,
                    default_model=cfg.ollama.default_model,
                    timeout=cfg.ollama.timeout,
                )
        except ImportError as e:
            logger.warning("LLM provider %s unavailable: %s", cfg.provider, e)
            return None

        return self._provider


# Global manager instance (lazy, thread-safe)
_manager: Optional[LLMManager] = None
_manager_lock = threading.Lock()


def _get_manager() -> LLMManager:
    """Return the process-wide manager (double-checked locking)."""
    global _manager
    if _manager is None:
        with _manager_lock:
            if _manager is None:
                _manager = LLMManager()
    return _manager


def reset_manager() -> None:
    """Drop the cached manager so the next call reloads configuration."""
    global _manager
    with _manager_lock:
        _manager = None


def get_provider() -> Optional[LLMProvider]:
    return _get_manager().get_provider()


# =============================================================================
# Synchronous API
# =============================================================================


def complete(prompt: str, model: str | None = None, sanitize: bool = True) -> Optional[str]:
    """Text completion.

    Args:
        prompt: The input prompt.
        model: Model override.
        sanitize: If True, truncate the prompt to the safe maximum.

    Returns:
        Reply text, or None if no provider is configured.

    Raises:
        LLMResponseError: If the provider call fails.
    """
    provider = get_provider()
    if provider is None:
        return None
    return provider.generate_text(prompt, model=model, sanitize=sanitize)


def complete_json(
    prompt: str, model: str | None = None, sanitize: bool = True
) -> Optional[dict[str, Any]]:
    """JSON object completion; None if no provider is configured.

    Raises:
        LLMResponseError: If the call fails or the reply is not JSON.
    """
    provider = get_provider()
    if provider is None:
        return None
    return provider.generate_json(prompt, model=model, sanitize=sanitize)


# =============================================================================
# Async API
# =============================================================================


async def complete_async(
    prompt: str, model: str | None = None, sanitize: bool = True
) -> Optional[str]:
    provider = get_provider()
    if provider is None:
        return None
    return await provider.generate_text_async(prompt, model=model, sanitize=sanitize)


async def complete_json_async(
    prompt: str, model: str | None = None, sanitize: bool = True
) -> Optional[dict[str, Any]]:
    provider = get_provider()
    if provider is None:
        return None
    return await provider.generate_json_async(prompt, model=model, sanitize=sanitize)
