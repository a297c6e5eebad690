"""Multi-provider LLM access for query parsing and chat analysis.

Providers (Gemini, OpenAI, Ollama) share one interface; the active one is
chosen in ~/.taskrank/config.toml or with TASKRANK_LLM_PROVIDER.

Synchronous API:
    - complete(prompt, model, sanitize) -> Optional[str]
    - complete_json(prompt, model, sanitize) -> Optional[dict]

Async API:
    - complete_async(prompt, model, sanitize) -> Optional[str]
    - complete_json_async(prompt, model, sanitize) -> Optional[dict]

All four return None when no provider is configured and raise
LLMResponseError when the provider call itself fails.

Example config.toml:
    [llm]
    provider = "openai"

    [llm.openai]
    api_key = "sk-..."
    default_model = "gpt-4o-mini"
"""

from .config import (
    GeminiConfig,
    LLMConfig,
    OllamaConfig,
    OpenAIConfig,
    get_example_config,
    load_config,
)
from .manager import (
    LLMManager,
    complete,
    complete_async,
    complete_json,
    complete_json_async,
    get_provider,
    reset_manager,
)
from .provider import LLMProvider, LLMResponseError

__all__ = [
    # Sync functions
    "complete",
    "complete_json",
    # Async functions
    "complete_async",
    "complete_json_async",
    # Utilities
    "get_provider",
    "reset_manager",
    "load_config",
    "get_example_config",
    # Classes
    "LLMManager",
    "LLMProvider",
    "LLMResponseError",
    # Config classes
    "LLMConfig",
    "GeminiConfig",
    "OpenAIConfig",
    "OllamaConfig",
]
