"""LLM provider configuration.

Read from ~/.taskrank/config.toml; TASKRANK_* environment variables take
precedence over file values.
"""

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Optional, cast

from .constants import DEFAULT_API_TIMEOUT, DEFAULT_MODELS, DEFAULT_OLLAMA_URL, OLLAMA_TIMEOUT

logger = logging.getLogger(__name__)

ProviderType = Literal["gemini", "openai", "ollama"]
PROVIDERS: tuple[ProviderType, ...] = ("gemini", "openai", "ollama")

DEFAULT_CONFIG_PATH = Path.home() / ".taskrank" / "config.toml"


@dataclass
class GeminiConfig:
    api_key: str = ""
    default_model: str = DEFAULT_MODELS["gemini"]
    timeout: float = DEFAULT_API_TIMEOUT


@dataclass
class OpenAIConfig:
    api_key: str = ""
    default_model: str = DEFAULT_MODELS["openai"]
    base_url: str = ""  # Azure or other OpenAI-compatible endpoints
    timeout: float = DEFAULT_API_TIMEOUT


@dataclass
class OllamaConfig:
    base_url: str = DEFAULT_OLLAMA_URL
    default_model: str = DEFAULT_MODELS["ollama"]
    timeout: float = OLLAMA_TIMEOUT


@dataclass
class LLMConfig:
    """Selected provider plus per-provider settings."""

    provider: ProviderType = "gemini"
    gemini: GeminiConfig = field(default_factory=GeminiConfig)
    openai: OpenAIConfig = field(default_factory=OpenAIConfig)
    ollama: OllamaConfig = field(default_factory=OllamaConfig)


def _load_toml(path: Path) -> dict[str, Any]:
    """Parse a TOML file; a missing or malformed file yields {}."""
    if not path.exists():
        return {}
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        logger.warning("Ignoring malformed config %s: %s", path, e)
        return {}


def _pick(env_names: tuple[str, ...], section: dict[str, Any], key: str, default: Any) -> Any:
    """First non-empty env var, else the file value, else default."""
    for name in env_names:
        value = os.environ.get(name)
        if value:
            return value
    return section.get(key, default)


def load_config(config_path: Optional[Path] = None) -> LLMConfig:
    """Load LLM configuration.

    Precedence: environment (TASKRANK_*, then vendor variables such as
    OPENAI_API_KEY), then the config file, then defaults.

    Args:
        config_path: Config file path. Defaults to ~/.taskrank/config.toml.

    Returns:
        Merged LLMConfig.
    """
    llm = _load_toml(config_path or DEFAULT_CONFIG_PATH).get("llm", {})
    gemini = llm.get("gemini", {})
    openai = llm.get("openai", {})
    ollama = llm.get("ollama", {})

    return LLMConfig(
        provider=_get_provider_type(
            _pick(("TASKRANK_LLM_PROVIDER",), llm, "provider", "gemini")
        ),
        gemini=GeminiConfig(
            api_key=_pick(
                ("TASKRANK_GEMINI_API_KEY", "GOOGLE_API_KEY", "GEMINI_API_KEY"),
                gemini,
                "api_key",
                "",
            ),
            default_model=_pick(
                ("TASKRANK_GEMINI_MODEL",), gemini, "default_model", DEFAULT_MODELS["gemini"]
            ),
            timeout=float(
                _pick(("TASKRANK_GEMINI_TIMEOUT",), gemini, "timeout", DEFAULT_API_TIMEOUT)
            ),
        ),
        openai=OpenAIConfig(
            api_key=_pick(("TASKRANK_OPENAI_API_KEY", "OPENAI_API_KEY"), openai, "api_key", ""),
            default_model=_pick(
                ("TASKRANK_OPENAI_MODEL",), openai, "default_model", DEFAULT_MODELS["openai"]
            ),
            base_url=_pick(("TASKRANK_OPENAI_BASE_URL",), openai, "base_url", ""),
            timeout=float(
                _pick(("TASKRANK_OPENAI_TIMEOUT",), openai, "timeout", DEFAULT_API_TIMEOUT)
            ),
        ),
        ollama=OllamaConfig(
            base_url=_pick(("TASKRANK_OLLAMA_BASE_URL",), ollama, "base_url", DEFAULT_OLLAMA_URL),
            default_model=_pick(
                ("TASKRANK_OLLAMA_MODEL",), ollama, "default_model", DEFAULT_MODELS["ollama"]
            ),
            timeout=float(
                _pick(("TASKRANK_OLLAMA_TIMEOUT",), ollama, "timeout", OLLAMA_TIMEOUT)
            ),
        ),
    )


def _get_provider_type(value: str) -> ProviderType:
    """Normalize a provider name; unknown names fall back to gemini."""
    normalized = str(value).lower().strip()
    if normalized in PROVIDERS:
        return cast(ProviderType, normalized)
    logger.warning("Unknown LLM provider %r, using gemini", value)
    return "gemini"


def get_example_config() -> str:
    """Return a documented example config.toml."""
    return f"""# taskrank - LLM configuration
# Place this file at ~/.taskrank/config.toml

[llm]
# "gemini", "openai" or "ollama"
provider = "gemini"

[llm.gemini]
# or TASKRANK_GEMINI_API_KEY / GOOGLE_API_KEY
api_key = ""
default_model = "{DEFAULT_MODELS['gemini']}"
timeout = {DEFAULT_API_TIMEOUT}

[llm.openai]
# or TASKRANK_OPENAI_API_KEY / OPENAI_API_KEY
api_key = ""
default_model = "{DEFAULT_MODELS['openai']}"
timeout = {DEFAULT_API_TIMEOUT}
# base_url = "https://your-resource.openai.azure.com/"

[llm.ollama]
base_url = "{DEFAULT_OLLAMA_URL}"
default_model = "{DEFAULT_MODELS['ollama']}"
timeout = {OLLAMA_TIMEOUT}
"""
