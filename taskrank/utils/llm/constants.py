"""Constants for the LLM module."""

# =============================================================================
# Prompt Processing
# =============================================================================

# Query-parse and analysis prompts embed term tables and up to
# max_tasks_for_analysis task lines, so this is larger than a chat prompt.
MAX_PROMPT_LENGTH = 12000

# Appended to every JSON request
JSON_INSTRUCTION = "Respond with a single valid JSON object only, no markdown or explanation."

# =============================================================================
# Timeout Settings (seconds)
# =============================================================================

# Cloud providers (Gemini, OpenAI)
DEFAULT_API_TIMEOUT = 30.0

# Local inference; the first request may load the model into memory
OLLAMA_TIMEOUT = 120.0

# =============================================================================
# Default Models
# =============================================================================

DEFAULT_MODELS = {
    "gemini": "gemini-2.0-flash",
    "openai": "gpt-4o-mini",
    "ollama": "llama3.2",
}

DEFAULT_OLLAMA_URL = "http://localhost:11434"

# =============================================================================
# HTTP Client Settings
# =============================================================================

# One search makes at most two calls (parse, analysis)
HTTP_MAX_CONNECTIONS = 4

HTTP_KEEPALIVE_TIMEOUT = 30.0
