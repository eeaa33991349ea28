"""
Configuration constants and environment getters for ollama-provider.
"""

import os


# ─────────────────────────────────────────────────────────────────────
# CONTEXT WINDOW HEURISTIC
# ─────────────────────────────────────────────────────────────────────

SYMBOLS_PER_TOKEN: float = 2.5
DEFAULT_CONTEXT_LENGTH: int = 2048
EMBEDDING_CONTEXT_LENGTH: int = 2048
CONTEXT_BUFFER_MULTIPLIER: float = 1.2  # 20% buffer

# Introspection keys that carry a model's maximum context window
CONTEXT_LENGTH_SUFFIX: str = ".context_length"
CONTEXT_LENGTH_ALIAS: str = "num_ctx"

# Backend option that carries the requested window size
CONTEXT_OPTION_KEY: str = "num_ctx"


# ─────────────────────────────────────────────────────────────────────
# TRANSPORT DEFAULTS
# ─────────────────────────────────────────────────────────────────────

DEFAULT_OLLAMA_URL: str = "http://localhost:11434"
DEFAULT_TIMEOUT_SECONDS: float = 300.0  # 5 minutes


# ─────────────────────────────────────────────────────────────────────
# ENVIRONMENT LOADING
# ─────────────────────────────────────────────────────────────────────

def get_ollama_url() -> str:
    """
    Get the Ollama server URL from environment or default.

    Set OLLAMA_HOST in .env (default: http://localhost:11434).
    A bare host:port without scheme is treated as http.
    """
    value = os.environ.get("OLLAMA_HOST", "").strip()
    if not value:
        return DEFAULT_OLLAMA_URL
    if "://" not in value:
        value = f"http://{value}"
    return value.rstrip("/")


def get_timeout_seconds() -> float:
    """
    Get the transport timeout in seconds.

    Set OLLAMA_TIMEOUT_SECONDS in .env (default: 300).
    """
    try:
        return float(os.environ.get("OLLAMA_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS))
    except ValueError:
        return DEFAULT_TIMEOUT_SECONDS
