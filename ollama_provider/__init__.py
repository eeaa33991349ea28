"""
ollama-provider: AI provider handler for a local Ollama backend.

Normalizes prompt- and message-shaped requests, sizes the context window
per model, and exposes streamed generations as cancellable event handles.
"""

from ollama_provider.errors import (
    ConfigurationError,
    InvalidRequestError,
    MalformedResponseError,
    OllamaError,
    OllamaProviderError,
)
from ollama_provider.handler import OllamaHandler
from ollama_provider.schema import (
    ChatMessage,
    EmbedRequest,
    MessagesRequest,
    PromptRequest,
    ProviderRef,
)
from ollama_provider.streaming import ChunkHandler, ExecutionState

__all__ = [
    "ChatMessage",
    "ChunkHandler",
    "ConfigurationError",
    "EmbedRequest",
    "ExecutionState",
    "InvalidRequestError",
    "MalformedResponseError",
    "MessagesRequest",
    "OllamaError",
    "OllamaHandler",
    "OllamaProviderError",
    "PromptRequest",
    "ProviderRef",
]
