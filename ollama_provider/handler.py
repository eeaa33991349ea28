"""
OllamaHandler - provider handler facade.

Owns the model info cache for its lifetime and wires it into the streaming
and embedding paths. One OllamaClient is built per provider per call,
pointed at the provider's url.
"""

import logging
from typing import Optional, Union

from ollama_provider.adapters.base import InferenceBackend
from ollama_provider.adapters.ollama import OllamaClient
from ollama_provider.embeddings import EmbeddingRequestHandler
from ollama_provider.model_cache import BackendFactory, ModelInfoCache
from ollama_provider.schema import EmbedRequest, MessagesRequest, PromptRequest, ProviderRef
from ollama_provider.streaming import ChunkHandler, StreamingExecutionController

logger = logging.getLogger(__name__)


def default_backend_factory(provider: ProviderRef) -> InferenceBackend:
    """Build an OllamaClient for the provider's endpoint."""
    return OllamaClient(provider.url)


class OllamaHandler:
    """
    Entry point for callers of the provider abstraction.

    Usage:
        handler = OllamaHandler()
        provider = ProviderRef(url="http://localhost:11434", model="llama3.2")
        handle = handler.execute({"provider": provider, "prompt": "Hi"})
        handle.on_data(lambda chunk, text: print(chunk, end=""))
        await handle.wait()
        handler.dispose()
    """

    def __init__(self, backend_factory: Optional[BackendFactory] = None):
        """
        Args:
            backend_factory: Returns the backend for a provider.
                Defaults to an OllamaClient per provider url.
        """
        self._backend_factory = backend_factory or default_backend_factory
        self.model_info_cache = ModelInfoCache(self._backend_factory)
        self._streaming = StreamingExecutionController(self.model_info_cache, self._backend_factory)
        self._embeddings = EmbeddingRequestHandler(self.model_info_cache, self._backend_factory)

    def dispose(self) -> None:
        """Release cached model info."""
        logger.debug(f"Disposing handler, dropping {len(self.model_info_cache)} cached models")
        self.model_info_cache.clear()

    async def fetch_models(self, provider: ProviderRef) -> list[str]:
        """Return model names available at the provider's endpoint."""
        return await self._backend_factory(provider).list_models()

    def execute(self, request: Union[dict, PromptRequest, MessagesRequest]) -> ChunkHandler:
        """Start a streaming generation; see StreamingExecutionController.execute."""
        return self._streaming.execute(request)

    async def embed(self, request: Union[dict, EmbedRequest]) -> list[list[float]]:
        """Embed one or more strings; see EmbeddingRequestHandler.embed."""
        return await self._embeddings.embed(request)
