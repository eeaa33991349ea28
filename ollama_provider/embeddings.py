"""
EmbeddingRequestHandler - non-streaming embedding path.

The window size is computed from the longest input string: embeddings are
not conversational, so only one scalar length matters.
"""

import logging
from typing import Union

from ollama_provider.config import CONTEXT_OPTION_KEY, EMBEDDING_CONTEXT_LENGTH
from ollama_provider.context import optimize_context
from ollama_provider.errors import MalformedResponseError
from ollama_provider.model_cache import BackendFactory, ModelInfoCache
from ollama_provider.schema import EmbedRequest, parse_embed_request

logger = logging.getLogger(__name__)


class EmbeddingRequestHandler:
    """Resolves window size and issues the backend embedding call."""

    def __init__(
        self,
        cache: ModelInfoCache,
        backend_factory: BackendFactory,
        default_context_length: int = EMBEDDING_CONTEXT_LENGTH,
    ):
        self._cache = cache
        self._backend_factory = backend_factory
        self._default_context_length = default_context_length

    async def embed(self, request: Union[dict, EmbedRequest]) -> list[list[float]]:
        """
        Return one embedding vector per input string.

        Raises:
            ConfigurationError: If neither input nor text is provided (no backend call)
            MalformedResponseError: If the backend returns no embeddings
            OllamaError: On transport failure
        """
        request = parse_embed_request(request)
        provider = request.provider
        inputs = request.inputs()

        logger.debug(f"Starting embed process: model={provider.model} input_count={len(inputs)}")

        model_info = await self._cache.get_model_info(provider, provider.model)
        logger.debug(f"Retrieved model info: {model_info}")

        max_input_length = max(len(text) for text in inputs)
        logger.debug(f"Max input length: {max_input_length}")

        decision = optimize_context(
            max_input_length,
            model_info.last_context_length or self._default_context_length,
            self._default_context_length,
            model_info.context_length,
        )
        logger.debug(f"Optimized context: {decision}")

        if decision.should_persist:
            logger.debug(f"Updating model info last context length: {decision.requested_size}")
            self._cache.record_last_context_length(provider, provider.model, decision.requested_size)

        options = {CONTEXT_OPTION_KEY: decision.requested_size} if decision.requested_size else None

        try:
            backend = self._backend_factory(provider)
            embeddings = await backend.embed(provider.model, request.input, options)
            if not embeddings:
                raise MalformedResponseError("No embeddings in response")
        except Exception as e:
            logger.error(f"Failed to get embeddings: {e}")
            raise

        logger.debug(
            f"Successfully received embeddings: count={len(embeddings)} "
            f"dimensions={len(embeddings[0]) if embeddings[0] else 0}"
        )
        return embeddings
