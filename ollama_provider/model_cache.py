"""
ModelInfoCache - per (endpoint, model) context-window metadata.

Entries are created on first access by introspecting the model on its
backend and live until clear() (handler disposal). There is no eviction:
keys are bounded by the endpoint/model pairs a user configures.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from ollama_provider.adapters.base import InferenceBackend
from ollama_provider.config import (
    CONTEXT_LENGTH_ALIAS,
    CONTEXT_LENGTH_SUFFIX,
    DEFAULT_CONTEXT_LENGTH,
)
from ollama_provider.schema import ProviderRef

logger = logging.getLogger(__name__)

BackendFactory = Callable[[ProviderRef], InferenceBackend]


@dataclass(frozen=True)
class ModelCacheKey:
    """Composite cache key: one entry per (endpoint url, model name)."""
    url: str
    model: str

    @classmethod
    def for_provider(cls, provider: ProviderRef, model_name: str) -> "ModelCacheKey":
        return cls(url=provider.url, model=model_name)


@dataclass
class ModelInfo:
    """
    Cached window metadata for one model.

    context_length is the model's maximum window (0 if unknown).
    last_context_length is the largest window requested so far.
    """
    context_length: int = 0
    last_context_length: int = DEFAULT_CONTEXT_LENGTH


def extract_context_length(metadata: Mapping[str, Any]) -> int:
    """
    Find the model's maximum context window in introspection metadata.

    Returns the first positive numeric value whose key ends with
    ".context_length" (e.g. "llama.context_length") or equals "num_ctx";
    0 if there is none.
    """
    for key, value in metadata.items():
        if not (key.endswith(CONTEXT_LENGTH_SUFFIX) or key == CONTEXT_LENGTH_ALIAS):
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        if value > 0:
            return int(value)
    return 0


class ModelInfoCache:
    """
    Lazily populated cache of ModelInfo keyed by ModelCacheKey.

    Introspection failures are logged and replaced by a default entry;
    window discovery is an optimization and never fails a request.
    Uses a per-key asyncio.Lock so concurrent first lookups introspect once.
    """

    def __init__(self, backend_factory: BackendFactory):
        """
        Args:
            backend_factory: Returns the backend to introspect for a provider
        """
        self._backend_factory = backend_factory
        self._entries: dict[ModelCacheKey, ModelInfo] = {}
        self._locks: dict[ModelCacheKey, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: ModelCacheKey) -> bool:
        return key in self._entries

    def peek(self, provider: ProviderRef, model_name: str) -> Optional[ModelInfo]:
        """Return the cached entry without introspecting, or None."""
        return self._entries.get(ModelCacheKey.for_provider(provider, model_name))

    async def get_model_info(self, provider: ProviderRef, model_name: str) -> ModelInfo:
        """
        Return cached model info, introspecting the model on first access.

        Never raises because of the backend: on failure a default entry
        (context_length=0, last_context_length=2048) is stored and returned.
        """
        key = ModelCacheKey.for_provider(provider, model_name)
        cached = self._entries.get(key)
        if cached is not None:
            return cached

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            # Another caller may have populated the entry while we waited
            cached = self._entries.get(key)
            if cached is not None:
                return cached

            model_info = ModelInfo()
            try:
                backend = self._backend_factory(provider)
                metadata = await backend.introspect_model(model_name)
                model_info.context_length = extract_context_length(metadata)
            except Exception as e:
                logger.error(f"Failed to fetch model info for {model_name} at {provider.url}: {e}")

            self._entries[key] = model_info
            return model_info

    def record_last_context_length(
        self,
        provider: ProviderRef,
        model_name: str,
        size: Optional[int],
    ) -> None:
        """
        Remember `size` as the last requested window for a cached model.

        No-op when the model is not cached; a None or 0 size keeps the
        previous value.
        """
        model_info = self._entries.get(ModelCacheKey.for_provider(provider, model_name))
        if model_info is None:
            return
        if size:
            model_info.last_context_length = size

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()
        self._locks.clear()
