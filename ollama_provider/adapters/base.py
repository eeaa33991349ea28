"""
InferenceBackend Protocol - defines the contract for the inference backend.

This is the WHAT (interface), not the HOW (implementation).
See ollama.py for the concrete implementation.
"""

from typing import Any, AsyncIterator, Optional, Protocol, Union

from ollama_provider.schema import ChatChunk


class InferenceBackend(Protocol):
    """
    Contract for a local inference backend.

    Implementations must provide:
    - Model discovery (list_models)
    - Model introspection (introspect_model)
    - Embeddings (embed)
    - Streaming chat (chat)
    """

    async def list_models(self) -> list[str]:
        """
        Return list of model names available on this backend.

        Returns:
            List of model identifiers (e.g., ["llama3.2:3b", "nomic-embed-text"])
        """
        ...

    async def introspect_model(self, name: str) -> dict[str, Any]:
        """
        Return the static metadata mapping of a model.

        Args:
            name: Model identifier

        Returns:
            Mapping of metadata field name -> value (e.g., {"llama.context_length": 131072})
        """
        ...

    async def embed(
        self,
        model: str,
        input: Union[str, list[str]],
        options: Optional[dict[str, Any]] = None,
    ) -> list[list[float]]:
        """
        Return one embedding vector per input string.
        """
        ...

    def chat(
        self,
        model: str,
        messages: list[dict],
        options: Optional[dict[str, Any]] = None,
    ) -> AsyncIterator[ChatChunk]:
        """
        Stream chat chunks from the model.

        Args:
            model: Model identifier
            messages: Ollama-format messages [{"role": "...", "content": "...", "images": [...]}]
            options: Backend options (e.g., {"num_ctx": 4096, "temperature": 0.2})

        Yields:
            ChatChunk as each one arrives from the model

        Raises:
            Exception on model error (fail loudly)
        """
        ...
