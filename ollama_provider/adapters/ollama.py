"""
OllamaClient - Ollama REST implementation of InferenceBackend.

Talks to Ollama's native API (not the OpenAI-compatible /v1 layer):
- GET  /api/tags   model discovery
- POST /api/show   model metadata (context window)
- POST /api/chat   streaming chat, newline-delimited JSON
- POST /api/embed  embeddings

A fresh httpx.AsyncClient is opened per call; cancelling the task that
consumes chat() closes the underlying stream.
"""

import json
import logging
from typing import Any, AsyncGenerator, Optional, Union

import httpx

from ollama_provider.config import get_timeout_seconds
from ollama_provider.errors import MalformedResponseError, OllamaError
from ollama_provider.schema import ChatChunk

logger = logging.getLogger(__name__)


def parse_ollama_error(body: bytes, status_code: int) -> str:
    """Extract a user-friendly error message from an Ollama error body."""
    try:
        data = json.loads(body)
        # Ollama returns {"error": "..."}
        if isinstance(data, dict):
            error = data.get("error")
            if isinstance(error, str) and error:
                return error
            if isinstance(error, dict) and error.get("message"):
                return error["message"]
    except (json.JSONDecodeError, UnicodeDecodeError):
        pass
    return f"HTTP {status_code}: {body[:200].decode(errors='replace')}"


def parse_chat_line(line: str, model: str) -> ChatChunk:
    """
    Parse one NDJSON line of a streaming /api/chat response.

    Raises:
        OllamaError: If the backend reports an error mid-stream
        MalformedResponseError: If the line is not a recognizable chunk
    """
    try:
        data = json.loads(line)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(
            f"Unparseable chunk from '{model}': {line[:200]}"
        ) from e

    if not isinstance(data, dict):
        raise MalformedResponseError(f"Unexpected chunk from '{model}': {line[:200]}")

    if data.get("error"):
        raise OllamaError(f"Ollama error for '{model}': {data['error']}")

    message = data.get("message")
    done = bool(data.get("done", False))
    if not isinstance(message, dict) and not done:
        raise MalformedResponseError(f"Chunk without message from '{model}': {line[:200]}")

    return ChatChunk(
        content=(message or {}).get("content") or "",
        done=done,
        done_reason=data.get("done_reason"),
        prompt_eval_count=data.get("prompt_eval_count"),
        eval_count=data.get("eval_count"),
    )


class OllamaClient:
    """
    Ollama implementation of InferenceBackend protocol.

    Usage:
        client = OllamaClient("http://localhost:11434")
        async for chunk in client.chat("llama3.2", [{"role": "user", "content": "Hi"}]):
            print(chunk.content, end="")
    """

    def __init__(self, base_url: str, timeout_seconds: Optional[float] = None):
        """
        Args:
            base_url: Ollama server URL (e.g., http://localhost:11434)
            timeout_seconds: Per-request timeout. Falls back to OLLAMA_TIMEOUT_SECONDS.
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds if timeout_seconds is not None else get_timeout_seconds()

    @property
    def base_url(self) -> str:
        return self._base_url

    async def _post_json(self, path: str, payload: dict, what: str) -> Any:
        """POST a JSON payload and return the decoded body."""
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(f"{self._base_url}{path}", json=payload)
        except httpx.TimeoutException as e:
            raise OllamaError(f"Ollama timeout {what}: {e}") from e
        except httpx.HTTPError as e:
            raise OllamaError(f"Ollama HTTP error {what}: {e}") from e

        if response.status_code >= 400:
            msg = parse_ollama_error(response.content, response.status_code)
            raise OllamaError(f"Ollama error {what}: {msg}")
        try:
            return response.json()
        except json.JSONDecodeError as e:
            raise MalformedResponseError(f"Invalid JSON {what}: {response.text[:200]}") from e

    async def list_models(self) -> list[str]:
        """Return names of all models pulled on this server."""
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(f"{self._base_url}/api/tags")
        except httpx.HTTPError as e:
            raise OllamaError(f"Ollama HTTP error listing models: {e}") from e

        if response.status_code >= 400:
            msg = parse_ollama_error(response.content, response.status_code)
            raise OllamaError(f"Ollama error listing models: {msg}")
        try:
            data = response.json()
        except json.JSONDecodeError as e:
            raise MalformedResponseError(f"Invalid JSON listing models: {response.text[:200]}") from e

        # Ollama returns {"models": [{"name": "llama3.2:latest", "model": "llama3.2:latest", ...}]}
        names = []
        for entry in data.get("models", []):
            name = entry.get("name") or entry.get("model")
            if name:
                names.append(name)
        return names

    async def introspect_model(self, name: str) -> dict[str, Any]:
        """
        Return model metadata from /api/show.

        Only the `model_info` mapping is returned. The Modelfile `parameters`
        block is ignored: its num_ctx is the default window, not the maximum.

        Raises:
            MalformedResponseError: If the response carries no model_info
        """
        data = await self._post_json("/api/show", {"model": name}, f"for '{name}'")
        if not isinstance(data, dict) or not isinstance(data.get("model_info"), dict):
            raise MalformedResponseError(f"No model_info in /api/show response for '{name}'")

        return dict(data["model_info"])

    async def embed(
        self,
        model: str,
        input: Union[str, list[str]],
        options: Optional[dict[str, Any]] = None,
    ) -> list[list[float]]:
        """Return embeddings from /api/embed (empty list if none came back)."""
        payload: dict[str, Any] = {"model": model, "input": input}
        if options:
            payload["options"] = options

        data = await self._post_json("/api/embed", payload, f"embedding with '{model}'")
        if not isinstance(data, dict):
            raise MalformedResponseError(f"Unexpected /api/embed response for '{model}'")
        return data.get("embeddings") or []

    async def chat(
        self,
        model: str,
        messages: list[dict],
        options: Optional[dict[str, Any]] = None,
    ) -> AsyncGenerator[ChatChunk, None]:
        """
        Stream a chat completion from /api/chat.

        Yields ChatChunk per NDJSON line, stopping after the `done` chunk.
        Raises OllamaError with user-friendly message on error.
        """
        payload: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "stream": True,
        }
        if options:
            payload["options"] = options

        logger.debug(f"POST {self._base_url}/api/chat model={model} options={options}")
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                async with client.stream(
                    "POST",
                    f"{self._base_url}/api/chat",
                    json=payload,
                ) as response:
                    if response.status_code >= 400:
                        # Read the error body for streaming responses
                        error_body = await response.aread()
                        msg = parse_ollama_error(error_body, response.status_code)
                        raise OllamaError(f"Ollama error for '{model}': {msg}")

                    async for line in response.aiter_lines():
                        if not line.strip():
                            continue
                        chunk = parse_chat_line(line, model)
                        yield chunk
                        if chunk.done:
                            break

        except httpx.TimeoutException as e:
            raise OllamaError(f"Ollama timeout for '{model}': {e}") from e
        except httpx.HTTPError as e:
            raise OllamaError(f"Ollama HTTP error for '{model}': {e}") from e
