"""Shared test fixtures for ollama-provider tests."""

import json

import pytest

from tests.fake_backend import FakeBackend


# ─────────────────────────────────────────────────────────────────────
# MOCK DATA
# ─────────────────────────────────────────────────────────────────────

MOCK_URL = "http://localhost:11434"
MOCK_URL_2 = "http://192.168.1.20:11434"

MOCK_MODEL_1 = "llama3.2:3b"
MOCK_MODEL_2 = "qwen2.5:7b"
MOCK_EMBED_MODEL = "nomic-embed-text:latest"

MOCK_TAGS_RESPONSE = {
    "models": [
        {"name": MOCK_MODEL_1, "model": MOCK_MODEL_1, "size": 2019393189},
        {"name": MOCK_MODEL_2, "model": MOCK_MODEL_2, "size": 4683087332},
        {"name": MOCK_EMBED_MODEL, "model": MOCK_EMBED_MODEL, "size": 274302450},
    ]
}

MOCK_SHOW_RESPONSE = {
    "modelfile": "FROM llama3.2:3b",
    "parameters": 'stop                           "<|eot_id|>"\nnum_ctx                        4096',
    "template": "{{ .Prompt }}",
    "details": {"family": "llama", "parameter_size": "3.2B"},
    "model_info": {
        "general.architecture": "llama",
        "general.parameter_count": 3212749888,
        "llama.attention.head_count": 24,
        "llama.context_length": 8192,
        "llama.embedding_length": 3072,
    },
}

# 1x1 transparent PNG
MOCK_IMAGE_B64 = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)
MOCK_IMAGE_DATA_URL = f"data:image/png;base64,{MOCK_IMAGE_B64}"


def ndjson_stream(*contents: str, model: str = MOCK_MODEL_1) -> bytes:
    """Build a streaming /api/chat body: one line per content, then the done line."""
    lines = [
        json.dumps({
            "model": model,
            "created_at": "2024-07-01T12:00:00Z",
            "message": {"role": "assistant", "content": content},
            "done": False,
        })
        for content in contents
    ]
    lines.append(json.dumps({
        "model": model,
        "created_at": "2024-07-01T12:00:01Z",
        "message": {"role": "assistant", "content": ""},
        "done": True,
        "done_reason": "stop",
        "prompt_eval_count": 12,
        "eval_count": len(contents),
    }))
    return ("\n".join(lines) + "\n").encode()


# ─────────────────────────────────────────────────────────────────────
# FIXTURES
# ─────────────────────────────────────────────────────────────────────

@pytest.fixture
def provider():
    """ProviderRef for the default mock server and model."""
    from ollama_provider.schema import ProviderRef
    return ProviderRef(url=MOCK_URL, model=MOCK_MODEL_1)


@pytest.fixture
def backend():
    """FakeBackend streaming "a", "b", "c" with an 8192-token model."""
    return FakeBackend(chunks=["a", "b", "c"], metadata={"llama.context_length": 8192})


@pytest.fixture
def cache(backend):
    """ModelInfoCache backed by the fake backend."""
    from ollama_provider.model_cache import ModelInfoCache
    return ModelInfoCache(lambda provider: backend)


@pytest.fixture
def controller(cache, backend):
    """StreamingExecutionController wired to the fake backend."""
    from ollama_provider.streaming import StreamingExecutionController
    return StreamingExecutionController(cache, lambda provider: backend)


@pytest.fixture
def tmp_image(tmp_path):
    """Write a tiny PNG file and return its path."""
    import base64
    path = tmp_path / "pixel.png"
    path.write_bytes(base64.b64decode(MOCK_IMAGE_B64))
    return path
