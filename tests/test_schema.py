"""Tests for ollama_provider.schema - request variant resolution."""

import pytest

from ollama_provider.errors import ConfigurationError
from ollama_provider.schema import (
    EmbedRequest,
    MessagesRequest,
    OtherBlock,
    PromptRequest,
    ProviderRef,
    TextBlock,
    parse_embed_request,
    parse_execute_request,
)
from tests.conftest import MOCK_MODEL_1, MOCK_URL

PROVIDER = {"url": MOCK_URL, "model": MOCK_MODEL_1}


class TestParseExecuteRequest:

    def test_messages_shape(self):
        request = parse_execute_request({
            "provider": PROVIDER,
            "messages": [{"role": "user", "content": "hi"}],
        })
        assert isinstance(request, MessagesRequest)
        assert request.provider == ProviderRef(url=MOCK_URL, model=MOCK_MODEL_1)

    def test_prompt_shape_with_camel_case_system_prompt(self):
        request = parse_execute_request({
            "provider": PROVIDER,
            "systemPrompt": "sys",
            "prompt": "hello",
            "options": {"temperature": 0.1},
        })
        assert isinstance(request, PromptRequest)
        assert request.system_prompt == "sys"
        assert request.options == {"temperature": 0.1}

    def test_empty_prompt_is_still_prompt_shape(self):
        request = parse_execute_request({"provider": PROVIDER, "prompt": ""})
        assert isinstance(request, PromptRequest)

    def test_empty_messages_fall_back_to_prompt(self):
        request = parse_execute_request({"provider": PROVIDER, "messages": [], "prompt": "hello"})
        assert isinstance(request, PromptRequest)
        assert request.prompt == "hello"

    def test_neither_shape_raises(self):
        with pytest.raises(ConfigurationError, match="Either messages or prompt"):
            parse_execute_request({"provider": PROVIDER})

    def test_unknown_content_block_types_accepted(self):
        request = parse_execute_request({
            "provider": PROVIDER,
            "messages": [{
                "role": "user",
                "content": [
                    {"type": "text", "text": "listen"},
                    {"type": "input_audio", "input_audio": {"data": "AAAA", "format": "wav"}},
                    {"text": "no type"},
                ],
            }],
        })

        blocks = request.messages[0].content
        assert isinstance(blocks[0], TextBlock)
        assert isinstance(blocks[1], OtherBlock)
        assert blocks[1].type == "input_audio"
        assert isinstance(blocks[2], OtherBlock)

    def test_invalid_role_raises_configuration_error(self):
        with pytest.raises(ConfigurationError, match="Invalid execute request"):
            parse_execute_request({
                "provider": PROVIDER,
                "messages": [{"role": "tool", "content": "x"}],
            })

    def test_missing_provider_raises_configuration_error(self):
        with pytest.raises(ConfigurationError):
            parse_execute_request({"prompt": "hello"})

    def test_model_instance_passes_through(self):
        request = PromptRequest(provider=PROVIDER, prompt="hello")
        assert parse_execute_request(request) is request


class TestParseEmbedRequest:

    def test_single_input(self):
        request = parse_embed_request({"provider": PROVIDER, "input": "hello"})
        assert request.inputs() == ["hello"]

    def test_list_input(self):
        request = parse_embed_request({"provider": PROVIDER, "input": ["a", "bb"]})
        assert request.inputs() == ["a", "bb"]

    def test_deprecated_text_field(self):
        request = parse_embed_request({"provider": PROVIDER, "text": ["legacy"]})
        assert request.input == ["legacy"]

    def test_input_takes_precedence_over_text(self):
        request = parse_embed_request({"provider": PROVIDER, "input": "new", "text": "old"})
        assert request.input == "new"

    @pytest.mark.parametrize("raw", [
        {"provider": PROVIDER},
        {"provider": PROVIDER, "input": ""},
        {"provider": PROVIDER, "input": []},
        {"provider": PROVIDER, "text": None},
    ])
    def test_empty_input_raises(self, raw):
        with pytest.raises(ConfigurationError, match="Either input or text"):
            parse_embed_request(raw)

    def test_empty_model_instance_raises(self):
        with pytest.raises(ConfigurationError):
            parse_embed_request(EmbedRequest(provider=PROVIDER, input=""))
