"""
Pydantic models for requests, canonical chat messages and stream chunks.

Execute requests come in two shapes: the legacy prompt shape
(prompt + optional system prompt) and the structured multi-turn shape
(messages with text/image content blocks). Both are modelled as variants
of one tagged union and resolved once, at the entry point, by
parse_execute_request(). Embed requests accept either `input` or the
deprecated `text` field; parse_embed_request() folds `text` into `input`.
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, TypeAdapter, ValidationError

from ollama_provider.errors import ConfigurationError

Role = Literal["system", "user", "assistant"]


class ProviderRef(BaseModel):
    """Identifies a backend endpoint and the model to run on it."""
    url: str
    model: str = ""
    name: Optional[str] = None  # Display name only


class ChatMessage(BaseModel):
    """Canonical chat message consumed by the backend chat call.

    `images` holds raw base64 payloads (data-URL prefix already stripped).
    """
    role: Role
    content: str
    images: Optional[list[str]] = None

    def to_payload(self) -> dict:
        """Convert to Ollama /api/chat message format."""
        return self.model_dump(exclude_none=True)


# ─────────────────────────────────────────────────────────────────────
# CONTENT BLOCKS
# ─────────────────────────────────────────────────────────────────────

class TextBlock(BaseModel):
    type: Literal["text"] = "text"
    text: str = ""


class ImageUrl(BaseModel):
    url: str = ""


class ImageUrlBlock(BaseModel):
    type: Literal["image_url"] = "image_url"
    image_url: Optional[ImageUrl] = None


class OtherBlock(BaseModel):
    """Any other block type (audio, files, ...). Accepted and ignored."""
    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None


def _block_tag(value: Any) -> str:
    block_type = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    return block_type if block_type in ("text", "image_url") else "other"


ContentBlock = Annotated[
    Union[
        Annotated[TextBlock, Tag("text")],
        Annotated[ImageUrlBlock, Tag("image_url")],
        Annotated[OtherBlock, Tag("other")],
    ],
    Discriminator(_block_tag),
]


class ChatTurn(BaseModel):
    """A single turn of a structured request.

    Content can be:
    - str: Plain text message
    - list: Content blocks (text + image_url) in OpenAI format
    """
    role: Role
    content: Union[str, list[ContentBlock]]
    images: Optional[list[str]] = None


# ─────────────────────────────────────────────────────────────────────
# REQUESTS
# ─────────────────────────────────────────────────────────────────────

class PromptRequest(BaseModel):
    """Legacy single-prompt request."""
    model_config = ConfigDict(populate_by_name=True)

    kind: Literal["prompt"] = "prompt"
    provider: ProviderRef
    prompt: str
    system_prompt: Optional[str] = Field(default=None, alias="systemPrompt")
    images: Optional[list[str]] = None
    options: Optional[dict[str, Any]] = None


class MessagesRequest(BaseModel):
    """Structured multi-turn request."""
    kind: Literal["messages"] = "messages"
    provider: ProviderRef
    messages: list[ChatTurn]
    options: Optional[dict[str, Any]] = None


ExecuteRequest = Annotated[Union[PromptRequest, MessagesRequest], Field(discriminator="kind")]

_execute_adapter: TypeAdapter = TypeAdapter(ExecuteRequest)


class EmbedRequest(BaseModel):
    """Embedding request: one string or an ordered list of strings."""
    provider: ProviderRef
    input: Union[str, list[str]] = ""

    def inputs(self) -> list[str]:
        """Return input as a list, one entry per vector expected back."""
        if isinstance(self.input, str):
            return [self.input]
        return list(self.input)


class ChatChunk(BaseModel):
    """One unit of streamed chat output from the backend."""
    content: str = ""
    done: bool = False
    done_reason: Optional[str] = None
    prompt_eval_count: Optional[int] = None
    eval_count: Optional[int] = None


# ─────────────────────────────────────────────────────────────────────
# ENTRY-POINT RESOLUTION
# ─────────────────────────────────────────────────────────────────────

def parse_execute_request(
    raw: Union[dict, PromptRequest, MessagesRequest],
) -> Union[PromptRequest, MessagesRequest]:
    """
    Resolve a raw execute request into exactly one request variant.

    A non-empty `messages` list selects the structured shape; otherwise a
    present `prompt` selects the legacy shape.

    Raises:
        ConfigurationError: If neither shape is satisfiable or a field is invalid
    """
    if isinstance(raw, (PromptRequest, MessagesRequest)):
        return raw

    data = dict(raw)
    if "kind" not in data:
        if data.get("messages"):
            data["kind"] = "messages"
        elif data.get("prompt") is not None:
            data["kind"] = "prompt"
            data.pop("messages", None)
        else:
            raise ConfigurationError("Either messages or prompt must be provided")

    try:
        return _execute_adapter.validate_python(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid execute request: {e}") from e


def parse_embed_request(raw: Union[dict, EmbedRequest]) -> EmbedRequest:
    """
    Resolve a raw embed request, folding the deprecated `text` field into `input`.

    Raises:
        ConfigurationError: If neither input nor text is provided
    """
    if isinstance(raw, EmbedRequest):
        request = raw
    else:
        data = dict(raw)
        text = data.pop("text", None)
        if data.get("input") is None:
            data["input"] = text
        if not data["input"]:
            raise ConfigurationError("Either input or text parameter must be provided")
        try:
            request = EmbedRequest.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid embed request: {e}") from e

    if not request.input:
        raise ConfigurationError("Either input or text parameter must be provided")
    return request
