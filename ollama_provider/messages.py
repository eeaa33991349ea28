"""
Message normalization: request variants -> canonical ChatMessage list.

Images found anywhere in the request (image_url blocks, per-turn `images`,
legacy `images`) are collected in order, stripped of any data-URL prefix and
attached to one message: the last user turn, else the last turn, else a
synthesized empty user message.
"""

import base64
import logging
import mimetypes
import re
from typing import Union

from ollama_provider.errors import InvalidRequestError
from ollama_provider.schema import (
    ChatMessage,
    ChatTurn,
    ImageUrlBlock,
    MessagesRequest,
    PromptRequest,
    TextBlock,
)

logger = logging.getLogger(__name__)

_DATA_URL_PREFIX = re.compile(r"^data:image/(.*?);base64,")


def strip_data_url(image: str) -> str:
    """Remove a `data:image/<fmt>;base64,` prefix, leaving the raw payload."""
    return _DATA_URL_PREFIX.sub("", image, count=1)


def encode_image_to_data_url(image_path: str) -> str:
    """Encode an image file to a data URL."""
    mime_type, _ = mimetypes.guess_type(image_path)
    if not mime_type:
        mime_type = "image/png"

    with open(image_path, "rb") as f:
        image_data = base64.b64encode(f.read()).decode("utf-8")

    return f"data:{mime_type};base64,{image_data}"


def _turn_text(turn: ChatTurn) -> str:
    """Join text blocks of a turn with newlines."""
    if isinstance(turn.content, str):
        return turn.content
    return "\n".join(block.text for block in turn.content if isinstance(block, TextBlock))


def _turn_images(turn: ChatTurn) -> list[str]:
    """Collect image_url block URLs, then turn-level images."""
    images = []
    if not isinstance(turn.content, str):
        for block in turn.content:
            if isinstance(block, ImageUrlBlock) and block.image_url and block.image_url.url:
                images.append(block.image_url.url)
    if turn.images:
        images.extend(turn.images)
    return images


def attach_images(messages: list[ChatMessage], images: list[str]) -> list[ChatMessage]:
    """
    Attach images to the last user message (fallbacks described above).

    Mutates and returns `messages`.
    """
    if not images:
        return messages

    for index in range(len(messages) - 1, -1, -1):
        if messages[index].role == "user":
            messages[index] = messages[index].model_copy(update={"images": images})
            logger.debug(f"Added images to last user message at index: {index}")
            return messages

    if messages:
        messages[-1] = messages[-1].model_copy(update={"images": images})
        logger.debug("Added images to last message (non-user)")
    else:
        messages.append(ChatMessage(role="user", content="", images=images))
        logger.debug("Created new user message with images")
    return messages


def collect_images(request: Union[PromptRequest, MessagesRequest]) -> list[str]:
    """All images of a request in order, data-URL prefixes stripped."""
    if isinstance(request, MessagesRequest):
        images = [image for turn in request.messages for image in _turn_images(turn)]
    else:
        images = list(request.images or [])
    return [strip_data_url(image) for image in images]


def normalize_messages(request: Union[PromptRequest, MessagesRequest]) -> list[ChatMessage]:
    """
    Build the canonical chat message list for a request.

    Raises:
        InvalidRequestError: If the request has no messages and no prompt
    """
    chat_messages: list[ChatMessage] = []

    if isinstance(request, MessagesRequest):
        if not request.messages:
            raise InvalidRequestError("Either messages or prompt must be provided")
        for turn in request.messages:
            chat_messages.append(ChatMessage(role=turn.role, content=_turn_text(turn)))
    elif isinstance(request, PromptRequest):
        if request.system_prompt:
            chat_messages.append(ChatMessage(role="system", content=request.system_prompt))
        chat_messages.append(ChatMessage(role="user", content=request.prompt))
    else:
        raise InvalidRequestError("Either messages or prompt must be provided")

    return attach_images(chat_messages, collect_images(request))


def has_images(messages: list[ChatMessage]) -> bool:
    """Check if any message carries images."""
    return any(message.images for message in messages)
