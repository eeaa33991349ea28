"""
Context-window sizing heuristic.

Decides which num_ctx to request for an input of a given length:
- reuse the last requested window while the input still fits in it,
- otherwise grow to the estimate (or the default, if larger) plus a
  20% buffer, never beyond the model's hard limit.

No tokenizer is invoked; tokens are estimated from character count.
"""

import math
from dataclasses import dataclass
from typing import Optional

from ollama_provider.config import CONTEXT_BUFFER_MULTIPLIER, SYMBOLS_PER_TOKEN


@dataclass(frozen=True)
class ContextDecision:
    """
    Result of optimize_context().

    requested_size is None when the backend default should be used
    (nothing is sent). should_persist asks the caller to remember
    requested_size as the model's new last context length.
    """
    requested_size: Optional[int]
    should_persist: bool


def estimate_tokens(input_length: int) -> int:
    """Approximate token count for `input_length` characters."""
    return math.ceil(input_length / SYMBOLS_PER_TOKEN)


def optimize_context(
    input_length: int,
    last_context_length: int,
    default_context_length: int,
    hard_limit: int,
) -> ContextDecision:
    """
    Compute the context window to request.

    Args:
        input_length: Total characters of input
        last_context_length: Window size last requested for this model
        default_context_length: Backend default window
        hard_limit: Model's maximum window; 0 means unknown (no cap)

    Returns:
        ContextDecision
    """
    estimated_tokens = estimate_tokens(input_length)

    # Input fits in the last used window: reuse it, but only send it
    # when it differs from what the backend would pick anyway
    if estimated_tokens <= last_context_length:
        return ContextDecision(
            requested_size=last_context_length if last_context_length > default_context_length else None,
            should_persist=False,
        )

    target = math.ceil(max(estimated_tokens, default_context_length) * CONTEXT_BUFFER_MULTIPLIER)
    if hard_limit > 0:
        target = min(target, hard_limit)

    return ContextDecision(
        requested_size=target,
        should_persist=target > last_context_length,
    )
