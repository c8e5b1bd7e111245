"""
Sliding-window truncation of conversation history.

The first turn always survives (it anchors the conversation, e.g. a system
framing or the original task). Older turns right after it are dropped in even
counts so that request/response pairs, including tool calls and their
results, are never split.
"""

import logging
import math

from .tokens import estimate_tokens
from .turns import ImageBlock, TextBlock, ToolCallBlock, ToolResultBlock, Turn

logger = logging.getLogger(__name__)

# Fraction of the context window held back as a safety margin.
TOKEN_BUFFER_FRACTION = 0.1

# Fraction of the model's max output tokens reserved for the next response.
RESPONSE_RESERVE_FRACTION = 0.2

# Fraction of removable turns dropped when the budget is exceeded.
DEFAULT_TRUNCATION_FRACTION = 0.5


def truncate_conversation(turns: list[Turn], frac_to_remove: float) -> list[Turn]:
    """
    Drop the oldest turns after the first one.

    Args:
        turns: Conversation turns, oldest first.
        frac_to_remove: Fraction (0..1] of the turns after the first to drop.

    Returns:
        A new list: the first turn followed by the surviving tail, in order.
        The number of dropped turns is always even.
    """
    if len(turns) <= 1 or frac_to_remove <= 0:
        return list(turns)

    removable = len(turns) - 1
    to_remove = math.floor(removable * frac_to_remove)
    to_remove -= to_remove % 2

    if to_remove <= 0:
        return list(turns)

    return [turns[0], *turns[to_remove + 1 :]]


def _block_count(turn: Turn) -> int:
    if isinstance(turn.content, str):
        return 0
    count = 0
    for block in turn.content:
        if isinstance(block, (ImageBlock, ToolCallBlock, ToolResultBlock)):
            count += 1
        elif isinstance(block, TextBlock):
            continue
        else:
            raise TypeError(f"Unsupported content block: {block!r}")
    return count


def estimate_conversation_tokens(turns: list[Turn], block_token_cost: int = 0) -> int:
    """
    Estimate the token footprint of a conversation.

    Only plain-text turns are measured. Structured blocks (images, tool calls,
    tool results) count ``block_token_cost`` each, which defaults to zero.
    """
    total = 0
    for turn in turns:
        if isinstance(turn.content, str):
            total += estimate_tokens(turn.content)
        elif block_token_cost:
            total += _block_count(turn) * block_token_cost
    return total


def allowed_tokens(model_max_output_tokens: int, context_window_tokens: int) -> float:
    """Tokens available for history after the buffer and response reserve."""
    reserved = model_max_output_tokens * RESPONSE_RESERVE_FRACTION
    return context_window_tokens * (1 - TOKEN_BUFFER_FRACTION) - reserved


def truncate_conversation_if_needed(
    turns: list[Turn],
    model_max_output_tokens: int,
    context_window_tokens: int,
    block_token_cost: int = 0,
) -> list[Turn]:
    """
    Halve the removable history when it no longer fits the context budget.

    Args:
        turns: Conversation turns, oldest first.
        model_max_output_tokens: The model's maximum response length.
        context_window_tokens: The model's total context capacity.
        block_token_cost: Fixed estimate per structured content block.

    Returns:
        The original turns (as a new list) or a truncated copy.
    """
    if len(turns) <= 1:
        return list(turns)

    total = estimate_conversation_tokens(turns, block_token_cost)
    allowed = allowed_tokens(model_max_output_tokens, context_window_tokens)
    logger.debug("History estimate: %d tokens (allowed %.0f)", total, allowed)

    if total > allowed:
        truncated = truncate_conversation(turns, DEFAULT_TRUNCATION_FRACTION)
        logger.info(
            "Truncated conversation history: %d -> %d turns",
            len(turns),
            len(truncated),
        )
        return truncated

    return list(turns)
