"""
In-memory conversation store.

Holds the ordered turns of a single conversation together with the model
limits the truncator budgets against. Every append may shrink the stored
history as a side effect; callers never invoke truncation themselves.
"""

import logging
from typing import TYPE_CHECKING, Optional

from .truncation import truncate_conversation_if_needed
from .turns import Turn, assistant_text, now_ms, user_text

if TYPE_CHECKING:
    from ..models.catalog import ModelInfo

logger = logging.getLogger(__name__)

DEFAULT_MAX_OUTPUT_TOKENS = 8192
DEFAULT_CONTEXT_WINDOW = 1_048_576


class Conversation:
    """
    Ordered, mutable sequence of turns for one conversation.

    Not safe for concurrent mutation: a conversation belongs to exactly one
    in-flight engine run at a time.
    """

    def __init__(
        self,
        model_max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
        context_window_tokens: int = DEFAULT_CONTEXT_WINDOW,
        block_token_cost: int = 0,
    ) -> None:
        self._turns: list[Turn] = []
        self.model_max_output_tokens = model_max_output_tokens
        self.context_window_tokens = context_window_tokens
        self.block_token_cost = block_token_cost

    def set_model_limits(self, max_output_tokens: int, context_window: int) -> None:
        """Update the limits used by later truncation checks.

        Existing history is not re-truncated until the next append.
        """
        self.model_max_output_tokens = max_output_tokens
        self.context_window_tokens = context_window

    def set_model_limits_from(self, model_info: "ModelInfo") -> None:
        """Update the limits from a model catalog entry."""
        self.set_model_limits(model_info.max_output_tokens, model_info.context_window)

    def add(self, turn: Turn) -> None:
        """Append a turn, stamping it if needed, then apply the sliding window."""
        if turn.timestamp is None:
            turn.timestamp = now_ms()
        self._turns.append(turn)
        self._turns = truncate_conversation_if_needed(
            self._turns,
            self.model_max_output_tokens,
            self.context_window_tokens,
            self.block_token_cost,
        )

    def add_user_text(self, text: str) -> Turn:
        turn = user_text(text)
        self.add(turn)
        return turn

    def add_assistant_text(self, text: str) -> Turn:
        turn = assistant_text(text)
        self.add(turn)
        return turn

    def messages(self) -> list[Turn]:
        """Return a copy of the stored turns."""
        return list(self._turns)

    # Alias matching the store's read operation name.
    all = messages

    def last(self) -> Optional[Turn]:
        return self._turns[-1] if self._turns else None

    def clear(self) -> None:
        """Remove every turn."""
        self._turns = []

    def truncate_at(self, index: int) -> None:
        """Keep only turns ``[0, index)``. Out-of-range indexes are ignored."""
        if 0 <= index < len(self._turns):
            logger.debug("Truncating conversation at index %d", index)
            self._turns = self._turns[:index]

    def __len__(self) -> int:
        return len(self._turns)
