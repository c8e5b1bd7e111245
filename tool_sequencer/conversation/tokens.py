"""Rough token estimation for context budgeting."""

# One token per character. Overestimates English text but is close for
# CJK-heavy conversations, so the window errs on the side of truncating early.
CHARS_PER_TOKEN = 1


def estimate_tokens(text: str) -> int:
    """Approximate the token cost of a text blob. Never exact."""
    if not text:
        return 0
    return -(-len(text) // CHARS_PER_TOKEN)
