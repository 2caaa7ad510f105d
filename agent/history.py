"""Conversation history bounds."""

from typing import List

from clawloop_constants import MAX_HISTORY_MESSAGES
from providers.base import ChatMessage


def trim_history(history: List[ChatMessage], max_messages: int = MAX_HISTORY_MESSAGES) -> None:
    """Drop the oldest non-system messages beyond ``max_messages``, in place.

    A leading system message is always kept and does not count toward the
    limit.
    """
    has_system = bool(history) and history[0].role == "system"
    start = 1 if has_system else 0
    excess = (len(history) - start) - max_messages
    if excess > 0:
        del history[start:start + excess]
