"""
In-memory conversation history for a single chat session.

Nothing here is written to disk: the history lives for as long as the
process (or until it is reset).
"""

from dataclasses import replace
from datetime import UTC, datetime

from .models import ConversationState, Message


class ConversationStore:
    """Owns the ordered message list of one conversation."""

    def __init__(self):
        self._state = ConversationState()

    def reset(self) -> None:
        """Drop all messages and start over with fresh timestamps."""
        self._state = ConversationState()

    def append(self, message: Message) -> None:
        """Add a message to the end of the history."""
        self._state.messages.append(message)
        self._state.updated_at = datetime.now(UTC)

    def trim(self, max_turns: int) -> None:
        """Keep only the most recent ``2 * max_turns`` messages.

        A turn is approximated as one user + one assistant message, so tool
        messages count against the budget too and a cut can land in the
        middle of a turn.
        """
        limit = max_turns * 2
        if len(self._state.messages) > limit:
            self._state.messages = self._state.messages[-limit:]

    def length(self) -> int:
        return len(self._state.messages)

    def __len__(self) -> int:
        return self.length()

    def snapshot(self) -> list[Message]:
        """Return a copy of the messages; the live list is never handed out."""
        return list(self._state.messages)

    @property
    def state(self) -> ConversationState:
        """Copy of the full state, timestamps included."""
        return replace(self._state, messages=self.snapshot())
