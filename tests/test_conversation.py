"""Tests for the in-memory conversation store."""

from inbox_bot.conversation import ConversationStore
from inbox_bot.models import Message, ToolCall


def _fill(store: ConversationStore, count: int) -> list[Message]:
    messages = [Message.user(f"message {i}") for i in range(count)]
    for message in messages:
        store.append(message)
    return messages


class TestAppend:
    """Tests for appending and reading back messages."""

    def test_new_store_is_empty(self):
        """Test a fresh store has no messages."""
        store = ConversationStore()
        assert store.length() == 0
        assert store.snapshot() == []

    def test_length_counts_appends(self):
        """Test length equals the number of appends."""
        store = ConversationStore()
        _fill(store, 7)
        assert store.length() == 7
        assert len(store) == 7

    def test_snapshot_preserves_order(self):
        """Test snapshot returns messages in append order."""
        store = ConversationStore()
        messages = _fill(store, 5)
        assert store.snapshot() == messages

    def test_snapshot_is_a_copy(self):
        """Test mutating a snapshot does not touch the store."""
        store = ConversationStore()
        _fill(store, 3)

        snapshot = store.snapshot()
        snapshot.clear()

        assert store.length() == 3

    def test_append_updates_timestamp(self):
        """Test append bumps the last-update timestamp."""
        store = ConversationStore()
        before = store.state.updated_at
        store.append(Message.user("hello"))
        assert store.state.updated_at >= before

    def test_state_is_a_copy(self):
        """Test the exposed state cannot be used to mutate history."""
        store = ConversationStore()
        _fill(store, 2)

        state = store.state
        state.messages.append(Message.user("sneaky"))

        assert store.length() == 2


class TestTrim:
    """Tests for history trimming."""

    def test_trim_noop_under_limit(self):
        """Test trim leaves short histories alone."""
        store = ConversationStore()
        messages = _fill(store, 10)
        store.trim(5)
        assert store.snapshot() == messages

    def test_trim_keeps_most_recent(self):
        """Test trim keeps exactly the last 2 * max_turns messages."""
        store = ConversationStore()
        messages = _fill(store, 45)

        store.trim(20)

        assert store.length() == 40
        assert store.snapshot() == messages[-40:]

    def test_trim_bound_for_various_limits(self):
        """Test length never exceeds 2 * max_turns after trim."""
        for total in (0, 1, 2, 3, 10, 41):
            for max_turns in (1, 2, 5, 20):
                store = ConversationStore()
                messages = _fill(store, total)
                store.trim(max_turns)
                assert store.length() <= 2 * max_turns
                assert store.snapshot() == messages[len(messages) - store.length():]

    def test_trim_counts_tool_messages(self):
        """Test tool messages count toward the trim budget."""
        store = ConversationStore()
        store.append(Message.user("list my mail"))
        store.append(Message.assistant(None, [ToolCall(id="call_1", name="gmail_list_messages")]))
        store.append(Message.tool("call_1", "No emails found matching your criteria."))
        store.append(Message.assistant("Your inbox is empty."))

        store.trim(1)

        assert [m.role for m in store.snapshot()] == ["tool", "assistant"]


class TestReset:
    """Tests for resetting the conversation."""

    def test_reset_clears_messages(self):
        """Test reset empties the history."""
        store = ConversationStore()
        _fill(store, 4)
        store.reset()
        assert store.length() == 0

    def test_reset_refreshes_timestamps(self):
        """Test reset starts a new conversation with new timestamps."""
        store = ConversationStore()
        created = store.state.created_at
        store.reset()
        assert store.state.created_at >= created
