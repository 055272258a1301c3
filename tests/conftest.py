"""Shared fixtures and fakes for the test suite."""

from types import SimpleNamespace
from unittest.mock import Mock

import pytest

from inbox_bot.config import Settings


def make_tool_call(call_id: str, name: str, arguments: str = "{}") -> SimpleNamespace:
    """Build an object shaped like an OpenAI tool call."""
    return SimpleNamespace(
        id=call_id,
        type="function",
        function=SimpleNamespace(name=name, arguments=arguments),
    )


def make_completion(content: str | None = None, tool_calls: list | None = None, total_tokens: int | None = None):
    """Build an object shaped like an OpenAI chat completion."""
    message = SimpleNamespace(role="assistant", content=content, tool_calls=tool_calls)
    usage = SimpleNamespace(total_tokens=total_tokens) if total_tokens is not None else None
    return SimpleNamespace(choices=[SimpleNamespace(index=0, message=message)], usage=usage)


@pytest.fixture
def test_settings(tmp_path):
    """Settings isolated from the developer's environment and .env file."""
    return Settings(
        _env_file=None,
        openai_api_key="test-key",
        state_dir=tmp_path / "state",
        system_prompt="You are a test assistant.",
        max_history_length=20,
        max_tool_iterations=10,
    )


@pytest.fixture
def openai_client():
    """Mock OpenAI client; set `chat.completions.create.side_effect` per test."""
    return Mock()
