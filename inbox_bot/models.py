"""
Data types shared by the agent loop, the conversation store and the tools.

Messages are kept as small dataclasses and only turned into the OpenAI
chat-completions dict shape when a request is built.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

Role = Literal["system", "user", "assistant", "tool"]


@dataclass(frozen=True)
class ToolCall:
    """A model-issued request to invoke one named tool."""

    id: str
    name: str
    arguments: str = "{}"  # JSON-encoded, exactly as the model produced it

    def to_api(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass(frozen=True)
class Message:
    """One entry of the conversation history.

    - system/user: ``content`` is plain text
    - assistant: optional ``content`` plus zero or more ``tool_calls``
    - tool: ``content`` is the tool output, ``tool_call_id`` the call it answers
    """

    role: Role
    content: str | None = None
    tool_calls: tuple[ToolCall, ...] = ()
    tool_call_id: str | None = None

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str | None, tool_calls: list[ToolCall] | tuple[ToolCall, ...] = ()) -> "Message":
        return cls(role="assistant", content=content, tool_calls=tuple(tool_calls))

    @classmethod
    def tool(cls, tool_call_id: str, content: str) -> "Message":
        return cls(role="tool", content=content, tool_call_id=tool_call_id)

    def to_api(self) -> dict[str, Any]:
        """Render the message for the chat-completions endpoint."""
        message: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.role == "assistant" and self.tool_calls:
            message["tool_calls"] = [call.to_api() for call in self.tool_calls]
        if self.role == "tool":
            message["tool_call_id"] = self.tool_call_id
        return message


@dataclass
class ConversationState:
    """Message history of one conversation plus its timestamps."""

    messages: list[Message] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class ToolResult:
    """Outcome of a single tool execution.

    ``output`` is always readable text that can be sent back to the model,
    whether or not the tool succeeded.
    """

    success: bool
    output: str
    error: str | None = None


@dataclass(frozen=True)
class RunResult:
    """What the agent hands back to the CLI after a full loop."""

    response: str
    tool_calls: int
    tokens_used: int | None = None


@dataclass(frozen=True)
class RunOptions:
    """Per-run overrides; ``None`` falls back to settings."""

    reset: bool = False
    max_tokens: int | None = None
    temperature: float | None = None
