"""
The Agent Loop - the heart of inbox_bot.

This implements the classic agent pattern:
1. Receive user message
2. Send to LLM with available tools
3. If LLM wants to use tools → execute them → send results back → goto 2
4. If LLM responds with text → return to user

Tool calls from one assistant message are executed strictly in order and
each result is appended before the next call starts, so tool messages
always line up with the call ids that produced them.
"""

import logging
import threading
from dataclasses import replace
from typing import Any

from openai import OpenAI
from rich.console import Console

from .config import Settings, settings
from .conversation import ConversationStore
from .models import Message, RunOptions, RunResult, ToolCall, ToolResult
from .tools import TOOL_SCHEMAS, execute_tool

logger = logging.getLogger(__name__)
console = Console()

EMPTY_RESPONSE = "I was unable to generate a response."
LOOP_LIMIT_RESPONSE = "I stopped after too many tool calls. Please try rephrasing your request."


class Agent:
    """
    Orchestrates one conversation: history, completion requests and tool calls.

    The agent owns a single ConversationStore. Calls to ``run`` are
    serialized, so a second caller waits for the first loop to finish
    instead of interleaving messages.
    """

    def __init__(
        self,
        client: OpenAI | None = None,
        store: ConversationStore | None = None,
        config: Settings | None = None,
        verbose: bool = True,
    ):
        self.settings = config or settings
        self.store = store or ConversationStore()
        self.client = client or OpenAI(api_key=self.settings.get_api_key())
        self.verbose = verbose
        self._lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Conversation helpers
    # -------------------------------------------------------------------------

    def reset(self) -> None:
        """Forget the current conversation."""
        with self._lock:
            self.store.reset()

    def conversation_length(self) -> int:
        return self.store.length()

    def _build_messages(self) -> list[dict[str, Any]]:
        """System prompt followed by the whole (trimmed) history."""
        history = self.store.snapshot()

        # Trimming can cut a turn in half; tool results whose assistant
        # message is gone would be rejected by the API.
        while history and history[0].role == "tool":
            history.pop(0)

        return [Message.system(self.settings.system_prompt).to_api()] + [m.to_api() for m in history]

    # -------------------------------------------------------------------------
    # LLM + tools
    # -------------------------------------------------------------------------

    def _call_llm(self, options: RunOptions) -> Any:
        """Send one chat-completion request. Transport errors propagate."""
        return self.client.chat.completions.create(
            model=self.settings.model_name,
            max_tokens=options.max_tokens or self.settings.max_tokens,
            temperature=options.temperature if options.temperature is not None else self.settings.temperature,
            messages=self._build_messages(),
            tools=TOOL_SCHEMAS,
            tool_choice="auto",
        )

    @staticmethod
    def _top_message(completion: Any) -> Any:
        choices = getattr(completion, "choices", None)
        if not choices:
            return None
        return choices[0].message

    @staticmethod
    def _tokens_used(completion: Any) -> int | None:
        usage = getattr(completion, "usage", None)
        return usage.total_tokens if usage else None

    def _execute(self, call: ToolCall) -> ToolResult:
        """Run one tool call and report it on the console."""
        if self.verbose:
            console.print(f"[dim]🔧 Using tool: {call.name}[/dim]")
        logger.info("Executing tool %s (call %s)", call.name, call.id)

        result = execute_tool(call.name, call.arguments)

        if self.verbose:
            if result.success:
                console.print("[green]   ✓ Success[/green]")
            else:
                console.print(f"[red]   ❌ {result.output}[/red]")
        if not result.success:
            logger.info("Tool %s failed: %s", call.name, result.output)

        return result

    # -------------------------------------------------------------------------
    # Main entry points
    # -------------------------------------------------------------------------

    def run(self, user_message: str, options: RunOptions | None = None) -> RunResult:
        """
        Process a user message and return the assistant's response.

        This is the main entry point - it handles the full agent loop:
        user message → LLM → (tool calls → results →)* final response

        A failing completion request raises out of here; whatever was
        already appended to the history stays there.
        """
        with self._lock:
            return self._run(user_message, options or RunOptions())

    def _run(self, user_message: str, options: RunOptions) -> RunResult:
        if options.reset:
            self.store.reset()

        self.store.append(Message.user(user_message))
        self.store.trim(self.settings.max_history_length)

        completion = self._call_llm(options)
        message = self._top_message(completion)

        tool_call_count = 0
        rounds = 0

        while message is not None and message.tool_calls:
            if rounds >= self.settings.max_tool_iterations:
                # The unanswered tool calls are dropped, not stored
                logger.warning("Stopping after %d tool rounds", rounds)
                self.store.append(Message.assistant(LOOP_LIMIT_RESPONSE))
                return RunResult(
                    response=LOOP_LIMIT_RESPONSE,
                    tool_calls=tool_call_count,
                    tokens_used=self._tokens_used(completion),
                )
            rounds += 1

            calls = [
                ToolCall(id=tc.id, name=tc.function.name, arguments=tc.function.arguments or "{}")
                for tc in message.tool_calls
            ]
            self.store.append(Message.assistant(message.content, calls))

            for call in calls:
                tool_call_count += 1
                result = self._execute(call)
                self.store.append(Message.tool(call.id, result.output))

            completion = self._call_llm(options)
            message = self._top_message(completion)

        final_response = (message.content if message is not None else None) or EMPTY_RESPONSE
        self.store.append(Message.assistant(final_response))

        return RunResult(
            response=final_response,
            tool_calls=tool_call_count,
            tokens_used=self._tokens_used(completion),
        )

    def query(self, user_message: str, options: RunOptions | None = None) -> RunResult:
        """Single-turn question: resets the conversation first."""
        return self.run(user_message, replace(options or RunOptions(), reset=True))


# =============================================================================
# Convenience function
# =============================================================================

def create_agent(verbose: bool = True) -> Agent:
    """Create a new agent with a fresh conversation."""
    return Agent(verbose=verbose)
