"""
Tools that the agent can use to manage the inbox.

Each tool is defined as:
1. A schema (for the LLM to understand how to call it)
2. An implementation function returning the text the LLM will read

The schema list and the implementation table are kept side by side and
checked against each other at import time.
"""

import inspect
import json
import logging
from typing import Any

from googleapiclient.errors import HttpError

from . import gmail
from .models import ToolResult

logger = logging.getLogger(__name__)

DEFAULT_LIST_RESULTS = 10
MAX_LIST_RESULTS = 50
PREVIEW_LENGTH = 100


def _function_tool(name: str, description: str, properties: dict[str, Any], required: list[str]) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {
                "type": "object",
                "properties": properties,
                "required": required,
            },
        },
    }


def _message_id_param(action: str) -> dict[str, Any]:
    return {
        "message_id": {
            "type": "string",
            "description": f"The Gmail message ID to {action}",
        }
    }


# =============================================================================
# Tool Schemas (what the LLM sees)
# =============================================================================

TOOL_SCHEMAS = [
    _function_tool(
        "gmail_list_messages",
        "List recent emails from inbox or search with a Gmail query. Returns email summaries with IDs.",
        {
            "query": {
                "type": "string",
                "description": (
                    'Gmail search query (e.g., "from:john@example.com", "is:unread", '
                    '"subject:meeting", "newer_than:1d")'
                ),
            },
            "max_results": {
                "type": "number",
                "description": "Maximum number of emails to return (default: 10, max: 50)",
            },
        },
        [],
    ),
    _function_tool(
        "gmail_read_message",
        "Read the full content of a specific email by its message ID.",
        _message_id_param("read"),
        ["message_id"],
    ),
    _function_tool(
        "gmail_send_message",
        "Send a new email or reply to an existing email thread.",
        {
            "to": {
                "type": "array",
                "items": {"type": "string"},
                "description": "List of recipient email addresses",
            },
            "subject": {
                "type": "string",
                "description": "Email subject line",
            },
            "body": {
                "type": "string",
                "description": "Email body text (plain text)",
            },
            "cc": {
                "type": "array",
                "items": {"type": "string"},
                "description": "List of CC recipient email addresses",
            },
            "reply_to_message_id": {
                "type": "string",
                "description": "Message ID to reply to (for threading)",
            },
            "thread_id": {
                "type": "string",
                "description": "Thread ID to add reply to",
            },
        },
        ["to", "subject", "body"],
    ),
    _function_tool(
        "gmail_archive_message",
        "Archive an email (remove from inbox but keep in All Mail).",
        _message_id_param("archive"),
        ["message_id"],
    ),
    _function_tool(
        "gmail_trash_message",
        "Move an email to trash.",
        _message_id_param("trash"),
        ["message_id"],
    ),
    _function_tool(
        "gmail_mark_read",
        "Mark an email as read.",
        _message_id_param("mark as read"),
        ["message_id"],
    ),
    _function_tool(
        "gmail_mark_unread",
        "Mark an email as unread.",
        _message_id_param("mark as unread"),
        ["message_id"],
    ),
    _function_tool(
        "gmail_get_unread_count",
        "Get the number of unread emails in the inbox.",
        {},
        [],
    ),
    _function_tool(
        "gmail_get_thread",
        "Get all messages in an email thread/conversation.",
        {
            "thread_id": {
                "type": "string",
                "description": "The Gmail thread ID to retrieve",
            },
        },
        ["thread_id"],
    ),
]


def get_tool_names() -> list[str]:
    return [tool["function"]["name"] for tool in TOOL_SCHEMAS]


def get_tool_schema(name: str) -> dict[str, Any] | None:
    """Exact, case-sensitive lookup of a tool declaration."""
    for tool in TOOL_SCHEMAS:
        if tool["function"]["name"] == name:
            return tool
    return None


# =============================================================================
# Formatting helpers
# =============================================================================

def _format_date(email: gmail.EmailMessage) -> str:
    return email.date.astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def _require(value: Any, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"'{name}' is required")
    return value.strip()


def _as_address_list(value: Any) -> list[str]:
    """Accept a list of addresses or a comma-separated string."""
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return [str(part).strip() for part in value if str(part).strip()]


# =============================================================================
# Tool Implementations
# =============================================================================

def gmail_list_messages(query: str | None = None, max_results: int | None = None) -> str:
    """List or search emails, newest first."""
    limit = max(1, min(int(max_results or DEFAULT_LIST_RESULTS), MAX_LIST_RESULTS))
    messages = gmail.list_messages(query=query or None, max_results=limit)

    if not messages:
        return "No emails found matching your criteria."

    summaries = []
    for i, email in enumerate(messages, 1):
        unread = "[UNREAD] " if email.is_unread else ""
        summaries.append(
            f"{i}. {unread}From: {email.sender}\n"
            f"   Subject: {email.subject}\n"
            f"   Date: {_format_date(email)}\n"
            f"   ID: {email.id}\n"
            f"   Thread: {email.thread_id}\n"
            f"   Preview: {email.snippet[:PREVIEW_LENGTH]}..."
        )

    return f"Found {len(messages)} emails:\n\n" + "\n\n".join(summaries)


def gmail_read_message(message_id: str) -> str:
    """Read the full content of one email."""
    email = gmail.get_message(_require(message_id, "message_id"))

    cc_line = f"Cc: {', '.join(email.cc)}\n" if email.cc else ""
    return (
        f"From: {email.sender}\n"
        f"To: {', '.join(email.to)}\n"
        f"{cc_line}"
        f"Subject: {email.subject}\n"
        f"Date: {_format_date(email)}\n"
        f"Status: {'Unread' if email.is_unread else 'Read'}\n"
        f"Message ID: {email.id}\n"
        f"Thread ID: {email.thread_id}\n"
        f"\n--- Body ---\n"
        f"{email.body}"
    )


def gmail_send_message(
    to: list[str] | str,
    subject: str,
    body: str,
    cc: list[str] | str | None = None,
    reply_to_message_id: str | None = None,
    thread_id: str | None = None,
) -> str:
    """Send a new email or a reply within a thread."""
    recipients = _as_address_list(to)
    if not recipients:
        raise ValueError("At least one recipient is required")

    draft = gmail.EmailDraft(
        to=recipients,
        subject=subject,
        body=body,
        cc=_as_address_list(cc),
        in_reply_to=reply_to_message_id or None,
        thread_id=thread_id or None,
    )
    result = gmail.send_message(draft)
    return f"Email sent successfully.\nMessage ID: {result.message_id}\nThread ID: {result.thread_id}"


def gmail_archive_message(message_id: str) -> str:
    message_id = _require(message_id, "message_id")
    gmail.archive_message(message_id)
    return f"Email {message_id} has been archived (removed from inbox)."


def gmail_trash_message(message_id: str) -> str:
    message_id = _require(message_id, "message_id")
    gmail.trash_message(message_id)
    return f"Email {message_id} has been moved to trash."


def gmail_mark_read(message_id: str) -> str:
    message_id = _require(message_id, "message_id")
    gmail.mark_as_read(message_id)
    return f"Email {message_id} marked as read."


def gmail_mark_unread(message_id: str) -> str:
    message_id = _require(message_id, "message_id")
    gmail.mark_as_unread(message_id)
    return f"Email {message_id} marked as unread."


def gmail_get_unread_count() -> str:
    count = gmail.get_unread_count()
    return f"You have {_plural(count, 'unread email')} in your inbox."


def gmail_get_thread(thread_id: str) -> str:
    """Show every message of a thread in order."""
    messages = gmail.get_thread(_require(thread_id, "thread_id"))

    if not messages:
        return "Thread not found or contains no messages."

    total = len(messages)
    formatted = []
    for i, email in enumerate(messages, 1):
        unread = "[UNREAD]\n" if email.is_unread else ""
        formatted.append(
            f"--- Message {i} of {total} ---\n"
            f"From: {email.sender}\n"
            f"Date: {_format_date(email)}\n"
            f"{unread}\n"
            f"{email.body}"
        )

    return f"Thread contains {_plural(total, 'message')}:\n\n" + "\n\n".join(formatted)


# =============================================================================
# Tool Dispatcher
# =============================================================================

TOOL_IMPLEMENTATIONS = {
    "gmail_list_messages": gmail_list_messages,
    "gmail_read_message": gmail_read_message,
    "gmail_send_message": gmail_send_message,
    "gmail_archive_message": gmail_archive_message,
    "gmail_trash_message": gmail_trash_message,
    "gmail_mark_read": gmail_mark_read,
    "gmail_mark_unread": gmail_mark_unread,
    "gmail_get_unread_count": gmail_get_unread_count,
    "gmail_get_thread": gmail_get_thread,
}


def _validate_tool_tables() -> None:
    """Fail fast if the schemas and implementations drift apart."""
    declared = get_tool_names()
    if len(declared) != len(set(declared)):
        raise RuntimeError(f"Duplicate tool names in TOOL_SCHEMAS: {declared}")

    missing = set(declared) - set(TOOL_IMPLEMENTATIONS)
    extra = set(TOOL_IMPLEMENTATIONS) - set(declared)
    if missing or extra:
        raise RuntimeError(
            f"Tool tables out of sync (no implementation: {sorted(missing)}, no schema: {sorted(extra)})"
        )


_validate_tool_tables()


def _parse_arguments(arguments: str | dict[str, Any] | None) -> dict[str, Any]:
    """Decode the model's JSON argument payload."""
    if arguments is None or arguments == "":
        return {}
    if isinstance(arguments, str):
        try:
            arguments = json.loads(arguments)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON arguments: {e}") from e
    if not isinstance(arguments, dict):
        raise ValueError(f"Arguments must be a JSON object, got {type(arguments).__name__}")
    return arguments


def _error_result(message: str) -> ToolResult:
    return ToolResult(success=False, output=f"Error: {message}", error=message)


def execute_tool(name: str, arguments: str | dict[str, Any] | None) -> ToolResult:
    """
    Execute a tool by name with the given arguments.

    This is the main entry point called by the agent loop. It never raises:
    every failure comes back as a ToolResult the model can read.
    """
    func = TOOL_IMPLEMENTATIONS.get(name) if isinstance(name, str) else None
    if func is None:
        return ToolResult(success=False, output=f"Unknown tool: {name}")

    try:
        kwargs = _parse_arguments(arguments)
    except ValueError as e:
        logger.warning("Bad arguments payload for %s: %s", name, e)
        return _error_result(str(e))

    try:
        inspect.signature(func).bind(**kwargs)
    except TypeError as e:
        logger.warning("Invalid arguments for %s: %s", name, e)
        return _error_result(f"Invalid arguments for {name}: {e}")

    try:
        output = func(**kwargs)
    except HttpError as e:
        logger.warning("Gmail API error in %s: %s", name, e)
        return _error_result(e.reason or str(e))
    except Exception as e:
        logger.warning("Tool %s failed: %s", name, e)
        return _error_result(str(e) or type(e).__name__)

    return ToolResult(success=True, output=output)
