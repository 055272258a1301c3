"""
Gmail access for inbox_bot.

Wraps the Gmail API v1 (google-api-python-client). Requires a one-time OAuth
setup: `python -m inbox_bot gmail-setup`

Unlike the tool layer, every function here raises on failure (HttpError,
GmailNotAuthenticatedError, ...). Turning failures into text for the model
is the dispatcher's job.
"""

import base64
import logging
import os
import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from email.mime.text import MIMEText
from typing import Any

import httpx
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from .config import settings

# Minimal scopes: read, send, compose and label changes
SCOPES = [
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/gmail.send",
    "https://www.googleapis.com/auth/gmail.compose",
    "https://www.googleapis.com/auth/gmail.modify",
]

SECURE_FILE_MODE = 0o600
SECURE_DIR_MODE = 0o700
REVOKE_URL = "https://oauth2.googleapis.com/revoke"

logger = logging.getLogger(__name__)


class GmailNotAuthenticatedError(RuntimeError):
    """Raised when no usable Gmail token is available."""


# =============================================================================
# Types
# =============================================================================

@dataclass
class EmailMessage:
    id: str
    thread_id: str
    sender: str
    to: list[str]
    subject: str
    body: str
    date: datetime
    snippet: str = ""
    cc: list[str] = field(default_factory=list)
    labels: list[str] = field(default_factory=list)
    body_html: str | None = None

    @property
    def is_unread(self) -> bool:
        return "UNREAD" in self.labels


@dataclass
class EmailDraft:
    to: list[str]
    subject: str
    body: str
    cc: list[str] = field(default_factory=list)
    in_reply_to: str | None = None
    thread_id: str | None = None


@dataclass
class SendResult:
    message_id: str
    thread_id: str


@dataclass
class GmailLabel:
    id: str
    name: str
    type: str  # "system" or "user"
    messages_total: int = 0
    messages_unread: int = 0


# =============================================================================
# OAuth / Service Helper
# =============================================================================

def is_configured() -> bool:
    """True when the OAuth client secrets file is present."""
    return settings.gmail_credentials_file.exists()


def is_authenticated() -> bool:
    """True when both the client secrets and a saved token are present."""
    return is_configured() and settings.gmail_token_file.exists()


def save_token(creds: Credentials) -> None:
    """Write the token file with owner-only permissions."""
    token_path = settings.gmail_token_file
    token_path.parent.mkdir(parents=True, exist_ok=True)
    os.chmod(token_path.parent, SECURE_DIR_MODE)

    tmp_path = token_path.with_suffix(".tmp")
    fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, SECURE_FILE_MODE)
    with os.fdopen(fd, "w") as f:
        f.write(creds.to_json())
    os.replace(tmp_path, token_path)


def load_credentials() -> Credentials:
    """Load the saved token, refreshing it when expired.

    Raises:
        GmailNotAuthenticatedError: If there is no token or it cannot be refreshed.
    """
    token_path = settings.gmail_token_file
    if not token_path.exists():
        raise GmailNotAuthenticatedError("Gmail not authenticated. Run: python -m inbox_bot gmail-setup")

    creds = Credentials.from_authorized_user_file(str(token_path), SCOPES)

    if not creds.valid:
        if creds.expired and creds.refresh_token:
            creds.refresh(Request())
            # Persist the refreshed token
            save_token(creds)
        else:
            raise GmailNotAuthenticatedError(
                "Gmail token is invalid. Re-run: python -m inbox_bot gmail-setup"
            )

    return creds


def _get_gmail_service():
    """Build and return an authenticated Gmail API service."""
    return build("gmail", "v1", credentials=load_credentials(), cache_discovery=False)


# =============================================================================
# Parsing
# =============================================================================

def _get_header(headers: list[dict[str, str]], name: str) -> str:
    name = name.lower()
    for header in headers:
        if header.get("name", "").lower() == name:
            return header.get("value", "")
    return ""


def _split_addresses(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def _decode_base64url(data: str) -> str:
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")


def _extract_body(payload: dict[str, Any]) -> tuple[str, str | None]:
    """Walk the MIME tree and return (plain text, html)."""
    text = ""
    html = None

    def process(part: dict[str, Any]) -> None:
        nonlocal text, html
        data = part.get("body", {}).get("data")
        if data:
            content = _decode_base64url(data)
            if part.get("mimeType") == "text/plain":
                text = content
            elif part.get("mimeType") == "text/html":
                html = content
        for child in part.get("parts", []) or []:
            process(child)

    process(payload)

    # Fall back to stripped HTML when there is no plain-text part
    if not text and html:
        text = re.sub(r"\s+", " ", re.sub(r"<[^>]*>", " ", html)).strip()

    return text, html


def parse_message(msg: dict[str, Any]) -> EmailMessage:
    """Convert a raw Gmail API message resource into an EmailMessage."""
    payload = msg.get("payload", {}) or {}
    headers = payload.get("headers", []) or []
    text, html = _extract_body(payload)
    internal_ms = int(msg.get("internalDate", "0") or 0)

    return EmailMessage(
        id=msg.get("id", ""),
        thread_id=msg.get("threadId", ""),
        sender=_get_header(headers, "From"),
        to=_split_addresses(_get_header(headers, "To")),
        cc=_split_addresses(_get_header(headers, "Cc")),
        subject=_get_header(headers, "Subject"),
        body=text,
        body_html=html,
        date=datetime.fromtimestamp(internal_ms / 1000, tz=UTC),
        labels=list(msg.get("labelIds", []) or []),
        snippet=msg.get("snippet", "") or "",
    )


def build_raw_email(draft: EmailDraft) -> str:
    """Build an RFC 2822 message and encode it the way the Gmail API expects."""
    msg = MIMEText(draft.body, "plain", "utf-8")
    msg["To"] = ", ".join(draft.to)
    if draft.cc:
        msg["Cc"] = ", ".join(draft.cc)
    msg["Subject"] = draft.subject

    if draft.in_reply_to:
        msg["In-Reply-To"] = draft.in_reply_to
        msg["References"] = draft.in_reply_to

    return base64.urlsafe_b64encode(msg.as_bytes()).decode("ascii")


# =============================================================================
# Mail operations
# =============================================================================

def list_messages(query: str | None = None, max_results: int | None = None, label_ids: list[str] | None = None) -> list[EmailMessage]:
    """List messages (newest first), optionally filtered by a Gmail search query."""
    service = _get_gmail_service()

    params: dict[str, Any] = {"userId": "me", "maxResults": max_results or settings.gmail_max_results}
    if query:
        params["q"] = query
    if label_ids:
        params["labelIds"] = label_ids

    response = service.users().messages().list(**params).execute()

    messages = []
    for ref in response.get("messages", []) or []:
        if not ref.get("id"):
            continue
        full = service.users().messages().get(userId="me", id=ref["id"], format="full").execute()
        messages.append(parse_message(full))
    return messages


def get_message(message_id: str) -> EmailMessage:
    service = _get_gmail_service()
    raw = service.users().messages().get(userId="me", id=message_id, format="full").execute()
    return parse_message(raw)


def get_thread(thread_id: str) -> list[EmailMessage]:
    service = _get_gmail_service()
    raw = service.users().threads().get(userId="me", id=thread_id, format="full").execute()
    return [parse_message(m) for m in raw.get("messages", []) or []]


def send_message(draft: EmailDraft) -> SendResult:
    service = _get_gmail_service()

    body: dict[str, Any] = {"raw": build_raw_email(draft)}
    if draft.thread_id:
        body["threadId"] = draft.thread_id

    result = service.users().messages().send(userId="me", body=body).execute()
    return SendResult(message_id=result.get("id", ""), thread_id=result.get("threadId", ""))


def _modify_labels(message_id: str, add: list[str] | None = None, remove: list[str] | None = None) -> None:
    service = _get_gmail_service()
    body = {}
    if add:
        body["addLabelIds"] = add
    if remove:
        body["removeLabelIds"] = remove
    service.users().messages().modify(userId="me", id=message_id, body=body).execute()


def mark_as_read(message_id: str) -> None:
    _modify_labels(message_id, remove=["UNREAD"])


def mark_as_unread(message_id: str) -> None:
    _modify_labels(message_id, add=["UNREAD"])


def archive_message(message_id: str) -> None:
    """Remove the message from the inbox (it stays in All Mail)."""
    _modify_labels(message_id, remove=["INBOX"])


def trash_message(message_id: str) -> None:
    service = _get_gmail_service()
    service.users().messages().trash(userId="me", id=message_id).execute()


def get_unread_count() -> int:
    service = _get_gmail_service()
    label = service.users().labels().get(userId="me", id="INBOX").execute()
    return int(label.get("messagesUnread", 0) or 0)


def list_labels() -> list[GmailLabel]:
    service = _get_gmail_service()
    response = service.users().labels().list(userId="me").execute()

    labels = []
    for raw in response.get("labels", []) or []:
        # labels.list omits counters; fetch each label for them
        detail = service.users().labels().get(userId="me", id=raw["id"]).execute()
        labels.append(
            GmailLabel(
                id=detail.get("id", ""),
                name=detail.get("name", ""),
                type="system" if detail.get("type") == "system" else "user",
                messages_total=int(detail.get("messagesTotal", 0) or 0),
                messages_unread=int(detail.get("messagesUnread", 0) or 0),
            )
        )
    return labels


def get_email_address() -> str:
    service = _get_gmail_service()
    profile = service.users().getProfile(userId="me").execute()
    return profile.get("emailAddress", "")


def revoke_access() -> None:
    """Revoke the stored token at Google and delete it locally."""
    token_path = settings.gmail_token_file
    if not token_path.exists():
        return

    try:
        creds = Credentials.from_authorized_user_file(str(token_path), SCOPES)
        if creds.token:
            httpx.post(
                REVOKE_URL,
                params={"token": creds.token},
                headers={"content-type": "application/x-www-form-urlencoded"},
                timeout=10,
            )
    except httpx.HTTPError as e:
        # The local token is removed either way
        logger.warning("Token revocation failed: %s", e)
    finally:
        token_path.unlink(missing_ok=True)
