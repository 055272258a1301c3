"""
Command-line interface for inbox_bot.

Run with: python -m inbox_bot
"""

import shutil

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from . import __version__, gmail
from .agent import Agent, create_agent
from .config import settings
from .models import RunOptions
from .log import setup_logging
from .security import format_audit_results, run_security_audit

app = typer.Typer(
    name="inbox_bot",
    help="Chat with an AI assistant that manages your Gmail inbox",
    add_completion=False,
)
console = Console()

CHAT_HELP = """[bold]Commands:[/bold]
  /reset  - Reset conversation
  /status - Show conversation status
  /help   - Show commands
  /quit   - Exit chat"""


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        None,
        "--log-level",
        help="Log level (DEBUG, INFO, WARNING, ...). Defaults to LOG_LEVEL from settings.",
    ),
):
    """Chat with an AI assistant that manages your Gmail inbox."""
    setup_logging(log_level or settings.log_level)


# =============================================================================
# Helpers
# =============================================================================

def _check_prerequisites() -> bool:
    """Make sure both the OpenAI key and Gmail token are in place."""
    if not settings.has_api_key():
        console.print("[red]❌ OpenAI API key not configured.[/red]")
        console.print("Add it to your .env file:\n  OPENAI_API_KEY=sk-...")
        return False

    if not gmail.is_authenticated():
        console.print("[red]❌ Gmail not authenticated.[/red]")
        console.print("Run: python -m inbox_bot gmail-setup")
        return False

    return True


def _require_gmail() -> None:
    if not gmail.is_authenticated():
        console.print("[red]❌ Gmail not authenticated. Run: python -m inbox_bot gmail-setup[/red]")
        raise typer.Exit(1)


def _print_tool_usage(count: int) -> None:
    if count > 0:
        console.print(f"[dim]  (Used {count} tool{'s' if count > 1 else ''})[/dim]\n")


def _handle_slash_command(command: str, agent: Agent) -> bool:
    """Run a /command. Returns False when the chat should end."""
    cmd = command.lower()

    if cmd in ("/quit", "/exit", "/q"):
        console.print("\n[dim]Goodbye![/dim]")
        return False

    if cmd == "/reset":
        agent.reset()
        console.print("\n[green]✅ Conversation reset.[/green]\n")
    elif cmd == "/status":
        console.print(f"\nConversation: {agent.conversation_length()} messages\n")
    elif cmd == "/help":
        console.print(f"\n{CHAT_HELP}\n")
    else:
        console.print("\n[yellow]Unknown command. Type /help for available commands.[/yellow]\n")

    return True


# =============================================================================
# Chat commands
# =============================================================================

@app.command()
def chat():
    """
    Start an interactive chat session with the email assistant.

    Examples:
        python -m inbox_bot chat
    """
    if not _check_prerequisites():
        raise typer.Exit(1)

    agent = create_agent()

    console.print(Panel.fit(
        f"[bold blue]inbox_bot v{__version__}[/bold blue]\n"
        f"Assistant: {settings.agent_name}\n"
        f"Model: {settings.model_name}\n\n"
        f"{CHAT_HELP}",
        title="🤖 Email Assistant",
    ))
    console.print()

    while True:
        try:
            user_input = Prompt.ask("[bold green]You[/bold green]")
        except (KeyboardInterrupt, EOFError):
            console.print("\n[dim]Goodbye![/dim]")
            break

        user_input = user_input.strip()
        if not user_input:
            continue

        if user_input.startswith("/"):
            if not _handle_slash_command(user_input, agent):
                break
            continue

        console.print()
        try:
            with console.status("[bold blue]Thinking...[/bold blue]"):
                result = agent.run(user_input)
        except Exception as e:
            console.print(f"[red]❌ Error: {e}[/red]\n")
            continue

        console.print()
        console.print(Panel(Markdown(result.response), title="[bold blue]Assistant[/bold blue]", border_style="blue"))
        _print_tool_usage(result.tool_calls)


@app.command()
def ask(
    message: str = typer.Argument(..., help="Question or instruction for the assistant"),
    reset: bool = typer.Option(
        True,
        "--reset/--no-reset",
        help="Start from an empty conversation (default: reset)",
    ),
):
    """
    Ask the assistant a single question.

    Examples:
        python -m inbox_bot ask "How many unread emails do I have?"
    """
    if not _check_prerequisites():
        raise typer.Exit(1)

    try:
        agent = create_agent(verbose=False)
        result = agent.run(message, RunOptions(reset=reset))
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    console.print(Markdown(result.response))


@app.command(name="message")
def message_command(
    text: str = typer.Argument(..., help="Message to send"),
    reset: bool = typer.Option(True, "--reset/--no-reset", help="Start from an empty conversation"),
):
    """Send a message to the assistant (alias for ask)."""
    ask(message=text, reset=reset)


# =============================================================================
# Status / security
# =============================================================================

@app.command()
def status(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show configuration values"),
):
    """Show configuration and connection status."""
    console.print("\n[bold]📊 inbox_bot Status[/bold]\n")

    audit = run_security_audit()
    if not audit.secure:
        console.print("[yellow]⚠️  Security issues detected. Run: python -m inbox_bot security[/yellow]\n")

    console.print("[bold]OpenAI:[/bold]")
    if settings.has_api_key():
        console.print("  ✅ API key configured")
    else:
        console.print("  ❌ API key not configured")

    console.print("\n[bold]Gmail:[/bold]")
    if gmail.is_configured():
        console.print("  ✅ OAuth credentials configured")
    else:
        console.print("  ❌ OAuth credentials not configured")

    if gmail.is_authenticated():
        console.print("  ✅ Authentication token present")
        try:
            console.print(f"  📧 Account: {gmail.get_email_address()}")
            console.print(f"  📬 Unread: {gmail.get_unread_count()} emails")
        except Exception as e:
            console.print(f"  [yellow]⚠️  Could not fetch account info: {e}[/yellow]")
    else:
        console.print("  ❌ Not authenticated")

    if verbose:
        table = Table(title="Configuration", show_header=False)
        table.add_column("Setting", style="cyan")
        table.add_column("Value")
        table.add_row("Model", settings.model_name)
        table.add_row("Max tokens", str(settings.max_tokens))
        table.add_row("Temperature", str(settings.temperature))
        table.add_row("Max history", f"{settings.max_history_length} turns")
        table.add_row("Max tool rounds", str(settings.max_tool_iterations))
        table.add_row("Agent name", settings.agent_name)
        table.add_row("State dir", str(settings.state_dir))
        console.print()
        console.print(table)

    console.print()


@app.command()
def security():
    """Run a security audit on credential files and the state directory."""
    console.print("\n[bold]🔒 Security Audit[/bold]\n")

    result = run_security_audit()
    console.print(format_audit_results(result), markup=False)

    if result.secure:
        console.print("\n[green]✅ No critical security issues found.[/green]\n")
    else:
        console.print("\n[yellow]⚠️  Please address the security issues above.[/yellow]\n")
        raise typer.Exit(1)


# =============================================================================
# Gmail commands
# =============================================================================

@app.command(name="gmail-setup")
def gmail_setup(
    client_secrets: str = typer.Option(
        None,
        "--client-secrets",
        help="Path to the OAuth client JSON downloaded from Google Cloud Console",
    ),
):
    """One-time Gmail OAuth setup.

    Download your OAuth client from Google Cloud Console first:
      console.cloud.google.com → APIs & Services → Credentials → OAuth 2.0 Client ID
      (choose Desktop app, download JSON, pass it with --client-secrets)

    This command opens your browser to authorise access, then saves a token
    so the Gmail tools work without re-authenticating.
    """
    from google_auth_oauthlib.flow import InstalledAppFlow

    creds_file = settings.gmail_credentials_file

    if client_secrets:
        creds_file.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(client_secrets, creds_file)
        creds_file.chmod(gmail.SECURE_FILE_MODE)

    if not creds_file.exists():
        console.print(f"[red]OAuth client file not found at:[/red] {creds_file}\n")
        console.print("Steps to get it:")
        console.print("  1. Go to [link]https://console.cloud.google.com[/link]")
        console.print("  2. APIs & Services → Library → enable 'Gmail API'")
        console.print("  3. APIs & Services → Credentials → Create Credentials → OAuth 2.0 Client ID")
        console.print("  4. Application type: Desktop app")
        console.print("  5. Download the JSON and re-run with [bold]--client-secrets path/to/file.json[/bold]")
        raise typer.Exit(1)

    console.print("[bold blue]Starting Google OAuth flow...[/bold blue]")
    console.print("[dim]Your browser will open. Log in and grant Gmail access.[/dim]\n")

    try:
        flow = InstalledAppFlow.from_client_secrets_file(str(creds_file), gmail.SCOPES)
        creds = flow.run_local_server(port=0)
    except Exception as e:
        console.print(f"[red]OAuth flow failed: {e}[/red]")
        raise typer.Exit(1)

    gmail.save_token(creds)
    console.print(f"[green]Token saved to:[/green] {settings.gmail_token_file}\n")

    # Quick sanity check
    try:
        address = gmail.get_email_address()
        unread = gmail.get_unread_count()
        console.print(Panel.fit(
            f"[bold green]Gmail connected![/bold green]\n\n"
            f"Account: [cyan]{address}[/cyan]\n"
            f"Unread: {unread}",
            title="Setup Complete",
        ))
    except Exception as e:
        console.print(f"[yellow]Token saved but test call failed: {e}[/yellow]")
        console.print("[dim]Gmail tools should still work. Try: python -m inbox_bot chat[/dim]")


@app.command(name="gmail-logout")
def gmail_logout():
    """Revoke Gmail access and delete the stored token."""
    gmail.revoke_access()
    console.print("[green]✅ Gmail access revoked.[/green]")


@app.command(name="gmail-list")
def gmail_list(
    count: int = typer.Option(None, "--count", "-n", help="Number of emails to show (default: GMAIL_MAX_RESULTS)"),
    query: str = typer.Option(None, "--query", "-q", help="Gmail search query"),
):
    """List recent emails."""
    _require_gmail()

    try:
        messages = gmail.list_messages(query=query, max_results=count)
    except Exception as e:
        console.print(f"[red]❌ Error: {e}[/red]")
        raise typer.Exit(1)

    if not messages:
        console.print("\n[dim]No emails found.[/dim]")
        return

    console.print(f"\n[bold]📧 Emails ({len(messages)}):[/bold]\n")
    for i, email in enumerate(messages, 1):
        marker = "📬" if email.is_unread else "📭"
        console.print(f"{marker} {i}. [bold]{email.subject}[/bold]")
        console.print(f"   From: {email.sender}")
        console.print(f"   Date: {email.date.astimezone():%Y-%m-%d}")
        console.print(f"   [dim]ID: {email.id}[/dim]\n")


@app.command(name="gmail-read")
def gmail_read(
    message_id: str = typer.Argument(..., help="Gmail message ID"),
):
    """Read a specific email."""
    _require_gmail()

    try:
        email = gmail.get_message(message_id)
    except Exception as e:
        console.print(f"[red]❌ Error: {e}[/red]")
        raise typer.Exit(1)

    header = (
        f"From: {email.sender}\n"
        f"To: {', '.join(email.to)}\n"
        + (f"Cc: {', '.join(email.cc)}\n" if email.cc else "")
        + f"Subject: {email.subject}\n"
        f"Date: {email.date.astimezone():%Y-%m-%d %H:%M}\n"
        f"Status: {'Unread' if email.is_unread else 'Read'}"
    )
    console.print(Panel(header, border_style="blue"))
    console.print(email.body, markup=False, highlight=False)


@app.command(name="gmail-labels")
def gmail_labels():
    """List Gmail labels with unread counts."""
    _require_gmail()

    try:
        labels = gmail.list_labels()
    except Exception as e:
        console.print(f"[red]❌ Error: {e}[/red]")
        raise typer.Exit(1)

    for kind, title in (("system", "System Labels"), ("user", "User Labels")):
        group = [label for label in labels if label.type == kind]
        if not group:
            continue
        console.print(f"\n[bold]{title}:[/bold]")
        for label in group:
            unread = f" ({label.messages_unread} unread)" if label.messages_unread > 0 else ""
            console.print(f"  {label.name}{unread}")
    console.print()


@app.command(name="gmail-status")
def gmail_status():
    """Show Gmail account status."""
    _require_gmail()

    try:
        address = gmail.get_email_address()
        unread = gmail.get_unread_count()
    except Exception as e:
        console.print(f"[red]❌ Error: {e}[/red]")
        raise typer.Exit(1)

    console.print("\n[bold]📧 Gmail Status[/bold]\n")
    console.print(f"  Account: {address}")
    console.print(f"  Unread:  {unread} emails\n")


@app.command()
def version():
    """Show version information."""
    console.print(f"inbox_bot v{__version__}")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
