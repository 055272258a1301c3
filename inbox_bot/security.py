"""
Security audit for inbox_bot's local state.

Checks that the state directory, the .env file holding the OpenAI key and
the Gmail credential files are not readable by other users and are not
symlinks.
"""

import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from .config import Settings, settings
from .gmail import SECURE_DIR_MODE, SECURE_FILE_MODE

Severity = Literal["critical", "warning", "info"]

_SEVERITY_ICONS = {"critical": "❌", "warning": "⚠️ ", "info": "ℹ️ "}


@dataclass
class AuditIssue:
    severity: Severity
    message: str
    path: Path | None = None


@dataclass
class AuditResult:
    issues: list[AuditIssue] = field(default_factory=list)

    @property
    def secure(self) -> bool:
        """False if any issue is critical."""
        return not any(issue.severity == "critical" for issue in self.issues)


def _check_permissions(path: Path, name: str, expected: int, issues: list[AuditIssue]) -> None:
    mode = stat.S_IMODE(path.stat().st_mode)

    if mode & 0o007:
        issues.append(AuditIssue("critical", f"{name} is world-accessible (mode: {mode:o})", path))
    elif mode & 0o070:
        issues.append(AuditIssue("warning", f"{name} is group-accessible (mode: {mode:o})", path))
    elif mode != expected:
        issues.append(
            AuditIssue(
                "info",
                f"{name} has non-standard permissions (mode: {mode:o}, expected: {expected:o})",
                path,
            )
        )


def _check_symlink(path: Path, name: str, issues: list[AuditIssue]) -> None:
    if path.is_symlink():
        issues.append(AuditIssue("warning", f"{name} is a symlink (target: {path.resolve()})", path))


def _audit_path(path: Path, name: str, expected: int, issues: list[AuditIssue]) -> None:
    # exists() follows symlinks, so a dangling link only gets the symlink check
    if path.exists():
        _check_permissions(path, name, expected, issues)
    _check_symlink(path, name, issues)


def run_security_audit(config: Settings | None = None, env_file: Path | None = None) -> AuditResult:
    """Audit the state directory, the .env file holding the API key and the Gmail files."""
    config = config or settings
    env_file = env_file or Path(config.model_config.get("env_file") or ".env")
    issues: list[AuditIssue] = []

    _audit_path(config.state_dir, "State directory", SECURE_DIR_MODE, issues)

    for path, name in (
        (env_file, "Environment file (API key)"),
        (config.gmail_credentials_file, "Gmail OAuth client file"),
        (config.gmail_token_file, "Gmail token file"),
    ):
        _audit_path(path, name, SECURE_FILE_MODE, issues)

    return AuditResult(issues=issues)


def format_audit_results(result: AuditResult) -> str:
    """Render the audit as plain text, one issue per line."""
    if not result.issues:
        return "No security issues found."

    lines = []
    for issue in result.issues:
        line = f"{_SEVERITY_ICONS[issue.severity]} [{issue.severity.upper()}] {issue.message}"
        if issue.path is not None:
            line += f"\n   Path: {issue.path}"
        lines.append(line)
    return "\n".join(lines)
