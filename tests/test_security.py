"""Tests for the local security audit."""

import pytest

from inbox_bot.security import AuditIssue, AuditResult, format_audit_results, run_security_audit


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path, monkeypatch):
    """Run each audit from a scratch directory so a real .env is never picked up."""
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def state(test_settings):
    """Create the state directory and both credential files with safe modes."""
    test_settings.state_dir.mkdir()
    test_settings.state_dir.chmod(0o700)
    for path in (test_settings.gmail_credentials_file, test_settings.gmail_token_file):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("{}")
        path.chmod(0o600)
    return test_settings


class TestAudit:
    """Tests for run_security_audit."""

    def test_nothing_on_disk(self, test_settings):
        """Test an empty state directory produces no issues."""
        result = run_security_audit(test_settings)
        assert result.issues == []
        assert result.secure

    def test_secure_layout(self, state):
        """Test owner-only files and directory pass cleanly."""
        result = run_security_audit(state)
        assert result.issues == []

    def test_world_readable_token_is_critical(self, state):
        """Test a world-readable token fails the audit."""
        state.gmail_token_file.chmod(0o644)

        result = run_security_audit(state)

        assert not result.secure
        assert [(i.severity, i.path) for i in result.issues] == [("critical", state.gmail_token_file)]

    def test_group_readable_is_warning(self, state):
        """Test group access is a warning, not a failure."""
        state.gmail_credentials_file.chmod(0o640)

        result = run_security_audit(state)

        assert result.secure
        assert [i.severity for i in result.issues] == ["warning"]

    def test_unusual_mode_is_info(self, state):
        """Test owner-only but non-standard modes are informational."""
        state.gmail_token_file.chmod(0o400)

        result = run_security_audit(state)

        assert result.secure
        assert [(i.severity, i.path) for i in result.issues] == [("info", state.gmail_token_file)]

    def test_symlinked_token_is_warning(self, state, tmp_path):
        """Test a symlinked token is flagged."""
        target = tmp_path / "elsewhere.json"
        target.write_text("{}")
        target.chmod(0o600)
        state.gmail_token_file.unlink()
        state.gmail_token_file.symlink_to(target)

        result = run_security_audit(state)

        assert result.secure
        assert [i.severity for i in result.issues] == ["warning"]
        assert "symlink" in result.issues[0].message

    def test_dangling_token_symlink_is_warning(self, state, tmp_path):
        """Test a token symlink pointing nowhere is still reported."""
        state.gmail_token_file.unlink()
        state.gmail_token_file.symlink_to(tmp_path / "missing.json")

        result = run_security_audit(state)

        assert result.secure
        assert [(i.severity, i.path) for i in result.issues] == [("warning", state.gmail_token_file)]

    def test_world_readable_env_file_is_critical(self, state, tmp_path):
        """Test a world-readable .env holding the API key fails the audit."""
        env_file = tmp_path / ".env"
        env_file.write_text("OPENAI_API_KEY=sk-test\n")
        env_file.chmod(0o644)

        result = run_security_audit(state)

        assert not result.secure
        assert [i.severity for i in result.issues] == ["critical"]
        assert result.issues[0].message.startswith("Environment file (API key)")
        assert result.issues[0].path.resolve() == env_file.resolve()

    def test_owner_only_env_file_passes(self, state, tmp_path):
        """Test an owner-only .env, passed explicitly, raises nothing."""
        env_file = tmp_path / "custom.env"
        env_file.write_text("OPENAI_API_KEY=sk-test\n")
        env_file.chmod(0o600)

        assert run_security_audit(state, env_file=env_file).issues == []


class TestFormat:
    """Tests for format_audit_results."""

    def test_no_issues(self):
        assert format_audit_results(AuditResult()) == "No security issues found."

    def test_issue_lines(self):
        """Test each issue shows its severity, message and path."""
        result = AuditResult(issues=[AuditIssue("critical", "Gmail token file is world-accessible (mode: 644)", None)])

        text = format_audit_results(result)

        assert "[CRITICAL]" in text
        assert "world-accessible" in text
        assert "Path:" not in text
