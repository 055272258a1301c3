"""
Configuration management for inbox_bot.
Uses pydantic-settings to load from environment variables and .env files.
"""

from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SYSTEM_PROMPT = """You are a helpful email assistant. You help users:
- Read and summarize emails
- Draft replies
- Search for emails
- Organize their inbox

Be concise and professional. When drafting emails, match the tone of the original sender."""


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # OpenAI settings
    openai_api_key: str | None = None
    model_name: str = "gpt-4o"
    max_tokens: int = Field(default=4096, ge=100, le=128000)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    system_prompt: str = DEFAULT_SYSTEM_PROMPT

    # Agent settings
    agent_name: str = "Email Assistant"
    max_history_length: int = Field(default=20, ge=1, le=100)  # in turns (user + assistant)
    max_tool_iterations: int = Field(default=10, ge=1)  # tool rounds per run

    # Paths
    state_dir: Path = Field(
        default=Path.home() / ".inbox_bot",
        validation_alias="INBOX_BOT_STATE_DIR",
    )
    # Default to files inside state_dir when not set explicitly
    gmail_credentials_file: Path | None = None
    gmail_token_file: Path | None = None

    # Gmail
    gmail_max_results: int = Field(default=20, ge=1, le=100)

    # Logging
    log_level: str = "WARNING"

    @model_validator(mode="after")
    def _fill_gmail_paths(self) -> "Settings":
        """Resolve Gmail credential paths relative to the state directory."""
        credentials_dir = self.state_dir / "credentials"
        if self.gmail_credentials_file is None:
            self.gmail_credentials_file = credentials_dir / "gmail-oauth.json"
        if self.gmail_token_file is None:
            self.gmail_token_file = credentials_dir / "gmail-token.json"
        return self

    def get_api_key(self) -> str:
        """Get the OpenAI API key."""
        if not self.openai_api_key:
            raise ValueError("OPENAI_API_KEY not set")
        return self.openai_api_key

    def has_api_key(self) -> bool:
        return bool(self.openai_api_key)


# Global settings instance
settings = Settings()
