"""Application settings with environment variable loading.

Supports both local development (.env) and CI/hook execution (environment
variables). Confluence credentials are read here once and handed to the
sync components as an explicit ConfluenceConfig value.
"""

from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator, ConfigDict
from pydantic_settings import BaseSettings

from core.errors import ConfigurationError


load_dotenv()


class SummarizerProvider(str, Enum):
    """LLM backends available for summaries and titles."""

    CLAUDE = "claude"
    OPENAI = "openai"


class Settings(BaseSettings):
    """Application configuration loaded from environment variables.

    Attributes:
        confluence_base_url: Base URL of the Confluence site.
        confluence_username: Confluence account email/username.
        confluence_api_token: Confluence API token.
        kb_root_path: Directory holding one sub-directory per knowledge base.
        summarizer_provider: Which LLM backend generates summaries.
        anthropic_api_key: Anthropic Claude API key.
        claude_model: Claude model identifier.
        openai_api_key: OpenAI (or compatible) API key.
        openai_base_url: Optional base URL for an OpenAI-compatible endpoint.
        openai_model: OpenAI model identifier.
        api_timeout: Timeout for LLM calls in seconds.
        log_level: Application logging level.
    """

    # Confluence Configuration
    confluence_base_url: str = Field(default="", alias="CONFLUENCE_BASE_URL")
    confluence_username: str = Field(default="", alias="CONFLUENCE_USERNAME")
    confluence_api_token: str = Field(default="", alias="CONFLUENCE_API_TOKEN")

    # Knowledge Storage
    kb_root_path: str = Field(
        default=".claude/skills",
        alias="KB_ROOT_PATH",
        description="Directory containing one folder per knowledge base",
    )

    # Summarizer Selection
    summarizer_provider: SummarizerProvider = Field(
        default=SummarizerProvider.CLAUDE,
        alias="SUMMARIZER_PROVIDER",
    )

    # Claude Configuration
    anthropic_api_key: str = Field(default="", alias="ANTHROPIC_API_KEY")
    claude_model: str = Field(default="claude-haiku-4-5-20251001")

    # OpenAI-compatible Configuration (optional)
    openai_api_key: str = Field(default="", alias="OPENAI_API_KEY")
    openai_base_url: str = Field(default="", alias="OPENAI_BASE_URL")
    openai_model: str = Field(default="gpt-4o-mini")

    api_timeout: int = Field(default=120, ge=30, le=300)

    # Logging Configuration
    log_level: str = Field(default="INFO")

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("anthropic_api_key", "openai_api_key", "confluence_api_token", mode="before")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        """Strip whitespace from API keys and tokens."""
        return v.strip() if v else ""

    @field_validator("confluence_base_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the Confluence base URL."""
        return v.strip().rstrip("/") if v else ""

    def is_claude_configured(self) -> bool:
        """Check if Claude API is configured.

        Returns:
            True if Anthropic API key is set.
        """
        return bool(self.anthropic_api_key)

    def is_openai_configured(self) -> bool:
        """Check if the OpenAI-compatible API is configured.

        Returns:
            True if OpenAI API key is set.
        """
        return bool(self.openai_api_key)

    def confluence_config(self) -> "ConfluenceConfig":
        """Build the explicit Confluence configuration value.

        Returns:
            ConfluenceConfig populated from these settings.
        """
        return ConfluenceConfig(
            base_url=self.confluence_base_url,
            username=self.confluence_username,
            api_token=self.confluence_api_token,
        )


@dataclass(frozen=True)
class ConfluenceConfig:
    """Connection details for the Confluence REST API.

    Attributes:
        base_url: Site base URL, e.g. https://example.atlassian.net.
        username: Account used for HTTP Basic auth.
        api_token: API token used as the Basic auth password.
    """

    base_url: Optional[str]
    username: Optional[str]
    api_token: Optional[str]

    def validate(self) -> None:
        """Reject incomplete configuration before any network call.

        Raises:
            ConfigurationError: Naming the first missing field.
        """
        if not self.base_url:
            raise ConfigurationError("Confluence base URL not configured")
        if not self.username:
            raise ConfigurationError("Confluence username not configured")
        if not self.api_token:
            raise ConfigurationError("Confluence API token not configured")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings instance with loaded configuration.
    """
    return Settings()


def refresh_settings() -> Settings:
    """Clear settings cache and reload.

    Useful for testing or when environment changes.

    Returns:
        Fresh Settings instance.
    """
    get_settings.cache_clear()
    return get_settings()
