"""Claude API client used as the default summarizer.

Handles all interactions with Anthropic's Claude API for page summaries and
web page title generation.
"""

import logging
import time
from typing import Optional

import anthropic

from config.settings import Settings, get_settings
from core.summarizer import LLMResponse


logger = logging.getLogger(__name__)


class ClaudeClient:
    """Client for interacting with Anthropic Claude API.

    Implements the Summarizer protocol. Every failure is returned as an
    unsuccessful LLMResponse.
    """

    SYSTEM_PROMPT = (
        "You write short, factual descriptions of documentation so an AI agent "
        "can decide when a document is relevant. Respond with only the requested text."
    )

    def __init__(self, settings: Optional[Settings] = None) -> None:
        """Initialize Claude client with API configuration.

        Args:
            settings: Optional settings override.
        """
        self._settings = settings or get_settings()
        self._client: Optional[anthropic.Anthropic] = None
        self._configure()

    def _configure(self) -> None:
        """Configure the Claude API client."""
        if not self._settings.is_claude_configured():
            logger.warning("Anthropic API key not configured")
            return

        self._client = anthropic.Anthropic(
            api_key=self._settings.anthropic_api_key,
            timeout=self._settings.api_timeout,
        )
        logger.info(f"Claude client configured with model: {self._settings.claude_model}")

    def is_available(self) -> bool:
        """Check if Claude client is properly configured.

        Returns:
            True if client is ready to use.
        """
        return self._client is not None

    def summarize(self, prompt: str) -> LLMResponse:
        """Generate a short piece of text for a prompt.

        Args:
            prompt: Full instruction including the document content.

        Returns:
            LLMResponse with the stripped text or an error.
        """
        return self._generate(
            system_prompt=self.SYSTEM_PROMPT,
            user_prompt=prompt,
            operation="summarize",
        )

    def _generate(
        self,
        system_prompt: str,
        user_prompt: str,
        operation: str,
        max_tokens: int = 1024,
    ) -> LLMResponse:
        """Execute generation request with timing and error handling.

        Args:
            system_prompt: System context for Claude.
            user_prompt: The user message/prompt.
            operation: Name of the operation for logging.
            max_tokens: Maximum tokens in response.

        Returns:
            LLMResponse with results or error.
        """
        if not self.is_available():
            return LLMResponse(
                content="",
                model=self._settings.claude_model,
                duration_ms=0,
                success=False,
                error="Claude client not configured",
            )

        start_time = time.time()

        try:
            response = self._client.messages.create(
                model=self._settings.claude_model,
                max_tokens=max_tokens,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
            )

            duration_ms = int((time.time() - start_time) * 1000)

            content = ""
            if response.content:
                content = response.content[0].text.strip()

            logger.info(f"Claude {operation} completed in {duration_ms}ms")

            return LLMResponse(
                content=content,
                model=self._settings.claude_model,
                duration_ms=duration_ms,
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
                success=True,
            )

        except anthropic.APITimeoutError:
            duration_ms = int((time.time() - start_time) * 1000)
            error_msg = f"API timeout after {self._settings.api_timeout}s"
            logger.error(f"Claude {operation} timeout: {error_msg}")

            return LLMResponse(
                content="",
                model=self._settings.claude_model,
                duration_ms=duration_ms,
                success=False,
                error=error_msg,
            )

        except anthropic.APIError as e:
            duration_ms = int((time.time() - start_time) * 1000)
            error_msg = str(e)
            logger.error(f"Claude {operation} API error: {error_msg}")

            return LLMResponse(
                content="",
                model=self._settings.claude_model,
                duration_ms=duration_ms,
                success=False,
                error=error_msg,
            )

        except Exception as e:
            duration_ms = int((time.time() - start_time) * 1000)
            error_msg = str(e)
            logger.error(f"Claude {operation} failed: {error_msg}")

            return LLMResponse(
                content="",
                model=self._settings.claude_model,
                duration_ms=duration_ms,
                success=False,
                error=error_msg,
            )
