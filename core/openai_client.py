"""OpenAI-compatible API client used as an alternative summarizer.

Works against api.openai.com or any endpoint speaking the same chat
completions protocol (set OPENAI_BASE_URL).
"""

import logging
import time
from typing import Optional

from openai import OpenAI, APITimeoutError, APIError

from config.settings import Settings, get_settings
from core.summarizer import LLMResponse


logger = logging.getLogger(__name__)


class OpenAIClient:
    """Client for OpenAI-compatible chat completion APIs.

    Implements the Summarizer protocol.
    """

    SYSTEM_PROMPT = (
        "You write short, factual descriptions of documentation so an AI agent "
        "can decide when a document is relevant. Respond with only the requested text."
    )

    def __init__(self, settings: Optional[Settings] = None) -> None:
        """Initialize client with API configuration.

        Args:
            settings: Optional settings override.
        """
        self._settings = settings or get_settings()
        self._client: Optional[OpenAI] = None
        self._configure()

    def _configure(self) -> None:
        """Configure the OpenAI API client."""
        if not self._settings.is_openai_configured():
            logger.warning("OpenAI API key not configured")
            return

        self._client = OpenAI(
            api_key=self._settings.openai_api_key,
            base_url=self._settings.openai_base_url or None,
            timeout=self._settings.api_timeout,
        )
        logger.info(f"OpenAI client configured with model: {self._settings.openai_model}")

    def is_available(self) -> bool:
        """Check if the client is properly configured.

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
        if not self.is_available():
            return LLMResponse(
                content="",
                model=self._settings.openai_model,
                duration_ms=0,
                success=False,
                error="OpenAI client not configured",
            )

        start_time = time.time()

        try:
            response = self._client.chat.completions.create(
                model=self._settings.openai_model,
                messages=[
                    {
                        "role": "system",
                        "content": self.SYSTEM_PROMPT,
                    },
                    {
                        "role": "user",
                        "content": prompt,
                    },
                ],
            )

            duration_ms = int((time.time() - start_time) * 1000)

            content = ""
            if response.choices and response.choices[0].message:
                content = (response.choices[0].message.content or "").strip()

            logger.info(f"OpenAI summarize completed in {duration_ms}ms")

            return LLMResponse(
                content=content,
                model=self._settings.openai_model,
                duration_ms=duration_ms,
                success=True,
            )

        except APITimeoutError:
            duration_ms = int((time.time() - start_time) * 1000)
            error_msg = f"API timeout after {self._settings.api_timeout}s"
            logger.error(f"OpenAI summarize timeout: {error_msg}")

            return LLMResponse(
                content="",
                model=self._settings.openai_model,
                duration_ms=duration_ms,
                success=False,
                error=error_msg,
            )

        except APIError as e:
            duration_ms = int((time.time() - start_time) * 1000)
            error_msg = str(e)
            logger.error(f"OpenAI summarize API error: {error_msg}")

            return LLMResponse(
                content="",
                model=self._settings.openai_model,
                duration_ms=duration_ms,
                success=False,
                error=error_msg,
            )

        except Exception as e:
            duration_ms = int((time.time() - start_time) * 1000)
            error_msg = str(e)
            logger.error(f"OpenAI summarize failed: {error_msg}")

            return LLMResponse(
                content="",
                model=self._settings.openai_model,
                duration_ms=duration_ms,
                success=False,
                error=error_msg,
            )
