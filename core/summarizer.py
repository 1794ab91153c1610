"""Summarization capability used for titles and summaries.

The sync engine only depends on the ``Summarizer`` protocol. Backends report
failures inside the returned ``LLMResponse`` rather than raising, so callers
can always fall back to a deterministic value.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from config.settings import Settings, SummarizerProvider


logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """Response from a summarizer call.

    Attributes:
        content: Generated text content.
        model: Model used for generation.
        duration_ms: Time taken in milliseconds.
        input_tokens: Input token count.
        output_tokens: Output token count.
        success: Whether the call succeeded.
        error: Error message if call failed.
    """

    content: str
    model: str
    duration_ms: int
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    success: bool = True
    error: Optional[str] = None


class Summarizer(Protocol):
    """Anything that can turn a prompt into a short piece of text."""

    def summarize(self, prompt: str) -> LLMResponse:
        ...


def get_summarizer(settings: Settings) -> Summarizer:
    """Resolve the configured summarizer backend.

    Args:
        settings: Application settings.

    Returns:
        Summarizer for the configured provider.
    """
    if settings.summarizer_provider == SummarizerProvider.OPENAI:
        from core.openai_client import OpenAIClient

        logger.info("Using OpenAI-compatible summarizer")
        return OpenAIClient(settings)

    from core.claude_client import ClaudeClient

    logger.info("Using Claude summarizer")
    return ClaudeClient(settings)
