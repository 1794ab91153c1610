"""Checksum-gated document summaries.

A refresh of unchanged upstream content costs one hash per document and no
summarizer calls: when the checksum stored next to a summary matches the
checksum of the freshly converted markdown, the stored summary is reused.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Protocol

from core import checksum
from core.summarizer import Summarizer


logger = logging.getLogger(__name__)


class CachedEntry(Protocol):
    """Previously stored manifest entry (PageEntry or UrlEntry)."""

    summary: str
    content_checksum: Optional[str]


@dataclass
class SummaryResult:
    """Outcome of a summary lookup.

    Attributes:
        summary: Summary to store.
        checksum: Checksum of the content, None for empty content.
        reused: True if the previous summary was kept.
    """

    summary: str
    checksum: Optional[str]
    reused: bool = False


class SummaryCache:
    """Produces summaries, reusing cached ones for unchanged content."""

    MAX_CONTENT_CHARS = 10_000
    FALLBACK_PREVIEW_CHARS = 80

    SUMMARY_PROMPT = """Summarize the following documentation in 8-12 words.
List the main topics it covers so an AI agent can tell when the document is useful.

Title: {title}

Content:
{content}

Respond with only the summary, no additional text or explanation."""

    def __init__(self, summarizer: Summarizer) -> None:
        self._summarizer = summarizer
        self.hits = 0
        self.misses = 0

    def summarize(
        self,
        content: Optional[str],
        title: Optional[str] = None,
        previous: Optional[CachedEntry] = None,
    ) -> SummaryResult:
        """Return a summary for content, reusing the previous one if unchanged.

        Args:
            content: Freshly converted markdown.
            title: Document title, used in the prompt and as a fallback.
            previous: Stored manifest entry for the same document, if any.

        Returns:
            SummaryResult with the summary and the new checksum.
        """
        new_checksum = checksum.compute(content)

        if (
            previous is not None
            and new_checksum is not None
            and previous.content_checksum == new_checksum
        ):
            self.hits += 1
            logger.debug(f"Content unchanged for '{title}', reusing summary")
            return SummaryResult(summary=previous.summary, checksum=new_checksum, reused=True)

        self.misses += 1
        return SummaryResult(summary=self._generate(content, title), checksum=new_checksum)

    def _generate(self, content: Optional[str], title: Optional[str]) -> str:
        if not content:
            return self._fallback(content, title)

        prompt = self.SUMMARY_PROMPT.format(
            title=title or "Untitled",
            content=content[: self.MAX_CONTENT_CHARS],
        )
        response = self._summarizer.summarize(prompt)

        summary = response.content.strip() if response.success and response.content else ""
        if summary:
            return summary

        logger.warning(f"Summary generation failed for '{title}': {response.error or 'empty response'}")
        return self._fallback(content, title)

    def _fallback(self, content: Optional[str], title: Optional[str]) -> str:
        if title:
            return title
        preview = re.sub(r"\s+", " ", content or "").strip()
        return f"{preview[: self.FALLBACK_PREVIEW_CHARS]}..."
