"""Single-page web fetching and web source sync.

Only the given URL is fetched; links are never followed.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional, Sequence
from urllib.parse import urlparse

import httpx

from core import __version__, checksum
from core.errors import RemoteError, ValidationError
from core.html_transform import TitleGenerator, extract_html_title, web_html_to_markdown
from core.manifest_store import UrlEntry, WebSource
from core.summary_cache import SummaryCache
from utils.file_utils import LocalContentStore


logger = logging.getLogger(__name__)


REQUEST_TIMEOUT = 30.0
USER_AGENT = f"KBSyncer/{__version__} (+knowledge base sync)"


def validate_url(url: str) -> None:
    """Check that a URL can be fetched.

    Raises:
        ValidationError: If the scheme is not http(s) or the host is missing.
    """
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise ValidationError(f"Invalid URL format: {url}") from e

    if parsed.scheme not in ("http", "https"):
        raise ValidationError(f"URL must use HTTP or HTTPS protocol: {url}")
    if not parsed.hostname:
        raise ValidationError(f"Invalid URL format: {url}")


class WebFetcher:
    """Fetches raw HTML with redirects, a fixed timeout and user agent."""

    def __init__(self, transport: Optional[httpx.BaseTransport] = None) -> None:
        """Initialize the fetcher.

        Args:
            transport: Optional httpx transport, used by tests.
        """
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    def _http(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                headers={"User-Agent": USER_AGENT},
                timeout=REQUEST_TIMEOUT,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> "WebFetcher":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def fetch(self, url: str) -> str:
        """Fetch a page.

        Args:
            url: http(s) URL.

        Returns:
            Response body as text.

        Raises:
            ValidationError: If the URL is not fetchable.
            RemoteError: On non-2xx status or transport failure.
        """
        validate_url(url)
        logger.info(f"Fetching {url}")

        operation = f"fetch {url}"
        try:
            response = self._http().get(url)
        except httpx.HTTPError as e:
            logger.error(f"Failed to {operation}: {e}")
            raise RemoteError(str(e), operation=operation) from e

        if not response.is_success:
            raise RemoteError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                operation=operation,
                status_code=response.status_code,
            )
        return response.text


class WebSyncer:
    """Refreshes the web portion of a knowledge base."""

    def __init__(
        self,
        fetcher: WebFetcher,
        content_store: LocalContentStore,
        summary_cache: SummaryCache,
        title_generator: TitleGenerator,
    ) -> None:
        self._fetcher = fetcher
        self._content_store = content_store
        self._summary_cache = summary_cache
        self._titles = title_generator

    def fetch_url(self, kb_name: str, url: str, previous: Optional[UrlEntry] = None) -> UrlEntry:
        """Fetch one URL and store it in the knowledge base.

        When the converted content is unchanged since ``previous`` was
        recorded, its title and summary are reused without any LLM call.

        Args:
            kb_name: Knowledge base receiving the document.
            url: Page to fetch.
            previous: Stored entry for the same URL, if any.

        Returns:
            Fresh UrlEntry for the manifest.
        """
        html = self._fetcher.fetch(url)
        content = web_html_to_markdown(html)

        unchanged = (
            previous is not None
            and previous.title
            and checksum.matches(previous.content_checksum, content)
        )
        if unchanged:
            title = previous.title
        else:
            title = self._titles.generate(extract_html_title(html), content, url)

        result = self._summary_cache.summarize(content, title, previous)
        self._content_store.store(kb_name, title, content)

        return UrlEntry(
            url=url,
            summary=result.summary,
            title=title,
            last_fetched=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            content_checksum=result.checksum,
        )

    def sync(self, kb_name: str, urls: Sequence[UrlEntry]) -> WebSource:
        """Re-fetch every stored URL, in order.

        Args:
            kb_name: Knowledge base receiving the documents.
            urls: Stored entries to refresh.

        Returns:
            Fresh WebSource for the manifest.
        """
        hits, misses = self._summary_cache.hits, self._summary_cache.misses
        entries = [self.fetch_url(kb_name, entry.url, previous=entry) for entry in urls]
        logger.info(
            f"Synced {len(entries)} web pages for KB '{kb_name}' "
            f"({self._summary_cache.hits - hits} summaries reused, "
            f"{self._summary_cache.misses - misses} generated)"
        )
        return WebSource(urls=entries)
