"""Confluence label discovery, page fetching and page sync.

Pages belonging to a knowledge base are found through a Confluence label:

    GET /wiki/api/v2/labels?limit=250&prefix=global      (cursor paginated)
    GET /wiki/api/v2/labels/{id}/pages?body-format=storage&limit=100
    GET /rest/api/content/{id}?expand=body.storage       (bodies not inlined)

Every page is converted to Markdown, summarized through the checksum-gated
SummaryCache and written to the local content store.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Optional, Sequence
from urllib.parse import unquote

import httpx

from config.settings import ConfluenceConfig
from core.errors import RemoteError
from core.html_transform import confluence_to_markdown
from core.manifest_store import ConfluenceSource, PageEntry
from core.summary_cache import SummaryCache
from utils.file_utils import LocalContentStore


logger = logging.getLogger(__name__)


LABEL_PREFIX = "global"
LABELS_PAGE_SIZE = 250
PAGES_PAGE_SIZE = 100
REQUEST_TIMEOUT = 30.0
BODY_PREVIEW_CHARS = 200


def extract_cursor(next_link: Optional[str]) -> Optional[str]:
    """Extract the pagination cursor from a ``_links.next`` value.

    Args:
        next_link: Relative or absolute URL of the next page.

    Returns:
        Decoded cursor token, or None if there is no next page.
    """
    if not next_link:
        return None
    match = re.search(r"cursor=([^&]+)", next_link)
    return unquote(match.group(1)) if match else None


@dataclass
class ConfluencePage:
    """A page returned by the label search.

    Attributes:
        id: Confluence page id.
        title: Page title.
        body: Storage-format body, fetched separately if not inlined.
    """

    id: str
    title: Optional[str]
    body: str


class ConfluenceClient:
    """Thin client for the Confluence REST endpoints used by the sync.

    Configuration is validated before every request so an incomplete setup
    fails without touching the network.
    """

    def __init__(
        self,
        config: ConfluenceConfig,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Base URL and credentials.
            transport: Optional httpx transport, used by tests.
        """
        self._config = config
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    def _http(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                base_url=self._config.base_url,
                auth=httpx.BasicAuth(self._config.username, self._config.api_token),
                headers={"Accept": "application/json", "Content-Type": "application/json"},
                timeout=REQUEST_TIMEOUT,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> "ConfluenceClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def find_label_id(self, label: str) -> Optional[str]:
        """Resolve a label name to its id.

        Walks every page of the label listing until an exact name match is
        found or the listing is exhausted.

        Args:
            label: Label name to look for.

        Returns:
            Label id, or None if no label has that name.

        Raises:
            ConfigurationError: If credentials are incomplete.
            RemoteError: On HTTP or transport failure.
        """
        params: dict[str, Any] = {"limit": LABELS_PAGE_SIZE, "prefix": LABEL_PREFIX}
        page_number = 1

        while True:
            data = self._get(
                "/wiki/api/v2/labels",
                params,
                operation=f"look up label '{label}' (page {page_number})",
                pagination=True,
            )

            for item in data.get("results") or []:
                if item.get("name") == label:
                    logger.info(f"Found label '{label}' on page {page_number}")
                    return str(item.get("id"))

            cursor = extract_cursor((data.get("_links") or {}).get("next"))
            if not cursor:
                break

            params = {**params, "cursor": cursor}
            page_number += 1

        logger.info(f"Label '{label}' not found after {page_number} page(s)")
        return None

    def get_pages_for_label(self, label_id: str) -> list[dict]:
        """List pages carrying a label, with storage bodies when available."""
        data = self._get(
            f"/wiki/api/v2/labels/{label_id}/pages",
            {"body-format": "storage", "limit": PAGES_PAGE_SIZE},
            operation=f"fetch pages for label {label_id}",
        )
        return data.get("results") or []

    def get_page_content(self, page_id: str) -> str:
        """Fetch the storage-format body of a single page."""
        logger.info(f"Looking for page with ID `{page_id}`")
        data = self._get(
            f"/rest/api/content/{page_id}",
            {"expand": "body.storage"},
            operation=f"fetch content for page {page_id}",
        )
        return ((data.get("body") or {}).get("storage") or {}).get("value") or ""

    def fetch_pages(self, label: str) -> list[ConfluencePage]:
        """Fetch every page carrying a label, with its body.

        Args:
            label: Label name.

        Returns:
            Pages in API order; empty if the label does not exist.
        """
        label_id = self.find_label_id(label)
        if label_id is None:
            return []

        pages = []
        for result in self.get_pages_for_label(label_id):
            page_id = str(result.get("id"))
            body = ((result.get("body") or {}).get("storage") or {}).get("value")
            if not body:
                body = self.get_page_content(page_id)
            pages.append(ConfluencePage(id=page_id, title=result.get("title"), body=body))

        logger.info(f"Found {len(pages)} pages for label '{label}'")
        return pages

    def _get(
        self,
        path: str,
        params: dict[str, Any],
        operation: str,
        pagination: bool = False,
    ) -> dict:
        """Issue a GET request and decode the JSON body.

        Raises:
            ConfigurationError: If credentials are incomplete.
            RemoteError: On non-2xx status, transport failure or invalid JSON.
        """
        self._config.validate()
        self._log_request("GET", path, params, pagination)

        try:
            response = self._http().get(path, params=params)
        except httpx.HTTPError as e:
            logger.error(f"Failed to {operation}: {e}")
            raise RemoteError(str(e), operation=operation) from e

        self._log_response(response, operation, pagination)

        if not response.is_success:
            raise RemoteError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                operation=operation,
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise RemoteError(f"Invalid JSON response: {e}", operation=operation) from e

    def _log_request(self, method: str, path: str, params: dict, pagination: bool) -> None:
        parts = [f"{method} {self._config.base_url}{path}"]
        if params:
            parts.append("Query: " + "&".join(f"{k}={v}" for k, v in params.items()))
        parts.append(f"Auth: Basic {self._config.username}:***")

        message = " | ".join(parts)
        if pagination:
            logger.debug(message)
        else:
            logger.info(message)

    def _log_response(self, response: httpx.Response, context: str, pagination: bool) -> None:
        if pagination and response.is_success:
            return

        body = response.text or ""
        if len(body) > BODY_PREVIEW_CHARS:
            body = f"{body[:BODY_PREVIEW_CHARS]}..."
        status = "OK" if response.is_success else "FAILED"
        logger.debug(f"{status} Response: {response.status_code} | {context} | Body: {body}")


class ConfluenceSyncer:
    """Refreshes the Confluence portion of a knowledge base."""

    def __init__(
        self,
        client: ConfluenceClient,
        content_store: LocalContentStore,
        summary_cache: SummaryCache,
    ) -> None:
        self._client = client
        self._content_store = content_store
        self._summary_cache = summary_cache

    def sync(
        self,
        kb_name: str,
        label: str,
        previous_pages: Sequence[PageEntry] = (),
    ) -> ConfluenceSource:
        """Fetch, convert, summarize and store all pages of a label.

        Args:
            kb_name: Knowledge base receiving the documents.
            label: Confluence label to search for.
            previous_pages: Stored entries, used to reuse unchanged summaries.

        Returns:
            Fresh ConfluenceSource for the manifest.
        """
        logger.info(f"Searching for pages labeled '{label}'")
        pages = self._client.fetch_pages(label)
        previous_by_id = {entry.id: entry for entry in previous_pages}
        hits, misses = self._summary_cache.hits, self._summary_cache.misses

        entries = []
        for page in pages:
            markdown = confluence_to_markdown(page.body)
            result = self._summary_cache.summarize(markdown, page.title, previous_by_id.get(page.id))

            self._content_store.store(kb_name, page.title or "untitled", markdown)
            entries.append(
                PageEntry(
                    id=page.id,
                    summary=result.summary,
                    title=page.title,
                    content_checksum=result.checksum,
                )
            )

        logger.info(
            f"Synced {len(entries)} Confluence pages for KB '{kb_name}' "
            f"({self._summary_cache.hits - hits} summaries reused, "
            f"{self._summary_cache.misses - misses} generated)"
        )
        return ConfluenceSource(pages=entries, label=label)
