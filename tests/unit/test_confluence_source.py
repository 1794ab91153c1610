"""Tests for core/confluence_source.py."""

import logging

import httpx
import pytest

from config.settings import ConfluenceConfig
from core.confluence_source import ConfluenceClient, ConfluenceSyncer, extract_cursor
from core.errors import ConfigurationError, RemoteError
from core.manifest_store import PageEntry
from core.summary_cache import SummaryCache
from utils.file_utils import LocalContentStore


def label_pages(match_on_page=None, label="infra", pages=3):
    """Build a handler serving a paginated label listing."""

    def handler(request: httpx.Request) -> httpx.Response:
        cursor = request.url.params.get("cursor")
        page = int(cursor.split("-")[1]) if cursor else 1

        results = [{"id": f"{page}0{i}", "name": f"other-{page}-{i}"} for i in range(3)]
        if page == match_on_page:
            results.append({"id": "777", "name": label})

        links = {}
        if page < pages:
            links["next"] = f"/wiki/api/v2/labels?limit=250&prefix=global&cursor=page-{page + 1}"
        return httpx.Response(200, json={"results": results, "_links": links})

    return handler


class TestExtractCursor:
    """Tests for extract_cursor function."""

    def test_relative_link(self):
        assert extract_cursor("/wiki/api/v2/labels?limit=250&cursor=abc123") == "abc123"

    def test_cursor_followed_by_params(self):
        assert extract_cursor("/labels?cursor=abc&limit=250") == "abc"

    def test_encoded_cursor(self):
        assert extract_cursor("/labels?cursor=a%3Db") == "a=b"

    def test_no_link(self):
        assert extract_cursor(None) is None
        assert extract_cursor("") is None

    def test_link_without_cursor(self):
        assert extract_cursor("/wiki/api/v2/labels?limit=250") is None


class TestConfluenceConfig:
    """Tests for configuration checks before network calls."""

    @pytest.mark.parametrize(
        "config, message",
        [
            (ConfluenceConfig(None, "user", "token"), "base URL"),
            (ConfluenceConfig("https://x", "", "token"), "username"),
            (ConfluenceConfig("https://x", "user", None), "API token"),
            (ConfluenceConfig(None, None, None), "base URL"),
        ],
    )
    def test_missing_field_rejected_before_request(self, config, message, mock_transport):
        """Test incomplete configuration fails without any request."""
        transport = mock_transport(lambda request: httpx.Response(200, json={}))
        client = ConfluenceClient(config, transport=transport)

        with pytest.raises(ConfigurationError, match=message):
            client.fetch_pages("infra")

        assert transport.requests == []


class TestFindLabelId:
    """Tests for label discovery."""

    def test_match_on_last_page(self, confluence_config, mock_transport):
        """Test a match on page 3 is found after exactly 3 listing fetches."""
        transport = mock_transport(label_pages(match_on_page=3))
        client = ConfluenceClient(confluence_config, transport=transport)

        assert client.find_label_id("infra") == "777"
        assert len(transport.requests) == 3

    def test_no_match(self, confluence_config, mock_transport):
        """Test a missing label returns None after exactly 3 listing fetches."""
        transport = mock_transport(label_pages(match_on_page=None))
        client = ConfluenceClient(confluence_config, transport=transport)

        assert client.find_label_id("infra") is None
        assert len(transport.requests) == 3

    def test_match_on_first_page_stops(self, confluence_config, mock_transport):
        transport = mock_transport(label_pages(match_on_page=1))
        client = ConfluenceClient(confluence_config, transport=transport)

        assert client.find_label_id("infra") == "777"
        assert len(transport.requests) == 1

    def test_exact_name_match(self, confluence_config, mock_transport):
        """Test labels are matched by exact name only."""
        transport = mock_transport(label_pages(match_on_page=1, label="infra-old", pages=1))
        client = ConfluenceClient(confluence_config, transport=transport)

        assert client.find_label_id("infra") is None

    def test_request_shape(self, confluence_config, mock_transport):
        """Test listing query, cursor forwarding and Basic auth."""
        transport = mock_transport(label_pages(match_on_page=2))
        client = ConfluenceClient(confluence_config, transport=transport)

        client.find_label_id("infra")

        first, second = transport.requests
        assert first.url.path == "/wiki/api/v2/labels"
        assert first.url.params["limit"] == "250"
        assert first.url.params["prefix"] == "global"
        assert "cursor" not in first.url.params
        assert second.url.params["cursor"] == "page-2"
        assert first.headers["Authorization"].startswith("Basic ")
        assert first.headers["Accept"] == "application/json"

    def test_http_error(self, confluence_config, mock_transport):
        """Test non-2xx responses raise RemoteError naming the operation."""
        transport = mock_transport(lambda request: httpx.Response(401, text="nope"))
        client = ConfluenceClient(confluence_config, transport=transport)

        with pytest.raises(RemoteError) as exc_info:
            client.find_label_id("infra")

        assert exc_info.value.status_code == 401
        assert "HTTP 401: Unauthorized" in str(exc_info.value)
        assert "look up label 'infra'" in str(exc_info.value)

    def test_transport_error(self, confluence_config, mock_transport):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = ConfluenceClient(confluence_config, transport=mock_transport(handler))

        with pytest.raises(RemoteError, match="connection refused"):
            client.find_label_id("infra")

    def test_invalid_json(self, confluence_config, mock_transport):
        transport = mock_transport(lambda request: httpx.Response(200, text="<html>"))
        client = ConfluenceClient(confluence_config, transport=transport)

        with pytest.raises(RemoteError, match="Invalid JSON"):
            client.find_label_id("infra")


def confluence_api(pages, bodies=None, label="infra"):
    """Build a handler serving a one-page label listing and page bodies."""
    bodies = bodies or {}

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/wiki/api/v2/labels":
            return httpx.Response(200, json={"results": [{"id": "9", "name": label}], "_links": {}})
        if path == "/wiki/api/v2/labels/9/pages":
            return httpx.Response(200, json={"results": pages})
        if path.startswith("/rest/api/content/"):
            page_id = path.rsplit("/", 1)[1]
            return httpx.Response(200, json={"body": {"storage": {"value": bodies[page_id]}}})
        return httpx.Response(404)

    return handler


class TestFetchPages:
    """Tests for page fetching."""

    def test_inline_bodies(self, confluence_config, mock_transport):
        pages = [{"id": "1", "title": "Deploy", "body": {"storage": {"value": "<p>Deploy</p>"}}}]
        transport = mock_transport(confluence_api(pages))
        client = ConfluenceClient(confluence_config, transport=transport)

        result = client.fetch_pages("infra")

        assert [(p.id, p.title, p.body) for p in result] == [("1", "Deploy", "<p>Deploy</p>")]
        assert transport.paths("/rest/api/content") == []
        listing = transport.requests[1]
        assert listing.url.params["body-format"] == "storage"
        assert listing.url.params["limit"] == "100"

    def test_body_fetched_when_not_inlined(self, confluence_config, mock_transport):
        """Test pages without an inline body are fetched individually."""
        pages = [{"id": "2", "title": "Rota"}]
        transport = mock_transport(confluence_api(pages, bodies={"2": "<p>Rota</p>"}))
        client = ConfluenceClient(confluence_config, transport=transport)

        result = client.fetch_pages("infra")

        assert result[0].body == "<p>Rota</p>"
        content_request = transport.requests[-1]
        assert content_request.url.path == "/rest/api/content/2"
        assert content_request.url.params["expand"] == "body.storage"

    def test_unknown_label(self, confluence_config, mock_transport):
        transport = mock_transport(label_pages(match_on_page=None, pages=1))
        client = ConfluenceClient(confluence_config, transport=transport)

        assert client.fetch_pages("infra") == []
        assert len(transport.requests) == 1


class TestConfluenceSyncer:
    """Tests for ConfluenceSyncer class."""

    PAGES = [
        {"id": "1", "title": "Deploy Guide", "body": {"storage": {"value": "<h1>Deploy</h1><p>Run the pipeline.</p>"}}},
    ]

    @pytest.fixture
    def syncer_factory(self, confluence_config, mock_transport, kb_root, fake_summarizer):
        def build(pages=None):
            transport = mock_transport(confluence_api(pages or self.PAGES))
            client = ConfluenceClient(confluence_config, transport=transport)
            return ConfluenceSyncer(client, LocalContentStore(kb_root), SummaryCache(fake_summarizer))

        return build

    def test_sync_stores_pages(self, syncer_factory, kb_root, fake_summarizer):
        source = syncer_factory().sync("infra", "infra")

        assert source.label == "infra"
        entry = source.pages[0]
        assert entry.id == "1"
        assert entry.title == "Deploy Guide"
        assert entry.summary == fake_summarizer.reply
        assert entry.content_checksum.startswith("sha256:")

        content = (kb_root / "infra" / "Deploy-Guide.md").read_text(encoding="utf-8")
        assert content.startswith("# Deploy")
        assert "Run the pipeline." in content

    def test_unchanged_page_reuses_summary(self, syncer_factory, fake_summarizer):
        """Test the same page fetched twice is summarized once."""
        syncer = syncer_factory()

        first = syncer.sync("infra", "infra")
        second = syncer.sync("infra", "infra", previous_pages=first.pages)

        assert second.pages[0].summary == first.pages[0].summary
        assert second.pages[0].content_checksum == first.pages[0].content_checksum
        assert fake_summarizer.calls == 1

    def test_logs_reused_and_generated_summaries(self, syncer_factory, caplog):
        syncer = syncer_factory()
        first = syncer.sync("infra", "infra")

        with caplog.at_level(logging.INFO, logger="core.confluence_source"):
            syncer.sync("infra", "infra", previous_pages=first.pages)

        assert "Synced 1 Confluence pages for KB 'infra' (1 summaries reused, 0 generated)" in caplog.text

    def test_changed_page_resummarized(self, syncer_factory, fake_summarizer):
        previous = [PageEntry(id="1", summary="stale", content_checksum="sha256:old")]

        source = syncer_factory().sync("infra", "infra", previous_pages=previous)

        assert source.pages[0].summary == fake_summarizer.reply
        assert fake_summarizer.calls == 1

    def test_untitled_page(self, syncer_factory, kb_root):
        pages = [{"id": "5", "body": {"storage": {"value": "<p>Body text</p>"}}}]

        source = syncer_factory(pages).sync("infra", "infra")

        assert source.pages[0].title is None
        assert (kb_root / "infra" / "untitled.md").exists()
