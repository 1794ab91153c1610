"""Tests for core/summary_cache.py."""

from core import checksum
from core.manifest_store import PageEntry
from core.summary_cache import SummaryCache


class TestSummaryCache:
    """Tests for SummaryCache class."""

    def test_generates_summary(self, fake_summarizer):
        cache = SummaryCache(fake_summarizer)

        result = cache.summarize("# Deploy\n\nRun the pipeline.", "Deploy")

        assert result.summary == fake_summarizer.reply
        assert result.checksum == checksum.compute("# Deploy\n\nRun the pipeline.")
        assert not result.reused
        assert cache.misses == 1

    def test_reuses_summary_for_unchanged_content(self, fake_summarizer):
        """Test an unchanged document costs no summarizer call."""
        cache = SummaryCache(fake_summarizer)
        content = "# Deploy\n\nRun the pipeline."
        previous = PageEntry(id="1", summary="Stored summary", content_checksum=checksum.compute(content))

        result = cache.summarize(content, "Deploy", previous)

        assert result.summary == "Stored summary"
        assert result.reused
        assert fake_summarizer.calls == 0
        assert cache.hits == 1

    def test_same_page_twice(self, fake_summarizer):
        """Test a page summarized twice with identical content calls the summarizer once."""
        cache = SummaryCache(fake_summarizer)
        content = "Identical body"

        first = cache.summarize(content, "Page")
        previous = PageEntry(id="1", summary=first.summary, content_checksum=first.checksum)
        second = cache.summarize(content, "Page", previous)

        assert second.summary == first.summary
        assert fake_summarizer.calls == 1

    def test_changed_content_resummarized(self, fake_summarizer):
        cache = SummaryCache(fake_summarizer)
        previous = PageEntry(id="1", summary="Old", content_checksum=checksum.compute("old body"))

        result = cache.summarize("new body", "Page", previous)

        assert result.summary == fake_summarizer.reply
        assert fake_summarizer.calls == 1

    def test_previous_without_checksum(self, fake_summarizer):
        cache = SummaryCache(fake_summarizer)
        previous = PageEntry(id="1", summary="Old")

        cache.summarize("body", "Page", previous)

        assert fake_summarizer.calls == 1

    def test_prompt_truncates_content(self, fake_summarizer):
        cache = SummaryCache(fake_summarizer)

        cache.summarize("a" * 12_000, "Big Page")

        prompt = fake_summarizer.prompts[0]
        assert "a" * 10_000 in prompt
        assert "a" * 10_001 not in prompt
        assert "Title: Big Page" in prompt
        assert "8-12 words" in prompt

    def test_reply_is_stripped(self, fake_summarizer):
        fake_summarizer.reply = "  Deploy steps and rollback  \n"
        result = SummaryCache(fake_summarizer).summarize("body", "Page")
        assert result.summary == "Deploy steps and rollback"

    def test_failure_falls_back_to_title(self, failing_summarizer):
        result = SummaryCache(failing_summarizer).summarize("body", "Deploy Guide")
        assert result.summary == "Deploy Guide"

    def test_failure_falls_back_to_preview(self, failing_summarizer):
        """Test untitled documents fall back to a whitespace-collapsed preview."""
        content = "word\n\n  " * 40

        result = SummaryCache(failing_summarizer).summarize(content)

        assert result.summary.endswith("...")
        assert len(result.summary) == 83
        assert "\n" not in result.summary
        assert result.summary.startswith("word word word")

    def test_empty_reply_falls_back(self, fake_summarizer):
        fake_summarizer.reply = "   "
        result = SummaryCache(fake_summarizer).summarize("body", "Deploy Guide")
        assert result.summary == "Deploy Guide"

    def test_empty_content(self, fake_summarizer):
        """Test empty content has no checksum and skips the summarizer."""
        result = SummaryCache(fake_summarizer).summarize("", "Empty Page")

        assert result.checksum is None
        assert result.summary == "Empty Page"
        assert fake_summarizer.calls == 0
