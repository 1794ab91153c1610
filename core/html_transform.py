"""HTML to Markdown conversion and title inference.

Web pages go through a main-content extraction step before conversion:

1. Pick the first candidate region whose markup exceeds 100 characters:
   <main>, <article>, common content/post/docs divs, then <body>.
2. Strip scripts, styles, navigation chrome and social/ad/modal widgets.
3. Convert what is left to GitHub-flavoured Markdown.

Conversion never raises. If the converter fails, a plain-text extraction is
used instead.
"""

import logging
import re
from typing import Callable, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup
from bs4.element import Tag
from markdownify import markdownify as md

from core.summarizer import Summarizer


logger = logging.getLogger(__name__)


MIN_CANDIDATE_CHARS = 100
MIN_TEXT_CHARS = 20
EXTRACTION_FAILED = "Content could not be extracted from this page."

NAVIGATION_SELECTORS = ["nav", "header", "footer", "aside", "sidebar", "menu", "breadcrumb"]
UNWANTED_DIV_CLASSES = ["comment", "social", "share", "ad", "advertisement", "popup", "modal"]

TITLE_ENTITIES = {
    "&amp;": "&",
    "&lt;": "<",
    "&gt;": ">",
    "&quot;": '"',
    "&#39;": "'",
    "&apos;": "'",
}

TEXT_ENTITIES = {
    "&nbsp;": " ",
    "&amp;": "&",
    "&lt;": "<",
    "&gt;": ">",
    "&quot;": '"',
}

GENERIC_TITLE_PATTERNS = [
    re.compile(r"^(home|index|welcome|untitled|document)$", re.IGNORECASE),
    re.compile(r"^(page|default)$", re.IGNORECASE),
    re.compile(r"^\s*$"),
    # Truncated titles
    re.compile(r"\.\.\.|…"),
    # Site name and id suffixes, e.g. "Question - Site - 12345"
    re.compile(r" - .+ - \d+$"),
    re.compile(r"^how do i .+(\.\.\.|…)", re.IGNORECASE),
    re.compile(r"^what is .+(\.\.\.|…)", re.IGNORECASE),
]


# =============================================================================
# Main content extraction
# =============================================================================


def _class_string(tag: Tag) -> str:
    classes = tag.get("class") or []
    if isinstance(classes, str):
        return classes
    return " ".join(classes)


def _class_words(tag: Tag) -> set[str]:
    return {word for word in re.split(r"[\s_-]+", _class_string(tag).lower()) if word}


def _first_div(soup: BeautifulSoup, predicate: Callable[[Tag], bool]) -> Optional[Tag]:
    for div in soup.find_all("div"):
        if predicate(div):
            return div
    return None


def _div_with_class(fragment: str) -> Callable[[BeautifulSoup], Optional[Tag]]:
    return lambda soup: _first_div(soup, lambda d: fragment in _class_string(d).lower())


CONTENT_CANDIDATES: list[Callable[[BeautifulSoup], Optional[Tag]]] = [
    lambda soup: soup.find("main"),
    lambda soup: soup.find("article"),
    _div_with_class("content"),
    lambda soup: _first_div(soup, lambda d: d.get("id") == "content"),
    _div_with_class("post"),
    # Documentation sites
    _div_with_class("docs"),
    _div_with_class("documentation"),
]


def extract_main_content(html: str) -> str:
    """Select the main content region of a page and strip the noise.

    Args:
        html: Full page markup.

    Returns:
        Cleaned HTML of the selected region.
    """
    soup = BeautifulSoup(html, "html.parser")

    selected: Optional[str] = None
    for candidate in CONTENT_CANDIDATES:
        tag = candidate(soup)
        if tag is None:
            continue
        inner = tag.decode_contents()
        if len(inner.strip()) > MIN_CANDIDATE_CHARS:
            selected = inner
            break

    if selected is None:
        selected = soup.body.decode_contents() if soup.body else str(soup)

    return clean_html_content(selected)


def _is_navigation(tag: Tag) -> bool:
    if tag.name in NAVIGATION_SELECTORS:
        return True
    classes = _class_string(tag).lower()
    tag_id = tag.get("id")
    return any(s in classes or tag_id == s for s in NAVIGATION_SELECTORS)


def _is_unwanted_div(tag: Tag) -> bool:
    return tag.name == "div" and bool(_class_words(tag) & set(UNWANTED_DIV_CLASSES))


def clean_html_content(html: str) -> str:
    """Remove scripts, navigation chrome and widgets from markup.

    Args:
        html: Markup to clean.

    Returns:
        Cleaned markup with runs of blank lines collapsed.
    """
    soup = BeautifulSoup(html, "html.parser")

    for tag in soup.find_all(["script", "style"]):
        tag.decompose()

    for tag in soup.find_all(True):
        if tag.decomposed:
            continue
        if _is_navigation(tag) or _is_unwanted_div(tag):
            tag.decompose()

    return re.sub(r"\n\s*\n\s*\n+", "\n\n", str(soup)).strip()


# =============================================================================
# Markdown conversion
# =============================================================================


def _code_language(pre: Tag) -> Optional[str]:
    code = pre.find("code")
    if code is None:
        return None
    for cls in code.get("class") or []:
        if cls.startswith("language-") and len(cls) > len("language-"):
            return cls[len("language-"):]
    return None


def to_markdown(html: str) -> str:
    """Convert HTML to GitHub-flavoured Markdown."""
    markdown = md(html, heading_style="ATX", bullets="-", code_language_callback=_code_language)
    return re.sub(r"\n{3,}", "\n\n", markdown).strip()


def extract_text_content(html: str) -> str:
    """Plain-text extraction used when Markdown conversion fails.

    Args:
        html: Markup to flatten.

    Returns:
        Whitespace-collapsed text, or a fixed notice if almost nothing is left.
    """
    text = re.sub(r"<script[^>]*>.*?</script>", "", html, flags=re.IGNORECASE | re.DOTALL)
    text = re.sub(r"<style[^>]*>.*?</style>", "", text, flags=re.IGNORECASE | re.DOTALL)
    text = re.sub(r"<[^>]+>", "", text)
    for entity, char in TEXT_ENTITIES.items():
        text = text.replace(entity, char)
    text = re.sub(r"\s+", " ", text).strip()

    return EXTRACTION_FAILED if len(text) < MIN_TEXT_CHARS else text


def web_html_to_markdown(html: Optional[str]) -> str:
    """Convert a fetched web page to Markdown.

    Args:
        html: Raw page markup.

    Returns:
        Markdown of the main content. Never raises.
    """
    if not html:
        return ""

    try:
        return to_markdown(extract_main_content(html))
    except Exception as e:
        logger.warning(f"Failed to convert HTML to markdown: {e}")
        return extract_text_content(html)


# =============================================================================
# Confluence storage format
# =============================================================================


_CODE_MACRO = re.compile(
    r'<ac:structured-macro[^>]*ac:name="code"[^>]*>'
    r'(?:.*?<ac:parameter[^>]*ac:name="language"[^>]*>([^<]*)</ac:parameter>)?'
    r".*?<ac:plain-text-body><!\[CDATA\[(.*?)\]\]></ac:plain-text-body>.*?</ac:structured-macro>",
    re.DOTALL,
)
_EMPTY_CODE_MACRO = re.compile(
    r'<ac:structured-macro[^>]*ac:name="code"[^>]*>.*?<ac:plain-text-body>\s*</ac:plain-text-body>'
    r".*?</ac:structured-macro>",
    re.DOTALL,
)
_ANY_RICH_MACRO = re.compile(
    r"<ac:structured-macro[^>]*>.*?<ac:rich-text-body>(.*?)</ac:rich-text-body>.*?</ac:structured-macro>",
    re.DOTALL,
)

CALLOUT_LABELS = {
    "info": "Info:",
    "note": "Note:",
    "warning": "Warning:",
}


def _rich_macro(name: str) -> re.Pattern:
    return re.compile(
        rf'<ac:structured-macro[^>]*ac:name="{name}"[^>]*>.*?<ac:rich-text-body>(.*?)</ac:rich-text-body>'
        r".*?</ac:structured-macro>",
        re.DOTALL,
    )


def _escape_code(code: str) -> str:
    return code.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def preprocess_confluence_macros(html: str) -> str:
    """Rewrite Confluence structured macros into plain HTML.

    Args:
        html: Confluence storage-format markup.

    Returns:
        Markup the Markdown converter understands.
    """

    def code_block(m: re.Match) -> str:
        language = (m.group(1) or "").strip()
        return f'<pre><code class="language-{language}">{_escape_code(m.group(2) or "")}</code></pre>'

    cleaned = _CODE_MACRO.sub(code_block, html)
    cleaned = _EMPTY_CODE_MACRO.sub("", cleaned)
    cleaned = _rich_macro("panel").sub(r"<blockquote>\1</blockquote>", cleaned)
    for name, label in CALLOUT_LABELS.items():
        cleaned = _rich_macro(name).sub(
            lambda m, label=label: f"<blockquote><strong>{label}</strong> {m.group(1)}</blockquote>",
            cleaned,
        )
    cleaned = _ANY_RICH_MACRO.sub(r"\1", cleaned)
    cleaned = re.sub(r"<ac:parameter[^>]*>.*?</ac:parameter>", "", cleaned, flags=re.DOTALL)
    cleaned = re.sub(r"</?ac:[^>]*>", "", cleaned)
    return cleaned


def confluence_to_markdown(html: Optional[str]) -> str:
    """Convert a Confluence page body to Markdown.

    Args:
        html: Storage-format body of the page.

    Returns:
        Markdown. Never raises.
    """
    if not html:
        return ""

    try:
        return to_markdown(preprocess_confluence_macros(html))
    except Exception as e:
        logger.warning(f"Failed to convert Confluence page to markdown: {e}")
        return extract_text_content(html)


# =============================================================================
# Title inference
# =============================================================================


def extract_html_title(html: Optional[str]) -> Optional[str]:
    """Read the <title> tag, decoding the common entities.

    Returns:
        Stripped title, or None if the page has no title tag.
    """
    if not html:
        return None
    match = re.search(r"<title[^>]*>(.*?)</title>", html, flags=re.IGNORECASE | re.DOTALL)
    if not match:
        return None

    title = match.group(1).strip()
    return re.sub(r"&([a-zA-Z]+|#\d+);", lambda m: TITLE_ENTITIES.get(m.group(0), m.group(0)), title)


def is_generic_title(title: str) -> bool:
    """Check whether a title is too generic to describe the page."""
    return any(pattern.search(title) for pattern in GENERIC_TITLE_PATTERNS)


def title_from_url(url: str) -> str:
    """Derive a readable title from a URL.

    Uses the last non-empty path segment, e.g. ``/docs/getting-started`` →
    "Getting Started", falling back to the host name.
    """
    parsed = urlparse(url)
    segments = [s for s in parsed.path.split("/") if s]
    if segments:
        words = re.sub(r"[-_]", " ", segments[-1]).split()
        if words:
            return " ".join(w.capitalize() for w in words)
    return parsed.hostname or url


class TitleGenerator:
    """Chooses a descriptive title for a fetched web page."""

    MIN_TITLE_CHARS = 10
    MIN_CONTENT_CHARS = 50
    MAX_PROMPT_CONTENT_CHARS = 1000

    TITLE_PROMPT = """Based on the following web page content from {url}, generate a concise, descriptive title
that would help an AI agent understand what this document contains and when it would be useful.

The title should be:
- 3-8 words long
- Focused on the main topic or purpose
- Helpful for knowledge retrieval
- Professional and clear

Content:
{content}

Respond with only the title, no additional text or explanation."""

    def __init__(self, summarizer: Summarizer) -> None:
        self._summarizer = summarizer

    def generate(self, html_title: Optional[str], content: str, url: str) -> str:
        """Pick the page title.

        Args:
            html_title: Decoded <title> of the page, if any.
            content: Converted Markdown content.
            url: The page URL.

        Returns:
            A descriptive title.
        """
        if html_title and len(html_title) > self.MIN_TITLE_CHARS and not is_generic_title(html_title):
            return html_title

        fallback = self._fallback_title(html_title, url)
        if len(content) < self.MIN_CONTENT_CHARS:
            return fallback

        if len(content) > self.MAX_PROMPT_CONTENT_CHARS:
            truncated = f"{content[: self.MAX_PROMPT_CONTENT_CHARS]}..."
        else:
            truncated = content

        response = self._summarizer.summarize(self.TITLE_PROMPT.format(url=url, content=truncated))
        title = response.content.strip().strip("\"'").strip() if response.success and response.content else ""
        if not title:
            logger.warning(f"Failed to generate title for {url}: {response.error or 'empty response'}")
            return fallback
        return title

    @staticmethod
    def _fallback_title(html_title: Optional[str], url: str) -> str:
        if html_title and not is_generic_title(html_title):
            return html_title
        return title_from_url(url)
