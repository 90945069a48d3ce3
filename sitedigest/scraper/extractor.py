"""Content extraction: fills ``PageContent.extracted_markdown`` from ``raw_html``."""

from __future__ import annotations

import logging

import trafilatura
from bs4 import BeautifulSoup

from sitedigest.scraper.models import PageContent
from sitedigest.scraper.text import clean_markdown

logger = logging.getLogger(__name__)

_CONTAINER_SELECTORS = (
    "main",
    "article",
    "[role=main]",
    ".content, .entry-content, .post-content",
    "body",
)

_NOISE_TAGS = ["script", "style", "noscript", "nav", "footer", "header", "aside"]

MIN_MARKDOWN_CHARS = 50

NO_CONTAINER = "No readable content block found"
TOO_SHORT = f"Extracted markdown too short (<{MIN_MARKDOWN_CHARS} chars)"


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _select_container(soup: BeautifulSoup):
    """Return the first structural content container, or ``None``."""
    for selector in _CONTAINER_SELECTORS:
        node = soup.select_one(selector)
        if node is not None:
            return node
    return None


def _to_markdown(fragment_html: str, url: str) -> str:
    """Convert *fragment_html* to markdown with trafilatura.

    Falls back to the fragment's plain text when trafilatura returns nothing
    (very short or heavily scripted blocks).
    """
    markdown = trafilatura.extract(
        fragment_html,
        output_format="markdown",
        include_links=False,
        include_images=False,
        include_tables=True,
        no_fallback=False,
        url=url,
    )
    if markdown:
        return markdown
    return BeautifulSoup(fragment_html, "html.parser").get_text(separator="\n", strip=True)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

class HeuristicContentExtractor:
    """Locate the main content block and turn it into markdown.

    Returns a new :class:`PageContent`; pages without a usable block, or
    whose markdown is shorter than ``min_chars``, are marked skipped with a
    human-readable reason.
    """

    def __init__(self, min_chars: int = MIN_MARKDOWN_CHARS) -> None:
        self._min_chars = min_chars

    def extract(self, page: PageContent) -> PageContent:
        soup = BeautifulSoup(page.raw_html or "", "html.parser")
        for tag in soup(_NOISE_TAGS):
            tag.decompose()

        container = _select_container(soup)
        if container is None:
            return page.skipped(NO_CONTAINER)

        markdown = clean_markdown(_to_markdown(str(container), page.url))
        if len(markdown) < self._min_chars:
            logger.debug("Extracted %d chars from %s", len(markdown), page.url)
            return page.skipped(TOO_SHORT, markdown)
        return page.with_extraction(markdown)
