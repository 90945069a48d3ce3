"""Page fetch strategies and the headless fallback chain.

Every strategy implements ``fetch(url) -> PageContent | None`` and returns
``None`` instead of raising on ordinary network or parse failures.

The production chain is::

    FallbackPageFetcher(
        primary=WordPressContentFetcher(HttpPageFetcher(client), wp_client),
        headless=HeadlessPageFetcher(cookies, session),
    )

The primary result is diagnosed with :mod:`sitedigest.scraper.challenge`;
if it is missing, matches a challenge signature or is too thin, the
headless strategy runs, and its result wins whenever it returns one.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable

import httpx
from bs4 import BeautifulSoup

from sitedigest.scraper import challenge
from sitedigest.scraper.cookies import CookieEntry
from sitedigest.scraper.headless import HeadlessSession, render_page
from sitedigest.scraper.models import PageContent
from sitedigest.scraper.urls import title_from_path

if TYPE_CHECKING:
    from sitedigest.wordpress.client import WordPressItem, WordPressRestClient

logger = logging.getLogger(__name__)

_SNIFF_LENGTH = 4096
_HTML_MARKERS = ("<!doctype html", "<html", "<head", "<body")

_COOKIE_TIP = "Tip: supply a cookie file from a real browser session"


def looks_like_html(body: str | None) -> bool:
    """Sniff the first 4 KB of *body* for HTML markers."""
    if not body or not body.strip():
        return False
    sample = body[:_SNIFF_LENGTH].lower()
    return any(marker in sample for marker in _HTML_MARKERS)


def _extract_title(html: str) -> str:
    """Return the text of the first ``<title>`` tag, or empty string."""
    title = BeautifulSoup(html, "html.parser").title
    return title.get_text(strip=True) if title is not None else ""


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------

class PageFetcher(ABC):
    """A single way of turning a URL into raw page content."""

    @abstractmethod
    def fetch(self, url: str) -> PageContent | None:
        """Return the page or ``None``.  Must not raise on ordinary failures."""


# ---------------------------------------------------------------------------
# Plain HTTP
# ---------------------------------------------------------------------------

class HttpPageFetcher(PageFetcher):
    """GET the page and accept it when the header or the body says HTML.

    A non-2xx response is still accepted when its body sniffs as HTML:
    protection pages and some CMS error templates carry real markup behind
    403/503 statuses, and the fallback chain needs to see them to diagnose
    the cause.
    """

    def __init__(self, client: httpx.Client) -> None:
        self._client = client

    def fetch(self, url: str) -> PageContent | None:
        try:
            response = self._client.get(url)
        except httpx.HTTPError as exc:
            logger.debug("HTTP fetch failed for %s: %s", url, exc)
            return None

        body = response.text
        if not body or not body.strip():
            return None

        content_type = response.headers.get("content-type", "").lower()
        html_by_header = "html" in content_type or "xml" in content_type
        html_by_body = looks_like_html(body)

        if not response.is_success and not html_by_body:
            return None
        if not html_by_header and not html_by_body:
            return None

        return PageContent.fetched(url, _extract_title(body) or title_from_path(url), body)


# ---------------------------------------------------------------------------
# WordPress REST content cache
# ---------------------------------------------------------------------------

def as_fetched_html(item: WordPressItem) -> str:
    """Wrap REST-rendered HTML as a synthetic article container."""
    return f"<article>{item.rendered_html}</article>"


class WordPressContentFetcher(PageFetcher):
    """Serve REST-rendered HTML captured during discovery; otherwise delegate."""

    def __init__(self, fallback: PageFetcher, wp_client: WordPressRestClient) -> None:
        self._fallback = fallback
        self._wp_client = wp_client

    def fetch(self, url: str) -> PageContent | None:
        item = self._wp_client.get_cached(url)
        if item is not None:
            return PageContent.fetched(item.url, item.title, as_fetched_html(item), item.modified_at)
        return self._fallback.fetch(url)


# ---------------------------------------------------------------------------
# Headless browser
# ---------------------------------------------------------------------------

class HeadlessPageFetcher(PageFetcher):
    """Render the page in Chromium.

    Uses the shared session when one was resolved by the root probe;
    otherwise launches a disposable stealth browser per call.
    """

    def __init__(
        self,
        cookies: list[CookieEntry] | None = None,
        session: HeadlessSession | None = None,
        renderer: Callable[..., Any] = render_page,
    ) -> None:
        self._cookies = cookies or []
        self._session = session
        self._renderer = renderer

    def fetch(self, url: str) -> PageContent | None:
        session = self._session
        if session is not None and session.is_resolved:
            return self._fetch_via_session(session, url)
        return self._fetch_standalone(url)

    def _fetch_via_session(self, session: HeadlessSession, url: str) -> PageContent | None:
        response = session.get(url, settle=True)
        if response is None or not response.body.strip():
            return None
        html = response.html or response.body
        title = response.title.strip() or _extract_title(html) or title_from_path(url)
        return PageContent.fetched(url, title, html)

    def _fetch_standalone(self, url: str) -> PageContent | None:
        rendered = self._renderer(url, self._cookies)
        if rendered is None:
            return None
        html, title = rendered
        return PageContent.fetched(url, (title or "").strip() or title_from_path(url), html)


# ---------------------------------------------------------------------------
# Fallback orchestration
# ---------------------------------------------------------------------------

class FallbackPageFetcher(PageFetcher):
    """Run *primary*; escalate to *headless* when the result looks blocked.

    Every escalation is logged with its diagnosed cause so operators can
    tell "site blocks bots" apart from "site is slow or empty".
    """

    def __init__(self, primary: PageFetcher, headless: PageFetcher, thin_threshold: int | None = None) -> None:
        self._primary = primary
        self._headless = headless
        self._thin_threshold = thin_threshold

    def fetch(self, url: str) -> PageContent | None:
        primary = self._primary.fetch(url)
        raw = primary.raw_html if primary is not None else None

        label = challenge.detect(raw)
        thin = challenge.is_too_thin(raw, self._thin_threshold)
        if primary is not None and label is None and not thin:
            return primary

        if label is not None:
            logger.warning("Protection detected on %s: %s — retrying with headless browser", url, label)
        elif primary is not None:
            logger.warning(
                "Response too thin on %s (%d bytes) — retrying with headless browser",
                url, len(raw or ""),
            )
        else:
            logger.warning("Primary fetch failed for %s — retrying with headless browser", url)

        headless = self._headless.fetch(url)
        if headless is None:
            logger.warning("Headless browser returned nothing for %s", url)
            return primary

        headless_label = challenge.detect(headless.raw_html)
        if headless_label is not None:
            logger.warning("Headless browser also blocked on %s: %s. %s", url, headless_label, _COOKIE_TIP)
        elif challenge.is_too_thin(headless.raw_html, self._thin_threshold):
            logger.warning(
                "Headless browser returned thin content for %s (%d bytes). %s",
                url, len(headless.raw_html), _COOKIE_TIP,
            )
        return headless
