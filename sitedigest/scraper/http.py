"""Shared ``httpx.Client`` factory for all plain-HTTP traffic in a run."""

from __future__ import annotations

import httpx

from sitedigest.config import settings
from sitedigest.scraper.cookies import CookieEntry, to_httpx_cookies

_DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


def build_http_client(cookies: list[CookieEntry] | None = None) -> httpx.Client:
    """Return a client with browser-like headers, redirects and an optional cookie jar.

    The caller owns the client and must close it at the end of the run.
    """
    headers = {"User-Agent": settings.user_agent, **_DEFAULT_HEADERS}
    return httpx.Client(
        headers=headers,
        timeout=settings.request_timeout,
        follow_redirects=True,
        cookies=to_httpx_cookies(cookies) if cookies else None,
    )
