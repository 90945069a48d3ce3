"""Discovery from RSS/Atom feeds."""

from __future__ import annotations

import logging
import threading

import feedparser
import httpx

from sitedigest.config import RunConfig
from sitedigest.discovery.base import UrlDiscovery
from sitedigest.scraper.models import DiscoveredUrl
from sitedigest.scraper.urls import canonicalize, is_http, same_host, to_absolute

logger = logging.getLogger(__name__)

CANDIDATE_PATHS = ("/feed/", "/rss", "/rss.xml", "/feed.xml")


def _entry_link(entry) -> str | None:
    """First link of a feed entry: ``link``, else the first ``links`` href."""
    link = getattr(entry, "link", None)
    if link:
        return link
    for candidate in getattr(entry, "links", None) or []:
        href = candidate.get("href")
        if href:
            return href
    return None


class RssDiscovery(UrlDiscovery):
    """Try the conventional feed locations in order; first usable one wins.

    The feed is downloaded with the shared httpx client (headers, cookies,
    timeout) and only parsed by feedparser.
    """

    name = "rss"

    def __init__(self, client: httpx.Client, cancel: threading.Event | None = None) -> None:
        self._client = client
        self._cancel = cancel or threading.Event()

    def discover(self, config: RunConfig) -> list[DiscoveredUrl]:
        for path in CANDIDATE_PATHS:
            if self._cancel.is_set():
                break
            feed_url = str(httpx.URL(config.root).join(path))
            urls = self._read_feed(feed_url, config)
            if urls:
                logger.info("Feed %s listed %d URLs", feed_url, len(urls))
                return urls
        return []

    def _read_feed(self, feed_url: str, config: RunConfig) -> list[DiscoveredUrl]:
        try:
            response = self._client.get(feed_url)
        except httpx.HTTPError as exc:
            logger.debug("Feed fetch failed for %s: %s", feed_url, exc)
            return []
        if not response.is_success or not response.content.strip():
            return []

        parsed = feedparser.parse(response.content)
        if parsed.bozo and not parsed.entries:
            logger.debug("Invalid feed at %s: %s", feed_url, parsed.get("bozo_exception"))
            return []

        out: list[DiscoveredUrl] = []
        for entry in parsed.entries:
            link = _entry_link(entry)
            absolute = to_absolute(feed_url, link) if link else None
            if not absolute or not is_http(absolute):
                continue
            if config.same_host_only and not same_host(absolute, config.host):
                continue
            out.append(DiscoveredUrl(canonicalize(absolute), "rss", 0))
        return out
