"""Breadth-first same-site crawl, the last-resort discovery strategy."""

from __future__ import annotations

import logging
import threading
from collections import deque

import httpx
from bs4 import BeautifulSoup

from sitedigest.config import RunConfig
from sitedigest.discovery.base import UrlDiscovery
from sitedigest.scraper.models import DiscoveredUrl
from sitedigest.scraper.urls import canonicalize, is_http, same_host, to_absolute

logger = logging.getLogger(__name__)


def extract_links(html: str, page_url: str) -> list[str]:
    """Return the absolute http(s) targets of every ``<a href>`` on the page, in order."""
    soup = BeautifulSoup(html, "html.parser")
    links: list[str] = []
    for anchor in soup.select("a[href]"):
        absolute = to_absolute(page_url, anchor.get("href", ""))
        if absolute and is_http(absolute):
            links.append(absolute)
    return links


class CrawlDiscovery(UrlDiscovery):
    """BFS from the canonical root URL.

    * ``visited`` is keyed by canonical URL, so cycles and fragment variants
      are never queued twice.
    * Out-links are only read from pages whose depth is below ``max_depth``.
    * ``max_pages`` bounds found-plus-queued URLs, both when dequeuing and
      before each enqueue.
    * A page that cannot be fetched contributes zero links.
    """

    name = "crawl"

    def __init__(self, client: httpx.Client, cancel: threading.Event | None = None) -> None:
        self._client = client
        self._cancel = cancel or threading.Event()

    def discover(self, config: RunConfig) -> list[DiscoveredUrl]:
        root = config.root
        visited: set[str] = {root}
        queue: deque[tuple[str, int]] = deque([(root, 0)])
        out: list[DiscoveredUrl] = []

        while queue and not self._cancel.is_set():
            if len(out) >= config.max_pages:
                break
            url, depth = queue.popleft()
            out.append(DiscoveredUrl(url, "crawl", depth))

            if depth >= config.max_depth or len(out) + len(queue) >= config.max_pages:
                continue

            for link in self._links(url):
                if len(out) + len(queue) >= config.max_pages:
                    break
                canonical = canonicalize(link)
                if canonical in visited:
                    continue
                if config.same_host_only and not same_host(canonical, config.host):
                    continue
                visited.add(canonical)
                queue.append((canonical, depth + 1))

            if config.delay > 0:
                self._cancel.wait(config.delay)

        logger.debug("Crawl visited %d URLs", len(out))
        return out

    def _links(self, url: str) -> list[str]:
        try:
            response = self._client.get(url)
        except httpx.HTTPError as exc:
            logger.debug("Crawl fetch failed for %s: %s", url, exc)
            return []
        if not response.is_success:
            return []
        return extract_links(response.text, str(response.url))
