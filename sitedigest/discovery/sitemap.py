"""Discovery from XML sitemaps and sitemap indexes."""

from __future__ import annotations

import logging
import threading
from xml.etree.ElementTree import ParseError

import httpx
from defusedxml import DefusedXmlException
from defusedxml import ElementTree as ET

from sitedigest.config import RunConfig
from sitedigest.discovery.base import UrlDiscovery
from sitedigest.scraper.models import DiscoveredUrl
from sitedigest.scraper.urls import canonicalize, is_http, same_host, to_absolute

logger = logging.getLogger(__name__)

CANDIDATE_PATHS = ("/sitemap.xml", "/sitemap_index.xml", "/wp-sitemap.xml")
MAX_INDEX_DEPTH = 3


def _local(tag: str) -> str:
    """Strip the ``{namespace}`` prefix from an element tag."""
    return tag.rsplit("}", 1)[-1].lower()


def parse_sitemap(body: str) -> tuple[str, list[str]]:
    """Return ``(kind, locs)`` where *kind* is ``"sitemapindex"`` or ``"urlset"``.

    Only the ``<loc>`` directly under each ``<url>``/``<sitemap>`` entry is
    read, so image and video extensions are ignored.

    Raises:
        ParseError / DefusedXmlException: On malformed or hostile XML.
    """
    root = ET.fromstring(body)
    kind = "sitemapindex" if _local(root.tag) == "sitemapindex" else "urlset"
    entry_tag = "sitemap" if kind == "sitemapindex" else "url"

    locs: list[str] = []
    for entry in root:
        if _local(entry.tag) != entry_tag:
            continue
        for child in entry:
            if _local(child.tag) == "loc" and child.text and child.text.strip():
                locs.append(child.text.strip())
                break
    return kind, locs


class SitemapDiscovery(UrlDiscovery):
    """Try the conventional sitemap locations in order; first usable one wins."""

    name = "sitemap"

    def __init__(self, client: httpx.Client, cancel: threading.Event | None = None) -> None:
        self._client = client
        self._cancel = cancel or threading.Event()

    def discover(self, config: RunConfig) -> list[DiscoveredUrl]:
        for path in CANDIDATE_PATHS:
            if self._cancel.is_set():
                break
            sitemap_url = str(httpx.URL(config.root).join(path))
            locs = self._collect(sitemap_url, config, depth=0, visited=set())
            urls = self._usable(locs, config)
            if urls:
                logger.info("Sitemap %s listed %d URLs", sitemap_url, len(urls))
                return urls
            logger.debug("Sitemap %s yielded nothing usable", sitemap_url)
        return []

    def _collect(self, sitemap_url: str, config: RunConfig, depth: int, visited: set[str]) -> list[str]:
        if sitemap_url in visited or depth >= MAX_INDEX_DEPTH:
            return []
        visited.add(sitemap_url)

        body = self._fetch(sitemap_url)
        if body is None:
            return []
        try:
            kind, locs = parse_sitemap(body)
        except (ParseError, DefusedXmlException) as exc:
            logger.debug("Malformed sitemap %s: %s", sitemap_url, exc)
            return []

        if kind == "urlset":
            return locs

        found: list[str] = []
        for child in locs:
            if self._cancel.is_set() or len(found) >= config.max_pages:
                break
            child_url = to_absolute(sitemap_url, child)
            if child_url:
                found.extend(self._collect(child_url, config, depth + 1, visited))
        return found

    def _fetch(self, url: str) -> str | None:
        try:
            response = self._client.get(url)
        except httpx.HTTPError as exc:
            logger.debug("Sitemap fetch failed for %s: %s", url, exc)
            return None
        if not response.is_success or not response.text.strip():
            return None
        return response.text

    @staticmethod
    def _usable(locs: list[str], config: RunConfig) -> list[DiscoveredUrl]:
        out: list[DiscoveredUrl] = []
        for loc in locs:
            absolute = to_absolute(config.root, loc)
            if not absolute or not is_http(absolute):
                continue
            if config.same_host_only and not same_host(absolute, config.host):
                continue
            out.append(DiscoveredUrl(canonicalize(absolute), "sitemap", 0))
        return out
