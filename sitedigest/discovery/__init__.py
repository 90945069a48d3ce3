"""Discovery package — ordered URL discovery strategies."""

from sitedigest.discovery.base import CompositeDiscovery, UrlDiscovery, dedupe_and_cap
from sitedigest.discovery.crawl import CrawlDiscovery
from sitedigest.discovery.rss import RssDiscovery
from sitedigest.discovery.sitemap import SitemapDiscovery
from sitedigest.discovery.wordpress import WordPressApiDiscovery

__all__ = [
    "CompositeDiscovery",
    "CrawlDiscovery",
    "RssDiscovery",
    "SitemapDiscovery",
    "UrlDiscovery",
    "WordPressApiDiscovery",
    "dedupe_and_cap",
]
