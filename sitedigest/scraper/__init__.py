"""Scraper package — URL helpers, challenge detection, fetch & content extraction."""

from sitedigest.scraper.challenge import detect, is_challenge, is_too_thin
from sitedigest.scraper.cookies import CookieEntry, load_cookies
from sitedigest.scraper.extractor import HeuristicContentExtractor
from sitedigest.scraper.fetcher import (
    FallbackPageFetcher,
    HeadlessPageFetcher,
    HttpPageFetcher,
    PageFetcher,
    WordPressContentFetcher,
)
from sitedigest.scraper.headless import HeadlessSession, SessionState
from sitedigest.scraper.http import build_http_client
from sitedigest.scraper.models import DiscoveredUrl, PageContent

__all__ = [
    "CookieEntry",
    "DiscoveredUrl",
    "FallbackPageFetcher",
    "HeadlessPageFetcher",
    "HeadlessSession",
    "HeuristicContentExtractor",
    "HttpPageFetcher",
    "PageContent",
    "PageFetcher",
    "SessionState",
    "WordPressContentFetcher",
    "build_http_client",
    "detect",
    "is_challenge",
    "is_too_thin",
    "load_cookies",
]
