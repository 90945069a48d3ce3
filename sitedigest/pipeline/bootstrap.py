"""Composition root: builds every collaborator for a run and tears them down.

``run_site`` is what the CLI calls.  It owns the shared ``httpx.Client``
and the optional :class:`HeadlessSession`, and closes both on exit whether
the run finished, failed or was cancelled.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator

import httpx

from sitedigest.cache.manifest import ManifestStore
from sitedigest.config import RunConfig, settings
from sitedigest.discovery import (
    CompositeDiscovery,
    CrawlDiscovery,
    RssDiscovery,
    SitemapDiscovery,
    WordPressApiDiscovery,
)
from sitedigest.output.writer import FileOutputWriter, site_output_root
from sitedigest.pipeline.runner import RunResult, SummarizationPipeline
from sitedigest.scraper import challenge
from sitedigest.scraper.cookies import CookieEntry, load_cookies
from sitedigest.scraper.extractor import HeuristicContentExtractor
from sitedigest.scraper.fetcher import (
    FallbackPageFetcher,
    HeadlessPageFetcher,
    HttpPageFetcher,
    WordPressContentFetcher,
)
from sitedigest.scraper.headless import HeadlessSession
from sitedigest.scraper.http import build_http_client
from sitedigest.scraper.models import DiscoveredUrl
from sitedigest.summarize.summarizer import LlmSummarizer, Summarizer
from sitedigest.wordpress.client import WordPressRestClient

logger = logging.getLogger(__name__)

_COOKIE_TIP = "Tip: supply a cookie file from a real browser session"


# ---------------------------------------------------------------------------
# Root probe
# ---------------------------------------------------------------------------

def probe_root(client: httpx.Client, root_url: str) -> str | None:
    """Plain GET of *root_url*; return the challenge label found in the body, if any.

    Raises:
        httpx.HTTPError: If the root cannot be reached at all.
    """
    response = client.get(root_url)
    return challenge.detect(response.text)


def probe_site_protection(
    client: httpx.Client,
    root_url: str,
    cookies: list[CookieEntry],
    wp_client: WordPressRestClient,
    session_factory: Callable[[], HeadlessSession] = HeadlessSession,
) -> HeadlessSession | None:
    """Decide once per run whether a headless session is needed.

    Cheap HTTP first; a browser is launched only when the root response
    carries a challenge signature.  A resolved session is attached to
    *wp_client* and returned; a still-blocked one is closed and dropped.

    Raises:
        BrowserUnavailableError: A challenge was detected but Chromium cannot
            be launched.
    """
    logger.info("Probing site accessibility")
    try:
        label = probe_root(client, root_url)
    except httpx.HTTPError as exc:
        logger.warning("Warm-up probe failed (%s) — proceeding without warm-up", exc)
        return None

    if label is None:
        logger.info("No site protection detected — proceeding directly")
        return None

    logger.warning("Site protection detected: %s — launching headless browser session", label)
    session = session_factory()
    session.warmup(root_url, cookies)

    if session.is_resolved:
        wp_client.session = session
        logger.info("Headless session active — WP REST and page fetches will use the browser")
        return session

    logger.warning("Headless browser could not solve the challenge. %s", _COOKIE_TIP)
    session.close()
    return None


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------

@dataclass
class RunContext:
    """Live collaborators of one run."""

    client: httpx.Client
    cookies: list[CookieEntry]
    wp_client: WordPressRestClient
    session: HeadlessSession | None
    discovery: CompositeDiscovery


def build_discovery(
    client: httpx.Client,
    wp_client: WordPressRestClient,
    cancel: threading.Event,
) -> CompositeDiscovery:
    """WordPress REST → sitemap → RSS → crawl, first non-empty wins."""
    return CompositeDiscovery(
        [
            WordPressApiDiscovery(wp_client),
            SitemapDiscovery(client, cancel),
            RssDiscovery(client, cancel),
            CrawlDiscovery(client, cancel),
        ],
        cancel,
    )


@contextmanager
def open_run(config: RunConfig, cancel: threading.Event | None = None) -> Iterator[RunContext]:
    """Load cookies, build the HTTP client, probe the root and yield the wiring.

    The session (if any) and the client are always closed on exit.
    """
    cancel = cancel or threading.Event()
    cookies = load_cookies(config.cookie_file)
    client = build_http_client(cookies)
    session: HeadlessSession | None = None
    try:
        wp_client = WordPressRestClient(client, cancel=cancel)
        session = probe_site_protection(client, config.root, cookies, wp_client)
        yield RunContext(
            client=client,
            cookies=cookies,
            wp_client=wp_client,
            session=session,
            discovery=build_discovery(client, wp_client, cancel),
        )
    finally:
        if session is not None:
            session.close()
        client.close()


def discover_urls(config: RunConfig, cancel: threading.Event | None = None) -> list[DiscoveredUrl]:
    """Probe and discover only; nothing is fetched, summarised or written."""
    with open_run(config, cancel) as ctx:
        return ctx.discovery.discover(config)


def run_site(
    config: RunConfig,
    cancel: threading.Event | None = None,
    summarizer: Summarizer | None = None,
    output_dir: Path | None = None,
) -> RunResult:
    """Run the full pipeline for *config* and return its telemetry.

    Raises:
        BrowserUnavailableError: Root probe needed a browser that cannot launch.
        RunCancelled: *cancel* was set mid-run (the manifest is still saved).
    """
    cancel = cancel or threading.Event()
    output_root = site_output_root(output_dir or settings.output_dir, config.root)

    with open_run(config, cancel) as ctx:
        fetcher = FallbackPageFetcher(
            primary=WordPressContentFetcher(HttpPageFetcher(ctx.client), ctx.wp_client),
            headless=HeadlessPageFetcher(ctx.cookies, ctx.session),
            thin_threshold=settings.thin_threshold,
        )
        pipeline = SummarizationPipeline(
            discovery=ctx.discovery,
            fetcher=fetcher,
            extractor=HeuristicContentExtractor(),
            summarizer=summarizer or LlmSummarizer(),
            writer=FileOutputWriter(output_root),
            manifest_store=ManifestStore(output_root),
            cancel=cancel,
        )
        return pipeline.run(config)
