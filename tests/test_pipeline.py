"""Tests for the page loop and the run bootstrap.

Mocking strategy:
- Discovery, fetch and summarisation are in-memory stubs; extraction, the
  manifest store and the file writer are real and write under ``tmp_path``.
- ``probe_site_protection`` gets a ``MagicMock`` session factory so no
  browser is launched.
- The end-to-end class serves a small site through ``respx`` and runs the
  real crawl discovery and HTTP fetch chain; only the headless layer and
  the summariser are stubbed.
"""

from __future__ import annotations

import threading
from pathlib import Path
from unittest.mock import MagicMock

import httpx
import pytest
import respx

from sitedigest.cache import ManifestStore
from sitedigest.config import RunConfig
from sitedigest.discovery import UrlDiscovery
from sitedigest.errors import BrowserUnavailableError, RunCancelled
from sitedigest.output import FileOutputWriter
from sitedigest.pipeline import SummarizationPipeline, probe_site_protection
from sitedigest.pipeline.bootstrap import build_discovery
from sitedigest.scraper.extractor import HeuristicContentExtractor
from sitedigest.scraper.fetcher import (
    FallbackPageFetcher,
    HttpPageFetcher,
    PageFetcher,
    WordPressContentFetcher,
)
from sitedigest.scraper.models import DiscoveredUrl, PageContent
from sitedigest.summarize import Summarizer, SummaryResult
from sitedigest.summarize.summarizer import summary_identity
from sitedigest.wordpress import WordPressRestClient

_ROOT = "https://example.com"
_URLS = [f"{_ROOT}/", f"{_ROOT}/about/", f"{_ROOT}/contact/"]


def _article(text: str) -> str:
    return f"<html><body><main><p>{text}</p></main></body></html>"


def _body(url: str, version: int = 1) -> str:
    return _article(f"Detailed description of {url} revision {version}, long enough to keep after extraction.")


# ---------------------------------------------------------------------------
# Stubs
# ---------------------------------------------------------------------------

class _StaticDiscovery(UrlDiscovery):
    name = "static"

    def __init__(self, urls: list[str]) -> None:
        self.urls = urls

    def discover(self, config: RunConfig) -> list[DiscoveredUrl]:
        return [DiscoveredUrl(u, "sitemap") for u in self.urls]


class _DictFetcher(PageFetcher):
    def __init__(self, pages: dict[str, str | None]) -> None:
        self.pages = pages
        self.calls: list[str] = []

    def fetch(self, url: str) -> PageContent | None:
        self.calls.append(url)
        html = self.pages.get(url)
        if html is None:
            return None
        return PageContent.fetched(url, url.rsplit("/", 2)[-2] or "home", html)


class _EchoSummarizer(Summarizer):
    def __init__(self, fail_on: str | None = None, after_call=None) -> None:
        self.calls: list[str] = []
        self.fail_on = fail_on
        self.after_call = after_call

    def summarize(self, page: PageContent) -> SummaryResult:
        self.calls.append(page.url)
        if page.url == self.fail_on:
            raise RuntimeError("model unavailable")
        if self.after_call is not None:
            self.after_call()
        content_hash, file_name, relative = summary_identity(page)
        return SummaryResult(page.url, page.title, f"# {page.title}\n\nsummary", content_hash, file_name, relative)


def _pipeline(tmp_path: Path, fetcher: PageFetcher, summarizer: Summarizer, urls=None, cancel=None):
    return SummarizationPipeline(
        discovery=_StaticDiscovery(urls or _URLS),
        fetcher=fetcher,
        extractor=HeuristicContentExtractor(),
        summarizer=summarizer,
        writer=FileOutputWriter(tmp_path),
        manifest_store=ManifestStore(tmp_path),
        cancel=cancel,
    )


def _config(**kwargs) -> RunConfig:
    kwargs.setdefault("delay", 0)
    return RunConfig(_ROOT, **kwargs)


# ---------------------------------------------------------------------------
# Incremental runs
# ---------------------------------------------------------------------------

class TestIncrementalRuns:
    def test_second_run_is_all_cache_hits(self, tmp_path: Path) -> None:
        fetcher = _DictFetcher({u: _body(u) for u in _URLS})

        first_summarizer = _EchoSummarizer()
        first = _pipeline(tmp_path, fetcher, first_summarizer).run(_config())
        second_summarizer = _EchoSummarizer()
        second = _pipeline(tmp_path, fetcher, second_summarizer).run(_config())

        assert (first.discovered, first.processed, first.cached, first.failed) == (3, 3, 0, 0)
        assert (second.processed, second.cached, second.skipped) == (0, 3, 3)
        assert second_summarizer.calls == []
        assert sorted(p.name for p in (tmp_path / "ai" / "pages").iterdir()) == ["about.md", "contact.md", "home.md"]

    def test_cache_hits_still_listed_in_llms_txt(self, tmp_path: Path) -> None:
        fetcher = _DictFetcher({u: _body(u) for u in _URLS})
        _pipeline(tmp_path, fetcher, _EchoSummarizer()).run(_config())
        (tmp_path / "llms.txt").unlink()

        _pipeline(tmp_path, fetcher, _EchoSummarizer()).run(_config())

        llms = (tmp_path / "llms.txt").read_text(encoding="utf-8")
        for name in ("home.md", "about.md", "contact.md"):
            assert f"(ai/pages/{name})" in llms

    def test_changed_content_is_regenerated(self, tmp_path: Path) -> None:
        pages = {u: _body(u) for u in _URLS}
        _pipeline(tmp_path, _DictFetcher(pages), _EchoSummarizer()).run(_config())

        pages[f"{_ROOT}/about/"] = _body(f"{_ROOT}/about/", version=2)
        summarizer = _EchoSummarizer()
        result = _pipeline(tmp_path, _DictFetcher(pages), summarizer).run(_config())

        assert summarizer.calls == [f"{_ROOT}/about/"]
        assert (result.processed, result.cached) == (1, 2)

    def test_manifest_written(self, tmp_path: Path) -> None:
        _pipeline(tmp_path, _DictFetcher({u: _body(u) for u in _URLS}), _EchoSummarizer()).run(_config())
        manifest = ManifestStore(tmp_path).load()
        assert len(manifest) == 3
        assert manifest.get(f"{_ROOT}/about/").relative_output_path == "ai/pages/about.md"


# ---------------------------------------------------------------------------
# Per-page outcomes
# ---------------------------------------------------------------------------

class TestPageOutcomes:
    def test_missing_fetch_counts_as_failed(self, tmp_path: Path) -> None:
        pages = {u: _body(u) for u in _URLS}
        pages[f"{_ROOT}/contact/"] = None

        result = _pipeline(tmp_path, _DictFetcher(pages), _EchoSummarizer()).run(_config())

        assert (result.processed, result.failed) == (2, 1)

    def test_summary_error_is_isolated(self, tmp_path: Path) -> None:
        summarizer = _EchoSummarizer(fail_on=f"{_ROOT}/about/")

        result = _pipeline(tmp_path, _DictFetcher({u: _body(u) for u in _URLS}), summarizer).run(_config())

        assert (result.processed, result.failed) == (2, 1)
        assert summarizer.calls == _URLS
        assert ManifestStore(tmp_path).load().get(f"{_ROOT}/about/") is None

    def test_thin_page_is_skipped(self, tmp_path: Path) -> None:
        pages = {u: _body(u) for u in _URLS}
        pages[f"{_ROOT}/"] = _article("Hi")
        summarizer = _EchoSummarizer()

        result = _pipeline(tmp_path, _DictFetcher(pages), summarizer).run(_config())

        assert (result.processed, result.skipped, result.cached) == (2, 1, 0)
        assert f"{_ROOT}/" not in summarizer.calls

    def test_targets_capped_to_max_pages(self, tmp_path: Path) -> None:
        fetcher = _DictFetcher({u: _body(u) for u in _URLS})
        result = _pipeline(tmp_path, fetcher, _EchoSummarizer()).run(_config(max_pages=2))
        assert fetcher.calls == _URLS[:2]
        assert result.processed == 2


# ---------------------------------------------------------------------------
# Dry run + cancellation
# ---------------------------------------------------------------------------

class TestRunControl:
    def test_dry_run_touches_nothing(self, tmp_path: Path) -> None:
        fetcher = _DictFetcher({})
        summarizer = _EchoSummarizer()

        result = _pipeline(tmp_path, fetcher, summarizer).run(_config(dry_run=True))

        assert result.discovered == 3
        assert (result.processed, result.skipped, result.failed) == (0, 0, 0)
        assert fetcher.calls == []
        assert list(tmp_path.iterdir()) == []

    def test_cancel_saves_manifest_and_raises(self, tmp_path: Path) -> None:
        cancel = threading.Event()
        summarizer = _EchoSummarizer(after_call=cancel.set)
        fetcher = _DictFetcher({u: _body(u) for u in _URLS})

        with pytest.raises(RunCancelled):
            _pipeline(tmp_path, fetcher, summarizer, cancel=cancel).run(_config())

        assert fetcher.calls == _URLS[:1]
        assert len(ManifestStore(tmp_path).load()) == 1
        assert not (tmp_path / "llms.txt").exists()


# ---------------------------------------------------------------------------
# Protection probe
# ---------------------------------------------------------------------------

_CHALLENGE = "<html><title>Just a moment...</title></html>"


class TestProbeSiteProtection:
    @pytest.fixture
    def client(self):
        with httpx.Client() as c:
            yield c

    @respx.mock
    def test_clean_site_launches_no_browser(self, client) -> None:
        respx.get(f"{_ROOT}/").mock(return_value=httpx.Response(200, text=_article("welcome")))
        factory = MagicMock()

        assert probe_site_protection(client, f"{_ROOT}/", [], WordPressRestClient(client), factory) is None
        factory.assert_not_called()

    @respx.mock
    def test_resolved_session_attached_to_wordpress_client(self, client) -> None:
        respx.get(f"{_ROOT}/").mock(return_value=httpx.Response(403, text=_CHALLENGE))
        session = MagicMock(is_resolved=True)
        wp_client = WordPressRestClient(client)

        result = probe_site_protection(client, f"{_ROOT}/", [], wp_client, lambda: session)

        assert result is session
        assert wp_client.session is session
        session.warmup.assert_called_once_with(f"{_ROOT}/", [])

    @respx.mock
    def test_still_blocked_session_is_closed(self, client, caplog) -> None:
        respx.get(f"{_ROOT}/").mock(return_value=httpx.Response(403, text=_CHALLENGE))
        session = MagicMock(is_resolved=False)
        wp_client = WordPressRestClient(client)

        assert probe_site_protection(client, f"{_ROOT}/", [], wp_client, lambda: session) is None
        session.close.assert_called_once()
        assert wp_client.session is None
        assert "cookie file" in caplog.text

    @respx.mock
    def test_unreachable_root_is_not_fatal(self, client) -> None:
        respx.get(f"{_ROOT}/").mock(side_effect=httpx.ConnectError)
        assert probe_site_protection(client, f"{_ROOT}/", [], WordPressRestClient(client), MagicMock()) is None

    @respx.mock
    def test_browser_unavailable_propagates(self, client) -> None:
        respx.get(f"{_ROOT}/").mock(return_value=httpx.Response(403, text=_CHALLENGE))
        session = MagicMock()
        session.warmup.side_effect = BrowserUnavailableError("Chromium missing")

        with pytest.raises(BrowserUnavailableError):
            probe_site_protection(client, f"{_ROOT}/", [], WordPressRestClient(client), lambda: session)


# ---------------------------------------------------------------------------
# End to end: crawl discovery + HTTP fetch chain, run twice
# ---------------------------------------------------------------------------

def _site_page(title: str, *hrefs: str) -> httpx.Response:
    links = "".join(f'<a href="{h}">{h}</a>' for h in hrefs)
    paragraphs = "".join(
        f"<p>{title} paragraph {i}: our team plans, builds and maintains garden irrigation systems.</p>"
        for i in range(10)
    )
    html = (
        f"<!DOCTYPE html><html><head><title>{title}</title></head>"
        f"<body><nav>{links}</nav><main>{paragraphs}</main></body></html>"
    )
    return httpx.Response(200, text=html, headers={"content-type": "text/html; charset=utf-8"})


class _NoHeadless(PageFetcher):
    def fetch(self, url: str) -> PageContent | None:
        return None


class TestCrawledSiteEndToEnd:
    @pytest.fixture
    def site(self):
        with respx.mock(assert_all_called=False) as router:
            router.get(f"{_ROOT}/", params={"rest_route": "/"}).respond(404)
            router.get(f"{_ROOT}/").mock(return_value=_site_page("Home", "/a", "/b", "/c"))
            router.get(f"{_ROOT}/a").mock(return_value=_site_page("Alpha", "/"))
            router.get(f"{_ROOT}/b").mock(return_value=_site_page("Beta", "/"))
            router.get(f"{_ROOT}/c").mock(return_value=_site_page("Gamma", "/"))
            router.route().respond(404)
            with httpx.Client() as client:
                yield client

    def _run(self, client: httpx.Client, output_root: Path, summarizer: Summarizer):
        cancel = threading.Event()
        wp_client = WordPressRestClient(client, cancel=cancel)
        pipeline = SummarizationPipeline(
            discovery=build_discovery(client, wp_client, cancel),
            fetcher=FallbackPageFetcher(
                primary=WordPressContentFetcher(HttpPageFetcher(client), wp_client),
                headless=_NoHeadless(),
            ),
            extractor=HeuristicContentExtractor(),
            summarizer=summarizer,
            writer=FileOutputWriter(output_root),
            manifest_store=ManifestStore(output_root),
            cancel=cancel,
        )
        return pipeline.run(_config(max_pages=3))

    def test_crawl_finds_root_and_two_children(self, site: httpx.Client) -> None:
        cancel = threading.Event()
        found = build_discovery(site, WordPressRestClient(site, cancel=cancel), cancel).discover(_config(max_pages=3))

        assert [d.url for d in found] == [f"{_ROOT}/", f"{_ROOT}/a", f"{_ROOT}/b"]
        assert sorted(d.depth for d in found) == [0, 1, 1]
        assert {d.method for d in found} == {"crawl"}

    def test_second_run_is_all_cache_hits(self, site: httpx.Client, tmp_path: Path) -> None:
        first_summarizer = _EchoSummarizer()
        first = self._run(site, tmp_path, first_summarizer)
        second_summarizer = _EchoSummarizer()
        second = self._run(site, tmp_path, second_summarizer)

        assert (first.discovered, first.processed, first.cached, first.failed) == (3, 3, 0, 0)
        assert first_summarizer.calls == [f"{_ROOT}/", f"{_ROOT}/a", f"{_ROOT}/b"]
        assert (second.discovered, second.processed, second.cached, second.failed) == (3, 0, 3, 0)
        assert second_summarizer.calls == []

        manifest = ManifestStore(tmp_path).load()
        assert manifest.get(f"{_ROOT}/").relative_output_path == "ai/pages/home.md"
        llms = (tmp_path / "llms.txt").read_text(encoding="utf-8")
        for name in ("home.md", "a.md", "b.md"):
            assert f"(ai/pages/{name})" in llms
