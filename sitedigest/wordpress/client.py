"""WordPress REST API detection, listing and rendered-content caching.

The client answers three questions for the rest of the pipeline:

1. *Is this a WordPress site with the REST API on?*  (:meth:`detect`)
2. *Which pages and posts does it publish?*  (:meth:`discover`)
3. *Do we already have the rendered HTML for this URL?*  (:meth:`get_cached`)

When the site sits behind a bot-protection wall, plain HTTP gets a
challenge page back.  If a resolved :class:`~sitedigest.scraper.headless.HeadlessSession`
has been attached via :attr:`session`, detection and listing are routed
through the browser instead.  Browser navigation does not expose response
headers reliably, so the session path paginates until an empty page rather
than honouring ``X-WP-TotalPages``.
"""

from __future__ import annotations

import html as html_lib
import json
import logging
import re
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

import httpx

from sitedigest.config import RunConfig
from sitedigest.scraper import challenge
from sitedigest.scraper.headless import HeadlessSession
from sitedigest.scraper.models import DiscoveredUrl
from sitedigest.scraper.retry import send_with_retry
from sitedigest.scraper.urls import canonicalize, is_http, same_host, title_from_path

logger = logging.getLogger(__name__)

PER_PAGE = 100
_DETECTION_PATHS = ("/wp-json/", "/?rest_route=/")
_FIELDS = "link,title,content,excerpt,modified,yoast_head_json,protected,type"
_SCRIPT_RE = re.compile(r"<script[\s\S]*?</script>", re.IGNORECASE)
_STYLE_RE = re.compile(r"<style[\s\S]*?</style>", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WordPressDetection:
    available: bool
    reason: str | None = None
    blocked_by_challenge: bool = False


@dataclass(frozen=True)
class WordPressItem:
    url: str
    title: str
    rendered_html: str
    modified_at: datetime


@dataclass(frozen=True)
class WordPressDiscovery:
    items: list[DiscoveredUrl] = field(default_factory=list)
    pages_count: int = 0
    posts_count: int = 0
    disabled: bool = False
    disabled_reason: str | None = None


@dataclass(frozen=True)
class _Collection:
    items: list[WordPressItem]
    disabled: bool = False
    disabled_reason: str | None = None


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def _looks_like_rest_root(payload: Any) -> bool:
    return isinstance(payload, dict) and (
        "routes" in payload or "namespace" in payload or "namespaces" in payload
    )


def _nested_str(entry: dict, key: str, nested: str) -> str:
    parent = entry.get(key)
    if not isinstance(parent, dict):
        return ""
    value = parent.get(nested)
    return value.strip() if isinstance(value, str) else ""


def _parse_modified(entry: dict) -> datetime:
    value = entry.get("modified")
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            parsed = None
        if parsed is not None:
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return datetime.now(timezone.utc)


def sanitize_html(markup: str) -> str:
    """Drop ``<script>`` and ``<style>`` blocks from REST-rendered HTML."""
    if not markup or not markup.strip():
        return ""
    return _STYLE_RE.sub("", _SCRIPT_RE.sub("", markup))


def map_item(entry: Any, root_host: str, same_host_only: bool) -> WordPressItem | None:
    """Turn one REST collection entry into a :class:`WordPressItem`.

    Attachments, password-protected items, items without an absolute
    http(s) link (or on a foreign host when *same_host_only*) and items
    without any usable text are dropped.  Rendered HTML is taken from
    ``content``, then ``excerpt``, then the Yoast ``og_description``.
    """
    if not isinstance(entry, dict):
        return None
    if str(entry.get("type") or "").lower() == "attachment":
        return None
    if entry.get("protected") is True:
        return None

    link = entry.get("link")
    if not isinstance(link, str) or not link.strip():
        return None
    url = canonicalize(link)
    if not is_http(url):
        return None
    if same_host_only and not same_host(url, root_host):
        return None

    title = html_lib.unescape(_nested_str(entry, "title", "rendered")) or title_from_path(url)

    rendered = _nested_str(entry, "content", "rendered") or _nested_str(entry, "excerpt", "rendered")
    if not rendered:
        description = _nested_str(entry, "yoast_head_json", "og_description")
        if description:
            rendered = f"<p>{html_lib.escape(description)}</p>"
    if not rendered:
        return None

    return WordPressItem(
        url=url,
        title=title,
        rendered_html=sanitize_html(rendered),
        modified_at=_parse_modified(entry),
    )


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class WordPressRestClient:
    """Detects the WP REST API, lists pages/posts and caches their rendered HTML.

    Args:
        client: Shared ``httpx.Client`` for plain-HTTP calls.
        session: Optional shared headless session; only consulted once it
            reports ``is_resolved``.  May be attached after construction.
        sleep: Backoff sleep used by the rate-limit retry helper.
        cancel: Run cancellation signal; pagination stops when set and
            inter-page delays end early.
    """

    def __init__(
        self,
        client: httpx.Client,
        session: HeadlessSession | None = None,
        sleep: Callable[[float], None] | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        self._client = client
        self.session = session
        self._cancel = cancel or threading.Event()
        self._sleep = sleep or self._cancel.wait
        self._cache: dict[str, WordPressItem] = {}

    def _get(self, url: str) -> httpx.Response:
        return send_with_retry(lambda: self._client.get(url), sleep=self._sleep)

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------
    def detect(self, root_url: str) -> WordPressDetection:
        """Probe the REST root endpoints over plain HTTP.

        A 401/403 is distinguished from "not WordPress" by scanning its body
        for a challenge signature; if one is found and a resolved session is
        attached, detection is retried through the browser.
        """
        challenge_label: str | None = None

        for path in _DETECTION_PATHS:
            endpoint = httpx.URL(root_url).join(path)
            try:
                response = self._get(str(endpoint))
            except httpx.HTTPError as exc:
                logger.debug("WP REST probe %s failed: %s", endpoint, exc)
                continue

            if response.status_code in (401, 403):
                challenge_label = challenge_label or challenge.detect(response.text)
                if challenge_label is not None:
                    logger.warning(
                        "WP REST blocked by site protection: %s (HTTP %d from %s)",
                        challenge_label, response.status_code, endpoint,
                    )
                    break
                return WordPressDetection(False, f"HTTP {response.status_code} from {endpoint}", False)

            if not response.is_success:
                continue

            if "json" not in response.headers.get("content-type", "").lower():
                label = challenge.detect(response.text)
                if label is not None:
                    challenge_label = challenge_label or label
                    logger.warning(
                        "WP REST blocked by site protection: %s (non-JSON response from %s)",
                        label, endpoint,
                    )
                continue

            try:
                payload = response.json()
            except ValueError:
                continue
            if _looks_like_rest_root(payload):
                return WordPressDetection(True)

        session = self.session
        if challenge_label is not None and session is not None and session.is_resolved:
            logger.info("Retrying WP REST detection via headless browser session")
            return self._detect_via_session(session, root_url)

        if challenge_label is not None:
            return WordPressDetection(False, f"WP REST blocked by site protection: {challenge_label}", True)
        return WordPressDetection(False, "WP REST route not detected", False)

    def _detect_via_session(self, session: HeadlessSession, root_url: str) -> WordPressDetection:
        for path in _DETECTION_PATHS:
            endpoint = str(httpx.URL(root_url).join(path))
            response = session.get(endpoint)
            if response is None or not response.is_success or not response.is_json:
                continue
            try:
                payload = json.loads(response.body)
            except ValueError:
                continue
            if _looks_like_rest_root(payload):
                logger.info("WP REST detected via headless browser")
                return WordPressDetection(True)
        return WordPressDetection(False, "WP REST not detected even via headless browser", True)

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------
    def discover(self, config: RunConfig) -> WordPressDiscovery:
        """List pages then posts (with the remaining budget) and fill the content cache."""
        self._cache.clear()

        pages = self._fetch_collection(config, "pages", config.max_pages)
        if pages.disabled:
            return WordPressDiscovery(pages_count=len(pages.items), disabled=True,
                                      disabled_reason=pages.disabled_reason)

        remaining = max(0, config.max_pages - len(pages.items))
        posts = self._fetch_collection(config, "posts", remaining) if remaining > 0 else _Collection([])
        if posts.disabled:
            return WordPressDiscovery(pages_count=len(pages.items), posts_count=len(posts.items),
                                      disabled=True, disabled_reason=posts.disabled_reason)

        combined: list[WordPressItem] = []
        seen: set[str] = set()
        for item in pages.items + posts.items:
            if item.url in seen:
                continue
            seen.add(item.url)
            combined.append(item)
            if len(combined) >= config.max_pages:
                break

        for item in combined:
            self._cache[item.url.lower()] = item

        return WordPressDiscovery(
            items=[DiscoveredUrl(item.url, "wordpress-rest", 0) for item in combined],
            pages_count=len(pages.items),
            posts_count=len(posts.items),
        )

    def get_cached(self, url: str) -> WordPressItem | None:
        """Return REST-rendered content for *url* if discovery saw it."""
        return self._cache.get(canonicalize(url).lower())

    def _fetch_collection(self, config: RunConfig, kind: str, budget: int) -> _Collection:
        session = self.session
        if session is not None and session.is_resolved:
            return self._fetch_collection_via_session(session, config, kind, budget)
        return self._fetch_collection_via_http(config, kind, budget)

    def _collection_url(self, config: RunConfig, kind: str, page: int) -> str:
        endpoint = httpx.URL(config.root).join(f"/wp-json/wp/v2/{kind}")
        return str(endpoint.copy_merge_params({"per_page": PER_PAGE, "page": page, "_fields": _FIELDS}))

    def _pause(self, config: RunConfig) -> None:
        if config.delay > 0:
            self._cancel.wait(config.delay)

    def _fetch_collection_via_http(self, config: RunConfig, kind: str, budget: int) -> _Collection:
        items: list[WordPressItem] = []
        page = 1

        while len(items) < budget and not self._cancel.is_set():
            endpoint = self._collection_url(config, kind, page)
            try:
                response = self._get(endpoint)
            except httpx.HTTPError as exc:
                logger.debug("WP REST %s page %d failed: %s", kind, page, exc)
                break

            if response.status_code in (401, 403):
                return _Collection(items, True, f"HTTP {response.status_code} from {endpoint}")
            if not response.is_success:
                break
            if "json" not in response.headers.get("content-type", "").lower():
                break
            try:
                payload = response.json()
            except ValueError:
                break
            if not isinstance(payload, list) or not payload:
                break

            for entry in payload:
                mapped = map_item(entry, config.host, config.same_host_only)
                if mapped is None:
                    continue
                items.append(mapped)
                if len(items) >= budget:
                    break

            total_pages = response.headers.get("X-WP-TotalPages", "")
            if total_pages.isdigit() and page >= int(total_pages):
                break

            page += 1
            self._pause(config)

        return _Collection(items)

    def _fetch_collection_via_session(
        self, session: HeadlessSession, config: RunConfig, kind: str, budget: int
    ) -> _Collection:
        items: list[WordPressItem] = []
        page = 1

        while len(items) < budget and not self._cancel.is_set():
            response = session.get(self._collection_url(config, kind, page))
            if response is None:
                break
            if response.status in (401, 403):
                return _Collection(items, True, f"HTTP {response.status} via headless")
            if not response.is_success:
                break
            try:
                payload = json.loads(response.body)
            except ValueError:
                break
            if not isinstance(payload, list) or not payload:
                break

            for entry in payload:
                mapped = map_item(entry, config.host, config.same_host_only)
                if mapped is None:
                    continue
                items.append(mapped)
                if len(items) >= budget:
                    break

            page += 1
            self._pause(config)

        return _Collection(items)
