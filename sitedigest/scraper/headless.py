"""Headless Chromium access for protected and JavaScript-rendered sites.

:class:`HeadlessSession` keeps one stealth browser context alive for a
whole run.  It is created only when the root-URL probe detects a challenge,
solves that challenge once during :meth:`HeadlessSession.warmup`, and is then
reused (cookies and TLS state included) by every WordPress REST call and
page fetch that needs it.

Lifecycle::

    UNPROBED ─warmup()→ CHALLENGE_DETECTED ─→ RESOLVED | STILL_BLOCKED

Only a ``RESOLVED`` session should be handed to other components.  The
owner must call :meth:`HeadlessSession.close` at the end of the run.

:func:`render_page` is the disposable variant used when no session exists:
launch, render one URL, tear everything down.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable
from urllib.parse import urlsplit

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from sitedigest.config import settings
from sitedigest.errors import BrowserUnavailableError
from sitedigest.scraper import challenge
from sitedigest.scraper.cookies import CookieEntry, cookies_for_host

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Stealth launch settings
# ---------------------------------------------------------------------------
_LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-infobars",
    "--window-size=1920,1080",
]

_HIDE_WEBDRIVER = "Object.defineProperty(navigator, 'webdriver', { get: () => undefined });"

_DOM_READY_TIMEOUT_MS = 10_000


def _ms(seconds: float) -> int:
    return int(seconds * 1000)


class SessionState(str, Enum):
    UNPROBED = "unprobed"
    CHALLENGE_DETECTED = "challenge_detected"
    RESOLVED = "resolved"
    STILL_BLOCKED = "still_blocked"


@dataclass(frozen=True)
class BrowserResponse:
    """Result of one browser navigation.

    ``body`` is the raw response payload (JSON for REST calls); ``html`` is
    the rendered DOM after scripts ran.
    """

    status: int
    body: str
    content_type: str
    html: str = ""
    title: str = ""

    @property
    def is_success(self) -> bool:
        return 200 <= self.status < 300

    @property
    def is_json(self) -> bool:
        return "json" in self.content_type.lower()


def new_stealth_context(browser: Any, cookies: list[CookieEntry] | None, host: str) -> Any:
    """Create a browser context that looks like a desktop Chrome user.

    Custom UA, viewport, locale and timezone; ``navigator.webdriver`` is
    hidden; cookies are filtered to *host* before injection because
    Playwright rejects the whole batch on a single foreign-domain cookie.
    """
    context = browser.new_context(
        user_agent=settings.user_agent,
        viewport={"width": 1920, "height": 1080},
        locale="en-US",
        timezone_id="America/New_York",
    )
    context.add_init_script(_HIDE_WEBDRIVER)

    relevant = cookies_for_host(cookies or [], host)
    if relevant:
        try:
            context.add_cookies([c.to_playwright() for c in relevant])
        except PlaywrightError as exc:
            logger.warning("Could not inject existing cookies: %s", exc)
    return context


def settle_challenge(page: Any, settle_delay: float) -> str:
    """Give an in-page challenge a chance to resolve and return the final HTML.

    If the current DOM matches a challenge signature, wait for a navigation
    away from the current URL (bounded by ``settings.challenge_wait_timeout``)
    or, on timeout, for a fixed *settle_delay*; then read the DOM again.
    """
    html = page.content()
    label = challenge.detect(html)
    if label is None:
        return html

    logger.info("Challenge detected (%s), waiting for resolution", label)
    current_url = page.url
    try:
        page.wait_for_url(lambda url: url != current_url, timeout=_ms(settings.challenge_wait_timeout))
        page.wait_for_load_state("networkidle", timeout=_ms(settings.challenge_wait_timeout))
    except PlaywrightTimeoutError:
        # Some challenges resolve in place (XHR + cookie) without navigating.
        page.wait_for_timeout(_ms(settle_delay))
    return page.content()


# ---------------------------------------------------------------------------
# Persistent session
# ---------------------------------------------------------------------------

class HeadlessSession:
    """One browser context and one page, shared for the rest of the run.

    Navigation mutates shared page state, so every navigation is serialised
    through an internal lock.
    """

    def __init__(self, playwright_factory: Callable[[], Any] = sync_playwright) -> None:
        self._factory = playwright_factory
        self._playwright: Any = None
        self._browser: Any = None
        self._context: Any = None
        self._page: Any = None
        self._closed = False
        self._lock = threading.RLock()
        self.state = SessionState.UNPROBED

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def is_resolved(self) -> bool:
        return self.state is SessionState.RESOLVED

    @property
    def is_still_blocked(self) -> bool:
        return self.state is SessionState.STILL_BLOCKED

    # ------------------------------------------------------------------
    # Warm-up
    # ------------------------------------------------------------------
    def warmup(self, root_url: str, cookies: list[CookieEntry] | None = None) -> SessionState:
        """Launch the browser, open *root_url* and try to get past its challenge.

        Raises:
            BrowserUnavailableError: If Chromium cannot be launched at all.
        """
        self.state = SessionState.CHALLENGE_DETECTED
        host = urlsplit(root_url).hostname or ""

        try:
            self._playwright = self._factory().start()
            self._browser = self._playwright.chromium.launch(headless=True, args=_LAUNCH_ARGS)
        except PlaywrightError as exc:
            self.close()
            raise BrowserUnavailableError(f"Could not launch headless Chromium: {exc}") from exc

        with self._lock:
            try:
                self._context = new_stealth_context(self._browser, cookies, host)
                self._page = self._context.new_page()
                self._page.goto(
                    root_url,
                    wait_until="networkidle",
                    timeout=_ms(settings.headless_nav_timeout),
                )
                self._page.wait_for_load_state("domcontentloaded", timeout=_DOM_READY_TIMEOUT_MS)
                html = settle_challenge(self._page, settings.probe_settle_delay)
            except PlaywrightError as exc:
                logger.warning("Headless warm-up navigation failed: %s", exc)
                self.state = SessionState.STILL_BLOCKED
                return self.state

        still_blocked = challenge.detect(html)
        if still_blocked is not None:
            logger.warning("Challenge persists: %s", still_blocked)
            self.state = SessionState.STILL_BLOCKED
        else:
            logger.info("Challenge resolved — session ready")
            self.state = SessionState.RESOLVED
        return self.state

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------
    def get(self, url: str, settle: bool = False) -> BrowserResponse | None:
        """Navigate the shared page to *url*.

        Returns ``None`` when the session is closed, the navigation yields no
        response, or Playwright raises.  With ``settle=True`` an interstitial
        on the target page is given time to resolve before the DOM is read.
        """
        if self._page is None or self._closed:
            return None

        with self._lock:
            try:
                response = self._page.goto(
                    url,
                    wait_until="networkidle",
                    timeout=_ms(settings.headless_session_nav_timeout),
                )
                if response is None:
                    return None
                body = response.text()
                content_type = response.headers.get("content-type", "")
                if settle:
                    html = settle_challenge(self._page, settings.fetch_settle_delay)
                else:
                    html = self._page.content()
                return BrowserResponse(
                    status=response.status,
                    body=body,
                    content_type=content_type,
                    html=html,
                    title=self._page.title(),
                )
            except PlaywrightError as exc:
                logger.warning("Playwright fetch failed for %s: %s", url, exc)
                return None

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------
    def close(self) -> None:
        """Close page, context, browser and driver.  Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        for closer in (
            getattr(self._page, "close", None),
            getattr(self._context, "close", None),
            getattr(self._browser, "close", None),
            getattr(self._playwright, "stop", None),
        ):
            if closer is None:
                continue
            try:
                closer()
            except PlaywrightError as exc:
                logger.debug("Ignoring error during browser teardown: %s", exc)
        self._page = self._context = self._browser = self._playwright = None

    def __enter__(self) -> HeadlessSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


# ---------------------------------------------------------------------------
# Disposable rendering
# ---------------------------------------------------------------------------

def render_page(
    url: str,
    cookies: list[CookieEntry] | None = None,
    playwright_factory: Callable[[], Any] = sync_playwright,
) -> tuple[str, str] | None:
    """Render *url* in a fresh stealth browser and return ``(html, title)``.

    Returns ``None`` on any Playwright failure or an empty document.
    """
    host = urlsplit(url).hostname or ""
    try:
        with playwright_factory() as pw:
            browser = pw.chromium.launch(headless=True, args=_LAUNCH_ARGS)
            try:
                context = new_stealth_context(browser, cookies, host)
                page = context.new_page()
                page.goto(url, wait_until="networkidle", timeout=_ms(settings.headless_nav_timeout))
                page.wait_for_load_state("domcontentloaded", timeout=_DOM_READY_TIMEOUT_MS)
                html = settle_challenge(page, settings.fetch_settle_delay)
                title = page.title()
            finally:
                browser.close()
    except PlaywrightError as exc:
        logger.debug("Headless render failed for %s: %s", url, exc)
        return None

    if not html or not html.strip():
        return None
    return html, title
