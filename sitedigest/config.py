"""Centralised settings for sitedigest.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).

Two kinds of configuration live here:

* :class:`Settings` — process-wide tunables (timeouts, LLM endpoints,
  output location).  Import the ``settings`` singleton.
* :class:`RunConfig` — the immutable description of one run (root URL and
  crawl bounds), created once at startup and passed to every strategy.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlsplit

from dotenv import load_dotenv

from sitedigest.errors import InvalidRootUrlError

# Load .env from the project root (one level up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)

_BROWSER_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/132.0.0.0 Safari/537.36"
)


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Output / storage
    # ------------------------------------------------------------------
    output_dir: Path = field(
        default_factory=lambda: Path(os.environ.get("SITEDIGEST_OUTPUT_DIR", "output"))
    )

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------
    user_agent: str = field(
        default_factory=lambda: os.environ.get("SITEDIGEST_USER_AGENT", _BROWSER_UA)
    )
    request_timeout: float = field(
        default_factory=lambda: float(os.environ.get("REQUEST_TIMEOUT", "90.0"))
    )

    # ------------------------------------------------------------------
    # Run defaults (overridable per run through RunConfig)
    # ------------------------------------------------------------------
    default_max_pages: int = field(
        default_factory=lambda: int(os.environ.get("MAX_PAGES", "200"))
    )
    default_max_depth: int = field(
        default_factory=lambda: int(os.environ.get("MAX_DEPTH", "3"))
    )
    rate_limit_delay: float = field(
        default_factory=lambda: float(os.environ.get("RATE_LIMIT_DELAY", "0.25"))
    )

    # ------------------------------------------------------------------
    # Blockage heuristics / headless browser
    # ------------------------------------------------------------------
    thin_threshold: int = field(
        default_factory=lambda: int(os.environ.get("THIN_THRESHOLD", "600"))
    )
    headless_nav_timeout: float = field(
        default_factory=lambda: float(os.environ.get("HEADLESS_NAV_TIMEOUT", "45.0"))
    )
    headless_session_nav_timeout: float = field(
        default_factory=lambda: float(os.environ.get("HEADLESS_SESSION_NAV_TIMEOUT", "30.0"))
    )
    challenge_wait_timeout: float = field(
        default_factory=lambda: float(os.environ.get("CHALLENGE_WAIT_TIMEOUT", "15.0"))
    )
    probe_settle_delay: float = field(
        default_factory=lambda: float(os.environ.get("PROBE_SETTLE_DELAY", "5.0"))
    )
    fetch_settle_delay: float = field(
        default_factory=lambda: float(os.environ.get("FETCH_SETTLE_DELAY", "3.0"))
    )

    # ------------------------------------------------------------------
    # Summarisation model
    # ------------------------------------------------------------------
    llm_provider: str = field(
        default_factory=lambda: os.environ.get("LLM_PROVIDER", "ollama")
    )
    ollama_base_url: str = field(
        default_factory=lambda: os.environ.get("OLLAMA_BASE_URL", "http://localhost:11434")
    )
    ollama_chat_model: str = field(
        default_factory=lambda: os.environ.get("OLLAMA_CHAT_MODEL", "minimax-m2.5:cloud")
    )
    openai_chat_model: str = field(
        default_factory=lambda: os.environ.get("OPENAI_CHAT_MODEL", "gpt-4o-mini")
    )
    llm_temperature: float = field(
        default_factory=lambda: float(os.environ.get("LLM_TEMPERATURE", "0.2"))
    )


# Module-level singleton, import this everywhere:
#   from sitedigest.config import settings
settings = Settings()


@dataclass(frozen=True)
class RunConfig:
    """Immutable description of a single run.

    Attributes:
        root_url: Entry-point URL for discovery (usually the home page).
        max_pages: Upper bound on URLs discovered and pages processed.
        max_depth: Maximum BFS depth used by the crawl fallback.
        same_host_only: Restrict discovered URLs to the root's host.
        delay: Politeness delay in seconds between requests.
        cookie_file: Optional Netscape/JSON cookie export.
        dry_run: Discover only; skip fetching, summarising and writing.
    """

    root_url: str
    max_pages: int = 200
    max_depth: int = 3
    same_host_only: bool = True
    delay: float = 0.25
    cookie_file: Path | None = None
    dry_run: bool = False

    def __post_init__(self) -> None:
        parts = urlsplit(self.root_url.strip())
        if parts.scheme not in ("http", "https") or not parts.hostname:
            raise InvalidRootUrlError(
                f"Root URL must be an absolute http(s) URL, got {self.root_url!r}"
            )
        if self.max_pages <= 0:
            raise ValueError(f"max_pages must be positive, got {self.max_pages}")
        if self.max_depth < 0:
            raise ValueError(f"max_depth must not be negative, got {self.max_depth}")
        if self.delay < 0:
            raise ValueError(f"delay must not be negative, got {self.delay}")

    @property
    def root(self) -> str:
        """Canonical form of the root URL."""
        from sitedigest.scraper.urls import canonicalize

        return canonicalize(self.root_url.strip())

    @property
    def host(self) -> str:
        """Lower-cased host of the root URL."""
        return (urlsplit(self.root_url.strip()).hostname or "").lower()
