"""Data models for the discovery and fetch pipeline."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone


@dataclass(frozen=True)
class DiscoveredUrl:
    """A candidate page found by a discovery strategy.

    ``url`` is the canonical (fragment-free) absolute URL and is the
    identity used for de-duplication.  ``depth`` is only meaningful for the
    crawl strategy; the other strategies report ``0``.
    """

    url: str
    method: str
    depth: int = 0


@dataclass(frozen=True)
class PageContent:
    """A page as it moves through fetch → extract.

    Each stage returns a new value via :func:`dataclasses.replace`; nothing
    downstream mutates an instance it was handed.
    """

    url: str
    title: str
    raw_html: str
    fetched_at: datetime
    extracted_markdown: str = ""
    is_skipped: bool = False
    skip_reason: str | None = None

    @classmethod
    def fetched(cls, url: str, title: str, raw_html: str, fetched_at: datetime | None = None) -> PageContent:
        """Shell produced by a fetch strategy (nothing extracted yet)."""
        return cls(
            url=url,
            title=title,
            raw_html=raw_html,
            fetched_at=fetched_at or datetime.now(timezone.utc),
        )

    def with_extraction(self, markdown: str) -> PageContent:
        return replace(self, extracted_markdown=markdown, is_skipped=False, skip_reason=None)

    def skipped(self, reason: str, markdown: str = "") -> PageContent:
        return replace(self, extracted_markdown=markdown, is_skipped=True, skip_reason=reason)
