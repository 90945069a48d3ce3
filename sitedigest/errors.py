"""Exceptions that terminate a run.

Expected absence (no sitemap, no feed, a dead link) and detected blockage
are never raised: strategies return empty results and fetchers return
``None``.  Only the conditions below escape to the caller.
"""

from __future__ import annotations


class SiteDigestError(Exception):
    """Base class for run-fatal errors."""


class InvalidRootUrlError(SiteDigestError, ValueError):
    """The root URL is not an absolute http(s) URL."""


class BrowserUnavailableError(SiteDigestError):
    """The root page is protected but no headless browser could be started."""


class RunCancelled(SiteDigestError):
    """The run was cancelled before the page loop completed."""
