"""URL normalisation helpers used throughout discovery, caching and output.

All helpers are pure functions over ``str`` URLs.
"""

from __future__ import annotations

import re
from urllib.parse import urljoin, urlsplit, urlunsplit

_DEFAULT_PORTS = {"http": 80, "https": 443}
_IGNORED_SCHEMES = ("mailto:", "tel:", "javascript:", "data:")


def is_http(url: str) -> bool:
    """Return ``True`` when *url* uses the http or https scheme."""
    return urlsplit(url).scheme.lower() in ("http", "https")


def canonicalize(url: str) -> str:
    """Return the canonical identity of *url*.

    The fragment is dropped, scheme and host are lower-cased, default ports
    are removed and an empty path becomes ``/``.  Path and query are left
    untouched so that distinct resources never collapse into one key.
    """
    parts = urlsplit(url.strip())
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    if ":" in host:
        host = f"[{host}]"

    try:
        port = parts.port
    except ValueError:
        port = None
    netloc = host
    if port is not None and _DEFAULT_PORTS.get(scheme) != port:
        netloc = f"{host}:{port}"
    if parts.username:
        userinfo = parts.username
        if parts.password:
            userinfo = f"{userinfo}:{parts.password}"
        netloc = f"{userinfo}@{netloc}"

    path = parts.path or "/"
    return urlunsplit((scheme, netloc, path, parts.query, ""))


def to_absolute(current: str, href: str) -> str | None:
    """Resolve *href* against *current*.

    Returns ``None`` for fragment-only links, non-navigational schemes
    (``mailto:``, ``tel:``, ``javascript:``, ``data:``) and hrefs that
    cannot be parsed.
    """
    href = href.strip()
    if not href or href.startswith("#"):
        return None
    if href.lower().startswith(_IGNORED_SCHEMES):
        return None
    try:
        return urljoin(current, href)
    except ValueError:
        return None


def same_host(url: str, host: str) -> bool:
    """Case-insensitive host comparison."""
    return (urlsplit(url).hostname or "").lower() == host.lower()


def safe_host(url: str) -> str:
    """Convert the host of *url* into a filesystem-friendly folder name."""
    host = urlsplit(url).hostname or ""
    return host.replace(":", "_")


def slug_from_url(url: str) -> str:
    """Produce a deterministic filename slug from the path and query of *url*.

    Only lowercase alphanumerics, ``_`` and ``-`` survive; slashes are
    flattened to underscores.  The site root maps to ``home``.
    """
    parts = urlsplit(url)
    path = parts.path.strip("/").lower()
    query = parts.query.lower()
    combined = f"{path}_{query}" if query.strip() else path

    if not combined.strip():
        return "home"

    combined = re.sub(r"[^a-z0-9/_-]+", "_", combined)
    combined = combined.replace("/", "_")
    combined = re.sub(r"_{2,}", "_", combined).strip("_")
    return combined or "home"


def title_from_path(url: str) -> str:
    """Fallback page title derived from the URL path (``/about-us/`` -> ``about us``)."""
    parts = urlsplit(url)
    title = parts.path.strip("/").replace("-", " ")
    return title or (parts.hostname or url)
