"""Cookie-file loading shared by the HTTP client and the headless browser.

Two export formats are understood:

``Netscape`` (``cookies.txt``)
    One cookie per line, seven tab-separated fields::

        domain  include_subdomains  path  secure  expires  name  value

    Lines starting with ``#`` are comments, except the ``#HttpOnly_``
    prefix used by curl and browser extensions to mark HttpOnly cookies.

``JSON``
    An array of ``{"name", "value", "domain", "path"}`` objects, as written
    by most cookie-editor browser extensions.

Malformed lines/entries are skipped individually; a missing file yields an
empty list.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

import httpx

logger = logging.getLogger(__name__)

_HTTPONLY_PREFIX = "#HttpOnly_"


@dataclass(frozen=True)
class CookieEntry:
    """Format-independent cookie used for both httpx and Playwright injection."""

    name: str
    value: str
    domain: str
    path: str = "/"

    def matches_host(self, host: str) -> bool:
        """True when this cookie's domain and *host* are in the same suffix chain."""
        domain = self.domain.strip().lstrip(".").lower()
        host = host.lower()
        if not domain:
            return False
        return host.endswith(domain) or domain.endswith(host)

    def to_playwright(self) -> dict[str, str]:
        return {
            "name": self.name,
            "value": self.value,
            "domain": self.domain,
            "path": self.path or "/",
        }


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------

def parse_netscape(content: str) -> list[CookieEntry]:
    """Parse a Netscape ``cookies.txt`` export."""
    entries: list[CookieEntry] = []
    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        if line.startswith(_HTTPONLY_PREFIX):
            line = line[len(_HTTPONLY_PREFIX):]
        elif line.startswith("#"):
            continue

        parts = line.split("\t")
        if len(parts) < 7:
            continue

        domain, _, path, _, _, name, value = parts[:7]
        if not name.strip():
            continue
        entries.append(CookieEntry(name=name, value=value, domain=domain, path=path or "/"))
    return entries


def parse_json(content: str) -> list[CookieEntry]:
    """Parse a JSON array of cookie objects.

    Returns ``[]`` (with a warning) when the document itself is not valid
    JSON; individual entries without a name or domain are dropped.
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        logger.warning("Failed to parse cookie JSON file")
        return []

    if not isinstance(data, list):
        logger.warning("Cookie JSON file is not an array — ignoring it")
        return []

    entries: list[CookieEntry] = []
    for item in data:
        if not isinstance(item, dict):
            continue
        name = item.get("name")
        domain = item.get("domain")
        if not isinstance(name, str) or not name.strip() or not isinstance(domain, str):
            continue
        value = item.get("value")
        path = item.get("path")
        entries.append(
            CookieEntry(
                name=name,
                value=value if isinstance(value, str) else "",
                domain=domain,
                path=path if isinstance(path, str) and path else "/",
            )
        )
    return entries


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def load_cookies(path: str | Path | None) -> list[CookieEntry]:
    """Load cookies from *path*, sniffing the format from the first character."""
    if path is None or not str(path).strip():
        return []

    cookie_path = Path(path)
    if not cookie_path.is_file():
        logger.warning("Cookie file not found at %s — proceeding without cookies", cookie_path)
        return []

    content = cookie_path.read_text(encoding="utf-8", errors="replace").strip()
    entries = parse_json(content) if content.startswith("[") else parse_netscape(content)
    logger.info("Loaded %d cookie(s) from %s", len(entries), cookie_path)
    return entries


def cookies_for_host(entries: list[CookieEntry], host: str) -> list[CookieEntry]:
    """Keep only the cookies whose domain is relevant to *host*."""
    return [c for c in entries if c.matches_host(host)]


def to_httpx_cookies(entries: list[CookieEntry]) -> httpx.Cookies:
    """Build an ``httpx.Cookies`` jar from *entries*."""
    jar = httpx.Cookies()
    for entry in entries:
        jar.set(entry.name, entry.value, domain=entry.domain, path=entry.path or "/")
    return jar
