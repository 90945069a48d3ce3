"""Text cleanup, escaping and hashing helpers shared across extraction and output."""

from __future__ import annotations

import hashlib
import re


def sha256(text: str | None) -> str:
    """Lowercase hex SHA-256 digest of *text* (``None`` hashes as ``""``)."""
    return hashlib.sha256((text or "").encode("utf-8")).hexdigest()


def clean_markdown(md: str | None) -> str:
    """Normalise line endings and collapse runs of blank lines."""
    md = (md or "").replace("\r\n", "\n")
    md = re.sub(r"\n{3,}", "\n\n", md)
    return md.strip()


def escape_yaml(value: str | None) -> str:
    """Escape characters that would break a double-quoted YAML scalar."""
    return (value or "").replace("\\", "\\\\").replace('"', '\\"')
