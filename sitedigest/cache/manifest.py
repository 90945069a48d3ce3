"""Incremental cache index persisted as ``<output_root>/manifest.json``.

The manifest maps each source URL to the hash of its *extracted* markdown
at the last successful write, plus where that output lives.  A run whose
freshly extracted content hashes the same as the stored entry skips
summarisation and writing for that page.

Loading never fails: a missing, unreadable or corrupt file yields an empty
manifest, so the worst case is a full regeneration.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

logger = logging.getLogger(__name__)

MANIFEST_FILE = "manifest.json"


def _pick(raw: dict, key: str) -> Any:
    """Case-insensitive dict lookup (``ContentHash`` == ``contentHash``)."""
    if key in raw:
        return raw[key]
    lowered = key.lower()
    for candidate, value in raw.items():
        if isinstance(candidate, str) and candidate.lower() == lowered:
            return value
    return None


@dataclass
class ManifestEntry:
    url: str
    content_hash: str
    relative_output_path: str
    last_generated_at: str
    title: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "Url": self.url,
            "ContentHash": self.content_hash,
            "RelativeOutputPath": self.relative_output_path,
            "LastGeneratedAt": self.last_generated_at,
            "Title": self.title,
        }

    @classmethod
    def from_dict(cls, url: str, raw: dict) -> ManifestEntry:
        return cls(
            url=str(_pick(raw, "Url") or url),
            content_hash=str(_pick(raw, "ContentHash") or ""),
            relative_output_path=str(_pick(raw, "RelativeOutputPath") or ""),
            last_generated_at=str(_pick(raw, "LastGeneratedAt") or ""),
            title=str(_pick(raw, "Title") or ""),
        )


class Manifest:
    """URL-keyed entries; URL lookups ignore case."""

    def __init__(self, entries: dict[str, ManifestEntry] | None = None) -> None:
        self._entries: dict[str, ManifestEntry] = {}
        for url, entry in (entries or {}).items():
            self.set(url, entry)

    def get(self, url: str) -> ManifestEntry | None:
        return self._entries.get(url.lower())

    def set(self, url: str, entry: ManifestEntry) -> None:
        self._entries[url.lower()] = entry

    def record(self, url: str, content_hash: str, relative_output_path: str, title: str) -> ManifestEntry:
        """Store a freshly generated output, stamped with the current UTC time."""
        entry = ManifestEntry(
            url=url,
            content_hash=content_hash,
            relative_output_path=relative_output_path,
            last_generated_at=datetime.now(timezone.utc).isoformat(),
            title=title,
        )
        self.set(url, entry)
        return entry

    def is_cache_hit(self, url: str, content_hash: str) -> bool:
        """Same extracted-content hash as last time and a known output path."""
        entry = self.get(url)
        return (
            entry is not None
            and bool(entry.relative_output_path)
            and entry.content_hash.lower() == content_hash.lower()
        )

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ManifestEntry]:
        return iter(self._entries.values())

    def to_json(self) -> str:
        payload = {"Entries": {entry.url: entry.to_dict() for entry in self._entries.values()}}
        return json.dumps(payload, indent=2, ensure_ascii=False)

    @classmethod
    def from_json(cls, data: str) -> Manifest:
        """Parse a manifest document; anything unrecognisable yields an empty manifest."""
        try:
            raw = json.loads(data)
        except (ValueError, RecursionError):
            return cls()
        return cls.from_raw(raw)

    @classmethod
    def from_raw(cls, raw: Any) -> Manifest:
        """Build from an already decoded document; unknown shapes yield an empty manifest."""
        if not isinstance(raw, dict):
            return cls()

        entries = _pick(raw, "Entries")
        if not isinstance(entries, dict):
            return cls()

        manifest = cls()
        for url, value in entries.items():
            if isinstance(url, str) and isinstance(value, dict):
                manifest.set(url, ManifestEntry.from_dict(url, value))
        return manifest


class ManifestStore:
    """Loads and saves the manifest of one site's output folder."""

    def __init__(self, output_root: Path) -> None:
        self.output_root = Path(output_root)

    @property
    def path(self) -> Path:
        return self.output_root / MANIFEST_FILE

    def load(self) -> Manifest:
        """Load from disk.  Returns an empty manifest if missing or corrupt."""
        if not self.path.exists():
            return Manifest()
        try:
            text = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not read manifest %s: %s", self.path, exc)
            return Manifest()
        try:
            raw = json.loads(text)
        except (ValueError, RecursionError) as exc:
            logger.warning("Corrupt manifest %s, regenerating every page: %s", self.path, type(exc).__name__)
            return Manifest()

        manifest = Manifest.from_raw(raw)
        logger.debug("Loaded %d manifest entries from %s", len(manifest), self.path)
        return manifest

    def save(self, manifest: Manifest) -> None:
        """Write to a sibling temp file, then atomically replace the target."""
        self.output_root.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".manifest-", suffix=".tmp", dir=self.output_root)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(manifest.to_json())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
