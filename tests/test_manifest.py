"""Tests for the incremental-cache manifest (in-memory model and on-disk store)."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from sitedigest.cache import Manifest, ManifestEntry, ManifestStore
from sitedigest.cache.manifest import MANIFEST_FILE


def _entry(url: str = "https://example.com/a", content_hash: str = "abc") -> ManifestEntry:
    return ManifestEntry(url, content_hash, "ai/pages/a.md", "2024-01-01T00:00:00+00:00", "A")


# ---------------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------------

class TestManifest:
    def test_lookup_ignores_case(self) -> None:
        manifest = Manifest()
        manifest.set("https://Example.com/About", _entry("https://Example.com/About"))

        assert manifest.get("https://example.com/about") is not None
        assert len(manifest) == 1

    def test_cache_hit_requires_same_hash_and_path(self) -> None:
        manifest = Manifest()
        manifest.record("https://example.com/a", "h1", "ai/pages/a.md", "A")

        assert manifest.is_cache_hit("https://example.com/a", "h1")
        assert not manifest.is_cache_hit("https://example.com/a", "h2")
        assert not manifest.is_cache_hit("https://example.com/other", "h1")

    def test_hash_comparison_ignores_case(self) -> None:
        manifest = Manifest()
        manifest.set("https://example.com/a", _entry(content_hash="ABCDEF0123"))
        assert manifest.is_cache_hit("https://example.com/a", "abcdef0123")

    def test_entry_without_output_path_is_a_miss(self) -> None:
        manifest = Manifest({"https://example.com/a": ManifestEntry("https://example.com/a", "h1", "", "")})
        assert not manifest.is_cache_hit("https://example.com/a", "h1")

    def test_record_stamps_utc_time(self) -> None:
        entry = Manifest().record("https://example.com/a", "h", "ai/pages/a.md", "A")
        assert entry.last_generated_at.endswith("+00:00")

    def test_json_shape(self) -> None:
        manifest = Manifest()
        manifest.set("https://example.com/a", _entry())

        payload = json.loads(manifest.to_json())

        assert payload == {
            "Entries": {
                "https://example.com/a": {
                    "Url": "https://example.com/a",
                    "ContentHash": "abc",
                    "RelativeOutputPath": "ai/pages/a.md",
                    "LastGeneratedAt": "2024-01-01T00:00:00+00:00",
                    "Title": "A",
                }
            }
        }

    def test_reads_camel_case_keys(self) -> None:
        data = json.dumps({
            "entries": {
                "https://example.com/a": {"url": "https://example.com/a", "contentHash": "h", "relativeOutputPath": "p.md"}
            }
        })
        entry = Manifest.from_json(data).get("https://example.com/a")

        assert entry is not None
        assert entry.content_hash == "h"
        assert entry.relative_output_path == "p.md"
        assert entry.title == ""

    @pytest.mark.parametrize(
        "data", ["{not json", "[]", '{"Entries": []}', '"text"', "[" * 200_000],
        ids=["garbage", "list", "entries-list", "string", "deep-nesting"],
    )
    def test_unrecognised_documents_are_empty(self, data: str) -> None:
        assert len(Manifest.from_json(data)) == 0


# ---------------------------------------------------------------------------
# ManifestStore
# ---------------------------------------------------------------------------

class TestManifestStore:
    def test_missing_file_loads_empty(self, tmp_path: Path) -> None:
        assert len(ManifestStore(tmp_path / "site").load()) == 0

    def test_corrupt_file_loads_empty(self, tmp_path: Path) -> None:
        (tmp_path / MANIFEST_FILE).write_text("{{{ definitely not json", encoding="utf-8")
        assert len(ManifestStore(tmp_path).load()) == 0

    def test_deeply_nested_file_loads_empty(self, tmp_path: Path, caplog) -> None:
        (tmp_path / MANIFEST_FILE).write_text("[" * 200_000, encoding="utf-8")

        with caplog.at_level(logging.WARNING):
            manifest = ManifestStore(tmp_path).load()

        assert len(manifest) == 0
        assert "Corrupt manifest" in caplog.text

    def test_save_then_load(self, tmp_path: Path) -> None:
        store = ManifestStore(tmp_path / "site")
        manifest = Manifest()
        manifest.record("https://example.com/a", "h1", "ai/pages/a.md", "A")

        store.save(manifest)
        loaded = store.load()

        assert store.path == tmp_path / "site" / MANIFEST_FILE
        assert loaded.is_cache_hit("https://EXAMPLE.com/a", "h1")

    def test_save_leaves_no_temp_files(self, tmp_path: Path) -> None:
        store = ManifestStore(tmp_path)
        store.save(Manifest())
        store.save(Manifest())
        assert sorted(p.name for p in tmp_path.iterdir()) == [MANIFEST_FILE]

    def test_failed_save_keeps_previous_file(self, tmp_path: Path) -> None:
        store = ManifestStore(tmp_path)
        original = Manifest()
        original.record("https://example.com/a", "h1", "ai/pages/a.md", "A")
        store.save(original)

        with patch("sitedigest.cache.manifest.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                store.save(Manifest())

        assert len(store.load()) == 1
        assert sorted(p.name for p in tmp_path.iterdir()) == [MANIFEST_FILE]
