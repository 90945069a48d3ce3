"""Incremental cache — per-URL content hashes persisted across runs."""

from sitedigest.cache.manifest import Manifest, ManifestEntry, ManifestStore

__all__ = ["Manifest", "ManifestEntry", "ManifestStore"]
