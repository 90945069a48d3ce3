"""The sequential page loop: discover → fetch → extract → cache-check → summarise → write.

``SummarizationPipeline.run`` is the single public entry point.  All
collaborators are injected so tests can replace any stage.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path

from sitedigest.cache.manifest import Manifest, ManifestStore
from sitedigest.config import RunConfig
from sitedigest.discovery.base import UrlDiscovery
from sitedigest.errors import RunCancelled
from sitedigest.output.writer import FileOutputWriter, IndexEntry
from sitedigest.scraper.extractor import HeuristicContentExtractor
from sitedigest.scraper.fetcher import PageFetcher
from sitedigest.scraper.models import DiscoveredUrl
from sitedigest.scraper.text import sha256
from sitedigest.summarize.summarizer import Summarizer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunResult:
    """Run telemetry.  ``cached`` pages are also counted in ``skipped``."""

    discovered: int
    processed: int
    skipped: int
    failed: int
    cached: int
    output_root: Path


class SummarizationPipeline:
    def __init__(
        self,
        discovery: UrlDiscovery,
        fetcher: PageFetcher,
        extractor: HeuristicContentExtractor,
        summarizer: Summarizer,
        writer: FileOutputWriter,
        manifest_store: ManifestStore,
        cancel: threading.Event | None = None,
    ) -> None:
        self._discovery = discovery
        self._fetcher = fetcher
        self._extractor = extractor
        self._summarizer = summarizer
        self._writer = writer
        self._manifest_store = manifest_store
        self._cancel = cancel or threading.Event()

    def run(self, config: RunConfig) -> RunResult:
        """Execute one run for *config*.

        The manifest is loaded once and saved once, after the loop, even when
        the loop is left through cancellation or an unexpected error.

        Raises:
            RunCancelled: If the cancellation signal is set mid-run.
        """
        discovered = self._discovery.discover(config)
        logger.info("Discovered %d pages", len(discovered))
        targets = discovered[: config.max_pages]

        if config.dry_run:
            logger.info("Dry run: listing discovered URLs (capped to %d)", config.max_pages)
            for index, item in enumerate(targets, start=1):
                logger.info("  [%d] %s", index, item.url)
            return RunResult(len(discovered), 0, 0, 0, 0, self._writer.output_root)

        manifest = self._manifest_store.load()
        index: list[IndexEntry] = []
        counts = {"processed": 0, "skipped": 0, "failed": 0, "cached": 0}

        try:
            for item in targets:
                if self._cancel.is_set():
                    raise RunCancelled(f"Cancelled before {item.url}")
                self._process(item, manifest, index, counts)
                self._pause(config)
        finally:
            self._manifest_store.save(manifest)

        self._writer.write_llms_txt(config.root, index)
        return RunResult(
            discovered=len(discovered),
            processed=counts["processed"],
            skipped=counts["skipped"],
            failed=counts["failed"],
            cached=counts["cached"],
            output_root=self._writer.output_root,
        )

    def _process(self, item: DiscoveredUrl, manifest: Manifest, index: list[IndexEntry], counts: dict[str, int]) -> None:
        logger.info("Processing: %s", item.url)
        try:
            fetched = self._fetcher.fetch(item.url)
            if fetched is None:
                counts["failed"] += 1
                logger.warning("Fetch returned no HTML content for %s", item.url)
                return

            page = self._extractor.extract(fetched)
            if page.is_skipped:
                counts["skipped"] += 1
                logger.info("Skipped %s: %s", item.url, page.skip_reason)
                return

            content_hash = sha256(page.extracted_markdown)
            if manifest.is_cache_hit(page.url, content_hash):
                existing = manifest.get(page.url)
                counts["cached"] += 1
                counts["skipped"] += 1
                logger.info("Skipped %s: unchanged content (cache hit)", item.url)
                index.append(IndexEntry(
                    url=page.url,
                    title=existing.title or page.title,
                    relative_output_path=existing.relative_output_path.replace("\\", "/"),
                ))
                return

            summary = self._summarizer.summarize(page)
            relative_path = self._writer.write_summary(summary, page.fetched_at)
            manifest.record(page.url, summary.content_hash, relative_path, summary.title)
            index.append(IndexEntry.from_summary(summary))
            counts["processed"] += 1
        except Exception:
            counts["failed"] += 1
            logger.exception("Failed processing %s", item.url)

    def _pause(self, config: RunConfig) -> None:
        if config.delay > 0:
            self._cancel.wait(config.delay)
