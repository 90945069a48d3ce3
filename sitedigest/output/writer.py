"""Writes page summaries and the host-level ``llms.txt`` index.

Layout under ``<output_dir>/<safe_host>/``::

    ai/pages/<slug>.md   one summary per page, with YAML frontmatter
    llms.txt             index of every generated page
    manifest.json        incremental cache (see sitedigest.cache)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Iterable

from sitedigest.scraper.text import escape_yaml
from sitedigest.scraper.urls import safe_host
from sitedigest.summarize.summarizer import SummaryResult

logger = logging.getLogger(__name__)

GENERATOR = "sitedigest"


@dataclass(frozen=True)
class IndexEntry:
    """One line of ``llms.txt``."""

    url: str
    title: str
    relative_output_path: str

    @property
    def file_name(self) -> str:
        return PurePosixPath(self.relative_output_path).name

    @classmethod
    def from_summary(cls, summary: SummaryResult) -> IndexEntry:
        return cls(summary.url, summary.title, summary.relative_output_path)


def site_output_root(output_dir: Path, root_url: str) -> Path:
    """``<output_dir>/<safe_host>`` for the site at *root_url*."""
    return Path(output_dir) / safe_host(root_url)


def build_frontmatter(summary: SummaryResult, fetched_at: datetime) -> str:
    if fetched_at.tzinfo is None:
        fetched_at = fetched_at.replace(tzinfo=timezone.utc)
    return (
        "---\n"
        f'title: "{escape_yaml(summary.title)}"\n'
        f'source_url: "{escape_yaml(summary.url)}"\n'
        f'fetched_at: "{fetched_at.astimezone(timezone.utc).isoformat()}"\n'
        f'content_hash: "{summary.content_hash}"\n'
        f'generator: "{GENERATOR}"\n'
        "---\n"
    )


def build_llms_txt(root_url: str, entries: Iterable[IndexEntry]) -> str:
    """Render the ``llms.txt`` index; entries are de-duplicated by file name."""
    seen: set[str] = set()
    lines = [f"# {safe_host(root_url)}", "", f"> AI-friendly page summaries for {root_url}", "", "## Pages", ""]
    for entry in entries:
        if entry.file_name in seen:
            continue
        seen.add(entry.file_name)
        title = entry.title.strip() or entry.url
        lines.append(f"- [{title}]({entry.relative_output_path}): {entry.url}")
    return "\n".join(lines) + "\n"


class FileOutputWriter:
    """File-system writer rooted at one site's output folder."""

    def __init__(self, output_root: Path) -> None:
        self.output_root = Path(output_root)

    def write_summary(self, summary: SummaryResult, fetched_at: datetime) -> str:
        """Write one summary and return its path relative to ``output_root``."""
        target = self.output_root / summary.relative_output_path
        target.parent.mkdir(parents=True, exist_ok=True)
        content = build_frontmatter(summary, fetched_at) + "\n" + summary.markdown.strip() + "\n"
        target.write_text(content, encoding="utf-8")
        logger.info("Saved: %s", target)
        return summary.relative_output_path

    def write_llms_txt(self, root_url: str, entries: Iterable[IndexEntry]) -> Path:
        self.output_root.mkdir(parents=True, exist_ok=True)
        path = self.output_root / "llms.txt"
        path.write_text(build_llms_txt(root_url, entries), encoding="utf-8")
        return path
