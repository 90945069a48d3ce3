"""Tests for summary files, frontmatter and the llms.txt index."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

from sitedigest.output import FileOutputWriter, IndexEntry, build_llms_txt, site_output_root
from sitedigest.output.writer import build_frontmatter
from sitedigest.summarize import SummaryResult


def _summary(url: str = "https://example.com/about/", title: str = "About") -> SummaryResult:
    return SummaryResult(
        url=url,
        title=title,
        markdown="# About\n\n## TL;DR\n- We build things\n",
        content_hash="deadbeef",
        file_name="about.md",
        relative_output_path="ai/pages/about.md",
    )


class TestFrontmatter:
    def test_fields_in_order(self) -> None:
        fm = build_frontmatter(_summary(), datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc))
        assert fm.splitlines() == [
            "---",
            'title: "About"',
            'source_url: "https://example.com/about/"',
            'fetched_at: "2024-05-01T12:00:00+00:00"',
            'content_hash: "deadbeef"',
            'generator: "sitedigest"',
            "---",
        ]

    def test_quotes_escaped(self) -> None:
        fm = build_frontmatter(_summary(title='Say "hi"'), datetime(2024, 5, 1, tzinfo=timezone.utc))
        assert 'title: "Say \\"hi\\""' in fm

    def test_non_utc_time_converted(self) -> None:
        paris = timezone(timedelta(hours=2))
        fm = build_frontmatter(_summary(), datetime(2024, 5, 1, 14, 0, tzinfo=paris))
        assert 'fetched_at: "2024-05-01T12:00:00+00:00"' in fm


class TestLlmsTxt:
    def test_layout(self) -> None:
        text = build_llms_txt("https://example.com/", [IndexEntry("https://example.com/about/", "About", "ai/pages/about.md")])
        assert text.splitlines() == [
            "# example.com",
            "",
            "> AI-friendly page summaries for https://example.com/",
            "",
            "## Pages",
            "",
            "- [About](ai/pages/about.md): https://example.com/about/",
        ]

    def test_duplicate_file_names_listed_once(self) -> None:
        entries = [
            IndexEntry("https://example.com/about/", "About", "ai/pages/about.md"),
            IndexEntry("https://example.com/about", "About again", "ai/pages/about.md"),
        ]
        text = build_llms_txt("https://example.com/", entries)
        assert text.count("ai/pages/about.md") == 1
        assert "About again" not in text

    def test_blank_title_uses_url(self) -> None:
        text = build_llms_txt("https://example.com/", [IndexEntry("https://example.com/x", " ", "ai/pages/x.md")])
        assert "- [https://example.com/x](ai/pages/x.md)" in text


class TestFileOutputWriter:
    def test_write_summary(self, tmp_path: Path) -> None:
        writer = FileOutputWriter(tmp_path)

        relative = writer.write_summary(_summary(), datetime(2024, 5, 1, tzinfo=timezone.utc))

        assert relative == "ai/pages/about.md"
        content = (tmp_path / "ai" / "pages" / "about.md").read_text(encoding="utf-8")
        assert content.startswith("---\ntitle: \"About\"\n")
        assert "## TL;DR" in content
        assert content.endswith("- We build things\n")

    def test_write_llms_txt(self, tmp_path: Path) -> None:
        path = FileOutputWriter(tmp_path / "site").write_llms_txt(
            "https://example.com/", [IndexEntry.from_summary(_summary())]
        )
        assert path == tmp_path / "site" / "llms.txt"
        assert "- [About](ai/pages/about.md)" in path.read_text(encoding="utf-8")

    def test_site_output_root(self, tmp_path: Path) -> None:
        assert site_output_root(tmp_path, "https://Example.com:8080/x") == tmp_path / "example.com"
