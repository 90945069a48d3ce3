"""LLM summarisation of extracted page markdown."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from sitedigest.config import settings
from sitedigest.scraper.models import PageContent
from sitedigest.scraper.text import sha256
from sitedigest.scraper.urls import slug_from_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SummaryResult:
    url: str
    title: str
    markdown: str
    content_hash: str
    file_name: str
    relative_output_path: str


# ---------------------------------------------------------------------------
# LLM helper
# ---------------------------------------------------------------------------

def _get_llm(model: str | None = None, base_url: str | None = None) -> Any:
    """Return a configured LangChain chat model based on ``settings``."""
    if settings.llm_provider == "openai":
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(
            model=model or settings.openai_chat_model,
            temperature=settings.llm_temperature,
        )

    from langchain_ollama import ChatOllama

    return ChatOllama(
        model=model or settings.ollama_chat_model,
        base_url=base_url or settings.ollama_base_url,
        temperature=settings.llm_temperature,
    )


def build_prompt(page: PageContent) -> str:
    """Structured summary prompt with fixed markdown sections."""
    return (
        "You are generating an AI-friendly page summary in markdown.\n"
        "Return markdown only. Do not add commentary outside markdown sections.\n"
        'Do not invent details. If unknown, write "Not specified".\n\n'
        "Required structure:\n"
        f"# {page.title}\n\n"
        "## TL;DR\n"
        "- 2-4 bullets\n\n"
        "## Key points\n"
        "- 5-10 concrete bullets\n\n"
        "## Useful context\n"
        "- Content type: ...\n"
        "- Location: ...\n"
        "- Services/areas: ...\n"
        "- Deliverables: ...\n"
        "- Constraints/criteria: ...\n\n"
        "## FAQ\n"
        "- 5 to 8 Q/A pairs\n"
        "Q: ...\n"
        "A: ...\n\n"
        "## Reference\n"
        f"- Source: {page.url}\n\n"
        f"Source title: {page.title}\n"
        f"Source URL: {page.url}\n\n"
        "Extracted content to summarize:\n"
        f"{page.extracted_markdown}\n"
    )


def summary_identity(page: PageContent) -> tuple[str, str, str]:
    """``(content_hash, file_name, relative_output_path)`` for *page*.

    The hash covers the extracted markdown, never the generated text, so the
    cache is keyed on source content.
    """
    file_name = f"{slug_from_url(page.url)}.md"
    return sha256(page.extracted_markdown), file_name, f"ai/pages/{file_name}"


class Summarizer(ABC):
    @abstractmethod
    def summarize(self, page: PageContent) -> SummaryResult:
        ...


class LlmSummarizer(Summarizer):
    """Summarise through a LangChain chat model (Ollama or OpenAI).

    Args:
        llm: Pre-built chat model; when omitted one is created from
            ``settings`` (optionally overriding *model* and *base_url*).
    """

    def __init__(self, llm: Any = None, model: str | None = None, base_url: str | None = None) -> None:
        self._llm = llm
        self._model = model
        self._base_url = base_url

    @property
    def llm(self) -> Any:
        # Dry runs never reach this point.
        if self._llm is None:
            self._llm = _get_llm(model=self._model, base_url=self._base_url)
        return self._llm

    def summarize(self, page: PageContent) -> SummaryResult:
        response = self.llm.invoke(build_prompt(page))
        markdown = response.content if hasattr(response, "content") else str(response)
        content_hash, file_name, relative_path = summary_identity(page)
        logger.debug("Summary for %s: %d chars", page.url, len(markdown))
        return SummaryResult(
            url=page.url,
            title=page.title,
            markdown=str(markdown).strip(),
            content_hash=content_hash,
            file_name=file_name,
            relative_output_path=relative_path,
        )
