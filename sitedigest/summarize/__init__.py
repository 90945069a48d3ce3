"""Summarisation collaborator — LLM-backed page summaries."""

from sitedigest.summarize.summarizer import LlmSummarizer, Summarizer, SummaryResult, build_prompt

__all__ = ["LlmSummarizer", "Summarizer", "SummaryResult", "build_prompt"]
