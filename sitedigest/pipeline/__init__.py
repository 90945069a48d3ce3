"""Pipeline package — page loop and run bootstrap."""

from sitedigest.pipeline.bootstrap import discover_urls, probe_site_protection, run_site
from sitedigest.pipeline.runner import RunResult, SummarizationPipeline

__all__ = ["RunResult", "SummarizationPipeline", "discover_urls", "probe_site_protection", "run_site"]
