"""sitedigest CLI — turn a website into AI-friendly page summaries.

Usage:
    sitedigest --help

Commands:
    run       discover, fetch, summarise and write output for a site
    discover  list the URLs a run would process (nothing is fetched or written)
    probe     report whether a URL is behind a bot-protection challenge
"""

from __future__ import annotations

import logging
import signal
import threading
from pathlib import Path
from typing import Optional

import httpx
import typer

from sitedigest.config import RunConfig, settings
from sitedigest.errors import RunCancelled, SiteDigestError
from sitedigest.pipeline.bootstrap import discover_urls, probe_root, run_site
from sitedigest.scraper.cookies import load_cookies
from sitedigest.scraper.http import build_http_client
from sitedigest.summarize.summarizer import LlmSummarizer

app = typer.Typer(
    name="sitedigest",
    help="Summarise a website into llms.txt-style markdown.",
    no_args_is_help=True,
)

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=_LOG_FORMAT,
        datefmt="%H:%M:%S",
    )
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _install_cancel_handler() -> threading.Event:
    """Map Ctrl-C onto a cancellation event so the current page can finish cleanly."""
    cancel = threading.Event()

    def _handler(signum, frame) -> None:
        if cancel.is_set():
            raise KeyboardInterrupt
        typer.echo("[cancel] Stopping after the current page (Ctrl-C again to abort) …", err=True)
        cancel.set()

    signal.signal(signal.SIGINT, _handler)
    return cancel


def _build_config(
    url: str,
    max_pages: int,
    max_depth: int,
    delay: float,
    all_hosts: bool,
    cookie_file: Optional[Path],
    dry_run: bool = False,
) -> RunConfig:
    try:
        return RunConfig(
            root_url=url,
            max_pages=max_pages,
            max_depth=max_depth,
            same_host_only=not all_hosts,
            delay=delay,
            cookie_file=cookie_file,
            dry_run=dry_run,
        )
    except ValueError as exc:
        typer.echo(f"[error] {exc}", err=True)
        raise typer.Exit(2)


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------
@app.command("run")
def run(
    url: str = typer.Argument(..., help="Root URL of the site."),
    max_pages: int = typer.Option(settings.default_max_pages, "--max-pages", help="Maximum pages to process."),
    max_depth: int = typer.Option(settings.default_max_depth, "--max-depth", help="Maximum crawl depth."),
    delay: float = typer.Option(settings.rate_limit_delay, "--delay", help="Seconds between requests."),
    all_hosts: bool = typer.Option(False, "--all-hosts", help="Follow links to other hosts."),
    cookie_file: Optional[Path] = typer.Option(None, "--cookie-file", help="Netscape or JSON cookie export."),
    dry_run: bool = typer.Option(False, "--dry-run", help="List discovered URLs and stop."),
    ollama_url: Optional[str] = typer.Option(None, "--ollama-url", help="Ollama base URL."),
    model: Optional[str] = typer.Option(None, "--model", help="Chat model name."),
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", help="Output root directory."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    """Discover, fetch, summarise and write output for a site."""
    _configure_logging(verbose)
    config = _build_config(url, max_pages, max_depth, delay, all_hosts, cookie_file, dry_run)
    cancel = _install_cancel_handler()

    typer.echo(f"[run] Starting {config.root}  (max_pages={config.max_pages}, max_depth={config.max_depth})")
    try:
        result = run_site(
            config,
            cancel=cancel,
            summarizer=LlmSummarizer(model=model, base_url=ollama_url),
            output_dir=output_dir,
        )
    except RunCancelled as exc:
        typer.echo(f"[run] Cancelled: {exc}", err=True)
        raise typer.Exit(130)
    except SiteDigestError as exc:
        typer.echo(f"[run] Fatal error: {exc}", err=True)
        raise typer.Exit(1)

    typer.echo("")
    typer.echo("Run completed.")
    typer.echo(f"Discovered: {result.discovered}")
    typer.echo(f"Processed:  {result.processed}")
    typer.echo(f"Skipped:    {result.skipped} (cache hits: {result.cached})")
    typer.echo(f"Failed:     {result.failed}")
    typer.echo(f"Output:     {result.output_root.resolve()}")


# ---------------------------------------------------------------------------
# discover
# ---------------------------------------------------------------------------
@app.command("discover")
def discover(
    url: str = typer.Argument(..., help="Root URL of the site."),
    max_pages: int = typer.Option(settings.default_max_pages, "--max-pages", help="Maximum URLs to list."),
    max_depth: int = typer.Option(settings.default_max_depth, "--max-depth", help="Maximum crawl depth."),
    delay: float = typer.Option(settings.rate_limit_delay, "--delay", help="Seconds between requests."),
    all_hosts: bool = typer.Option(False, "--all-hosts", help="Follow links to other hosts."),
    cookie_file: Optional[Path] = typer.Option(None, "--cookie-file", help="Netscape or JSON cookie export."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    """List the URLs a run would process, with the strategy that found them."""
    _configure_logging(verbose)
    config = _build_config(url, max_pages, max_depth, delay, all_hosts, cookie_file, dry_run=True)
    cancel = _install_cancel_handler()

    try:
        urls = discover_urls(config, cancel)
    except SiteDigestError as exc:
        typer.echo(f"[discover] {exc}", err=True)
        raise typer.Exit(1)

    if not urls:
        typer.echo("[discover] No URLs found.")
        return
    for item in urls:
        typer.echo(f"  [{item.method}] d={item.depth}  {item.url}")
    typer.echo(f"[discover] {len(urls)} URLs")


# ---------------------------------------------------------------------------
# probe
# ---------------------------------------------------------------------------
@app.command("probe")
def probe(
    url: str = typer.Argument(..., help="URL to check."),
    cookie_file: Optional[Path] = typer.Option(None, "--cookie-file", help="Netscape or JSON cookie export."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    """Report whether a plain HTTP GET of URL lands on a protection page."""
    _configure_logging(verbose)
    with build_http_client(load_cookies(cookie_file)) as client:
        try:
            label = probe_root(client, url)
        except httpx.HTTPError as exc:
            typer.echo(f"[probe] Request failed: {exc}", err=True)
            raise typer.Exit(1)

    if label is None:
        typer.echo("[probe] No site protection detected.")
    else:
        typer.echo(f"[probe] Protection detected: {label}")


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
