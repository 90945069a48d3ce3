"""Discovery contract and the ordered, first-non-empty-wins composite."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Iterable, Sequence

from sitedigest.config import RunConfig
from sitedigest.errors import RunCancelled
from sitedigest.scraper.models import DiscoveredUrl
from sitedigest.scraper.urls import canonicalize

logger = logging.getLogger(__name__)


class UrlDiscovery(ABC):
    """One way of listing the pages of a site.

    Implementations return ``[]`` for every expected failure (missing
    endpoint, malformed document, unreachable host) instead of raising.
    """

    name: str = "discovery"

    @abstractmethod
    def discover(self, config: RunConfig) -> list[DiscoveredUrl]:
        ...


def dedupe_and_cap(urls: Iterable[DiscoveredUrl], max_pages: int) -> list[DiscoveredUrl]:
    """Keep the first occurrence of each canonical URL, at most *max_pages* of them."""
    seen: set[str] = set()
    out: list[DiscoveredUrl] = []
    for item in urls:
        key = canonicalize(item.url)
        if key in seen:
            continue
        seen.add(key)
        out.append(item)
        if len(out) >= max_pages:
            break
    return out


class CompositeDiscovery(UrlDiscovery):
    """Run *strategies* in order and adopt the first non-empty result.

    Results are never merged across strategies.
    """

    name = "composite"

    def __init__(self, strategies: Sequence[UrlDiscovery], cancel: threading.Event | None = None) -> None:
        self._strategies = list(strategies)
        self._cancel = cancel or threading.Event()

    def discover(self, config: RunConfig) -> list[DiscoveredUrl]:
        for strategy in self._strategies:
            if self._cancel.is_set():
                raise RunCancelled("Cancelled during discovery")

            found = strategy.discover(config)
            if found:
                result = dedupe_and_cap(found, config.max_pages)
                logger.info("Discovered %d URLs via %s", len(result), strategy.name)
                return result
            logger.debug("%s discovery returned nothing", strategy.name)

        logger.info("No URLs discovered")
        return []
