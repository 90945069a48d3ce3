"""Discovery through the WordPress REST API."""

from __future__ import annotations

import logging

from sitedigest.config import RunConfig
from sitedigest.discovery.base import UrlDiscovery
from sitedigest.scraper.models import DiscoveredUrl
from sitedigest.wordpress.client import WordPressRestClient

logger = logging.getLogger(__name__)


class WordPressApiDiscovery(UrlDiscovery):
    """Detect the REST API, then list pages and posts.

    The shared :class:`WordPressRestClient` keeps the rendered HTML of every
    listed item so the fetch stage can skip the network for them.
    """

    name = "wordpress"

    def __init__(self, client: WordPressRestClient) -> None:
        self._client = client

    def discover(self, config: RunConfig) -> list[DiscoveredUrl]:
        detection = self._client.detect(config.root)
        logger.info("WP REST detected: %s", "yes" if detection.available else "no")
        if not detection.available:
            if detection.reason:
                logger.info("WP REST unavailable: %s", detection.reason)
            return []

        result = self._client.discover(config)
        if result.disabled:
            logger.info("WP REST disabled: %s", result.disabled_reason)
            return []

        logger.info("WP REST discovered %d pages, %d posts", result.pages_count, result.posts_count)
        return result.items
