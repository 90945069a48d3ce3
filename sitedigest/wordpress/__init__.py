"""WordPress REST API detection, pagination and content cache."""

from sitedigest.wordpress.client import (
    WordPressDetection,
    WordPressDiscovery,
    WordPressItem,
    WordPressRestClient,
)

__all__ = ["WordPressDetection", "WordPressDiscovery", "WordPressItem", "WordPressRestClient"]
