"""Listing configuration."""

from mintstats.listing.types import (
    CACHE_TTL,
    DEFAULT_RECENT_LIMIT,
    GRAPH_URL,
    INDEXER_URL,
    REFRESH_INTERVAL,
    REQUEST_TIMEOUT,
    ListingConfig,
    ListingType,
    NameHasher,
    static_node_hasher,
)

__all__ = [
    "ListingConfig",
    "ListingType",
    "NameHasher",
    "static_node_hasher",
    "CACHE_TTL",
    "DEFAULT_RECENT_LIMIT",
    "GRAPH_URL",
    "INDEXER_URL",
    "REFRESH_INTERVAL",
    "REQUEST_TIMEOUT",
]
