"""Type definitions for listing configuration."""

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum


class ListingType(StrEnum):
    """Infrastructure tier serving queries for a parent name."""

    L1 = "L1"  # Registry on mainnet, served by the graph
    L2 = "L2"  # Served by the indexer API


@dataclass(frozen=True, slots=True)
class ListingConfig:
    """Immutable per-session listing configuration."""

    parent_name: str
    chain_id: int | None
    listing_type: ListingType

    @property
    def is_complete(self) -> bool:
        """Whether there is enough configuration to query any source."""
        return bool(self.parent_name) and bool(self.chain_id)


# Maps a human-readable name to its canonical node hash (0x-prefixed hex)
NameHasher = Callable[[str], str]


def static_node_hasher(node: str) -> NameHasher:
    """Build a hasher that always returns a pre-computed node hash."""

    def _hasher(name: str) -> str:
        return node

    return _hasher


# Configuration constants
REFRESH_INTERVAL = 30.0  # Seconds between refreshes
REQUEST_TIMEOUT = 5.0  # Seconds per source request
CACHE_TTL = 3600.0  # 1 hour freshness window
DEFAULT_RECENT_LIMIT = 100
GRAPH_URL = "https://api.thegraph.com/subgraphs/name/ensdomains/ens"
INDEXER_URL = "https://indexer.namespace.ninja/api/v1/nodes"
