"""Type definitions shared by the data source adapters."""

from dataclasses import dataclass
from enum import StrEnum
from typing import assert_never

from mintstats.listing.types import ListingType


class SourceKind(StrEnum):
    """Tag for each data source reachable by the aggregator."""

    GRAPH = "graph"
    INDEXER = "indexer"
    REGISTRY = "registry"


@dataclass(frozen=True, slots=True)
class SourceResult:
    """Aggregate as reported by a single source."""

    total_minted: int
    recent_mints: tuple[str, ...]
    source: SourceKind
    is_lower_bound: bool = False  # total_minted is only the returned page size

    def limited(self, limit: int) -> "SourceResult":
        """Copy with recent_mints trimmed to at most `limit` names."""
        if len(self.recent_mints) <= limit:
            return self
        return SourceResult(
            total_minted=self.total_minted,
            recent_mints=self.recent_mints[:limit],
            source=self.source,
            is_lower_bound=self.is_lower_bound,
        )


def next_source(
    listing_type: ListingType,
    failed: SourceKind | None = None,
) -> SourceKind | None:
    """
    Pick the next source to try for a listing.

    Args:
        listing_type: Classification of the parent name
        failed: Source that just failed, or None for the first attempt

    Returns:
        Source to try next, or None when the chain is exhausted
    """
    match listing_type:
        case ListingType.L1:
            if failed is None:
                return SourceKind.GRAPH
            if failed == SourceKind.GRAPH:
                return SourceKind.REGISTRY
            return None
        case ListingType.L2:
            if failed is None:
                return SourceKind.INDEXER
            return None
        case _:
            assert_never(listing_type)


def source_chain(listing_type: ListingType) -> tuple[SourceKind, ...]:
    """Full ordered fallback chain for a listing type."""
    chain: list[SourceKind] = []
    kind = next_source(listing_type)
    while kind is not None:
        chain.append(kind)
        kind = next_source(listing_type, kind)
    return tuple(chain)
