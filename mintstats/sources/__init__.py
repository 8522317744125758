"""Data source adapters and fallback selection."""

from mintstats.sources.graph import fetch_graph_stats
from mintstats.sources.indexer import fetch_indexer_stats
from mintstats.sources.registry import SubnameResolver, fetch_registry_stats
from mintstats.sources.types import (
    SourceKind,
    SourceResult,
    next_source,
    source_chain,
)

__all__ = [
    "SourceKind",
    "SourceResult",
    "SubnameResolver",
    "fetch_graph_stats",
    "fetch_indexer_stats",
    "fetch_registry_stats",
    "next_source",
    "source_chain",
]
