"""
Response shapes for the remote sources, validated with msgspec.

Key patterns:
- Raw JSON is decoded once, then converted with strict=False so numeric
  strings (the graph reports BigInt counts as strings) coerce to int
- Unknown fields are ignored, missing required fields fail validation
- rename="camel" maps snake_case attributes onto the camelCase wire names
"""

from typing import Any, TypeVar

import msgspec

T = TypeVar("T")

# Pre-compiled decoder for raw json
_raw_decoder = msgspec.json.Decoder()


################
# GRAPH
################


class NamedNode(msgspec.Struct):
    """Any node carrying an optional human-readable name."""

    name: str | None = None


class DomainCount(msgspec.Struct, rename="camel"):
    subdomain_count: int | None = None


class DomainSubdomains(msgspec.Struct):
    subdomains: list[NamedNode] = []


class GraphStatsData(msgspec.Struct):
    domains: list[NamedNode] | None = None
    domain: DomainCount | None = None


class GraphSubdomainsData(msgspec.Struct):
    domain: DomainSubdomains | None = None


class GraphError(msgspec.Struct):
    message: str = ""


class GraphStatsResponse(msgspec.Struct):
    data: GraphStatsData | None = None
    errors: list[GraphError] | None = None


class GraphSubdomainsResponse(msgspec.Struct):
    data: GraphSubdomainsData | None = None
    errors: list[GraphError] | None = None


################
# INDEXER
################


class IndexerPage(msgspec.Struct, rename="camel"):
    items: list[NamedNode] | None = None
    total_items: int | None = None


def decode_json(data: bytes) -> Any:
    """Decode raw JSON bytes without schema validation."""
    return _raw_decoder.decode(data)


def convert(raw: Any, type_: type[T]) -> T:
    """Validate decoded JSON against a response shape."""
    return msgspec.convert(raw, type_, strict=False)


def names_of(nodes: list[NamedNode]) -> tuple[str, ...]:
    """Names of nodes in order, skipping nodes without a name."""
    return tuple(node.name for node in nodes if node.name)
