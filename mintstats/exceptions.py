"""Error taxonomy for mint statistics aggregation."""

from __future__ import annotations

from collections.abc import Sequence


class MintStatsError(Exception):
    """Base exception for mint statistics errors."""

    pass


class SourceError(MintStatsError):
    """Raised when a single data source fails (network, timeout, bad shape)."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source
        self.message = message


class CacheCorruptionError(MintStatsError):
    """Raised when a persisted cache record cannot be decoded."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Corrupt cache entry {key!r}: {reason}")
        self.key = key
        self.reason = reason


class AggregationFailure(MintStatsError):
    """Raised when every source applicable to a listing has failed."""

    def __init__(self, parent_name: str, attempted: Sequence[str]) -> None:
        tried = ", ".join(attempted) or "none"
        super().__init__(f"All sources failed for {parent_name} (tried: {tried})")
        self.parent_name = parent_name
        self.attempted = tuple(attempted)
