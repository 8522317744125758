"""
Persisted cache record for aggregate mint statistics.

Wire format matches what earlier clients stored per parent name:
    {"totalMinted": 42, "recentMints": ["a.eth"], "timestamp": 1700000000000}
"""

import time
from typing import Annotated, Final

import msgspec

from mintstats.listing.types import CACHE_TTL

CACHE_KEY_PREFIX: Final[str] = "mintStats-"


class CacheEntry(msgspec.Struct, frozen=True, rename="camel"):
    """Snapshot of the last known aggregate, captured at `timestamp`."""

    total_minted: Annotated[int, msgspec.Meta(ge=0)]
    recent_mints: list[str]
    timestamp: int  # Unix milliseconds


def now_ms() -> int:
    return int(time.time() * 1000)


def cache_key(parent_name: str) -> str:
    return f"{CACHE_KEY_PREFIX}{parent_name}"


def is_fresh(
    entry: CacheEntry,
    now: int | None = None,
    ttl: float = CACHE_TTL,
) -> bool:
    """
    Whether an entry is still inside the freshness window.

    Args:
        entry: Cached record
        now: Current time in unix milliseconds (defaults to wall clock)
        ttl: Freshness window in seconds
    """
    current = now_ms() if now is None else now
    return (current - entry.timestamp) < ttl * 1000
